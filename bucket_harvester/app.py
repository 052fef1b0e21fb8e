"""Typer CLI entrypoint for Bucket-Harvester."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, DatasetConfig
from .errors import StorageError, TransportError
from .logging_conf import (
    available_dataset_logs,
    configure_logging,
    dataset_log_path,
    harvester_log_path,
    tail_log,
)
from .orchestrator import HarvestSummary, Orchestrator

app = typer.Typer(
    help="Bucket-Harvester: export wiki Bucket tables to local JSON dumps.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
harvest_app = typer.Typer(name="harvest", help="Run dataset harvests.", no_args_is_help=True)
dataset_app = typer.Typer(name="dataset", help="Inspect dataset configurations.", no_args_is_help=True)
dump_app = typer.Typer(name="dump", help="Inspect dump files.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="View log files.", no_args_is_help=True)

console = Console()

DEFAULT_DATASET = "recipes"


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    orchestrator = Orchestrator(config_repository=repository)
    return AppState(repository=repository, orchestrator=orchestrator)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _load_dataset_or_exit(state: AppState, name: str) -> DatasetConfig:
    try:
        return state.repository.load_dataset(name)
    except FileNotFoundError:
        console.print(f"Unknown dataset `{name}`.", style="red")
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        console.print(f"Invalid configuration for `{name}`: {exc}", style="red")
        raise typer.Exit(code=1)


def _render_datasets_table(datasets: Sequence[DatasetConfig]) -> Table:
    table = Table(title=f"Datasets ({len(datasets)})", box=box.SIMPLE_HEAD)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Bucket", style="magenta")
    table.add_column("Key", style="yellow")
    table.add_column("Page size", justify="right")
    table.add_column("Resume", style="green")
    for dataset in datasets:
        table.add_row(
            dataset.name,
            dataset.query.bucket,
            dataset.key_strategy.value,
            str(dataset.page_size),
            "offset" if dataset.track_offset else "full sync",
        )
    return table


def _render_summary(summary: HarvestSummary) -> Table:
    table = Table(title=f"{summary.dataset} harvest", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Total items", str(summary.total_items))
    table.add_row("Added this run", str(summary.added))
    table.add_row("Duplicates filtered", str(summary.duplicates))
    table.add_row("Decode errors", str(summary.decode_errors))
    table.add_row("Chunks fetched", str(summary.chunks))
    table.add_row("Transport failures", str(summary.failures))
    table.add_row("Output", summary.output_path)
    return table


app.add_typer(harvest_app, name="harvest")
app.add_typer(dataset_app, name="dataset")
app.add_typer(dump_app, name="dump")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@harvest_app.command("run", help="Fetch every page of a dataset and merge it into its dump.")
def harvest_run(
    ctx: typer.Context,
    name: str = typer.Argument(DEFAULT_DATASET, help="Dataset name."),
    force_refresh: bool = typer.Option(
        False, "--force-refresh", help="Discard the existing dump and start from offset 0."
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override dump path."),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line result only."),
) -> None:
    state = _get_state(ctx)
    dataset = _load_dataset_or_exit(state, name)
    if force_refresh:
        console.print("Force refresh: starting from the beginning.", style="yellow")
    elif not dataset.track_offset and not quiet:
        console.print(
            f"`{dataset.name}` has no reliable ordering: running a full sync merged with existing data.",
            style="dim",
        )

    try:
        summary = state.orchestrator.run_dataset(
            dataset.name,
            full_refresh=force_refresh,
            output=output,
            progress_enabled=_progress_default_enabled() and not quiet,
        )
    except StorageError as exc:
        console.print(f"Fatal: {exc}", style="red")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("Interrupted; the last checkpoint is kept on disk.", style="yellow")
        raise typer.Exit(code=130)

    if quiet:
        console.print(
            f"Done: {summary.total_items} items ({summary.added} new) -> {summary.output_path}"
        )
        return
    console.print(_render_summary(summary))


@dataset_app.command("list", help="List configured and built-in datasets.")
def dataset_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        datasets = state.repository.list_datasets()
    except (ValidationError, ValueError) as exc:
        console.print(f"Invalid dataset configuration: {exc}", style="red")
        raise typer.Exit(code=1)
    console.print(_render_datasets_table(datasets))


@dataset_app.command("show", help="Print a dataset configuration as YAML.")
def dataset_show(ctx: typer.Context, name: str = typer.Argument(..., help="Dataset name.")) -> None:
    state = _get_state(ctx)
    dataset = _load_dataset_or_exit(state, name)
    payload = dataset.model_dump(mode="json", exclude_none=True)
    console.print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), end="")


@dataset_app.command("add", help="Register a dataset from a YAML or JSON file.")
def dataset_add(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Dataset configuration file."),
    force: bool = typer.Option(False, "--force", help="Replace a saved dataset of the same name."),
) -> None:
    state = _get_state(ctx)
    try:
        dataset = state.repository.load_dataset(source)
    except FileNotFoundError:
        console.print(f"No such file: {source}", style="red")
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        console.print(f"Invalid configuration in {source}: {exc}", style="red")
        raise typer.Exit(code=1)
    if state.repository.dataset_path(dataset.name).exists() and not force:
        console.print(
            f"Dataset `{dataset.name}` already exists; pass --force to replace it.", style="red"
        )
        raise typer.Exit(code=1)
    path = state.repository.save_dataset(dataset)
    console.print(f"Dataset `{dataset.name}` saved to {path}.", style="green")


@dataset_app.command("remove", help="Delete a saved dataset configuration.")
def dataset_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Dataset name."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    if not state.repository.dataset_path(name).exists():
        console.print(f"No saved configuration for `{name}`.", style="red")
        raise typer.Exit(code=1)
    if not yes and not typer.confirm(f"Delete dataset `{name}`?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    state.repository.delete_dataset(name)
    console.print(f"Dataset `{name}` removed. Its dump file is kept.", style="green")


@dump_app.command("info", help="Show metadata of a dataset dump.")
def dump_info(
    ctx: typer.Context,
    name: str = typer.Argument(DEFAULT_DATASET, help="Dataset name."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override dump path."),
) -> None:
    state = _get_state(ctx)
    dataset = _load_dataset_or_exit(state, name)
    path, dump = state.orchestrator.dump_info(dataset.name, output)
    if dump is None:
        console.print(f"No readable dump at {path}.", style="yellow")
        raise typer.Exit(code=1)
    table = Table(title=f"{dataset.name} dump", box=box.SIMPLE_HEAD)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Path", str(path))
    table.add_row("Total items", str(dump.metadata.total_items))
    table.add_row("Last data offset", str(dump.metadata.last_data_offset))
    table.add_row("Last fetch time", dump.metadata.last_fetch_time)
    console.print(table)


@app.command("query", help="Execute a raw Bucket query string.")
def raw_query(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Query, e.g. bucket('recipe').select('production_json').limit(5).run()"),
    limit: int = typer.Option(0, "--limit", help="Print the first N records as YAML."),
) -> None:
    state = _get_state(ctx)
    try:
        response = state.orchestrator.run_query(query)
    except TransportError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    console.print(f"Query: {response.query}", style="cyan")
    console.print(f"Records: {len(response.records)}")
    if limit > 0 and response.records:
        console.print(
            yaml.safe_dump(response.records[:limit], allow_unicode=True, sort_keys=False), end=""
        )


@log_app.command("list", help="List dataset log files.")
def log_list() -> None:
    logs = list(available_dataset_logs())
    if not logs:
        console.print("No dataset logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("tail", help="Show the last lines of a log.")
def log_tail(
    dataset: Optional[str] = typer.Option(None, "--dataset", help="Dataset log (default: global log)."),
    lines: int = typer.Option(100, "--lines", "-n", help="Number of lines."),
) -> None:
    if dataset:
        path = dataset_log_path(dataset)
    else:
        path = harvester_log_path()
    content = tail_log(path, lines)
    if not content:
        console.print("No log entries yet.", style="dim")
        return
    console.print("".join(content), end="", markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
