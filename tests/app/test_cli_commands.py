from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

from typer.testing import CliRunner

from bucket_harvester.app import AppState, app
from bucket_harvester.engine import BucketResponse
from bucket_harvester.errors import StorageError, TransportError
from bucket_harvester.infra import create_dump
from bucket_harvester.orchestrator import HarvestSummary


class StubOrchestrator:
    def __init__(self, summary: HarvestSummary | None = None, error: Exception | None = None) -> None:
        self.summary = summary
        self.error = error
        self.calls: list[tuple] = []
        self.dump = None
        self.response = BucketResponse(query="", records=[])

    def run_dataset(self, name, full_refresh=False, output=None, progress_enabled=None):
        self.calls.append(("run", name, full_refresh, output))
        if self.error is not None:
            raise self.error
        return self.summary

    def dump_info(self, name, output=None):
        self.calls.append(("dump", name))
        return Path("/data/outputs/recipes.json"), self.dump

    def run_query(self, query):
        self.calls.append(("query", query))
        if self.error is not None:
            raise self.error
        return BucketResponse(query=query, records=self.response.records)


def make_state(datasets, orchestrator: StubOrchestrator) -> AppState:
    by_name = {dataset.name: dataset for dataset in datasets}

    def load_dataset(name):
        if name not in by_name:
            raise FileNotFoundError(name)
        return by_name[name]

    repository = SimpleNamespace(
        list_datasets=lambda: list(datasets),
        load_dataset=load_dataset,
    )
    return AppState(repository=repository, orchestrator=orchestrator)


def make_summary(**overrides) -> HarvestSummary:
    values = {
        "dataset": "recipes",
        "output_path": "/data/outputs/recipes.json",
        "total_items": 12,
        "added": 5,
        "duplicates": 2,
        "decode_errors": 1,
        "chunks": 4,
        "failures": 0,
        "final_offset": 20000,
    }
    values.update(overrides)
    return HarvestSummary(**values)


def _install(monkeypatch, state: AppState) -> None:
    monkeypatch.setattr("bucket_harvester.app.build_state", lambda verbose: state)


def test_harvest_run_prints_summary(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator(summary=make_summary())
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))

    result = CliRunner().invoke(app, ["harvest", "run", "recipes", "--force-refresh"])

    assert result.exit_code == 0, result.stdout
    assert orchestrator.calls == [("run", "recipes", True, None)]
    assert "Force refresh" in result.stdout
    assert "Added this run" in result.stdout


def test_harvest_run_quiet_line(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator(summary=make_summary())
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))

    result = CliRunner().invoke(app, ["harvest", "run", "--quiet"])

    assert result.exit_code == 0, result.stdout
    assert "Done: 12 items (5 new)" in result.stdout


def test_harvest_run_storage_error_is_fatal(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator(error=StorageError("disk full", path="/x"))
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))

    result = CliRunner().invoke(app, ["harvest", "run", "recipes"])

    assert result.exit_code == 1
    assert "Fatal" in result.stdout


def test_unknown_dataset_exits_with_error(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator(summary=make_summary())
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))

    result = CliRunner().invoke(app, ["harvest", "run", "missing"])

    assert result.exit_code == 1
    assert "Unknown dataset" in result.stdout
    assert orchestrator.calls == []


def test_dataset_list_and_show(monkeypatch, sample_dataset) -> None:
    _install(monkeypatch, make_state([sample_dataset()], StubOrchestrator()))
    runner = CliRunner()

    listed = runner.invoke(app, ["dataset", "list"])
    assert listed.exit_code == 0, listed.stdout
    assert "Datasets (1)" in listed.stdout
    assert "recipe" in listed.stdout

    shown = runner.invoke(app, ["dataset", "show", "recipes"])
    assert shown.exit_code == 0, shown.stdout
    assert "bucket: recipe" in shown.stdout
    assert "page_size: 5000" in shown.stdout


def test_dump_info(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator()
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))
    runner = CliRunner()

    missing = runner.invoke(app, ["dump", "info"])
    assert missing.exit_code == 1
    assert "No readable dump" in missing.stdout

    orchestrator.dump = create_dump([{"data": {}, "key": "k"}], last_data_offset=0)
    present = runner.invoke(app, ["dump", "info", "recipes"])
    assert present.exit_code == 0, present.stdout
    assert "Total items" in present.stdout


def test_query_command(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator()
    orchestrator.response = BucketResponse(query="", records=[{"page_name": "Bronze bar"}])
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))

    query = "bucket('recipe').select('page_name').limit(1).run()"
    result = CliRunner().invoke(app, ["query", query, "--limit", "1"])

    assert result.exit_code == 0, result.stdout
    assert orchestrator.calls == [("query", query)]
    assert "Records: 1" in result.stdout
    assert "Bronze bar" in result.stdout


def test_query_transport_error(monkeypatch, sample_dataset) -> None:
    orchestrator = StubOrchestrator(error=TransportError("HTTP 503", status_code=503))
    _install(monkeypatch, make_state([sample_dataset()], orchestrator))

    result = CliRunner().invoke(app, ["query", "bucket('recipe').run()"])

    assert result.exit_code == 1
    assert "HTTP 503" in result.stdout


def test_dataset_add_and_remove(monkeypatch, temp_config_repository, tmp_path) -> None:
    state = AppState(repository=temp_config_repository, orchestrator=StubOrchestrator())
    _install(monkeypatch, state)
    source = tmp_path / "items.yaml"
    source.write_text(
        "name: items\n"
        "query:\n"
        "  bucket: infobox_item\n"
        "  select: [json]\n"
        "payload_field: json\n"
        "key_strategy: fields\n"
        "key_fields: [name]\n",
        encoding="utf-8",
    )
    runner = CliRunner()

    added = runner.invoke(app, ["dataset", "add", str(source)])
    assert added.exit_code == 0, added.stdout
    assert temp_config_repository.load_dataset("items").query.bucket == "infobox_item"

    again = runner.invoke(app, ["dataset", "add", str(source)])
    assert again.exit_code == 1
    assert "--force" in again.stdout
    assert runner.invoke(app, ["dataset", "add", str(source), "--force"]).exit_code == 0

    cancelled = runner.invoke(app, ["dataset", "remove", "items"], input="n\n")
    assert cancelled.exit_code == 0
    assert temp_config_repository.dataset_path("items").exists()

    removed = runner.invoke(app, ["dataset", "remove", "items", "--yes"])
    assert removed.exit_code == 0, removed.stdout
    assert not temp_config_repository.dataset_path("items").exists()

    builtin = runner.invoke(app, ["dataset", "remove", "recipes", "--yes"])
    assert builtin.exit_code == 1


def test_dataset_add_rejects_invalid_file(monkeypatch, temp_config_repository, tmp_path) -> None:
    _install(monkeypatch, AppState(repository=temp_config_repository, orchestrator=StubOrchestrator()))
    source = tmp_path / "bad.yaml"
    source.write_text("name: bad\nquery:\n  bucket: recipe\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["dataset", "add", str(source)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout
    assert not temp_config_repository.dataset_path("bad").exists()
