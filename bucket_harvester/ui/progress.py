"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text


@dataclass
class ProgressState:
    chunks: int = 0
    added: int = 0
    duplicates: int = 0
    decode_errors: int = 0
    failures: int = 0
    offset: int = 0
    total_items: int = 0


class RecordRateColumn(ProgressColumn):
    """Show newly added records per second as ``X.X rec/s``."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} rec/s", style="progress.percentage")


class ProgressReporter:
    """Render chunk-by-chunk harvest progress and keep counters."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self.state = ProgressState()
        self._label = "harvest"

    def start(self, label: str, offset: int = 0, total_items: int = 0) -> None:
        self._label = label
        self.state = ProgressState(offset=offset, total_items=total_items)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # Non-interactive output: stay silent instead of repeating lines
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[dataset]:<12}", justify="left"),
            TimeElapsedColumn(),
            RecordRateColumn(),
            TextColumn("offset {task.fields[offset]:>8}", justify="right"),
            TextColumn("[green]+{task.fields[added]:>6}", justify="right"),
            TextColumn("[yellow]={task.fields[duplicates]:>6}", justify="right"),
            TextColumn("[red]✗{task.fields[failures]:>3}", justify="right"),
            TextColumn("[dim]{task.fields[status]}", justify="left"),
            refresh_per_second=8,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "harvest",
            total=None,
            dataset=label,
            offset=offset,
            added=0,
            duplicates=0,
            failures=0,
            status="starting",
        )

    def chunk(self, offset: int, fetched: int, added: int, duplicates: int, decode_errors: int) -> None:
        self.state.chunks += 1
        self.state.offset = offset
        self.state.added += added
        self.state.duplicates += duplicates
        self.state.decode_errors += decode_errors
        self.state.total_items += added
        status = f"{fetched} fetched" if fetched else "empty chunk"
        self._refresh(advance=added, status=status)

    def failure(self, offset: int, error: str) -> None:
        self.state.failures += 1
        self.state.offset = offset
        self._refresh(status=f"retrying: {error[:40]}")

    def _refresh(self, advance: int = 0, status: str = "") -> None:
        if self._progress is None or self._task_id is None:
            return
        self._progress.update(
            self._task_id,
            advance=advance,
            offset=self.state.offset,
            added=self.state.added,
            duplicates=self.state.duplicates,
            failures=self.state.failures,
            status=status,
        )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        return {
            "chunks": self.state.chunks,
            "added": self.state.added,
            "duplicates": self.state.duplicates,
            "decode_errors": self.state.decode_errors,
            "failures": self.state.failures,
        }


__all__ = ["ProgressReporter", "ProgressState", "RecordRateColumn"]
