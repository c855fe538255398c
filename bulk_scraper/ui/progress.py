"""Rich progress bar for the fetch phase."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.text import Text

MAX_KEY_DISPLAY = 60


def shorten(key: str, limit: int = MAX_KEY_DISPLAY) -> str:
    if len(key) <= limit:
        return key
    return "…" + key[-(limit - 1) :]


@dataclass
class FetchTally:
    total: int
    succeeded: int = 0
    failed: int = 0
    last_key: str | None = None

    @property
    def done(self) -> int:
        return self.succeeded + self.failed


class KeysPerSecondColumn(ProgressColumn):
    """Throughput in keys per second."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        return Text(f"{speed:.2f} keys/s" if speed else "", style="progress.data.speed")


class ProgressReporter:
    """Live fetch progress with success/failure counters.

    Counters are always kept; the bar itself is only drawn on an interactive
    terminal.
    """

    def __init__(self, enabled: bool = True, label: str = "fetch", console: Console | None = None) -> None:
        self.enabled = enabled
        self.label = label
        self.console = console
        self.tally: FetchTally | None = None
        self._bar: Progress | None = None
        self._task: TaskID | None = None

    def _build_bar(self, console: Console) -> Progress:
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=None),
            MofNCompleteColumn(),
            TextColumn("[green]ok {task.fields[succeeded]}[/] [red]err {task.fields[failed]}[/]"),
            KeysPerSecondColumn(),
            TimeElapsedColumn(),
            TimeRemainingColumn(),
            TextColumn("[dim]{task.fields[key]}"),
            console=console,
            transient=True,
            expand=True,
        )

    def start(self, total: int) -> None:
        self.tally = FetchTally(total=total)
        if not self.enabled:
            return
        console = self.console or Console()
        if not console.is_terminal:
            self.enabled = False
            return
        bar = self._build_bar(console)
        try:
            bar.start()
        except LiveError:
            # Another live display owns the terminal.
            self.enabled = False
            return
        self._bar = bar
        self._task = bar.add_task(self.label, total=total, succeeded=0, failed=0, key="")

    def advance(self, key: str, succeeded: bool) -> None:
        if self.tally is None:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        self.tally.last_key = key
        if succeeded:
            self.tally.succeeded += 1
        else:
            self.tally.failed += 1
        if self._bar is not None and self._task is not None:
            self._bar.update(
                self._task,
                advance=1,
                succeeded=self.tally.succeeded,
                failed=self.tally.failed,
                key=shorten(key),
            )

    def close(self) -> None:
        if self._bar is not None:
            self._bar.stop()
        self._bar = None
        self._task = None

    def summary(self) -> dict[str, int]:
        if self.tally is None:
            return {"succeeded": 0, "failed": 0}
        return {"succeeded": self.tally.succeeded, "failed": self.tally.failed}


__all__ = ["FetchTally", "KeysPerSecondColumn", "ProgressReporter", "shorten"]
