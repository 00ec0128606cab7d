"""Progress feedback for CLI ingestion runs.

Provides a progress sink backed by a rich progress bar:
- Bar with percentage and elapsed time while sub-batches merge
- Error lines printed above the bar
"""

from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn

console = Console()


class RichProgressSink:
    """Progress sink that drives a rich progress bar.

    Usage:
        with RichProgressSink("Ingesting acme") as sink:
            pipeline = build_pipeline(sink=sink)
            pipeline.ingest("acme")
    """

    def __init__(self, description: str, output: Optional[Console] = None):
        self.description = description
        self.console = output or console
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self.errors: list = []

    def __enter__(self) -> "RichProgressSink":
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._progress.start()
        self._task = self._progress.add_task(self.description, total=100)
        return self

    def __exit__(self, *exc_info):
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def progress(self, fraction: float, message: str) -> None:
        if self._progress is None:
            self.console.print(f"[dim]{message}[/dim]")
            return
        self._progress.update(
            self._task,
            completed=round(max(0.0, min(1.0, fraction)) * 100, 1),
            description=f"{self.description} [dim]{message}[/dim]",
        )

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.console.print(f"[red]✗[/red] {message}")
