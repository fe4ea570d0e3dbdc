"""Console logging helpers for long-running font pipelines."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
import typer


@dataclass(slots=True)
class FontPipelineLogger:
    """Light wrapper around a Rich console with a plain ``typer`` fallback."""

    verbose: bool = False
    console: Console | None = None
    quiet: bool = False

    def _render_message(self, message: str, args: tuple[Any, ...]) -> str:
        if args:
            try:
                message = message % args
            except (TypeError, ValueError):
                message = " ".join([message, *(str(arg) for arg in args)])
        return message

    def info(self, message: str, *args: Any) -> None:
        if self.quiet:
            return
        message = self._render_message(message, args)
        if self.console is not None:
            self.console.log(message)
            return
        typer.echo(message)

    def warning(self, message: str, *args: Any) -> None:
        message = self._render_message(message, args)
        if self.console is not None:
            self.console.print(f"[yellow]{message}[/yellow]")
            return
        typer.secho(message, fg="yellow", err=True)

    def notice(self, message: str, *args: Any) -> None:
        """Alias for info to mirror the CLI vocabulary."""
        self.info(message, *args)

    def debug(self, message: str, *args: Any) -> None:
        """Emit a debug/verbose message when verbose mode is enabled."""
        if not self.verbose:
            return
        self.info(message, *args)

    @contextmanager
    def progress(self, task: str, total: int | None = None) -> Iterator[Callable[..., None]]:
        """Yield a progress updater; silent when ``quiet`` is set."""
        if self.quiet:

            def _noop(step: int = 1) -> None:
                return

            yield _noop
            return

        console = self.console or Console(stderr=True)
        with Progress(
            SpinnerColumn(),
            TextColumn(f"[bold cyan]{task}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}" if total else "{task.completed}"),
            TimeElapsedColumn(),
            console=console,
            transient=not self.verbose,
        ) as progress:
            task_id: TaskID = progress.add_task(task, total=total)

            def _advance(step: int = 1) -> None:
                progress.update(task_id, advance=step)

            yield _advance


__all__ = ["FontPipelineLogger"]
