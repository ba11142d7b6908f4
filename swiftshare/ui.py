"""
Terminal presentation for the SwiftShare CLI: localized lines, a
single-line progress readout, and the `on_event` sink for transfers.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from rich.console import Console, RenderableType
from rich.text import Text

from .events import PROGRESS, StatusEvent
from .language import render_message
from .progress import TransferProgress


class TerminalUI:
    """
    Serializes console output between the prompt loop and transfer threads.

    `carriage` rewrites the current line in place; any normal `print`
    ends that line so the next message starts on a fresh one.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console(highlight=False, soft_wrap=True)
        self._lock = threading.Lock()
        self._status_width = 0

    def _flush_file(self) -> None:
        try:
            self._console.file.flush()
        except (OSError, ValueError):
            # stdout closed or detached
            pass

    def print(self, message: RenderableType = "", *, end: str = "\n") -> None:
        with self._lock:
            self._console.print(message, end=end, soft_wrap=True)
            self._flush_file()
            self._status_width = 0

    def input(self, prompt: RenderableType) -> str:
        self.flush()
        return self._console.input(prompt)

    def carriage(self, message: RenderableType, padding: str = "") -> None:
        with self._lock:
            with self._console.capture() as capture:
                self._console.print(message, end="", soft_wrap=True)
            rendered = capture.get()
            width = Text.from_ansi(rendered).cell_len + len(padding)
            # Blank out whatever the previous, longer line left behind.
            tail = padding + " " * max(0, self._status_width - width)
            try:
                self._console.file.write(f"\r{rendered}{tail}")
            except (OSError, ValueError):
                pass
            self._flush_file()
            self._status_width = width + (len(tail) - len(padding))

    def blank(self) -> None:
        self.print()

    def flush(self) -> None:
        with self._lock:
            self._flush_file()
            self._status_width = 0


def show_message(
    ui: TerminalUI,
    key: str,
    language: str,
    *,
    tone: Optional[str] = None,
    **kwargs: object,
) -> None:
    """Helper to print a localized message with consistent styling."""

    ui.print(render_message(key, language, tone=tone, **kwargs))


class ProgressTracker:
    """
    Draws progress events on one rewritten line, at most once every
    `min_interval` seconds. The line that reaches the total is always drawn.
    """

    def __init__(
        self,
        ui: TerminalUI,
        language: str,
        *,
        min_interval: float = 0.1,
    ) -> None:
        self.ui = ui
        self.language = language
        self.min_interval = min_interval
        self.last_bytes = -1
        self._drawn_at: Optional[float] = None
        self._widest = 0
        self._active = False

    def _due(self, progress: TransferProgress, now: float, force: bool) -> bool:
        if force:
            return True
        if progress.transferred == self.last_bytes:
            return False
        if progress.transferred >= progress.total or self._drawn_at is None:
            return True
        return now - self._drawn_at >= self.min_interval

    def update(self, event: StatusEvent, *, force: bool = False) -> bool:
        progress = event.progress
        if progress is None:
            return False
        now = time.time()
        if not self._due(progress, now, force):
            return False
        line = render_message(event.key, self.language, **event.params)
        self._widest = max(self._widest, len(line.plain))
        self.ui.carriage(line, " " * (self._widest - len(line.plain)))
        self._drawn_at = now
        self.last_bytes = progress.transferred
        self._active = True
        return True

    def finish(self) -> None:
        """End the progress line so the next message starts on its own line."""

        if not self._active:
            return
        self.ui.blank()
        self._active = False
        self._widest = 0
        self.last_bytes = -1


class StatusPrinter:
    """`on_event` callback that renders the status channel on the terminal."""

    def __init__(self, ui: TerminalUI, language: str, *, quiet: bool = False) -> None:
        self._ui = ui
        self._language = language
        self._quiet = quiet
        self._tracker = ProgressTracker(ui, language)

    def __call__(self, event: StatusEvent) -> None:
        if event.kind == PROGRESS:
            if not self._quiet:
                self._tracker.update(event)
            return
        self._tracker.finish()
        if self._quiet and not event.is_final:
            return
        show_message(self._ui, event.key, self._language, **event.params)


__all__ = ["TerminalUI", "ProgressTracker", "StatusPrinter", "show_message"]
