"""
One-way status channel from the transfer core to the presentation layer.
"""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from .errors import (
    AddressInUseError,
    FileAccessError,
    FramingError,
    IntegrityError,
    StreamError,
    TransferCancelled,
    TransferConnectionError,
)
from .language import get_message
from .progress import TransferProgress

STATUS = "status"
PROGRESS = "progress"
DONE = "done"
ERROR = "error"


@dataclass(frozen=True)
class StatusEvent:
    """A typed status update; `text()` renders the human-readable line."""

    kind: str
    key: str
    params: Dict[str, object] = field(default_factory=dict)
    progress: Optional[TransferProgress] = None

    def text(self, language: str = "en") -> str:
        return get_message(self.key, language, **self.params)

    def __str__(self) -> str:
        return self.text()

    @property
    def is_final(self) -> bool:
        return self.kind in (DONE, ERROR)


def status(key: str, **params: object) -> StatusEvent:
    return StatusEvent(STATUS, key, dict(params))


def progress_event(progress: TransferProgress) -> StatusEvent:
    key = "send_progress" if progress.role == "sender" else "receive_progress"
    return StatusEvent(
        PROGRESS,
        key,
        {
            "percent": progress.percent,
            "transferred": progress.transferred_mb,
            "total": progress.total_mb,
            "rate": progress.rate_mb,
        },
        progress,
    )


def done(key: str, **params: object) -> StatusEvent:
    return StatusEvent(DONE, key, dict(params))


_ERROR_KEYS = (
    (TransferCancelled, "error_cancelled"),
    (AddressInUseError, "error_address_in_use"),
    (TransferConnectionError, "error_connection"),
    (FileAccessError, "error_file"),
    (FramingError, "error_metadata"),
    (IntegrityError, "error_integrity"),
    (StreamError, "error_transfer"),
)


def error_event(exc: BaseException) -> StatusEvent:
    """Map an exception from the transfer core onto an error status line."""

    for error_type, key in _ERROR_KEYS:
        if isinstance(exc, error_type):
            return StatusEvent(ERROR, key, {"error": str(exc)})
    return StatusEvent(ERROR, "error_unexpected", {"error": str(exc)})


class EventQueue:
    """Thread-safe sink usable directly as an `on_event` callback."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[StatusEvent]" = queue.Queue()

    def __call__(self, event: StatusEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> StatusEvent:
        return self._queue.get(timeout=timeout)

    def drain(self) -> Iterator[StatusEvent]:
        """Yield queued events without blocking."""

        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return


__all__ = [
    "StatusEvent",
    "EventQueue",
    "status",
    "progress_event",
    "done",
    "error_event",
    "STATUS",
    "PROGRESS",
    "DONE",
    "ERROR",
]
