"""
Byte-counting pass-through stream and the progress snapshots it feeds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

from .utils import to_mebibytes

logger = logging.getLogger(__name__)

# Floor for the elapsed time used in rate computations
MIN_RATE_WINDOW = 0.001


class ProgressStream:
    """
    Wraps a binary source or sink and counts the bytes that pass through.

    Every `read`/`write` is forwarded unchanged, then the cumulative count
    is handed to `on_progress`. Exceptions from the callback are logged and
    swallowed so observation can never abort the copy; exceptions from the
    wrapped stream propagate untouched.
    """

    def __init__(
        self,
        stream: BinaryIO,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._stream = stream
        self._on_progress = on_progress
        self.bytes_moved = 0

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        self._advance(len(data) if data else 0)
        return data

    def write(self, data: bytes) -> int:
        written = self._stream.write(data)
        # Raw streams may report a short write; buffered ones return None on some
        # implementations, in which case the whole buffer was accepted.
        self._advance(len(data) if written is None else written)
        return len(data) if written is None else written

    def _advance(self, count: int) -> None:
        self.bytes_moved += count
        if self._on_progress is None:
            return
        try:
            self._on_progress(self.bytes_moved)
        except Exception:  # noqa: BLE001
            logger.exception("progress callback failed")


@dataclass(frozen=True)
class TransferProgress:
    """A point-in-time view of an in-flight transfer."""

    role: str
    file_name: str
    transferred: int
    total: int
    elapsed: float

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return self.transferred / self.total * 100

    @property
    def rate(self) -> float:
        """Throughput in bytes per second."""

        return self.transferred / max(self.elapsed, MIN_RATE_WINDOW)

    @property
    def transferred_mb(self) -> float:
        return to_mebibytes(self.transferred)

    @property
    def total_mb(self) -> float:
        return to_mebibytes(self.total)

    @property
    def rate_mb(self) -> float:
        return to_mebibytes(self.rate)


class ProgressMeter:
    """Turns cumulative byte counts into TransferProgress snapshots."""

    def __init__(
        self,
        role: str,
        file_name: str,
        total: int,
        on_update: Callable[[TransferProgress], None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.role = role
        self.file_name = file_name
        self.total = total
        self._on_update = on_update
        self._clock = clock
        self._start = clock()

    def __call__(self, transferred: int) -> None:
        self._on_update(
            TransferProgress(
                role=self.role,
                file_name=self.file_name,
                transferred=transferred,
                total=self.total,
                elapsed=self._clock() - self._start,
            )
        )


__all__ = ["ProgressStream", "TransferProgress", "ProgressMeter"]
