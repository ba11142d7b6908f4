"""
Wire framing for the metadata line that precedes the raw file bytes.

The first message on every connection is a single UTF-8 line::

    <fileName>|<fileSizeInBytes>\\n

Everything after the newline is exactly `fileSizeInBytes` bytes of file
content. A line closed by EOF instead of a newline is accepted only when
no body follows it, which covers an empty file sent without the terminator.
"""

from __future__ import annotations

import socket
import threading
import time
from dataclasses import dataclass
from pathlib import PureWindowsPath
from typing import Optional, Tuple, Union

from .errors import FramingError, TransferCancelled

SEPARATOR = "|"
TERMINATOR = b"\n"
MAX_HEADER_SIZE = 1024
HEADER_TIMEOUT = 10.0
POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class TransferMetadata:
    file_name: str
    file_size: int

    def encode(self) -> bytes:
        if SEPARATOR in self.file_name or "\n" in self.file_name:
            raise FramingError(f"file name cannot be framed: {self.file_name!r}")
        if self.file_size < 0:
            raise FramingError(f"negative file size: {self.file_size}")
        line = f"{self.file_name}{SEPARATOR}{self.file_size}".encode("utf-8") + TERMINATOR
        if len(line) > MAX_HEADER_SIZE:
            raise FramingError(f"metadata line exceeds {MAX_HEADER_SIZE} bytes")
        return line

    @classmethod
    def parse(cls, line: Union[str, bytes]) -> "TransferMetadata":
        if isinstance(line, bytes):
            try:
                line = line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise FramingError("metadata is not valid UTF-8") from exc
        if line.endswith("\n"):
            line = line[:-1]
        parts = line.split(SEPARATOR)
        if len(parts) != 2:
            raise FramingError(f"invalid metadata received: {line!r}")
        name, size_text = parts
        size_text = size_text.strip()
        if not (size_text.isascii() and size_text.isdigit()):
            raise FramingError(f"invalid file size in metadata: {size_text!r}")
        return cls(file_name=name, file_size=int(size_text))


def sanitize_file_name(name: str) -> str:
    """
    Reduce a peer-supplied name to a safe final path component.

    Both `/` and `\\` count as separators regardless of platform. A drive
    prefix such as `C:` is dropped and any remaining `:` becomes `_`, so
    the result never resolves outside the download directory on Windows.
    Names that reduce to nothing, `.` or `..` are rejected.
    """

    cleaned = name.replace("\x00", "").strip()
    candidate = PureWindowsPath(cleaned).name.replace(":", "_").strip()
    if candidate in {"", ".", ".."}:
        raise FramingError(f"unusable file name: {name!r}")
    return candidate


def read_metadata(
    sock: socket.socket,
    timeout: Optional[float] = HEADER_TIMEOUT,
    cancel_event: Optional[threading.Event] = None,
) -> Tuple[TransferMetadata, bytes]:
    """
    Read and parse the metadata line from `sock`.

    Loops until the terminator arrives, so a line split across TCP segments
    is reassembled. Returns the metadata plus any file bytes that arrived in
    the same segments as the header.
    """

    deadline = None if timeout is None else time.monotonic() + timeout
    buffer = bytearray()
    sock.settimeout(POLL_INTERVAL)
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise TransferCancelled()
        if deadline is not None and time.monotonic() > deadline:
            raise FramingError("timed out waiting for metadata")
        try:
            chunk = sock.recv(MAX_HEADER_SIZE)
        except (socket.timeout, TimeoutError):
            continue
        except OSError as exc:
            raise FramingError(f"connection failed while reading metadata: {exc}") from exc
        if not chunk:
            if not buffer:
                raise FramingError("connection closed before metadata was received")
            return TransferMetadata.parse(bytes(buffer)), b""
        buffer.extend(chunk)
        newline = buffer.find(TERMINATOR)
        if newline != -1:
            if newline + 1 > MAX_HEADER_SIZE:
                raise FramingError(f"metadata line exceeds {MAX_HEADER_SIZE} bytes")
            line, remainder = buffer[: newline + 1], buffer[newline + 1 :]
            return TransferMetadata.parse(bytes(line)), bytes(remainder)
        if len(buffer) >= MAX_HEADER_SIZE:
            raise FramingError(f"metadata line exceeds {MAX_HEADER_SIZE} bytes")


__all__ = [
    "TransferMetadata",
    "sanitize_file_name",
    "read_metadata",
    "MAX_HEADER_SIZE",
    "SEPARATOR",
]
