"""
Point-to-point file transfer over a single TCP connection.

The sender listens on the fixed transfer port, accepts exactly one
receiver, writes the metadata line and streams the file. The receiver
dials the sender, reads the metadata line and streams the bytes into the
download directory.
"""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Tuple, Union

from .errors import (
    FileAccessError,
    IntegrityError,
    StreamError,
    SwiftShareError,
    TransferCancelled,
    TransferConnectionError,
)
from .events import StatusEvent, done, error_event, progress_event, status
from .progress import ProgressMeter, ProgressStream, TransferProgress
from .protocol import HEADER_TIMEOUT, POLL_INTERVAL, TransferMetadata, read_metadata, sanitize_file_name
from .sockets import KEEPALIVE_PERIOD, SOCKET_BUFFER_SIZE, create_listener, enable_keepalive
from .utils import ensure_download_dir, format_size, local_ipv4_addresses

logger = logging.getLogger(__name__)

TRANSFER_PORT = 8010
BUFFER_SIZE = 512 * 1024
CONNECT_TIMEOUT = 5.0

SENDER = "sender"
RECEIVER = "receiver"

PathLike = Union[str, os.PathLike]


@dataclass
class TransferSession:
    """State of one connection; owned by the thread that opened it."""

    role: str
    metadata: TransferMetadata
    peer: str = ""
    bytes_moved: int = 0
    start_time: float = field(default_factory=time.time)
    output_path: Optional[Path] = None

    @property
    def complete(self) -> bool:
        return self.bytes_moved == self.metadata.file_size


class TransferHandle:
    """Tracks a send or receive running on its own thread."""

    def __init__(self, role: str) -> None:
        self.role = role
        self.cancel_event = threading.Event()
        self.session: Optional[TransferSession] = None
        self.error: Optional[BaseException] = None
        self._finished = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    @property
    def succeeded(self) -> bool:
        return self.done and self.error is None and self.session is not None

    def cancel(self) -> None:
        self.cancel_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)


class TransferService:
    """Runs sends and receives on the fixed transfer port."""

    def __init__(
        self,
        *,
        port: int = TRANSFER_PORT,
        download_dir: Optional[Path] = None,
        on_event: Optional[Callable[[StatusEvent], None]] = None,
        bind_host: str = "",
        connect_timeout: float = CONNECT_TIMEOUT,
        accept_timeout: Optional[float] = None,
        header_timeout: Optional[float] = HEADER_TIMEOUT,
        keepalive_period: int = KEEPALIVE_PERIOD,
        buffer_size: int = BUFFER_SIZE,
        socket_buffer_size: int = SOCKET_BUFFER_SIZE,
    ) -> None:
        self.port = port
        self.download_dir = download_dir
        self.on_event = on_event
        self.bind_host = bind_host
        self.connect_timeout = connect_timeout
        self.accept_timeout = accept_timeout
        self.header_timeout = header_timeout
        self.keepalive_period = keepalive_period
        self.buffer_size = buffer_size
        self.socket_buffer_size = socket_buffer_size

    # Send path --------------------------------------------------------

    def send_file(
        self,
        file_path: PathLike,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransferSession:
        path = Path(file_path)
        self._emit(status("send_preparing", name=path.name))
        try:
            file_handle = path.open("rb")
        except OSError as exc:
            raise FileAccessError(f"cannot open {path}: {exc}") from exc

        with file_handle:
            try:
                file_size = os.fstat(file_handle.fileno()).st_size
            except OSError as exc:
                raise FileAccessError(f"cannot stat {path}: {exc}") from exc
            metadata = TransferMetadata(file_name=path.name, file_size=file_size)
            header = metadata.encode()

            listener = create_listener(self.bind_host, self.port, self.socket_buffer_size)
            try:
                bound_port = listener.getsockname()[1]
                self._emit(
                    status(
                        "send_listening",
                        address=f"{self._display_host()}:{bound_port}",
                        port=bound_port,
                    )
                )
                conn, addr = self._accept_one(listener, cancel_event)
            finally:
                # One receiver per send; nobody else may connect to this session.
                listener.close()

            with conn:
                session = TransferSession(role=SENDER, metadata=metadata, peer=addr[0])
                self._emit(status("send_connected", peer=f"{addr[0]}:{addr[1]}"))
                try:
                    enable_keepalive(conn, self.keepalive_period)
                    conn.settimeout(POLL_INTERVAL)
                    self._send_all(conn, header, cancel_event)
                except OSError as exc:
                    raise StreamError(f"failed to send metadata: {exc}") from exc
                self._stream_to_peer(conn, file_handle, session, cancel_event)
                with contextlib.suppress(OSError):
                    conn.shutdown(socket.SHUT_WR)

        logger.info("sent %s (%d bytes) to %s", metadata.file_name, session.bytes_moved, session.peer)
        self._emit(done("send_done", name=metadata.file_name))
        return session

    def start_send(self, file_path: PathLike) -> TransferHandle:
        """Run `send_file` on a background thread; failures become error events."""

        return self._start(SENDER, self.send_file, file_path)

    # Receive path -----------------------------------------------------

    def receive_file(
        self,
        address: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransferSession:
        self._emit(status("receive_connecting", address=address))
        try:
            conn = socket.create_connection((address, self.port), timeout=self.connect_timeout)
        except OSError as exc:
            raise TransferConnectionError(f"cannot reach {address}:{self.port}: {exc}") from exc

        with conn:
            with contextlib.suppress(OSError):
                enable_keepalive(conn, self.keepalive_period)
            metadata, remainder = read_metadata(conn, self.header_timeout, cancel_event)
            file_name = sanitize_file_name(metadata.file_name)
            if file_name != metadata.file_name:
                logger.warning("peer file name %r stored as %r", metadata.file_name, file_name)

            output_path, file_handle = self._open_destination(file_name)
            session = TransferSession(
                role=RECEIVER,
                metadata=metadata,
                peer=address,
                output_path=output_path,
            )
            self._emit(
                status("receive_metadata", name=file_name, size=format_size(metadata.file_size))
            )
            # Partial output stays on disk when the stream fails.
            with file_handle:
                self._stream_from_peer(conn, file_handle, remainder, session, cancel_event)

        logger.info("received %s (%d bytes) from %s", output_path, session.bytes_moved, address)
        self._emit(done("receive_done", path=str(output_path)))
        return session

    def start_receive(self, address: str) -> TransferHandle:
        """Run `receive_file` on a background thread; failures become error events."""

        return self._start(RECEIVER, self.receive_file, address)

    # Internal helpers -------------------------------------------------

    def _start(self, role: str, target: Callable[..., TransferSession], argument: object) -> TransferHandle:
        handle = TransferHandle(role)
        thread = threading.Thread(
            target=self._run_task,
            args=(handle, target, argument),
            name=f"swiftshare-{role}",
            daemon=True,
        )
        handle._thread = thread
        thread.start()
        return handle

    def _run_task(
        self,
        handle: TransferHandle,
        target: Callable[..., TransferSession],
        argument: object,
    ) -> None:
        try:
            handle.session = target(argument, cancel_event=handle.cancel_event)
        except (SwiftShareError, OSError) as exc:
            handle.error = exc
            logger.info("%s failed: %s", handle.role, exc)
            self._emit(error_event(exc))
        except Exception as exc:  # noqa: BLE001
            handle.error = exc
            logger.exception("%s crashed", handle.role)
            self._emit(error_event(exc))
        finally:
            handle._finished.set()

    def _emit(self, event: StatusEvent) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception:  # noqa: BLE001
            logger.exception("status listener failed")

    def _emit_progress(self, progress: TransferProgress) -> None:
        self._emit(progress_event(progress))

    def _display_host(self) -> str:
        if self.bind_host:
            return self.bind_host
        addresses = local_ipv4_addresses()
        return addresses[0] if addresses else "0.0.0.0"

    def _accept_one(
        self,
        listener: socket.socket,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[socket.socket, Tuple[str, int]]:
        deadline = None if self.accept_timeout is None else time.monotonic() + self.accept_timeout
        listener.settimeout(POLL_INTERVAL)
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise TransferCancelled()
            if deadline is not None and time.monotonic() > deadline:
                raise TransferConnectionError("timed out waiting for a receiver")
            try:
                conn, addr = listener.accept()
            except (socket.timeout, TimeoutError):
                continue
            except OSError as exc:
                raise TransferConnectionError(f"failed to accept connection: {exc}") from exc
            return conn, addr

    def _session_progress(self, session: TransferSession, file_name: str) -> Callable[[int], None]:
        meter = ProgressMeter(
            session.role,
            file_name,
            session.metadata.file_size,
            self._emit_progress,
        )

        def on_progress(moved: int) -> None:
            session.bytes_moved = moved
            meter(moved)

        meter(0)
        return on_progress

    def _stream_to_peer(
        self,
        conn: socket.socket,
        file_handle: BinaryIO,
        session: TransferSession,
        cancel_event: Optional[threading.Event],
    ) -> None:
        source = ProgressStream(
            file_handle,
            self._session_progress(session, session.metadata.file_name),
        )
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise TransferCancelled()
            try:
                chunk = source.read(self.buffer_size)
            except OSError as exc:
                raise StreamError(f"failed to read source file: {exc}") from exc
            if not chunk:
                break
            try:
                self._send_all(conn, chunk, cancel_event)
            except OSError as exc:
                raise StreamError(str(exc)) from exc

    def _send_all(
        self,
        conn: socket.socket,
        data: bytes,
        cancel_event: Optional[threading.Event],
    ) -> None:
        # Timed sends: a receiver that stops reading must not block cancellation.
        view = memoryview(data)
        while view:
            if cancel_event is not None and cancel_event.is_set():
                raise TransferCancelled()
            try:
                sent = conn.send(view)
            except (socket.timeout, TimeoutError):
                continue
            view = view[sent:]

    def _stream_from_peer(
        self,
        conn: socket.socket,
        file_handle: BinaryIO,
        remainder: bytes,
        session: TransferSession,
        cancel_event: Optional[threading.Event],
    ) -> None:
        expected = session.metadata.file_size
        assert session.output_path is not None
        sink = ProgressStream(
            file_handle,
            self._session_progress(session, session.output_path.name),
        )
        remaining = expected
        conn.settimeout(POLL_INTERVAL)
        pending = remainder[:remaining]
        while remaining > 0:
            if pending:
                chunk, pending = pending, b""
            else:
                if cancel_event is not None and cancel_event.is_set():
                    raise TransferCancelled()
                try:
                    chunk = conn.recv(min(self.buffer_size, remaining))
                except (socket.timeout, TimeoutError):
                    continue
                except OSError as exc:
                    raise StreamError(str(exc)) from exc
                if not chunk:
                    raise IntegrityError(expected, sink.bytes_moved)
            try:
                sink.write(chunk)
            except OSError as exc:
                raise StreamError(f"failed to write {session.output_path}: {exc}") from exc
            remaining -= len(chunk)
        if sink.bytes_moved != expected:
            raise IntegrityError(expected, sink.bytes_moved)

    def _open_destination(self, file_name: str) -> Tuple[Path, BinaryIO]:
        directory = self.download_dir or ensure_download_dir()
        try:
            directory.mkdir(parents=True, exist_ok=True)
            while True:
                target = self._prepare_destination(directory, file_name)
                try:
                    return target, target.open("xb")
                except FileExistsError:
                    continue
        except OSError as exc:
            raise FileAccessError(f"cannot create file in {directory}: {exc}") from exc

    def _prepare_destination(self, directory: Path, filename: str) -> Path:
        target = directory / filename
        if not target.exists():
            return target
        stem = target.stem
        suffix = target.suffix
        counter = 1
        while True:
            candidate = directory / f"{stem}({counter}){suffix}"
            if not candidate.exists():
                return candidate
            counter += 1


__all__ = [
    "TRANSFER_PORT",
    "BUFFER_SIZE",
    "SENDER",
    "RECEIVER",
    "TransferSession",
    "TransferHandle",
    "TransferService",
]
