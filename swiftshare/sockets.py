"""
OS-level socket tuning for the transfer listener and connections.

Buffer sizes must be applied before `listen()` so accepted sockets
inherit them and the window scale is negotiated during the handshake.
"""

from __future__ import annotations

import errno
import logging
import socket
import sys

from .errors import AddressInUseError, TransferConnectionError

logger = logging.getLogger(__name__)

SOCKET_BUFFER_SIZE = 32 * 1024 * 1024
KEEPALIVE_PERIOD = 30
LISTEN_BACKLOG = 1

IS_WINDOWS = sys.platform.startswith("win")

_ADDRESS_IN_USE_ERRNOS = {errno.EADDRINUSE}
if IS_WINDOWS:
    # WSAEADDRINUSE, and WSAEACCES when SO_EXCLUSIVEADDRUSE blocks the bind
    _ADDRESS_IN_USE_ERRNOS.update({10048, 10013})


def tune_socket(sock: socket.socket, buffer_size: int = SOCKET_BUFFER_SIZE) -> bool:
    """
    Set SO_KEEPALIVE, SO_RCVBUF and SO_SNDBUF on `sock`.

    The kernel may clamp the buffer sizes (Linux caps them at
    net.core.rmem_max / wmem_max). Returns False when any option was
    rejected outright; the socket stays usable either way.
    """

    options = (
        (socket.SO_KEEPALIVE, 1),
        (socket.SO_RCVBUF, buffer_size),
        (socket.SO_SNDBUF, buffer_size),
    )
    ok = True
    for option, value in options:
        try:
            sock.setsockopt(socket.SOL_SOCKET, option, value)
        except OSError as exc:
            ok = False
            logger.debug("setsockopt(%s, %s) failed: %s", option, value, exc)
    return ok


def enable_keepalive(sock: socket.socket, period: int = KEEPALIVE_PERIOD) -> None:
    """Turn on TCP keep-alive probing every `period` seconds."""

    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    if IS_WINDOWS:
        _windows_keepalive(sock, period)
    else:
        _posix_keepalive(sock, period)


def _posix_keepalive(sock: socket.socket, period: int) -> None:
    # Linux exposes TCP_KEEPIDLE, macOS names the same knob TCP_KEEPALIVE.
    idle_option = getattr(socket, "TCP_KEEPIDLE", None) or getattr(socket, "TCP_KEEPALIVE", None)
    try:
        if idle_option is not None:
            sock.setsockopt(socket.IPPROTO_TCP, idle_option, period)
        if hasattr(socket, "TCP_KEEPINTVL"):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, period)
    except OSError as exc:
        logger.debug("keep-alive period not applied: %s", exc)


def _windows_keepalive(sock: socket.socket, period: int) -> None:
    period_ms = period * 1000
    try:
        sock.ioctl(socket.SIO_KEEPALIVE_VALS, (1, period_ms, period_ms))  # type: ignore[attr-defined]
    except (AttributeError, OSError) as exc:
        logger.debug("keep-alive period not applied: %s", exc)


def _apply_bind_policy(sock: socket.socket) -> None:
    if IS_WINDOWS:
        # SO_REUSEADDR on Windows lets a second socket steal a bound port.
        exclusive = getattr(socket, "SO_EXCLUSIVEADDRUSE", None)
        if exclusive is not None:
            sock.setsockopt(socket.SOL_SOCKET, exclusive, 1)
    else:
        # Still refuses a second listener, but allows rebinding over TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)


def create_listener(host: str, port: int, buffer_size: int = SOCKET_BUFFER_SIZE) -> socket.socket:
    """
    Create a tuned TCP listener bound to (`host`, `port`).

    Raises AddressInUseError when another listener holds the port and
    TransferConnectionError for any other socket failure.
    """

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        tune_socket(sock, buffer_size)
        _apply_bind_policy(sock)
        sock.bind((host, port))
        sock.listen(LISTEN_BACKLOG)
    except OSError as exc:
        sock.close()
        if exc.errno in _ADDRESS_IN_USE_ERRNOS:
            raise AddressInUseError(port) from exc
        raise TransferConnectionError(f"failed to create listener on port {port}: {exc}") from exc
    return sock


__all__ = [
    "SOCKET_BUFFER_SIZE",
    "KEEPALIVE_PERIOD",
    "tune_socket",
    "enable_keepalive",
    "create_listener",
]
