"""
Error taxonomy for discovery and transfer failures.
"""

from __future__ import annotations


class SwiftShareError(Exception):
    pass


class DiscoveryError(SwiftShareError):
    """Raised when the mDNS advertisement or browser cannot be set up."""


class TransferConnectionError(SwiftShareError):
    """Raised when listening, accepting or dialing fails."""


class AddressInUseError(TransferConnectionError):
    """Raised when another send already holds the transfer port."""

    def __init__(self, port: int) -> None:
        super().__init__(f"transfer port {port} is already in use")
        self.port = port


class FileAccessError(SwiftShareError):
    """Raised when the local source or destination file cannot be used."""


class FramingError(SwiftShareError):
    """Raised for a malformed or incomplete metadata line."""


class StreamError(SwiftShareError):
    """Raised when the byte stream fails mid-copy."""


class IntegrityError(SwiftShareError):
    """Raised when the received byte count differs from the declared size."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"transfer truncated: received {received} of {expected} bytes")
        self.expected = expected
        self.received = received


class TransferCancelled(SwiftShareError):
    """Raised when a transfer is cancelled locally."""

    def __init__(self) -> None:
        super().__init__("transfer cancelled")


__all__ = [
    "SwiftShareError",
    "DiscoveryError",
    "TransferConnectionError",
    "AddressInUseError",
    "FileAccessError",
    "FramingError",
    "StreamError",
    "IntegrityError",
    "TransferCancelled",
]
