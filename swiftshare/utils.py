"""
Host and formatting helpers shared across SwiftShare.
"""

from __future__ import annotations

import ipaddress
import socket
from pathlib import Path
from typing import List

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")
FALLBACK_DOWNLOAD_DIR = "downloads"
MEBIBYTE = 1024 * 1024


def default_device_name() -> str:
    return socket.gethostname() or "Unknown"


def default_download_dir() -> Path:
    """`~/Downloads`, or a relative `downloads` when there is no home directory."""

    try:
        return Path.home() / "Downloads"
    except (RuntimeError, KeyError):
        return Path(FALLBACK_DOWNLOAD_DIR)


def ensure_download_dir() -> Path:
    target = default_download_dir()
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError:
        target = Path(FALLBACK_DOWNLOAD_DIR)
        target.mkdir(parents=True, exist_ok=True)
    return target


def is_loopback(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).is_loopback
    except ValueError:
        return False


def local_ipv4_addresses() -> List[str]:
    """
    Best-effort list of this host's non-loopback IPv4 addresses, primary
    route first.
    """

    addresses: List[str] = []
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            # No packet is sent; connect() only selects the outbound interface.
            probe.connect(("10.255.255.255", 1))
            addresses.append(probe.getsockname()[0])
    except OSError:
        pass
    try:
        _, _, host_ips = socket.gethostbyname_ex(socket.gethostname())
    except OSError:
        host_ips = []
    for ip in host_ips:
        if ip not in addresses:
            addresses.append(ip)
    return [ip for ip in addresses if not is_loopback(ip)]


def format_size(num_bytes: int) -> str:
    """Render a byte count with binary units, e.g. ``1.25 MB``."""

    if num_bytes < 1024:
        return f"{max(0, int(num_bytes))} B"
    value = float(num_bytes)
    unit = SIZE_UNITS[0]
    for unit in SIZE_UNITS[1:]:
        value /= 1024.0
        if value < 1024.0:
            break
    return f"{value:.2f} {unit}"


def to_mebibytes(num_bytes: float) -> float:
    return float(num_bytes) / MEBIBYTE
