from __future__ import annotations

from pathlib import Path

import pytest

import swiftshare.utils as utils


def test_default_download_dir_uses_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(Path, "home", lambda: tmp_path)

    assert utils.default_download_dir() == tmp_path / "Downloads"
    assert utils.ensure_download_dir().is_dir()


def test_default_download_dir_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    def no_home() -> Path:
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr(Path, "home", no_home)

    assert utils.default_download_dir() == Path("downloads")


def test_format_size() -> None:
    assert utils.format_size(0) == "0 B"
    assert utils.format_size(1536) == "1.50 KB"
    assert utils.format_size(50 * 1024 * 1024) == "50.00 MB"


def test_to_mebibytes() -> None:
    assert utils.to_mebibytes(3 * 1024 * 1024) == 3.0


@pytest.mark.parametrize(
    "address,expected",
    [("127.0.0.1", True), ("127.1.2.3", True), ("::1", True), ("192.168.0.4", False), ("bogus", False)],
)
def test_is_loopback(address: str, expected: bool) -> None:
    assert utils.is_loopback(address) is expected


def test_local_ipv4_addresses_excludes_loopback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        utils.socket,
        "gethostbyname_ex",
        lambda name: (name, [], ["127.0.1.1", "10.1.2.3"]),
    )

    addresses = utils.local_ipv4_addresses()

    assert "10.1.2.3" in addresses
    assert all(not address.startswith("127.") for address in addresses)

