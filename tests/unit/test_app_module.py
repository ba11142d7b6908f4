"""Unit tests for swiftshare.app.SwiftShareApp behaviors."""

from __future__ import annotations

import queue
import threading
import time
from pathlib import Path
from typing import List, Optional

import pytest

from swiftshare.app import SwiftShareApp
from swiftshare.discovery import PeerRecord
from swiftshare.errors import DiscoveryError


class DummyDiscovery:
    def __init__(self, *, fail_advertise: bool = False, fail_browse: bool = False) -> None:
        self.fail_advertise = fail_advertise
        self.fail_browse = fail_browse
        self.advertised_name: Optional[str] = None
        self.records: "queue.Queue[Optional[PeerRecord]]" = queue.Queue()
        self.browsing = False
        self.shutdown_calls = 0

    def advertise(self, instance_name: Optional[str] = None) -> None:
        if self.fail_advertise:
            raise DiscoveryError("multicast unavailable")
        self.advertised_name = instance_name

    def start_browsing(self, cancel_event: Optional[threading.Event] = None) -> None:
        if self.fail_browse:
            raise DiscoveryError("browser failed")
        self.browsing = True

    def iter_peers(self):
        while True:
            record = self.records.get()
            if record is None:
                return
            yield record

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.records.put(None)


class DummyTransfer:
    def __init__(self) -> None:
        self.connect_timeout = 5.0
        self.sent: List[Path] = []
        self.received: List[str] = []

    def start_send(self, file_path: Path) -> str:
        self.sent.append(file_path)
        return "send-handle"

    def start_receive(self, address: str) -> str:
        self.received.append(address)
        return "receive-handle"


def _app(discovery: DummyDiscovery, **kwargs) -> SwiftShareApp:
    return SwiftShareApp(
        device_name="desk",
        discovery=discovery,  # type: ignore[arg-type]
        transfer=DummyTransfer(),  # type: ignore[arg-type]
        **kwargs,
    )


def test_peers_are_deduplicated_and_own_advertisement_skipped() -> None:
    discovery = DummyDiscovery()
    app = _app(discovery)
    app.start()

    discovery.records.put(PeerRecord("desk", ["10.0.0.1"]))
    discovery.records.put(PeerRecord("Zed", ["10.0.0.9"]))
    discovery.records.put(PeerRecord("alpha", ["10.0.0.2"]))
    discovery.records.put(PeerRecord("alpha", ["10.0.0.3"]))

    try:
        for _ in range(50):
            names = [peer.instance_name for peer in app.wait_for_peers(0.1)]
            alpha = app.find_peer("alpha")
            if len(names) == 2 and alpha is not None and alpha.ipv4_addresses == ["10.0.0.3"]:
                break
            time.sleep(0.02)
        peers = app.list_peers()
    finally:
        app.stop()

    assert [peer.instance_name for peer in peers] == ["alpha", "Zed"]
    assert peers[0].ipv4_addresses == ["10.0.0.3"]
    assert app.find_peer("ZED") is peers[1]
    assert app.find_peer("missing") is None


def test_start_records_discovery_errors() -> None:
    discovery = DummyDiscovery(fail_advertise=True, fail_browse=True)
    app = _app(discovery)

    app.start()

    assert isinstance(app.discovery_error, DiscoveryError)
    assert "multicast" in str(app.discovery_error)
    assert discovery.browsing is False


def test_start_without_advertising() -> None:
    discovery = DummyDiscovery()
    app = _app(discovery)

    app.start(advertise=False)
    app.stop()
    app.stop()

    assert discovery.advertised_name is None
    assert discovery.browsing is True
    assert discovery.shutdown_calls == 1


def test_wait_for_peers_times_out_empty() -> None:
    app = _app(DummyDiscovery())

    assert app.wait_for_peers(0.05) == []


def test_send_and_receive_delegate_to_transfer(tmp_path: Path) -> None:
    app = _app(DummyDiscovery(), connect_timeout=1.5)

    assert app.send(tmp_path / "a.txt") == "send-handle"
    assert app.receive(PeerRecord("laptop", ["127.0.0.1", "192.168.1.20"])) == "receive-handle"
    assert app.transfer.received == ["192.168.1.20"]
    assert app.transfer.connect_timeout == 1.5


def test_receive_rejects_peer_without_address() -> None:
    app = _app(DummyDiscovery())

    with pytest.raises(ValueError):
        app.receive(PeerRecord("ghost", ["127.0.0.1"]))
