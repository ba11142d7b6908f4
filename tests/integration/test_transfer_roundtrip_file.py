"""
End-to-end transfers over loopback.

A sender TransferService listens on an ephemeral port bound to 127.0.0.1
in a background thread; a receiver TransferService dials it and writes
into a temporary directory. Uses only local sockets; no mDNS required.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from swiftshare.errors import AddressInUseError
from swiftshare.events import DONE, PROGRESS, EventQueue
from swiftshare.transfer import TransferService

MIB = 1024 * 1024


def _wait_for_listening(events: EventQueue) -> int:
    while True:
        event = events.get(timeout=5)
        if event.key == "send_listening":
            return int(event.params["port"])


def _transfer(tmp_path: Path, payload: bytes, name: str = "payload.bin"):
    src = tmp_path / name
    src.write_bytes(payload)
    dest_dir = tmp_path / "received"

    sender_events = EventQueue()
    receiver_events = EventQueue()
    sender = TransferService(port=0, bind_host="127.0.0.1", on_event=sender_events)
    handle = sender.start_send(src)
    port = _wait_for_listening(sender_events)

    receiver = TransferService(port=port, download_dir=dest_dir, on_event=receiver_events)
    session = receiver.receive_file("127.0.0.1")

    assert handle.join(timeout=10.0), "sender did not finish"
    assert handle.error is None
    return handle, session, list(sender_events.drain()), list(receiver_events.drain())


def test_transfer_roundtrip_file(tmp_path: Path) -> None:
    payload = ("Hello, SwiftShare!\n" * 8).encode("utf-8")

    handle, session, sender_events, receiver_events = _transfer(tmp_path, payload, "hello.txt")

    received = tmp_path / "received" / "hello.txt"
    assert session.output_path == received
    assert received.read_bytes() == payload
    assert handle.session is not None and handle.session.bytes_moved == len(payload)
    assert sender_events[-1].text() == "File sent successfully: hello.txt"
    assert receiver_events[-1].text() == f"File received: {received}"


def test_transfer_empty_file(tmp_path: Path) -> None:
    _, session, _, receiver_events = _transfer(tmp_path, b"", "empty.dat")

    assert session.output_path is not None
    assert session.output_path.stat().st_size == 0
    assert receiver_events[-1].kind == DONE


def test_transfer_50_mib_reports_monotonic_progress(tmp_path: Path) -> None:
    payload = os.urandom(50 * MIB)

    _, session, sender_events, receiver_events = _transfer(tmp_path, payload)

    assert session.output_path is not None
    assert session.output_path.stat().st_size == 50 * MIB
    digest = hashlib.sha256(session.output_path.read_bytes()).hexdigest()
    assert digest == hashlib.sha256(payload).hexdigest()

    for events, prefix in ((receiver_events, "Receiving: "), (sender_events, "Sending: ")):
        percents = [event.progress.percent for event in events if event.kind == PROGRESS]
        assert percents[0] == 0.0
        assert percents[-1] == pytest.approx(100.0)
        assert percents == sorted(percents)
        progress_lines = [event.text() for event in events if event.kind == PROGRESS]
        assert all(line.startswith(prefix) and "MB/s" in line for line in progress_lines)

    final = receiver_events[-1]
    assert final.kind == DONE
    assert str(session.output_path) in final.text()


def test_second_send_on_bound_port_fails_fast(tmp_path: Path) -> None:
    src = tmp_path / "first.bin"
    src.write_bytes(b"first")
    events = EventQueue()
    first = TransferService(port=0, bind_host="127.0.0.1", on_event=events)
    handle = first.start_send(src)
    port = _wait_for_listening(events)

    try:
        second = TransferService(port=port, bind_host="127.0.0.1", accept_timeout=5.0)
        with pytest.raises(AddressInUseError) as excinfo:
            second.send_file(src)
        assert "in use" in str(excinfo.value)
    finally:
        handle.cancel()
        handle.join(timeout=5.0)
