from __future__ import annotations

from contextlib import contextmanager
import types

import pytest

from swiftshare.events import done, error_event, progress_event, status
from swiftshare.errors import IntegrityError
from swiftshare.progress import TransferProgress
from swiftshare.ui import ProgressTracker, StatusPrinter, TerminalUI, show_message


class DummyConsole:
    def __init__(self, rendered: str = "") -> None:
        self.print_calls: list[tuple] = []
        self.written: list[str] = []
        self.rendered = rendered
        self.file = types.SimpleNamespace(write=self.written.append, flush=lambda: None)

    def print(self, *args, **kwargs):
        self.print_calls.append((args, kwargs))

    def input(self, prompt):
        return "typed"

    def capture(self):
        rendered = self.rendered

        @contextmanager
        def _capture():
            class Capture:
                def get(self) -> str:
                    return rendered

            yield Capture()

        return _capture()


class DummyUI(TerminalUI):
    def __init__(self) -> None:
        super().__init__(console=DummyConsole())
        self.carriage_calls: list[tuple] = []
        self.blank_calls = 0
        self.printed: list[str] = []

    def print(self, message="", *, end: str = "\n") -> None:  # noqa: D401 - capture text
        self.printed.append(str(message))

    def carriage(self, message, padding: str = "") -> None:  # noqa: D401
        self.carriage_calls.append((str(message), padding))

    def blank(self) -> None:  # noqa: D401
        self.blank_calls += 1


def _progress(transferred: int, total: int = 10, role: str = "receiver") -> TransferProgress:
    return TransferProgress(role, "file.bin", transferred, total, 1.0)


def test_carriage_pads_over_longer_previous_line() -> None:
    console = DummyConsole(rendered="long status line")
    ui = TerminalUI(console=console)

    ui.carriage("ignored")
    console.rendered = "short"
    ui.carriage("ignored")

    assert console.written[0] == "\rlong status line"
    assert console.written[1] == "\rshort" + " " * (len("long status line") - len("short"))


def test_print_resets_carriage_width() -> None:
    console = DummyConsole(rendered="progress 50%")
    ui = TerminalUI(console=console)

    ui.carriage("ignored")
    ui.print("next")
    console.rendered = "x"
    ui.carriage("ignored")

    assert console.written[-1] == "\rx"
    assert ui.input("prompt") == "typed"


def test_progress_tracker_update(monkeypatch: pytest.MonkeyPatch) -> None:
    ui = DummyUI()
    tracker = ProgressTracker(ui, "en", min_interval=0)
    times = iter([0.0, 0.5, 1.0, 1.5])
    monkeypatch.setattr("swiftshare.ui.time.time", lambda: next(times))

    assert tracker.update(progress_event(_progress(5))) is True
    assert tracker.update(progress_event(_progress(5))) is False  # no progress change
    assert tracker.update(progress_event(_progress(10))) is True
    tracker.finish()

    assert ui.blank_calls == 1
    assert ui.carriage_calls[-1][0].startswith("Receiving: 100.00%")


def test_progress_tracker_throttles_but_shows_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    ui = DummyUI()
    tracker = ProgressTracker(ui, "en", min_interval=1.0)
    monkeypatch.setattr("swiftshare.ui.time.time", lambda: 5.0)

    assert tracker.update(progress_event(_progress(1))) is True
    assert tracker.update(progress_event(_progress(2))) is False  # inside the interval
    assert tracker.update(progress_event(_progress(10))) is True
    assert tracker.last_bytes == 10


def test_progress_tracker_ignores_events_without_progress() -> None:
    tracker = ProgressTracker(DummyUI(), "en")

    assert tracker.update(status("send_preparing", name="a.txt")) is False


def test_show_message_renders_language() -> None:
    ui = DummyUI()

    show_message(ui, "receive_done", "zh", path="/tmp/a.txt")

    assert ui.printed == ["文件已接收：/tmp/a.txt"]


def test_status_printer_ends_progress_line_before_messages() -> None:
    ui = DummyUI()
    printer = StatusPrinter(ui, "en")

    printer(status("send_preparing", name="a.txt"))
    printer(progress_event(_progress(10, role="sender")))
    printer(done("send_done", name="a.txt"))

    assert ui.printed == ["Preparing to send file: a.txt", "File sent successfully: a.txt"]
    assert len(ui.carriage_calls) == 1
    assert ui.blank_calls == 1


def test_status_printer_quiet_only_prints_final_events() -> None:
    ui = DummyUI()
    printer = StatusPrinter(ui, "en", quiet=True)

    printer(status("receive_connecting", address="10.0.0.2:8010"))
    printer(progress_event(_progress(3)))
    printer(error_event(IntegrityError(10, 3)))

    assert ui.carriage_calls == []
    assert len(ui.printed) == 1
    assert ui.printed[0].startswith("Error verifying file:")
