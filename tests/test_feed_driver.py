import pytest

pytest.importorskip("PyQt5")

from PyQt5 import QtCore

from lrb_core.coordinator_client import ProbeResult
from lrb_core.errors import RecordParseError
from lrb_feed.core.injector import (
    ActivationOutcome,
    ActivationResult,
    InjectionStats,
    InputEventInjector,
)
from lrb_feed.updater.feed_driver import FeedDriver


@pytest.fixture(scope="module")
def qapp():
    app = QtCore.QCoreApplication.instance()
    if app is None:
        app = QtCore.QCoreApplication([])
    yield app


class _ScriptedInjector:
    def __init__(self, *steps):
        self._steps = list(steps)
        self.calls = 0

    def activate(self):
        self.calls += 1
        step = self._steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


class _Recorder:
    def __init__(self, driver):
        self.activated = []
        self.loaded = 0
        self.passes = []
        self.errors = []
        self.finished = 0
        driver.activated.connect(self.activated.append)
        driver.history_loaded.connect(self._on_loaded)
        driver.pass_completed.connect(self.passes.append)
        driver.error.connect(self.errors.append)
        driver.finished.connect(self._on_finished)

    def _on_loaded(self):
        self.loaded += 1

    def _on_finished(self):
        self.finished += 1


def test_driver_reports_history_and_passes(qapp):
    stats = InjectionStats(lines=3)
    injector = _ScriptedInjector(
        ActivationResult(ActivationOutcome.WAITING, probe=ProbeResult.NO),
        ActivationResult(ActivationOutcome.READY, probe=ProbeResult.YES),
        ActivationResult(ActivationOutcome.EMITTED, stats=stats),
    )
    driver = FeedDriver(injector, poll_ms=20, max_passes=0)
    seen = _Recorder(driver)

    driver.start()
    for _ in range(3):
        driver._on_tick()

    assert [r.outcome for r in seen.activated] == [
        ActivationOutcome.WAITING,
        ActivationOutcome.READY,
        ActivationOutcome.EMITTED,
    ]
    assert seen.loaded == 1
    assert seen.passes == [stats]
    assert driver.running
    assert seen.finished == 0

    driver.stop()
    assert seen.finished == 1


def test_driver_stops_after_max_passes(qapp):
    injector = _ScriptedInjector(
        ActivationResult(ActivationOutcome.EMITTED, stats=InjectionStats()),
        ActivationResult(ActivationOutcome.EMITTED, stats=InjectionStats()),
    )
    driver = FeedDriver(injector, max_passes=2)
    seen = _Recorder(driver)

    driver.start()
    driver._on_tick()
    assert driver.running
    driver._on_tick()

    assert not driver.running
    assert driver.passes_completed == 2
    assert seen.finished == 1
    driver._on_tick()
    assert injector.calls == 2


def test_driver_stops_on_parse_error(qapp):
    injector = _ScriptedInjector(RecordParseError("missing field 8", "0 1 2", 4))
    driver = FeedDriver(injector)
    seen = _Recorder(driver)

    driver.start()
    driver._on_tick()

    assert not driver.running
    assert len(seen.errors) == 1
    assert "line 4" in seen.errors[0]
    assert driver.last_error == seen.errors[0]
    assert seen.finished == 1


def test_each_failed_run_reports_its_error(qapp):
    failure = RecordParseError("not an integer", "#(0 x)", 1)
    injector = _ScriptedInjector(failure, failure)
    driver = FeedDriver(injector)
    seen = _Recorder(driver)

    driver.start()
    driver._on_tick()
    driver._on_tick()
    assert injector.calls == 1

    driver.start()
    driver._on_tick()

    assert seen.errors == [str(failure), str(failure)]
    assert seen.finished == 2


def test_driver_stops_on_sink_failure(qapp):
    injector = _ScriptedInjector(OSError("disk full"))
    driver = FeedDriver(injector)
    seen = _Recorder(driver)

    driver.start()
    driver._on_tick()

    assert seen.errors == ["OSError: disk full"]
    assert not driver.running


class _AlwaysReady:
    def probe_readiness(self):
        return ProbeResult.YES


class _ListSink:
    def __init__(self):
        self.tuples = []

    def emit(self, channel_name, values):
        self.tuples.append((channel_name, values))


def test_timer_driven_feed_replays_file(qapp, tmp_path):
    path = tmp_path / "cardatapoints.out"
    path.write_text("#(2 121 43 0 0 0 0 0 0 77)\n#(9 1 2 3)\n", encoding="utf-8")
    sink = _ListSink()
    injector = InputEventInjector(_AlwaysReady(), sink, str(path), sleep=lambda _s: None)
    driver = FeedDriver(injector, poll_ms=20, max_passes=2)

    loop = QtCore.QEventLoop()
    driver.finished.connect(loop.quit)
    guard = QtCore.QTimer()
    guard.setSingleShot(True)
    guard.timeout.connect(loop.quit)
    guard.start(5000)

    driver.start()
    loop.exec_()
    guard.stop()

    assert driver.passes_completed == 2
    assert sink.tuples == [("accbal_report", (121, 43, 77))] * 2
