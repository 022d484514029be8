"""
feed_driver.py

FeedDriver runs in a worker QThread and activates the InputEventInjector
periodically. It owns scheduling only: readiness gating, parsing and emission
all live in the injector.
"""

import logging
log = logging.getLogger(__name__)

from PyQt5 import QtCore
from typing import Optional

from lrb_core.errors import InjectorError
from lrb_feed.core.injector import ActivationOutcome, InputEventInjector


class FeedDriver(QtCore.QObject):
    """
    FeedDriver ticks a QTimer and calls ``injector.activate()`` on each tick.

    Usage:
      - create InputEventInjector and FeedDriver(injector, poll_ms, max_passes)
      - create QThread, move driver to thread, start thread, invoke start()
      - connect signals: activated (ActivationResult), history_loaded (),
        pass_completed (InjectionStats), error (str), finished ()
      - call stop() (via QMetaObject.invokeMethod) before quitting thread

    ``max_passes`` = 0 keeps re-reading the car-data file on every tick once
    history is loaded. The driver stops itself after any activation error.
    """
    activated = QtCore.pyqtSignal(object)       # ActivationResult
    history_loaded = QtCore.pyqtSignal()
    pass_completed = QtCore.pyqtSignal(object)  # InjectionStats
    error = QtCore.pyqtSignal(str)
    finished = QtCore.pyqtSignal()

    def __init__(self, injector: InputEventInjector, poll_ms: int = 100, max_passes: int = 0):
        super().__init__()
        self._injector = injector
        self._poll_ms = max(20, int(poll_ms))
        self._max_passes = max(0, int(max_passes))
        self._timer: Optional[QtCore.QTimer] = None
        self._running = False
        self._finished_emitted = False
        self.passes_completed = 0
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._running

    @QtCore.pyqtSlot()
    def start(self):
        """Called in the worker thread; starts a QTimer in that thread's event loop."""
        if self._running:
            return
        self._running = True
        self._finished_emitted = False
        self._timer = QtCore.QTimer()
        self._timer.setInterval(self._poll_ms)
        self._timer.timeout.connect(self._on_tick)
        self._timer.start()
        log.info(f"Feed driver started (poll {self._poll_ms} ms, max passes {self._max_passes or 'unbounded'})")

    @QtCore.pyqtSlot()
    def stop(self):
        """Stop ticking. Emits ``finished`` once."""
        self._running = False
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()  # Schedule for deletion in correct thread
            self._timer = None
        if not self._finished_emitted:
            self._finished_emitted = True
            self.finished.emit()

    def _on_tick(self):
        """Tick handler invoked in worker thread; one activation per tick."""
        if not self._running:
            return

        try:
            result = self._injector.activate()
        except InjectorError as e:
            self._fail(str(e))
            return
        except Exception as e:
            self._fail(f"{type(e).__name__}: {e}")
            return

        self.activated.emit(result)

        if result.outcome is ActivationOutcome.READY:
            self.history_loaded.emit()
        elif result.outcome is ActivationOutcome.EMITTED:
            self.passes_completed += 1
            self.pass_completed.emit(result.stats)
            if self._max_passes and self.passes_completed >= self._max_passes:
                log.info(f"Completed {self.passes_completed} pass(es); stopping feed driver")
                self.stop()

    def _fail(self, msg: str) -> None:
        self.last_error = msg
        log.error(f"Feed activation failed: {msg}")
        self.error.emit(msg)
        self.stop()
