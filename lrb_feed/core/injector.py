"""
injector.py

InputEventInjector: gates on the readiness coordinator, then replays the
car-data file into a Sink, one typed tuple per record.

The injector is pull-driven. Whoever owns scheduling (see FeedDriver) calls
``activate()`` repeatedly; the injector never starts threads or timers.

    NotReady: ask the coordinator ``done?``. On anything but ``yes`` log a tick
              and sleep ``wait_s`` before returning. On ``yes`` become Ready.
    Ready:    read the whole file from the start and emit every record in
              file order. Every Ready activation re-reads the file.

Malformed records raise RecordParseError and abort the pass; the caller
decides whether to stop or restart the feed.
"""
from __future__ import annotations

import logging
log = logging.getLogger(__name__)

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, Optional, Protocol, Tuple

from lrb_core.coordinator_client import ProbeResult
from lrb_core.errors import FeedFileError, InjectorError
from lrb_core.model import (
    Event,
    TravelTimeQueryNotice,
    TravelTimeRequest,
)
from lrb_core.record_parser import decode_record


class Sink(Protocol):
    def emit(self, channel_name: str, values: Tuple[int, ...]) -> None:  # pragma: no cover - protocol only
        ...


class ReadinessProbe(Protocol):
    def probe_readiness(self) -> ProbeResult:  # pragma: no cover - protocol only
        ...


class ActivationOutcome(Enum):
    WAITING = "waiting"    # history still loading (or coordinator unreachable)
    READY = "ready"        # this activation observed the coordinator's ``yes``
    EMITTED = "emitted"    # a full pass over the car-data file completed


@dataclass
class InjectionStats:
    """Counters for one pass over the car-data file."""
    lines: int = 0
    emitted: Dict[str, int] = field(default_factory=dict)
    travel_time_requests: int = 0
    travel_time_queries: int = 0
    ignored: int = 0

    @property
    def total_emitted(self) -> int:
        return sum(self.emitted.values())


@dataclass(frozen=True)
class ActivationResult:
    outcome: ActivationOutcome
    stats: Optional[InjectionStats] = None
    probe: Optional[ProbeResult] = None


class InputEventInjector:
    """
    Owns the readiness flag (NotReady -> Ready, never reset) and the per-pass
    counters. Not thread-safe; only one activation may be in flight.
    """

    def __init__(
        self,
        coordinator: ReadinessProbe,
        sink: Sink,
        car_data_file: str,
        *,
        wait_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._coordinator = coordinator
        self._sink = sink
        self.car_data_file = car_data_file
        self._wait_s = max(0.0, float(wait_s))
        self._sleep = sleep

        self._history_loaded = False
        self._active = False
        self._last_probe: Optional[ProbeResult] = None
        self.wait_ticks = 0
        self.passes = 0

    @property
    def is_ready(self) -> bool:
        return self._history_loaded

    def activate(self) -> ActivationResult:
        """Run one activation. Raises InjectorError subclasses on hard failures."""
        if self._active:
            raise InjectorError("activation already in progress")
        self._active = True
        try:
            if self._history_loaded:
                return ActivationResult(ActivationOutcome.EMITTED, stats=self._inject_file())
            return self._poll_history()
        finally:
            self._active = False

    # --- NotReady ---

    def _poll_history(self) -> ActivationResult:
        probe = self._coordinator.probe_readiness()
        if probe != self._last_probe and probe is ProbeResult.UNREACHABLE:
            log.warning("Readiness coordinator unreachable; will keep polling")
        self._last_probe = probe

        if probe is ProbeResult.YES:
            self._history_loaded = True
            log.info(f"History loaded after {self.wait_ticks} polls.")
            return ActivationResult(ActivationOutcome.READY, probe=probe)

        self.wait_ticks += 1
        if self.wait_ticks == 1:
            log.info("Waiting for history to finish loading...")
        else:
            log.debug(f"History not loaded yet (poll {self.wait_ticks}, {probe.value})")
        self._sleep(self._wait_s)
        return ActivationResult(ActivationOutcome.WAITING, probe=probe)

    # --- Ready ---

    def _inject_file(self) -> InjectionStats:
        stats = InjectionStats()
        for line_number, line in self._numbered_lines():
            stats.lines += 1
            self._dispatch(decode_record(line, line_number), stats)

        self.passes += 1
        counts = ", ".join(f"{name}={count}" for name, count in sorted(stats.emitted.items()))
        log.info(
            f"Done emitting the input tuples (pass {self.passes}, {stats.lines} lines"
            f"{', ' + counts if counts else ''})"
        )
        return stats

    def _dispatch(self, event: Optional[Event], stats: InjectionStats) -> None:
        if event is None:
            stats.ignored += 1
            return
        if isinstance(event, TravelTimeRequest):
            stats.travel_time_requests += 1
            return
        if isinstance(event, TravelTimeQueryNotice):
            stats.travel_time_queries += 1
            log.info(f"Travel time query was issued : {event.raw}")
            return

        channel = event.channel
        self._sink.emit(channel.name, event.values())
        stats.emitted[channel.name] = stats.emitted.get(channel.name, 0) + 1

    def _numbered_lines(self) -> Iterator[Tuple[int, str]]:
        """Yield ``(line_number, line)``; file errors become FeedFileError."""
        path = self.car_data_file
        try:
            f = open(path, "r", encoding="utf-8")
        except OSError as e:
            raise FeedFileError(f"cannot open car-data file '{path}': {e}") from e

        with f:
            line_number = 0
            while True:
                try:
                    line = f.readline()
                except (OSError, UnicodeDecodeError) as e:
                    raise FeedFileError(
                        f"failed reading '{path}' after line {line_number}: {e}"
                    ) from e
                if not line:
                    return
                line_number += 1
                yield line_number, line


__all__ = [
    "ActivationOutcome",
    "ActivationResult",
    "InjectionStats",
    "InputEventInjector",
    "Sink",
]
