"""
model.py

Immutable event models decoded from Linear Road car-data records, plus the
output channel each emitting event is routed to.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from lrb_core.channels import ACCBAL_REPORT, DAILY_EXP, POSITION_REPORT, Channel


@dataclass(frozen=True)
class PositionReport:
    """
    Type 0 record.
    - time: seconds since start of simulation
    - vehicle_id: car id (0..999,999)
    - speed: mph (0..100)
    - expressway: expressway number (0..9)
    - lane: 0=ramp .. 7=ramp (8 lanes altogether)
    - direction: 0=west, 1=east
    - mile: mile segment (0..99)
    - offset: feet past the last mile post, position - mile * 5280
    """
    time: int
    vehicle_id: int
    speed: int
    expressway: int
    lane: int
    direction: int
    mile: int
    offset: int

    channel = POSITION_REPORT

    def values(self) -> Tuple[int, ...]:
        return (
            self.time,
            self.vehicle_id,
            self.speed,
            self.expressway,
            self.lane,
            self.direction,
            self.mile,
            self.offset,
        )


@dataclass(frozen=True)
class AccountBalanceQuery:
    """Type 2 record: (time, vehicle_id, query_id)."""
    time: int
    vehicle_id: int
    query_id: int

    channel = ACCBAL_REPORT

    def values(self) -> Tuple[int, ...]:
        return (self.time, self.vehicle_id, self.query_id)


@dataclass(frozen=True)
class DailyExpenditureReport:
    """
    Type 3 record. ``day`` counts back from today: 1 is yesterday,
    69 is ten weeks ago.
    """
    time: int
    vehicle_id: int
    expressway: int
    query_id: int
    day: int

    channel = DAILY_EXP

    def values(self) -> Tuple[int, ...]:
        return (self.time, self.vehicle_id, self.expressway, self.query_id, self.day)


@dataclass(frozen=True)
class TravelTimeRequest:
    """Type 4 record. Recognised but never emitted."""


@dataclass(frozen=True)
class TravelTimeQueryNotice:
    """Type 5 record. Only logged; ``raw`` is the unwrapped field list."""
    raw: str


EmittingEvent = Union[PositionReport, AccountBalanceQuery, DailyExpenditureReport]
Event = Union[
    PositionReport,
    AccountBalanceQuery,
    DailyExpenditureReport,
    TravelTimeRequest,
    TravelTimeQueryNotice,
]


def channel_of(event: Event) -> Optional[Channel]:
    """Return the output channel for ``event`` or ``None`` if it is not emitted."""
    return getattr(event, "channel", None)
