"""
record_parser.py

Decode Linear Road car-data records into typed events.

Each line of the car-data file looks like ``#(0 120 42 55 3 1 0 10 53000)``:
two wrapper characters, a space-separated list of integers, one closing
character. Field positions:

    0 - type of the record (0, 2, 3, 4, 5)
    1 - seconds since start of simulation
    2 - car id (0..999,999)
    3 - speed in mph (0..100)
    4 - expressway number (0..9)
    5 - lane (0..7)
    6 - direction (west = 0, east = 1)
    7 - mile (0..99)
    8 - absolute position in feet from the western end (0..527999)
    9 - query id (0..999,999)
    10 - starting milepost (m_init)
    11 - ending milepost (m_end)
    12 - day of the week
    13 - time of the day in minutes
    14 - day

Type 0 is a position report, 2 an account balance query, 3 a daily
expenditure query, 4 a travel time request and 5 a travel time query notice.
Anything else is ignored.
"""
from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional

from lrb_core.errors import RecordParseError
from lrb_core.model import (
    AccountBalanceQuery,
    DailyExpenditureReport,
    Event,
    PositionReport,
    TravelTimeQueryNotice,
    TravelTimeRequest,
)

FEET_PER_MILE = 5280

TYPE_POSITION_REPORT = 0
TYPE_ACCOUNT_BALANCE = 2
TYPE_DAILY_EXPENDITURE = 3
TYPE_TRAVEL_TIME_REQUEST = 4
TYPE_TRAVEL_TIME_QUERY = 5

F_TYPE = 0
F_TIME = 1
F_VID = 2
F_SPEED = 3
F_XWAY = 4
F_LANE = 5
F_DIR = 6
F_MILE = 7
F_POS = 8
F_QID = 9
F_DAY = 14

_INT_TOKEN = re.compile(r"[+-]?[0-9]+")


def unwrap(line: str) -> str:
    """Strip the line terminator and the ``#(`` ... ``)`` wrapper."""
    text = line.rstrip("\r\n")
    if len(text) < 3:
        raise RecordParseError("record too short to carry a wrapped field list", text)
    return text[2:-1]


def split_fields(body: str) -> List[str]:
    return body.split()


def _parse_int(fields: List[str], index: int, bits: int, name: str, body: str) -> int:
    if index >= len(fields):
        raise RecordParseError(
            f"missing field {index} ({name}); record has {len(fields)} fields", body
        )
    token = fields[index]
    if not _INT_TOKEN.fullmatch(token):
        raise RecordParseError(f"field {index} ({name}) is not an integer: {token!r}", body)
    value = int(token)
    lo = -(1 << (bits - 1))
    hi = (1 << (bits - 1)) - 1
    if value < lo or value > hi:
        raise RecordParseError(
            f"field {index} ({name}) value {value} out of int{bits} range", body
        )
    return value


def _to_int16(value: int) -> int:
    """Narrow ``value`` to a signed 16-bit integer (two's complement wrap)."""
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def compute_offset(position: int, mile: int) -> int:
    """Feet past the last mile post, narrowed to int16."""
    return _to_int16(position - mile * FEET_PER_MILE)


def _position_report(f: List[str], body: str) -> PositionReport:
    mile = _parse_int(f, F_MILE, 8, "mile", body)
    position = _parse_int(f, F_POS, 32, "position", body)
    return PositionReport(
        time=_parse_int(f, F_TIME, 64, "time", body),
        vehicle_id=_parse_int(f, F_VID, 32, "vehicle_id", body),
        speed=_parse_int(f, F_SPEED, 8, "speed", body),
        expressway=_parse_int(f, F_XWAY, 8, "expressway", body),
        lane=_parse_int(f, F_LANE, 8, "lane", body),
        direction=_parse_int(f, F_DIR, 8, "direction", body),
        mile=mile,
        offset=compute_offset(position, mile),
    )


def _account_balance(f: List[str], body: str) -> AccountBalanceQuery:
    return AccountBalanceQuery(
        time=_parse_int(f, F_TIME, 64, "time", body),
        vehicle_id=_parse_int(f, F_VID, 32, "vehicle_id", body),
        query_id=_parse_int(f, F_QID, 32, "query_id", body),
    )


def _daily_expenditure(f: List[str], body: str) -> DailyExpenditureReport:
    return DailyExpenditureReport(
        time=_parse_int(f, F_TIME, 64, "time", body),
        vehicle_id=_parse_int(f, F_VID, 32, "vehicle_id", body),
        expressway=_parse_int(f, F_XWAY, 8, "expressway", body),
        query_id=_parse_int(f, F_QID, 32, "query_id", body),
        day=_parse_int(f, F_DAY, 32, "day", body),
    )


def _travel_time_request(f: List[str], body: str) -> TravelTimeRequest:
    return TravelTimeRequest()


def _travel_time_query(f: List[str], body: str) -> TravelTimeQueryNotice:
    return TravelTimeQueryNotice(raw=body)


DECODERS: Dict[int, Callable[[List[str], str], Event]] = {
    TYPE_POSITION_REPORT: _position_report,
    TYPE_ACCOUNT_BALANCE: _account_balance,
    TYPE_DAILY_EXPENDITURE: _daily_expenditure,
    TYPE_TRAVEL_TIME_REQUEST: _travel_time_request,
    TYPE_TRAVEL_TIME_QUERY: _travel_time_query,
}


def decode_record(line: str, line_number: Optional[int] = None) -> Optional[Event]:
    """
    Decode one raw line. Returns ``None`` for an unknown type discriminator.

    Raises RecordParseError (tagged with ``line_number``) when the line is
    malformed: too short, empty, too few fields for its type, a non-numeric
    field or a value outside its declared width.
    """
    try:
        body = unwrap(line)
        fields = split_fields(body)
        if not fields:
            raise RecordParseError("empty record", body)
        record_type = _parse_int(fields, F_TYPE, 8, "type", body)
        decoder = DECODERS.get(record_type)
        if decoder is None:
            return None
        return decoder(fields, body)
    except RecordParseError as e:
        if line_number is None:
            raise
        raise RecordParseError(e.reason, e.line, line_number) from None


__all__ = [
    "FEET_PER_MILE",
    "DECODERS",
    "compute_offset",
    "decode_record",
    "split_fields",
    "unwrap",
]
