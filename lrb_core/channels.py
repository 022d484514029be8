"""Output channel declarations: a fixed name and an ordered field schema each."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class Channel:
    name: str
    fields: Tuple[str, ...]


# Position report (Type=0, Time, VID, Spd, Xway, Lane, Dir, Seg, Pos)
POSITION_REPORT = Channel(
    "position_report",
    ("secfromstart", "vid", "speed", "xway", "lane", "dir", "mile", "ofst"),
)

# Account balance query (Type=2, Time, VID, QID)
ACCBAL_REPORT = Channel("accbal_report", ("secfromstart", "vid", "qid"))

# Daily expenditure (Type=3, Time, VID, XWay, QID, Day)
DAILY_EXP = Channel("daily_exp", ("secfromstart", "vid", "xway", "qid", "day"))

CHANNELS: Tuple[Channel, ...] = (POSITION_REPORT, ACCBAL_REPORT, DAILY_EXP)

CHANNELS_BY_NAME: Dict[str, Channel] = {channel.name: channel for channel in CHANNELS}


def get_channel(name: str) -> Channel:
    """Return the declared channel called ``name``; raise KeyError if unknown."""
    try:
        return CHANNELS_BY_NAME[name]
    except KeyError:
        known = ", ".join(sorted(CHANNELS_BY_NAME))
        raise KeyError(f"unknown channel '{name}'. Declared channels: {known}") from None


__all__ = [
    "Channel",
    "POSITION_REPORT",
    "ACCBAL_REPORT",
    "DAILY_EXP",
    "CHANNELS",
    "CHANNELS_BY_NAME",
    "get_channel",
]
