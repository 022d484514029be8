"""Exceptions raised by the record parser and the input-event injector."""
from __future__ import annotations

from typing import Optional


class InjectorError(RuntimeError):
    """Base class for hard failures of an injector activation."""
    pass


class RecordParseError(InjectorError):
    """Raised when a car-data record is malformed. Fatal to the current pass."""

    def __init__(self, reason: str, line: str = "", line_number: Optional[int] = None):
        self.reason = reason
        self.line = line
        self.line_number = line_number
        where = f"line {line_number}: " if line_number is not None else ""
        super().__init__(f"{where}{reason} in record {line!r}")


class FeedFileError(InjectorError):
    """Raised when the car-data file cannot be opened or read."""
    pass
