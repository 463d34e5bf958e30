from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Tuple

from . import config

_DATE_FORMATS: Iterable[str] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y%m%d",
)

_ERA_DATE = re.compile(r"^\s*(\d{1,3})\s*[./-]\s*(\d{1,2})\s*[./-]\s*(\d{1,2})\s*$")


def parse_iso_date(value: str) -> date:
    """Parse a Gregorian calendar date given on the command line.

    Raises ``ValueError`` for anything that is not a real calendar date.
    """

    candidate = (value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid date {value!r}; expected YYYY-MM-DD")


def to_local_era(value: date, offset: int = config.ERA_OFFSET) -> Tuple[int, int, int]:
    """Return ``(era_year, month, day)`` for a Gregorian date."""

    return value.year - offset, value.month, value.day


def parse_local_era_date(text: str, offset: int = config.ERA_OFFSET) -> date:
    """Convert portal text such as ``108.07.10`` into ``date(2019, 7, 10)``."""

    match = _ERA_DATE.match(text or "")
    if not match:
        raise ValueError(f"not an era date: {text!r}")
    year, month, day = (int(part) for part in match.groups())
    return date(year + offset, month, day)


def format_local_era_date(value: date, offset: int = config.ERA_OFFSET) -> str:
    """Inverse of :func:`parse_local_era_date`, e.g. ``108.07.10``."""

    year, month, day = to_local_era(value, offset)
    return f"{year}.{month:02d}.{day:02d}"


@dataclass(frozen=True)
class DateWindow:
    """Inclusive Gregorian search range; converted to era fields only for the query form."""

    start: date
    end: date
    offset: int = config.ERA_OFFSET

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        if self.start.year - self.offset < 1:
            raise ValueError(f"{self.start} predates era year 1")

    @classmethod
    def parse(cls, start: str, end: str, offset: int = config.ERA_OFFSET) -> "DateWindow":
        return cls(parse_iso_date(start), parse_iso_date(end), offset)

    def era_fields(self) -> Tuple[int, int, int, int, int, int]:
        """Six numeric form values: start y/m/d then end y/m/d."""

        return to_local_era(self.start, self.offset) + to_local_era(self.end, self.offset)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


__all__ = [
    "DateWindow",
    "parse_iso_date",
    "to_local_era",
    "parse_local_era_date",
    "format_local_era_date",
]
