"""PeriodKey value object - the YYYY-MM month a selection belongs to."""

import re
from dataclasses import dataclass

from museick.domain.exceptions import InvalidArgumentError

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class PeriodKey:
    """Year-month key scoping selections to a calendar month.

    Hey future me - the backend rejects anything that isn't exactly YYYY-MM, so
    we validate here and fail BEFORE the network call. Always build these via
    parse() or from_year_month(), never by f-string.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidArgumentError(f"Invalid month {self.month}, expected 1-12")
        if not 1 <= self.year <= 9999:
            raise InvalidArgumentError(f"Invalid year {self.year}")

    @classmethod
    def parse(cls, value: "str | PeriodKey") -> "PeriodKey":
        """Parse a "YYYY-MM" string (PeriodKey instances pass through)."""
        if isinstance(value, PeriodKey):
            return value
        match = _PERIOD_RE.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise InvalidArgumentError(
                f"Invalid period key {value!r}, expected YYYY-MM"
            )
        return cls(year=int(match.group(1)), month=int(match.group(2)))

    @classmethod
    def from_year_month(cls, year: int, month: int) -> "PeriodKey":
        return cls(year=year, month=month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
