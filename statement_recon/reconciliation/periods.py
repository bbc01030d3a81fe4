"""Parsing of statement period text into concrete (month, year) ranges."""

import calendar
import re
from typing import List, Optional, Tuple

from statement_recon.models import StatementPeriod
from statement_recon.utils.logger import get_logger

MONTH_NAMES = [name.lower() for name in calendar.month_name[1:]]

_SEP = r"\s*(?:-|–|—|\bto\b)\s*"
# Numeric forms must not start inside a longer date such as 13/01/2024
_START = r"(?<![\d/.])(?<!\d-)"
_DAY = r"(?:\d{1,2}(?:st|nd|rd|th)?\s+)?"
_MONTH = rf"\b{_DAY}([a-z]+)\.?"
_YEAR = r"(\d{4})\b"
_DATE = r"(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4})(?!\d)"
_NUMERIC_MONTH = r"(\d{1,2})[/.\-](\d{4})(?!\d)"

DATE_RANGE = re.compile(rf"{_START}{_DATE}{_SEP}{_DATE}")
NUMERIC_MONTH_RANGE = re.compile(rf"{_START}{_NUMERIC_MONTH}{_SEP}{_NUMERIC_MONTH}")
CROSS_YEAR_RANGE = re.compile(rf"{_MONTH}\s+{_YEAR}{_SEP}{_MONTH}\s+{_YEAR}")
SAME_YEAR_RANGE = re.compile(rf"{_MONTH}{_SEP}{_MONTH}\s+{_YEAR}")
NUMERIC_MONTH = re.compile(rf"{_START}{_NUMERIC_MONTH}")
SINGLE_MONTH = re.compile(rf"{_MONTH}\s+{_YEAR}")


def month_number(name) -> Optional[int]:
    """Resolve a month name, abbreviation or unambiguous prefix to 1-12."""
    if name is None:
        return None
    key = str(name).strip().lower().rstrip(".")
    if len(key) < 3 or not key.isalpha():
        return None
    if key == "sept":
        return 9
    for number, full in enumerate(MONTH_NAMES, 1):
        if full == key:
            return number
    matches = [number for number, full in enumerate(MONTH_NAMES, 1) if full.startswith(key)]
    return matches[0] if len(matches) == 1 else None


def _valid_year(year: int) -> bool:
    return 1900 <= year <= 2100


_FORMS = [
    (DATE_RANGE, lambda m: ((int(m.group(2)), int(m.group(3))), (int(m.group(5)), int(m.group(6))))),
    (NUMERIC_MONTH_RANGE, lambda m: ((int(m.group(1)), int(m.group(2))), (int(m.group(3)), int(m.group(4))))),
    (CROSS_YEAR_RANGE, lambda m: (
        (month_number(m.group(1)), int(m.group(2))),
        (month_number(m.group(3)), int(m.group(4))),
    )),
    (SAME_YEAR_RANGE, lambda m: (
        (month_number(m.group(1)), int(m.group(3))),
        (month_number(m.group(2)), int(m.group(3))),
    )),
    (NUMERIC_MONTH, lambda m: ((int(m.group(1)), int(m.group(2))),) * 2),
    (SINGLE_MONTH, lambda m: ((month_number(m.group(1)), int(m.group(2))),) * 2),
]


class StatementPeriodExpander:
    """Turns statement period text into the months it covers."""

    def __init__(self) -> None:
        self.logger = get_logger(__name__)

    def normalize(self, text: str) -> str:
        text = (text or "").strip().lower()
        text = text.replace(",", " ")
        return re.sub(r"\s+", " ", text).strip()

    def parse(self, text: Optional[str]) -> Optional[StatementPeriod]:
        """Parse period text.

        Recognized forms are ``January 2024``, ``January - March 2024``,
        ``November 2023 - February 2024``, ``01 Jan 2024 - 31 Mar 2024``,
        ``01/01/2024 - 31/03/2024``, ``01/2024 - 03/2024`` and ``03/2024``,
        anywhere in the text. Reversed ranges are swapped.

        Returns:
            StatementPeriod, or None if the text is not recognized.
        """
        normalized = self.normalize(text)
        if not normalized:
            return None

        bounds = self._bounds(normalized)
        if bounds is None:
            return None

        (start_month, start_year), (end_month, end_year) = bounds
        if (end_year, end_month) < (start_year, start_month):
            (start_month, start_year), (end_month, end_year) = (end_month, end_year), (start_month, start_year)

        return StatementPeriod(start_month, start_year, end_month, end_year)

    def _bounds(self, normalized: str) -> Optional[Tuple[Tuple[int, int], Tuple[int, int]]]:
        # Most specific form first; the first plausible match wins
        for pattern, read in _FORMS:
            for match in pattern.finditer(normalized):
                (start_month, start_year), (end_month, end_year) = read(match)
                if start_month is None or end_month is None:
                    continue
                if not (1 <= start_month <= 12 and 1 <= end_month <= 12):
                    continue
                if not (_valid_year(start_year) and _valid_year(end_year)):
                    continue
                return (start_month, start_year), (end_month, end_year)
        return None

    def expand(self, text: Optional[str]) -> List[Tuple[int, int]]:
        """List the (month, year) pairs covered by the period text, or [] if unparsable."""
        period = self.parse(text)
        return period.months() if period else []

    def expand_or_default(
        self,
        text: Optional[str],
        month: int,
        year: int,
    ) -> Tuple[List[Tuple[int, int]], bool]:
        """Expand the period text, falling back to the given month.

        Returns:
            Tuple of the month list and whether the fallback was used.
        """
        months = self.expand(text)
        if months:
            return months, False
        self.logger.warning(
            f"Unparsable statement period {text!r}; using {calendar.month_name[month]} {year}"
        )
        return [(month, year)], True
