"""
Date Parsing
============

Regex-based date recognition for English legal text.

Supported forms:
- ISO: 2021-03-15
- Numeric day-first: 15/03/2021, 15.03.21, 15-3-2021
- "15 March 2021", "15th of March 2021"
- "March 15, 2021"
- "March 2021"
- Bare year: 2021 (only when the whole value is a year)
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_MONTH_RE = (
    r"(January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)\.?"
)

# (pattern, kind) - order matters, most specific first
DATE_PATTERNS = [
    (re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"), "iso"),
    (re.compile(r"\b(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})\b"), "numeric"),
    (re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH_RE + r",?\s+(\d{4})\b", re.IGNORECASE), "day_month_year"),
    (re.compile(r"\b" + _MONTH_RE + r"\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})\b", re.IGNORECASE), "month_day_year"),
    (re.compile(r"\b" + _MONTH_RE + r",?\s+(\d{4})\b", re.IGNORECASE), "month_year"),
]

_BARE_YEAR = re.compile(r"^\s*((?:19|20)\d{2})\s*$")


@dataclass
class ParsedDate:
    """A recognised date with its precision"""
    text: str
    year: int
    month: int = 0
    day: int = 0
    start: int = 0
    end: int = 0

    @property
    def precision(self) -> str:
        if self.day:
            return "day"
        if self.month:
            return "month"
        return "year"

    @property
    def iso(self) -> str:
        if self.day:
            return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
        if self.month:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}"

    @property
    def sort_key(self) -> Tuple[int, int, int]:
        return (self.year, self.month, self.day)


def _expand_year(year: int) -> int:
    if year < 100:
        year += 2000 if year < 50 else 1900
    return year


def _valid(year: int, month: int, day: int) -> bool:
    if not 1000 <= year <= 2999:
        return False
    if month and not 1 <= month <= 12:
        return False
    if day and not 1 <= day <= 31:
        return False
    return True


def _from_match(groups: tuple, kind: str) -> Optional[Tuple[int, int, int]]:
    if kind == "iso":
        return int(groups[0]), int(groups[1]), int(groups[2])
    if kind == "numeric":
        return _expand_year(int(groups[2])), int(groups[1]), int(groups[0])
    if kind == "day_month_year":
        return int(groups[2]), MONTHS[groups[1].lower()], int(groups[0])
    if kind == "month_day_year":
        return int(groups[2]), MONTHS[groups[0].lower()], int(groups[1])
    if kind == "month_year":
        return int(groups[1]), MONTHS[groups[0].lower()], 0
    return None


def find_dates(text: str) -> List[ParsedDate]:
    """All non-overlapping dates in text, in order of appearance"""
    if not text:
        return []

    found: List[ParsedDate] = []
    taken: List[Tuple[int, int]] = []

    for pattern, kind in DATE_PATTERNS:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < t_end and end > t_start for t_start, t_end in taken):
                continue
            parts = _from_match(match.groups(), kind)
            if not parts or not _valid(*parts):
                continue
            year, month, day = parts
            found.append(ParsedDate(match.group(0), year, month, day, start, end))
            taken.append((start, end))

    found.sort(key=lambda d: d.start)
    return found


def parse_date(value: Optional[str]) -> Optional[ParsedDate]:
    """Parse a single date value as written in the source"""
    if not value:
        return None
    dates = find_dates(value)
    if dates:
        return dates[0]
    bare = _BARE_YEAR.match(value)
    if bare:
        return ParsedDate(bare.group(1), int(bare.group(1)), start=0, end=len(value))
    return None
