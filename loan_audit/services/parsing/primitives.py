"""
Loan Audit Engine - Primitive Extractors

Date, currency and percentage parsing shared by every field and sequence
extractor, plus guarded regex helpers: a pattern that fails to compile is
logged and treated as "no match" instead of aborting the parse.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Tried in order; the first successful parse wins
DEFAULT_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%B %Y",
    "%b %Y",
    "%Y-%m-%d",
)

# Shape each format must have before strptime is attempted
_FORMAT_SHAPES = {
    "%m/%d/%Y": r"\d{1,2}/\d{1,2}/\d{4}",
    "%m/%d/%y": r"\d{1,2}/\d{1,2}/\d{2}",
    "%B %d, %Y": r"[A-Za-z]+ \d{1,2}, ?\d{4}",
    "%b %d, %Y": r"[A-Za-z]+ \d{1,2}, ?\d{4}",
    "%B %d %Y": r"[A-Za-z]+ \d{1,2} \d{4}",
    "%b %d %Y": r"[A-Za-z]+ \d{1,2} \d{4}",
    "%B %Y": r"[A-Za-z]+ \d{4}",
    "%b %Y": r"[A-Za-z]+ \d{4}",
    "%Y-%m-%d": r"\d{4}-\d{1,2}-\d{1,2}",
}

_FULL_MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"
_ABBR_MONTHS = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"

# Date-shaped substrings in free text
DATE_TEXT_PATTERNS = (
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"),
    re.compile(rf"\b(?:{_FULL_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b"),
    re.compile(rf"\b(?:{_ABBR_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b"),
    re.compile(rf"\b(?:{_FULL_MONTHS})\s+\d{{4}}\b"),
    re.compile(rf"\b(?:{_ABBR_MONTHS})\s+\d{{4}}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
)

# Single date token for patterns that embed dates (case-insensitive use)
DATE_TOKEN = (
    rf"(?:\d{{1,2}}/\d{{1,2}}/\d{{2,4}}|\d{{4}}-\d{{2}}-\d{{2}}"
    rf"|(?:{_ABBR_MONTHS})[a-z]*\.?\s+\d{{1,2}},?\s+\d{{4}})"
)

# Minus sign only counts when it is not glued to a preceding word or date
CURRENCY_RE = re.compile(
    r"(?P<open>\()?(?P<sign1>(?<![\w/])-)?(?:(?P<dollar>\$)\s?(?P<sign2>-)?)?"
    r"(?P<number>\d[\d,]*(?:\.\d{1,2})?)(?P<close>\))?"
)

PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s?%")

MIN_VALID_RATE = 0.0
MAX_VALID_RATE = 20.0


# =============================================================================
# GUARDED REGEX HELPERS
# =============================================================================

@lru_cache(maxsize=256)
def compile_pattern(pattern: str, flags: int = re.IGNORECASE) -> Optional[Pattern]:
    """
    Compile a pattern, logging and returning None if it is invalid.

    The cache is process-wide: filled on first use of each pattern, read-only
    afterwards and safe to read from concurrent threads.
    """
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        logger.error(f"Invalid extraction pattern {pattern!r}: {e}")
        return None


def first_group(pattern: str, text: str, group: int | str = 1, flags: int = re.IGNORECASE) -> Optional[str]:
    """Return the requested group of the first match, or None."""
    regex = compile_pattern(pattern, flags)
    if regex is None:
        return None
    match = regex.search(text)
    if not match:
        return None
    try:
        return match.group(group)
    except IndexError as e:
        logger.error(f"Pattern {pattern!r} has no group {group!r}: {e}")
        return None


def find_matches(pattern: str, text: str, flags: int = re.IGNORECASE) -> List[re.Match]:
    """All matches of a pattern in text; empty if the pattern is invalid."""
    regex = compile_pattern(pattern, flags)
    if regex is None:
        return []
    return list(regex.finditer(text))


# =============================================================================
# DATES
# =============================================================================

@dataclass(frozen=True)
class DateWindow:
    """Closed range of plausible dates; anything outside is discarded."""
    earliest: date
    latest: date

    @classmethod
    def around(cls, today: date, years_past: int = 25, years_future: int = 30) -> "DateWindow":
        return cls(
            earliest=today - relativedelta(years=years_past),
            latest=today + relativedelta(years=years_future),
        )

    def __contains__(self, value: date) -> bool:
        return self.earliest <= value <= self.latest

    def filter(self, dates: Iterable[date]) -> List[date]:
        return [d for d in dates if d in self]


class DateParser:
    """
    Multi-format date parser.

    The per-format shape patterns are compiled once in __init__ and only read
    afterwards, so one instance can be shared by concurrent readers for the
    lifetime of the pipeline.
    """

    def __init__(self, formats: Sequence[str] = DEFAULT_DATE_FORMATS):
        self._formats = tuple(formats)
        self._format_cache: Dict[str, Optional[Pattern]] = {
            fmt: re.compile(_FORMAT_SHAPES[fmt]) if fmt in _FORMAT_SHAPES else None
            for fmt in self._formats
        }

    @property
    def formats(self) -> Sequence[str]:
        return self._formats

    def parse(self, text: Optional[str]) -> Optional[date]:
        """Parse with the first format that accepts the whole trimmed string."""
        if not text:
            return None
        candidate = " ".join(text.split())
        if not candidate:
            return None

        for fmt in self._formats:
            shape = self._format_cache[fmt]
            if shape is not None and not shape.fullmatch(candidate):
                continue
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
        return None

    def extract_dates(self, text: str) -> List[date]:
        """
        Every parseable date-shaped substring of text.

        Results follow pattern order, then position; duplicates are kept.
        A match overlapping text already claimed by an earlier pattern is
        skipped ("May" is both a full and an abbreviated month name).
        """
        dates: List[date] = []
        claimed: List[Tuple[int, int]] = []
        for pattern in DATE_TEXT_PATTERNS:
            for match in pattern.finditer(text):
                start, end = match.span()
                if any(start < c_end and c_start < end for c_start, c_end in claimed):
                    continue
                parsed = self.parse(match.group(0))
                if parsed is not None:
                    dates.append(parsed)
                    claimed.append((start, end))
        return dates


# =============================================================================
# NUMBERS
# =============================================================================

def parse_currency(text: Optional[str]) -> Optional[float]:
    """
    Extract a currency amount from text.

    An amount marked with "$" wins over the leading bare number. Parentheses
    around the amount or a minus sign directly before it make it negative.
    """
    if not text:
        return None

    matches = list(CURRENCY_RE.finditer(text))
    if not matches:
        return None

    match = next((m for m in matches if m.group("dollar")), matches[0])
    number = match.group("number").replace(",", "")
    try:
        value = float(number)
    except ValueError:
        return None

    negative = bool(match.group("sign1") or match.group("sign2")) or bool(
        match.group("open") and match.group("close")
    )
    return -value if negative else value


def find_percentage(text: Optional[str]) -> Optional[float]:
    """First "N%" or "N.NN%" value in text, without any range check."""
    if not text:
        return None
    match = PERCENT_RE.search(text)
    if not match:
        return None
    return float(match.group(1))


def parse_percentage(text: Optional[str]) -> Optional[float]:
    """First percentage in text, only if it is a realistic interest rate (0-20)."""
    rate = find_percentage(text)
    if rate is None or not (MIN_VALID_RATE <= rate <= MAX_VALID_RATE):
        return None
    return rate
