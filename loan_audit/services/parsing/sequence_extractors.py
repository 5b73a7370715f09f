"""
Loan Audit Engine - Sequence Extractors

Payment history, forbearance/deferment periods and interest capitalization
events. Each extractor scans sectioned text, keeps only dates inside the
validity window, deduplicates with a tolerance and returns a sorted list.
"""
from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import List, Optional, Sequence, Set

from ...config import ParserSettings
from ...models import NonPaymentPeriod, NonPaymentType, PaymentRecord, PaymentType
from .normalizer import NormalizedDocument
from .primitives import (
    DATE_TEXT_PATTERNS,
    DATE_TOKEN,
    DateParser,
    DateWindow,
    compile_pattern,
    find_matches,
    first_group,
    parse_currency,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_HISTORY_MARKERS = [
    "payment history", "transaction history", "payment activity",
    "transaction details", "payment record",
]

# The marker line is not part of the section; the section ends at the first
# heading once more than this many lines were collected
PAYMENT_SECTION_MIN_LINES = 5

NON_PAYMENT_KEYWORDS = {
    "forbearance": NonPaymentType.FORBEARANCE,
    "deferment": NonPaymentType.DEFERMENT,
}

NON_PAYMENT_SECTION_MIN_LINES = 2

NON_PAYMENT_PATTERNS = [
    rf"(?P<kind>forbearance|deferment).{{0,50}}?\b(?P<start>{DATE_TOKEN}).{{0,20}}?"
    rf"\b(?:to|through|until)\b.{{0,20}}?\b(?P<end>{DATE_TOKEN})",
    rf"(?P<kind>forbearance|deferment).{{0,50}}?\bfrom\b.{{0,20}}?\b(?P<start>{DATE_TOKEN}).{{0,20}}?"
    rf"\b(?:to|through|until)\b.{{0,20}}?\b(?P<end>{DATE_TOKEN})",
    rf"\b(?P<start>{DATE_TOKEN}).{{0,20}}?\b(?:to|through|until)\b.{{0,20}}?"
    rf"\b(?P<end>{DATE_TOKEN}).{{0,50}}?(?P<kind>forbearance|deferment)",
]

# Characters of text either side of a matched period searched for a reason
REASON_CONTEXT_CHARS = 100

REASON_PATTERNS = [
    r"reason:\s*([^\n.]{{3,50}})",
    r"due to\s*([^\n.]{{3,50}})",
    r"reason for\s*{keyword}\s*:?\s*([^\n.]{{3,50}})",
    r"{keyword}\s*for\s*([^\n.]{{3,50}})",
    r"{keyword}\s*-\s*([^\n.]{{3,50}})",
]

# Dates must match within these tolerances to count as the same entry
PAYMENT_DATE_TOLERANCE = timedelta(days=1)
PAYMENT_AMOUNT_TOLERANCE = 0.01
PERIOD_DATE_TOLERANCE = timedelta(days=3)

CAPITALIZATION_MARKERS = ["capitalized interest", "interest capitalization", "capitalization event"]
CAPITALIZATION_CONTEXT_CHARS = 100

CAPITALIZATION_DATE_PATTERNS = [
    rf"interest.{{0,10}}capitalized.{{0,30}}?\b({DATE_TOKEN})",
    rf"\b({DATE_TOKEN}).{{0,30}}interest.{{0,10}}capitalized",
    rf"capitalization.{{0,10}}date.{{0,10}}?\b({DATE_TOKEN})",
]

CAPITALIZATION_AMOUNT_PATTERN = r"(?:capitalized|capitalization).{0,30}\$\d{1,3}(?:,\d{3})*(?:\.\d{2})?"
CAPITALIZATION_AMOUNT_LOOKBACK = 50


# =============================================================================
# SECTION HEADINGS
# =============================================================================

def is_section_heading(line: str) -> bool:
    """
    Whether a line looks like the start of a new statement section.

    Headings are short (<30 chars) and capitalised, often ending in a colon.
    """
    text = line.strip()
    if len(text) < 3:
        return False

    has_colon = ":" in text
    is_short = len(text) < 30
    starts_with_capital = text[0].isupper()
    is_all_caps = text.isupper() and len(text) > 4

    return (
        (has_colon and starts_with_capital and is_short)
        or (is_all_caps and is_short)
        or text.startswith("Section")
        or text.startswith("#")
        or (starts_with_capital and is_short and text.endswith(":"))
    )


# =============================================================================
# PAYMENT HISTORY
# =============================================================================

def find_payment_section(lines: Sequence[str]) -> List[str]:
    """Lines of the payment history section, or every line if there is none."""
    section: List[str] = []
    in_section = False

    for line in lines:
        lower = line.lower()
        if not in_section:
            if any(marker in lower for marker in PAYMENT_HISTORY_MARKERS):
                in_section = True
            continue
        if is_section_heading(line) and len(section) > PAYMENT_SECTION_MIN_LINES:
            break
        section.append(line)

    if not section:
        logger.debug("No payment history section found; scanning whole document")
        return list(lines)
    return section


def classify_payment(line: str) -> PaymentType:
    """Infer the payment type from keywords on its line."""
    lower = line.lower()
    if "principal" in lower and "interest" not in lower:
        return PaymentType.EXTRA_PRINCIPAL
    if "interest only" in lower or ("interest" in lower and "principal" not in lower):
        return PaymentType.INTEREST_ONLY
    if "fee" in lower or "charge" in lower or "penalty" in lower:
        return PaymentType.FEE
    return PaymentType.REGULAR


def _strip_dates(line: str) -> str:
    for pattern in DATE_TEXT_PATTERNS:
        line = pattern.sub(" ", line)
    return line


def deduplicate_payments(payments: Sequence[PaymentRecord]) -> List[PaymentRecord]:
    """
    Drop payments matching an already kept one on date (within a day) and
    amount (within a cent). Returns the survivors sorted by date.
    """
    unique: List[PaymentRecord] = []
    for payment in payments:
        duplicate = any(
            abs(kept.payment_date - payment.payment_date) < PAYMENT_DATE_TOLERANCE
            and abs(kept.amount - payment.amount) < PAYMENT_AMOUNT_TOLERANCE
            for kept in unique
        )
        if not duplicate:
            unique.append(payment)
    return sorted(unique, key=lambda p: p.payment_date)


def extract_payments(
    document: NormalizedDocument,
    date_parser: DateParser,
    window: DateWindow,
) -> List[PaymentRecord]:
    """
    Extract payment lines: an in-window date and an amount on the same line.

    The date is the first date on the line. The amount is the "$" amount when
    one is present, otherwise the first number left after the dates are removed.
    """
    payments: List[PaymentRecord] = []

    for line in find_payment_section(document.lines):
        dates = window.filter(date_parser.extract_dates(line))
        if not dates:
            continue
        amount = parse_currency(_strip_dates(line))
        if amount is None:
            continue
        payments.append(PaymentRecord(dates[0], amount, classify_payment(line)))

    unique = deduplicate_payments(payments)
    logger.debug(f"Extracted {len(unique)} payments ({len(payments) - len(unique)} duplicates dropped)")
    return unique


# =============================================================================
# NON-PAYMENT PERIODS
# =============================================================================

def extract_reason(keyword: str, text: str) -> Optional[str]:
    """Free-text reason for a forbearance/deferment near `keyword`, title-cased."""
    lowered = text.lower()
    for template in REASON_PATTERNS:
        pattern = template.format(keyword=keyword)
        reason = first_group(pattern, lowered)
        if reason is None:
            continue
        reason = reason.strip()
        if len(reason) >= 3:
            return reason.title()
    return None


def _kind_of(text: str) -> NonPaymentType:
    return NonPaymentType.FORBEARANCE if "forbearance" in text.lower() else NonPaymentType.DEFERMENT


def _periods_from_patterns(
    joined: str,
    date_parser: DateParser,
    window: DateWindow,
) -> List[NonPaymentPeriod]:
    periods: List[NonPaymentPeriod] = []

    for pattern in NON_PAYMENT_PATTERNS:
        for match in find_matches(pattern, joined):
            start = date_parser.parse(match.group("start"))
            end = date_parser.parse(match.group("end"))
            if start is None or end is None or start not in window or end not in window:
                continue
            if end < start:
                continue
            kind = _kind_of(match.group("kind"))
            context = joined[max(0, match.start() - REASON_CONTEXT_CHARS):match.end() + REASON_CONTEXT_CHARS]
            periods.append(NonPaymentPeriod(kind, start, end, extract_reason(kind.value, context)))

    return periods


def _periods_from_section(
    section: Sequence[str],
    kind: NonPaymentType,
    date_parser: DateParser,
    window: DateWindow,
    max_span: timedelta,
) -> List[NonPaymentPeriod]:
    """Pair the section's sorted dates as start/end: (0, 1), (2, 3), ..."""
    dates = sorted(window.filter(d for line in section for d in date_parser.extract_dates(line)))
    reason = extract_reason(kind.value, " ".join(section))

    periods: List[NonPaymentPeriod] = []
    for start, end in zip(dates[0::2], dates[1::2]):
        if end > start and end - start <= max_span:
            periods.append(NonPaymentPeriod(kind, start, end, reason))
    return periods


def _periods_from_sections(
    lines: Sequence[str],
    date_parser: DateParser,
    window: DateWindow,
    settings: ParserSettings,
) -> List[NonPaymentPeriod]:
    periods: List[NonPaymentPeriod] = []
    max_span = timedelta(days=settings.section_period_max_days)

    section: List[str] = []
    kind: Optional[NonPaymentType] = None

    def close_section():
        nonlocal section, kind
        if kind is not None and section:
            periods.extend(_periods_from_section(section, kind, date_parser, window, max_span))
        section, kind = [], None

    for line in lines:
        if kind is not None:
            at_heading = is_section_heading(line) and len(section) > NON_PAYMENT_SECTION_MIN_LINES
            if not at_heading and len(section) < settings.non_payment_section_max_lines:
                section.append(line)
                continue
            close_section()

        lower = line.lower()
        if any(keyword in lower for keyword in NON_PAYMENT_KEYWORDS):
            kind = _kind_of(lower)
            section = [line]

    # A section still open at end of document
    close_section()
    return periods


def deduplicate_periods(periods: Sequence[NonPaymentPeriod]) -> List[NonPaymentPeriod]:
    """Drop periods of the same kind whose start and end are each within 3 days of a kept one."""
    unique: List[NonPaymentPeriod] = []
    for period in periods:
        duplicate = any(
            kept.kind == period.kind
            and abs(kept.start_date - period.start_date) < PERIOD_DATE_TOLERANCE
            and abs(kept.end_date - period.end_date) < PERIOD_DATE_TOLERANCE
            for kept in unique
        )
        if not duplicate:
            unique.append(period)
    return sorted(unique, key=lambda p: p.start_date)


def extract_non_payment_periods(
    document: NormalizedDocument,
    date_parser: DateParser,
    window: DateWindow,
    settings: ParserSettings,
) -> List[NonPaymentPeriod]:
    """
    Extract forbearance and deferment periods.

    Two strategies are merged: date-range patterns over the whole text, and a
    section scan that pairs up the dates found under a forbearance/deferment line.
    """
    from_patterns = _periods_from_patterns(document.joined, date_parser, window)
    from_sections = _periods_from_sections(document.lines, date_parser, window, settings)

    unique = deduplicate_periods(from_patterns + from_sections)
    logger.debug(
        f"Extracted {len(unique)} non-payment periods "
        f"({len(from_patterns)} by pattern, {len(from_sections)} by section scan)"
    )
    return unique


# =============================================================================
# CAPITALIZATION EVENTS
# =============================================================================

def extract_capitalization_events(
    document: NormalizedDocument,
    date_parser: DateParser,
    window: DateWindow,
) -> List[date]:
    """Dates on which accrued interest was capitalized, one per day, ascending."""
    joined = document.joined
    candidates: List[date] = []

    # Dates near any capitalization mention
    for marker in CAPITALIZATION_MARKERS:
        regex = compile_pattern(marker)
        if regex is None:
            continue
        for match in regex.finditer(joined):
            context = joined[
                max(0, match.start() - CAPITALIZATION_CONTEXT_CHARS):match.end() + CAPITALIZATION_CONTEXT_CHARS
            ]
            candidates.extend(date_parser.extract_dates(context))

    # "interest capitalized on <date>" and similar
    for pattern in CAPITALIZATION_DATE_PATTERNS:
        for match in find_matches(pattern, joined):
            parsed = date_parser.parse(match.group(1))
            if parsed is not None:
                candidates.append(parsed)

    # Dates shortly before a capitalized amount
    for match in find_matches(CAPITALIZATION_AMOUNT_PATTERN, joined):
        context = joined[max(0, match.start() - CAPITALIZATION_AMOUNT_LOOKBACK):match.end()]
        candidates.extend(date_parser.extract_dates(context))

    events: Set[date] = set(window.filter(candidates))
    logger.debug(f"Extracted {len(events)} capitalization events")
    return sorted(events)
