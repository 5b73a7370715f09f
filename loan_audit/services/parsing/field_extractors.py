"""
Loan Audit Engine - Field Extractors

Each extractor is a layered heuristic search over normalized statement lines:
keyword lines first, then wider context, then a regex over the joined text.
Servicer, interest rate, current balance and start date are hard requirements;
loan ID, end date and original principal always resolve to something.
"""
from __future__ import annotations
import hashlib
import logging
import re
from datetime import date
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from ...config import ParserSettings
from .errors import InvalidFieldFormatError, MissingRequiredFieldError
from .normalizer import NormalizedDocument
from .primitives import (
    DateParser,
    DateWindow,
    MAX_VALID_RATE,
    MIN_VALID_RATE,
    compile_pattern,
    find_percentage,
    first_group,
    parse_currency,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

class LoanServicer(str, Enum):
    """Student loan servicers recognised by name."""
    NAVIENT = "navient"
    NELNET = "nelnet"
    GREAT_LAKES = "great_lakes"
    FEDLOAN = "fedloan"
    MOHELA = "mohela"
    AIDVANTAGE = "aidvantage"
    EDFINANCIAL = "edfinancial"
    OTHER = "other"

    @property
    def identifier_patterns(self) -> Tuple[str, ...]:
        return SERVICER_IDENTIFIERS.get(self, ())

    @property
    def display_name(self) -> str:
        return SERVICER_DISPLAY_NAMES.get(self, "Other")


SERVICER_IDENTIFIERS = {
    LoanServicer.NAVIENT: ("navient", "navient.com"),
    LoanServicer.NELNET: ("nelnet", "nelnet.com"),
    LoanServicer.GREAT_LAKES: ("great lakes", "mygreatlakes"),
    LoanServicer.FEDLOAN: ("fedloan", "myfedloan"),
    LoanServicer.MOHELA: ("mohela",),
    LoanServicer.AIDVANTAGE: ("aidvantage",),
    LoanServicer.EDFINANCIAL: ("edfinancial",),
}

SERVICER_DISPLAY_NAMES = {
    LoanServicer.NAVIENT: "Navient",
    LoanServicer.NELNET: "Nelnet",
    LoanServicer.GREAT_LAKES: "Great Lakes",
    LoanServicer.FEDLOAN: "FedLoan Servicing",
    LoanServicer.MOHELA: "MOHELA",
    LoanServicer.AIDVANTAGE: "Aidvantage",
    LoanServicer.EDFINANCIAL: "EdFinancial",
}

# Case-sensitive: company names are capitalised
COMPANY_NAME_PATTERNS = [
    r"(?:[A-Z][a-z]+ ){1,3}(?:Servicing|Financial|Services|Corporation|Corp\.|Inc\.)",
    r"(?:[A-Z][A-Za-z]+ ){1,2}Student Loan",
]

LOAN_ID_KEYWORDS = [
    r"loan\s*#", r"loan number", r"account number", r"account\s*#", r"\bid:", r"loan id",
]

LOAN_ID_FALLBACK_PATTERNS = [
    r"Loan ID:?\s*([A-Z0-9-]{4,})",
    r"Account #:?\s*([A-Z0-9-]{4,})",
    r"Loan\s*#:?\s*([A-Z0-9-]{4,})",
    r"\bID:?\s*([A-Z0-9-]{4,})",
    r"Loan Number:?\s*([A-Z0-9-]{4,})",
]

ID_TOKEN_RE = re.compile(r"[A-Za-z0-9-]{4,}")

INTEREST_RATE_LINE_RE = re.compile(
    r"\binterest rate|\bannual percentage rate|\bapr\b|\brate", re.IGNORECASE
)
INTEREST_RATE_FALLBACK = r"interest\s+rate.*?(\d+(?:\.\d+)?)\s?%"

BALANCE_KEYWORDS = [
    "current balance", "outstanding balance", "principal balance", "current principal",
    "total balance", "balance",
]

LOAN_DETAILS_KEYWORDS = ["loan details", "loan information", "loan summary", "account summary"]

BALANCE_FALLBACK = (
    r"(?:current|outstanding|total|principal)\s+balance.{0,20}?"
    r"\$(?P<amount>\d{1,3}(?:,\d{3})*(?:\.\d{2})?)"
)

START_DATE_KEYWORDS = ["loan date", "disbursement date", "start date", "originated", "issue date"]
END_DATE_KEYWORDS = ["maturity date", "payoff date", "term end", "end date", "final payment date"]

# Lines about forbearance/deferment carry their own start/end dates
NON_PAYMENT_WORDS = ("forbearance", "deferment")

PRINCIPAL_KEYWORDS = [
    "original principal", "initial principal", "original loan amount",
    "principal balance at disbursal", "loan amount",
]


# =============================================================================
# SERVICER
# =============================================================================

def identify_servicer(document: NormalizedDocument, header_window: int = 30) -> str:
    """
    Identify the loan servicer from the statement header.

    Raises:
        MissingRequiredFieldError: no strategy found a servicer name
    """
    header = document.header(header_window)
    header_text = " ".join(header).lower()

    for servicer in LoanServicer:
        if any(pattern in header_text for pattern in servicer.identifier_patterns):
            logger.debug(f"Servicer matched known identifier: {servicer.display_name}")
            return servicer.display_name

    for line in header:
        for pattern in COMPANY_NAME_PATTERNS:
            regex = compile_pattern(pattern, 0)
            if regex is None:
                continue
            match = regex.search(line)
            if match and len(match.group(0).strip()) > 4:
                company = match.group(0).strip()
                logger.debug(f"Servicer matched company-name pattern: {company}")
                return company

    for line in header:
        if " Loan " in line or "Servic" in line:
            words = [w for w in line.split() if w[:1].isupper() and len(w) > 2]
            if words and len(words[0]) > 3:
                logger.debug(f"Servicer guessed from loan/servicing line: {words[0]}")
                return words[0]

    raise MissingRequiredFieldError("Loan Servicer")


# =============================================================================
# LOAN ID
# =============================================================================

def _id_token(text: str) -> Optional[str]:
    match = ID_TOKEN_RE.search(text)
    if match and any(ch.isdigit() for ch in match.group(0)):
        return match.group(0)
    return None


def synthetic_loan_id(document: NormalizedDocument) -> str:
    """Placeholder ID, stable for the same statement text."""
    digest = hashlib.sha256("\n".join(document.lines).encode("utf-8")).hexdigest()
    return f"UNKNOWN-{int(digest, 16) % 90000 + 10000}"


def extract_loan_id(document: NormalizedDocument) -> str:
    """Find the loan/account identifier, or generate a placeholder."""
    for line in document:
        for keyword in LOAN_ID_KEYWORDS:
            regex = compile_pattern(keyword)
            if regex is None:
                continue
            match = regex.search(line)
            if not match:
                continue
            token = _id_token(line[match.end():].strip())
            if token:
                return token

    joined = document.joined
    for pattern in LOAN_ID_FALLBACK_PATTERNS:
        candidate = first_group(pattern, joined)
        if candidate and any(ch.isdigit() for ch in candidate):
            logger.debug(f"Loan ID found by fallback pattern {pattern!r}")
            return candidate

    placeholder = synthetic_loan_id(document)
    logger.warning(f"No loan ID found; using placeholder {placeholder}")
    return placeholder


# =============================================================================
# INTEREST RATE
# =============================================================================

def extract_interest_rate(document: NormalizedDocument) -> float:
    """
    Find the loan's interest rate.

    The first rate found by scan order is the answer; it is not replaced by a
    later, more plausible one.

    Raises:
        InvalidFieldFormatError: the rate found lies outside 0-20%
        MissingRequiredFieldError: no rate was found
    """
    lines = document.lines
    rate: Optional[float] = None

    # Keyword lines
    for line in lines:
        if INTEREST_RATE_LINE_RE.search(line):
            rate = find_percentage(line)
            if rate is not None:
                logger.debug("Interest rate found on keyword line")
                break

    # Keyword context: value printed on the line after its label
    if rate is None:
        for index, line in enumerate(lines[:-1]):
            if INTEREST_RATE_LINE_RE.search(line):
                rate = find_percentage(lines[index + 1])
                if rate is not None:
                    logger.debug("Interest rate found next to keyword line")
                    break

    if rate is None:
        raw = first_group(INTEREST_RATE_FALLBACK, document.joined)
        if raw is not None:
            rate = float(raw)
            logger.debug("Interest rate found by fallback pattern")

    if rate is None:
        raise MissingRequiredFieldError("Interest Rate")
    if not (MIN_VALID_RATE <= rate <= MAX_VALID_RATE):
        raise InvalidFieldFormatError("interestRate", rate)
    return rate


# =============================================================================
# BALANCES
# =============================================================================

def _plausible_amount(value: Optional[float], settings: ParserSettings) -> bool:
    return value is not None and settings.min_plausible_amount < value < settings.max_plausible_amount


def extract_current_balance(document: NormalizedDocument, settings: ParserSettings) -> float:
    """
    Find the current balance.

    Raises:
        MissingRequiredFieldError: no plausible balance was found
    """
    lines = document.lines

    for line in lines:
        lower = line.lower()
        if any(keyword in lower for keyword in BALANCE_KEYWORDS):
            amount = parse_currency(line)
            if _plausible_amount(amount, settings):
                logger.debug("Current balance found on keyword line")
                return amount

    # Lines under a loan summary/details heading
    for index, line in enumerate(lines):
        lower = line.lower()
        if not any(keyword in lower for keyword in LOAN_DETAILS_KEYWORDS):
            continue
        for candidate in lines[index:index + settings.summary_window_lines]:
            amount = parse_currency(candidate)
            if _plausible_amount(amount, settings):
                logger.debug("Current balance found in summary section")
                return amount

    raw = first_group(BALANCE_FALLBACK, document.joined, group="amount")
    if raw is not None:
        amount = float(raw.replace(",", ""))
        if _plausible_amount(amount, settings):
            logger.debug("Current balance found by fallback pattern")
            return amount

    raise MissingRequiredFieldError("Current Balance")


def extract_original_principal(document: NormalizedDocument, settings: ParserSettings) -> Optional[float]:
    """Explicitly stated original principal, if any."""
    for line in document:
        lower = line.lower()
        if any(keyword in lower for keyword in PRINCIPAL_KEYWORDS):
            amount = parse_currency(line)
            if _plausible_amount(amount, settings):
                return amount
    return None


# =============================================================================
# LOAN DATES
# =============================================================================

def _first_date_on_keyword_line(
    lines: Sequence[str],
    keywords: List[str],
    date_parser: DateParser,
    window: DateWindow,
) -> Optional[date]:
    for line in lines:
        lower = line.lower()
        if any(word in lower for word in NON_PAYMENT_WORDS):
            continue
        if any(keyword in lower for keyword in keywords):
            dates = window.filter(date_parser.extract_dates(line))
            if dates:
                return dates[0]
    return None


def extract_loan_dates(
    document: NormalizedDocument,
    date_parser: DateParser,
    window: DateWindow,
    default_term_years: int = 10,
) -> Tuple[date, Optional[date]]:
    """
    Find the loan start date and end date.

    Without an explicit start date the earliest in-window date in the document
    is used. Without an explicit end date, start + default_term_years is used
    when that still falls inside the window.

    Raises:
        MissingRequiredFieldError: no start date could be determined
    """
    lines = document.lines
    start_date = _first_date_on_keyword_line(lines, START_DATE_KEYWORDS, date_parser, window)
    end_date = _first_date_on_keyword_line(lines, END_DATE_KEYWORDS, date_parser, window)

    if start_date is None:
        all_dates = sorted(window.filter(d for line in lines for d in date_parser.extract_dates(line)))
        if all_dates:
            start_date = all_dates[0]
            logger.debug(f"No explicit start date; using earliest date {start_date}")

    if start_date is None:
        raise MissingRequiredFieldError("Loan Start Date")

    if end_date is None:
        estimated = start_date + relativedelta(years=default_term_years)
        if estimated in window:
            end_date = estimated
            logger.warning(f"No end date found; estimated {end_date} from a {default_term_years}-year term")

    return start_date, end_date
