"""
Loan Audit Engine - Student Loan Statement Parser

Assembles a LoanRecord (SSOT #1) from the per-page text of a servicer
statement. Any required-field failure aborts the parse; there is no partial
record.
"""
from __future__ import annotations
import logging
import math
from datetime import date
from typing import Optional, Sequence

from ...config import ParserSettings, get_parser_settings
from ...models import LoanRecord, PaymentRecord
from .errors import StatementParsingError, StatementProcessingError
from .field_extractors import (
    extract_current_balance,
    extract_interest_rate,
    extract_loan_dates,
    extract_loan_id,
    identify_servicer,
    extract_original_principal,
)
from .normalizer import normalize_pages
from .primitives import DateParser, DateWindow
from .sequence_extractors import (
    extract_capitalization_events,
    extract_non_payment_periods,
    extract_payments,
)

logger = logging.getLogger(__name__)

# Share of historical payments assumed to have gone to principal
PRINCIPAL_SHARE_OF_PAYMENTS = 0.8
PRINCIPAL_ROUNDING_STEP = 500.0


def _round_to_step(value: float, step: float) -> float:
    """Round to the nearest multiple of step, halves away from zero."""
    rounded = math.floor(abs(value) / step + 0.5) * step
    return math.copysign(rounded, value)


def estimate_original_principal(current_balance: float, payments: Sequence[PaymentRecord]) -> float:
    """
    Estimate principal as balance plus 80% of everything paid, to the nearest 500.

    No plausibility bounds are applied to the result.
    """
    total_paid = sum(p.amount for p in payments)
    return _round_to_step(current_balance + PRINCIPAL_SHARE_OF_PAYMENTS * total_paid, PRINCIPAL_ROUNDING_STEP)


# =============================================================================
# MAIN PARSER CLASS
# =============================================================================

class StudentLoanStatementParser:
    """
    Parse student loan statement text into a LoanRecord.

    The date parser is built once and reused for every statement; `today`
    anchors the validity window (25 years back, 30 forward by default).
    """

    def __init__(
        self,
        settings: Optional[ParserSettings] = None,
        date_parser: Optional[DateParser] = None,
        today: Optional[date] = None,
    ):
        self.settings = settings or get_parser_settings()
        self.date_parser = date_parser or DateParser()
        self.today = today

    def _window(self) -> DateWindow:
        return DateWindow.around(
            self.today or date.today(),
            years_past=self.settings.valid_years_past,
            years_future=self.settings.valid_years_future,
        )

    def parse(self, pages: Sequence[Optional[str]]) -> LoanRecord:
        """
        Parse statement pages and return the LoanRecord.

        Raises:
            StatementParsingError: a structural or required-field failure
            StatementProcessingError: any unexpected fault, chained to its cause
        """
        try:
            return self._parse(pages)
        except StatementParsingError:
            raise
        except Exception as e:
            logger.error(f"Unexpected failure while parsing statement: {e}")
            raise StatementProcessingError(f"Statement processing failed: {e}", cause=e) from e

    def _parse(self, pages: Sequence[Optional[str]]) -> LoanRecord:
        settings = self.settings
        document = normalize_pages(pages, settings.min_line_length)
        logger.info(f"Parsing statement: {document.page_count} pages, {len(document)} lines")

        window = self._window()

        servicer_name = identify_servicer(document, settings.header_window_lines)
        loan_id = extract_loan_id(document)
        interest_rate = extract_interest_rate(document)
        current_balance = extract_current_balance(document, settings)
        start_date, end_date = extract_loan_dates(
            document, self.date_parser, window, settings.default_loan_term_years
        )

        payments = extract_payments(document, self.date_parser, window)
        periods = extract_non_payment_periods(document, self.date_parser, window, settings)
        capitalization_events = extract_capitalization_events(document, self.date_parser, window)

        original_principal = extract_original_principal(document, settings)
        if original_principal is None:
            original_principal = estimate_original_principal(current_balance, payments)
            logger.warning(f"Original principal not stated; estimated {original_principal:.2f}")

        record = LoanRecord(
            servicer_name=servicer_name,
            loan_id=loan_id,
            start_date=start_date,
            end_date=end_date,
            interest_rate=interest_rate,
            current_balance=current_balance,
            original_principal=original_principal,
            non_payment_periods=tuple(periods),
            payments=tuple(payments),
            capitalization_events=tuple(capitalization_events),
        )

        logger.info(
            f"Parsed loan {loan_id} ({servicer_name}): {len(payments)} payments, "
            f"{len(periods)} non-payment periods, {len(capitalization_events)} capitalization events"
        )
        return record


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def extract_loan_record(pages: Sequence[Optional[str]], today: Optional[date] = None) -> LoanRecord:
    """Factory function to parse statement pages into a LoanRecord."""
    parser = StudentLoanStatementParser(today=today)
    return parser.parse(pages)
