"""
Statement Parser Tests

End-to-end extraction of a LoanRecord from statement pages.

Verifies:
1. A complete statement assembles every field and sequence
2. Structural failures surface before any field is read
3. Required-field failures abort with no partial record
4. Original principal is estimated when not stated
5. No returned date lies outside the validity window
6. Unexpected faults are wrapped, never swallowed
"""
import logging
from datetime import date

import pytest

from loan_audit.config import ParserSettings
from loan_audit.models import NonPaymentType, PaymentRecord, PaymentType
from loan_audit.services.parsing import statement_parser
from loan_audit.services.parsing.errors import (
    DocumentEmptyError,
    InvalidFieldFormatError,
    MissingRequiredFieldError,
    StatementParsingError,
    StatementProcessingError,
    UnreadableDocumentError,
)
from loan_audit.services.parsing.primitives import DateWindow
from loan_audit.services.parsing.statement_parser import (
    StudentLoanStatementParser,
    estimate_original_principal,
    extract_loan_record,
)


@pytest.fixture
def parser(today):
    return StudentLoanStatementParser(settings=ParserSettings(), today=today)


# =============================================================================
# FULL STATEMENT
# =============================================================================

class TestFullStatement:
    """A complete two-page statement."""

    def test_fields(self, parser, statement_pages):
        record = parser.parse(statement_pages)

        assert record.servicer_name == "Navient"
        assert record.loan_id == "NAV-20481234"
        assert record.interest_rate == 6.8
        assert record.current_balance == 24350.75
        assert record.original_principal == 30000.0
        assert record.start_date == date(2015, 9, 15)
        assert record.end_date == date(2035, 9, 15)

    def test_payments(self, parser, statement_pages):
        record = parser.parse(statement_pages)

        assert len(record.payments) == 7
        assert record.payments[0] == PaymentRecord(date(2019, 5, 15), 350.0)
        assert record.payments[-1] == PaymentRecord(date(2021, 3, 15), 500.0, PaymentType.EXTRA_PRINCIPAL)
        assert record.total_paid() == 2600.0

    def test_non_payment_periods(self, parser, statement_pages):
        record = parser.parse(statement_pages)

        assert len(record.non_payment_periods) == 1
        period = record.non_payment_periods[0]
        assert period.kind == NonPaymentType.FORBEARANCE
        assert (period.start_date, period.end_date) == (date(2020, 1, 1), date(2020, 12, 31))
        assert period.reason == "Economic Hardship"

    def test_capitalization_events(self, parser, statement_pages):
        record = parser.parse(statement_pages)
        assert record.capitalization_events == (date(2021, 1, 15),)

    def test_factory(self, statement_pages, today):
        record = extract_loan_record(statement_pages, today=today)
        assert record.loan_id == "NAV-20481234"

    def test_missing_page_is_skipped(self, parser, statement_pages):
        record = parser.parse([statement_pages[0], None, statement_pages[1]])
        assert record.loan_id == "NAV-20481234"
        assert len(record.payments) == 7

    def test_parse_is_repeatable(self, parser, statement_pages):
        assert parser.parse(statement_pages) == parser.parse(statement_pages)


# =============================================================================
# FAILURES
# =============================================================================

class TestFailures:
    """Structural and field-level failures abort the parse."""

    def test_empty_document(self, parser, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("field extractor must not run")

        monkeypatch.setattr(statement_parser, "identify_servicer", fail)

        with pytest.raises(DocumentEmptyError):
            parser.parse([])

    def test_unreadable_document(self, parser):
        with pytest.raises(UnreadableDocumentError):
            parser.parse(["   ", "\n\n", None])

    def test_interest_rate_out_of_range(self, parser, statement_pages):
        pages = [statement_pages[0].replace("6.8%", "25.0%"), statement_pages[1]]
        with pytest.raises(InvalidFieldFormatError) as exc_info:
            parser.parse(pages)
        assert exc_info.value.field_name == "interestRate"

    def test_missing_servicer(self, parser):
        pages = ["statement of account\ninterest rate: 5.0%\ncurrent balance: $1,000.00"]
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            parser.parse(pages)
        assert exc_info.value.field_name == "Loan Servicer"

    def test_missing_balance(self, parser):
        pages = ["NAVIENT\nInterest Rate: 5.0%\nDisbursement Date: 09/15/2015"]
        with pytest.raises(MissingRequiredFieldError, match="Current Balance"):
            parser.parse(pages)

    def test_unexpected_fault_is_wrapped(self, parser, statement_pages, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(statement_parser, "extract_payments", explode)

        with pytest.raises(StatementProcessingError) as exc_info:
            parser.parse(statement_pages)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.cause is exc_info.value.__cause__
        assert "boom" in exc_info.value.to_dict()["message"]

    def test_errors_share_base_class(self):
        assert issubclass(MissingRequiredFieldError, StatementParsingError)
        assert issubclass(StatementProcessingError, StatementParsingError)
        assert MissingRequiredFieldError("Current Balance").to_dict() == {
            "error": "MissingRequiredFieldError",
            "message": "Required field 'Current Balance' is missing",
            "fieldName": "Current Balance",
            "cause": None,
        }


# =============================================================================
# ESTIMATION AND INVARIANTS
# =============================================================================

class TestEstimation:
    """Original principal estimation."""

    def test_estimated_when_not_stated(self, parser, statement_pages, caplog):
        pages = [statement_pages[0].replace("Original Principal: $30,000.00\n", ""), statement_pages[1]]

        with caplog.at_level(logging.WARNING, logger="loan_audit"):
            record = parser.parse(pages)

        # 24,350.75 + 0.8 * 2,600 = 26,430.75
        assert record.original_principal == 26500.0
        assert "estimated" in caplog.text

    @pytest.mark.parametrize("balance,amounts,expected", [
        (1000.0, [], 1000.0),
        (750.0, [], 1000.0),
        (1249.99, [], 1000.0),
        (10000.0, [1000.0, -250.0], 10500.0),
    ])
    def test_estimate_rounding(self, balance, amounts, expected):
        payments = [PaymentRecord(date(2023, 1, 15), amount) for amount in amounts]
        assert estimate_original_principal(balance, payments) == expected


class TestDateWindowInvariant:
    """No returned date lies outside the validity window."""

    def test_all_dates_in_window(self, parser, statement_pages, today):
        pages = statement_pages + [
            "Archived Correspondence\n"
            "01/15/1980 Payment Received $350.00\n"
            "Forbearance from 01/01/1985 through 06/30/1985 on a prior account.\n"
            "Interest capitalized on 02/01/2070 per projection."
        ]
        record = parser.parse(pages)
        window = DateWindow.around(today)

        dates = [record.start_date, record.end_date]
        dates += [p.payment_date for p in record.payments]
        dates += [d for p in record.non_payment_periods for d in (p.start_date, p.end_date)]
        dates += list(record.capitalization_events)

        assert all(d in window for d in dates if d is not None)
        assert date(1980, 1, 15) not in [p.payment_date for p in record.payments]
