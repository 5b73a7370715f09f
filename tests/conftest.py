"""Shared fixtures for the loan audit test suite."""
from datetime import date

import pytest

from loan_audit.models import LoanRecord


TODAY = date(2024, 6, 1)

STATEMENT_SUMMARY_PAGE = """
NAVIENT
Student Loan Statement
Statement Date: 05/01/2024
Loan ID: NAV-20481234
Loan Summary
Current Balance: $24,350.75
Original Principal: $30,000.00
Interest Rate: 6.8%
Disbursement Date: 09/15/2015
Maturity Date: 09/15/2035
"""

STATEMENT_ACTIVITY_PAGE = """
Forbearance History
Forbearance from 01/01/2020 through 12/31/2020 due to economic hardship.
Type: General forbearance
Payment History:
05/15/2019 Payment Received $350.00
06/15/2019 Payment Received $350.00
07/15/2019 Payment Received $350.00
08/15/2019 Payment Received $350.00
01/15/2021 Payment Received $350.00
02/15/2021 Payment Received $350.00
02/15/2021 Payment Received $350.00
03/15/2021 Extra principal payment $500.00
END OF PAYMENT HISTORY
Important information about interest that is added to your loan principal.
Interest Capitalization Event on 01/15/2021: $1,245.30 capitalized.
Contact customer service with any questions about the charges listed above.
"""


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def statement_pages():
    """Two-page Navient statement with one forbearance and one capitalization."""
    return [STATEMENT_SUMMARY_PAGE, STATEMENT_ACTIVITY_PAGE]


@pytest.fixture
def make_record():
    """Build a LoanRecord with quiet defaults; override any field by keyword."""
    def _make(**overrides):
        fields = dict(
            servicer_name="Navient",
            loan_id="NAV-0001",
            start_date=date(2015, 9, 15),
            end_date=date(2035, 9, 15),
            interest_rate=5.0,
            current_balance=20000.0,
            original_principal=30000.0,
        )
        fields.update(overrides)
        return LoanRecord(**fields)
    return _make
