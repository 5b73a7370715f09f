"""
Audit Engine Tests

Verifies:
1. Default rules run in registration order
2. Extra rules can be registered and are evaluated last
3. Parallel evaluation produces the same findings as sequential
4. AuditResult summarises a run
5. A record from the parser flows straight into the engine
"""
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

import pytest

from loan_audit import audit_loan, extract_loan_record
from loan_audit.config import AuditPolicy
from loan_audit.models import (
    AuditFinding,
    AuditIssue,
    LoanRecord,
    NonPaymentPeriod,
    NonPaymentType,
    PaymentRecord,
    Severity,
)
from loan_audit.services.audit import AuditRule, LoanAuditEngine


@dataclass(frozen=True)
class BalanceAbovePrincipalRule:
    """Test rule: balance has grown past the original principal."""
    rule_code: str = "BALANCE_GROWTH_001"
    title: str = "Balance Above Original Principal"
    docs_url: Optional[str] = None

    def evaluate(self, record: LoanRecord) -> Optional[AuditFinding]:
        if record.current_balance <= record.original_principal:
            return None
        return AuditFinding(
            issue_type=AuditIssue.INACCURATE_BALANCE,
            rule_code=self.rule_code,
            title=self.title,
            description="Current balance exceeds the original principal",
            severity=Severity.LOW,
            suggested_action="Request a full balance history from your loan servicer.",
        )


@pytest.fixture
def troubled_record(make_record):
    """Trips every default rule."""
    return make_record(
        interest_rate=10.0,
        non_payment_periods=(
            NonPaymentPeriod(NonPaymentType.FORBEARANCE, date(2015, 1, 1), date(2020, 1, 1)),
        ),
        payments=(
            PaymentRecord(date(2021, 1, 15), 350.0),
            PaymentRecord(date(2021, 9, 15), 350.0),
        ),
        capitalization_events=(date(2022, 6, 1),),
    )


class TestLoanAuditEngine:
    """Rule orchestration."""

    def test_registration_order(self, troubled_record):
        findings = LoanAuditEngine().perform_audit(troubled_record)
        assert [f.rule_code for f in findings] == [
            "FORBEAR_EXCESS_001", "CAP_UNEXP_001", "NONPAY_001", "INTEREST_HIGH_001",
        ]

    def test_add_rule_runs_last(self, troubled_record):
        engine = LoanAuditEngine()
        rule = BalanceAbovePrincipalRule()
        assert isinstance(rule, AuditRule)

        engine.add_rule(rule)
        record = replace(troubled_record, current_balance=35000.0)
        findings = engine.perform_audit(record)

        assert len(engine.rules) == 5
        assert findings[-1].issue_type == AuditIssue.INACCURATE_BALANCE

    def test_perform_audit_for_issue(self, troubled_record):
        findings = LoanAuditEngine().perform_audit_for_issue(troubled_record, AuditIssue.HIGH_INTEREST_RATE)
        assert [f.rule_code for f in findings] == ["INTEREST_HIGH_001"]

    def test_parallel_matches_sequential(self, troubled_record):
        engine = LoanAuditEngine()
        sequential = engine.perform_audit(troubled_record)
        parallel = engine.perform_audit_parallel(troubled_record, max_workers=2)

        assert sorted(parallel, key=lambda f: f.rule_code) == sorted(sequential, key=lambda f: f.rule_code)

    def test_quiet_record(self, make_record):
        engine = LoanAuditEngine()
        assert engine.perform_audit(make_record()) == []
        assert engine.perform_audit_parallel(make_record()) == []

    def test_no_rules(self, troubled_record):
        engine = LoanAuditEngine(rules=[])
        assert engine.perform_audit(troubled_record) == []
        assert engine.perform_audit_parallel(troubled_record) == []
        assert engine.audit(troubled_record).rules_evaluated == 0

    def test_custom_policy(self, make_record):
        engine = LoanAuditEngine(policy=AuditPolicy(standard_max_interest_rate=4.0))
        findings = engine.perform_audit(make_record(interest_rate=5.0))

        assert len(findings) == 1
        assert findings[0].severity == Severity.LOW

    def test_audit_is_repeatable(self, troubled_record):
        engine = LoanAuditEngine()
        first = engine.audit(troubled_record)
        second = engine.audit(troubled_record)

        assert first.findings == second.findings
        assert first.audit_id != second.audit_id


class TestAuditResult:
    """Summary of one audit run."""

    def test_summary(self, troubled_record):
        result = LoanAuditEngine().audit(troubled_record)

        assert result.loan_id == "NAV-0001"
        assert result.rules_evaluated == 4
        assert result.has_issues()
        assert result.highest_severity == Severity.HIGH
        assert result.counts_by_severity() == {
            Severity.LOW: 0,
            Severity.MODERATE: 1,
            Severity.HIGH: 3,
            Severity.CRITICAL: 0,
        }
        assert list(result.grouped_by_issue()) == [
            AuditIssue.EXCESSIVE_FORBEARANCE,
            AuditIssue.UNEXPLAINED_CAPITALIZATION,
            AuditIssue.EXTENDED_NON_PAYMENT,
            AuditIssue.HIGH_INTEREST_RATE,
        ]

    def test_clean_result(self, make_record):
        result = audit_loan(make_record())
        assert not result.has_issues()
        assert result.highest_severity is None
        assert result.to_dict()["highest_severity"] is None

    def test_to_dict(self, troubled_record):
        data = audit_loan(troubled_record).to_dict()
        assert data["rules_evaluated"] == 4
        assert data["counts_by_severity"]["high"] == 3
        assert len(data["findings"]) == 4


class TestParseThenAudit:
    """Statement text through to audit result."""

    def test_sample_statement_is_clean(self, statement_pages, today):
        record = extract_loan_record(statement_pages, today=today)
        result = audit_loan(record)

        assert result.loan_id == "NAV-20481234"
        assert result.findings == ()
