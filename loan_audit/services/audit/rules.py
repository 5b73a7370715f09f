"""
Loan Audit Engine - Audit Rules

Deterministic rule-based issue detection over a LoanRecord.
Every rule is a pure function of the record: it returns one AuditFinding or
None, and never raises.

Rules:
1. Excessive forbearance - total forbearance beyond the recommended maximum
2. Unexplained capitalization - capitalization not following a non-payment period
3. Extended non-payment - payment gaps not covered by forbearance/deferment
4. High interest rate - rate above the typical federal loan cap
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Protocol, runtime_checkable

from ...config import DEFAULT_AUDIT_POLICY, AuditPolicy
from ...models import AuditFinding, AuditIssue, LoanRecord, NonPaymentType
from .formatters import AuditFormatters
from .severity import duration_severity, evaluate_duration

logger = logging.getLogger(__name__)


@runtime_checkable
class AuditRule(Protocol):
    """A single check over a LoanRecord."""

    rule_code: str
    title: str
    docs_url: Optional[str]

    def evaluate(self, record: LoanRecord) -> Optional[AuditFinding]:
        ...


# =============================================================================
# FORBEARANCE
# =============================================================================

@dataclass(frozen=True)
class ExcessiveForbearanceRule:
    """Total forbearance months above the recommended maximum."""
    maximum_months: int = DEFAULT_AUDIT_POLICY.max_forbearance_months
    severe_months: int = DEFAULT_AUDIT_POLICY.severe_forbearance_months
    rule_code: str = "FORBEAR_EXCESS_001"
    title: str = "Excessive Forbearance Duration"
    docs_url: Optional[str] = "https://studentaid.gov/manage-loans/lower-payments/get-temporary-relief/forbearance"

    issue_type: ClassVar[AuditIssue] = AuditIssue.EXCESSIVE_FORBEARANCE

    @classmethod
    def from_policy(cls, policy: AuditPolicy) -> "ExcessiveForbearanceRule":
        return cls(maximum_months=policy.max_forbearance_months, severe_months=policy.severe_forbearance_months)

    def evaluate(self, record: LoanRecord) -> Optional[AuditFinding]:
        total_months = record.total_forbearance_months()
        severity = evaluate_duration(total_months, self.maximum_months, self.severe_months)
        if severity is None:
            return None

        affected_dates = [
            d
            for period in record.non_payment_periods
            if period.kind == NonPaymentType.FORBEARANCE
            for d in (period.start_date, period.end_date)
        ]

        return AuditFinding(
            issue_type=self.issue_type,
            rule_code=self.rule_code,
            title=self.title,
            description=(
                f"Loan has {AuditFormatters.format_integer(total_months)} months of forbearance, "
                f"which exceeds the recommended maximum of "
                f"{AuditFormatters.format_integer(self.maximum_months)} months"
            ),
            severity=severity,
            suggested_action=(
                "Review the full forbearance history with your loan servicer. Extended forbearance "
                "can dramatically increase interest capitalization."
            ),
            affected_dates=affected_dates,
            docs_url=self.docs_url,
        )


# =============================================================================
# CAPITALIZATION
# =============================================================================

@dataclass(frozen=True)
class UnexplainedCapitalizationRule:
    """
    Capitalization events that do not follow the end of a non-payment period.

    An event is explained when it falls within window_days of the end of any
    forbearance or deferment, on either side.
    """
    window_days: int = DEFAULT_AUDIT_POLICY.capitalization_window_days
    high_event_count: int = DEFAULT_AUDIT_POLICY.high_capitalization_event_count
    rule_code: str = "CAP_UNEXP_001"
    title: str = "Unexplained Interest Capitalization"
    docs_url: Optional[str] = "https://studentaid.gov/understand-aid/types/loans/interest-rates#capitalization"

    issue_type: ClassVar[AuditIssue] = AuditIssue.UNEXPLAINED_CAPITALIZATION

    @classmethod
    def from_policy(cls, policy: AuditPolicy) -> "UnexplainedCapitalizationRule":
        return cls(
            window_days=policy.capitalization_window_days,
            high_event_count=policy.high_capitalization_event_count,
        )

    def evaluate(self, record: LoanRecord) -> Optional[AuditFinding]:
        if not record.capitalization_events:
            return None

        unexplained = [
            event for event in record.capitalization_events
            if not any(
                abs((period.end_date - event).days) <= self.window_days
                for period in record.non_payment_periods
            )
        ]
        if not unexplained:
            return None

        dates_text = ", ".join(AuditFormatters.format_date(d) for d in unexplained)
        severity = duration_severity(len(unexplained), moderate=1, high=self.high_event_count)

        return AuditFinding(
            issue_type=self.issue_type,
            rule_code=self.rule_code,
            title=self.title,
            description=(
                f"Found {AuditFormatters.format_integer(len(unexplained))} unexplained interest "
                f"capitalization events on: {dates_text}"
            ),
            severity=severity,
            suggested_action=(
                "Request detailed explanation from your loan servicer for each capitalization event. "
                "Review your loan terms to verify if these events were permitted under your loan agreement."
            ),
            affected_dates=unexplained,
            docs_url=self.docs_url,
        )


# =============================================================================
# NON-PAYMENT
# =============================================================================

@dataclass(frozen=True)
class ExtendedNonPaymentRule:
    """Gaps between payments with no forbearance or deferment covering them."""
    minimum_months: int = DEFAULT_AUDIT_POLICY.min_non_payment_months
    moderate_days: int = DEFAULT_AUDIT_POLICY.moderate_non_payment_days
    high_days: int = DEFAULT_AUDIT_POLICY.high_non_payment_days
    rule_code: str = "NONPAY_001"
    title: str = "Extended Non-Payment Period"
    docs_url: Optional[str] = "https://studentaid.gov/manage-loans/default/getting-out"

    issue_type: ClassVar[AuditIssue] = AuditIssue.EXTENDED_NON_PAYMENT

    @classmethod
    def from_policy(cls, policy: AuditPolicy) -> "ExtendedNonPaymentRule":
        return cls(
            minimum_months=policy.min_non_payment_months,
            moderate_days=policy.moderate_non_payment_days,
            high_days=policy.high_non_payment_days,
        )

    def evaluate(self, record: LoanRecord) -> Optional[AuditFinding]:
        gaps = record.find_unexplained_non_payment_periods(self.minimum_months)
        if not gaps:
            return None

        periods_text = "; ".join(
            f"From {AuditFormatters.format_date(gap.start)} to {AuditFormatters.format_date(gap.end)}"
            for gap in gaps
        )
        total_days = sum(gap.days for gap in gaps)
        severity = duration_severity(total_days, moderate=self.moderate_days, high=self.high_days)

        affected_dates = [d for gap in gaps for d in (gap.start, gap.end)]

        return AuditFinding(
            issue_type=self.issue_type,
            rule_code=self.rule_code,
            title=self.title,
            description=(
                f"Found {AuditFormatters.format_integer(len(gaps))} periods of non-payment without "
                f"corresponding forbearance or deferment status: {periods_text}"
            ),
            severity=severity,
            suggested_action=(
                "Request detailed documentation for these periods to confirm your loan status. "
                "If payments were made during these periods, request verification that they were "
                "properly applied to your account."
            ),
            affected_dates=affected_dates,
            docs_url=self.docs_url,
        )


# =============================================================================
# INTEREST RATE
# =============================================================================

@dataclass(frozen=True)
class HighInterestRateRule:
    """Interest rate above the typical federal loan rate."""
    threshold: float = DEFAULT_AUDIT_POLICY.standard_max_interest_rate
    moderate_excess: float = DEFAULT_AUDIT_POLICY.moderate_excess_interest_rate
    high_excess: float = DEFAULT_AUDIT_POLICY.high_excess_interest_rate
    rule_code: str = "INTEREST_HIGH_001"
    title: str = "Unusually High Interest Rate"
    docs_url: Optional[str] = "https://studentaid.gov/understand-aid/types/loans/interest-rates"

    issue_type: ClassVar[AuditIssue] = AuditIssue.HIGH_INTEREST_RATE

    @classmethod
    def from_policy(cls, policy: AuditPolicy) -> "HighInterestRateRule":
        return cls(
            threshold=policy.standard_max_interest_rate,
            moderate_excess=policy.moderate_excess_interest_rate,
            high_excess=policy.high_excess_interest_rate,
        )

    def evaluate(self, record: LoanRecord) -> Optional[AuditFinding]:
        if record.interest_rate <= self.threshold:
            return None

        excess = record.interest_rate - self.threshold
        severity = duration_severity(excess, moderate=self.moderate_excess, high=self.high_excess)

        return AuditFinding(
            issue_type=self.issue_type,
            rule_code=self.rule_code,
            title=self.title,
            description=(
                f"Loan interest rate of {AuditFormatters.format_interest_rate(record.interest_rate)} "
                f"exceeds typical federal loan rate of {AuditFormatters.format_interest_rate(self.threshold)}"
            ),
            severity=severity,
            suggested_action=(
                "Verify that the interest rate is correctly applied to your loan. If the rate is accurate, "
                "consider researching refinancing options to potentially lower your interest rate and "
                "overall repayment costs."
            ),
            docs_url=self.docs_url,
        )


def default_rules(policy: Optional[AuditPolicy] = None) -> List[AuditRule]:
    """The standard rule set, in evaluation order."""
    policy = policy or DEFAULT_AUDIT_POLICY
    return [
        ExcessiveForbearanceRule.from_policy(policy),
        UnexplainedCapitalizationRule.from_policy(policy),
        ExtendedNonPaymentRule.from_policy(policy),
        HighInterestRateRule.from_policy(policy),
    ]
