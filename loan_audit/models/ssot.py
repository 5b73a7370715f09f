"""
Loan Audit Engine - Single Source of Truth Models

LoanRecord is the only structure produced by the parsing layer and the only
input to the audit engine. AuditFinding and AuditResult are the only outputs
of the audit engine. All of them are immutable once created.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from dateutil.relativedelta import relativedelta


# =============================================================================
# ENUMS
# =============================================================================

class NonPaymentType(str, Enum):
    FORBEARANCE = "forbearance"
    DEFERMENT = "deferment"


class PaymentType(str, Enum):
    REGULAR = "regular"
    EXTRA_PRINCIPAL = "extra_principal"
    INTEREST_ONLY = "interest_only"
    FEE = "fee"


class AuditIssue(str, Enum):
    EXCESSIVE_FORBEARANCE = "excessive_forbearance"
    UNEXPLAINED_CAPITALIZATION = "unexplained_capitalization"
    EXTENDED_NON_PAYMENT = "extended_non_payment"
    HIGH_INTEREST_RATE = "high_interest_rate"
    INACCURATE_BALANCE = "inaccurate_balance"
    MISAPPLIED_PAYMENT = "misapplied_payment"

    @property
    def display_name(self) -> str:
        return _ISSUE_DISPLAY_NAMES[self]


_ISSUE_DISPLAY_NAMES = {
    AuditIssue.EXCESSIVE_FORBEARANCE: "Excessive Forbearance",
    AuditIssue.UNEXPLAINED_CAPITALIZATION: "Unexplained Interest Capitalization",
    AuditIssue.EXTENDED_NON_PAYMENT: "Extended Non-payment Period",
    AuditIssue.HIGH_INTEREST_RATE: "High Interest Rate",
    AuditIssue.INACCURATE_BALANCE: "Inaccurate Balance",
    AuditIssue.MISAPPLIED_PAYMENT: "Misapplied Payment",
}


class Severity(str, Enum):
    """Ordered severity tiers: LOW < MODERATE < HIGH < CRITICAL."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @property
    def description(self) -> str:
        return _SEVERITY_DESCRIPTIONS[self]

    # str comparison would order alphabetically, so compare by rank
    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_ORDER = [Severity.LOW, Severity.MODERATE, Severity.HIGH, Severity.CRITICAL]

_SEVERITY_DESCRIPTIONS = {
    Severity.LOW: "Low - Minor potential issue",
    Severity.MODERATE: "Moderate - Issue may affect loan terms",
    Severity.HIGH: "High - Significant impact on loan repayment",
    Severity.CRITICAL: "Critical - May violate regulations or severely impact finances",
}


# =============================================================================
# SSOT #1: LOAN RECORD (Output of Parsing Layer)
# =============================================================================

def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end."""
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months


@dataclass(frozen=True)
class DateInterval:
    """Closed date interval."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def intersects(self, other: "DateInterval") -> bool:
        return self.start <= other.end and other.start <= self.end


@dataclass(frozen=True)
class NonPaymentPeriod:
    """A forbearance or deferment interval recorded against the loan."""
    kind: NonPaymentType
    start_date: date
    end_date: date
    reason: Optional[str] = None

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValueError(
                f"Non-payment period ends ({self.end_date}) before it starts ({self.start_date})"
            )

    @property
    def duration_months(self) -> int:
        return months_between(self.start_date, self.end_date)

    @property
    def interval(self) -> DateInterval:
        return DateInterval(self.start_date, self.end_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "reason": self.reason,
            "duration_months": self.duration_months,
        }


@dataclass(frozen=True)
class PaymentRecord:
    """A single payment line. Negative amounts are refunds."""
    payment_date: date
    amount: float
    payment_type: PaymentType = PaymentType.REGULAR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.payment_date.isoformat(),
            "amount": self.amount,
            "type": self.payment_type.value,
        }


@dataclass(frozen=True)
class LoanRecord:
    """
    SSOT #1: The assembled student loan.

    The audit engine reads this and only this. No rule may go back to the
    statement text.
    """
    servicer_name: str
    loan_id: str
    start_date: date
    interest_rate: float
    current_balance: float
    original_principal: float
    end_date: Optional[date] = None
    non_payment_periods: Tuple[NonPaymentPeriod, ...] = ()
    payments: Tuple[PaymentRecord, ...] = ()
    capitalization_events: Tuple[date, ...] = ()

    def total_forbearance_months(self) -> int:
        """Total duration of all forbearance periods in months."""
        return sum(
            p.duration_months for p in self.non_payment_periods
            if p.kind == NonPaymentType.FORBEARANCE
        )

    def total_deferment_months(self) -> int:
        """Total duration of all deferment periods in months."""
        return sum(
            p.duration_months for p in self.non_payment_periods
            if p.kind == NonPaymentType.DEFERMENT
        )

    def total_paid(self) -> float:
        return sum(p.amount for p in self.payments)

    def find_unexplained_non_payment_periods(self, minimum_months: int = 2) -> List[DateInterval]:
        """
        Gaps between consecutive payments that no forbearance or deferment covers.

        A gap counts when it spans at least `minimum_months` whole calendar
        months and does not touch any recorded non-payment period.
        """
        if not self.payments:
            return []

        ordered = sorted(self.payments, key=lambda p: p.payment_date)
        unexplained: List[DateInterval] = []

        for current, following in zip(ordered, ordered[1:]):
            if months_between(current.payment_date, following.payment_date) < minimum_months:
                continue
            gap = DateInterval(current.payment_date, following.payment_date)
            explained = any(gap.intersects(period.interval) for period in self.non_payment_periods)
            if not explained:
                unexplained.append(gap)

        return unexplained

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "servicer_name": self.servicer_name,
            "loan_id": self.loan_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "interest_rate": self.interest_rate,
            "current_balance": self.current_balance,
            "original_principal": self.original_principal,
            "non_payment_periods": [p.to_dict() for p in self.non_payment_periods],
            "payments": [p.to_dict() for p in self.payments],
            "capitalization_events": [d.isoformat() for d in self.capitalization_events],
        }


# =============================================================================
# SSOT #2: AUDIT FINDINGS (Output of Audit Engine)
# =============================================================================

@dataclass(frozen=True)
class AuditFinding:
    """
    A single potential servicing error.

    Equality ignores affected_dates and docs_url: the dates are rebuilt on
    every run and their order is not significant.
    """
    issue_type: AuditIssue
    rule_code: str
    description: str
    severity: Severity
    suggested_action: str
    title: str = ""
    affected_dates: Optional[Tuple[date, ...]] = field(default=None, compare=False)
    docs_url: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.title:
            object.__setattr__(self, "title", self.issue_type.display_name)
        if self.affected_dates is not None and not isinstance(self.affected_dates, tuple):
            object.__setattr__(self, "affected_dates", tuple(self.affected_dates))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "issue_type": self.issue_type.value,
            "rule_code": self.rule_code,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "suggested_action": self.suggested_action,
            "affected_dates": (
                [d.isoformat() for d in self.affected_dates]
                if self.affected_dates is not None else None
            ),
            "docs_url": self.docs_url,
        }


def group_findings_by_issue(findings: List[AuditFinding]) -> Dict[AuditIssue, List[AuditFinding]]:
    """Group findings by issue type, keeping first-seen order."""
    grouped: Dict[AuditIssue, List[AuditFinding]] = {}
    for finding in findings:
        grouped.setdefault(finding.issue_type, []).append(finding)
    return grouped


@dataclass(frozen=True)
class AuditResult:
    """
    SSOT #2: Every finding from one audit run of one LoanRecord.

    Created fresh per run; nothing is cached between runs.
    """
    loan_id: str
    findings: Tuple[AuditFinding, ...] = ()
    audit_id: str = field(default_factory=lambda: str(uuid4()))
    audit_timestamp: datetime = field(default_factory=datetime.now)
    rules_evaluated: int = 0

    def has_issues(self) -> bool:
        return bool(self.findings)

    @property
    def highest_severity(self) -> Optional[Severity]:
        if not self.findings:
            return None
        return max(f.severity for f in self.findings)

    def counts_by_severity(self) -> Dict[Severity, int]:
        counts = {severity: 0 for severity in _SEVERITY_ORDER}
        for finding in self.findings:
            counts[finding.severity] += 1
        return counts

    def grouped_by_issue(self) -> Dict[AuditIssue, List[AuditFinding]]:
        return group_findings_by_issue(list(self.findings))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        highest = self.highest_severity
        return {
            "audit_id": self.audit_id,
            "loan_id": self.loan_id,
            "audit_timestamp": self.audit_timestamp.isoformat(),
            "rules_evaluated": self.rules_evaluated,
            "highest_severity": highest.value if highest else None,
            "counts_by_severity": {s.value: n for s, n in self.counts_by_severity().items()},
            "findings": [f.to_dict() for f in self.findings],
        }
