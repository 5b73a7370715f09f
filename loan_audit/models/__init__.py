"""Loan Audit Engine - Data Models"""
from .ssot import (
    # Enums
    NonPaymentType, PaymentType, AuditIssue, Severity,
    # SSOT #1: Parsing Output
    DateInterval, NonPaymentPeriod, PaymentRecord, LoanRecord, months_between,
    # SSOT #2: Audit Output
    AuditFinding, AuditResult, group_findings_by_issue,
)

__all__ = [
    "NonPaymentType", "PaymentType", "AuditIssue", "Severity",
    "DateInterval", "NonPaymentPeriod", "PaymentRecord", "LoanRecord", "months_between",
    "AuditFinding", "AuditResult", "group_findings_by_issue",
]
