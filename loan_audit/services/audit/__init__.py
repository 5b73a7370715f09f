"""Loan Audit Engine - Audit Engine

This layer audits LoanRecord and outputs AuditFinding / AuditResult (SSOT #2).
Rules never read statement text.
"""
from .engine import LoanAuditEngine, audit_loan
from .formatters import AuditFormatters
from .rules import (
    AuditRule,
    ExcessiveForbearanceRule,
    UnexplainedCapitalizationRule,
    ExtendedNonPaymentRule,
    HighInterestRateRule,
    default_rules,
)
from .severity import scale_severity, duration_severity, evaluate_duration

__all__ = [
    "LoanAuditEngine",
    "audit_loan",
    "AuditFormatters",
    "AuditRule",
    "ExcessiveForbearanceRule",
    "UnexplainedCapitalizationRule",
    "ExtendedNonPaymentRule",
    "HighInterestRateRule",
    "default_rules",
    "scale_severity",
    "duration_severity",
    "evaluate_duration",
]
