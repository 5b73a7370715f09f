"""Loan Audit Engine - student loan statement extraction and servicing audit."""
import logging

from .config import AuditPolicy, ParserSettings, configure_logging, get_parser_settings
from .models import AuditFinding, AuditIssue, AuditResult, LoanRecord, Severity
from .services.audit import LoanAuditEngine, audit_loan
from .services.parsing import StudentLoanStatementParser, extract_loan_record

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AuditPolicy", "ParserSettings", "configure_logging", "get_parser_settings",
    "AuditFinding", "AuditIssue", "AuditResult", "LoanRecord", "Severity",
    "LoanAuditEngine", "audit_loan",
    "StudentLoanStatementParser", "extract_loan_record",
]
