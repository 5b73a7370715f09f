"""Loan Audit Engine - Parsing Layer

This layer converts raw statement text into LoanRecord (SSOT #1).
The audit engine MUST use LoanRecord exclusively.
"""
from .errors import (
    StatementParsingError,
    DocumentEmptyError,
    UnreadableDocumentError,
    UnsupportedDocumentTypeError,
    MissingRequiredFieldError,
    InvalidFieldFormatError,
    StatementProcessingError,
)
from .field_extractors import LoanServicer
from .normalizer import NormalizedDocument, normalize_pages
from .primitives import DateParser, DateWindow, parse_currency, parse_percentage
from .statement_parser import StudentLoanStatementParser, extract_loan_record

__all__ = [
    "StatementParsingError", "DocumentEmptyError", "UnreadableDocumentError",
    "UnsupportedDocumentTypeError", "MissingRequiredFieldError", "InvalidFieldFormatError",
    "StatementProcessingError",
    "LoanServicer", "NormalizedDocument", "normalize_pages",
    "DateParser", "DateWindow", "parse_currency", "parse_percentage",
    "StudentLoanStatementParser", "extract_loan_record",
]
