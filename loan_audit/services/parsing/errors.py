"""
Loan Audit Engine - Parsing Errors

Structural errors (empty, unreadable, unsupported) and field errors (missing,
invalid) both abort extraction; no partial LoanRecord is ever returned.
"""
from typing import Optional


class StatementParsingError(Exception):
    """Base exception for statement extraction errors."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.field_name = field_name
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "fieldName": self.field_name,
            "cause": str(self.cause) if self.cause else None,
        }


class DocumentEmptyError(StatementParsingError):
    """The document has no pages."""

    def __init__(self):
        super().__init__("Document contains no pages")


class UnreadableDocumentError(StatementParsingError):
    """No usable text lines survived normalization (e.g. image-only scans)."""

    def __init__(self):
        super().__init__("Document contains no extractable text")


class UnsupportedDocumentTypeError(StatementParsingError):
    """A page was supplied as something other than text."""

    def __init__(self, detail: str = "Unsupported document type"):
        super().__init__(detail)


class MissingRequiredFieldError(StatementParsingError):
    """A field the audit cannot run without was not found by any strategy."""

    def __init__(self, field_name: str):
        super().__init__(f"Required field '{field_name}' is missing", field_name=field_name)


class InvalidFieldFormatError(StatementParsingError):
    """A field was found but its value is outside the accepted range."""

    def __init__(self, field_name: str, value: Optional[object] = None):
        message = f"Field '{field_name}' has an invalid format"
        if value is not None:
            message = f"{message}: {value}"
        super().__init__(message, field_name=field_name)
        self.value = value


class StatementProcessingError(StatementParsingError):
    """Unexpected internal fault during extraction."""
    pass
