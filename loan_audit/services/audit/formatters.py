"""Loan Audit Engine - Finding Text Formatters"""
from datetime import date


class AuditFormatters:
    """Consistent rendering of values inside finding descriptions."""

    @staticmethod
    def format_date(value: date) -> str:
        """e.g. "Jan 15, 2024"."""
        return f"{value.strftime('%b')} {value.day}, {value.year}"

    @staticmethod
    def format_interest_rate(rate: float) -> str:
        """e.g. "8.50%"."""
        return f"{rate:,.2f}%"

    @staticmethod
    def format_integer(number: int) -> str:
        """e.g. "1,234"."""
        return f"{number:,}"
