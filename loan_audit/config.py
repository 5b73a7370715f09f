"""
Loan Audit Engine - Configuration

Parser settings and audit policy thresholds. Every value can be overridden
from the environment using the LOAN_AUDIT_ prefix.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "LOAN_AUDIT_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_int(name: str, default: int) -> int:
    return int(_env(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(_env(name, str(default)))


# =============================================================================
# PARSER SETTINGS
# =============================================================================

@dataclass(frozen=True)
class ParserSettings:
    """Heuristic limits used by the statement extraction pipeline."""

    # Normalization
    min_line_length: int = field(default_factory=lambda: _env_int("MIN_LINE_LENGTH", 5))
    header_window_lines: int = field(default_factory=lambda: _env_int("HEADER_WINDOW_LINES", 30))

    # Date validity window, relative to the parse date
    valid_years_past: int = field(default_factory=lambda: _env_int("VALID_YEARS_PAST", 25))
    valid_years_future: int = field(default_factory=lambda: _env_int("VALID_YEARS_FUTURE", 30))
    default_loan_term_years: int = field(default_factory=lambda: _env_int("DEFAULT_LOAN_TERM_YEARS", 10))

    # Currency acceptance bounds (exclusive)
    min_plausible_amount: float = field(default_factory=lambda: _env_float("MIN_PLAUSIBLE_AMOUNT", 100.0))
    max_plausible_amount: float = field(default_factory=lambda: _env_float("MAX_PLAUSIBLE_AMOUNT", 500000.0))

    # Section scanning
    summary_window_lines: int = field(default_factory=lambda: _env_int("SUMMARY_WINDOW_LINES", 10))
    non_payment_section_max_lines: int = field(
        default_factory=lambda: _env_int("NON_PAYMENT_SECTION_MAX_LINES", 15)
    )
    section_period_max_days: int = field(default_factory=lambda: _env_int("SECTION_PERIOD_MAX_DAYS", 60))

    @classmethod
    def from_env(cls) -> "ParserSettings":
        """Create ParserSettings from environment variables."""
        return cls()

    def validate(self) -> None:
        """Validate that the configured limits are coherent."""
        if self.min_line_length < 0:
            raise ValueError("MIN_LINE_LENGTH must not be negative")
        if self.min_plausible_amount >= self.max_plausible_amount:
            raise ValueError("MIN_PLAUSIBLE_AMOUNT must be below MAX_PLAUSIBLE_AMOUNT")
        if self.valid_years_past < 0 or self.valid_years_future < 0:
            raise ValueError("Date validity window must not be negative")


_parser_settings: Optional[ParserSettings] = None


def get_parser_settings() -> ParserSettings:
    """Get the process-wide parser settings (created on first use)."""
    global _parser_settings
    if _parser_settings is None:
        _parser_settings = ParserSettings.from_env()
        _parser_settings.validate()
    return _parser_settings


# =============================================================================
# AUDIT POLICY
# =============================================================================

class AuditPolicy(BaseModel):
    """
    Thresholds shared by the audit rules.

    Defaults follow federal student-loan guidance: forbearance beyond three
    years is flagged, beyond five is severe, and 6.8% is the historical cap
    on federal loan rates.
    """
    model_config = ConfigDict(frozen=True)

    # Forbearance
    max_forbearance_months: int = Field(default=36, gt=0)
    severe_forbearance_months: int = Field(default=60, gt=0)

    # Non-payment gaps
    min_non_payment_months: int = Field(default=2, ge=1)
    moderate_non_payment_days: int = Field(default=90, gt=0)
    high_non_payment_days: int = Field(default=180, gt=0)

    # Interest rate
    standard_max_interest_rate: float = Field(default=6.8, ge=0, le=20)
    moderate_excess_interest_rate: float = Field(default=1.5, gt=0)
    high_excess_interest_rate: float = Field(default=3.0, gt=0)

    # Capitalization
    high_capitalization_event_count: int = Field(default=3, ge=1)
    capitalization_window_days: int = Field(default=30, ge=0)

    @classmethod
    def from_env(cls) -> "AuditPolicy":
        """Build a policy from LOAN_AUDIT_* variables, keeping defaults for unset ones."""
        overrides: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                overrides[name] = raw
        return cls.model_validate(overrides)


DEFAULT_AUDIT_POLICY = AuditPolicy()


# =============================================================================
# LOGGING
# =============================================================================

def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stream handler to the package logger."""
    level_name = (level or _env("LOG_LEVEL", "INFO")).upper()
    package_logger = logging.getLogger("loan_audit")
    package_logger.setLevel(level_name)
    if not any(isinstance(h, logging.StreamHandler) for h in package_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)
