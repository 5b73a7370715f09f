"""
Loan Audit Engine - Audit Engine

Main orchestrator that runs all audit rules against a LoanRecord.
Output is a list of AuditFinding, or an AuditResult (SSOT #2) summarising one run.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence, Tuple

from ...config import AuditPolicy, DEFAULT_AUDIT_POLICY
from ...models import AuditFinding, AuditIssue, AuditResult, LoanRecord
from .rules import AuditRule, default_rules

logger = logging.getLogger(__name__)


class LoanAuditEngine:
    """
    Runs every registered rule against a LoanRecord.

    Rules are pure and share no state, so they can be evaluated in any order
    or concurrently. An audit always completes; "no findings" is a result.
    """

    def __init__(self, rules: Optional[Sequence[AuditRule]] = None, policy: Optional[AuditPolicy] = None):
        self.policy = policy or DEFAULT_AUDIT_POLICY
        self._rules: List[AuditRule] = list(rules) if rules is not None else default_rules(self.policy)

    @property
    def rules(self) -> Tuple[AuditRule, ...]:
        return tuple(self._rules)

    def add_rule(self, rule: AuditRule) -> None:
        """Register an extra rule; it runs after the existing ones."""
        self._rules.append(rule)

    def perform_audit(self, record: LoanRecord) -> List[AuditFinding]:
        """Evaluate rules in registration order and collect their findings."""
        findings: List[AuditFinding] = []
        for rule in self._rules:
            finding = rule.evaluate(record)
            if finding is not None:
                logger.debug(f"Rule {rule.rule_code} flagged loan {record.loan_id}: {finding.severity.value}")
                findings.append(finding)
        return findings

    def perform_audit_for_issue(self, record: LoanRecord, issue: AuditIssue) -> List[AuditFinding]:
        """Findings of a single issue type."""
        return [f for f in self.perform_audit(record) if f.issue_type == issue]

    def perform_audit_parallel(self, record: LoanRecord, max_workers: Optional[int] = None) -> List[AuditFinding]:
        """
        Evaluate every rule on a worker thread and gather the findings.

        Findings come back in completion order, not registration order; sort by
        rule_code when a stable order is needed.
        """
        if not self._rules:
            return []

        findings: List[AuditFinding] = []
        with ThreadPoolExecutor(max_workers=max_workers or len(self._rules)) as executor:
            futures = {executor.submit(rule.evaluate, record): rule for rule in self._rules}

            for future in as_completed(futures):
                finding = future.result()
                if finding is not None:
                    findings.append(finding)

        return findings

    def audit(self, record: LoanRecord) -> AuditResult:
        """
        Run all rules against a LoanRecord.

        Args:
            record: LoanRecord (SSOT #1) from the parsing layer

        Returns:
            AuditResult (SSOT #2), immutable
        """
        logger.info(f"Starting audit of loan {record.loan_id} with {len(self._rules)} rules")

        findings = self.perform_audit(record)
        result = AuditResult(
            loan_id=record.loan_id,
            findings=tuple(findings),
            rules_evaluated=len(self._rules),
        )

        highest = result.highest_severity
        logger.info(
            f"Audit complete: {len(findings)} findings, "
            f"highest severity {highest.value if highest else 'none'}"
        )
        return result


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def audit_loan(record: LoanRecord) -> AuditResult:
    """Factory function to audit a LoanRecord with the default rule set."""
    engine = LoanAuditEngine()
    return engine.audit(record)
