"""Retry and abort decisions for the validation orchestrator."""

from __future__ import annotations

import logging

from docproof.artifact.lint import LintIssue, blocking_errors, security_findings
from docproof.errors import SecurityViolationError

from .models import Phase, RetryState

logger = logging.getLogger(__name__)


class RetryDecision:
    """Encapsulates a retry eligibility decision with its reason."""

    def __init__(self, *, should_retry: bool, reason: str) -> None:
        self.should_retry = should_retry
        self.reason = reason

    def __bool__(self) -> bool:
        return self.should_retry

    def __repr__(self) -> str:
        return f"RetryDecision(should_retry={self.should_retry}, reason={self.reason!r})"


def classify_lint(issues: list[LintIssue], stage: str) -> list[LintIssue]:
    """
    Split linter output into abort vs. retry.

    Raises ``SecurityViolationError`` when any security finding is present,
    whatever the remaining budget. Otherwise returns the non-security errors
    that should drive a format patch (possibly empty).
    """
    findings = security_findings(issues)
    if findings:
        logger.critical(
            "Security violation at %s, aborting with %d finding(s): %s",
            stage,
            len(findings),
            "; ".join(finding.message for finding in findings),
        )
        raise SecurityViolationError(stage, findings)
    return blocking_errors(issues)


def decide_retry(state: RetryState, phase: Phase, *, passed: bool) -> RetryDecision:
    """
    Determine whether a phase result warrants a patch-and-retry.

    Rules (evaluated in priority order):
    1. Passed results never retry.
    2. Budget exhausted: proceed with the best artifact so far.
    3. Otherwise: patch and schedule the next attempt.
    """

    # 1. Pass → no retry needed
    if passed:
        return RetryDecision(should_retry=False, reason=f"{phase.value} passed. No retry needed.")

    # 2. Hard attempt ceiling
    if state.exhausted:
        return RetryDecision(
            should_retry=False,
            reason=(
                f"Max attempts reached ({state.max_attempts}). "
                "Proceeding with best available artifact."
            ),
        )

    # 3. Patch and retry
    return RetryDecision(
        should_retry=True,
        reason=f"{phase.value} failed. Scheduling attempt {state.attempt + 1}/{state.max_attempts}.",
    )
