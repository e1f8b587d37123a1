"""Verdict returned by the two-phase review."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReviewIssue(BaseModel):
    severity: str = "error"
    category: str = "accuracy"
    complaint: str
    evidence: str = ""

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    @property
    def is_safety(self) -> bool:
        return self.category == "safety"


class ReviewVerdict(BaseModel):
    """
    ``passed`` is the reviewer's own call. Callers that gate on the verdict
    also check ``has_errors``: a reviewer that reports an error-severity issue
    and still says ``passed`` is not trusted.
    """

    passed: bool = True
    issues: list[ReviewIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.issues)

    @property
    def accepted(self) -> bool:
        return self.passed and not self.has_errors
