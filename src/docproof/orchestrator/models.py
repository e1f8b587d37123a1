"""Pydantic models for the validation orchestrator."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from docproof.artifact.lint import LintIssue
from docproof.review.models import ReviewIssue
from docproof.validation.models import ValidationReport


class Phase(str, Enum):
    format = "format"
    functional = "functional"
    code_validation = "code_validation"
    review = "review"


class AttemptRecord(BaseModel):
    """An immutable snapshot of one phase run within one validation pass."""

    attempt: int = Field(ge=1)
    phase: Phase
    passed: bool
    detail: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RetryState(BaseModel):
    """
    Budget and current artifact for one retry loop.

    ``attempt`` is 1-based. ``max_retries = N`` allows ``N + 1`` attempts, so
    a zero budget still runs exactly one pass.
    """

    attempt: int = Field(default=1, ge=1)
    max_retries: int = Field(ge=0)
    artifact: str

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


class ArtifactMetadata(BaseModel):
    """Facts the final normalisation step needs that the artifact may lack."""

    version: str | None = None
    license_name: str | None = None
    project_urls: list[tuple[str, str]] = Field(default_factory=list)
    generated_with: str | None = None


class OrchestrationResult(BaseModel):
    """The final artifact plus everything the caller should know about how it got there."""

    artifact: str

    format_attempts: int = Field(ge=1, description="How many format checks ran")
    attempts: list[AttemptRecord] = Field(
        default_factory=list,
        description="Full history of every phase run",
    )

    # Soft findings, reported but not blocking
    unresolved_warnings: list[ReviewIssue] = Field(
        default_factory=list,
        description="Review issues still open when the review budget ran out",
    )
    lint_warnings: list[LintIssue] = Field(
        default_factory=list,
        description="Non-security lint errors left after final normalisation",
    )

    code_validation: ValidationReport | None = Field(
        default=None,
        description="Report from the last code-validation pass, if one ran",
    )
