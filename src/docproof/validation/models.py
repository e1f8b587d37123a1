"""Evidence produced by running generated tests against an artifact's patterns."""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field

from docproof.sandbox.models import ExecutionOutcome

# Cap on captured output pasted into prompts.
MAX_OUTPUT_CHARS = 2_000


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "\n...[TRUNCATED]"


class ValidationCase(BaseModel):
    """One usage pattern, the test program written for it and how it ran."""

    pattern_name: str
    generated_code: str = Field(description="Empty when test generation itself failed")
    outcome: ExecutionOutcome

    @property
    def passed(self) -> bool:
        return self.outcome.is_pass


class ValidationReport(BaseModel):
    """
    Aggregate verdict of one code-validation pass.

    Zero cases is not success: it means there was nothing to validate, and
    ``all_passed`` is false. Timeouts count as failures.
    """

    cases: list[ValidationCase] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return sum(1 for case in self.cases if case.passed)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return len(self.cases) - self.passed

    @property
    def is_empty(self) -> bool:
        return not self.cases

    @property
    def all_passed(self) -> bool:
        return self.passed > 0 and self.failed == 0

    def feedback(self) -> str | None:
        """Patch instructions for the regenerator, or ``None`` when everything passed."""
        if self.all_passed:
            return None
        if self.is_empty:
            return (
                "CODE VALIDATION FOUND NOTHING TO RUN.\n"
                "No usage pattern under '## Core Patterns' has a fenced python example.\n"
                "Add at least one '### Pattern Name' with a runnable ```python block "
                "and keep everything else unchanged."
            )

        sections: list[str] = [
            "ARTIFACT PATCH REQUIRED. Do NOT regenerate from scratch.",
            "",
            f"Code validation ran {len(self.cases)} pattern(s): "
            f"{self.passed} passed, {self.failed} failed.",
            "",
        ]

        kept = [case.pattern_name for case in self.cases if case.passed]
        if kept:
            sections.append("PATTERNS THAT PASSED (keep these EXACTLY as-is):")
            sections += [f"- {name}" for name in kept]
            sections.append("")

        sections.append("PATTERNS THAT FAILED (fix or replace ONLY these):")
        for case in self.cases:
            if case.passed:
                continue
            sections += [
                "",
                f"### {case.pattern_name}",
                "Generated test:",
                "```python",
                case.generated_code or "# (test generation failed)",
                "```",
                "Error:",
                "```",
                truncate_output(case.outcome.error_message or ""),
                "```",
            ]

        sections += [
            "",
            "INSTRUCTIONS:",
            "1. Output the COMPLETE artifact.",
            "2. Fix or replace only the failing patterns listed above.",
            "3. Keep every passing pattern and every other section unchanged.",
            "4. Only use APIs that exist in the documented library version.",
        ]
        return "\n".join(sections)
