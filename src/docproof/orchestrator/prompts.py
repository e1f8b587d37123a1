"""Deterministic patch prompts for the regenerator, one per failing phase."""

from __future__ import annotations

from docproof.artifact.lint import LintIssue
from docproof.validation.models import truncate_output


def _patch_prompt(artifact: str, report: list[str]) -> str:
    sections: list[str] = [
        "Here is the current artifact:",
        "",
        artifact,
        "",
        *report,
    ]
    return "\n".join(sections)


def build_format_patch_prompt(artifact: str, errors: list[LintIssue]) -> str:
    """
    Embed the artifact and its non-security lint errors.

    Security findings never reach this function; they abort the run instead.
    """
    return _patch_prompt(
        artifact,
        [
            "FORMAT VALIDATION FAILED:",
            *(f"- [{issue.category}] {issue.message}" for issue in errors),
            "",
            "Please fix these format issues. Keep all content intact.",
        ],
    )


def build_functional_patch_prompt(artifact: str, error: str) -> str:
    return _patch_prompt(
        artifact,
        [
            "CODE EXECUTION FAILED:",
            truncate_output(error),
            "",
            "Fix the code examples that don't work. Keep all other content intact.",
        ],
    )


def build_code_validation_patch_prompt(artifact: str, feedback: str) -> str:
    return _patch_prompt(artifact, [feedback])


def build_review_patch_prompt(artifact: str, feedback: str) -> str:
    return _patch_prompt(artifact, [feedback])
