"""Exception hierarchy shared by the sandbox, agents and orchestrator.

Infrastructure errors mean the sandbox itself is broken and are never
retried. Content problems are reported as outcomes and reports, not
exceptions. Security violations abort the run with their findings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docproof.artifact.lint import LintIssue


class DocproofError(Exception):
    """Base class for every error raised by docproof."""


class InfrastructureError(DocproofError):
    """The isolation runtime or the host could not run the workload."""


class RuntimeNotFoundError(InfrastructureError):
    """The configured container runtime binary is missing or unusable."""


class SandboxInfrastructureError(InfrastructureError):
    """Spawning the runtime or preparing the scratch directory failed."""


class DependencyRejectedError(InfrastructureError):
    """A dependency name contains characters that are not allowed."""


class SandboxConfigError(InfrastructureError):
    """The sandbox configuration cannot satisfy the requested execution."""


class SandboxTimeoutError(DocproofError):
    """A supervised child process exceeded its wall-clock deadline."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Process timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


class CodeGenerationError(DocproofError):
    """The LLM did not return a usable test program."""


class ReviewParseError(DocproofError):
    """A strict review received a verdict that could not be parsed."""


class SecurityViolationError(DocproofError):
    """The artifact contains destructive, exfiltrating or injected content."""

    def __init__(self, stage: str, findings: list[LintIssue]) -> None:
        summary = "; ".join(issue.message for issue in findings) or "unspecified finding"
        super().__init__(
            f"SECURITY: artifact contains dangerous content during {stage}: {summary}"
        )
        self.stage = stage
        self.findings = list(findings)
