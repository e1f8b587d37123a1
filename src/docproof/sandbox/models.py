"""
Execution contract for the docproof sandbox.

An ``ExecutionOutcome`` is a content signal: the code ran and either passed,
failed or hung. Infrastructure problems are raised as exceptions instead and
never appear here.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Language(str, Enum):
    """Languages the container executor knows how to run."""

    python = "python"
    javascript = "javascript"
    typescript = "typescript"
    rust = "rust"
    go = "go"

    @classmethod
    def parse(cls, value: str | Language) -> Language:
        """Resolve a language name, falling back to Python for unknown values."""
        if isinstance(value, Language):
            return value
        normalized = value.strip().lower()
        aliases = {"js": "javascript", "node": "javascript", "ts": "typescript", "golang": "go"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.python


class ExecutionStatus(str, Enum):
    """Exactly one of these holds for every execution."""

    passed = "pass"
    failed = "fail"
    timeout = "timeout"  # unknown, possibly retryable; never proof of wrongness


class ExecutionOutcome(BaseModel):
    """Tri-state result of running one program inside a sandbox."""

    model_config = ConfigDict(frozen=True)

    status: ExecutionStatus
    output: str = Field(
        default="",
        description="stdout on pass, combined stdout/stderr on fail, reason on timeout",
    )
    duration_ms: int = Field(default=0, ge=0)

    @classmethod
    def passed(cls, stdout: str, duration_ms: int = 0) -> ExecutionOutcome:
        return cls(status=ExecutionStatus.passed, output=stdout, duration_ms=duration_ms)

    @classmethod
    def failed(cls, output: str, duration_ms: int = 0) -> ExecutionOutcome:
        return cls(status=ExecutionStatus.failed, output=output, duration_ms=duration_ms)

    @classmethod
    def timed_out(cls, timeout_s: float, duration_ms: int = 0) -> ExecutionOutcome:
        return cls(
            status=ExecutionStatus.timeout,
            output=f"Test execution timed out after {timeout_s:g}s",
            duration_ms=duration_ms,
        )

    @property
    def is_pass(self) -> bool:
        return self.status == ExecutionStatus.passed

    @property
    def is_fail(self) -> bool:
        return self.status == ExecutionStatus.failed

    @property
    def is_timeout(self) -> bool:
        return self.status == ExecutionStatus.timeout

    @property
    def error_message(self) -> str | None:
        """Human-readable failure reason, ``None`` for a pass."""
        if self.is_pass:
            return None
        return self.output


class SandboxEnvironment(BaseModel):
    """
    A prepared scratch workspace plus the container name that will use it.

    Created by ``Executor.prepare`` and owned by a single validation call.
    It is reused for every execution of that call and destroyed by
    ``Executor.teardown``.
    """

    workdir: Path
    unit_name: str
    dependencies: list[str] = Field(default_factory=list)
    language: Language = Language.python
