"""Run the artifact's own first code example, as written, in the sandbox."""

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum

from pydantic import BaseModel

from docproof.sandbox.executor import Executor
from docproof.sandbox.models import ExecutionOutcome, Language

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "✓ Code executed successfully"

_PY_BLOCK = re.compile(r"```(?:python|py)[ \t]*\n(.*?)```", re.DOTALL)


class FunctionalStatus(str, Enum):
    passed = "pass"
    failed = "fail"
    skipped = "skipped"


class FunctionalResult(BaseModel):
    status: FunctionalStatus
    output: str = ""
    outcome: ExecutionOutcome | None = None

    @classmethod
    def skipped(cls, reason: str) -> FunctionalResult:
        return cls(status=FunctionalStatus.skipped, output=reason)

    @property
    def is_fail(self) -> bool:
        return self.status is FunctionalStatus.failed


def _is_runnable(code: str) -> bool:
    lines = [line for line in code.splitlines() if line.strip() and not line.strip().startswith("#")]
    if any(line.lstrip().startswith(("import ", "from ")) for line in lines):
        return True
    return len(lines) >= 2


def extract_runnable_block(artifact: str) -> str | None:
    """First python block that imports something or has two real lines.

    A block without any ``assert`` or ``print`` gets a success print appended
    so a clean run is visible in the output.
    """
    for match in _PY_BLOCK.finditer(artifact):
        code = match.group(1).strip()
        if not code or not _is_runnable(code):
            continue
        if "assert" not in code and "print" not in code:
            code += f"\nprint('{SUCCESS_MARKER}')"
        return code
    return None


class FunctionalValidator:
    """Lighter check than code validation: no LLM, just the artifact's example."""

    def __init__(self, executor: Executor) -> None:
        self.executor = executor

    async def validate(self, artifact: str, language: Language) -> FunctionalResult:
        if language is not Language.python:
            return FunctionalResult.skipped(f"functional check only supports python, not {language.value}")

        code = extract_runnable_block(artifact)
        if code is None:
            return FunctionalResult.skipped("no runnable python block found")

        env = await asyncio.to_thread(self.executor.prepare, [])
        try:
            outcome = await asyncio.to_thread(self.executor.execute, env, code)
        finally:
            await asyncio.to_thread(self.executor.teardown, env)

        logger.info("Functional check: %s (%dms)", outcome.status.value, outcome.duration_ms)
        status = FunctionalStatus.passed if outcome.is_pass else FunctionalStatus.failed
        return FunctionalResult(status=status, output=outcome.output, outcome=outcome)
