from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest

from docproof.sandbox.models import ExecutionOutcome, Language, SandboxEnvironment
from docproof.validation.functional import (
    SUCCESS_MARKER,
    FunctionalStatus,
    FunctionalValidator,
    extract_runnable_block,
)


class TestExtractRunnableBlock:
    def test_skips_trivial_blocks(self) -> None:
        artifact = "```python\nx\n```\n\n```python\nimport json\njson.dumps({})\n```\n"
        block = extract_runnable_block(artifact)
        assert block is not None
        assert block.startswith("import json")

    def test_appends_success_print(self) -> None:
        block = extract_runnable_block("```py\nimport json\n```")
        assert block == f"import json\nprint('{SUCCESS_MARKER}')"

    def test_keeps_block_that_asserts(self) -> None:
        block = extract_runnable_block("```python\nimport json\nassert json.dumps(1) == '1'\n```")
        assert block is not None
        assert SUCCESS_MARKER not in block

    def test_none_when_nothing_runnable(self) -> None:
        assert extract_runnable_block("```bash\nls\n```") is None


class TestFunctionalValidator:
    @pytest.mark.asyncio
    async def test_non_python_is_skipped(self, valid_artifact: str) -> None:
        executor = Mock()
        result = await FunctionalValidator(executor).validate(valid_artifact, Language.rust)
        assert result.status is FunctionalStatus.skipped
        executor.prepare.assert_not_called()

    @pytest.mark.asyncio
    async def test_runs_first_block_without_dependencies(self, valid_artifact: str) -> None:
        executor = Mock()
        executor.prepare.return_value = SandboxEnvironment(
            workdir=Path("/tmp/docproof-f"), unit_name="docproof-test-f", language=Language.python
        )
        executor.execute.return_value = ExecutionOutcome.failed("ModuleNotFoundError: acme", 5)

        result = await FunctionalValidator(executor).validate(valid_artifact, Language.python)

        executor.prepare.assert_called_once_with([])
        executor.teardown.assert_called_once()
        assert result.is_fail
        assert "ModuleNotFoundError" in result.output
