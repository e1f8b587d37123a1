"""LLM-backed synthesis of test programs for usage patterns."""

from __future__ import annotations

import logging
from typing import Protocol

from docproof.artifact.parser import UsagePattern
from docproof.errors import CodeGenerationError
from docproof.llm.extractor import extract_code_block
from docproof.llm.gateway import LLMClient

from .prompts import build_test_prompt

logger = logging.getLogger(__name__)


class TestCodeGenerator(Protocol):
    """Turns a usage pattern into a standalone test program."""

    async def generate(self, pattern: UsagePattern, local_package: str | None = None) -> str: ...


class PythonTestCodeGenerator:
    """Asks the LLM for a PEP 723 script that exercises one pattern.

    ``local_package`` is passed per call rather than stored, so one
    generator can serve registry and local-source validations concurrently.
    """

    def __init__(self, client: LLMClient, custom_instructions: str | None = None) -> None:
        self.client = client
        self.custom_instructions = custom_instructions

    async def generate(self, pattern: UsagePattern, local_package: str | None = None) -> str:
        prompt = build_test_prompt(pattern, local_package, self.custom_instructions)
        response = await self.client.complete(prompt)
        code = extract_code_block(response, "python")
        if not code:
            raise CodeGenerationError(f"LLM returned no test code for pattern {pattern.name!r}")
        logger.debug("Generated %d line test for %r", code.count("\n") + 1, pattern.name)
        return code
