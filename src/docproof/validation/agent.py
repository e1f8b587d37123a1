"""CodeValidationAgent: prove an artifact's usage patterns actually run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from docproof.artifact.parser import PatternCategory, PatternExtractor, UsagePattern
from docproof.config import InstallSource, ValidationMode
from docproof.errors import CodeGenerationError
from docproof.sandbox.executor import Executor
from docproof.sandbox.models import ExecutionOutcome, SandboxEnvironment

from .generator import TestCodeGenerator
from .models import ValidationCase, ValidationReport

logger = logging.getLogger(__name__)

# Thorough mode covers one of each, in this order, before filling up.
PRIORITY_CATEGORIES: tuple[PatternCategory, ...] = (
    PatternCategory.basic_usage,
    PatternCategory.configuration,
    PatternCategory.error_handling,
)
THOROUGH_LIMIT = 3


def select_patterns(patterns: Sequence[UsagePattern], mode: ValidationMode) -> list[UsagePattern]:
    """
    Choose which patterns to validate.

    Minimal and Adaptive take the first pattern only. Thorough takes at most
    one per priority category (basic, configuration, error handling), then
    fills to three with the earliest remaining patterns in document order.
    """
    if not patterns:
        return []
    if mode is not ValidationMode.thorough:
        return [patterns[0]]

    chosen: list[int] = []
    for category in PRIORITY_CATEGORIES:
        index = next((i for i, p in enumerate(patterns) if p.category is category), None)
        if index is not None:
            chosen.append(index)

    for index in range(len(patterns)):
        if len(chosen) >= THOROUGH_LIMIT:
            break
        if index not in chosen:
            chosen.append(index)

    return [patterns[i] for i in chosen[:THOROUGH_LIMIT]]


class CodeValidationAgent:
    """
    Extracts usage patterns, has the LLM write a test per pattern and runs
    each test in one shared sandbox environment.

    Content failures (bad generated code, failing assertions, timeouts) end
    up in the report. Infrastructure errors tear the sandbox down and
    propagate to the caller.
    """

    def __init__(
        self,
        executor: Executor,
        extractor: PatternExtractor,
        generator: TestCodeGenerator,
        mode: ValidationMode = ValidationMode.thorough,
        install_source: InstallSource = InstallSource.registry,
    ) -> None:
        self.executor = executor
        self.extractor = extractor
        self.generator = generator
        self.mode = mode
        self.install_source = install_source

    async def validate(self, artifact: str, local_package: str | None = None) -> ValidationReport:
        """Run one validation pass over *artifact*.

        *local_package* overrides the package name excluded from generated
        dependency manifests; by default the artifact's own name is excluded
        whenever the library comes from a local source.
        """
        patterns = self.extractor.extract_patterns(artifact)
        selected = select_patterns(patterns, self.mode)
        if not selected:
            logger.info("CodeValidation: no testable patterns, nothing to validate")
            return ValidationReport()

        excluded = local_package
        if excluded is None and self.install_source is not InstallSource.registry:
            excluded = self.extractor.extract_name(artifact)

        dependencies = self.extractor.extract_dependencies(artifact)
        logger.info(
            "CodeValidation: %d of %d patterns selected (mode=%s, dependencies=%s)",
            len(selected),
            len(patterns),
            self.mode.value,
            dependencies,
        )

        env = await asyncio.to_thread(self.executor.prepare, dependencies)
        try:
            cases = await self._run_cases(env, selected, excluded)
        except BaseException:
            await self._teardown_best_effort(env)
            raise
        await asyncio.to_thread(self.executor.teardown, env)

        report = ValidationReport(cases=cases)
        logger.info(
            "CodeValidation: %d passed, %d failed", report.passed, report.failed
        )
        return report

    async def _run_cases(
        self,
        env: SandboxEnvironment,
        patterns: list[UsagePattern],
        excluded: str | None,
    ) -> list[ValidationCase]:
        cases: list[ValidationCase] = []
        # Sequential on purpose: the environment is not safe for concurrent tenants.
        for pattern in patterns:
            try:
                code = await self.generator.generate(pattern, local_package=excluded)
            except (CodeGenerationError, RuntimeError) as exc:
                logger.warning("CodeValidation: generation failed for %r: %s", pattern.name, exc)
                cases.append(
                    ValidationCase(
                        pattern_name=pattern.name,
                        generated_code="",
                        outcome=ExecutionOutcome.failed(f"Code generation failed: {exc}"),
                    )
                )
                continue

            outcome = await asyncio.to_thread(self.executor.execute, env, code)
            logger.info(
                "CodeValidation: %r -> %s (%dms)",
                pattern.name,
                outcome.status.value,
                outcome.duration_ms,
            )
            cases.append(
                ValidationCase(pattern_name=pattern.name, generated_code=code, outcome=outcome)
            )
        return cases

    async def _teardown_best_effort(self, env: SandboxEnvironment) -> None:
        try:
            await asyncio.to_thread(self.executor.teardown, env)
        except Exception as exc:
            logger.warning("CodeValidation: teardown of %s failed: %s", env.unit_name, exc)
