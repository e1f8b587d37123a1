"""ValidationOrchestrator - the format / execution / review retry loop."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from docproof.artifact.lint import Linter
from docproof.artifact.normalizer import normalize_artifact
from docproof.config import ValidationConfig
from docproof.llm.extractor import strip_markdown_fences
from docproof.llm.gateway import LLMClient
from docproof.review.agent import ReviewAgent, extract_frontmatter_version, format_feedback
from docproof.review.models import ReviewIssue
from docproof.sandbox.models import Language
from docproof.validation.agent import CodeValidationAgent
from docproof.validation.functional import FunctionalValidator
from docproof.validation.models import ValidationReport

from .classifier import classify_lint, decide_retry
from .models import ArtifactMetadata, AttemptRecord, OrchestrationResult, Phase, RetryState
from .prompts import (
    build_code_validation_patch_prompt,
    build_format_patch_prompt,
    build_functional_patch_prompt,
    build_review_patch_prompt,
)
from .stages import run_generation_stages

logger = logging.getLogger(__name__)


class ValidationOrchestrator:
    """
    Drives one generated artifact through format, execution and review checks,
    asking the regenerator for targeted patches between attempts.

    A validation pass is a format check followed by either code validation
    (Python with code validation enabled) or the legacy functional check. Any
    failure with budget left patches the artifact and starts a new pass from
    the format check. ``max_retries=N`` allows ``N + 1`` passes; when the
    budget runs out the best artifact so far moves on.

    Review runs afterwards with its own budget (``review_max_retries + 1``
    verdicts). Issues left when that budget runs out are surfaced as
    ``unresolved_warnings`` rather than failing the run.

    The run aborts with ``SecurityViolationError`` whenever the linter reports
    a security finding: at any format check, after any review patch, and
    after final normalisation. Flagged content is never sent back to the
    regenerator. Sandbox infrastructure errors propagate unchanged.
    """

    def __init__(
        self,
        regenerator: LLMClient,
        linter: Linter,
        code_validator_factory: Callable[[], CodeValidationAgent],
        review_agent: ReviewAgent | None,
        functional_validator: FunctionalValidator,
        config: ValidationConfig | None = None,
    ) -> None:
        self._regenerator = regenerator
        self._linter = linter
        self._code_validator_factory = code_validator_factory
        self._review_agent = review_agent
        self._functional_validator = functional_validator
        self._config = config or ValidationConfig()

    async def generate_and_run(
        self,
        stages: Sequence[Callable[[], Awaitable[str]]],
        package_name: str,
        language: Language | str,
        local_package: str | None = None,
        *,
        metadata: ArtifactMetadata | None = None,
        assemble: Callable[[list[str]], str] = "\n\n".join,
    ) -> OrchestrationResult:
        """Build the artifact from independent generation stages, then validate it.

        Stages run concurrently unless ``parallel_generation`` is off. Their
        outputs are handed to *assemble* in stage order.
        """
        sections = await run_generation_stages(stages, parallel=self._config.parallel_generation)
        return await self.run(
            assemble(sections), package_name, language, local_package, metadata=metadata
        )

    async def run(
        self,
        artifact: str,
        package_name: str,
        language: Language | str,
        local_package: str | None = None,
        *,
        metadata: ArtifactMetadata | None = None,
    ) -> OrchestrationResult:
        """Validate *artifact* and return the best version with its history."""
        lang = Language.parse(language)
        metadata = metadata or ArtifactMetadata()
        attempts: list[AttemptRecord] = []

        state = RetryState(max_retries=self._config.max_retries, artifact=strip_markdown_fences(artifact))
        format_attempts, report = await self._validation_passes(
            state, lang, local_package, attempts
        )

        unresolved: list[ReviewIssue] = []
        if self._review_agent is not None and self._config.review_enabled:
            unresolved = await self._review_loop(self._review_agent, state, package_name, lang, attempts)

        final = normalize_artifact(
            state.artifact,
            name=package_name,
            version=metadata.version or extract_frontmatter_version(state.artifact) or "unknown",
            ecosystem=lang.value,
            license_name=metadata.license_name,
            project_urls=metadata.project_urls,
            generated_with=metadata.generated_with,
        )
        lint_warnings = classify_lint(self._linter.lint(final), stage="final normalisation")
        if lint_warnings:
            logger.warning(
                "Orchestrator: post-normalisation lint found %d errors (returning anyway)",
                len(lint_warnings),
            )
            for issue in lint_warnings:
                logger.warning("  - [%s] %s", issue.category, issue.message)

        logger.info(
            "Orchestrator: done for %s after %d format attempt(s), %d unresolved review issue(s)",
            package_name,
            format_attempts,
            len(unresolved),
        )
        return OrchestrationResult(
            artifact=final,
            format_attempts=format_attempts,
            attempts=attempts,
            unresolved_warnings=unresolved,
            lint_warnings=lint_warnings,
            code_validation=report,
        )

    async def _validation_passes(
        self,
        state: RetryState,
        lang: Language,
        local_package: str | None,
        attempts: list[AttemptRecord],
    ) -> tuple[int, ValidationReport | None]:
        format_attempts = 0
        report: ValidationReport | None = None

        while True:
            logger.info(
                "Orchestrator: starting validation pass %d/%d",
                state.attempt,
                state.max_attempts,
            )

            # Format check
            format_attempts += 1
            errors = classify_lint(
                self._linter.lint(state.artifact), stage=f"format check (attempt {state.attempt})"
            )
            attempts.append(
                AttemptRecord(
                    attempt=state.attempt,
                    phase=Phase.format,
                    passed=not errors,
                    detail="; ".join(issue.message for issue in errors),
                )
            )
            if errors:
                decision = decide_retry(state, Phase.format, passed=False)
                logger.warning(
                    "Orchestrator: format check failed with %d errors - %s",
                    len(errors),
                    decision.reason,
                )
                if decision:
                    await self._patch(state, build_format_patch_prompt(state.artifact, errors))
                    continue

            # Execution check
            if self._config.code_validation_enabled and lang is Language.python:
                phase = Phase.code_validation
                validator = self._code_validator_factory()
                report = await validator.validate(state.artifact, local_package)
                if report.is_empty:
                    logger.info("Orchestrator: no testable patterns, skipping code validation")
                    passed, detail = True, "no testable patterns"
                else:
                    passed, detail = report.all_passed, f"{report.passed} passed, {report.failed} failed"
                prompt = build_code_validation_patch_prompt(state.artifact, report.feedback() or "")
            else:
                phase = Phase.functional
                result = await self._functional_validator.validate(state.artifact, lang)
                passed, detail = not result.is_fail, f"{result.status.value}: {result.output[:200]}"
                prompt = build_functional_patch_prompt(state.artifact, result.output)

            attempts.append(AttemptRecord(attempt=state.attempt, phase=phase, passed=passed, detail=detail))
            decision = decide_retry(state, phase, passed=passed)
            logger.info("Orchestrator: %s on attempt %d - %s", phase.value, state.attempt, decision.reason)
            if not decision:
                return format_attempts, report
            await self._patch(state, prompt)

    async def _review_loop(
        self,
        review_agent: ReviewAgent,
        validated: RetryState,
        package_name: str,
        lang: Language,
        attempts: list[AttemptRecord],
    ) -> list[ReviewIssue]:
        state = RetryState(max_retries=self._config.review_max_retries, artifact=validated.artifact)

        while True:
            verdict = await review_agent.review(state.artifact, package_name, lang)
            attempts.append(
                AttemptRecord(
                    attempt=state.attempt,
                    phase=Phase.review,
                    passed=verdict.accepted,
                    detail=f"{len(verdict.issues)} issue(s)",
                )
            )
            if verdict.accepted:
                logger.info("Orchestrator: review passed on attempt %d", state.attempt)
                break

            feedback = format_feedback(verdict)
            if not feedback:
                logger.warning("Orchestrator: review failed without any issues, nothing to patch")
                break

            decision = decide_retry(state, Phase.review, passed=False)
            logger.info("Orchestrator: review on attempt %d - %s", state.attempt, decision.reason)
            if not decision:
                logger.warning(
                    "Orchestrator: %d review issue(s) left unresolved", len(verdict.issues)
                )
                validated.artifact = state.artifact
                return verdict.issues

            await self._patch(state, build_review_patch_prompt(state.artifact, feedback))
            classify_lint(self._linter.lint(state.artifact), stage=f"review patch (attempt {state.attempt})")

        validated.artifact = state.artifact
        return []

    async def _patch(self, state: RetryState, prompt: str) -> None:
        response = await self._regenerator.complete(prompt)
        state.artifact = strip_markdown_fences(response)
        state.attempt += 1
