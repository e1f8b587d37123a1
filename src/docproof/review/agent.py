"""
Two-phase review of a generated artifact.

Phase A asks the LLM for an introspection script, runs it against the real
package in a sandbox and keeps its JSON output as ground truth. Phase B asks
the LLM for an accuracy, safety and consistency verdict using that evidence.
Phase A is advisory: anything that goes wrong there becomes a placeholder
string and the verdict still runs.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable

from docproof.artifact.parser import read_frontmatter
from docproof.errors import InfrastructureError, ReviewParseError
from docproof.llm.extractor import extract_json_block, extract_python_script
from docproof.llm.gateway import LLMClient
from docproof.sandbox.executor import Executor
from docproof.sandbox.models import Language

from .models import ReviewIssue, ReviewVerdict
from .prompts import build_introspection_prompt, build_verdict_prompt

logger = logging.getLogger(__name__)

SKIPPED_NON_PYTHON = "INTROSPECTION SKIPPED: only Python is supported for container checks"


def extract_frontmatter_version(artifact: str) -> str | None:
    """Frontmatter ``version``; ``None`` when absent, empty or ``unknown``."""
    version = read_frontmatter(artifact).get("version", "")
    if not version or version == "unknown":
        return None
    return version


def _issue_from(item: object) -> ReviewIssue | None:
    if not isinstance(item, dict):
        return None
    complaint = item.get("complaint")
    if not isinstance(complaint, str):
        return None
    return ReviewIssue(
        severity=str(item.get("severity") or "error"),
        category=str(item.get("category") or "accuracy"),
        complaint=complaint,
        evidence=str(item.get("evidence") or ""),
    )


def parse_review_response(response: str, strict: bool = False) -> ReviewVerdict:
    """
    Parse the verdict JSON.

    Missing fields take defaults (severity "error", category "accuracy",
    empty evidence, ``passed`` true) and issues without a complaint are
    dropped. An unparseable response raises ``ReviewParseError`` in strict
    mode and otherwise counts as a pass so LLM flakiness never blocks the
    pipeline.
    """
    try:
        parsed = json.loads(extract_json_block(response))
        if not isinstance(parsed, dict):
            raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    except ValueError as exc:
        logger.warning("Review: failed to parse verdict JSON: %s", exc)
        if strict:
            raise ReviewParseError(
                f"review: LLM returned unparseable response (strict mode). Raw response:\n{response[:500]}"
            ) from exc
        lowered = response.lower()
        if '"passed": true' in lowered or '"passed":true' in lowered:
            return ReviewVerdict()
        logger.warning("Review: treating unparseable response as pass")
        return ReviewVerdict()

    passed = parsed.get("passed")
    raw_issues = parsed.get("issues")
    issues = [
        issue
        for issue in (_issue_from(item) for item in (raw_issues if isinstance(raw_issues, list) else []))
        if issue is not None
    ]
    return ReviewVerdict(passed=passed if isinstance(passed, bool) else True, issues=issues)


def format_feedback(verdict: ReviewVerdict) -> str:
    """Patch instructions for the regenerator; empty when there are no issues."""
    if not verdict.issues:
        return ""

    accuracy = [issue for issue in verdict.issues if not issue.is_safety]
    safety = [issue for issue in verdict.issues if issue.is_safety]

    sections: list[str] = [
        "REVIEW FAILED. Fix the following issues. Do NOT regenerate from scratch.",
        "",
    ]
    if accuracy:
        sections.append("ACCURACY ISSUES:")
        for number, issue in enumerate(accuracy, start=1):
            sections += [f"{number}. {issue.complaint}", f"   Evidence: {issue.evidence}"]
        sections.append("")

    if safety:
        sections.append("SAFETY ISSUES:")
        for number, issue in enumerate(safety, start=1):
            sections += [f"{number}. {issue.complaint}", f"   Evidence: {issue.evidence}"]
        sections.append("")
    else:
        sections += ["SAFETY ISSUES: None", ""]

    sections += [
        "Instructions:",
        "- Fix ONLY the listed issues",
        "- Keep all other content byte-for-byte as-is",
        "- Output the complete artifact",
    ]
    return "\n".join(sections)


class ReviewAgent:
    """
    Accuracy and safety gate for a finished artifact.

    ``executor_factory`` builds a fresh Python executor per review so no
    sandbox state is shared between reviews. ``strict`` turns unparseable
    verdicts into ``ReviewParseError``; use it for standalone reviews and
    leave it off inside the generation pipeline.
    """

    def __init__(
        self,
        client: LLMClient,
        executor_factory: Callable[[], Executor],
        custom_prompt: str | None = None,
        strict: bool = False,
    ) -> None:
        self.client = client
        self.executor_factory = executor_factory
        self.custom_prompt = custom_prompt
        self.strict = strict

    async def review(self, artifact: str, package_name: str, language: Language | str) -> ReviewVerdict:
        if language.strip().lower() == Language.python.value:
            try:
                introspection = await self._introspect(artifact, package_name)
            except (InfrastructureError, RuntimeError) as exc:
                logger.warning("Review: container introspection failed: %s", exc)
                introspection = f"INTROSPECTION FAILED: {exc}"
        else:
            introspection = SKIPPED_NON_PYTHON

        prompt = build_verdict_prompt(artifact, introspection, self.custom_prompt)
        response = await self.client.complete(prompt)
        verdict = parse_review_response(response, self.strict)
        logger.info(
            "Review: passed=%s, %d issue(s) (%d error)",
            verdict.passed,
            len(verdict.issues),
            sum(1 for issue in verdict.issues if issue.is_error),
        )
        return verdict

    async def _introspect(self, artifact: str, package_name: str) -> str:
        version = extract_frontmatter_version(artifact) or ""
        prompt = build_introspection_prompt(artifact, package_name, version, self.custom_prompt)
        script = extract_python_script(await self.client.complete(prompt))
        if not script:
            return "INTROSPECTION SKIPPED: LLM returned an empty introspection script"
        logger.debug("Review: introspection script (%d bytes)", len(script))

        executor = self.executor_factory()
        env = await asyncio.to_thread(executor.prepare, [])
        try:
            outcome = await asyncio.to_thread(executor.execute, env, script, Language.python)
        finally:
            await asyncio.to_thread(executor.teardown, env)

        if outcome.is_timeout:
            return "INTROSPECTION SKIPPED: script timed out"
        if outcome.is_fail:
            logger.warning("Review: introspection script failed: %s", outcome.output[:200])
            return "INTROSPECTION SKIPPED: script execution failed"

        stdout = outcome.output.strip()
        if not (stdout.startswith("{") and stdout.endswith("}")):
            logger.warning("Review: introspection output is not JSON, ignoring")
            return "INTROSPECTION SKIPPED: script did not produce valid JSON"
        return outcome.output
