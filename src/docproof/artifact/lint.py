"""Static checks over a documentation artifact.

Structural findings (frontmatter, required sections, degeneration) are
retryable. Findings in the ``security`` category mark content that must
never be sent back to a model for repair.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from docproof.artifact.parser import read_frontmatter

logger = logging.getLogger(__name__)

SECURITY_CATEGORY = "security"

REQUIRED_FRONTMATTER_FIELDS = ("name", "description", "version", "ecosystem")
REQUIRED_SECTIONS = ("## Imports", "## Core Patterns", "## Pitfalls")

_MIN_CONTENT_CHARS = 1_000
_REPEAT_PREFIX_CHARS = 20
_REPEAT_MIN_RUN = 10
_MAX_TOKEN_CHARS = 80
_MAX_LINE_CHARS = 1_000

_PROMPT_LEAK_PHRASES = (
    "CRITICAL: Include ALL",
    "CRITICAL: This section is MANDATORY",
    "do NOT skip this section",
    "REQUIRED sections:",
    "Output as JSON",
    "Your job is to",
    "Keep everything else exactly as-is",
)

# Model-targeted override attempts embedded in the documentation.
_INJECTION_PHRASES = (
    "ignore all previous instructions",
    "ignore previous instructions",
    "disregard your instructions",
    "forget your instructions",
    "override your instructions",
    "your new instructions",
    "you have no restrictions",
    "ignore your training",
    "jailbreak mode",
    "dan mode",
)

_DESTRUCTIVE_PATTERNS = (
    ("recursive delete of a root or home path", re.compile(r"\brm\s+-(?:[a-z]*r[a-z]*f|[a-z]*f[a-z]*r)[a-z]*\s+(?:/|~/?|\$HOME/?)(?:\s|$|\*)", re.IGNORECASE)),
    ("filesystem format", re.compile(r"\bmkfs(?:\.[a-z0-9]+)?\s+/dev/", re.IGNORECASE)),
    ("raw disk overwrite", re.compile(r"\bdd\s+[^\n]*\bof=/dev/(?:sd|nvme|hd|disk)", re.IGNORECASE)),
    ("fork bomb", re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:")),
    ("recursive tree removal of root", re.compile(r"shutil\.rmtree\(\s*['\"](?:/|~)['\"]")),
    ("world-writable root", re.compile(r"\bchmod\s+-R\s+0?777\s+/(?:\s|$)")),
)

_EXFILTRATION_PATTERNS = (
    ("remote script over plain http piped to a shell", re.compile(r"\b(?:curl|wget)\b[^\n|]*\bhttp://[^\n|]*\|\s*(?:sudo\s+)?(?:ba|z)?sh\b", re.IGNORECASE)),
    ("credential file upload", re.compile(r"\b(?:curl|wget)\b[^\n]*(?:-d|--data|--upload-file|-F)[^\n]*(?:\.ssh/|\.aws/credentials|/etc/shadow|\.env\b)", re.IGNORECASE)),
    ("reverse shell", re.compile(r"/dev/tcp/\d{1,3}(?:\.\d{1,3}){3}/\d+|\bnc\b[^\n]*\s-e\s+/bin/(?:ba)?sh", re.IGNORECASE)),
)

_SECRET_PATTERNS = (
    ("AWS access key", re.compile(r"\bAKIA[0-9A-Z]{16}\b")),
    ("private key block", re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----")),
    (
        "hard-coded secret",
        re.compile(
            r"(?i)\b(?:secret|token|api_key|password)\b\s*[:=]\s*[\"']?(?!your|<|xxx|\.\.\.)(?=[A-Za-z._-]*\d)[A-Za-z0-9/+=._-]{24,80}"
        ),
    ),
)


class Severity(str, Enum):
    error = "error"
    warning = "warning"
    info = "info"


class LintIssue(BaseModel):
    """A single linter finding."""

    severity: Severity
    category: str
    message: str
    suggestion: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.error

    @property
    def is_security(self) -> bool:
        return self.is_error and self.category == SECURITY_CATEGORY


class Linter(Protocol):
    def lint(self, artifact: str) -> list[LintIssue]: ...


def security_findings(issues: list[LintIssue]) -> list[LintIssue]:
    return [issue for issue in issues if issue.is_security]


def blocking_errors(issues: list[LintIssue]) -> list[LintIssue]:
    """Error-severity findings that are not security findings."""
    return [issue for issue in issues if issue.is_error and not issue.is_security]


def _code_mask(lines: list[str]) -> list[bool]:
    """True for every line that is a fence or sits inside a fenced block."""
    mask: list[bool] = []
    inside = False
    for line in lines:
        is_fence = line.lstrip().startswith("```")
        mask.append(inside or is_fence)
        if is_fence:
            inside = not inside
    return mask


def _is_dotted_identifier(token: str) -> bool:
    parts = token.split(".")
    return len(parts) >= 2 and all(
        part and len(part) <= 40 and part.replace("_", "").isalnum() for part in parts
    )


class ArtifactLinter:
    """Default ``Linter``: structure, content quality, degeneration and security."""

    def lint(self, artifact: str) -> list[LintIssue]:
        issues: list[LintIssue] = []
        issues += self.check_frontmatter(artifact)
        issues += self.check_structure(artifact)
        issues += self.check_content(artifact)
        issues += self.check_degeneration(artifact)
        issues += self.check_security(artifact)
        return issues

    def check_frontmatter(self, artifact: str) -> list[LintIssue]:
        fields = read_frontmatter(artifact)
        if not fields:
            return [
                LintIssue(
                    severity=Severity.error,
                    category="frontmatter",
                    message="Missing frontmatter (---...---)",
                    suggestion="Add frontmatter with name, description, version, ecosystem",
                )
            ]

        issues = [
            LintIssue(
                severity=Severity.error,
                category="frontmatter",
                message=f"Missing required field: {field}",
                suggestion=f"Add '{field}: <value>' to frontmatter",
            )
            for field in REQUIRED_FRONTMATTER_FIELDS
            if field not in fields
        ]
        if fields.get("version") == "unknown":
            issues.append(
                LintIssue(
                    severity=Severity.warning,
                    category="frontmatter",
                    message="Version is 'unknown'",
                    suggestion="Set the library version explicitly",
                )
            )
        if "license" not in fields:
            issues.append(
                LintIssue(
                    severity=Severity.warning,
                    category="frontmatter",
                    message="'license' field is missing",
                    suggestion="Add 'license: MIT' (or the actual license) to frontmatter",
                )
            )
        return issues

    def check_structure(self, artifact: str) -> list[LintIssue]:
        return [
            LintIssue(
                severity=Severity.error,
                category="structure",
                message=f"Missing required section: {section}",
                suggestion=f"Add a '{section}' section",
            )
            for section in REQUIRED_SECTIONS
            if section not in artifact
        ]

    def check_content(self, artifact: str) -> list[LintIssue]:
        issues: list[LintIssue] = []
        if "```" not in artifact:
            issues.append(
                LintIssue(
                    severity=Severity.error,
                    category="content",
                    message="No code examples found",
                    suggestion="Add code examples in ```python blocks",
                )
            )
        if len(artifact) < _MIN_CONTENT_CHARS:
            issues.append(
                LintIssue(
                    severity=Severity.warning,
                    category="content",
                    message=f"Content is very short ({len(artifact)} chars)",
                )
            )
        if "## Pitfalls" in artifact:
            if "### Wrong" not in artifact or "### Right" not in artifact:
                issues.append(
                    LintIssue(
                        severity=Severity.info,
                        category="content",
                        message="Pitfalls section should include 'Wrong' and 'Right' examples",
                    )
                )
            if self._has_identical_pitfall_pair(artifact):
                issues.append(
                    LintIssue(
                        severity=Severity.error,
                        category="content",
                        message="Found identical 'Wrong' and 'Right' examples in Pitfalls section",
                        suggestion="Wrong and Right examples must show different code",
                    )
                )
        return issues

    @staticmethod
    def _has_identical_pitfall_pair(artifact: str) -> bool:
        section = artifact[artifact.index("## Pitfalls"):]
        next_heading = section.find("\n## ", len("## Pitfalls"))
        if next_heading != -1:
            section = section[:next_heading]

        blocks = [
            block.lstrip("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-").strip()
            for block in section.split("```")[1::2]
        ]
        return any(a and a == b for a, b in zip(blocks, blocks[1:]))

    def check_degeneration(self, artifact: str) -> list[LintIssue]:
        issues: list[LintIssue] = []
        lines = artifact.splitlines()
        in_code = _code_mask(lines)

        index = 0
        while index < len(lines):
            line = lines[index]
            if in_code[index] or len(line) < _REPEAT_PREFIX_CHARS:
                index += 1
                continue
            prefix = line[:_REPEAT_PREFIX_CHARS]
            run = 1
            while (
                index + run < len(lines)
                and not in_code[index + run]
                and lines[index + run].startswith(prefix)
            ):
                run += 1
            if run >= _REPEAT_MIN_RUN:
                issues.append(
                    LintIssue(
                        severity=Severity.error,
                        category="degeneration",
                        message=f"Repetitive content: {run} consecutive lines share prefix {prefix!r}",
                        suggestion="Regenerate this section",
                    )
                )
                break
            index += run

        prose = [line for line, code in zip(lines, in_code) if not code]
        gibberish = next(
            (
                token
                for line in prose
                for token in (word.strip("*`_,-") for word in line.split())
                if len(token) > _MAX_TOKEN_CHARS and not _is_dotted_identifier(token)
            ),
            None,
        )
        if gibberish is not None:
            issues.append(
                LintIssue(
                    severity=Severity.error,
                    category="degeneration",
                    message=f"Nonsense token detected ({len(gibberish)} chars): '{gibberish[:40]}...'",
                )
            )

        for line in prose:
            leak = next((phrase for phrase in _PROMPT_LEAK_PHRASES if phrase in line), None)
            if leak is not None:
                issues.append(
                    LintIssue(
                        severity=Severity.warning,
                        category="degeneration",
                        message=f"Prompt instruction leak: '{leak}'",
                    )
                )
                break

        fences = sum(1 for line in lines if line.lstrip().startswith("```"))
        if fences % 2:
            issues.append(
                LintIssue(
                    severity=Severity.error,
                    category="degeneration",
                    message=f"Unclosed code block ({fences} fences, expected even number)",
                    suggestion="Output was likely truncated; regenerate with a higher token limit",
                )
            )

        if any(len(line) > _MAX_LINE_CHARS for line in prose):
            issues.append(
                LintIssue(
                    severity=Severity.error,
                    category="degeneration",
                    message="Excessively long line detected outside code blocks",
                )
            )
        return issues

    def check_security(self, artifact: str) -> list[LintIssue]:
        """Destructive commands, exfiltration, prompt injection and leaked secrets."""
        issues: list[LintIssue] = []
        lowered = artifact.lower()

        for phrase in _INJECTION_PHRASES:
            if phrase in lowered:
                issues.append(_security_issue(f"Prompt injection phrase: '{phrase}'"))

        for label, groups in (
            ("Destructive command", _DESTRUCTIVE_PATTERNS),
            ("Exfiltration", _EXFILTRATION_PATTERNS),
            ("Secret leak", _SECRET_PATTERNS),
        ):
            for description, pattern in groups:
                if pattern.search(artifact):
                    issues.append(_security_issue(f"{label}: {description}"))

        if issues:
            logger.warning("Security lint produced %d finding(s)", len(issues))
        return issues


def _security_issue(message: str) -> LintIssue:
    return LintIssue(
        severity=Severity.error,
        category=SECURITY_CATEGORY,
        message=message,
        suggestion="Remove the dangerous content; it will not be sent back for repair",
    )
