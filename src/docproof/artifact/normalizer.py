"""Lightweight post-processing applied once validation has finished.

Only fixes what models reliably get wrong: a missing or incomplete
frontmatter block and a missing References section.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from docproof.artifact.lint import REQUIRED_FRONTMATTER_FIELDS
from docproof.artifact.parser import read_frontmatter

logger = logging.getLogger(__name__)

_LEGACY_TITLE = "# SKILL.md"


def build_frontmatter(
    name: str,
    version: str,
    ecosystem: str,
    license_name: str | None = None,
    generated_with: str | None = None,
) -> str:
    lines = [
        "---",
        f"name: {name}",
        f"description: {ecosystem} library",
        f"version: {version}",
        f"ecosystem: {ecosystem}",
        f"license: {license_name}" if license_name else "# license: Unknown",
    ]
    if generated_with:
        lines.append(f"generated_with: {generated_with}")
    lines.append("---")
    return "\n".join(lines) + "\n\n"


def _split_frontmatter(content: str) -> tuple[str, str] | None:
    """Return ``(frontmatter_body, rest)`` when *content* opens with a fence."""
    if not content.startswith("---"):
        return None
    closing = content.find("\n---", 3)
    if closing == -1:
        return None
    body = content[3:closing].strip("\n")
    rest = content[closing + len("\n---"):]
    return body, rest


def ensure_frontmatter(
    content: str,
    name: str,
    version: str,
    ecosystem: str,
    license_name: str | None = None,
    generated_with: str | None = None,
) -> str:
    """Add or repair the frontmatter so it carries every required field."""
    trimmed = content.lstrip()
    split = _split_frontmatter(trimmed)

    if split is not None:
        body, rest = split
        fields = read_frontmatter(trimmed)
        if all(field in fields for field in REQUIRED_FRONTMATTER_FIELDS):
            if generated_with and "generated_with" not in fields:
                return f"---\n{body}\ngenerated_with: {generated_with}\n---{rest}"
            return content
        logger.warning("Frontmatter is incomplete, replacing it")
        return build_frontmatter(name, version, ecosystem, license_name, generated_with) + rest.lstrip()

    logger.warning("Frontmatter missing, adding it")
    body = trimmed.removeprefix(_LEGACY_TITLE).lstrip()
    return build_frontmatter(name, version, ecosystem, license_name, generated_with) + body


def ensure_references(content: str, project_urls: Sequence[tuple[str, str]]) -> str:
    if not project_urls or "## References" in content:
        return content
    logger.warning("References section missing, adding it")
    links = "".join(f"- [{label}]({url})\n" for label, url in project_urls)
    return f"{content.rstrip()}\n\n## References\n\n{links}"


def normalize_artifact(
    content: str,
    name: str,
    version: str,
    ecosystem: str,
    license_name: str | None = None,
    project_urls: Sequence[tuple[str, str]] = (),
    generated_with: str | None = None,
) -> str:
    normalized = ensure_frontmatter(content, name, version, ecosystem, license_name, generated_with)
    return ensure_references(normalized, project_urls)
