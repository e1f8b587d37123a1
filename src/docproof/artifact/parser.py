"""
Extract testable usage patterns and metadata from a documentation artifact.

Artifacts are markdown with YAML-style frontmatter. Patterns live under
``## Core Patterns`` as ``### Name`` headings followed by prose and a fenced
python block. Dependencies are read from the ``## Imports`` section.
"""

from __future__ import annotations

import logging
import re
import sys
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_CORE_PATTERNS_HEADING = re.compile(r"^##\s+Core\s+Patterns\s*$", re.MULTILINE)
_IMPORTS_HEADING = re.compile(r"^##\s+Imports\s*$", re.MULTILINE)
_NEXT_SECTION = re.compile(r"^##\s+", re.MULTILINE)
_PATTERN_HEADING = re.compile(r"^###[ \t]+(.+?)[ \t]*$", re.MULTILINE)
_PYTHON_BLOCK = re.compile(r"```python\n(.*?)```", re.DOTALL)

_IMPORT_LINE = re.compile(r"^import\s+([A-Za-z0-9_]+)", re.MULTILINE)
_FROM_LINE = re.compile(r"^from\s+([A-Za-z0-9_]+)", re.MULTILINE)
_PIP_INSTALL = re.compile(r"pip\s+install\s+([A-Za-z0-9_-]+)")

# Names that show up in examples as project-local modules, not PyPI packages.
_LOCAL_MODULE_NAMES = frozenset({
    "cli", "main", "app", "config", "utils", "helpers", "models", "views", "routes",
    "handlers", "tests", "test", "example", "src", "lib", "core", "api", "client", "server",
})
_SHORT_PACKAGE_ALLOWLIST = frozenset({"jwt", "aws", "grpc", "PIL"})

_METADATA_SCAN_LINES = 10


class PatternCategory(str, Enum):
    """Selection priority bucket for a usage pattern."""

    basic_usage = "basic_usage"
    configuration = "configuration"
    error_handling = "error_handling"
    async_pattern = "async_pattern"
    other = "other"


class UsagePattern(BaseModel):
    """One usage example extracted from an artifact."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    code: str
    category: PatternCategory = PatternCategory.other


class PatternExtractor(Protocol):
    """Language-specific reader of patterns and metadata."""

    def extract_patterns(self, artifact: str) -> list[UsagePattern]: ...

    def extract_dependencies(self, artifact: str) -> list[str]: ...

    def extract_name(self, artifact: str) -> str | None: ...

    def extract_version(self, artifact: str) -> str | None: ...


def categorize(name: str, description: str) -> PatternCategory:
    """Keyword-based category; the first matching rule wins."""
    text = f"{name} {description}".lower()
    rules = (
        (PatternCategory.basic_usage, ("basic", "simple", "hello", "getting started", "quickstart")),
        (PatternCategory.configuration, ("config", "setup", "initialize")),
        (PatternCategory.error_handling, ("error", "exception", "try", "catch", "handle")),
        (PatternCategory.async_pattern, ("async", "await", "concurrent")),
    )
    for category, keywords in rules:
        if any(keyword in text for keyword in keywords):
            return category
    return PatternCategory.other


def read_frontmatter(artifact: str) -> dict[str, str]:
    """Parse ``key: value`` pairs between the leading ``---`` fences.

    Returns an empty dict when the artifact does not start with a fence.
    Surrounding quotes are removed from values.
    """
    lines = artifact.splitlines()
    if not lines or not lines[0].startswith("---"):
        return {}

    fields: dict[str, str] = {}
    for line in lines[1:]:
        if line.strip() == "---":
            break
        key, sep, value = line.partition(":")
        if sep and key.strip() and not key.lstrip().startswith("#"):
            fields[key.strip()] = value.strip().strip("\"'")
    return fields


def section_body(artifact: str, heading: re.Pattern[str]) -> str | None:
    """Text after *heading* up to the next ``## `` heading, or ``None``."""
    match = heading.search(artifact)
    if match is None:
        return None
    rest = artifact[match.end():]
    end = _NEXT_SECTION.search(rest)
    return rest[: end.start()] if end else rest


def _is_stdlib(name: str) -> bool:
    return name in sys.stdlib_module_names


def _is_likely_local_module(name: str) -> bool:
    if len(name) <= 3 and name not in _SHORT_PACKAGE_ALLOWLIST:
        return True
    return name in _LOCAL_MODULE_NAMES


def _metadata_value(artifact: str, key: str) -> str | None:
    prefix = f"{key}:"
    for line in artifact.splitlines()[:_METADATA_SCAN_LINES]:
        stripped = line.strip()
        if stripped.startswith(prefix):
            value = stripped[len(prefix):].strip().strip("\"'")
            return value or None
    return None


class PythonPatternExtractor:
    """``PatternExtractor`` for Python-ecosystem artifacts."""

    def extract_patterns(self, artifact: str) -> list[UsagePattern]:
        body = section_body(artifact, _CORE_PATTERNS_HEADING)
        if body is None:
            logger.debug("No Core Patterns section found")
            return []

        headings = list(_PATTERN_HEADING.finditer(body))
        patterns: list[UsagePattern] = []
        for index, heading in enumerate(headings):
            end = headings[index + 1].start() if index + 1 < len(headings) else len(body)
            chunk = body[heading.end():end]
            block = _PYTHON_BLOCK.search(chunk)
            if block is None:
                continue

            name = heading.group(1).strip()
            description = chunk[: block.start()].strip()
            patterns.append(
                UsagePattern(
                    name=name,
                    description=description,
                    code=block.group(1).strip(),
                    category=categorize(name, description),
                )
            )

        logger.debug("Extracted %d patterns", len(patterns))
        return patterns

    def extract_dependencies(self, artifact: str) -> list[str]:
        body = section_body(artifact, _IMPORTS_HEADING)
        if body is None:
            return []

        deps: list[str] = []

        def _add(name: str) -> None:
            if name not in deps:
                deps.append(name)

        for name in _IMPORT_LINE.findall(body):
            if not _is_stdlib(name):
                _add(name)
        for name in _FROM_LINE.findall(body):
            if not _is_stdlib(name) and not _is_likely_local_module(name):
                _add(name)
        for name in _PIP_INSTALL.findall(body):
            _add(name)
        return deps

    def extract_name(self, artifact: str) -> str | None:
        return _metadata_value(artifact, "name")

    def extract_version(self, artifact: str) -> str | None:
        version = _metadata_value(artifact, "version")
        if version == "unknown":
            return None
        return version
