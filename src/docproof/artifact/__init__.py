"""Documentation artifact parsing, linting and normalisation."""

from .lint import ArtifactLinter, LintIssue, Linter, Severity, blocking_errors, security_findings
from .normalizer import ensure_frontmatter, ensure_references, normalize_artifact
from .parser import (
    PatternCategory,
    PatternExtractor,
    PythonPatternExtractor,
    UsagePattern,
    categorize,
    read_frontmatter,
)

__all__ = [
    "ArtifactLinter",
    "LintIssue",
    "Linter",
    "PatternCategory",
    "PatternExtractor",
    "PythonPatternExtractor",
    "Severity",
    "UsagePattern",
    "blocking_errors",
    "categorize",
    "ensure_frontmatter",
    "ensure_references",
    "normalize_artifact",
    "read_frontmatter",
    "security_findings",
]
