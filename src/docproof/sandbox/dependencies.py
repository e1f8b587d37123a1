"""Dependency-name validation for package manager command lines."""

from __future__ import annotations

import string
from collections.abc import Iterable

from docproof.errors import DependencyRejectedError

# Package names, extras, paths, scoped npm names and version specifiers.
_ALLOWED_PUNCTUATION = frozenset("-_./[],@")
_VERSION_OPERATORS = frozenset("><=!~^")
_ALLOWED_CHARS = (
    frozenset(string.ascii_letters + string.digits) | _ALLOWED_PUNCTUATION | _VERSION_OPERATORS
)


def sanitize_dependency(name: str) -> str:
    """Return *name* unchanged when it is safe to pass to a package manager.

    Raises ``DependencyRejectedError`` for empty names, names starting with
    ``-`` (flag injection) and names containing any other character, which
    covers whitespace and every shell metacharacter.
    """
    if not name:
        raise DependencyRejectedError("Dependency name cannot be empty")
    if name.startswith("-"):
        raise DependencyRejectedError(f"Dependency name cannot start with '-': {name!r}")

    bad = sorted({char for char in name if char not in _ALLOWED_CHARS})
    if bad:
        raise DependencyRejectedError(
            f"Invalid characters {''.join(bad)!r} in dependency name: {name!r}"
        )
    return name


def validate_dependencies(names: Iterable[str]) -> list[str]:
    """Validate every name, preserving order and dropping exact duplicates."""
    validated: list[str] = []
    for name in names:
        clean = sanitize_dependency(name)
        if clean not in validated:
            validated.append(clean)
    return validated
