"""Runtime configuration for the sandbox, the validation pipeline and the LLM."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from docproof.env import load_dotenv
from docproof.errors import SandboxConfigError

_ENV_PREFIX = "DOCPROOF_"
_TRUE_VALUES = {"1", "true", "yes", "on"}


class InstallSource(str, Enum):
    """Where the library under test comes from inside the sandbox."""

    registry = "registry"
    local_install = "local-install"
    local_mount = "local-mount"


class ValidationMode(str, Enum):
    """How many usage patterns are exercised per validation pass."""

    minimal = "minimal"
    thorough = "thorough"
    adaptive = "adaptive"  # placeholder: behaves like minimal


class SandboxConfig(BaseModel):
    """Container runtime settings consumed by ``ContainerExecutor``."""

    runtime: str = Field(default="docker", description="OCI runtime CLI, e.g. docker or podman")
    python_image: str = "ghcr.io/astral-sh/uv:python3.11-bookworm-slim"
    javascript_image: str = "node:20-slim"
    rust_image: str = "rust:1.75-slim"
    go_image: str = "golang:1.21-alpine"
    timeout_s: float = Field(default=60.0, gt=0.0, description="Per-execution wall clock")
    output_cap_bytes: int = Field(
        default=10 * 1024 * 1024, gt=0, description="Captured bytes kept per output stream"
    )
    cleanup: bool = Field(default=True, description="Remove containers and scratch dirs")
    install_source: InstallSource = InstallSource.registry
    source_path: Path | None = Field(
        default=None,
        description="Local library checkout; required unless install_source is registry",
    )
    extra_env: dict[str, str] = Field(
        default_factory=dict,
        description="Injected into every container, e.g. private index credentials",
    )
    name_prefix: str = "docproof"

    def image_for(self, language: str) -> str:
        images = {
            "python": self.python_image,
            "javascript": self.javascript_image,
            "typescript": self.javascript_image,
            "rust": self.rust_image,
            "go": self.go_image,
        }
        return images.get(language, self.python_image)

    def require_source_path(self) -> Path:
        """Return the local source path, failing when a local mode lacks one."""
        if self.source_path is None:
            raise SandboxConfigError(
                f"install_source={self.install_source.value!r} requires source_path to be set"
            )
        return self.source_path


class ValidationConfig(BaseModel):
    """Retry budgets and phase switches for the orchestrator."""

    max_retries: int = Field(default=3, ge=0)
    review_max_retries: int = Field(default=1, ge=0)
    validation_mode: ValidationMode = ValidationMode.thorough
    code_validation_enabled: bool = True
    review_enabled: bool = True
    strict_review: bool = False
    parallel_generation: bool = True


class LLMConfig(BaseModel):
    """Settings for the LiteLLM-backed client."""

    model_name: str = "gpt-4o"
    provider: str = "openai"
    api_base: str | None = None
    api_key: str | None = None
    timeout_s: float = Field(default=120.0, gt=0.0, le=600.0)
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class DocproofConfig(BaseModel):
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)


def _env(name: str) -> str | None:
    value = os.getenv(_ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_bool(name: str) -> bool | None:
    value = _env(name)
    if value is None:
        return None
    return value.lower() in _TRUE_VALUES


def parse_extra_env(raw: str) -> dict[str, str]:
    """Parse ``KEY=value,KEY2=value2`` into a mapping; entries without '=' are skipped."""
    result: dict[str, str] = {}
    for item in raw.split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            result[key.strip()] = value.strip()
    return result


def load_config() -> DocproofConfig:
    """Build configuration from ``DOCPROOF_*`` environment variables.

    A ``.env`` file found from the working directory upward is loaded first.
    Unset variables keep the model defaults.
    """
    load_dotenv()

    sandbox: dict[str, object] = {}
    for key, env_name in (
        ("runtime", "RUNTIME"),
        ("python_image", "PYTHON_IMAGE"),
        ("javascript_image", "JAVASCRIPT_IMAGE"),
        ("rust_image", "RUST_IMAGE"),
        ("go_image", "GO_IMAGE"),
        ("timeout_s", "TIMEOUT_S"),
        ("output_cap_bytes", "OUTPUT_CAP_BYTES"),
        ("install_source", "INSTALL_SOURCE"),
        ("source_path", "SOURCE_PATH"),
    ):
        value = _env(env_name)
        if value is not None:
            sandbox[key] = value
    cleanup = _env_bool("CLEANUP")
    if cleanup is not None:
        sandbox["cleanup"] = cleanup
    extra_env = _env("EXTRA_ENV")
    if extra_env is not None:
        sandbox["extra_env"] = parse_extra_env(extra_env)

    validation: dict[str, object] = {}
    for key, env_name in (
        ("max_retries", "MAX_RETRIES"),
        ("review_max_retries", "REVIEW_MAX_RETRIES"),
        ("validation_mode", "VALIDATION_MODE"),
    ):
        value = _env(env_name)
        if value is not None:
            validation[key] = value
    for key, env_name in (
        ("code_validation_enabled", "CODE_VALIDATION"),
        ("review_enabled", "REVIEW"),
        ("strict_review", "STRICT_REVIEW"),
        ("parallel_generation", "PARALLEL_GENERATION"),
    ):
        flag = _env_bool(env_name)
        if flag is not None:
            validation[key] = flag

    llm: dict[str, object] = {}
    for key, env_name in (
        ("model_name", "LLM_MODEL"),
        ("provider", "LLM_PROVIDER"),
        ("api_base", "LLM_API_BASE"),
        ("api_key", "LLM_API_KEY"),
        ("timeout_s", "LLM_TIMEOUT_S"),
    ):
        value = _env(env_name)
        if value is not None:
            llm[key] = value

    return DocproofConfig(
        sandbox=SandboxConfig.model_validate(sandbox),
        validation=ValidationConfig.model_validate(validation),
        llm=LLMConfig.model_validate(llm),
    )
