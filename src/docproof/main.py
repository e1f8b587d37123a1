from __future__ import annotations

from typing import Literal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from docproof.artifact.lint import ArtifactLinter, LintIssue, blocking_errors, security_findings
from docproof.artifact.parser import PythonPatternExtractor
from docproof.config import DocproofConfig, LLMConfig, SandboxConfig, ValidationMode, load_config
from docproof.errors import InfrastructureError, ReviewParseError, SecurityViolationError
from docproof.llm.gateway import LiteLLMClient, LLMClient
from docproof.orchestrator.models import ArtifactMetadata, OrchestrationResult
from docproof.orchestrator.service import ValidationOrchestrator
from docproof.review.agent import ReviewAgent
from docproof.review.models import ReviewVerdict
from docproof.sandbox.executor import ContainerExecutor
from docproof.sandbox.models import Language
from docproof.validation.agent import CodeValidationAgent
from docproof.validation.functional import FunctionalValidator
from docproof.validation.generator import PythonTestCodeGenerator

VERSION = "0.1.0-dev"

app = FastAPI(title="docproof", version=VERSION)

LLMProvider = Literal["openai", "nvidia", "custom"]

# Process-wide defaults; requests may override the LLM and retry settings.
_CONFIG: DocproofConfig = load_config()


class LLMOverrides(BaseModel):
    """Optional per-request LLM settings layered over the process config."""

    model_name: str | None = None
    llm_provider: LLMProvider | None = None
    llm_api_base: str | None = None
    llm_api_key: str | None = None
    llm_timeout_s: float | None = Field(default=None, gt=0.0, le=600.0)
    llm_max_tokens: int | None = Field(default=None, gt=0, le=32768)
    llm_temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    def llm_config(self, base: LLMConfig) -> LLMConfig:
        updates = {
            "model_name": self.model_name,
            "provider": self.llm_provider,
            "api_base": self.llm_api_base,
            "api_key": self.llm_api_key,
            "timeout_s": self.llm_timeout_s,
            "max_tokens": self.llm_max_tokens,
            "temperature": self.llm_temperature,
        }
        return base.model_copy(update={k: v for k, v in updates.items() if v is not None})


class LintRequest(BaseModel):
    artifact: str


class LintResponse(BaseModel):
    issues: list[LintIssue]
    error_count: int
    security_count: int


class ReviewRequest(LLMOverrides):
    """Request body for the standalone /review endpoint."""

    artifact: str
    package_name: str
    language: str = "python"
    custom_prompt: str | None = None


class ValidateRequest(LLMOverrides):
    """Request body for the /validate endpoint (full orchestrator run)."""

    artifact: str
    package_name: str
    language: str = "python"
    local_package: str | None = None
    version: str | None = None
    license_name: str | None = None
    project_urls: list[tuple[str, str]] = Field(default_factory=list)
    max_retries: int | None = Field(default=None, ge=0, le=10)
    review_max_retries: int | None = Field(default=None, ge=0, le=10)
    validation_mode: ValidationMode | None = None
    review_enabled: bool | None = None


def build_review_agent(
    client: LLMClient,
    sandbox: SandboxConfig,
    custom_prompt: str | None = None,
    strict: bool = False,
) -> ReviewAgent:
    return ReviewAgent(
        client,
        lambda: ContainerExecutor(sandbox, Language.python),
        custom_prompt=custom_prompt,
        strict=strict,
    )


def build_orchestrator(client: LLMClient, config: DocproofConfig) -> ValidationOrchestrator:
    """Wire the production collaborators: container sandbox, LiteLLM, real linter."""

    def code_validator() -> CodeValidationAgent:
        return CodeValidationAgent(
            ContainerExecutor(config.sandbox, Language.python),
            PythonPatternExtractor(),
            PythonTestCodeGenerator(client),
            mode=config.validation.validation_mode,
            install_source=config.sandbox.install_source,
        )

    return ValidationOrchestrator(
        regenerator=client,
        linter=ArtifactLinter(),
        code_validator_factory=code_validator,
        review_agent=build_review_agent(client, config.sandbox, strict=config.validation.strict_review),
        functional_validator=FunctionalValidator(ContainerExecutor(config.sandbox, Language.python)),
        config=config.validation,
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "service": "docproof",
        "version": VERSION,
    }


@app.post("/lint")
async def lint(req: LintRequest) -> LintResponse:
    """Run the static checks only; no LLM and no sandbox."""
    issues = ArtifactLinter().lint(req.artifact)
    return LintResponse(
        issues=issues,
        error_count=len(blocking_errors(issues)),
        security_count=len(security_findings(issues)),
    )


@app.post("/review")
async def review(req: ReviewRequest) -> ReviewVerdict:
    """Standalone strict review. An unparseable verdict is a 502."""
    client = LiteLLMClient.from_config(req.llm_config(_CONFIG.llm))
    agent = build_review_agent(client, _CONFIG.sandbox, custom_prompt=req.custom_prompt, strict=True)
    try:
        return await agent.review(req.artifact, req.package_name, req.language)
    except ReviewParseError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.post("/validate")
async def validate(req: ValidateRequest) -> OrchestrationResult:
    """Run format, execution and review checks with patch-and-retry.

    422 carries the security findings that aborted the run; 503 means the
    sandbox itself is unavailable and retrying the request will not help
    until it is fixed.
    """
    overrides = {
        "max_retries": req.max_retries,
        "review_max_retries": req.review_max_retries,
        "validation_mode": req.validation_mode,
        "review_enabled": req.review_enabled,
    }
    config = _CONFIG.model_copy(
        update={
            "llm": req.llm_config(_CONFIG.llm),
            "validation": _CONFIG.validation.model_copy(
                update={k: v for k, v in overrides.items() if v is not None}
            ),
        }
    )
    orchestrator = build_orchestrator(LiteLLMClient.from_config(config.llm), config)
    metadata = ArtifactMetadata(
        version=req.version,
        license_name=req.license_name,
        project_urls=req.project_urls,
        generated_with=config.llm.model_name,
    )

    try:
        return await orchestrator.run(
            req.artifact,
            req.package_name,
            req.language,
            req.local_package,
            metadata=metadata,
        )
    except SecurityViolationError as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "error": str(exc),
                "stage": exc.stage,
                "findings": [finding.model_dump(mode="json") for finding in exc.findings],
            },
        ) from exc
    except InfrastructureError as exc:
        raise HTTPException(status_code=503, detail=f"Sandbox unavailable: {exc}") from exc
