from __future__ import annotations

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from docproof.artifact.lint import LintIssue, Severity
from docproof.errors import ReviewParseError, RuntimeNotFoundError, SecurityViolationError
from docproof.main import app
from docproof.orchestrator.models import OrchestrationResult
from docproof.review.models import ReviewIssue, ReviewVerdict

client = TestClient(app)


def test_lint_endpoint_reports_counts(valid_artifact: str) -> None:
    response = client.post("/lint", json={"artifact": valid_artifact.split("## Pitfalls")[0] + "\nrm -rf /\n"})

    assert response.status_code == 200
    body = response.json()
    assert body["error_count"] >= 1
    assert body["security_count"] >= 1
    assert any(issue["category"] == "security" for issue in body["issues"])


def test_review_endpoint_is_strict(valid_artifact: str) -> None:
    with patch("docproof.main.ReviewAgent.review", new_callable=AsyncMock) as mock_review:
        mock_review.return_value = ReviewVerdict(
            passed=False, issues=[ReviewIssue(complaint="wrong import path")]
        )
        response = client.post(
            "/review", json={"artifact": valid_artifact, "package_name": "acme", "language": "python"}
        )

    assert response.status_code == 200
    assert response.json()["issues"][0]["complaint"] == "wrong import path"
    mock_review.assert_awaited_once_with(valid_artifact, "acme", "python")


def test_review_endpoint_unparseable_verdict_is_502(valid_artifact: str) -> None:
    with patch(
        "docproof.main.ReviewAgent.review",
        new_callable=AsyncMock,
        side_effect=ReviewParseError("review: LLM returned unparseable response (strict mode)"),
    ):
        response = client.post("/review", json={"artifact": valid_artifact, "package_name": "acme"})

    assert response.status_code == 502
    assert "unparseable" in response.json()["detail"]


def test_validate_endpoint_returns_orchestration_result(valid_artifact: str) -> None:
    result = OrchestrationResult(artifact=valid_artifact, format_attempts=1)
    with patch(
        "docproof.main.ValidationOrchestrator.run", new_callable=AsyncMock, return_value=result
    ) as mock_run:
        response = client.post(
            "/validate",
            json={
                "artifact": valid_artifact,
                "package_name": "acme",
                "local_package": "acme",
                "max_retries": 0,
            },
        )

    assert response.status_code == 200
    body = response.json()
    assert body["format_attempts"] == 1
    assert body["unresolved_warnings"] == []
    args = mock_run.await_args
    assert args.args == (valid_artifact, "acme", "python", "acme")
    assert args.kwargs["metadata"].generated_with == "gpt-4o"


def test_validate_endpoint_security_violation_is_422(valid_artifact: str) -> None:
    finding = LintIssue(severity=Severity.error, category="security", message="Reverse shell")
    with patch(
        "docproof.main.ValidationOrchestrator.run",
        new_callable=AsyncMock,
        side_effect=SecurityViolationError("format check (attempt 1)", [finding]),
    ):
        response = client.post("/validate", json={"artifact": valid_artifact, "package_name": "acme"})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["stage"] == "format check (attempt 1)"
    assert detail["findings"][0]["message"] == "Reverse shell"
    assert detail["error"].startswith("SECURITY:")


def test_validate_endpoint_infrastructure_error_is_503(valid_artifact: str) -> None:
    with patch(
        "docproof.main.ValidationOrchestrator.run",
        new_callable=AsyncMock,
        side_effect=RuntimeNotFoundError("docker not found on PATH"),
    ):
        response = client.post("/validate", json={"artifact": valid_artifact, "package_name": "acme"})

    assert response.status_code == 503
    assert "docker not found" in response.json()["detail"]


def test_validate_endpoint_rejects_negative_budget(valid_artifact: str) -> None:
    response = client.post(
        "/validate", json={"artifact": valid_artifact, "package_name": "acme", "max_retries": -1}
    )
    assert response.status_code == 422
