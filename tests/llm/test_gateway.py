from __future__ import annotations

from unittest.mock import AsyncMock, Mock, patch

import pytest

from docproof.config import LLMConfig
from docproof.llm.gateway import LiteLLMClient, response_text


def _response(content: str) -> Mock:
    mock_message = Mock()
    mock_message.content = content
    mock_choice = Mock()
    mock_choice.message = mock_message
    mock_response = Mock()
    mock_response.choices = [mock_choice]
    return mock_response


@pytest.mark.asyncio
async def test_complete_returns_message_content() -> None:
    client = LiteLLMClient(LLMConfig(model_name="test-model"), system_prompt="be terse")

    with patch(
        "docproof.llm.gateway.acompletion", new=AsyncMock(return_value=_response("print(1)"))
    ) as mock_completion:
        result = await client.complete("write code")

    mock_completion.assert_awaited_once()
    kwargs = mock_completion.await_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["timeout"] == 120.0
    assert kwargs["messages"] == [
        {"role": "system", "content": "be terse"},
        {"role": "user", "content": "write code"},
    ]
    assert "max_tokens" not in kwargs
    assert "api_key" not in kwargs
    assert result == "print(1)"


@pytest.mark.asyncio
async def test_config_sampling_fields_are_forwarded() -> None:
    client = LiteLLMClient.from_config(
        LLMConfig(model_name="m", timeout_s=30.0, temperature=0.2, max_tokens=512, api_key="sk")
    )

    with patch(
        "docproof.llm.gateway.acompletion", new=AsyncMock(return_value=_response("x"))
    ) as mock_completion:
        await client.complete("hi")

    kwargs = mock_completion.await_args.kwargs
    assert kwargs["timeout"] == 30.0
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 512
    assert kwargs["api_key"] == "sk"
    assert kwargs["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_complete_wraps_transport_errors() -> None:
    client = LiteLLMClient()
    with patch("docproof.llm.gateway.acompletion", new=AsyncMock(side_effect=Exception("API Down"))):
        with pytest.raises(RuntimeError, match="LLM Gateway Request Failed"):
            await client.complete("hi")


@pytest.mark.asyncio
async def test_nvidia_provider_uses_default_base(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NVIDIA_API_BASE", raising=False)
    client = LiteLLMClient(LLMConfig(model_name="moonshotai/kimi-k2.5", provider="nvidia", api_key="k"))

    with patch(
        "docproof.llm.gateway.acompletion", new=AsyncMock(return_value=_response("x"))
    ) as mock_completion:
        await client.complete("hi")

    kwargs = mock_completion.await_args.kwargs
    assert kwargs["api_base"] == "https://integrate.api.nvidia.com/v1"
    assert kwargs["api_key"] == "k"


@pytest.mark.asyncio
async def test_nvidia_provider_requires_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NVIDIA_API_KEY", raising=False)
    client = LiteLLMClient(LLMConfig(provider="NVIDIA"))

    with patch("docproof.llm.gateway.acompletion", new=AsyncMock()) as mock_completion:
        with pytest.raises(RuntimeError, match="NVIDIA_API_KEY"):
            await client.complete("hi")

    mock_completion.assert_not_awaited()


def test_unsupported_provider_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported LLM provider"):
        LiteLLMClient(LLMConfig(provider="carrier-pigeon"))


class TestResponseText:
    def test_mapping_response(self) -> None:
        assert response_text({"choices": [{"message": {"content": "ok"}}]}) == "ok"

    def test_attribute_response(self) -> None:
        assert response_text(_response("ok")) == "ok"

    def test_missing_pieces_yield_empty(self) -> None:
        assert response_text({"choices": []}) == ""
        assert response_text({"choices": [{"message": {"content": None}}]}) == ""
        assert response_text(object()) == ""
