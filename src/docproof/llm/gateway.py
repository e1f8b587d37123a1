"""LiteLLM gateway used for regeneration, test synthesis and review verdicts."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any, Protocol

from litellm import acompletion

from docproof.config import LLMConfig

logger = logging.getLogger(__name__)

NVIDIA_API_BASE = "https://integrate.api.nvidia.com/v1"
PROVIDERS = ("openai", "nvidia", "custom")


class LLMClient(Protocol):
    """Anything that turns a prompt into response text."""

    async def complete(self, prompt: str) -> str: ...


def response_text(response: object) -> str:
    """First choice's message content, for dict- or attribute-shaped responses."""
    node: object = response
    for key in ("choices", 0, "message", "content"):
        if isinstance(key, int):
            if not isinstance(node, list) or not node:
                return ""
            node = node[key]
        elif isinstance(node, Mapping):
            node = node.get(key)
        else:
            node = getattr(node, key, None)
    return node if isinstance(node, str) else ""


class LiteLLMClient:
    """Single-turn ``acompletion`` calls driven by an :class:`LLMConfig`."""

    def __init__(self, config: LLMConfig | None = None, *, system_prompt: str | None = None) -> None:
        self.config = config or LLMConfig()
        self.provider = self.config.provider.strip().lower()
        if self.provider not in PROVIDERS:
            raise ValueError(
                f"Unsupported LLM provider '{self.config.provider}'. Supported providers: {list(PROVIDERS)}"
            )
        self.system_prompt = system_prompt

    @classmethod
    def from_config(cls, config: LLMConfig) -> LiteLLMClient:
        return cls(config)

    async def complete(self, prompt: str) -> str:
        """Send *prompt* as one user turn and return the response text."""
        request = self._request(prompt)
        try:
            request.update(self._endpoint())
            response = await acompletion(**request)
        except Exception as err:
            raise RuntimeError(f"LLM Gateway Request Failed: {err}") from err

        content = response_text(response)
        logger.debug(
            "LLM %s returned %d chars for a %d char prompt",
            self.config.model_name,
            len(content),
            len(prompt),
        )
        return content

    def _request(self, prompt: str) -> dict[str, Any]:
        messages = [{"role": "user", "content": prompt}]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})

        request: dict[str, Any] = {
            "model": self.config.model_name,
            "messages": messages,
            "timeout": self.config.timeout_s,
        }
        for field in ("max_tokens", "temperature"):
            value = getattr(self.config, field)
            if value is not None:
                request[field] = value
        return request

    def _endpoint(self) -> dict[str, str]:
        """``api_base``/``api_key`` overrides; nvidia falls back to its env vars."""
        api_base = self.config.api_base
        api_key = self.config.api_key
        if self.provider == "nvidia":
            api_base = api_base or os.getenv("NVIDIA_API_BASE") or NVIDIA_API_BASE
            api_key = api_key or os.getenv("NVIDIA_API_KEY")
            if not api_key:
                raise RuntimeError("NVIDIA_API_KEY is required when provider='nvidia'.")
        return {
            key: value
            for key, value in (("api_base", api_base), ("api_key", api_key))
            if value
        }
