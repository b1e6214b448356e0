"""Provider Adapters — protocol-level handling for each LLM backend.

Each adapter translates a PromptPayload + ProviderSpec into the vendor's HTTP
protocol, sends it and returns the raw reply text with token usage. Parsing
and validation happen later in the response validator.

Failure mapping (shared by every HTTP adapter):
  - httpx timeout           → ProviderTimeoutError (retryable)
  - 429 / 5xx               → ProviderCallError (retryable)
  - other 4xx               → ProviderCallError (not retryable)
  - transport errors        → ProviderCallError (retryable)
  - empty content           → ProviderCallError (retryable)

Vendor-specific behaviors:
  - Anthropic: Messages API, system prompt as a top-level field
  - Gemini: generateContent, finishReason SAFETY → non-retryable failure
  - OpenAI: chat completions with JSON response format
  - Mock: canned answers by error type, no network
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod

import httpx

from errorwise.analysis.fallback_responses import canned_response
from errorwise.core.exceptions import ProviderCallError, ProviderTimeoutError
from errorwise.orchestrator.types import PromptPayload, ProviderReply, ProviderSpec, ProviderVendor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters."""

    vendor: ProviderVendor
    requires_api_key: bool = True

    def __init__(self, api_key: str = "", **kwargs):
        self.api_key = api_key

    @property
    def available(self) -> bool:
        return bool(self.api_key) or not self.requires_api_key

    @abstractmethod
    async def invoke(self, prompt: PromptPayload, spec: ProviderSpec, timeout: float = DEFAULT_TIMEOUT) -> ProviderReply:
        """Send the prompt to the backend and return its raw reply."""
        ...

    async def _post_json(
        self,
        url: str,
        payload: dict,
        headers: dict,
        timeout: float,
        provider: str,
        params: dict | None = None,
    ) -> dict:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException:
            raise ProviderTimeoutError(provider=provider, timeout=timeout)
        except httpx.HTTPError as e:
            raise ProviderCallError(f"{provider} request failed: {e}", provider=provider, retryable=True)

        if resp.status_code >= 400:
            raise ProviderCallError.from_status(provider, resp.status_code, resp.text)

        try:
            return resp.json()
        except ValueError:
            raise ProviderCallError(f"{provider} returned a non-JSON body", provider=provider, retryable=True)

    @staticmethod
    def _require_text(text: str, provider: str) -> str:
        if not text or not text.strip():
            raise ProviderCallError(f"{provider} returned empty content", provider=provider, retryable=True)
        return text


# ---------------------------------------------------------------------------
# Anthropic Adapter
# ---------------------------------------------------------------------------


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Messages API adapter."""

    vendor = ProviderVendor.ANTHROPIC
    api_url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"

    async def invoke(self, prompt: PromptPayload, spec: ProviderSpec, timeout: float = DEFAULT_TIMEOUT) -> ProviderReply:
        messages = [{"role": entry.role, "content": entry.text} for entry in prompt.history]
        messages.append({"role": "user", "content": prompt.user})

        payload = {
            "model": spec.model,
            "max_tokens": spec.max_tokens,
            "temperature": spec.temperature,
            "system": prompt.system,
            "messages": messages,
        }
        data = await self._post_json(
            self.api_url,
            payload,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.api_version,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            provider=spec.name,
        )

        blocks = data.get("content") or []
        text = self._require_text(
            "".join(block.get("text", "") for block in blocks if block.get("type") == "text"),
            spec.name,
        )
        usage = data.get("usage", {})
        return ProviderReply(
            text=text,
            model=data.get("model", spec.model),
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        )


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseProviderAdapter):
    """Google Gemini adapter with SAFETY filter detection."""

    vendor = ProviderVendor.GEMINI
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    async def invoke(self, prompt: PromptPayload, spec: ProviderSpec, timeout: float = DEFAULT_TIMEOUT) -> ProviderReply:
        contents = [
            {"role": "model" if entry.role == "assistant" else "user", "parts": [{"text": entry.text}]}
            for entry in prompt.history
        ]
        contents.append({"role": "user", "parts": [{"text": prompt.user}]})

        payload = {
            "contents": contents,
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "generationConfig": {
                "temperature": spec.temperature,
                "maxOutputTokens": spec.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        data = await self._post_json(
            self.api_url_template.format(model=spec.model),
            payload,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            provider=spec.name,
            params={"key": self.api_key},
        )

        candidates = data.get("candidates", [])
        if not candidates:
            block_reason = data.get("promptFeedback", {}).get("blockReason", "")
            raise ProviderCallError(
                f"{spec.name} returned no candidates ({block_reason or 'empty'})",
                provider=spec.name,
                retryable=not block_reason,
            )

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise ProviderCallError(f"{spec.name} safety filter triggered", provider=spec.name, retryable=False)

        parts = candidate.get("content", {}).get("parts", [])
        usage = data.get("usageMetadata", {})
        return ProviderReply(
            text=self._require_text("".join(p.get("text", "") for p in parts if "text" in p), spec.name),
            model=spec.model,
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
        )


# ---------------------------------------------------------------------------
# OpenAI Adapter
# ---------------------------------------------------------------------------


class OpenAIAdapter(BaseProviderAdapter):
    """OpenAI Chat Completions adapter."""

    vendor = ProviderVendor.OPENAI
    api_url = "https://api.openai.com/v1/chat/completions"

    async def invoke(self, prompt: PromptPayload, spec: ProviderSpec, timeout: float = DEFAULT_TIMEOUT) -> ProviderReply:
        messages = [{"role": "system", "content": prompt.system}]
        messages.extend({"role": entry.role, "content": entry.text} for entry in prompt.history)
        messages.append({"role": "user", "content": prompt.user})

        payload = {
            "model": spec.model,
            "messages": messages,
            "temperature": spec.temperature,
            "max_tokens": spec.max_tokens,
            "response_format": {"type": "json_object"},
        }
        data = await self._post_json(
            self.api_url,
            payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            provider=spec.name,
        )

        choices = data.get("choices") or [{}]
        usage = data.get("usage", {})
        return ProviderReply(
            text=self._require_text(choices[0].get("message", {}).get("content") or "", spec.name),
            model=data.get("model", spec.model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )


# ---------------------------------------------------------------------------
# Mock Adapter (offline)
# ---------------------------------------------------------------------------


class MockAdapter(BaseProviderAdapter):
    """Returns a canned analysis for the prompt's error type. Never fails."""

    vendor = ProviderVendor.MOCK
    requires_api_key = False

    async def invoke(self, prompt: PromptPayload, spec: ProviderSpec, timeout: float = DEFAULT_TIMEOUT) -> ProviderReply:
        logger.info("Serving canned analysis for error type %r", prompt.error_type or "general")
        return ProviderReply(text=json.dumps(canned_response(prompt.error_type)), model=spec.model)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[ProviderVendor, type[BaseProviderAdapter]] = {
    ProviderVendor.ANTHROPIC: AnthropicAdapter,
    ProviderVendor.GEMINI: GeminiAdapter,
    ProviderVendor.OPENAI: OpenAIAdapter,
    ProviderVendor.MOCK: MockAdapter,
}


def get_adapter(vendor: ProviderVendor, api_key: str = "", **kwargs) -> BaseProviderAdapter:
    """Factory: get the appropriate adapter for a vendor."""
    cls = ADAPTER_REGISTRY.get(vendor)
    if cls is None:
        raise ValueError(f"No adapter registered for vendor: {vendor}")
    return cls(api_key=api_key, **kwargs)
