"""Response Validator — parse provider text, then apply the quality gate.

Providers are asked for a JSON object but sometimes wrap it in prose or
markdown fences. Parsing is best effort:
  1. strip ```json fences and try the whole text
  2. fall back to the first {...} block in the text
The outcome is a tagged union (ParsedOutput | UnparseableOutput); only
``validate`` turns an UnparseableOutput into an error.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errorwise.core.exceptions import InvalidResponseError
from errorwise.orchestrator.types import (
    ParsedOutput,
    ProviderOutput,
    ProviderReply,
    ProviderResult,
    TokenUsage,
    UnparseableOutput,
)

logger = logging.getLogger(__name__)

MIN_FIELD_CHARS = 50

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class ProviderPayload(BaseModel):
    """Lenient schema for the JSON object a provider returns."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    explanation: str = ""
    solution: str = ""
    code_example: str = Field("", alias="codeExample")
    code_examples: list[str] = Field(default_factory=list, alias="codeExamples")
    confidence: float = 0.7
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    prevention_tips: list[str] = Field(default_factory=list, alias="preventionTips")

    @field_validator("explanation", "solution", "code_example", "category", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return "\n".join(str(v) for v in value)
        return str(value)

    @field_validator("code_examples", "tags", "prevention_tips", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value if v is not None and str(v).strip()]
        return []

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.7
        if number != number:  # NaN
            return 0.7
        return max(0.0, min(1.0, number))


def _load_json_object(text: str) -> dict | None:
    cleaned = _FENCE_PATTERN.sub("", text).strip()

    for candidate in (cleaned, *_OBJECT_PATTERN.findall(cleaned)):
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_provider_output(reply: ProviderReply, provider_name: str) -> ProviderOutput:
    """Turn a raw provider reply into a tagged parse result. Never raises."""
    text = reply.text or ""
    if not text.strip():
        return UnparseableOutput(raw_text=text, reason="empty response", provider_name=provider_name)

    data = _load_json_object(text)
    if data is None:
        logger.warning("Unparseable response from %s: %s", provider_name, text[:200])
        return UnparseableOutput(raw_text=text, reason="no JSON object found", provider_name=provider_name)

    try:
        payload = ProviderPayload.model_validate(data)
    except ValidationError as e:
        return UnparseableOutput(raw_text=text, reason=f"schema mismatch: {e.error_count()} errors", provider_name=provider_name)

    code_examples = list(payload.code_examples)
    if payload.code_example.strip():
        code_examples.insert(0, payload.code_example)

    return ParsedOutput(
        result=ProviderResult(
            explanation=payload.explanation.strip(),
            solution=payload.solution.strip(),
            code_examples=tuple(code_examples),
            confidence=payload.confidence,
            tokens_used=TokenUsage(input=reply.input_tokens, output=reply.output_tokens),
            provider_name=provider_name,
            model=reply.model,
            category=payload.category,
            tags=tuple(payload.tags),
            prevention_tips=tuple(payload.prevention_tips),
        )
    )


class ResponseValidator:
    """Minimum shape and quality gate for provider output."""

    def __init__(self, min_field_chars: int = MIN_FIELD_CHARS):
        self.min_field_chars = min_field_chars

    def validate(self, output: ProviderOutput | ProviderResult) -> ProviderResult:
        """Return the ProviderResult if it passes, else raise InvalidResponseError."""
        if isinstance(output, UnparseableOutput):
            raise InvalidResponseError(output.reason, provider=output.provider_name)

        result = output.result if isinstance(output, ParsedOutput) else output
        if not isinstance(result, ProviderResult):
            raise InvalidResponseError("not a structured object")

        for field_name in ("explanation", "solution"):
            value = getattr(result, field_name)
            if not isinstance(value, str) or len(value) < self.min_field_chars:
                raise InvalidResponseError(
                    f"{field_name} is missing or too short (min {self.min_field_chars} chars)",
                    provider=result.provider_name,
                )

        return result
