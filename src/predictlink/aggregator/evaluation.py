"""Evaluation provider - structured-output LLM call with strict schema validation."""

from __future__ import annotations

import json
from typing import Any, Protocol

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field

from predictlink.errors import EvaluationFailure

log = structlog.get_logger(__name__)


class SchemaError(Exception):
    """Provider output could not be parsed as the requested structure."""


class AssessmentPayload(BaseModel):
    """Fixed evaluation schema. Strict: no coercion, no extra keys."""

    model_config = ConfigDict(strict=True, extra="forbid")

    confidence: float = Field(..., description="Confidence score; clamped to [0, 1] by Assessment")
    outcome: bool = Field(..., description="True/False for binary outcome")
    summary: str = Field(..., description="Brief summary of evidence")
    sources: list[str] = Field(..., description="List of verified sources")


class EvaluationProvider(Protocol):
    """evaluate(prompt, schema) -> structured output, or raise SchemaError."""

    async def evaluate(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]: ...


class OpenAIEvaluator:
    """Chat completion with a strict json_schema response format."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def evaluate(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": "You are an evidence aggregator for prediction market oracles."},
                    {"role": "user", "content": prompt},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "assessment", "schema": schema, "strict": True},
                },
            )
        except openai.OpenAIError as e:
            raise EvaluationFailure(f"evaluation call failed: {e}") from e
        content = response.choices[0].message.content or ""
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise SchemaError(f"evaluation output is not JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise SchemaError("evaluation output is not a JSON object")
        return parsed

    async def aclose(self) -> None:
        await self._client.close()
