from __future__ import annotations

from typing import Optional

from openai import OpenAI

from roofdesk.config import get_settings
from roofdesk.services.llm.types import LLMProviderError


class OpenAIProvider:
    name = "openai"

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.openai_api_key:
            raise LLMProviderError("OPENAI_API_KEY not configured", retryable=False)
        self._client = OpenAI(api_key=settings.openai_api_key)

    def generate(
        self,
        *,
        model: str,
        prompt: str,
        timeout_seconds: int,
        system: Optional[str] = None,
        expect_json: bool = False,
        max_tokens: int = 2000,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        kwargs = {}
        if expect_json:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                timeout=timeout_seconds,
                **kwargs,
            )
            content = response.choices[0].message.content if response.choices else ""
            return str(content or "").strip()
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=True) from exc
