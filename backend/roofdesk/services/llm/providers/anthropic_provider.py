from __future__ import annotations

from typing import Optional

from anthropic import Anthropic

from roofdesk.config import get_settings
from roofdesk.services.llm.types import LLMProviderError


class AnthropicProvider:
    name = "anthropic"

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.anthropic_api_key:
            raise LLMProviderError("ANTHROPIC_API_KEY not configured", retryable=False)
        self._client = Anthropic(api_key=settings.anthropic_api_key)

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
        # No native JSON mode; callers put the schema in the prompt.
        del expect_json
        kwargs = {"system": system} if system else {}
        try:
            response = self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout_seconds,
                **kwargs,
            )
            text_parts = []
            for block in getattr(response, "content", []) or []:
                value = getattr(block, "text", None)
                if value:
                    text_parts.append(str(value))
            return "\n".join(text_parts).strip()
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=True) from exc
