from __future__ import annotations

from typing import Optional

from google import genai
from google.genai import types

from roofdesk.config import get_settings
from roofdesk.services.llm.types import LLMProviderError


class GeminiProvider:
    name = "gemini"

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.gemini_api_key:
            raise LLMProviderError("GEMINI_API_KEY not configured", retryable=False)
        self._client = genai.Client(api_key=settings.gemini_api_key)

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
        del timeout_seconds
        try:
            cfg = types.GenerateContentConfig(
                system_instruction=system,
                max_output_tokens=max_tokens,
                response_mime_type="application/json" if expect_json else None,
            )
            response = self._client.models.generate_content(
                model=model,
                contents=prompt,
                config=cfg,
            )
            return str(response.text or "").strip()
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=True) from exc
