from __future__ import annotations

import os
from typing import Optional, Sequence

from openai import AsyncOpenAI

from app.ai.types import ChatMessage


class OpenAIProvider:
    """Chat-completions client for any OpenAI-compatible endpoint (OpenAI, HF router, Groq)."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 45.0,
        max_retries: int = 2,
        temperature: float = 0.1,
    ):
        self._model = model
        self._temperature = temperature
        self._response_format = (os.getenv("OPENAI_RESPONSE_FORMAT") or "json").strip().lower()
        key = (api_key or os.getenv("OPENAI_API_KEY") or "").strip()
        if not key:
            raise RuntimeError("OPENAI_API_KEY is missing")

        self._client = AsyncOpenAI(
            api_key=key,
            base_url=base_url,
            timeout=timeout_s,
            max_retries=max_retries,
        )

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        payload = [{"role": m.role, "content": m.content} for m in messages]

        create_kwargs = {
            "model": model or self._model,
            "messages": payload,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if max_tokens:
            create_kwargs["max_tokens"] = max_tokens
        if self._response_format == "json":
            create_kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(**create_kwargs)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
