from __future__ import annotations

import logging
import os
import re
import time
from typing import Sequence

from app.ai.types import AIClient, ChatMessage
from app.core.config import settings
from app.services.errors import ExtractorError

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo"}


def extractor_configured() -> bool:
    provider = (os.getenv("AI_PROVIDER") or "openai").strip().lower()
    if provider != "openai":
        return False
    api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
    return bool(api_key) and not _looks_like_placeholder(api_key)


def clean_json_response(text: str) -> str:
    """Strip a markdown code fence the model may wrap around its JSON."""
    return _JSON_FENCE_RE.sub("", (text or "").strip()).strip()


class Extractor:
    """Sends one stage prompt to the text-to-structure service and returns its raw text."""

    def __init__(
        self,
        client: AIClient,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        self._client = client
        self._temperature = settings.extractor_temperature if temperature is None else temperature
        self._max_tokens = max_tokens or settings.intake_max_tokens

    async def complete(
        self,
        *,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
    ) -> str:
        messages: Sequence[ChatMessage] = (
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_prompt),
        )
        started = time.perf_counter()
        try:
            content = await self._client.complete(
                messages,
                model=model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:  # noqa: BLE001 - provider errors become stage errors
            logger.warning(
                "extractor_call_failed stage=%s prompt_len=%s latency_ms=%s: %s",
                stage,
                len(user_prompt),
                int((time.perf_counter() - started) * 1000),
                exc,
            )
            raise ExtractorError(f"Extractor call failed: {exc}", code="extractor_exception") from exc

        latency_ms = int((time.perf_counter() - started) * 1000)
        if not content or not content.strip():
            logger.warning("extractor_empty_response stage=%s latency_ms=%s", stage, latency_ms)
            raise ExtractorError("Extractor returned an empty response.", code="empty_response")

        logger.info("extractor_call_ok stage=%s latency_ms=%s response_len=%s", stage, latency_ms, len(content))
        return content
