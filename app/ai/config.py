import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    base_url: str | None
    timeout_s: float
    max_retries: int


def load_ai_config() -> AIConfig:
    provider = os.getenv("AI_PROVIDER", "openai").strip().lower()
    model = os.getenv("AI_MODEL", "gpt-4o-mini").strip()
    base_url = os.getenv("OPENAI_BASE_URL", "").strip() or None
    return AIConfig(
        provider=provider,
        model=model,
        base_url=base_url,
        timeout_s=float(os.getenv("OPENAI_TIMEOUT_S", "45")),
        max_retries=int(os.getenv("OPENAI_MAX_RETRIES", "2")),
    )
