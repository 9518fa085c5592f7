from functools import lru_cache

from app.ai.config import load_ai_config
from app.ai.types import AIClient

from app.ai.providers.openai_provider import OpenAIProvider


@lru_cache(maxsize=1)
def get_ai_client() -> AIClient:
    cfg = load_ai_config()

    if cfg.provider == "openai":
        return OpenAIProvider(
            model=cfg.model,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            max_retries=cfg.max_retries,
        )

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
