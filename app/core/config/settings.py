from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    rate_limit: str
    batch_rate_limit: str
    rate_limit_enabled: bool
    log_level: str
    sentry_dsn: str | None
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None
    stage_timeout_s: float
    batch_max_concurrency: int
    batch_max_profiles: int
    extractor_temperature: float
    intake_max_tokens: int
    plan_model: str | None


settings = Settings(
    api_key=_get_env("API_KEY"),
    rate_limit=_get_env("RATE_LIMIT", "30/minute") or "30/minute",
    batch_rate_limit=_get_env("BATCH_RATE_LIMIT", "3/minute") or "3/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
        ],
    ),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    stage_timeout_s=_get_env_float("STAGE_TIMEOUT_S", 60.0),
    batch_max_concurrency=max(1, _get_env_int("BATCH_MAX_CONCURRENCY", 4)),
    batch_max_profiles=max(1, _get_env_int("BATCH_MAX_PROFILES", 10)),
    extractor_temperature=_get_env_float("EXTRACTOR_TEMPERATURE", 0.1),
    intake_max_tokens=_get_env_int("EXTRACTOR_MAX_TOKENS", 4000),
    plan_model=_get_env("PLAN_MODEL"),
)
