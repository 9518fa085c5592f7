from __future__ import annotations

from fastapi import HTTPException, status

from app.core.config import settings


def _normalize_lang(lang: str | None) -> str:
    if not lang:
        return "en"
    return lang.split(",")[0].strip().lower()


def _auth_error_message(lang: str | None) -> str:
    key = _normalize_lang(lang)
    messages = {
        "en": "A valid X-API-Key header is required for SkillBridge analysis routes.",
        "de": "Für die SkillBridge-Analyse ist ein gültiger X-API-Key-Header erforderlich.",
        "es": "Se requiere un encabezado X-API-Key válido para las rutas de análisis de SkillBridge.",
    }
    return messages.get(key, messages["en"])


def check_api_key(x_api_key: str | None, lang: str | None = None) -> None:
    """No-op when API_KEY is unset, so local runs need no header."""
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_auth_error_message(lang),
        )
