from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from app.services.errors import StageValidationError
from app.services.extractor import clean_json_response

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _format_errors(exc: ValidationError) -> list[str]:
    details: list[str] = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        details.append(f"{path}: {error.get('msg', 'invalid value')}")
    return details


def load_json_payload(raw: str, *, stage: str) -> dict[str, Any]:
    cleaned = clean_json_response(raw)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("stage_output_not_json stage=%s response_len=%s", stage, len(raw or ""))
        raise StageValidationError(
            f"Response is not valid JSON: {exc.msg}",
            stage=stage,
            details=[f"line {exc.lineno} column {exc.colno}: {exc.msg}"],
            raw_response=raw,
        ) from exc
    if not isinstance(parsed, dict):
        raise StageValidationError(
            "Response must be a JSON object.",
            stage=stage,
            details=["<root>: expected object"],
            raw_response=raw,
        )
    return parsed


def parse_stage_output(raw: str, model: type[ModelT], *, stage: str) -> ModelT:
    """Reject malformed stage output before any post-processing sees it."""
    payload = load_json_payload(raw, stage=stage)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        details = _format_errors(exc)
        logger.warning("stage_output_invalid stage=%s errors=%s", stage, len(details))
        raise StageValidationError(
            "Response validation failed: " + "; ".join(details[:5]),
            stage=stage,
            details=details,
            raw_response=raw,
        ) from exc
