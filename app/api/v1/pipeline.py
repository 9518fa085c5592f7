import logging
from dataclasses import asdict

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import ValidationError

from app.core.rate_limit import rate_limit
from app.core.security import check_api_key
from app.features.responsible_output import attribution_explanation, attribution_summary
from app.schemas.profile import SKILL_DISPLAY_NAMES, StudentProfile
from app.schemas.requests import (
    ActionPlanRequest,
    PipelineRunRequest,
    RecommendationRequest,
    SkillGapRequest,
)
from app.services.errors import ExtractorUnavailableError, StageError, StageValidationError
from app.services.factory import build_orchestrator, build_stages

logger = logging.getLogger(__name__)

router = APIRouter()


def _stages():
    try:
        return build_stages()
    except ExtractorUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def _raise_stage_http_error(exc: Exception, stage: str) -> None:
    if isinstance(exc, StageValidationError):
        detail = {"stage": exc.stage, "code": exc.code, "message": str(exc), "details": exc.details}
    elif isinstance(exc, StageError):
        detail = {"stage": exc.stage, "code": exc.code, "message": str(exc)}
    else:
        detail = {"stage": stage, "code": "invalid_output", "message": "Post-processing produced an invalid output"}
    logger.warning("stage_route_failed stage=%s code=%s", detail["stage"], detail["code"])
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail) from exc


@router.post("/intake/analyze")
@rate_limit()
async def analyze_intake(
    request: Request,
    payload: StudentProfile,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    stages = _stages()
    try:
        outcome = await stages.analyze_intake(payload)
    except (StageError, ValidationError) as exc:
        _raise_stage_http_error(exc, "intake")

    snapshot = outcome.output
    return {
        "signals": snapshot.model_dump(),
        "attribution_summary": asdict(attribution_summary(snapshot)),
        "explanations": {
            skill: attribution_explanation(signal.attribution_type, SKILL_DISPLAY_NAMES[skill], signal.inference_sources)
            for skill, signal in snapshot.items()
        },
    }


@router.post("/skill-gaps")
@rate_limit()
async def analyze_skill_gaps(
    request: Request,
    payload: SkillGapRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    stages = _stages()
    try:
        outcome = await stages.analyze_gaps(payload.profile, payload.intake)
    except (StageError, ValidationError) as exc:
        _raise_stage_http_error(exc, "skill_gap")
    return outcome.output.model_dump()


@router.post("/recommendations")
@rate_limit()
async def recommend(
    request: Request,
    payload: RecommendationRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    stages = _stages()
    try:
        outcome = await stages.recommend(payload.profile, payload.intake, payload.skill_gap)
    except (StageError, ValidationError) as exc:
        _raise_stage_http_error(exc, "recommendations")
    return outcome.output.model_dump()


@router.post("/action-plan")
@rate_limit()
async def action_plan(
    request: Request,
    payload: ActionPlanRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    stages = _stages()
    try:
        outcome = await stages.plan(payload.profile, payload.intake, payload.skill_gap, payload.recommendations)
    except (StageError, ValidationError) as exc:
        _raise_stage_http_error(exc, "action_plan")
    return outcome.output.model_dump()


@router.post("/pipeline/run")
@rate_limit()
async def run_pipeline(
    request: Request,
    payload: PipelineRunRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    try:
        orchestrator = build_orchestrator(skip_action_plan=payload.skip_action_plan)
    except ExtractorUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    result = await orchestrator.run(payload.profile)
    return result.model_dump()
