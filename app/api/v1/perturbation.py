from fastapi import APIRouter, Header, HTTPException, Request, status

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.security import check_api_key
from app.perturbation.engine import validate_batch
from app.schemas.perturbation import BatchRequest
from app.services.errors import BatchInputError, ExtractorUnavailableError
from app.services.factory import build_engine

router = APIRouter()

VARIANT_TYPES = {
    "original": "Unmodified baseline; every other variant is compared against it.",
    "injection": "Adds goal-relevant evidence sentences the profile did not contain.",
    "removal": "Strips every sentence of the first detected evidence family.",
    "rephrasing": "Rewords free text with fixed synonyms while keeping its meaning.",
}

METRICS = {
    "attribution_consistency_rate": "Share of per-skill attribution changes that match the variant type.",
    "hallucination_rate": "Share of cited evidence, gaps and recommendation claims that could not be traced to input.",
    "recommendation_stability_rate": "Share of rephrasing variants whose recommendations overlap the baseline.",
    "action_plan_appropriateness_rate": "Share of plans within the weekly budget, the gain cap and gap ordering.",
}


@router.get("/perturbation-test")
async def describe_perturbation_test():
    return {
        "variant_types": VARIANT_TYPES,
        "metrics": METRICS,
        "max_profiles": settings.batch_max_profiles,
        "config_fields": ["runInjection", "runRemoval", "runRephrasing", "skipActionPlan"],
    }


@router.post("/perturbation-test")
@rate_limit(settings.batch_rate_limit)
async def run_perturbation_test(
    request: Request,
    payload: BatchRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    _ = request
    check_api_key(x_api_key)
    try:
        validate_batch(payload.profiles, settings.batch_max_profiles)
        engine = build_engine()
        report = await engine.run_batch(payload.profiles, payload.config)
    except BatchInputError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except ExtractorUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return report.model_dump()
