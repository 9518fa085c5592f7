from __future__ import annotations

from app.ai.factory import get_ai_client
from app.core.config import settings
from app.perturbation.engine import PerturbationEngine
from app.services.errors import ExtractorUnavailableError
from app.services.extractor import Extractor, extractor_configured
from app.services.pipeline import PipelineOrchestrator
from app.services.stages import SkillBridgeStages


def build_stages() -> SkillBridgeStages:
    if not extractor_configured():
        raise ExtractorUnavailableError("Set OPENAI_API_KEY to enable the analysis stages.")
    return SkillBridgeStages(Extractor(get_ai_client()))


def build_orchestrator(*, skip_action_plan: bool = False) -> PipelineOrchestrator:
    return PipelineOrchestrator(build_stages(), skip_action_plan=skip_action_plan)


def build_engine() -> PerturbationEngine:
    return PerturbationEngine(
        build_orchestrator(),
        max_concurrency=settings.batch_max_concurrency,
        max_profiles=settings.batch_max_profiles,
    )
