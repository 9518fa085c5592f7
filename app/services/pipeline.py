from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.schemas.pipeline import STAGE_LABELS, STAGE_ORDER, PipelineRunResult, StageIssue
from app.schemas.profile import StudentProfile
from app.services.errors import StageError
from app.services.stages import SkillBridgeStages, StageOutcome

logger = logging.getLogger(__name__)

# Recommendations only need intake; gap analysis is optional context for them.
STAGE_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    "intake": (),
    "skill_gap": ("intake",),
    "recommendations": ("intake",),
    "action_plan": ("intake", "skill_gap", "recommendations"),
}


class PipelineOrchestrator:
    """Runs the four stages in order for one profile, keeping whatever could be computed."""

    def __init__(
        self,
        stages: SkillBridgeStages,
        *,
        stage_timeout_s: float | None = None,
        skip_action_plan: bool = False,
    ):
        self._stages = stages
        self._timeout = stage_timeout_s if stage_timeout_s is not None else settings.stage_timeout_s
        self._skip_action_plan = skip_action_plan

    async def _invoke(self, stage: str, profile: StudentProfile, outputs: dict[str, Any]) -> StageOutcome:
        if stage == "intake":
            return await self._stages.analyze_intake(profile)
        if stage == "skill_gap":
            return await self._stages.analyze_gaps(profile, outputs["intake"])
        if stage == "recommendations":
            return await self._stages.recommend(profile, outputs["intake"], outputs.get("skill_gap"))
        return await self._stages.plan(
            profile,
            outputs["intake"],
            outputs["skill_gap"],
            outputs["recommendations"],
        )

    async def run(
        self,
        profile: StudentProfile,
        *,
        variant_id: str = "single",
        skip_action_plan: bool | None = None,
    ) -> PipelineRunResult:
        skip_plan = self._skip_action_plan if skip_action_plan is None else skip_action_plan
        started = time.perf_counter()
        outputs: dict[str, Any] = {}
        raw_responses: dict[str, str] = {}
        errors: list[str] = []
        issues: list[StageIssue] = []

        for stage in STAGE_ORDER:
            label = STAGE_LABELS[stage]
            if stage == "action_plan" and skip_plan:
                issues.append(StageIssue(stage=stage, kind="disabled", reason="Disabled by run configuration"))
                continue

            missing = [dep for dep in STAGE_DEPENDENCIES[stage] if outputs.get(dep) is None]
            if missing:
                reason = "requires " + ", ".join(STAGE_LABELS[dep] for dep in missing) + " output"
                errors.append(f"{label}: skipped ({reason})")
                issues.append(StageIssue(stage=stage, kind="skipped", reason=reason, code="dependency_missing"))
                logger.info("pipeline_stage_skipped stage=%s variant=%s missing=%s", stage, variant_id, missing)
                continue

            try:
                outcome = await asyncio.wait_for(self._invoke(stage, profile, outputs), timeout=self._timeout)
            except asyncio.TimeoutError:
                message = f"timed out after {self._timeout:g}s"
                errors.append(f"{label}: {message}")
                issues.append(StageIssue(stage=stage, kind="error", reason=message, code="timeout"))
                logger.warning("pipeline_stage_timeout stage=%s variant=%s", stage, variant_id)
                continue
            except StageError as exc:
                if exc.raw_response is not None:
                    raw_responses[stage] = exc.raw_response
                errors.append(f"{label}: {exc}")
                issues.append(StageIssue(stage=stage, kind="error", reason=str(exc), code=exc.code))
                logger.warning(
                    "pipeline_stage_failed stage=%s variant=%s code=%s: %s",
                    stage,
                    variant_id,
                    exc.code,
                    exc,
                )
                continue
            except ValidationError as exc:
                message = f"post-processing produced an invalid output: {exc.error_count()} error(s)"
                errors.append(f"{label}: {message}")
                issues.append(StageIssue(stage=stage, kind="error", reason=message, code="invalid_output"))
                logger.warning("pipeline_stage_invalid stage=%s variant=%s: %s", stage, variant_id, exc)
                continue

            outputs[stage] = outcome.output
            raw_responses[stage] = outcome.raw_response

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "pipeline_run_complete variant=%s completed=%s errors=%s duration_ms=%s",
            variant_id,
            sorted(outputs),
            len(errors),
            duration_ms,
        )
        return PipelineRunResult(
            variant_id=variant_id,
            intake=outputs.get("intake"),
            skill_gap=outputs.get("skill_gap"),
            recommendations=outputs.get("recommendations"),
            action_plan=outputs.get("action_plan"),
            raw_responses=raw_responses,
            errors=errors,
            issues=issues,
            duration_ms=duration_ms,
        )
