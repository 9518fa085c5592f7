from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from app.core.config import settings
from app.core.config.pipeline import get_pipeline_value
from app.features.freshness import annotate_recommendations, validate_no_outdated_recommendations
from app.features.gap_analysis import current_levels_for_gaps, finalize_gap_analysis
from app.features.goal_weights import calculate_time_allocation, confidence_to_level, resolve_goal_levels
from app.features.responsible_output import (
    ValidationOutcome,
    apply_growth_caps_to_plan,
    apply_inferred_evidence_rules,
    validate_growth_caps,
    validate_inferred_evidence_integrity,
    validate_plan_gain_caps,
    validate_target_separation,
)
from app.schemas.gaps import GapAnalysisResult, SkillGapAnalysis
from app.schemas.plan import ActionPlan, PlanGapInput, PlanRecommendationInput
from app.schemas.profile import EVIDENCE_SOURCES, StudentProfile
from app.schemas.recommendations import Recommendation, RecommendationResult, RecommendationSet
from app.schemas.signals import AttributedSkillSnapshot, SkillSnapshot
from app.services.errors import ExtractorError, StageError
from app.services.extractor import Extractor
from app.services.prompts import (
    GAP_SYSTEM_PROMPT,
    INTAKE_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    RECOMMENDATION_SYSTEM_PROMPT,
    build_gap_prompt,
    build_intake_prompt,
    build_plan_prompt,
    build_recommendation_prompt,
)
from app.services.validation import parse_stage_output

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT")

PLAN_CONFIDENCE_NOTE = "Expected skill gains are projections based on prior evidence and do not guarantee outcomes."


@dataclass(frozen=True)
class StageOutcome(Generic[OutputT]):
    output: OutputT
    raw_response: str


def log_audit(stage: str, check: str, outcome: ValidationOutcome) -> bool:
    """Post-processing audits never block a stage; violations are only logged."""
    if not outcome.valid:
        logger.warning("stage_audit_failed stage=%s check=%s violations=%s", stage, check, outcome.violations)
    return outcome.valid

def _match_level(score: float) -> str:
    if score >= float(get_pipeline_value("recommendations.match_level.high", 85)):
        return "high"
    if score >= float(get_pipeline_value("recommendations.match_level.medium", 70)):
        return "medium"
    return "low"


def finalize_recommendations(recommendations: RecommendationSet) -> RecommendationResult:
    """Attach match levels and freshness annotations to every category."""
    notes: list[str] = []
    categories: dict[str, list[Recommendation]] = {}
    for category in ("courses", "projects", "competitions", "internships"):
        items = [
            item.model_copy(update={"match_level": _match_level(item.match_score)})
            for item in getattr(recommendations, category)
        ]
        annotated, category_notes = annotate_recommendations(items)
        categories[category] = annotated
        notes.extend(category_notes)
    return RecommendationResult(**categories, summary=recommendations.summary, freshness_notes=notes)


def build_plan_inputs(
    snapshot: AttributedSkillSnapshot,
    gap_analysis: GapAnalysisResult,
    recommendations: RecommendationResult,
) -> tuple[dict[str, int], list[PlanGapInput], list[PlanRecommendationInput]]:
    levels = {skill: confidence_to_level(signal.confidence) for skill, signal in snapshot.items()}
    min_gap = float(get_pipeline_value("plan.min_gap_percentage", 15))

    gaps: list[PlanGapInput] = []
    for gap in gap_analysis.skill_gaps:
        if gap.gap < min_gap:
            continue
        signal = snapshot.get(gap.skill)
        if signal is not None and signal.evidence_phrases:
            evidence = ", ".join(signal.evidence_phrases)
        else:
            evidence = gap.reasoning or "No direct evidence in profile"
        gaps.append(
            PlanGapInput(
                skill=gap.skill,
                current_score=gap.current_score,
                target_score=gap.goal_level,
                gap_percentage=min(gap.gap, 100),
                evidence_summary=evidence,
            )
        )

    recs: list[PlanRecommendationInput] = []
    counters: dict[str, int] = {}
    for rec_type, rec in recommendations.flattened():
        counters[rec_type] = counters.get(rec_type, 0) + 1
        recs.append(
            PlanRecommendationInput(
                id=f"{rec_type}-{counters[rec_type]}",
                type=rec_type,
                title=rec.title,
                matched_skills=[alignment.skill for alignment in rec.skill_alignment],
                expected_skill_gain={
                    alignment.skill: alignment.expected_improvement for alignment in rec.skill_alignment
                },
                match_score=rec.match_score,
            )
        )
    return levels, gaps, recs


def finalize_plan(plan: ActionPlan) -> ActionPlan:
    """Apply the cumulative gain cap and recompute the overview totals."""
    weeks, _ = apply_growth_caps_to_plan(plan.weeks)
    total_tasks = sum(len(week.tasks) for week in weeks)
    total_hours = sum(week.total_hours() for week in weeks)
    overview = plan.overview.model_copy(
        update={"total_tasks": total_tasks, "estimated_total_hours": round(total_hours, 1)}
    )
    return plan.model_copy(update={"overview": overview, "weeks": weeks, "confidence_note": PLAN_CONFIDENCE_NOTE})


class SkillBridgeStages:
    """The four extractor-backed stages, each followed by its deterministic post-processing."""

    def __init__(self, extractor: Extractor, *, plan_model: str | None = None):
        self._extractor = extractor
        self._plan_model = plan_model if plan_model is not None else settings.plan_model

    async def _call(self, stage: str, system_prompt: str, user_prompt: str, model: str | None = None) -> str:
        try:
            return await self._extractor.complete(
                stage=stage,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                model=model,
            )
        except ExtractorError as exc:
            raise StageError(str(exc), stage=stage, code=exc.code) from exc

    async def analyze_intake(self, profile: StudentProfile) -> StageOutcome[AttributedSkillSnapshot]:
        raw = await self._call("intake", INTAKE_SYSTEM_PROMPT, build_intake_prompt(profile))
        snapshot = parse_stage_output(raw, SkillSnapshot, stage="intake")
        source_texts = {source: profile.source_text(source) for source in EVIDENCE_SOURCES}
        attributed = apply_inferred_evidence_rules(snapshot, profile.combined_text(), source_texts)
        log_audit("intake", "inferred_evidence", validate_inferred_evidence_integrity(attributed, profile.combined_text()))
        return StageOutcome(attributed, raw)

    async def analyze_gaps(
        self,
        profile: StudentProfile,
        snapshot: AttributedSkillSnapshot,
    ) -> StageOutcome[GapAnalysisResult]:
        goal_levels = resolve_goal_levels(profile.goals_selected, profile.goals_free_text)
        current_levels = current_levels_for_gaps(snapshot)
        allocation = calculate_time_allocation(
            {skill: goal_levels[skill] - current_levels[skill] for skill in current_levels},
            profile.time_availability_hours_per_week,
        )
        prompt = build_gap_prompt(profile, snapshot, current_levels, goal_levels, allocation)
        raw = await self._call("skill_gap", GAP_SYSTEM_PROMPT, prompt)
        analysis = parse_stage_output(raw, SkillGapAnalysis, stage="skill_gap")
        result = finalize_gap_analysis(analysis, snapshot, goal_levels, allocation)
        log_audit("skill_gap", "growth_caps", validate_growth_caps(result.skill_gaps))
        log_audit("skill_gap", "target_separation", validate_target_separation(result.skill_gaps))
        if result.growth_cap_applied:
            logger.info(
                "skill_gap_growth_cap_applied skills=%s",
                [gap.skill for gap in result.skill_gaps if gap.growth_capped],
            )
        return StageOutcome(result, raw)

    async def recommend(
        self,
        profile: StudentProfile,
        snapshot: AttributedSkillSnapshot,
        gap_analysis: GapAnalysisResult | None = None,
    ) -> StageOutcome[RecommendationResult]:
        levels = {skill: confidence_to_level(signal.confidence) for skill, signal in snapshot.items()}
        gaps = gap_analysis.skill_gaps if gap_analysis is not None else None
        prompt = build_recommendation_prompt(profile, levels, gaps)
        raw = await self._call("recommendations", RECOMMENDATION_SYSTEM_PROMPT, prompt)
        parsed = parse_stage_output(raw, RecommendationSet, stage="recommendations")
        result = finalize_recommendations(parsed)
        log_audit(
            "recommendations",
            "freshness",
            validate_no_outdated_recommendations(rec for _, rec in result.flattened()),
        )
        return StageOutcome(result, raw)

    async def plan(
        self,
        profile: StudentProfile,
        snapshot: AttributedSkillSnapshot,
        gap_analysis: GapAnalysisResult,
        recommendations: RecommendationResult,
    ) -> StageOutcome[ActionPlan]:
        levels, gaps, recs = build_plan_inputs(snapshot, gap_analysis, recommendations)
        if not gaps:
            min_gap = get_pipeline_value("plan.min_gap_percentage", 15)
            raise StageError(
                f"No significant skill gaps (>= {min_gap}%) found to plan for",
                stage="action_plan",
                code="insufficient_gaps",
            )
        prompt = build_plan_prompt(levels, gaps, recs, profile.time_availability_hours_per_week)
        raw = await self._call("action_plan", PLAN_SYSTEM_PROMPT, prompt, model=self._plan_model)
        plan = parse_stage_output(raw, ActionPlan, stage="action_plan")
        finalized = finalize_plan(plan)
        log_audit("action_plan", "gain_caps", validate_plan_gain_caps(finalized.weeks))
        return StageOutcome(finalized, raw)
