from __future__ import annotations

import logging
import re
from typing import Iterable

from app.core.config.pipeline import get_pipeline_value
from app.features.evidence_classifier import category_matches, supports_skill
from app.features.goal_weights import confidence_to_level, round_half_up
from app.features.responsible_output import (
    INFERRED_PLACEHOLDER_PHRASE,
    MAX_30_DAY_IMPROVEMENT,
    normalize_skill_key,
)
from app.schemas.perturbation import (
    AggregateMetrics,
    AttributionCheck,
    ComparisonResult,
    HallucinationCheck,
    PlanCheck,
    ProfileVariant,
    SkillDelta,
    StabilityCheck,
    StageDeltas,
)
from app.schemas.pipeline import PipelineRunResult
from app.schemas.profile import SKILL_NAMES, StudentProfile
from app.schemas.recommendations import Recommendation, RecommendationResult
from app.schemas.signals import AttributedSkillSignal, AttributedSkillSnapshot

logger = logging.getLogger(__name__)

_CLAIM_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"student (?:has|mentioned|demonstrated|showed|exhibited) ([^,.]+)", re.IGNORECASE),
    re.compile(r"based on (?:the student's|their) ([^,.]+)", re.IGNORECASE),
    re.compile(r"given (?:the student's|their) ([^,.]+)", re.IGNORECASE),
)

# Source names a recommendation may cite in its reasoning, keyed by evidence source.
_SOURCE_MENTIONS: dict[str, tuple[str, ...]] = {
    "past_activities": ("past activities",),
    "achievements": ("achievement",),
    "challenges": ("challenge",),
    "interests": ("stated interests", "interests in"),
}

_STRIP_CHARS = ".,!?;:\"'()[]"
_HOURS_TOLERANCE = 1e-6


def _threshold(name: str, default: float) -> float:
    return float(get_pipeline_value(f"comparison.{name}", default))


def build_evidence_corpus(profile: StudentProfile) -> str:
    parts = [
        profile.interests_free_text,
        profile.goals_free_text,
        profile.past_activities,
        profile.past_achievements,
        profile.challenges,
        " ".join(profile.goals_selected),
        " ".join(profile.learning_preferences),
    ]
    return " ".join(part for part in parts if part).lower()


def significant_words(text: str) -> list[str]:
    min_length = int(_threshold("min_word_length", 4))
    words = (word.strip(_STRIP_CHARS) for word in (text or "").lower().split())
    return [word for word in words if len(word) >= min_length]


def _word_support(text: str, corpus: str) -> tuple[int, int]:
    words = significant_words(text)
    return sum(1 for word in words if word in corpus), len(words)


def is_phrase_traceable(phrase: str, corpus: str) -> bool:
    """A phrase is traceable on a direct match or when enough of its longer words appear."""
    normalized = (phrase or "").lower().strip()
    if not normalized or normalized in corpus:
        return True
    found, total = _word_support(normalized, corpus)
    if total == 0:
        return True
    return found >= total * _threshold("phrase_word_match_ratio", 0.5)


# ---------------------------------------------------------------------------
# Hallucination units
# ---------------------------------------------------------------------------


def check_signal(skill: str, signal: AttributedSkillSignal, profile: StudentProfile) -> HallucinationCheck:
    corpus = build_evidence_corpus(profile)
    problems: list[str] = []

    for phrase in signal.evidence_phrases:
        if phrase == INFERRED_PLACEHOLDER_PHRASE:
            continue
        if not is_phrase_traceable(phrase, corpus):
            problems.append(f'phrase "{phrase}" not found in input')

    if signal.attribution_type == "inferred":
        combined = profile.combined_text()
        for category in signal.inference_sources:
            if not category_matches(combined, category):
                problems.append(f"inference source {category} has no keyword support")
    else:
        for source in signal.evidence_sources:
            text = profile.source_text(source)
            if not text.strip():
                problems.append(f"cited source {source} is empty")
            elif not supports_skill(text, skill):
                problems.append(f"cited source {source} has no {skill} keywords")

    return HallucinationCheck(
        stage="intake",
        subject=skill,
        passed=not problems,
        reason="; ".join(problems) if problems else "evidence traceable to input",
    )


def check_gap(skill: str, attribution_type: str, snapshot: AttributedSkillSnapshot | None) -> HallucinationCheck:
    signal = snapshot.get(normalize_skill_key(skill)) if snapshot is not None else None
    if signal is None:
        passed = False
        reason = "no intake signal backs this gap"
    elif not signal.evidence_found:
        passed = False
        reason = f"{attribution_type} gap cites a skill with no evidence"
    else:
        passed = True
        reason = "backed by evidenced intake signal"
    return HallucinationCheck(stage="skill_gap", subject=skill, passed=passed, reason=reason)


def check_recommendation(recommendation: Recommendation, profile: StudentProfile) -> HallucinationCheck:
    corpus = build_evidence_corpus(profile)
    reasoning = (recommendation.reasoning or "").lower()
    claim_ratio = _threshold("claim_word_match_ratio", 0.3)
    problems: list[str] = []

    for pattern in _CLAIM_PATTERNS:
        for match in pattern.finditer(reasoning):
            claim = match.group(1).strip()
            if len(claim) <= 5 or claim[:10] in corpus:
                continue
            found, total = _word_support(claim, corpus)
            if total > 2 and found < total * claim_ratio:
                problems.append(f'unverified claim "{match.group(0).strip()}"')

    for source, mentions in _SOURCE_MENTIONS.items():
        if any(mention in reasoning for mention in mentions) and not profile.source_text(source).strip():
            problems.append(f"cites {source.replace('_', ' ')} but the profile has none")

    return HallucinationCheck(
        stage="recommendations",
        subject=recommendation.title,
        passed=not problems,
        reason="; ".join(problems) if problems else "reasoning traceable to input",
    )


def hallucination_checks(run: PipelineRunResult, profile: StudentProfile) -> list[HallucinationCheck]:
    checks: list[HallucinationCheck] = []
    if run.intake is not None:
        for skill, signal in run.intake.items():
            if signal.evidence_found:
                checks.append(check_signal(skill, signal, profile))
    if run.skill_gap is not None:
        for gap in run.skill_gap.skill_gaps:
            if gap.attribution_type in {"explicit", "inferred"}:
                checks.append(check_gap(gap.skill, gap.attribution_type, run.intake))
    if run.recommendations is not None:
        for _, recommendation in run.recommendations.flattened():
            checks.append(check_recommendation(recommendation, profile))
    return checks


# ---------------------------------------------------------------------------
# Attribution consistency
# ---------------------------------------------------------------------------


def _attribution_check(
    skill: str,
    baseline: AttributedSkillSignal,
    variant: AttributedSkillSignal,
    profile_variant: ProfileVariant,
) -> AttributionCheck:
    targeted = skill in profile_variant.target_skills
    appeared = not baseline.evidence_found and variant.evidence_found
    disappeared = baseline.evidence_found and not variant.evidence_found
    change = variant.confidence - baseline.confidence
    threshold = _threshold("confidence_change_threshold", 0.15)
    consistent = True
    expected_change = False
    note = ""

    if profile_variant.variant_type == "injection":
        if disappeared:
            consistent = False
            note = "evidence disappeared after adding evidence"
        elif appeared and targeted:
            expected_change = True
            note = "evidence picked up from injected text"
        elif appeared and change > threshold:
            consistent = False
            note = "evidence appeared for a skill unrelated to the injected text"
    elif profile_variant.variant_type == "removal":
        if targeted and appeared:
            consistent = False
            note = "evidence appeared for the skill whose evidence was removed"
        elif targeted and disappeared:
            expected_change = True
            note = "evidence removed as expected"
        elif (
            targeted
            and baseline.attribution_type == "explicit"
            and variant.attribution_type == "explicit"
            and baseline.evidence_phrases
            and set(variant.evidence_phrases) == set(baseline.evidence_phrases)
        ):
            consistent = False
            note = "explicit evidence unchanged after its sentences were removed"
        elif not targeted and appeared and change > threshold:
            consistent = False
            note = "evidence appeared for a skill unrelated to the removed text"
        elif not targeted and change < -threshold:
            consistent = False
            note = "confidence dropped for a skill unrelated to the removed text"
    elif profile_variant.variant_type == "rephrasing":
        count_change = abs(len(variant.evidence_phrases) - len(baseline.evidence_phrases))
        if baseline.attribution_type != variant.attribution_type:
            consistent = False
            note = "attribution changed under rephrasing"
        elif abs(change) > threshold:
            consistent = False
            note = f"confidence changed by {change:+.2f} under rephrasing"
        elif count_change > _threshold("evidence_count_change_threshold", 1):
            consistent = False
            note = f"evidence count changed by {count_change} under rephrasing"

    return AttributionCheck(
        skill=skill,
        baseline_type=baseline.attribution_type,
        variant_type=variant.attribution_type,
        consistent=consistent,
        expected_change=expected_change,
        note=note,
    )


def attribution_checks(
    profile_variant: ProfileVariant,
    baseline_run: PipelineRunResult,
    variant_run: PipelineRunResult,
) -> list[AttributionCheck]:
    if baseline_run.intake is None or variant_run.intake is None:
        return []
    return [
        _attribution_check(skill, baseline_signal, variant_run.intake.get(skill), profile_variant)
        for skill, baseline_signal in baseline_run.intake.items()
    ]


# ---------------------------------------------------------------------------
# Recommendation stability and plan appropriateness
# ---------------------------------------------------------------------------


def _normalize_title(title: str) -> str:
    return " ".join((title or "").lower().split())


def _aligned_skills(recommendation: Recommendation) -> set[str]:
    return {normalize_skill_key(item.skill) for item in recommendation.skill_alignment}


def _matches(baseline: Recommendation, candidates: Iterable[Recommendation]) -> bool:
    title = _normalize_title(baseline.title)
    provider = _normalize_title(baseline.platform_or_provider)
    skills = _aligned_skills(baseline)
    for candidate in candidates:
        if _normalize_title(candidate.title) == title:
            return True
        if provider and _normalize_title(candidate.platform_or_provider) == provider and skills & _aligned_skills(candidate):
            return True
    return False


def recommendation_stability(
    baseline: RecommendationResult,
    variant: RecommendationResult,
) -> StabilityCheck:
    baseline_items = [rec for _, rec in baseline.flattened()]
    variant_items = [rec for _, rec in variant.flattened()]
    matched = [rec.title for rec in baseline_items if _matches(rec, variant_items)]
    unmatched = [rec.title for rec in baseline_items if rec.title not in matched]

    if baseline_items:
        overlap = len(matched) / len(baseline_items)
    else:
        overlap = 1.0 if not variant_items else 0.0
    overlap = round_half_up(overlap, 4)
    return StabilityCheck(
        overlap=overlap,
        stable=overlap >= _threshold("recommendation_overlap_threshold", 0.6),
        matched_titles=matched,
        unmatched_titles=unmatched,
    )


def _monotonic_violations(label: str, gaps: dict[str, float], totals: dict[str, float]) -> list[str]:
    violations: list[str] = []
    skills = sorted(gaps, key=lambda skill: gaps[skill])
    for index, smaller in enumerate(skills):
        for larger in skills[index + 1 :]:
            if gaps[larger] > gaps[smaller] and totals.get(larger, 0.0) < totals.get(smaller, 0.0):
                violations.append(
                    f"{label} for {larger} (gap {gaps[larger]:g}) below {smaller} (gap {gaps[smaller]:g})"
                )
    return violations


def plan_check(run: PipelineRunResult, profile: StudentProfile) -> PlanCheck | None:
    """Weekly hours stay within budget; per-skill effort grows with the gap and never passes the cap."""
    plan = run.action_plan
    if plan is None:
        return None

    budget = profile.time_availability_hours_per_week
    weeks = sorted(plan.weeks, key=lambda week: week.week_number)
    weekly_hours = [round_half_up(week.total_hours(), 2) for week in weeks]
    violations: list[str] = []

    for week, hours in zip(weeks, weekly_hours):
        if hours > budget + _HOURS_TOLERANCE:
            violations.append(f"week {week.week_number} plans {hours:g}h against a {budget:g}h budget")

    hours_by_skill: dict[str, float] = {}
    gain_by_skill: dict[str, float] = {}
    for week in weeks:
        for task in week.tasks:
            skill = normalize_skill_key(task.related_skill)
            hours_by_skill[skill] = hours_by_skill.get(skill, 0.0) + task.estimated_time_hours
            gain_by_skill[skill] = gain_by_skill.get(skill, 0.0) + task.expected_skill_gain

    for skill, gain in gain_by_skill.items():
        if gain > MAX_30_DAY_IMPROVEMENT + _HOURS_TOLERANCE:
            violations.append(f"{skill} plans +{gain:g} gain, above the +{MAX_30_DAY_IMPROVEMENT} cap")

    if run.skill_gap is not None:
        gaps = {
            normalize_skill_key(gap.skill): gap.gap
            for gap in run.skill_gap.skill_gaps
            if normalize_skill_key(gap.skill) in hours_by_skill
        }
        violations.extend(_monotonic_violations("hours", gaps, hours_by_skill))
        violations.extend(_monotonic_violations("gain", gaps, gain_by_skill))

    return PlanCheck(
        appropriate=not violations,
        weekly_hours=weekly_hours,
        hours_budget=budget,
        violations=violations,
    )


# ---------------------------------------------------------------------------
# Deltas
# ---------------------------------------------------------------------------


def skill_consistency(baseline: AttributedSkillSnapshot, variant: AttributedSkillSnapshot) -> float:
    """100 minus the mean absolute difference of 0-100 skill scores."""
    differences = [
        abs(confidence_to_level(baseline.get(skill).confidence) - confidence_to_level(variant.get(skill).confidence))
        for skill in SKILL_NAMES
    ]
    return round_half_up(max(0.0, 100 - sum(differences) / len(differences)), 1)


def stage_deltas(baseline_run: PipelineRunResult, variant_run: PipelineRunResult) -> StageDeltas:
    intake: list[SkillDelta] = []
    consistency: float | None = None
    if baseline_run.intake is not None and variant_run.intake is not None:
        for skill, base in baseline_run.intake.items():
            other = variant_run.intake.get(skill)
            intake.append(
                SkillDelta(
                    skill=skill,
                    baseline_confidence=base.confidence,
                    variant_confidence=other.confidence,
                    confidence_change=round_half_up(other.confidence - base.confidence, 4),
                    evidence_count_change=len(other.evidence_phrases) - len(base.evidence_phrases),
                    baseline_attribution=base.attribution_type,
                    variant_attribution=other.attribution_type,
                )
            )
        consistency = skill_consistency(baseline_run.intake, variant_run.intake)

    gap_changes: dict[str, float] = {}
    if baseline_run.skill_gap is not None and variant_run.skill_gap is not None:
        variant_gaps = {normalize_skill_key(gap.skill): gap for gap in variant_run.skill_gap.skill_gaps}
        for gap in baseline_run.skill_gap.skill_gaps:
            key = normalize_skill_key(gap.skill)
            if key in variant_gaps:
                gap_changes[key] = variant_gaps[key].expected_30_day_score - gap.expected_30_day_score

    added: list[str] = []
    removed: list[str] = []
    if baseline_run.recommendations is not None and variant_run.recommendations is not None:
        base_titles = {_normalize_title(rec.title): rec.title for _, rec in baseline_run.recommendations.flattened()}
        variant_titles = {_normalize_title(rec.title): rec.title for _, rec in variant_run.recommendations.flattened()}
        added = [title for key, title in variant_titles.items() if key not in base_titles]
        removed = [title for key, title in base_titles.items() if key not in variant_titles]

    task_change: int | None = None
    hours_change: float | None = None
    if baseline_run.action_plan is not None and variant_run.action_plan is not None:
        base_weeks = baseline_run.action_plan.weeks
        variant_weeks = variant_run.action_plan.weeks
        task_change = sum(len(week.tasks) for week in variant_weeks) - sum(len(week.tasks) for week in base_weeks)
        hours_change = round_half_up(
            sum(week.total_hours() for week in variant_weeks) - sum(week.total_hours() for week in base_weeks),
            2,
        )

    return StageDeltas(
        intake=intake,
        skill_consistency=consistency,
        gap_expected_30_day_change=gap_changes,
        recommendations_added=added,
        recommendations_removed=removed,
        plan_task_count_change=task_change,
        plan_hours_change=hours_change,
    )


def compare_variant(
    variant: ProfileVariant,
    run: PipelineRunResult,
    baseline_run: PipelineRunResult | None = None,
) -> ComparisonResult:
    """Diff one variant run against its baseline. The baseline itself is passed with no baseline_run."""
    profile = variant.profile_data
    result = ComparisonResult(
        variant_id=variant.id,
        profile_id=variant.source_profile_id,
        variant_type=variant.variant_type,
        baseline_run_id=baseline_run.variant_id if baseline_run is not None else None,
        deltas=stage_deltas(baseline_run, run) if baseline_run is not None else StageDeltas(),
        attribution_checks=attribution_checks(variant, baseline_run, run) if baseline_run is not None else [],
        hallucination_checks=hallucination_checks(run, profile),
        recommendation_stability=(
            recommendation_stability(baseline_run.recommendations, run.recommendations)
            if variant.variant_type == "rephrasing"
            and baseline_run is not None
            and baseline_run.recommendations is not None
            and run.recommendations is not None
            else None
        ),
        plan_check=plan_check(run, profile),
        stage_errors=list(run.errors),
    )
    logger.debug(
        "perturbation_variant_compared variant=%s attribution=%s hallucination_free=%s",
        variant.id,
        result.attribution_consistent,
        result.hallucination_free,
    )
    return result


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _rate(hits: int, units: int) -> float | None:
    if units == 0:
        return None
    return round_half_up(hits / units, 4)


def aggregate_metrics(results: Iterable[ComparisonResult], elapsed_ms: int = 0) -> AggregateMetrics:
    results = list(results)
    attribution = [check for result in results for check in result.attribution_checks]
    hallucination = [check for result in results for check in result.hallucination_checks]
    stability = [result.recommendation_stability for result in results if result.recommendation_stability]
    plans = [result.plan_check for result in results if result.plan_check]

    return AggregateMetrics(
        attribution_consistency_rate=_rate(sum(1 for check in attribution if check.consistent), len(attribution)),
        hallucination_rate=_rate(sum(1 for check in hallucination if not check.passed), len(hallucination)),
        recommendation_stability_rate=_rate(sum(1 for check in stability if check.stable), len(stability)),
        action_plan_appropriateness_rate=_rate(sum(1 for check in plans if check.appropriate), len(plans)),
        attribution_units=len(attribution),
        hallucination_units=len(hallucination),
        recommendation_units=len(stability),
        action_plan_units=len(plans),
        elapsed_ms=elapsed_ms,
    )
