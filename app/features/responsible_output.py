from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from app.features.evidence_classifier import category_matches, matched_inference_categories
from app.features.goal_weights import round_half_up
from app.schemas.gaps import CappedSkillGap, SkillGapResult
from app.schemas.plan import PlanTask, PlanWeek
from app.schemas.signals import (
    AttributedSkillSignal,
    AttributedSkillSnapshot,
    AttributionType,
    SkillSignal,
    SkillSnapshot,
)

MAX_30_DAY_IMPROVEMENT = 25
INFERRED_PROBLEM_SOLVING_MIN = 40
INFERRED_PROBLEM_SOLVING_MAX = 55
INFERENCE_CONFIDENCE_CEILING = 0.4
MIN_INFERENCE_CATEGORIES = 2

INFERRED_PLACEHOLDER_PHRASE = "[Inferred from related activities]"
DEFAULT_INFERRED_SOURCES: tuple[str, ...] = ("past_activities", "achievements")
CAPPED_TIMELINE = "30 days (long-term target requires additional time)"
GROWTH_CAP_NOTE = (
    f"Maximum 30-day improvement is capped at +{MAX_30_DAY_IMPROVEMENT}% per skill. "
    "Goals beyond this are classified as long-term targets."
)
PLAN_GAIN_CAP_NOTE = f" (Gain adjusted to maintain 30-day cap of +{MAX_30_DAY_IMPROVEMENT}%)"

_WHITESPACE_RE = re.compile(r"\s+")


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


@dataclass(frozen=True)
class GrowthCapResult:
    expected_30_day_score: float
    long_term_target_score: float
    capped: bool


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    violations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AttributionSummary:
    explicit_count: int
    inferred_count: int
    missing_count: int
    skills_by_type: dict[str, list[str]]


def enforce_growth_cap(
    current_score: float,
    proposed_score: float,
    cap: float = MAX_30_DAY_IMPROVEMENT,
) -> GrowthCapResult:
    if proposed_score - current_score <= cap:
        return GrowthCapResult(proposed_score, proposed_score, False)
    return GrowthCapResult(min(current_score + cap, 100), proposed_score, True)


def attribution_from_level(current_level: float) -> AttributionType:
    if current_level > 30:
        return "explicit"
    if current_level > 15:
        return "inferred"
    return "missing"


# ---------------------------------------------------------------------------
# Attribution classification
# ---------------------------------------------------------------------------


def should_infer_problem_solving(combined_text: str, existing_confidence: float) -> list[str] | None:
    """Return the matched inference categories when problem solving can be inferred."""
    if existing_confidence >= INFERENCE_CONFIDENCE_CEILING:
        return None
    categories = matched_inference_categories(combined_text)
    if len(categories) < MIN_INFERENCE_CATEGORIES:
        return None
    return categories


def inferred_problem_solving_confidence(category_count: int) -> float:
    score = INFERRED_PROBLEM_SOLVING_MIN + (category_count - MIN_INFERENCE_CATEGORIES) * 5
    return min(score, INFERRED_PROBLEM_SOLVING_MAX) / 100


def inference_justification(categories: Sequence[str]) -> str:
    joined = " and ".join(categories).replace("_", " ")
    return (
        f"Problem-solving skills inferred from {joined}. "
        "These activities inherently require analytical thinking and solution development."
    )


def _inferred_sources(
    signal: SkillSignal,
    categories: Sequence[str],
    source_texts: Mapping[str, str] | None,
) -> list[str]:
    if signal.evidence_sources:
        return list(signal.evidence_sources)
    if source_texts:
        hits = [
            source
            for source, text in source_texts.items()
            if text and any(category_matches(text, category) for category in categories)
        ]
        if hits:
            return hits
    return list(DEFAULT_INFERRED_SOURCES)


def attribute_signal(
    skill: str,
    signal: SkillSignal,
    combined_text: str,
    source_texts: Mapping[str, str] | None = None,
) -> AttributedSkillSignal:
    if signal.evidence_found:
        return AttributedSkillSignal(**signal.model_dump(), attribution_type="explicit")

    categories = None
    if skill == "problem_solving":
        categories = should_infer_problem_solving(combined_text, signal.confidence)
    if not categories:
        return AttributedSkillSignal(**signal.model_dump(), attribution_type="missing")

    confidence = inferred_problem_solving_confidence(len(categories))
    justification = inference_justification(categories)
    original_pct = _fmt(round_half_up(signal.confidence * 100))
    adjusted_pct = _fmt(round_half_up(confidence * 100))
    return AttributedSkillSignal(
        evidence_found=True,
        evidence_phrases=list(signal.evidence_phrases) or [INFERRED_PLACEHOLDER_PHRASE],
        evidence_sources=_inferred_sources(signal, categories, source_texts),
        confidence=confidence,
        reasoning=(
            f"{justification} Original confidence was {original_pct}%, "
            f"adjusted to {adjusted_pct}% based on inferred evidence."
        ),
        attribution_type="inferred",
        inference_sources=list(categories),
        inference_justification=justification,
    )


def apply_inferred_evidence_rules(
    snapshot: SkillSnapshot,
    combined_text: str,
    source_texts: Mapping[str, str] | None = None,
) -> AttributedSkillSnapshot:
    attributed = {
        skill: attribute_signal(skill, signal, combined_text, source_texts)
        for skill, signal in snapshot.items()
    }
    return AttributedSkillSnapshot(**attributed)


# ---------------------------------------------------------------------------
# Growth caps
# ---------------------------------------------------------------------------


def apply_growth_cap_to_gap(
    gap: SkillGapResult,
    attribution_type: AttributionType | None = None,
) -> CappedSkillGap:
    """Separate the 30-day projection from the long-term target. Safe to re-apply."""
    if isinstance(gap, CappedSkillGap):
        current = gap.current_score
        proposed = gap.long_term_target_score
        attribution = attribution_type or gap.attribution_type
    else:
        current = gap.current_level
        proposed = gap.expected_level_after
        attribution = attribution_type or attribution_from_level(gap.current_level)

    result = enforce_growth_cap(current, proposed)
    reasoning = gap.reasoning
    timeline = gap.timeline
    if result.capped:
        note = (
            f" Note: Expected 30-day improvement capped at +{MAX_30_DAY_IMPROVEMENT}%. "
            f"The goal level of {_fmt(gap.goal_level)}% is a long-term target."
        )
        if note not in reasoning:
            reasoning = f"{reasoning}{note}"
        timeline = CAPPED_TIMELINE

    base = gap.model_dump(
        exclude={
            "expected_level_after",
            "reasoning",
            "timeline",
            "current_score",
            "expected_30_day_score",
            "long_term_target_score",
            "attribution_type",
            "growth_capped",
        }
    )
    return CappedSkillGap(
        **base,
        expected_level_after=result.expected_30_day_score,
        reasoning=reasoning,
        timeline=timeline,
        current_score=current,
        expected_30_day_score=result.expected_30_day_score,
        long_term_target_score=result.long_term_target_score,
        attribution_type=attribution,
        growth_capped=result.capped,
    )


def apply_growth_caps_to_gaps(
    gaps: Iterable[SkillGapResult],
    snapshot: AttributedSkillSnapshot | None = None,
) -> list[CappedSkillGap]:
    capped: list[CappedSkillGap] = []
    for gap in gaps:
        attribution: AttributionType | None = None
        if snapshot is not None:
            signal = snapshot.get(normalize_skill_key(gap.skill))
            if signal is not None:
                attribution = signal.attribution_type
        capped.append(apply_growth_cap_to_gap(gap, attribution))
    return capped


def growth_cap_applied(gaps: Iterable[CappedSkillGap]) -> bool:
    return any(gap.expected_30_day_score != gap.long_term_target_score for gap in gaps)


def normalize_skill_key(skill: str) -> str:
    return _WHITESPACE_RE.sub("_", (skill or "").strip().lower()).replace("-", "_")


def cap_week_tasks(
    week: PlanWeek,
    accumulator: Mapping[str, float],
    cap: float = MAX_30_DAY_IMPROVEMENT,
) -> tuple[PlanWeek, dict[str, float]]:
    """Clamp one week's task gains against the gain already granted in earlier weeks."""
    granted = dict(accumulator)
    tasks: list[PlanTask] = []
    for task in week.tasks:
        skill = normalize_skill_key(task.related_skill)
        so_far = granted.get(skill, 0.0)
        remaining = cap - so_far
        gain = task.expected_skill_gain
        gain_capped = False
        if gain > remaining:
            gain = max(0.0, remaining)
            gain_capped = True
        granted[skill] = so_far + gain

        reasoning = task.reasoning
        if gain_capped and PLAN_GAIN_CAP_NOTE not in reasoning:
            reasoning = f"{reasoning}{PLAN_GAIN_CAP_NOTE}"
        tasks.append(
            task.model_copy(
                update={
                    "expected_skill_gain": gain,
                    "reasoning": reasoning,
                    "gain_capped": gain_capped or task.gain_capped,
                }
            )
        )
    return week.model_copy(update={"tasks": tasks}), granted


def apply_growth_caps_to_plan(weeks: Iterable[PlanWeek]) -> tuple[list[PlanWeek], dict[str, float]]:
    accumulator: dict[str, float] = {}
    capped: list[PlanWeek] = []
    for week in sorted(weeks, key=lambda item: item.week_number):
        capped_week, accumulator = cap_week_tasks(week, accumulator)
        capped.append(capped_week)
    return capped, accumulator


# ---------------------------------------------------------------------------
# Explainability and audit helpers
# ---------------------------------------------------------------------------


def attribution_explanation(
    attribution_type: AttributionType,
    skill_name: str,
    inference_sources: Sequence[str] | None = None,
) -> str:
    if attribution_type == "explicit":
        return f"Evidence for {skill_name} was directly identified in the student's profile."
    if attribution_type == "inferred":
        sources = ", ".join(source.replace("_", " ") for source in inference_sources or []) or "related activities"
        return (
            f"Evidence for {skill_name} was inferred from {sources}. "
            "This is a derived assessment based on activities that inherently require this skill."
        )
    return (
        f"No clear evidence for {skill_name} was found in the student's profile. "
        "This represents an opportunity for development."
    )


def attribution_summary(snapshot: AttributedSkillSnapshot) -> AttributionSummary:
    by_type: dict[str, list[str]] = {"explicit": [], "inferred": [], "missing": []}
    for skill, signal in snapshot.items():
        by_type[signal.attribution_type].append(skill)
    return AttributionSummary(
        explicit_count=len(by_type["explicit"]),
        inferred_count=len(by_type["inferred"]),
        missing_count=len(by_type["missing"]),
        skills_by_type=by_type,
    )


def validate_growth_caps(gaps: Iterable[CappedSkillGap]) -> ValidationOutcome:
    violations: list[str] = []
    for gap in gaps:
        improvement = gap.expected_30_day_score - gap.current_score
        if improvement > MAX_30_DAY_IMPROVEMENT:
            violations.append(
                f"{gap.skill}: growth exceeds cap {_fmt(gap.current_score)}% -> "
                f"{_fmt(gap.expected_30_day_score)}% (+{_fmt(improvement)}%, max +{MAX_30_DAY_IMPROVEMENT}%)"
            )
    return ValidationOutcome(valid=not violations, violations=violations)


def validate_target_separation(gaps: Iterable[CappedSkillGap]) -> ValidationOutcome:
    violations: list[str] = []
    for gap in gaps:
        if gap.expected_30_day_score > gap.long_term_target_score:
            violations.append(
                f"{gap.skill}: 30-day score {_fmt(gap.expected_30_day_score)} exceeds "
                f"long-term target {_fmt(gap.long_term_target_score)}"
            )
        elif not gap.growth_capped and gap.expected_30_day_score != gap.long_term_target_score:
            violations.append(f"{gap.skill}: uncapped gap has diverging targets")
    return ValidationOutcome(valid=not violations, violations=violations)


def validate_plan_gain_caps(weeks: Iterable[PlanWeek]) -> ValidationOutcome:
    violations: list[str] = []
    totals: dict[str, float] = {}
    for week in sorted(weeks, key=lambda item: item.week_number):
        for task in week.tasks:
            skill = normalize_skill_key(task.related_skill)
            totals[skill] = totals.get(skill, 0.0) + task.expected_skill_gain
            if totals[skill] > MAX_30_DAY_IMPROVEMENT:
                violations.append(
                    f"{skill}: cumulative gain {_fmt(totals[skill])} exceeds "
                    f"+{MAX_30_DAY_IMPROVEMENT} by week {week.week_number}"
                )
    return ValidationOutcome(valid=not violations, violations=violations)


def validate_inferred_evidence_integrity(
    snapshot: AttributedSkillSnapshot,
    original_text: str,
) -> ValidationOutcome:
    violations: list[str] = []
    for skill, signal in snapshot.items():
        if signal.attribution_type != "inferred":
            continue
        if not signal.inference_justification:
            violations.append(f"{skill}: inferred signal has no justification")
        if signal.confidence > INFERRED_PROBLEM_SOLVING_MAX / 100:
            violations.append(f"{skill}: inferred confidence {signal.confidence:.2f} above ceiling")
        for source in signal.inference_sources:
            if not category_matches(original_text, source):
                violations.append(f'{skill}: claimed inference source "{source}" not found in original text')
    return ValidationOutcome(valid=not violations, violations=violations)
