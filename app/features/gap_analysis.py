from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from app.core.config.pipeline import get_pipeline_value
from app.features.goal_weights import confidence_to_level
from app.features.responsible_output import (
    GROWTH_CAP_NOTE,
    apply_growth_caps_to_gaps,
    growth_cap_applied,
    normalize_skill_key,
)
from app.schemas.gaps import (
    ActionableStep,
    GapAnalysisResult,
    SkillGapAnalysis,
    SkillGapResult,
    SkillWithoutEvidence,
)
from app.schemas.profile import SKILL_DISPLAY_NAMES, SKILL_NAMES
from app.schemas.signals import AttributedSkillSnapshot

SOFT_SKILLS: frozenset[str] = frozenset({"communication", "leadership", "self_management"})


def _step(step: str, time_required: str, impact: str, priority: str, why: str) -> ActionableStep:
    return ActionableStep(step=step, time_required=time_required, expected_impact=impact, priority=priority, why=why)


SOFT_SKILL_STEPS: Mapping[str, tuple[ActionableStep, ...]] = MappingProxyType(
    {
        "communication": (
            _step(
                "Join a debate club, speech team, or Model UN to practice public speaking",
                "2-3 hours/week", "+5-8%", "high",
                "Structured speaking builds the skill and leaves a documented record of participation.",
            ),
            _step(
                "Start a blog, channel, or podcast about a topic you care about",
                "2-3 hours/week", "+4-6%", "high",
                "Published content is a portfolio you can point to later.",
            ),
            _step(
                "Volunteer to present in class or lead study group discussions",
                "1-2 hours/week", "+3-5%", "medium",
                "Low-stakes practice builds confidence that teachers can speak to.",
            ),
            _step(
                "Write for the school newspaper or an online publication",
                "2-4 hours/week", "+4-6%", "medium",
                "Published writing is tangible communication evidence.",
            ),
        ),
        "leadership": (
            _step(
                "Run for student government, a club officer role, or team captain",
                "3-5 hours/week", "+6-10%", "high",
                "Formal titles are verifiable leadership evidence.",
            ),
            _step(
                "Start a new club, community project, or school initiative",
                "3-4 hours/week", "+5-8%", "high",
                "Founding something shows initiative beyond holding a title.",
            ),
            _step(
                "Organize a team for a competition, hackathon, or service project",
                "2-3 hours/week", "+4-6%", "medium",
                "Leading a team to a goal produces a concrete accomplishment.",
            ),
            _step(
                "Mentor younger students in academics, sports, or activities",
                "1-2 hours/week", "+3-5%", "medium",
                "Guiding others is a core leadership behaviour.",
            ),
        ),
        "self_management": (
            _step(
                "Track all commitments and deadlines in a planner or task app",
                "30 min/day", "+4-6%", "high",
                "Consistent planning habits show up directly in results.",
            ),
            _step(
                "Set and review weekly goals with measurable outcomes",
                "1 hour/week", "+3-5%", "high",
                "Goal tracking creates a record of steady improvement.",
            ),
            _step(
                "Use time-blocking or the Pomodoro technique for study sessions",
                "Built into study time", "+3-5%", "medium",
                "Structured study improves results that reflect self-management.",
            ),
            _step(
                "Take on a long-term independent project or certification course",
                "2-4 hours/week", "+4-7%", "medium",
                "Finishing self-directed work over months demonstrates discipline.",
            ),
        ),
    }
)


def _soft_skill_has_low_evidence(snapshot: AttributedSkillSnapshot, skill: str) -> bool:
    signal = snapshot.get(skill)
    threshold = float(get_pipeline_value("gap_analysis.soft_skill_low_evidence_confidence", 0.5))
    return signal is None or not signal.evidence_found or signal.confidence < threshold


def current_levels_for_gaps(snapshot: AttributedSkillSnapshot) -> dict[str, int]:
    """Current level per skill, with the fixed baseline for low-evidence soft skills."""
    baseline = int(get_pipeline_value("gap_analysis.soft_skill_baseline_level", 20))
    levels: dict[str, int] = {}
    for skill, signal in snapshot.items():
        if skill in SOFT_SKILLS and _soft_skill_has_low_evidence(snapshot, skill):
            levels[skill] = baseline
        else:
            levels[skill] = confidence_to_level(signal.confidence)
    return levels


def goal_relevance(goal_level: float) -> str:
    if goal_level >= float(get_pipeline_value("gap_analysis.relevance.high", 85)):
        return "high"
    if goal_level >= float(get_pipeline_value("gap_analysis.relevance.medium", 70)):
        return "medium"
    return "low"


def skills_without_evidence(
    snapshot: AttributedSkillSnapshot,
    goal_levels: Mapping[str, int],
) -> list[SkillWithoutEvidence]:
    missing: list[SkillWithoutEvidence] = []
    for skill, signal in snapshot.items():
        if signal.evidence_found or skill in SOFT_SKILLS:
            continue
        name = SKILL_DISPLAY_NAMES[skill]
        relevance = goal_relevance(goal_levels.get(skill, 70))
        if relevance == "high":
            suggestion = (
                f"This skill is highly relevant to your goals. Consider adding experiences that "
                f"demonstrate {name} in the intake form."
            )
        elif relevance == "medium":
            suggestion = f"This skill could support your goals. Try to develop and document experiences in {name}."
        else:
            suggestion = f"Consider exploring opportunities to build {name} skills."
        missing.append(
            SkillWithoutEvidence(skill=skill, display_name=name, goal_relevance=relevance, suggestion=suggestion)
        )
    return missing


def _soft_skill_gap(skill: str, current: int, goal: int) -> SkillGapResult:
    name = SKILL_DISPLAY_NAMES[skill]
    gain = int(get_pipeline_value("gap_analysis.soft_skill_expected_gain", 15))
    return SkillGapResult(
        skill=skill,
        current_level=current,
        goal_level=goal,
        gap=goal - current,
        expected_level_after=min(current + gain, goal),
        timeline="4-6 weeks",
        why_it_matters=(
            f"{name} matters for college applications, scholarships and careers. "
            "There is little demonstrable evidence of it yet."
        ),
        actionable_steps=list(SOFT_SKILL_STEPS[skill]),
        reasoning=(
            f"No clear evidence of {name} was found in the profile. Building and documenting "
            "this skill will strengthen the profile."
        ),
    )


def finalize_gap_analysis(
    analysis: SkillGapAnalysis,
    snapshot: AttributedSkillSnapshot,
    goal_levels: Mapping[str, int],
    time_allocation: Mapping[str, float] | None = None,
) -> GapAnalysisResult:
    """Re-derive gap arithmetic, enforce the soft-skill rules and apply growth caps."""
    current_levels = current_levels_for_gaps(snapshot)
    evidenced = {skill for skill, signal in snapshot.items() if signal.evidence_found}

    gaps: list[SkillGapResult] = []
    seen: set[str] = set()
    for gap in analysis.skill_gaps:
        skill = normalize_skill_key(gap.skill)
        if skill not in SKILL_NAMES or skill in seen:
            continue
        seen.add(skill)
        current = current_levels[skill]
        goal = goal_levels[skill]
        delta = goal - current
        if delta <= 0:
            continue
        if skill not in evidenced and skill not in SOFT_SKILLS:
            continue
        # The extractor's projection is only kept within the re-derived [current, goal] range.
        expected = min(max(gap.expected_level_after, current), goal)
        gaps.append(
            gap.model_copy(
                update={
                    "skill": skill,
                    "current_level": current,
                    "goal_level": goal,
                    "gap": delta,
                    "expected_level_after": expected,
                }
            )
        )

    for skill in sorted(SOFT_SKILLS, key=SKILL_NAMES.index):
        if skill in seen or not _soft_skill_has_low_evidence(snapshot, skill):
            continue
        current = current_levels[skill]
        goal = goal_levels[skill]
        if goal - current > 0:
            gaps.append(_soft_skill_gap(skill, current, goal))

    def soft_without_evidence(skill: str) -> bool:
        return skill in SOFT_SKILLS and skill not in evidenced

    gaps.sort(key=lambda item: (0 if soft_without_evidence(item.skill) else 1, -item.gap))

    gap_skills = [gap.skill for gap in gaps]
    priority = [skill for skill in gap_skills if soft_without_evidence(skill)]
    for skill in analysis.priority_skills:
        key = normalize_skill_key(skill)
        if key in gap_skills and key not in priority:
            priority.append(key)
    max_priority = int(get_pipeline_value("gap_analysis.max_priority_skills", 3))

    capped = apply_growth_caps_to_gaps(gaps, snapshot)
    return GapAnalysisResult(
        skill_gaps=capped,
        overall_summary=analysis.overall_summary,
        priority_skills=priority[:max_priority],
        total_weekly_time_recommended=analysis.total_weekly_time_recommended,
        skills_without_evidence=skills_without_evidence(snapshot, goal_levels),
        goal_levels=dict(goal_levels),
        time_allocation=dict(time_allocation or {}),
        growth_cap_note=GROWTH_CAP_NOTE,
        growth_cap_applied=growth_cap_applied(capped),
    )
