from __future__ import annotations

from typing import Mapping, Sequence

from app.schemas.gaps import CappedSkillGap
from app.schemas.plan import PlanGapInput, PlanRecommendationInput
from app.schemas.profile import StudentProfile
from app.schemas.signals import AttributedSkillSnapshot

SOFT_SKILLS: tuple[str, ...] = ("communication", "leadership", "self_management")

INTAKE_SYSTEM_PROMPT = (
    "You are an evidence-extraction engine. Read student-written text and extract evidence-based "
    "skill signals for six skills: problem_solving, communication, technical_skills, creativity, "
    "leadership, self_management. Do not give advice.\n\n"
    "Rules:\n"
    "- Evidence phrases are short (2-6 words) and copied from the student text. At most 5 per skill.\n"
    "- Cite only the sections a phrase came from: interests, goals, past_activities, achievements, challenges.\n"
    "- Be conservative: evidence_found=true only for clear evidence.\n"
    "- Without evidence use evidence_found=false, evidence_phrases=[], evidence_sources=[], confidence=0.1.\n"
    "- Confidence: 0.1 none, 0.3-0.5 weak, 0.6-0.8 clear, 0.9-1.0 strong multi-source evidence.\n"
    "- Reasoning connects the evidence to the student's goals.\n\n"
    "Skill hints:\n"
    "- problem_solving: debugged, solved issue, figured out why, troubleshooting.\n"
    "- communication: presented, explained, taught, wrote documentation.\n"
    "- technical_skills: coding, Arduino, Python, built an app, hardware.\n"
    "- creativity: designed, invented, composed, created artwork.\n"
    "- leadership: led the team, organized the event, captain, founded.\n"
    "- self_management: managed my time, balanced school and activities, met deadlines.\n\n"
    "Return only a JSON object keyed by skill, each value shaped as "
    '{"evidence_found": bool, "evidence_phrases": [str], "evidence_sources": [str], '
    '"confidence": number, "reasoning": str}.'
)

GAP_SYSTEM_PROMPT = (
    "You are a skill gap analyst. Given a skill snapshot with goal levels, produce realistic, "
    "time-bound development recommendations.\n\n"
    "Rules:\n"
    "- Include skills with evidence whose current_level is below goal_level.\n"
    "- Also include communication, leadership and self_management when they have no or low evidence, "
    "using 20 as current_level.\n"
    "- Do not include technical_skills or problem_solving without evidence.\n"
    "- expected_level_after is the level after four weeks of the allocated time.\n"
    "- Every actionable step has step, time_required, expected_impact, priority (high|medium|low) and why.\n\n"
    'Return only JSON: {"skill_gaps": [{"skill", "current_level", "goal_level", "gap", '
    '"expected_level_after", "timeline", "why_it_matters", "actionable_steps", "reasoning"}], '
    '"overall_summary": str, "priority_skills": [str], "total_weekly_time_recommended": str}.'
)

RECOMMENDATION_SYSTEM_PROMPT = (
    "You are a recommendation engine. Suggest courses, projects, competitions and internships that fit "
    "the student's skills, gaps, goals and weekly time.\n\n"
    "Rules:\n"
    "- 2-3 items per category, sorted by match_score (0-100) descending.\n"
    "- Realistic expected_improvement per skill: courses 5-15, projects 8-20, competitions 5-12, internships 10-25.\n"
    "- Shorter opportunities for students with little weekly time.\n"
    "- level is Beginner, Intermediate or Advanced.\n"
    "- Reasoning references the student's actual skills, gaps and interests.\n"
    "- Only recommend programs that are currently running.\n\n"
    'Return only JSON: {"courses": [...], "projects": [...], "competitions": [...], "internships": [...], '
    '"summary": str}. Each item: {"title", "platform_or_provider", "match_score", '
    '"skill_alignment": [{"skill", "expected_improvement"}], "duration_weeks", "level", "reasoning", "link"}.'
)

PLAN_SYSTEM_PROMPT = (
    "You are a planning engine. Build a 4-week action plan from skill gaps and recommendations.\n\n"
    "Rules:\n"
    "- Every task maps to one listed skill gap and cites a recommendation title or gap evidence in evidence_source.\n"
    "- Week 1 Foundations & Setup (low), Week 2 Execution (medium), Week 3 Applied Collaboration "
    "(medium-high), Week 4 Integration & Real-World Application (high).\n"
    "- At most 5 tasks per week. Weekly hours never exceed the available hours.\n"
    "- Expected gain: low 2-5, medium 5-10, high 8-15.\n"
    '- task_id format is "w{week}-t{task}".\n\n'
    'Return only JSON: {"overview": {"primary_focus_skill", "total_tasks", "estimated_total_hours", '
    '"reasoning_summary"}, "weeks": [{"week_number", "theme", "tasks": [{"task_id", "title", "description", '
    '"related_skill", "skill_gap_addressed", "expected_skill_gain", "estimated_time_hours", "difficulty", '
    '"evidence_source", "reasoning"}]}], "confidence_note": str}.'
)


def _join_or(values: Sequence[str], fallback: str) -> str:
    clean = [value for value in values if value]
    return ", ".join(clean) if clean else fallback


def build_intake_prompt(profile: StudentProfile) -> str:
    sections: list[str] = []
    if profile.interests_free_text.strip():
        sections.append(f"INTERESTS: {profile.interests_free_text}")
    if profile.goals_free_text.strip():
        sections.append(f"GOALS: {profile.goals_free_text}")
    sections.append(f"PAST ACTIVITIES: {profile.past_activities}")
    if profile.past_achievements.strip():
        sections.append(f"ACHIEVEMENTS: {profile.past_achievements}")
    if profile.challenges.strip():
        sections.append(f"CHALLENGES/AREAS TO IMPROVE: {profile.challenges}")

    categories = [name.replace("_", " ") for name in profile.interests_by_category.selected()]
    return (
        "STUDENT CONTEXT:\n"
        f"- Grade: {profile.grade}\n"
        f"- Interest Categories: {_join_or(categories, 'None selected')}\n"
        f"- Selected Goals: {_join_or(profile.goals_selected, 'None')}\n"
        f"- Time Available: {profile.time_availability_hours_per_week:g} hours/week\n"
        f"- Learning Preferences: {_join_or(profile.learning_preferences, 'None')}\n\n"
        "TEXT TO ANALYZE:\n"
        + "\n\n".join(sections)
        + "\n\nExtract evidence-based skill signals from the text above. Return ONLY the JSON object."
    )


def build_gap_prompt(
    profile: StudentProfile,
    snapshot: AttributedSkillSnapshot,
    current_levels: Mapping[str, int],
    goal_levels: Mapping[str, int],
    time_allocation: Mapping[str, float],
) -> str:
    with_evidence: list[str] = []
    without_evidence: list[str] = []
    for skill, signal in snapshot.items():
        gap = goal_levels[skill] - current_levels[skill]
        block = (
            f"{skill.upper()}:\n"
            f"  - Current Level: {current_levels[skill]}%\n"
            f"  - Goal Level: {goal_levels[skill]}%\n"
            f"  - Gap: {'+' if gap > 0 else ''}{gap}%\n"
            f"  - Attribution: {signal.attribution_type}\n"
            f"  - Evidence: {_join_or(signal.evidence_phrases, 'None')}\n"
            f"  - Sources: {_join_or(signal.evidence_sources, 'None')}\n"
            f"  - Allocated Weekly Time: {time_allocation.get(skill, 0):g} hours"
        )
        (with_evidence if signal.evidence_found else without_evidence).append(block)

    soft_gaps = [
        skill
        for skill in SOFT_SKILLS
        if not snapshot.get(skill).evidence_found or snapshot.get(skill).confidence < 0.5
    ]
    parts = [
        "STUDENT CONTEXT:",
        f"- Grade: {profile.grade}",
        f"- Goals: {_join_or(profile.goals_selected, 'None')}"
        + (f" | {profile.goals_free_text}" if profile.goals_free_text else ""),
        f"- Interests: {profile.interests_free_text or 'Not specified'}",
        f"- Available Time: {profile.time_availability_hours_per_week:g} hours/week",
        f"- Learning Preferences: {_join_or(profile.learning_preferences, 'Not specified')}",
        "",
        "SKILLS WITH EVIDENCE:",
        "\n\n".join(with_evidence) if with_evidence else "None.",
    ]
    if without_evidence:
        parts.extend(["", "SKILLS WITHOUT EVIDENCE:", "\n\n".join(without_evidence)])
    if soft_gaps:
        parts.extend(
            [
                "",
                "SOFT SKILLS WITH NO OR LOW EVIDENCE (include with current_level 20):",
                "\n".join(f"- {skill}" for skill in soft_gaps),
            ]
        )
    parts.extend(["", "Return ONLY the JSON object."])
    return "\n".join(parts)


def build_recommendation_prompt(
    profile: StudentProfile,
    current_levels: Mapping[str, int],
    gaps: Sequence[CappedSkillGap] | None,
) -> str:
    levels = "\n".join(f"- {skill.replace('_', ' ')}: {level}%" for skill, level in current_levels.items())
    if gaps:
        gap_lines = "\n".join(
            f"- {gap.skill}: {gap.current_score:g}% now, {gap.expected_30_day_score:g}% in 30 days, "
            f"{gap.long_term_target_score:g}% long term"
            for gap in gaps
        )
    else:
        gap_lines = "No gap analysis available."
    categories = [name.replace("_", " ") for name in profile.interests_by_category.selected()]
    return (
        "STUDENT PROFILE:\n"
        f"- Grade: {profile.grade}\n"
        f"- Interests: {profile.interests_free_text or 'Not specified'}\n"
        f"- Interest Categories: {_join_or(categories, 'Not specified')}\n"
        f"- Goals: {_join_or(profile.goals_selected, 'None')}\n"
        f"- Goal Details: {profile.goals_free_text or 'Not specified'}\n"
        f"- Available Time: {profile.time_availability_hours_per_week:g} hours/week\n"
        f"- Learning Preferences: {_join_or(profile.learning_preferences, 'Not specified')}\n\n"
        f"CURRENT SKILL LEVELS:\n{levels}\n\n"
        f"SKILL GAPS:\n{gap_lines}\n\n"
        "Return ONLY the JSON object."
    )


def build_plan_prompt(
    current_levels: Mapping[str, int],
    gaps: Sequence[PlanGapInput],
    recommendations: Sequence[PlanRecommendationInput],
    hours_per_week: float,
) -> str:
    snapshot = "\n".join(f"- {skill.replace('_', ' ')}: {level}%" for skill, level in current_levels.items())
    gap_lines = "\n".join(
        f"- {gap.skill}: Current {gap.current_score:g}% -> Target {gap.target_score:g}% "
        f"(Gap: {gap.gap_percentage:g}%)\n  Evidence: {gap.evidence_summary}"
        for gap in sorted(gaps, key=lambda item: item.gap_percentage, reverse=True)
    )
    top = sorted(recommendations, key=lambda item: item.match_score, reverse=True)[:10]
    rec_lines = "\n".join(
        f"- [{rec.type.upper()}] {rec.title} (Match: {rec.match_score:g}%)\n"
        f"  Skills: {_join_or(rec.matched_skills, 'none')}\n"
        f"  Expected gains: "
        + (", ".join(f"{skill}: +{gain:g}%" for skill, gain in rec.expected_skill_gain.items()) or "none")
        for rec in top
    )
    return (
        "TIME CONSTRAINT:\n"
        f"- Available hours per week: {hours_per_week:g}\n"
        f"- Total available for 30 days: {hours_per_week * 4:g}\n\n"
        f"CURRENT SKILL SNAPSHOT:\n{snapshot}\n\n"
        f"SIGNIFICANT SKILL GAPS:\n{gap_lines}\n\n"
        f"AVAILABLE RECOMMENDATIONS:\n{rec_lines or 'None'}\n\n"
        "Return ONLY the JSON object."
    )
