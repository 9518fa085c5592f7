from __future__ import annotations

import math
import re
from types import MappingProxyType
from typing import Iterable, Mapping

from app.schemas.profile import SKILL_NAMES

_GOAL_SKILL_WEIGHTS: dict[str, dict[str, float]] = {
    # STEM
    "stem_career": {"problem_solving": 0.95, "technical_skills": 0.95, "self_management": 0.8, "creativity": 0.7, "communication": 0.6, "leadership": 0.5},
    "engineering": {"problem_solving": 0.95, "technical_skills": 0.95, "creativity": 0.8, "self_management": 0.75, "communication": 0.6, "leadership": 0.5},
    "coding": {"technical_skills": 0.95, "problem_solving": 0.9, "self_management": 0.75, "creativity": 0.7, "communication": 0.5, "leadership": 0.4},
    "science": {"problem_solving": 0.9, "technical_skills": 0.85, "self_management": 0.8, "communication": 0.7, "creativity": 0.65, "leadership": 0.5},
    # Leadership and business
    "leadership": {"leadership": 0.95, "communication": 0.9, "self_management": 0.85, "problem_solving": 0.7, "creativity": 0.6, "technical_skills": 0.5},
    "entrepreneurship": {"leadership": 0.9, "creativity": 0.9, "communication": 0.85, "problem_solving": 0.8, "self_management": 0.8, "technical_skills": 0.6},
    "business": {"leadership": 0.85, "communication": 0.85, "self_management": 0.8, "problem_solving": 0.75, "creativity": 0.6, "technical_skills": 0.5},
    # Creative
    "creative_career": {"creativity": 0.95, "communication": 0.8, "self_management": 0.75, "technical_skills": 0.7, "problem_solving": 0.6, "leadership": 0.5},
    "design": {"creativity": 0.95, "technical_skills": 0.8, "communication": 0.75, "problem_solving": 0.7, "self_management": 0.7, "leadership": 0.5},
    "arts": {"creativity": 0.95, "communication": 0.75, "self_management": 0.7, "technical_skills": 0.5, "problem_solving": 0.5, "leadership": 0.4},
    # Academic
    "college_prep": {"self_management": 0.9, "communication": 0.85, "problem_solving": 0.85, "technical_skills": 0.75, "leadership": 0.7, "creativity": 0.65},
    "scholarships": {"leadership": 0.85, "communication": 0.85, "self_management": 0.85, "problem_solving": 0.8, "creativity": 0.7, "technical_skills": 0.7},
    "academic_excellence": {"self_management": 0.9, "problem_solving": 0.85, "communication": 0.8, "technical_skills": 0.75, "creativity": 0.65, "leadership": 0.6},
    "default": {skill: 0.75 for skill in SKILL_NAMES},
}

# Substring containment, kept literal so matches stay auditable. Short stems
# such as "app" or "lead" also hit unrelated words ("application", "pleaded").
_GOAL_KEYWORDS: dict[str, tuple[str, ...]] = {
    "stem_career": ("stem", "science", "technology", "engineering", "math", "computer"),
    "engineering": ("engineer", "engineering", "mechanical", "electrical", "civil"),
    "coding": ("coding", "programming", "software", "developer", "web dev", "app"),
    "leadership": ("leader", "leadership", "lead", "president", "captain", "manage"),
    "entrepreneurship": ("entrepreneur", "startup", "business owner", "founder"),
    "creative_career": ("creative", "artist", "designer", "content creator"),
    "college_prep": ("college", "university", "admission", "application"),
    "scholarships": ("scholarship", "financial aid", "award"),
}

GOAL_SKILL_WEIGHTS: Mapping[str, Mapping[str, float]] = MappingProxyType(
    {key: MappingProxyType(weights) for key, weights in _GOAL_SKILL_WEIGHTS.items()}
)
GOAL_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType(_GOAL_KEYWORDS)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def confidence_to_level(confidence: float) -> int:
    return int(round_half_up(confidence * 100))


def normalize_goal(goal: str) -> str:
    return _NON_ALNUM_RE.sub("_", (goal or "").lower())


def match_goal_categories(goals: Iterable[str], goals_free_text: str | None = None) -> list[str]:
    """Return the goal categories hit by any selected goal or the free-text narrative."""
    normalized_goals = [normalize_goal(goal) for goal in goals]
    goal_text = (goals_free_text or "").lower()

    matched: list[str] = []
    for category, keywords in GOAL_KEYWORDS.items():
        for keyword in keywords:
            token = re.sub(r"\s", "_", keyword)
            if any(token in goal for goal in normalized_goals) or keyword in goal_text:
                matched.append(category)
                break
    return matched


def resolve_goal_levels(goals: Iterable[str], goals_free_text: str | None = None) -> dict[str, int]:
    """Map goals to a six-skill target level, taking the max weight across matched categories."""
    matched = match_goal_categories(goals, goals_free_text) or ["default"]

    levels: dict[str, int] = {}
    for skill in SKILL_NAMES:
        best = max(GOAL_SKILL_WEIGHTS[category][skill] for category in matched)
        levels[skill] = int(round_half_up(best * 100))
    return levels


def calculate_time_allocation(gaps: Mapping[str, float], available_hours: float) -> dict[str, float]:
    """Split weekly hours across skills in proportion to their positive gaps."""
    if not gaps:
        return {}
    total_gap = sum(max(0.0, gap) for gap in gaps.values())
    if total_gap == 0:
        per_skill = available_hours / len(gaps)
        return {skill: round_half_up(per_skill, 1) for skill in gaps}

    return {
        skill: round_half_up((max(0.0, gap) / total_gap) * available_hours, 1)
        for skill, gap in gaps.items()
    }
