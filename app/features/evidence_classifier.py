from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

TECHNICAL_TEACHING_KEYWORDS: tuple[str, ...] = (
    "taught", "teaching", "mentor", "mentored", "mentoring",
    "tutored", "tutoring", "explained coding", "explained programming",
    "helped students", "assisted students", "trained", "training",
    "coached", "coaching", "led workshop", "ran workshop",
    "instructor", "facilitated",
)

COMPETITIVE_AWARD_KEYWORDS: tuple[str, ...] = (
    "hackathon", "won", "winner", "award", "awarded", "prize",
    "competition", "competed", "finalist", "placed", "rank",
    "first place", "second place", "third place", "champion",
    "state", "national", "regional", "olympiad", "contest",
    "stem", "science fair", "math competition", "robotics competition",
)

COMPLEX_PROJECT_KEYWORDS: tuple[str, ...] = (
    "app", "application", "built", "developed", "created",
    "robot", "robotics", "research", "project", "engineered",
    "designed system", "implemented", "programmed", "coded",
    "software", "hardware", "machine learning", "ai", "algorithm",
    "database", "website", "web app", "mobile app", "automation",
)

# Category order is the order inference sources are reported in.
INFERENCE_CATEGORIES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "technical_teaching_mentoring": TECHNICAL_TEACHING_KEYWORDS,
        "competitive_awards": COMPETITIVE_AWARD_KEYWORDS,
        "complex_project_activities": COMPLEX_PROJECT_KEYWORDS,
    }
)

# Supporting vocabulary per skill, used to verify that a cited evidence source
# actually talks about the skill it is cited for.
SKILL_EVIDENCE_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "problem_solving": (
            "debug", "solv", "figured out", "troubleshoot", "fix", "analy", "logic",
            "puzzle", "problem", "reason", "research", "investigat", "optimi",
            "competition", "olympiad", "math", "algorithm", "diagnos",
        ),
        "communication": (
            "present", "explain", "taught", "teach", "tutor", "mentor", "spoke", "speak",
            "speech", "debate", "wrote", "write", "writing", "blog", "communicat",
            "documentation", "model un", "discuss", "podcast", "newsletter",
        ),
        "technical_skills": (
            "code", "coded", "coding", "program", "software", "hardware", "app", "python",
            "java", "arduino", "robot", "website", "web", "data", "computer", "engineer",
            "built", "develop", "circuit", "database", "machine learning", "technolog",
        ),
        "creativity": (
            "design", "creat", "invent", "art", "draw", "paint", "music", "compos",
            "write", "story", "film", "video", "photograph", "original", "innovat",
            "idea", "craft", "animation",
        ),
        "leadership": (
            "led", "lead", "captain", "president", "organiz", "founded", "found",
            "mentor", "manag", "head", "chair", "initiat", "coordinat", "officer",
            "director", "in charge",
        ),
        "self_management": (
            "managed my time", "time management", "schedule", "plan", "deadline",
            "balanc", "organiz", "consistent", "discipline", "habit", "goal",
            "on time", "independent", "self-taught", "routine", "prioritiz",
        ),
    }
)


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def matched_inference_categories(text: str) -> list[str]:
    """Return the inference categories with at least one keyword hit, in fixed order."""
    return [category for category, keywords in INFERENCE_CATEGORIES.items() if _contains_any(text, keywords)]


def category_matches(text: str, category: str) -> bool:
    keywords = INFERENCE_CATEGORIES.get(category)
    if not keywords:
        return False
    return _contains_any(text, keywords)


def supports_skill(text: str, skill: str) -> bool:
    keywords = SKILL_EVIDENCE_KEYWORDS.get(skill)
    if not keywords:
        return False
    return _contains_any(text, keywords)
