from .evidence_classifier import (
    INFERENCE_CATEGORIES,
    matched_inference_categories,
    supports_skill,
)
from .freshness import annotate_recommendations, check_recommendation_freshness
from .goal_weights import (
    GOAL_SKILL_WEIGHTS,
    calculate_time_allocation,
    confidence_to_level,
    resolve_goal_levels,
)
from .responsible_output import (
    MAX_30_DAY_IMPROVEMENT,
    apply_growth_cap_to_gap,
    apply_growth_caps_to_gaps,
    apply_growth_caps_to_plan,
    apply_inferred_evidence_rules,
    cap_week_tasks,
    enforce_growth_cap,
)

__all__ = [
    "INFERENCE_CATEGORIES",
    "matched_inference_categories",
    "supports_skill",
    "annotate_recommendations",
    "check_recommendation_freshness",
    "GOAL_SKILL_WEIGHTS",
    "calculate_time_allocation",
    "confidence_to_level",
    "resolve_goal_levels",
    "MAX_30_DAY_IMPROVEMENT",
    "apply_growth_cap_to_gap",
    "apply_growth_caps_to_gaps",
    "apply_growth_caps_to_plan",
    "apply_inferred_evidence_rules",
    "cap_week_tasks",
    "enforce_growth_cap",
]
