import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.features.goal_weights import (
    calculate_time_allocation,
    confidence_to_level,
    match_goal_categories,
    resolve_goal_levels,
    round_half_up,
)
from app.schemas.profile import SKILL_NAMES


class GoalWeightTests(unittest.TestCase):
    def test_no_goals_fall_back_to_uniform_default(self):
        levels = resolve_goal_levels([], None)
        self.assertEqual(set(levels), set(SKILL_NAMES))
        self.assertTrue(all(level == 75 for level in levels.values()))

    def test_software_engineer_takes_max_across_categories(self):
        self.assertEqual(match_goal_categories(["become a software engineer"]), ["engineering", "coding"])
        levels = resolve_goal_levels(["become a software engineer"])
        self.assertEqual(levels["technical_skills"], 95)
        self.assertEqual(levels["problem_solving"], 95)
        self.assertEqual(levels["creativity"], 80)

    def test_free_text_narrative_also_matches(self):
        levels = resolve_goal_levels([], "I want to be captain of my robotics team")
        self.assertEqual(levels["leadership"], 95)

    def test_resolution_is_deterministic(self):
        goals = ["College applications", "start a business"]
        self.assertEqual(resolve_goal_levels(goals, "scholarship"), resolve_goal_levels(goals, "scholarship"))

    def test_time_allocation_ignores_negative_gaps(self):
        allocation = calculate_time_allocation({"a": 30, "b": 10, "c": -5}, 8)
        self.assertEqual(allocation, {"a": 6.0, "b": 2.0, "c": 0.0})
        self.assertEqual(calculate_time_allocation({"a": 0, "b": 0}, 5), {"a": 2.5, "b": 2.5})

    def test_rounding_helpers(self):
        self.assertEqual(round_half_up(2.5), 3.0)
        self.assertEqual(round_half_up(0.125, 2), 0.13)
        self.assertEqual(confidence_to_level(0.455), 46)


if __name__ == "__main__":
    unittest.main()
