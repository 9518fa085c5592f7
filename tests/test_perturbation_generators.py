import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.perturbation.generators import (
    EMPTY_ACTIVITIES_TEXT,
    generate_injection_variant,
    generate_removal_variant,
    generate_rephrasing_variant,
    generate_variants,
    identify_key_evidence,
    relevant_injection_skills,
)
from app.schemas.perturbation import PerturbationConfig
from tests.support import make_profile

DEBATE_ACTIVITIES = "I was captain of the debate team. I built a robot for the science fair."
DEBATE_ACHIEVEMENTS = "Won 2nd place at the regional debate tournament."


def debate_profile(**overrides):
    data = {"past_activities": DEBATE_ACTIVITIES, "past_achievements": DEBATE_ACHIEVEMENTS}
    data.update(overrides)
    return make_profile(**data)


class KeyEvidenceTests(unittest.TestCase):
    def test_families_are_reported_in_fixed_order(self):
        evidence = identify_key_evidence(debate_profile())
        self.assertEqual([item.family.name for item in evidence], ["leadership", "technical", "achievement"])
        self.assertEqual(evidence[0].item.text, "I was captain of the debate team.")
        self.assertEqual(evidence[1].skills, ("technical_skills", "problem_solving"))
        self.assertEqual(evidence[2].item.source, "achievements")
        self.assertEqual(evidence[2].item.skill, "communication")

    def test_keyword_inside_another_word_is_not_evidence(self):
        profile = make_profile(past_activities="My first attempt failed but I kept going.")
        self.assertEqual(identify_key_evidence(profile), [])


class RemovalVariantTests(unittest.TestCase):
    def test_strips_first_family_and_keeps_structured_fields(self):
        profile = debate_profile(goals_selected=["Leadership"])
        variant = generate_removal_variant("p1", profile)

        self.assertEqual(variant.id, "p1-removal")
        self.assertEqual(variant.target_skills, ["leadership"])
        self.assertEqual(variant.profile_data.past_activities, "I built a robot for the science fair.")
        self.assertEqual(variant.profile_data.past_achievements, DEBATE_ACHIEVEMENTS)
        self.assertEqual(variant.modifications, ["past_activities: - I was captain of the debate team."])
        self.assertEqual(variant.removed_evidence[0].skill, "leadership")

        self.assertEqual(variant.profile_data.grade, profile.grade)
        self.assertEqual(variant.profile_data.goals_selected, profile.goals_selected)
        self.assertEqual(
            variant.profile_data.time_availability_hours_per_week,
            profile.time_availability_hours_per_week,
        )

    def test_without_key_evidence_drops_last_activity_sentence(self):
        profile = make_profile(past_activities="I volunteer at the library. I enjoy reading on weekends.")
        variant = generate_removal_variant("p1", profile)
        self.assertEqual(variant.profile_data.past_activities, "I volunteer at the library.")
        self.assertEqual(variant.target_skills, ["problem_solving"])
        self.assertEqual(variant.removed_evidence[0].text, "I enjoy reading on weekends.")

    def test_single_sentence_without_evidence_is_left_alone(self):
        profile = make_profile(past_activities="I volunteer at the library on weekends.")
        variant = generate_removal_variant("p1", profile)
        self.assertEqual(variant.profile_data, profile)
        self.assertEqual(variant.target_skills, [])
        self.assertEqual(variant.removed_evidence, [])

    def test_emptied_activities_get_placeholder_text(self):
        profile = make_profile(past_activities="I was captain of the chess club.")
        variant = generate_removal_variant("p1", profile)
        self.assertEqual(variant.profile_data.past_activities, EMPTY_ACTIVITIES_TEXT)


class InjectionVariantTests(unittest.TestCase):
    def test_goal_driven_injection_appends_to_activities(self):
        profile = debate_profile(goals_selected=["Leadership"])
        self.assertEqual(relevant_injection_skills(profile), ["leadership", "communication"])

        variant = generate_injection_variant("p1", profile)
        activities = variant.profile_data.past_activities
        self.assertTrue(activities.startswith(DEBATE_ACTIVITIES))
        self.assertIn("Led a team of 15 volunteers for a community service project.", activities)
        self.assertIn("Presented our research findings to a panel of university professors.", activities)
        self.assertEqual(variant.target_skills, ["leadership", "communication"])
        self.assertEqual([item.skill for item in variant.injected_evidence], ["leadership", "communication"])

    def test_existing_text_falls_through_to_achievement_template(self):
        profile = make_profile(
            goals_selected=["Leadership"],
            past_activities="Led a team of 15 volunteers for a community service project.",
        )
        variant = generate_injection_variant("p1", profile)
        self.assertEqual(variant.injected_evidence[0].source, "achievements")
        self.assertEqual(
            variant.profile_data.past_achievements,
            "Elected student body president with 65% of votes.",
        )

    def test_defaults_when_no_goal_or_interest_matches(self):
        profile = make_profile()
        self.assertEqual(relevant_injection_skills(profile), ["problem_solving", "communication"])
        variant = generate_injection_variant("p1", profile)
        self.assertEqual(variant.target_skills, ["problem_solving", "technical_skills", "communication"])


class RephrasingVariantTests(unittest.TestCase):
    def test_rewrites_wording_only(self):
        variant = generate_rephrasing_variant("p1", debate_profile())
        self.assertEqual(
            variant.profile_data.past_activities,
            "I was captain of the debate group. I developed a robot for the science fair.",
        )
        self.assertEqual(variant.profile_data.past_achievements, DEBATE_ACHIEVEMENTS)
        self.assertEqual(variant.modifications, ["past_activities: rephrased"])
        self.assertEqual(variant.target_skills, [])


class GenerateVariantsTests(unittest.TestCase):
    def test_baseline_first_then_each_enabled_type(self):
        variants = generate_variants("p1", debate_profile())
        self.assertEqual(
            [variant.id for variant in variants],
            ["p1-original", "p1-injection", "p1-removal", "p1-rephrasing"],
        )
        self.assertEqual(variants[0].profile_data, debate_profile())

    def test_disabled_types_are_skipped(self):
        config = PerturbationConfig(run_injection=False, run_rephrasing=False)
        variants = generate_variants("p1", debate_profile(), config)
        self.assertEqual([variant.variant_type for variant in variants], ["original", "removal"])


if __name__ == "__main__":
    unittest.main()
