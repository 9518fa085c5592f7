import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.features.responsible_output import apply_growth_caps_to_gaps
from app.perturbation.comparison import (
    aggregate_metrics,
    check_gap,
    check_recommendation,
    compare_variant,
    is_phrase_traceable,
    plan_check,
    recommendation_stability,
    skill_consistency,
)
from app.perturbation.generators import generate_removal_variant, generate_rephrasing_variant
from app.schemas.gaps import GapAnalysisResult, SkillGapResult
from app.schemas.perturbation import ComparisonResult, HallucinationCheck
from app.schemas.pipeline import PipelineRunResult
from app.schemas.plan import ActionPlan
from app.schemas.recommendations import Recommendation, RecommendationResult
from tests.support import (
    attributed,
    make_profile,
    plan_json,
    recommendation,
    recommendations_json,
    signal,
    task,
)

CAPTAIN_PROFILE = make_profile(
    past_activities="I was captain of the robotics team. I debugged our robot's code.",
)
LEADERSHIP = signal(["captain of the robotics team"])
PROBLEM_SOLVING = signal(["debugged our robot's code"])


def recs(*items, kind="courses"):
    return RecommendationResult.model_validate_json(recommendations_json(**{kind: list(items)}))


def gap_analysis(**gaps):
    results = [
        SkillGapResult(skill=skill, current_level=50, goal_level=50 + gap, gap=gap, expected_level_after=60)
        for skill, gap in gaps.items()
    ]
    return GapAnalysisResult(
        skill_gaps=apply_growth_caps_to_gaps(results),
        overall_summary="",
        priority_skills=[],
        total_weekly_time_recommended="",
        growth_cap_note="",
        growth_cap_applied=False,
    )


class RemovalComparisonTests(unittest.TestCase):
    def setUp(self):
        self.variant = generate_removal_variant("p1", CAPTAIN_PROFILE)
        self.baseline = PipelineRunResult(
            variant_id="p1-original",
            intake=attributed(leadership=LEADERSHIP, problem_solving=PROBLEM_SOLVING),
        )

    def test_removed_leadership_evidence_is_an_expected_change(self):
        run = PipelineRunResult(variant_id="p1-removal", intake=attributed(problem_solving=PROBLEM_SOLVING))
        result = compare_variant(self.variant, run, self.baseline)

        self.assertEqual(result.baseline_run_id, "p1-original")
        checks = {check.skill: check for check in result.attribution_checks}
        self.assertEqual(len(checks), 6)
        self.assertTrue(checks["leadership"].expected_change)
        self.assertEqual(checks["leadership"].variant_type, "missing")
        self.assertTrue(result.attribution_consistent)
        self.assertTrue(result.hallucination_free)

    def test_unchanged_explicit_evidence_is_flagged(self):
        run = PipelineRunResult(
            variant_id="p1-removal",
            intake=attributed(leadership=LEADERSHIP, problem_solving=PROBLEM_SOLVING),
        )
        result = compare_variant(self.variant, run, self.baseline)

        checks = {check.skill: check for check in result.attribution_checks}
        self.assertFalse(checks["leadership"].consistent)
        self.assertFalse(result.attribution_consistent)

        hallucinations = {check.subject: check for check in result.hallucination_checks}
        self.assertFalse(hallucinations["leadership"].passed)
        self.assertTrue(hallucinations["problem_solving"].passed)
        self.assertFalse(result.hallucination_free)

    def test_evidence_appearing_after_removal_is_inconsistent(self):
        run = PipelineRunResult(
            variant_id="p1-removal",
            intake=attributed(
                leadership=LEADERSHIP,
                problem_solving=PROBLEM_SOLVING,
                creativity=signal(["robot's code"]),
            ),
        )
        result = compare_variant(self.variant, run, self.baseline)
        checks = {check.skill: check for check in result.attribution_checks}
        self.assertFalse(checks["creativity"].consistent)

    def test_small_appearance_for_untouched_skill_is_consistent(self):
        baseline = PipelineRunResult(
            variant_id="p1-original",
            intake=attributed(leadership=LEADERSHIP, problem_solving=PROBLEM_SOLVING),
        )
        run = PipelineRunResult(
            variant_id="p1-removal",
            intake=attributed(problem_solving=PROBLEM_SOLVING, creativity=signal(["robot's code"], confidence=0.11)),
        )
        checks = {check.skill: check for check in compare_variant(self.variant, run, baseline).attribution_checks}
        self.assertTrue(checks["creativity"].consistent)
        self.assertTrue(checks["leadership"].expected_change)

    def test_untouched_skill_losing_confidence_is_inconsistent(self):
        baseline = PipelineRunResult(
            variant_id="p1-original",
            intake=attributed(
                leadership=LEADERSHIP,
                problem_solving=PROBLEM_SOLVING,
                technical_skills=signal(["robot's code"], confidence=0.9),
            ),
        )
        run = PipelineRunResult(
            variant_id="p1-removal",
            intake=attributed(
                problem_solving=PROBLEM_SOLVING,
                technical_skills=signal(["robot's code"], confidence=0.2),
            ),
        )
        checks = {check.skill: check for check in compare_variant(self.variant, run, baseline).attribution_checks}
        self.assertFalse(checks["technical_skills"].consistent)
        self.assertIn("unrelated to the removed text", checks["technical_skills"].note)

    def test_targeted_skill_gaining_evidence_is_inconsistent(self):
        baseline = PipelineRunResult(variant_id="p1-original", intake=attributed(problem_solving=PROBLEM_SOLVING))
        run = PipelineRunResult(
            variant_id="p1-removal",
            intake=attributed(leadership=signal(["robot's code"], confidence=0.11), problem_solving=PROBLEM_SOLVING),
        )
        checks = {check.skill: check for check in compare_variant(self.variant, run, baseline).attribution_checks}
        self.assertFalse(checks["leadership"].consistent)

    def test_missing_intake_on_either_side_yields_no_attribution_units(self):
        run = PipelineRunResult(variant_id="p1-removal", errors=["Intake: Extractor call failed: boom"])
        result = compare_variant(self.variant, run, self.baseline)
        self.assertEqual(result.attribution_checks, [])
        self.assertIsNone(result.attribution_consistent)
        self.assertEqual(result.stage_errors, ["Intake: Extractor call failed: boom"])


class RephrasingComparisonTests(unittest.TestCase):
    def setUp(self):
        self.variant = generate_rephrasing_variant("p1", CAPTAIN_PROFILE)
        self.baseline = PipelineRunResult(
            variant_id="p1-original",
            intake=attributed(leadership=LEADERSHIP, problem_solving=PROBLEM_SOLVING),
        )

    def _checks(self, **signals):
        run = PipelineRunResult(variant_id="p1-rephrasing", intake=attributed(**signals))
        return {check.skill: check for check in compare_variant(self.variant, run, self.baseline).attribution_checks}

    def test_identical_attribution_is_consistent(self):
        checks = self._checks(leadership=LEADERSHIP, problem_solving=PROBLEM_SOLVING)
        self.assertTrue(all(check.consistent for check in checks.values()))

    def test_confidence_swing_is_inconsistent(self):
        checks = self._checks(
            leadership=signal(["captain of the robotics team"], confidence=0.4),
            problem_solving=PROBLEM_SOLVING,
        )
        self.assertFalse(checks["leadership"].consistent)

    def test_evidence_count_jump_is_inconsistent(self):
        checks = self._checks(
            leadership=signal(["captain of the robotics team", "captain", "robotics team"]),
            problem_solving=PROBLEM_SOLVING,
        )
        self.assertFalse(checks["leadership"].consistent)
        self.assertIn("evidence count changed by 2", checks["leadership"].note)


class HallucinationCheckTests(unittest.TestCase):
    def test_phrase_traceability(self):
        corpus = "i debugged our robot's code and figured out why it kept failing."
        self.assertTrue(is_phrase_traceable("debugged our robot's code", corpus))
        self.assertTrue(is_phrase_traceable("figured out why the robot kept failing", corpus))
        self.assertFalse(is_phrase_traceable("founded a nonprofit organization", corpus))

    def test_gap_without_evidenced_signal_fails(self):
        snapshot = attributed(problem_solving=PROBLEM_SOLVING)
        self.assertTrue(check_gap("problem_solving", "explicit", snapshot).passed)
        self.assertFalse(check_gap("leadership", "explicit", snapshot).passed)

    def test_recommendation_citing_an_empty_field_fails(self):
        rec = Recommendation.model_validate(
            recommendation("Robotics Camp", "FIRST Robotics", {"technical_skills": 8}, "Builds on your achievements in robotics.")
        )
        self.assertFalse(check_recommendation(rec, make_profile()).passed)
        self.assertTrue(check_recommendation(rec, make_profile(past_achievements="Won a robotics award.")).passed)


class StabilityTests(unittest.TestCase):
    def setUp(self):
        self.baseline = recs(
            recommendation("Intro to Python", "Coursera", {"technical_skills": 10}),
            recommendation("Build a Line-Following Robot", "Self-directed", {"problem_solving": 12}),
        )

    def test_same_titles_are_fully_stable(self):
        check = recommendation_stability(self.baseline, self.baseline)
        self.assertEqual(check.overlap, 1.0)
        self.assertTrue(check.stable)

    def test_provider_and_skill_match_counts_as_stable_item(self):
        variant = recs(recommendation("Python for Beginners", "Coursera", {"technical_skills": 10}))
        check = recommendation_stability(self.baseline, variant)
        self.assertEqual(check.overlap, 0.5)
        self.assertFalse(check.stable)
        self.assertEqual(check.matched_titles, ["Intro to Python"])
        self.assertEqual(check.unmatched_titles, ["Build a Line-Following Robot"])

    def test_stability_only_reported_for_rephrasing(self):
        rephrased = generate_rephrasing_variant("p1", CAPTAIN_PROFILE)
        removal = generate_removal_variant("p1", CAPTAIN_PROFILE)
        baseline_run = PipelineRunResult(variant_id="p1-original", recommendations=self.baseline)
        run = PipelineRunResult(variant_id="p1-x", recommendations=self.baseline)
        self.assertIsNotNone(compare_variant(rephrased, run, baseline_run).recommendation_stability)
        self.assertIsNone(compare_variant(removal, run, baseline_run).recommendation_stability)


class PlanCheckTests(unittest.TestCase):
    def test_within_budget_and_cap_is_appropriate(self):
        plan = ActionPlan.model_validate_json(
            plan_json([[task("w1-1", "technical_skills", 10, 3), task("w1-2", "problem_solving", 5, 1)], [], [], []])
        )
        run = PipelineRunResult(
            variant_id="p1-original",
            action_plan=plan,
            skill_gap=gap_analysis(technical_skills=40, problem_solving=10),
        )
        check = plan_check(run, make_profile())
        self.assertTrue(check.appropriate)
        self.assertEqual(check.weekly_hours, [4.0, 0.0, 0.0, 0.0])

    def test_over_budget_week_and_gain_above_cap(self):
        plan = ActionPlan.model_validate_json(
            plan_json(
                [
                    [task("w1-1", "problem_solving", 10, 3)],
                    [task("w2-1", "problem_solving", 10, 1)],
                    [task("w3-1", "problem_solving", 10, 1)],
                    [],
                ]
            )
        )
        run = PipelineRunResult(variant_id="p1-original", action_plan=plan)
        check = plan_check(run, make_profile(time_availability_hours_per_week=2))
        self.assertFalse(check.appropriate)
        self.assertIn("week 1 plans 3h against a 2h budget", check.violations)
        self.assertIn("problem_solving plans +30 gain, above the +25 cap", check.violations)

    def test_larger_gap_with_less_effort_is_a_violation(self):
        plan = ActionPlan.model_validate_json(
            plan_json([[task("w1-1", "problem_solving", 10, 3), task("w1-2", "technical_skills", 5, 1)], [], [], []])
        )
        run = PipelineRunResult(
            variant_id="p1-original",
            action_plan=plan,
            skill_gap=gap_analysis(technical_skills=40, problem_solving=10),
        )
        check = plan_check(run, make_profile())
        self.assertFalse(check.appropriate)
        self.assertEqual(len(check.violations), 2)

    def test_no_plan_means_no_unit(self):
        self.assertIsNone(plan_check(PipelineRunResult(variant_id="p1-original"), make_profile()))


class MetricsTests(unittest.TestCase):
    def test_rates_are_none_without_units(self):
        metrics = aggregate_metrics([])
        self.assertIsNone(metrics.attribution_consistency_rate)
        self.assertIsNone(metrics.hallucination_rate)
        self.assertIsNone(metrics.recommendation_stability_rate)
        self.assertIsNone(metrics.action_plan_appropriateness_rate)

    def test_hallucination_rate_counts_failures(self):
        result = ComparisonResult(
            variant_id="p1-original",
            profile_id="p1",
            variant_type="original",
            hallucination_checks=[
                HallucinationCheck(stage="intake", subject="problem_solving", passed=True),
                HallucinationCheck(stage="intake", subject="leadership", passed=False),
                HallucinationCheck(stage="skill_gap", subject="leadership", passed=True),
            ],
        )
        metrics = aggregate_metrics(iter([result]), elapsed_ms=12)
        self.assertEqual(metrics.hallucination_rate, 0.3333)
        self.assertEqual(metrics.hallucination_units, 3)
        self.assertEqual(metrics.elapsed_ms, 12)

    def test_skill_consistency(self):
        baseline = attributed(problem_solving=signal(confidence=0.7))
        self.assertEqual(skill_consistency(baseline, baseline), 100.0)
        shifted = attributed(problem_solving=signal(confidence=0.4))
        self.assertEqual(skill_consistency(baseline, shifted), 95.0)


if __name__ == "__main__":
    unittest.main()
