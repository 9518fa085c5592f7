import sys
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fastapi.testclient import TestClient

from app.core import security
from app.core.rate_limit import limiter
from app.main import app
from app.perturbation.engine import PerturbationEngine
from app.services.errors import ExtractorUnavailableError
from app.services.extractor import Extractor
from app.services.stages import SkillBridgeStages
from tests.support import FakeAIClient, full_responses, intake_json, make_orchestrator, make_profile, signal

ROBOT_INTAKE = intake_json(problem_solving=signal(["debugged our robot's code"]))


class ApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._limiter_enabled = limiter.enabled
        limiter.enabled = False
        cls._key_patch = patch.object(security, "settings", replace(security.settings, api_key=None))
        cls._key_patch.start()
        cls.client = TestClient(app)
        cls.profile = make_profile().model_dump()

    @classmethod
    def tearDownClass(cls):
        cls._key_patch.stop()
        limiter.enabled = cls._limiter_enabled

    def test_health(self):
        response = self.client.get("/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")
        self.assertIn("extractor_configured", response.json())

    def test_perturbation_description(self):
        response = self.client.get("/v1/perturbation-test")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(set(body["variant_types"]), {"original", "injection", "removal", "rephrasing"})
        self.assertIn("hallucination_rate", body["metrics"])

    def test_invalid_profile_is_rejected(self):
        profile = dict(self.profile, grade=3)
        response = self.client.post("/v1/pipeline/run", json={"profile": profile})
        self.assertEqual(response.status_code, 422)

    def test_pipeline_run_returns_all_stage_outputs(self):
        orchestrator = make_orchestrator(FakeAIClient(full_responses(ROBOT_INTAKE)))
        with patch("app.api.v1.pipeline.build_orchestrator", return_value=orchestrator):
            response = self.client.post("/v1/pipeline/run", json={"profile": self.profile})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["errors"], [])
        self.assertEqual(body["intake"]["problem_solving"]["attribution_type"], "explicit")
        self.assertIsNotNone(body["action_plan"])

    def test_intake_with_unparseable_output_is_bad_gateway(self):
        stages = SkillBridgeStages(Extractor(FakeAIClient({"intake": "not json"})))
        with patch("app.api.v1.pipeline.build_stages", return_value=stages):
            response = self.client.post("/v1/intake/analyze", json=self.profile)
        self.assertEqual(response.status_code, 502)
        detail = response.json()["detail"]
        self.assertEqual(detail["stage"], "intake")
        self.assertEqual(detail["code"], "invalid_output")

    def test_intake_reports_attribution_summary(self):
        stages = SkillBridgeStages(Extractor(FakeAIClient({"intake": ROBOT_INTAKE})))
        with patch("app.api.v1.pipeline.build_stages", return_value=stages):
            response = self.client.post("/v1/intake/analyze", json=self.profile)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["attribution_summary"]["explicit_count"], 1)
        self.assertIn("problem_solving", body["explanations"])

    def test_unconfigured_extractor_is_service_unavailable(self):
        with patch("app.api.v1.pipeline.build_stages", side_effect=ExtractorUnavailableError()):
            response = self.client.post("/v1/intake/analyze", json=self.profile)
        self.assertEqual(response.status_code, 503)

    def test_empty_batch_is_bad_request(self):
        response = self.client.post("/v1/perturbation-test", json={"profiles": []})
        self.assertEqual(response.status_code, 400)

    def test_batch_report(self):
        engine = PerturbationEngine(make_orchestrator(FakeAIClient(full_responses(ROBOT_INTAKE))))
        payload = {
            "profiles": [{"id": "p1", "name": "Robot builder", "profile": self.profile}],
            "config": {"skipActionPlan": True},
        }
        with patch("app.api.v1.perturbation.build_engine", return_value=engine):
            response = self.client.post("/v1/perturbation-test", json=payload)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total_runs"], 4)
        self.assertEqual(body["results"][0]["variant_type"], "original")
        self.assertIsNone(body["metrics"]["action_plan_appropriateness_rate"])


if __name__ == "__main__":
    unittest.main()
