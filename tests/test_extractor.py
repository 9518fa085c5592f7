import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.signals import SkillSnapshot
from app.services.errors import ExtractorError, StageValidationError
from app.services.extractor import Extractor, clean_json_response
from app.services.prompts import INTAKE_SYSTEM_PROMPT
from app.services.validation import parse_stage_output
from tests.support import FakeAIClient, intake_json


class CleanJsonResponseTests(unittest.TestCase):
    def test_strips_markdown_fence(self):
        self.assertEqual(clean_json_response('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(clean_json_response('```\n{"a": 1}```'), '{"a": 1}')

    def test_plain_json_is_untouched(self):
        self.assertEqual(clean_json_response('  {"a": 1} '), '{"a": 1}')


class ExtractorTests(unittest.IsolatedAsyncioTestCase):
    async def test_provider_exception_becomes_extractor_error(self):
        extractor = Extractor(FakeAIClient({"intake": RuntimeError("rate limited")}))
        with self.assertRaises(ExtractorError) as ctx:
            await extractor.complete(stage="intake", system_prompt=INTAKE_SYSTEM_PROMPT, user_prompt="text")
        self.assertEqual(ctx.exception.code, "extractor_exception")
        self.assertIn("rate limited", str(ctx.exception))

    async def test_blank_response_is_rejected(self):
        extractor = Extractor(FakeAIClient({"intake": "   "}))
        with self.assertRaises(ExtractorError) as ctx:
            await extractor.complete(stage="intake", system_prompt=INTAKE_SYSTEM_PROMPT, user_prompt="text")
        self.assertEqual(ctx.exception.code, "empty_response")


class ParseStageOutputTests(unittest.TestCase):
    def test_fenced_valid_output_parses(self):
        snapshot = parse_stage_output(f"```json\n{intake_json()}\n```", SkillSnapshot, stage="intake")
        self.assertFalse(snapshot.problem_solving.evidence_found)

    def test_missing_skill_lists_field_paths(self):
        with self.assertRaises(StageValidationError) as ctx:
            parse_stage_output('{"problem_solving": {"evidence_found": true}}', SkillSnapshot, stage="intake")
        self.assertEqual(ctx.exception.code, "invalid_output")
        self.assertIn("communication: Field required", ctx.exception.details)
        self.assertIn("problem_solving.confidence: Field required", ctx.exception.details)

    def test_non_object_json_is_rejected(self):
        with self.assertRaises(StageValidationError) as ctx:
            parse_stage_output("[1, 2]", SkillSnapshot, stage="intake")
        self.assertEqual(ctx.exception.raw_response, "[1, 2]")


if __name__ == "__main__":
    unittest.main()
