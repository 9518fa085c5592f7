from __future__ import annotations

from pydantic import BaseModel

from app.schemas.gaps import GapAnalysisResult
from app.schemas.profile import StudentProfile
from app.schemas.recommendations import RecommendationResult
from app.schemas.signals import AttributedSkillSnapshot


class SkillGapRequest(BaseModel):
    profile: StudentProfile
    intake: AttributedSkillSnapshot


class RecommendationRequest(BaseModel):
    profile: StudentProfile
    intake: AttributedSkillSnapshot
    skill_gap: GapAnalysisResult | None = None


class ActionPlanRequest(BaseModel):
    profile: StudentProfile
    intake: AttributedSkillSnapshot
    skill_gap: GapAnalysisResult
    recommendations: RecommendationResult


class PipelineRunRequest(BaseModel):
    profile: StudentProfile
    skip_action_plan: bool = False
