from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.signals import AttributionType

Priority = Literal["high", "medium", "low"]


class ActionableStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: str
    time_required: str
    expected_impact: str
    priority: Priority
    why: str = ""


class SkillGapResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    current_level: float = Field(ge=0, le=100)
    goal_level: float = Field(ge=0, le=100)
    gap: float
    expected_level_after: float = Field(ge=0, le=100)
    timeline: str = ""
    why_it_matters: str = ""
    actionable_steps: list[ActionableStep] = Field(default_factory=list)
    reasoning: str = ""


class CappedSkillGap(SkillGapResult):
    """A SkillGapResult with the separated 30-day and long-term targets."""

    current_score: float = Field(ge=0, le=100)
    expected_30_day_score: float = Field(ge=0, le=100)
    long_term_target_score: float = Field(ge=0, le=100)
    attribution_type: AttributionType
    growth_capped: bool = False


class SkillGapAnalysis(BaseModel):
    """Gap-analysis document as returned by the extractor."""

    model_config = ConfigDict(frozen=True)

    skill_gaps: list[SkillGapResult]
    overall_summary: str = ""
    priority_skills: list[str] = Field(default_factory=list)
    total_weekly_time_recommended: str = ""


class SkillWithoutEvidence(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    display_name: str
    goal_relevance: Priority
    suggestion: str


class GapAnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill_gaps: list[CappedSkillGap]
    overall_summary: str
    priority_skills: list[str]
    total_weekly_time_recommended: str
    skills_without_evidence: list[SkillWithoutEvidence] = Field(default_factory=list)
    goal_levels: dict[str, int] = Field(default_factory=dict)
    time_allocation: dict[str, float] = Field(default_factory=dict)
    growth_cap_note: str
    growth_cap_applied: bool
