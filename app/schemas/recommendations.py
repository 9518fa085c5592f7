from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RecommendationType = Literal["course", "project", "competition", "internship"]
RecommendationLevel = Literal["Beginner", "Intermediate", "Advanced"]
MatchLevel = Literal["high", "medium", "low"]


class SkillAlignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    expected_improvement: float = Field(ge=0, le=100)


class FreshnessCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_active: bool
    last_verified_date: str
    discontinued_program: str | None = None
    discontinued_date: str | None = None
    suggested_alternative: str | None = None


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    platform_or_provider: str
    match_score: float = Field(ge=0, le=100)
    skill_alignment: list[SkillAlignment] = Field(default_factory=list)
    duration_weeks: float = Field(ge=1, le=52)
    level: RecommendationLevel
    reasoning: str = ""
    link: str | None = None
    match_level: MatchLevel | None = None
    freshness: FreshnessCheck | None = None


class RecommendationSet(BaseModel):
    """Recommendation document as returned by the extractor."""

    model_config = ConfigDict(frozen=True)

    courses: list[Recommendation] = Field(default_factory=list)
    projects: list[Recommendation] = Field(default_factory=list)
    competitions: list[Recommendation] = Field(default_factory=list)
    internships: list[Recommendation] = Field(default_factory=list)
    summary: str = ""

    def flattened(self) -> list[tuple[RecommendationType, Recommendation]]:
        items: list[tuple[RecommendationType, Recommendation]] = []
        items.extend(("course", rec) for rec in self.courses)
        items.extend(("project", rec) for rec in self.projects)
        items.extend(("competition", rec) for rec in self.competitions)
        items.extend(("internship", rec) for rec in self.internships)
        return items


class RecommendationResult(RecommendationSet):
    freshness_notes: list[str] = Field(default_factory=list)
