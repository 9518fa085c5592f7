from __future__ import annotations

from typing import Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.profile import SKILL_NAMES, EvidenceSource

AttributionType = Literal["explicit", "inferred", "missing"]
InferenceSource = Literal[
    "technical_teaching_mentoring",
    "competitive_awards",
    "complex_project_activities",
]

MAX_EVIDENCE_PHRASES = 5


class SkillSignal(BaseModel):
    """Evidence record for one skill as returned by the extractor."""

    model_config = ConfigDict(frozen=True)

    evidence_found: bool
    evidence_phrases: list[str] = Field(default_factory=list)
    evidence_sources: list[EvidenceSource] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""

    @field_validator("evidence_phrases")
    @classmethod
    def _trim_phrases(cls, value: list[str]) -> list[str]:
        clean = [phrase.strip() for phrase in value if phrase and phrase.strip()]
        return clean[:MAX_EVIDENCE_PHRASES]

    @field_validator("evidence_sources")
    @classmethod
    def _dedupe_sources(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class AttributedSkillSignal(SkillSignal):
    """A SkillSignal plus the attribution fields added by the responsible-output transform."""

    attribution_type: AttributionType
    inference_sources: list[InferenceSource] = Field(default_factory=list)
    inference_justification: str | None = None

    @model_validator(mode="after")
    def _check_attribution(self) -> "AttributedSkillSignal":
        if self.attribution_type == "missing" and self.evidence_found:
            raise ValueError("missing attribution requires evidence_found=false")
        if self.attribution_type in {"explicit", "inferred"} and not self.evidence_found:
            raise ValueError(f"{self.attribution_type} attribution requires evidence_found=true")
        if self.attribution_type == "inferred" and not self.inference_sources:
            raise ValueError("inferred attribution requires inference_sources")
        return self


class SkillSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    problem_solving: SkillSignal
    communication: SkillSignal
    technical_skills: SkillSignal
    creativity: SkillSignal
    leadership: SkillSignal
    self_management: SkillSignal

    def items(self) -> Iterator[tuple[str, SkillSignal]]:
        for skill in SKILL_NAMES:
            yield skill, getattr(self, skill)


class AttributedSkillSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    problem_solving: AttributedSkillSignal
    communication: AttributedSkillSignal
    technical_skills: AttributedSkillSignal
    creativity: AttributedSkillSignal
    leadership: AttributedSkillSignal
    self_management: AttributedSkillSignal

    def items(self) -> Iterator[tuple[str, AttributedSkillSignal]]:
        for skill in SKILL_NAMES:
            yield skill, getattr(self, skill)

    def get(self, skill: str) -> AttributedSkillSignal | None:
        if skill not in SKILL_NAMES:
            return None
        return getattr(self, skill)
