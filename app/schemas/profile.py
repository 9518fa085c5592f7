from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SkillName = Literal[
    "problem_solving",
    "communication",
    "technical_skills",
    "creativity",
    "leadership",
    "self_management",
]
EvidenceSource = Literal["interests", "goals", "past_activities", "achievements", "challenges"]

SKILL_NAMES: tuple[str, ...] = (
    "problem_solving",
    "communication",
    "technical_skills",
    "creativity",
    "leadership",
    "self_management",
)
EVIDENCE_SOURCES: tuple[str, ...] = ("interests", "goals", "past_activities", "achievements", "challenges")

SKILL_DISPLAY_NAMES: dict[str, str] = {
    "problem_solving": "Problem Solving",
    "communication": "Communication",
    "technical_skills": "Technical Skills",
    "creativity": "Creativity",
    "leadership": "Leadership",
    "self_management": "Self-Management",
}


class InterestCategories(BaseModel):
    academic: bool = False
    creative: bool = False
    social: bool = False
    technical: bool = False
    sports: bool = False
    music: bool = False
    business: bool = False
    health_wellness: bool = False
    other: bool = False

    def selected(self) -> list[str]:
        return [name for name, value in self.model_dump().items() if value]


class SkillsSelfAssessment(BaseModel):
    problemSolving: float = Field(default=0, ge=0, le=5)
    communication: float = Field(default=0, ge=0, le=5)
    technicalSkills: float = Field(default=0, ge=0, le=5)
    creativity: float = Field(default=0, ge=0, le=5)
    leadership: float = Field(default=0, ge=0, le=5)
    selfManagement: float = Field(default=0, ge=0, le=5)


class StudentProfile(BaseModel):
    """Self-reported intake record. Only the free-text fields are ever perturbed."""

    model_config = ConfigDict(frozen=True)

    grade: int = Field(ge=6, le=12)
    interests_free_text: str = Field(default="", max_length=5000)
    interests_by_category: InterestCategories = Field(default_factory=InterestCategories)
    goals_selected: list[str] = Field(default_factory=list, max_length=20)
    goals_free_text: str = Field(default="", max_length=5000)
    time_availability_hours_per_week: float = Field(ge=0, le=168)
    learning_preferences: list[str] = Field(default_factory=list, max_length=20)
    past_activities: str = Field(min_length=1, max_length=10000)
    past_achievements: str = Field(default="", max_length=5000)
    challenges: str = Field(default="", max_length=5000)
    skills: SkillsSelfAssessment = Field(default_factory=SkillsSelfAssessment)

    @field_validator("past_activities")
    @classmethod
    def _require_activity_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Past activities description is required")
        return value

    def source_text(self, source: str) -> str:
        """Return the free text backing one evidence source."""
        if source == "interests":
            return self.interests_free_text
        if source == "goals":
            return " ".join([*self.goals_selected, self.goals_free_text]).strip()
        if source == "past_activities":
            return self.past_activities
        if source == "achievements":
            return self.past_achievements
        if source == "challenges":
            return self.challenges
        return ""

    def combined_text(self) -> str:
        parts = [
            self.interests_free_text,
            self.goals_free_text,
            self.past_activities,
            self.past_achievements,
            self.challenges,
        ]
        return " ".join(part for part in parts if part)
