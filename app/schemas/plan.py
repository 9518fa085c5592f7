from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Difficulty = Literal["low", "medium", "high"]
WeekNumber = Literal[1, 2, 3, 4]


class PlanTask(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str
    title: str
    description: str = ""
    related_skill: str
    skill_gap_addressed: float = Field(ge=0, le=100)
    expected_skill_gain: float = Field(ge=0, le=100)
    estimated_time_hours: float = Field(ge=0)
    difficulty: Difficulty
    evidence_source: str = Field(min_length=5)
    reasoning: str = Field(min_length=10)
    gain_capped: bool = False


class PlanWeek(BaseModel):
    model_config = ConfigDict(frozen=True)

    week_number: WeekNumber
    theme: str
    tasks: list[PlanTask] = Field(default_factory=list, max_length=5)

    def total_hours(self) -> float:
        return sum(task.estimated_time_hours for task in self.tasks)


class PlanOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_focus_skill: str
    total_tasks: int = Field(ge=0)
    estimated_total_hours: float = Field(ge=0)
    reasoning_summary: str = ""


class ActionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    overview: PlanOverview
    weeks: list[PlanWeek] = Field(min_length=4, max_length=4)
    confidence_note: str = ""

    @model_validator(mode="after")
    def _check_week_numbers(self) -> "ActionPlan":
        numbers = sorted(week.week_number for week in self.weeks)
        if numbers != [1, 2, 3, 4]:
            raise ValueError(f"plan must contain weeks 1-4 exactly once, got {numbers}")
        return self


class PlanGapInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    current_score: float = Field(ge=0, le=100)
    target_score: float = Field(ge=0, le=100)
    gap_percentage: float = Field(ge=0, le=100)
    evidence_summary: str


class PlanRecommendationInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    title: str
    matched_skills: list[str] = Field(default_factory=list)
    expected_skill_gain: dict[str, float] = Field(default_factory=dict)
    match_score: float = Field(ge=0, le=100)
