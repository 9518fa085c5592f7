from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.gaps import GapAnalysisResult
from app.schemas.plan import ActionPlan
from app.schemas.recommendations import RecommendationResult
from app.schemas.signals import AttributedSkillSnapshot

StageName = Literal["intake", "skill_gap", "recommendations", "action_plan"]
IssueKind = Literal["error", "skipped", "disabled"]

STAGE_ORDER: tuple[str, ...] = ("intake", "skill_gap", "recommendations", "action_plan")
STAGE_LABELS: dict[str, str] = {
    "intake": "Intake",
    "skill_gap": "Skill Gap",
    "recommendations": "Recommendations",
    "action_plan": "Action Plan",
}


class StageIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: StageName
    kind: IssueKind
    reason: str
    code: str | None = None


class PipelineRunResult(BaseModel):
    """Outputs of one variant's pass through the four stages. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    variant_id: str
    intake: AttributedSkillSnapshot | None = None
    skill_gap: GapAnalysisResult | None = None
    recommendations: RecommendationResult | None = None
    action_plan: ActionPlan | None = None
    raw_responses: dict[str, str] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    issues: list[StageIssue] = Field(default_factory=list)
    duration_ms: int = 0

    def failed_stages(self) -> list[str]:
        return [issue.stage for issue in self.issues if issue.kind == "error"]

    def skipped_stages(self) -> list[str]:
        return [issue.stage for issue in self.issues if issue.kind in {"skipped", "disabled"}]
