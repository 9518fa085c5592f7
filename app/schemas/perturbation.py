from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from app.schemas.pipeline import PipelineRunResult
from app.schemas.profile import StudentProfile
from app.schemas.signals import AttributionType

VariantType = Literal["original", "injection", "removal", "rephrasing"]


class EvidenceItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    source: str
    skill: str


class ProfileVariant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source_profile_id: str
    variant_type: VariantType
    profile_data: StudentProfile
    description: str = ""
    modifications: list[str] = Field(default_factory=list)
    target_skills: list[str] = Field(default_factory=list)
    injected_evidence: list[EvidenceItem] = Field(default_factory=list)
    removed_evidence: list[EvidenceItem] = Field(default_factory=list)


class PerturbationConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    run_injection: bool = True
    run_removal: bool = True
    run_rephrasing: bool = True
    skip_action_plan: bool = False


class BatchProfileEntry(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(default="", max_length=200)
    profile: StudentProfile


class BatchRequest(BaseModel):
    profiles: list[BatchProfileEntry] = Field(default_factory=list)
    config: PerturbationConfig = Field(default_factory=PerturbationConfig)


class SkillDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    baseline_confidence: float
    variant_confidence: float
    confidence_change: float
    evidence_count_change: int
    baseline_attribution: AttributionType
    variant_attribution: AttributionType


class StageDeltas(BaseModel):
    model_config = ConfigDict(frozen=True)

    intake: list[SkillDelta] = Field(default_factory=list)
    skill_consistency: float | None = None
    gap_expected_30_day_change: dict[str, float] = Field(default_factory=dict)
    recommendations_added: list[str] = Field(default_factory=list)
    recommendations_removed: list[str] = Field(default_factory=list)
    plan_task_count_change: int | None = None
    plan_hours_change: float | None = None


class AttributionCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    baseline_type: AttributionType
    variant_type: AttributionType
    consistent: bool
    expected_change: bool = False
    note: str = ""


class HallucinationCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: str
    subject: str
    passed: bool
    reason: str = ""


class StabilityCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    overlap: float
    stable: bool
    matched_titles: list[str] = Field(default_factory=list)
    unmatched_titles: list[str] = Field(default_factory=list)


class PlanCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    appropriate: bool
    weekly_hours: list[float] = Field(default_factory=list)
    hours_budget: float
    violations: list[str] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant_id: str
    profile_id: str
    variant_type: VariantType
    baseline_run_id: str | None = None
    deltas: StageDeltas = Field(default_factory=StageDeltas)
    attribution_checks: list[AttributionCheck] = Field(default_factory=list)
    hallucination_checks: list[HallucinationCheck] = Field(default_factory=list)
    recommendation_stability: StabilityCheck | None = None
    plan_check: PlanCheck | None = None
    stage_errors: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def attribution_consistent(self) -> bool | None:
        if not self.attribution_checks:
            return None
        return all(check.consistent for check in self.attribution_checks)

    @computed_field
    @property
    def hallucination_free(self) -> bool | None:
        if not self.hallucination_checks:
            return None
        return all(check.passed for check in self.hallucination_checks)


class AggregateMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    attribution_consistency_rate: float | None = None
    hallucination_rate: float | None = None
    recommendation_stability_rate: float | None = None
    action_plan_appropriateness_rate: float | None = None
    attribution_units: int = 0
    hallucination_units: int = 0
    recommendation_units: int = 0
    action_plan_units: int = 0
    elapsed_ms: int = 0


class BatchReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_runs: int
    profiles_tested: int
    results: list[ComparisonResult]
    metrics: AggregateMetrics
    runs: list[PipelineRunResult] = Field(default_factory=list)
    elapsed_ms: int = 0
