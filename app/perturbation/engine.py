from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from app.core.config import settings
from app.perturbation.comparison import aggregate_metrics, compare_variant
from app.perturbation.generators import generate_variants
from app.schemas.perturbation import (
    BatchProfileEntry,
    BatchReport,
    ComparisonResult,
    PerturbationConfig,
    ProfileVariant,
)
from app.schemas.pipeline import PipelineRunResult
from app.services.errors import BatchInputError
from app.services.pipeline import PipelineOrchestrator

logger = logging.getLogger(__name__)


def validate_batch(entries: Sequence[BatchProfileEntry], max_profiles: int | None = None) -> None:
    limit = max_profiles or settings.batch_max_profiles
    if not entries:
        raise BatchInputError("At least one profile is required")
    if len(entries) > limit:
        raise BatchInputError(f"At most {limit} profiles can be tested per batch")
    ids = [entry.id for entry in entries]
    if len(set(ids)) != len(ids):
        raise BatchInputError("Profile ids must be unique within a batch")


class PerturbationEngine:
    """Runs every profile's variants through the orchestrator and scores them against the baseline."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        *,
        max_concurrency: int | None = None,
        max_profiles: int | None = None,
    ):
        self._orchestrator = orchestrator
        self._max_concurrency = max(1, max_concurrency or settings.batch_max_concurrency)
        self._max_profiles = max_profiles

    async def _run_variant(
        self,
        variant: ProfileVariant,
        semaphore: asyncio.Semaphore,
        skip_action_plan: bool,
    ) -> PipelineRunResult:
        async with semaphore:
            logger.info("perturbation_variant_start variant=%s type=%s", variant.id, variant.variant_type)
            return await self._orchestrator.run(
                variant.profile_data,
                variant_id=variant.id,
                skip_action_plan=skip_action_plan,
            )

    async def _run_profile(
        self,
        entry: BatchProfileEntry,
        config: PerturbationConfig,
        semaphore: asyncio.Semaphore,
    ) -> list[tuple[ComparisonResult, PipelineRunResult]]:
        variants = generate_variants(entry.id, entry.profile, config)
        baseline_variant, others = variants[0], variants[1:]

        # The baseline finishes before any variant of the same profile is scheduled.
        baseline_run = await self._run_variant(baseline_variant, semaphore, config.skip_action_plan)
        variant_runs = await asyncio.gather(
            *(self._run_variant(variant, semaphore, config.skip_action_plan) for variant in others)
        )

        pairs = [(compare_variant(baseline_variant, baseline_run), baseline_run)]
        for variant, run in zip(others, variant_runs):
            pairs.append((compare_variant(variant, run, baseline_run), run))
        return pairs

    async def run_batch(
        self,
        entries: Sequence[BatchProfileEntry],
        config: PerturbationConfig | None = None,
    ) -> BatchReport:
        validate_batch(entries, self._max_profiles)
        config = config or PerturbationConfig()
        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self._max_concurrency)
        logger.info(
            "perturbation_batch_start profiles=%s concurrency=%s config=%s",
            len(entries),
            self._max_concurrency,
            config.model_dump(),
        )

        per_profile = await asyncio.gather(*(self._run_profile(entry, config, semaphore) for entry in entries))

        results = [comparison for pairs in per_profile for comparison, _ in pairs]
        runs = [run for pairs in per_profile for _, run in pairs]
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        metrics = aggregate_metrics(results, elapsed_ms)
        logger.info(
            "perturbation_batch_complete profiles=%s runs=%s elapsed_ms=%s hallucination_rate=%s",
            len(entries),
            len(runs),
            elapsed_ms,
            metrics.hallucination_rate,
        )
        return BatchReport(
            total_runs=len(runs),
            profiles_tested=len(entries),
            results=results,
            metrics=metrics,
            runs=runs,
            elapsed_ms=elapsed_ms,
        )
