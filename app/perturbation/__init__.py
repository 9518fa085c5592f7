from app.perturbation.comparison import aggregate_metrics, compare_variant
from app.perturbation.engine import PerturbationEngine
from app.perturbation.generators import generate_variants, identify_key_evidence

__all__ = [
    "PerturbationEngine",
    "aggregate_metrics",
    "compare_variant",
    "generate_variants",
    "identify_key_evidence",
]
