"""Evaluation metrics for LLM-generated literature searches."""

from .aggregator import aggregate, compare_llm_systems, rank_llm_systems
from .calculator import compute_combined, compute_relevance, compute_validity, evaluate_execution
from .confusion import build_confusion
from .normalizer import normalize_comparison, normalize_verification

__all__ = [
    "aggregate",
    "build_confusion",
    "compare_llm_systems",
    "compute_combined",
    "compute_relevance",
    "compute_validity",
    "evaluate_execution",
    "normalize_comparison",
    "normalize_verification",
    "rank_llm_systems",
]
