"""Batch statistics over many executions and ranking of LLM systems.

Each field is aggregated over the executions that report a number for
it; an execution with a missing value is left out of that field's
statistics rather than counted as zero.
"""

import logging
import statistics
from collections.abc import Mapping, Sequence
from typing import Optional

from .models import AggregateMetrics, LLMSystemSummary, MetricsResult, MetricStats

logger = logging.getLogger(__name__)

VALIDITY_FIELDS = (
    "total_publications",
    "found_in_database",
    "not_found",
    "validity_precision",
    "hallucination_rate",
)
RELEVANCE_FIELDS = (
    "precision",
    "recall",
    "f1_score",
    "true_positives",
    "false_positives",
    "false_negatives",
    "total_ground_truth",
)
COMBINED_FIELDS = ("combined_quality_score", "quality_adjusted_f1")

# (AggregateMetrics group, MetricsResult attribute, fields)
METRIC_GROUPS = (
    ("validity_metrics", "validity", VALIDITY_FIELDS),
    ("relevance_metrics", "relevance", RELEVANCE_FIELDS),
    ("combined_metrics", "combined", COMBINED_FIELDS),
)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def summarize_values(values: Sequence[float]) -> Optional[MetricStats]:
    """Mean, population std, min and max; None for no values."""
    if not values:
        return None
    return MetricStats(
        mean=statistics.fmean(values),
        std=statistics.pstdev(values),
        min=min(values),
        max=max(values),
        count=len(values),
    )


def _coerce(results) -> list[MetricsResult]:
    if not isinstance(results, (list, tuple)):
        raise TypeError(f"results must be a list of MetricsResult, got {type(results).__name__}")
    return [
        r if isinstance(r, MetricsResult) else MetricsResult.model_validate(r)
        for r in results
    ]


def aggregate(results: list[MetricsResult]) -> AggregateMetrics:
    """Per-field mean/std/min/max over a batch of evaluations.

    Accepts MetricsResult instances or dicts that validate as one.
    """
    batch = _coerce(results)
    aggregated = AggregateMetrics(execution_count=len(batch))

    for group, attribute, fields in METRIC_GROUPS:
        stats = getattr(aggregated, group)
        for field in fields:
            values = []
            for result in batch:
                section = getattr(result, attribute)
                value = getattr(section, field, None) if section is not None else None
                if _is_number(value):
                    values.append(value)
            summary = summarize_values(values)
            if summary is not None:
                stats[field] = summary

    incomplete = sum(1 for r in batch if r.missing_fields)
    logger.info(
        "Aggregated %d executions (%d with missing data)", len(batch), incomplete
    )
    return aggregated


def _ranking_key(summary: LLMSystemSummary) -> tuple[float, float, int]:
    combined = summary.aggregate.mean("combined_metrics", "combined_quality_score") or 0.0
    f1 = summary.aggregate.mean("relevance_metrics", "f1_score") or 0.0
    return (-combined, -f1, -summary.execution_count)


def rank_llm_systems(summaries: list[LLMSystemSummary]) -> list[LLMSystemSummary]:
    """Best first: combined quality, then F1, then number of executions.

    Full ties keep their input order.
    """
    return sorted(summaries, key=_ranking_key)


def compare_llm_systems(
    results_by_system: Mapping[str, list[MetricsResult]],
) -> list[LLMSystemSummary]:
    """Aggregate each system's executions and rank the systems."""
    if not isinstance(results_by_system, Mapping):
        raise TypeError(
            "results_by_system must map system names to result lists, "
            f"got {type(results_by_system).__name__}"
        )

    summaries = []
    for name, results in results_by_system.items():
        aggregated = aggregate(results)
        summaries.append(
            LLMSystemSummary(
                name=name,
                execution_count=aggregated.execution_count,
                aggregate=aggregated,
            )
        )

    ranked = rank_llm_systems(summaries)
    if ranked:
        logger.info("Best LLM system: %s", ranked[0].name)
    return ranked


def best_llm_system(summaries: list[LLMSystemSummary]) -> Optional[LLMSystemSummary]:
    ranked = rank_llm_systems(summaries)
    return ranked[0] if ranked else None
