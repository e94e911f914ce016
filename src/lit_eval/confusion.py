"""Confusion matrix construction for one execution.

Exact and partial comparison matches both count as retrieval successes.
Ground-truth size is resolved from a chain of sources; when none of them
yields a positive count the matrix is returned with the gap recorded in
`missing_fields` instead of a zero that would read as poor recall.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any, Optional

from .models import ConfusionCounts, NormalizedComparison

logger = logging.getLogger(__name__)

MISSING_GROUND_TRUTH = "total_ground_truth"
MISSING_TOTAL_GENERATED = "total_publications_found"
MISSING_COMPARISONS = "comparison_results"

GroundTruthSource = Callable[
    [Optional[int], Optional[list[NormalizedComparison]], Optional[Mapping]], Any
]


def as_count(value: Any) -> int:
    """Non-negative int from a loosely typed count; unusable values are 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _supplied(explicit, comparisons, execution):
    return explicit


def _comparison_rows(explicit, comparisons, execution):
    return len(comparisons) if comparisons else 0


def _embedded_in_execution(explicit, comparisons, execution):
    if not isinstance(execution, Mapping):
        return 0
    if execution.get("ground_truth_count") is not None:
        return execution["ground_truth_count"]
    seed_paper = execution.get("seed_paper")
    if isinstance(seed_paper, Mapping):
        return seed_paper.get("ground_truth_count")
    return 0


GROUND_TRUTH_SOURCES: tuple[GroundTruthSource, ...] = (
    _supplied,
    _comparison_rows,
    _embedded_in_execution,
)


def resolve_ground_truth(
    explicit: Optional[int],
    comparisons: Optional[list[NormalizedComparison]],
    execution: Optional[Mapping] = None,
) -> int:
    """First positive count from the sources in order, else 0."""
    for source in GROUND_TRUTH_SOURCES:
        count = as_count(source(explicit, comparisons, execution))
        if count:
            logger.debug("Ground truth count %d from %s", count, source.__name__.lstrip("_"))
            return count
    return 0


def build_confusion(
    total_generated: Optional[int],
    comparisons: Optional[list[NormalizedComparison]],
    total_ground_truth: Optional[int] = None,
    execution: Optional[Mapping] = None,
) -> ConfusionCounts:
    """Derive TP/FP/FN from normalized comparisons and execution totals.

    `comparisons=None` means no comparison payload was available at all,
    which is recorded as missing; an empty list is a legitimate result.
    """
    missing: list[str] = []
    true_positives = None
    if comparisons is None:
        missing.append(MISSING_COMPARISONS)
    else:
        true_positives = sum(1 for c in comparisons if c.is_match)

    false_positives = None
    if total_generated is None:
        missing.append(MISSING_TOTAL_GENERATED)
    elif true_positives is not None:
        false_positives = max(0, as_count(total_generated) - true_positives)

    ground_truth = resolve_ground_truth(total_ground_truth, comparisons, execution) or None
    false_negatives = None
    if ground_truth is None:
        missing.append(MISSING_GROUND_TRUTH)
    elif true_positives is not None:
        false_negatives = max(0, ground_truth - true_positives)

    if missing:
        logger.info("Confusion matrix incomplete, missing: %s", ", ".join(missing))

    return ConfusionCounts(
        true_positives=true_positives,
        false_positives=false_positives,
        false_negatives=false_negatives,
        total_generated=as_count(total_generated),
        total_ground_truth=ground_truth,
        missing_fields=missing,
    )
