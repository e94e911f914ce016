"""Validity, relevance and combined quality metrics.

Every ratio with a zero denominator is 0.0 except recall over an unknown
ground truth, which is reported as missing rather than as a zero recall.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from .confusion import as_count, build_confusion
from .models import (
    CombinedMetrics,
    ConfusionCounts,
    DataStatus,
    IncompleteRelevance,
    MetricsResult,
    RelevanceMetrics,
    ValidityMetrics,
)
from .normalizer import normalize_comparison, normalize_verification, summarize_verification

logger = logging.getLogger(__name__)

# Fixed blend used to rank LLM systems; not configurable
VALIDITY_WEIGHT = 0.3
RELEVANCE_WEIGHT = 0.7


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _f1(precision: float, recall: float) -> float:
    return _ratio(2 * precision * recall, precision + recall)


def compute_validity(total_publications: int, found_in_database: int) -> ValidityMetrics:
    """Share of generated publications that exist in an external database.

    Zero publications is a valid outcome and yields zeros, not missing data.
    """
    total = as_count(total_publications)
    found = min(as_count(found_in_database), total)
    not_found = total - found
    return ValidityMetrics(
        total_publications=total,
        found_in_database=found,
        not_found=not_found,
        validity_precision=_ratio(found, total),
        hallucination_rate=_ratio(not_found, total),
    )


def compute_relevance(confusion: ConfusionCounts) -> Union[RelevanceMetrics, IncompleteRelevance]:
    """Precision, recall and F1 from a confusion matrix.

    Returns IncompleteRelevance when any input is missing. Its metrics are
    None where they could not be computed.
    """
    tp = confusion.true_positives

    precision = None
    if tp is not None and confusion.false_positives is not None:
        precision = _ratio(tp, confusion.total_generated)

    recall = None
    if tp is not None and confusion.total_ground_truth:
        recall = tp / confusion.total_ground_truth

    if not confusion.missing_fields:
        return RelevanceMetrics(
            precision=precision,
            recall=recall,
            f1_score=_f1(precision, recall),
            true_positives=tp,
            false_positives=confusion.false_positives,
            false_negatives=confusion.false_negatives,
            total_ground_truth=confusion.total_ground_truth,
        )

    f1_score = None
    if precision is not None and recall is not None:
        f1_score = _f1(precision, recall)

    return IncompleteRelevance(
        precision=precision,
        recall=recall,
        f1_score=f1_score,
        true_positives=tp,
        false_positives=confusion.false_positives,
        false_negatives=confusion.false_negatives,
        total_ground_truth=confusion.total_ground_truth,
        missing_fields=list(confusion.missing_fields),
    )


def compute_combined(
    validity_precision: float,
    f1_score: Optional[float],
    data_status: DataStatus = DataStatus.COMPLETE,
) -> CombinedMetrics:
    """Blend validity and F1 into one ranking score.

    An unknown F1 contributes 0 and the result keeps the incomplete status.
    """
    f1 = f1_score or 0.0
    return CombinedMetrics(
        combined_quality_score=VALIDITY_WEIGHT * validity_precision + RELEVANCE_WEIGHT * f1,
        quality_adjusted_f1=f1 * validity_precision,
        data_status=DataStatus(data_status),
    )


def _total_generated(execution: Mapping, verified_total: int) -> Optional[int]:
    if execution.get("total_publications_found") is not None:
        return execution["total_publications_found"]
    return verified_total or None


def evaluate_execution(
    execution: Optional[Mapping],
    verification: Any = None,
    comparison: Any = None,
    ground_truth_count: Optional[int] = None,
) -> MetricsResult:
    """Evaluate one execution from its raw verification/comparison payloads.

    `execution` supplies `total_publications_found`, `verified_publications`
    and optional ground-truth counts; the normalized verification rows are
    the fallback for the validity totals. A comparison payload of None
    means no comparison was run; anything else is normalized (an
    unrecognized shape becomes an empty list).
    """
    execution = execution or {}
    summary = summarize_verification(normalize_verification(verification))

    total = execution.get("total_publications_found")
    found = execution.get("verified_publications")
    validity = compute_validity(
        summary.total_publications if total is None else total,
        summary.found_in_database if found is None else found,
    )

    comparisons = None if comparison is None else normalize_comparison(comparison)
    confusion = build_confusion(
        _total_generated(execution, summary.total_publications),
        comparisons,
        ground_truth_count,
        execution,
    )
    relevance = compute_relevance(confusion)
    combined = compute_combined(
        validity.validity_precision, relevance.f1_score, DataStatus(relevance.data_status)
    )

    missing = getattr(relevance, "missing_fields", [])
    execution_id = execution.get("id", execution.get("execution_id"))
    if missing:
        logger.info("Execution %s evaluated with missing data: %s", execution_id, missing)
    else:
        logger.info(
            "Execution %s: validity %.3f, F1 %.3f, combined %.3f",
            execution_id,
            validity.validity_precision,
            relevance.f1_score,
            combined.combined_quality_score,
        )

    return MetricsResult(
        execution_id=execution_id,
        validity=validity,
        relevance=relevance,
        combined=combined,
        data_status=DataStatus.INCOMPLETE if missing else DataStatus.COMPLETE,
        missing_fields=list(missing),
    )
