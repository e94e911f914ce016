"""Plain-text rendering of a single-execution evaluation."""

from typing import Optional

from .models import MetricsResult

# (threshold, label) checked top-down; below the last threshold is "Poor"
VALIDITY_BANDS = (
    (0.95, "Excellent: very low hallucination rate (< 5%)"),
    (0.90, "Good: acceptable hallucination rate (< 10%)"),
    (0.80, "Fair: moderate hallucination rate (10-20%)"),
)
VALIDITY_POOR = "Poor: high hallucination rate (> 20%)"

F1_BANDS = (
    (0.80, "Excellent: very high retrieval quality"),
    (0.70, "Good: good retrieval quality"),
    (0.50, "Fair: moderate retrieval quality"),
)
F1_POOR = "Poor: low retrieval quality"


def _band(value: float, bands: tuple, fallback: str) -> str:
    for threshold, label in bands:
        if value >= threshold:
            return label
    return fallback


def interpret_validity(validity_precision: float) -> str:
    return _band(validity_precision, VALIDITY_BANDS, VALIDITY_POOR)


def interpret_f1(f1_score: float) -> str:
    return _band(f1_score, F1_BANDS, F1_POOR)


def _percent(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value * 100:.2f}%"


def _count(value: Optional[int]) -> str:
    return "unknown" if value is None else str(value)


def format_report(result: MetricsResult) -> str:
    validity = result.validity
    lines = [
        "=" * 60,
        "EVALUATION REPORT",
        "=" * 60,
        f"Execution: {result.execution_id if result.execution_id is not None else 'N/A'}",
        f"Data status: {result.data_status.value}",
        "",
        "--- VALIDITY (hallucination detection) ---",
        f"Total publications generated: {validity.total_publications}",
        f"Found in database: {validity.found_in_database}",
        f"Not found (potential hallucinations): {validity.not_found}",
        f"Validity precision: {_percent(validity.validity_precision)}",
        f"Hallucination rate: {_percent(validity.hallucination_rate)}",
    ]
    if validity.total_publications:
        lines.append(f"  {interpret_validity(validity.validity_precision)}")

    relevance = result.relevance
    if relevance is not None:
        lines += [
            "",
            "--- RELEVANCE (retrieval quality) ---",
            f"True positives: {_count(relevance.true_positives)}",
            f"False positives: {_count(relevance.false_positives)}",
            f"False negatives: {_count(relevance.false_negatives)}",
            f"Total ground truth references: {_count(relevance.total_ground_truth)}",
            f"Precision: {_percent(relevance.precision)}",
            f"Recall: {_percent(relevance.recall)}",
            f"F1-score: {_percent(relevance.f1_score)}",
        ]
        if relevance.f1_score is not None:
            lines.append(f"  {interpret_f1(relevance.f1_score)}")

    combined = result.combined
    if combined is not None:
        lines += [
            "",
            "--- COMBINED QUALITY ---",
            f"Combined quality score: {_percent(combined.combined_quality_score)}",
            "  (0.3 x validity + 0.7 x F1-score)",
            f"Quality-adjusted F1: {_percent(combined.quality_adjusted_f1)}",
            "  (F1-score x validity precision)",
        ]

    if result.missing_fields:
        lines += ["", "Missing data: " + ", ".join(result.missing_fields)]

    return "\n".join(lines)
