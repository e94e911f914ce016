"""Pydantic data models shared across all evaluation stages.

These models serve double duty:
1. The canonical shapes the normalizer produces from inconsistent payloads
2. The JSON response shapes (MetricsResult, AggregateMetrics) callers rely on
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


# --- Normalized inputs ---


class NormalizedVerification(BaseModel):
    """One publication with its verification outcome across databases."""

    literature_id: Union[int, str]
    title: Optional[str] = None
    authors: Optional[Union[str, list[str]]] = None
    year: Optional[Union[int, str]] = None
    doi: Optional[str] = None
    found_in_database: bool = False
    databases_checked: list[str] = Field(
        default_factory=list,
        description="Distinct database names, first-seen order",
    )
    best_match_similarity: float = Field(0.0, ge=0.0, le=1.0)


class MatchType(str, Enum):
    TITLE = "title"
    AUTHORS_YEAR = "authors_year"
    NONE = "none"


class NormalizedComparison(BaseModel):
    """One row of a generated-vs-ground-truth comparison."""

    row_number: int
    generated_title: str = ""
    ground_truth_title: str = ""
    similarity_percentage: float = Field(0.0, ge=0.0, le=100.0)
    match_type: MatchType = MatchType.NONE
    is_exact_match: bool = False
    is_partial_match: bool = False
    is_no_match: bool = True
    rule_number: Optional[int] = Field(
        None, description="Cascade rule identifier (1-192), passed through"
    )

    @model_validator(mode="after")
    def _one_match_flag(self) -> "NormalizedComparison":
        flags = (self.is_exact_match, self.is_partial_match, self.is_no_match)
        if sum(flags) != 1:
            raise ValueError(
                "exactly one of is_exact_match, is_partial_match, is_no_match must be set"
            )
        return self

    @property
    def is_match(self) -> bool:
        return self.is_exact_match or self.is_partial_match


class VerificationSummary(BaseModel):
    total_publications: int = 0
    found_in_database: int = 0
    not_found: int = 0


class ComparisonSummary(BaseModel):
    total_comparisons: int = 0
    exact_matches: int = 0
    partial_matches: int = 0
    no_matches: int = 0


# --- Confusion matrix ---


class ConfusionCounts(BaseModel):
    """Retrieval counts for one execution.

    Counts whose inputs are unknown are None: all three when no comparison
    ran, `false_positives` without a generated total, and `false_negatives`
    and `total_ground_truth` without a ground-truth size.
    """

    true_positives: Optional[int] = Field(None, ge=0)
    false_positives: Optional[int] = Field(None, ge=0)
    false_negatives: Optional[int] = Field(None, ge=0)
    total_generated: int = Field(0, ge=0)
    total_ground_truth: Optional[int] = Field(None, ge=0)
    missing_fields: list[str] = Field(default_factory=list)


# --- Metrics ---


class DataStatus(str, Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class ValidityMetrics(BaseModel):
    total_publications: int = 0
    found_in_database: int = 0
    not_found: int = 0
    validity_precision: float = 0.0
    hallucination_rate: float = 0.0


class RelevanceMetrics(BaseModel):
    """Relevance computed from a complete confusion matrix."""

    data_status: Literal["complete"] = "complete"
    precision: float
    recall: float
    f1_score: float
    true_positives: int
    false_positives: int
    false_negatives: int
    total_ground_truth: int


class IncompleteRelevance(BaseModel):
    """Whatever relevance figures were computable, plus what was missing.

    A metric is None when its inputs were missing; it is never reported
    as a zero standing in for absent data.
    """

    data_status: Literal["incomplete"] = "incomplete"
    precision: Optional[float] = None
    recall: Optional[float] = None
    f1_score: Optional[float] = None
    true_positives: Optional[int] = None
    false_positives: Optional[int] = None
    false_negatives: Optional[int] = None
    total_ground_truth: Optional[int] = None
    missing_fields: list[str]


RelevanceOutcome = Annotated[
    Union[RelevanceMetrics, IncompleteRelevance],
    Field(discriminator="data_status"),
]


class CombinedMetrics(BaseModel):
    combined_quality_score: float
    quality_adjusted_f1: float
    data_status: DataStatus = DataStatus.COMPLETE


class MetricsResult(BaseModel):
    """Evaluation of a single execution."""

    execution_id: Optional[Union[int, str]] = None
    validity: ValidityMetrics
    relevance: Optional[RelevanceOutcome] = None
    combined: Optional[CombinedMetrics] = None
    data_status: DataStatus = DataStatus.COMPLETE
    missing_fields: list[str] = Field(default_factory=list)


# --- Batch aggregation ---


class MetricStats(BaseModel):
    mean: float
    std: float = Field(description="Population standard deviation")
    min: float
    max: float
    count: int = Field(description="Number of executions contributing a value")


class AggregateMetrics(BaseModel):
    """Per-field statistics over a batch of MetricsResult.

    A field that no execution reported is absent, not zero.
    """

    execution_count: int = 0
    validity_metrics: dict[str, MetricStats] = Field(default_factory=dict)
    relevance_metrics: dict[str, MetricStats] = Field(default_factory=dict)
    combined_metrics: dict[str, MetricStats] = Field(default_factory=dict)

    def mean(self, group: str, field: str) -> Optional[float]:
        stats = getattr(self, group).get(field)
        return stats.mean if stats else None

    def to_flat_dict(self) -> dict:
        """Legacy shape: {"validity_metrics": {"mean_validity_precision": ...}, ...}."""
        flat: dict = {"execution_count": self.execution_count}
        for group in ("validity_metrics", "relevance_metrics", "combined_metrics"):
            entries = {}
            for field, stats in getattr(self, group).items():
                entries[f"mean_{field}"] = stats.mean
                entries[f"std_{field}"] = stats.std
                entries[f"min_{field}"] = stats.min
                entries[f"max_{field}"] = stats.max
            flat[group] = entries
        return flat


class LLMSystemSummary(BaseModel):
    """One LLM system's batch results, used for cross-system ranking."""

    name: str
    execution_count: int
    aggregate: AggregateMetrics
