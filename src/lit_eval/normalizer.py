"""Normalize verification and comparison payloads into canonical records.

The backend returns these results from several code paths, each with its
own idea of where the rows live and what the fields are called. Every
lookup here is an ordered tuple of candidates tried in sequence, so the
precedence is explicit:

  containers:  bare list → results → verification_results / comparison_results
               → detailed_results → (id-keyed object | match buckets)
  fields:      literature_id → literatureId → publication_id → id, ...

Nothing here raises on bad input. An unrecognized payload is logged and
treated as an empty list; callers decide whether that means missing data.
"""

import logging
import math
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from .models import (
    ComparisonSummary,
    MatchType,
    NormalizedComparison,
    NormalizedVerification,
    VerificationSummary,
)
from .rules import RuleOutcome, rule_outcome

logger = logging.getLogger(__name__)

VERIFICATION_CONTAINER_KEYS = ("results", "verification_results", "detailed_results")
COMPARISON_CONTAINER_KEYS = ("results", "comparison_results", "detailed_results")
MATCH_BUCKETS = (
    ("exact_matches", RuleOutcome.FULL),
    ("partial_matches", RuleOutcome.PARTIAL),
    ("no_matches", RuleOutcome.NO_MATCH),
)

ID_FIELDS = ("literature_id", "literatureId", "publication_id", "id")
# Literature rows are publications themselves, so their own id comes first
LITERATURE_ID_FIELDS = ("id", "literature_id", "literatureId", "publication_id")
DATABASE_FIELDS = ("database_name", "database")
FOUND_FIELDS = ("found", "verified", "is_verified", "match_found")
SIMILARITY_FIELDS = ("similarity_score", "similarity", "score")
TITLE_FIELDS = ("title", "publication_title")
AUTHOR_FIELDS = ("authors", "author")
YEAR_FIELDS = ("year", "publication_year")
UNKNOWN_DATABASE = "Unknown"
PUBLICATION_FIELDS = (
    *ID_FIELDS, *TITLE_FIELDS, *DATABASE_FIELDS, *FOUND_FIELDS, *SIMILARITY_FIELDS,
    "found_in_database",
)

ROW_NUMBER_FIELDS = ("row_number", "rowNumber", "row")
GENERATED_TITLE_FIELDS = ("llm_title", "generated_title", "generatedTitle", "title")
GROUND_TRUTH_TITLE_FIELDS = ("gt_title", "ground_truth_title", "groundTruthTitle")
SIMILARITY_PERCENTAGE_FIELDS = ("similarity_percentage", "similarityPercentage", "similarity")
MATCH_STATUS_FIELDS = ("match_status", "status")
MATCH_FLAG_FIELDS = ("is_exact_match", "is_partial_match", "is_no_match")
RULE_NUMBER_FIELDS = ("rule_number", "ruleNumber")

Strategy = Callable[[Any], Optional[list]]


# --- Field helpers ---


def _first(record: Mapping, fields: tuple[str, ...], default: Any = None) -> Any:
    """Return the first field value that is neither None nor an empty string."""
    for field in fields:
        value = record.get(field)
        if value is not None and value != "":
            return value
    return default


def _as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_key(value: Any) -> Optional[int | str]:
    """Ids and years are kept as int or str; anything else is stringified."""
    if value is None or (isinstance(value, (int, str)) and not isinstance(value, bool)):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return str(value)


def _as_authors(value: Any) -> Optional[str | list[str]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [str(a) for a in value]
    return str(value)


# --- Container strategies ---


def _bare_list(raw: Any) -> Optional[list]:
    return list(raw) if isinstance(raw, (list, tuple)) else None


def _container(key: str) -> Strategy:
    def strategy(raw: Any) -> Optional[list]:
        if isinstance(raw, Mapping) and isinstance(raw.get(key), list):
            return raw[key]
        return None

    strategy.__name__ = f"container[{key}]"
    return strategy


def _looks_like_publication_row(row: Any) -> bool:
    return isinstance(row, Mapping) and any(field in row for field in PUBLICATION_FIELDS)


def _keyed_by_literature_id(raw: Any) -> Optional[list]:
    """{<literature id>: record | [record, ...]} with the key as fallback id."""
    if not isinstance(raw, Mapping) or not raw:
        return None

    records = []
    for key, value in raw.items():
        rows = value if isinstance(value, list) else [value]
        if not rows or not all(_looks_like_publication_row(r) for r in rows):
            return None
        for row in rows:
            row = dict(row)
            if _first(row, ID_FIELDS) is None:
                row["literature_id"] = key
            records.append(row)
    return records


def _match_buckets(raw: Any) -> Optional[list]:
    """{exact_matches: [...], partial_matches: [...], no_matches: [...]}."""
    if not isinstance(raw, Mapping):
        return None
    if not any(isinstance(raw.get(key), list) for key, _ in MATCH_BUCKETS):
        return None

    records = []
    for key, outcome in MATCH_BUCKETS:
        for row in raw.get(key) or []:
            if not isinstance(row, Mapping):
                continue
            row = dict(row)
            row["is_exact_match"] = outcome is RuleOutcome.FULL
            row["is_partial_match"] = outcome is RuleOutcome.PARTIAL
            row["is_no_match"] = outcome is RuleOutcome.NO_MATCH
            records.append(row)
    return records


VERIFICATION_STRATEGIES: tuple[Strategy, ...] = (
    _bare_list,
    *(_container(key) for key in VERIFICATION_CONTAINER_KEYS),
    _keyed_by_literature_id,
)

COMPARISON_STRATEGIES: tuple[Strategy, ...] = (
    _bare_list,
    *(_container(key) for key in COMPARISON_CONTAINER_KEYS),
    _match_buckets,
)


def extract_records(
    raw: Any,
    strategies: tuple[Strategy, ...],
    kind: str = "payload",
) -> Optional[list[dict]]:
    """Locate the record list inside a raw payload.

    Returns None when the payload is absent or has no recognized shape,
    and a (possibly empty) list of dicts otherwise.
    """
    if raw is None:
        return None

    for strategy in strategies:
        rows = strategy(raw)
        if rows is None:
            continue
        logger.debug("%s rows located via %s", kind, strategy.__name__)
        records = []
        for index, row in enumerate(rows):
            if isinstance(row, BaseModel):
                row = row.model_dump()
            if not isinstance(row, Mapping):
                logger.warning("%s row %d is not an object, skipping", kind, index)
                continue
            records.append(dict(row))
        return records

    keys = sorted(map(str, raw)) if isinstance(raw, Mapping) else type(raw).__name__
    logger.warning("Unexpected %s structure (%s), treating as empty", kind, keys)
    return None


# --- Verification ---


class VerificationFormat(str, Enum):
    CANONICAL = "canonical"  # one row per publication, found_in_database already set
    LITERATURE = "literature"  # one row per publication, presence implies found
    VERIFICATION = "verification"  # one row per (publication, database) attempt


def detect_verification_format(record: Mapping) -> VerificationFormat:
    """Guess the shape of a verification payload from its first record.

    This is a heuristic: producers don't tag their output, so a row with
    no database name is taken to be a publication row rather than a
    per-database check. Pass `record_format` to `normalize_verification`
    to bypass it.
    """
    if "found_in_database" in record:
        return VerificationFormat.CANONICAL
    if record.get("execution_id") is not None or _first(record, DATABASE_FIELDS) is None:
        return VerificationFormat.LITERATURE
    return VerificationFormat.VERIFICATION


def is_found(record: Mapping) -> bool:
    """True if any of the producer's "found" flags is set."""
    return any(record.get(field) in (True, 1) for field in FOUND_FIELDS)


def _databases(record: Mapping, record_format: VerificationFormat) -> list[str]:
    if record_format is VerificationFormat.LITERATURE:
        return []
    if record_format is VerificationFormat.CANONICAL:
        checked = record.get("databases_checked")
        if isinstance(checked, (list, tuple, set)):
            return [str(db) for db in checked]
        per_database = record.get("database_results")
        if isinstance(per_database, Mapping):
            return [str(db) for db in per_database]
        return []
    return [str(_first(record, DATABASE_FIELDS, UNKNOWN_DATABASE))]


def _outcome(record: Mapping, record_format: VerificationFormat) -> tuple[bool, float]:
    """(found, similarity) contributed by one row."""
    if record_format is VerificationFormat.LITERATURE:
        return True, 1.0
    if record_format is VerificationFormat.CANONICAL:
        found = bool(record.get("found_in_database"))
        similarity = _as_float(record.get("best_match_similarity"))
    else:
        found = is_found(record)
        similarity = _as_float(_first(record, SIMILARITY_FIELDS, 0))
    return found, (_clamp(similarity, 0.0, 1.0) if found else 0.0)


def normalize_verification(
    raw: Any,
    record_format: Optional[VerificationFormat] = None,
) -> list[NormalizedVerification]:
    """Collapse verification rows into one record per publication.

    Rows sharing a literature id are merged: found flags are OR'ed,
    databases are unioned, and the best similarity is the maximum over
    rows that reported a match.
    """
    records = extract_records(raw, VERIFICATION_STRATEGIES, kind="verification")
    if not records:
        return []

    record_format = record_format or detect_verification_format(records[0])
    id_fields = (
        LITERATURE_ID_FIELDS if record_format is VerificationFormat.LITERATURE else ID_FIELDS
    )
    logger.debug("Verification payload in %s format (%d rows)", record_format.value, len(records))

    publications: dict[str, dict] = {}
    for index, record in enumerate(records):
        lit_id = _as_key(_first(record, id_fields))
        if lit_id is None:
            logger.warning("Verification row %d has no literature id, skipping", index)
            continue

        # 1 and "1" name the same publication; the first-seen form is kept
        pub = publications.get(str(lit_id))
        if pub is None:
            pub = publications[str(lit_id)] = {
                "literature_id": lit_id,
                "title": _as_text(_first(record, TITLE_FIELDS)),
                "authors": _as_authors(_first(record, AUTHOR_FIELDS)),
                "year": _as_key(_first(record, YEAR_FIELDS)),
                "doi": _as_text(_first(record, ("doi",))),
                "found_in_database": False,
                "databases_checked": [],
                "best_match_similarity": 0.0,
            }

        for db in _databases(record, record_format):
            if db not in pub["databases_checked"]:
                pub["databases_checked"].append(db)

        found, similarity = _outcome(record, record_format)
        if found:
            pub["found_in_database"] = True
            pub["best_match_similarity"] = max(pub["best_match_similarity"], similarity)

    return [NormalizedVerification.model_validate(pub) for pub in publications.values()]


def summarize_verification(records: list[NormalizedVerification]) -> VerificationSummary:
    found = sum(1 for r in records if r.found_in_database)
    return VerificationSummary(
        total_publications=len(records),
        found_in_database=found,
        not_found=len(records) - found,
    )


# --- Comparison ---


def _outcome_from_flags(record: Mapping) -> Optional[RuleOutcome]:
    if not any(field in record for field in MATCH_FLAG_FIELDS):
        return None
    if record.get("is_exact_match"):
        return RuleOutcome.FULL
    if record.get("is_partial_match"):
        return RuleOutcome.PARTIAL
    return RuleOutcome.NO_MATCH


def _outcome_from_status(record: Mapping) -> Optional[RuleOutcome]:
    status = _first(record, MATCH_STATUS_FIELDS)
    if not isinstance(status, str):
        return None
    status = status.lower()
    if status == "exact":
        return RuleOutcome.FULL
    if status == "partial":
        return RuleOutcome.PARTIAL
    return RuleOutcome.NO_MATCH


def _outcome_from_rule(record: Mapping) -> Optional[RuleOutcome]:
    return rule_outcome(_as_int(_first(record, RULE_NUMBER_FIELDS)))


MATCH_RESOLVERS: tuple[Callable[[Mapping], Optional[RuleOutcome]], ...] = (
    _outcome_from_flags,
    _outcome_from_status,
    _outcome_from_rule,
)


def resolve_match(record: Mapping) -> RuleOutcome:
    for resolver in MATCH_RESOLVERS:
        outcome = resolver(record)
        if outcome is not None:
            return outcome
    return RuleOutcome.NO_MATCH


def _match_type(record: Mapping, outcome: RuleOutcome) -> MatchType:
    raw = record.get("match_type")
    if isinstance(raw, MatchType):
        return raw
    if raw is None:
        return MatchType.NONE if outcome is RuleOutcome.NO_MATCH else MatchType.TITLE
    try:
        return MatchType(str(raw).lower())
    except ValueError:
        return MatchType.NONE if outcome is RuleOutcome.NO_MATCH else MatchType.TITLE


def _to_comparison(record: Mapping, row_number: int) -> NormalizedComparison:
    outcome = resolve_match(record)
    similarity = _as_float(_first(record, SIMILARITY_PERCENTAGE_FIELDS, 0))
    return NormalizedComparison(
        row_number=_as_int(_first(record, ROW_NUMBER_FIELDS)) or row_number,
        generated_title=str(_first(record, GENERATED_TITLE_FIELDS, "")),
        ground_truth_title=str(_first(record, GROUND_TRUTH_TITLE_FIELDS, "")),
        similarity_percentage=_clamp(similarity, 0.0, 100.0),
        match_type=_match_type(record, outcome),
        is_exact_match=outcome is RuleOutcome.FULL,
        is_partial_match=outcome is RuleOutcome.PARTIAL,
        is_no_match=outcome is RuleOutcome.NO_MATCH,
        rule_number=_as_int(_first(record, RULE_NUMBER_FIELDS)),
    )


def normalize_comparison(raw: Any) -> list[NormalizedComparison]:
    """One canonical record per comparison row, in producer order."""
    records = extract_records(raw, COMPARISON_STRATEGIES, kind="comparison")
    return [_to_comparison(record, i) for i, record in enumerate(records or [], start=1)]


def summarize_comparison(records: list[NormalizedComparison]) -> ComparisonSummary:
    exact = sum(1 for r in records if r.is_exact_match)
    partial = sum(1 for r in records if r.is_partial_match)
    return ComparisonSummary(
        total_comparisons=len(records),
        exact_matches=exact,
        partial_matches=partial,
        no_matches=len(records) - exact - partial,
    )
