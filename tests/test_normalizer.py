"""Tests for payload normalization and cascade rule classification."""

import logging

from lit_eval.models import MatchType
from lit_eval.normalizer import (
    VerificationFormat,
    detect_verification_format,
    normalize_comparison,
    normalize_verification,
    summarize_comparison,
    summarize_verification,
)
from lit_eval.rules import RuleOutcome, describe_rule, rule_outcome

MULTI_DATABASE_PAYLOAD = {
    "verification_results": [
        {
            "literature_id": 1,
            "database_name": "openalex",
            "found": True,
            "similarity_score": 0.95,
        },
        {"literature_id": 1, "database_name": "crossref", "found": False},
    ]
}


def _make_row(match: str, **kwargs) -> dict:
    row = {
        "llm_title": "Generated title",
        "gt_title": "Ground truth title",
        "similarity_percentage": 90.0,
        "match_type": "title",
        "is_exact_match": match == "exact",
        "is_partial_match": match == "partial",
        "is_no_match": match == "none",
    }
    row.update(kwargs)
    return row


class TestVerificationContainers:
    def test_none_is_empty(self):
        assert normalize_verification(None) == []

    def test_bare_list(self):
        records = normalize_verification([{"id": 5, "title": "A paper"}])
        assert [r.literature_id for r in records] == [5]

    def test_first_array_container_wins(self):
        payload = {
            "results": "not a list",
            "verification_results": [{"literature_id": 1, "database_name": "openalex"}],
            "detailed_results": [{"literature_id": 2, "database_name": "openalex"}],
        }
        records = normalize_verification(payload)
        assert [r.literature_id for r in records] == [1]

    def test_detailed_results_container(self):
        payload = {"total_publications": 1, "detailed_results": [{"id": 9}]}
        assert normalize_verification(payload)[0].literature_id == 9

    def test_unrecognized_shape_is_empty_and_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert normalize_verification({"error": "backend timeout"}) == []
        assert "Unexpected verification structure" in caplog.text

    def test_keyed_by_literature_id(self):
        payload = {
            "12": [
                {"database_name": "openalex", "found": True, "similarity_score": 0.9},
                {"database_name": "arxiv", "found": False},
            ],
            "13": {"database_name": "crossref", "found": False},
        }
        records = {r.literature_id: r for r in normalize_verification(payload)}
        assert set(records) == {"12", "13"}
        assert records["12"].found_in_database is True
        assert records["12"].best_match_similarity == 0.9
        assert records["12"].databases_checked == ["openalex", "arxiv"]
        assert records["13"].found_in_database is False


class TestVerificationGrouping:
    def test_rows_collapse_per_publication(self):
        records = normalize_verification(MULTI_DATABASE_PAYLOAD)
        assert len(records) == 1
        record = records[0]
        assert record.literature_id == 1
        assert record.found_in_database is True
        assert record.best_match_similarity == 0.95
        assert set(record.databases_checked) == {"openalex", "crossref"}

    def test_similarity_only_from_found_rows(self):
        payload = [
            {"literature_id": 1, "database_name": "openalex", "found": False, "similarity": 0.99},
            {"literature_id": 1, "database_name": "crossref", "verified": True, "score": 0.7},
        ]
        record = normalize_verification(payload)[0]
        assert record.best_match_similarity == 0.7

    def test_found_flag_variants(self):
        payload = [
            {"literature_id": 1, "database_name": "a", "found": 1},
            {"literature_id": 2, "database_name": "a", "is_verified": True},
            {"literature_id": 3, "database_name": "a", "match_found": True},
            {"literature_id": 4, "database_name": "a", "found": "yes"},
        ]
        found = {r.literature_id: r.found_in_database for r in normalize_verification(payload)}
        assert found == {1: True, 2: True, 3: True, 4: False}

    def test_rows_without_id_are_dropped(self):
        payload = [
            {"database_name": "openalex", "found": True},
            {"publication_id": 2, "database_name": "openalex", "found": True},
        ]
        records = normalize_verification(payload)
        assert [r.literature_id for r in records] == [2]

    def test_zero_is_a_valid_id(self):
        payload = [{"literature_id": 0, "database_name": "openalex", "found": True}]
        assert normalize_verification(payload)[0].literature_id == 0

    def test_int_and_string_ids_are_one_publication(self):
        payload = [
            {"literature_id": 1, "database_name": "openalex", "found": True, "similarity_score": 0.9},
            {"literature_id": "1", "database_name": "crossref", "found": False},
        ]
        records = normalize_verification(payload)
        assert len(records) == 1
        assert records[0].literature_id == 1
        assert records[0].databases_checked == ["openalex", "crossref"]
        assert records[0].found_in_database is True

    def test_missing_database_name_defaults_to_unknown(self):
        payload = [
            {"literature_id": 1, "database_name": "openalex"},
            {"literature_id": 1, "found": True},
        ]
        assert normalize_verification(payload)[0].databases_checked == ["openalex", "Unknown"]

    def test_similarity_clamped(self):
        payload = [{"literature_id": 1, "database": "doi", "found": True, "similarity": 1.4}]
        assert normalize_verification(payload)[0].best_match_similarity == 1.0

    def test_non_finite_similarity_is_ignored(self):
        for value in (float("nan"), float("inf")):
            payload = [{"literature_id": 1, "database": "doi", "found": True, "similarity": value}]
            assert normalize_verification(payload)[0].best_match_similarity == 0.0

    def test_metadata_aliases(self):
        payload = [
            {
                "literature_id": 1,
                "database_name": "openalex",
                "publication_title": "Deep learning",
                "author": "LeCun, Y.",
                "publication_year": 2015,
            }
        ]
        record = normalize_verification(payload)[0]
        assert record.title == "Deep learning"
        assert record.authors == "LeCun, Y."
        assert record.year == 2015


class TestFormatDetection:
    def test_literature_format_without_database_field(self):
        assert detect_verification_format({"id": 1}) is VerificationFormat.LITERATURE

    def test_execution_id_means_literature_format(self):
        record = {"id": 1, "execution_id": "e1", "database_name": "openalex"}
        assert detect_verification_format(record) is VerificationFormat.LITERATURE

    def test_database_field_means_verification_format(self):
        record = {"literature_id": 1, "database": "crossref"}
        assert detect_verification_format(record) is VerificationFormat.VERIFICATION

    def test_found_in_database_means_canonical(self):
        record = {"literature_id": 1, "found_in_database": False}
        assert detect_verification_format(record) is VerificationFormat.CANONICAL

    def test_literature_rows_are_confirmed(self):
        records = normalize_verification([{"id": 7, "title": "A"}, {"id": 8, "title": "B"}])
        assert all(r.found_in_database for r in records)
        assert all(r.best_match_similarity == 1.0 for r in records)
        assert all(r.databases_checked == [] for r in records)

    def test_explicit_format_overrides_heuristic(self):
        payload = [{"literature_id": 1, "found": False}]
        records = normalize_verification(payload, record_format=VerificationFormat.VERIFICATION)
        assert records[0].found_in_database is False
        assert records[0].databases_checked == ["Unknown"]


class TestIdempotence:
    def test_verification_renormalizes_to_itself(self):
        first = normalize_verification(MULTI_DATABASE_PAYLOAD)
        again = normalize_verification({"results": [r.model_dump() for r in first]})
        assert again == first

    def test_unfound_publication_stays_unfound(self):
        first = normalize_verification(
            [{"literature_id": 3, "database_name": "arxiv", "found": False}]
        )
        again = normalize_verification({"results": [r.model_dump(mode="json") for r in first]})
        assert again == first
        assert again[0].found_in_database is False

    def test_comparison_renormalizes_to_itself(self):
        first = normalize_comparison([_make_row("exact", rule_number=3), _make_row("none")])
        again = normalize_comparison({"results": [r.model_dump() for r in first]})
        assert again == first


class TestComparison:
    def test_containers(self):
        for key in ("results", "comparison_results", "detailed_results"):
            records = normalize_comparison({key: [_make_row("exact")]})
            assert len(records) == 1, key

    def test_none_and_malformed_are_empty(self):
        assert normalize_comparison(None) == []
        assert normalize_comparison({"summary": {}}) == []

    def test_fields_mapped(self):
        record = normalize_comparison([_make_row("partial", row_number=4, rule_number=88)])[0]
        assert record.row_number == 4
        assert record.generated_title == "Generated title"
        assert record.ground_truth_title == "Ground truth title"
        assert record.similarity_percentage == 90.0
        assert record.match_type is MatchType.TITLE
        assert record.is_partial_match
        assert record.rule_number == 88

    def test_rows_numbered_in_order_when_absent(self):
        records = normalize_comparison([{"match_status": "exact"}, {"match_status": "none"}])
        assert [r.row_number for r in records] == [1, 2]

    def test_exact_wins_over_partial(self):
        row = _make_row("exact", is_partial_match=True)
        record = normalize_comparison([row])[0]
        assert (record.is_exact_match, record.is_partial_match, record.is_no_match) == (
            True,
            False,
            False,
        )

    def test_status_strings(self):
        records = normalize_comparison(
            [{"match_status": "PARTIAL"}, {"status": "exact"}, {"match_status": "unknown"}]
        )
        assert records[0].is_partial_match
        assert records[1].is_exact_match
        assert records[2].is_no_match

    def test_rule_number_fallback(self):
        records = normalize_comparison(
            [{"rule_number": 5}, {"rule_number": 50}, {"rule_number": 150}, {}]
        )
        assert records[0].is_exact_match
        assert records[1].is_partial_match
        assert records[2].is_no_match
        assert records[3].is_no_match

    def test_match_buckets(self):
        payload = {
            "exact_matches": [{"llm_title": "A"}],
            "partial_matches": [{"llm_title": "B"}, {"llm_title": "C"}],
            "no_matches": [{"llm_title": "D"}],
        }
        summary = summarize_comparison(normalize_comparison(payload))
        assert (summary.exact_matches, summary.partial_matches, summary.no_matches) == (1, 2, 1)

    def test_match_type_fallbacks(self):
        records = normalize_comparison(
            [
                _make_row("partial", match_type="authors_year"),
                _make_row("exact", match_type="doi"),
                _make_row("none", match_type=None),
            ]
        )
        assert [r.match_type for r in records] == [
            MatchType.AUTHORS_YEAR,
            MatchType.TITLE,
            MatchType.NONE,
        ]

    def test_similarity_clamped(self):
        record = normalize_comparison([_make_row("exact", similarity_percentage=130)])[0]
        assert record.similarity_percentage == 100.0

    def test_non_finite_numbers_do_not_raise(self):
        row = _make_row("none", rule_number=float("inf"), similarity_percentage=float("nan"))
        record = normalize_comparison([row])[0]
        assert record.rule_number is None
        assert record.similarity_percentage == 0.0
        assert record.is_no_match is True


class TestSummaries:
    def test_verification_summary(self):
        records = normalize_verification(
            [
                {"literature_id": 1, "database_name": "openalex", "found": True},
                {"literature_id": 2, "database_name": "openalex", "found": False},
                {"literature_id": 3, "database_name": "openalex", "found": True},
            ]
        )
        summary = summarize_verification(records)
        assert (summary.total_publications, summary.found_in_database, summary.not_found) == (
            3,
            2,
            1,
        )

    def test_comparison_summary(self):
        rows = [_make_row("exact")] * 5 + [_make_row("partial")] * 3 + [_make_row("none")] * 2
        summary = summarize_comparison(normalize_comparison(rows))
        assert summary.total_comparisons == 10
        assert summary.exact_matches == 5
        assert summary.partial_matches == 3
        assert summary.no_matches == 2


class TestRules:
    def test_ranges(self):
        assert rule_outcome(1) is RuleOutcome.FULL
        assert rule_outcome(11) is RuleOutcome.FULL
        assert rule_outcome(12) is RuleOutcome.PARTIAL
        assert rule_outcome(104) is RuleOutcome.PARTIAL
        assert rule_outcome(105) is RuleOutcome.NO_MATCH
        assert rule_outcome(192) is RuleOutcome.NO_MATCH

    def test_unknown_rules(self):
        assert rule_outcome(None) is None
        assert rule_outcome(0) is None
        assert rule_outcome(500) is None

    def test_descriptions(self):
        assert describe_rule(0) is None
        assert describe_rule(3) == "FULL · Rule 3"
        assert describe_rule(192) == "NO MATCH · Empty Output"
        assert describe_rule(999) == "Rule 999"
