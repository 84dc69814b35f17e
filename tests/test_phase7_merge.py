"""
Tests for Phase 7: Merge/Dedup Service.

These tests verify:
1. Duplicate ids are counted per source
2. Duplicate contents are checked independently of ids
3. One representative per id, with the maximum fitness
4. Merge never grows past the inputs and never repeats an id
5. Reports written by a run can be merged
"""

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from livingtriples.corpus import Corpus
from livingtriples.domain import Triple
from livingtriples.identity import create_triple_id
from livingtriples.merge.dedup import merge_triple_sets
from livingtriples.report import ReportLoadError, RunMetadata, RunReport, load_report_triples


# =============================================================================
# TEST FIXTURES
# =============================================================================

def make_triple(
    obj: str = "golden ratio",
    fitness: float = 0.8,
    origin_id: str = "doc_a.md",
    subject: str = "Sacred Geometry System",
    predicate: str = "calculates",
) -> Triple:
    """Helper to create a Triple for testing."""
    return Triple(
        id=create_triple_id(subject, predicate, obj),
        subject=subject,
        predicate=predicate,
        object=obj,
        confidence=fitness,
        category="mathematical",
        origin_id=origin_id,
        extracted_at=datetime(2026, 1, 20, tzinfo=timezone.utc),
        survival_fitness=fitness,
    )


# =============================================================================
# MERGE TESTS
# =============================================================================

class TestMerge:
    """Test merging labelled triple sets."""

    def test_shared_triple_example(self):
        first = make_triple(fitness=0.7, origin_id="doc_a.md")
        second = make_triple(fitness=0.9, origin_id="doc_b.md")

        result = merge_triple_sets([("doc_a.md", [first]), ("doc_b.md", [second])])

        assert first.id == second.id
        assert result.count_for(first.id) == 2
        assert result.merged_size == 1
        merged = result.merged.get(first.id)
        assert merged.survival_fitness == 0.9
        assert merged.supporting_origins == ("doc_a.md", "doc_b.md")

    def test_duplicate_ids_per_source(self):
        triple = make_triple()
        result = merge_triple_sets([
            ("run1.json", [triple, make_triple("fibonacci")]),
            ("run2.json", [triple]),
            ("run3.json", [triple]),
        ])

        assert len(result.duplicate_ids) == 1
        duplicate = result.duplicate_ids[0]
        assert duplicate.triple_id == triple.id
        assert duplicate.count == 3
        assert duplicate.per_source == {"run1.json": 1, "run2.json": 1, "run3.json": 1}

    def test_merged_smaller_than_inputs(self):
        shared = make_triple("golden ratio")
        result = merge_triple_sets([
            ("a", [shared, make_triple("fibonacci")]),
            ("b", [shared, make_triple("phi")]),
        ])

        assert result.total_input == 4
        assert result.merged_size == 3
        assert result.merged_size < result.total_input
        ids = result.merged.ids()
        assert len(ids) == len(set(ids))

    def test_disjoint_sets_keep_everything(self):
        result = merge_triple_sets([
            ("a", [make_triple("golden ratio")]),
            ("b", [make_triple("fibonacci")]),
        ])
        assert result.merged_size == 2
        assert result.duplicate_ids == []

    def test_tie_keeps_first_seen(self):
        first = make_triple(fitness=0.8, origin_id="doc_a.md")
        second = replace(make_triple(fitness=0.8, origin_id="doc_b.md"), generation=4)

        result = merge_triple_sets([("a", [first]), ("b", [second])])

        assert result.merged.get(first.id).generation == 0
        assert result.merged.get(first.id).origin_id == "doc_a.md"

    def test_duplicate_contents_reported(self):
        result = merge_triple_sets([
            ("a", [make_triple("golden ratio")]),
            ("b", [make_triple("Golden  Ratio")]),
        ])

        assert len(result.duplicate_contents) == 1
        assert result.duplicate_contents[0].count == 2
        assert result.consistent

    def test_content_with_two_ids_is_a_conflict(self):
        genuine = make_triple()
        forged = replace(make_triple(origin_id="doc_b.md"), id="tri_handmade000000")

        result = merge_triple_sets([("a", [genuine]), ("b", [forged])])

        assert not result.consistent
        assert result.merged_size == 2
        assert any(set(c.triple_ids) == {genuine.id, forged.id} for c in result.conflicts)

    def test_id_with_two_contents_is_a_conflict(self):
        genuine = make_triple("golden ratio")
        forged = replace(make_triple("fibonacci"), id=genuine.id)

        result = merge_triple_sets([("a", [genuine]), ("b", [forged])])

        assert not result.consistent
        assert result.merged_size == 1

    def test_inputs_untouched(self):
        first = make_triple(fitness=0.7, origin_id="doc_a.md")
        second = make_triple(fitness=0.9, origin_id="doc_b.md")
        merge_triple_sets([("a", [first]), ("b", [second])])
        assert first.supporting_origins == ("doc_a.md",)

    def test_summary_shape(self):
        result = merge_triple_sets([("a", [make_triple()]), ("b", [make_triple()])])
        summary = result.summary()
        assert summary["totalInput"] == 2
        assert summary["mergedSize"] == 1
        assert summary["duplicateIds"][0]["count"] == 2


# =============================================================================
# REPORT LOADING TESTS
# =============================================================================

class TestReportLoading:

    def write_report(self, path, triples):
        report = RunReport(metadata=RunMetadata(), triples=triples)
        return report.write(path)

    def test_merge_written_reports(self, tmp_path):
        shared = make_triple(fitness=0.6, origin_id="doc_a.md")
        first = self.write_report(tmp_path / "run1.json", [shared, make_triple("phi")])
        second = self.write_report(
            tmp_path / "run2.json", [make_triple(fitness=0.95, origin_id="doc_b.md")]
        )

        result = merge_triple_sets([
            (str(first), load_report_triples(first)),
            (str(second), load_report_triples(second)),
        ])

        assert result.merged_size == 2
        assert result.merged.get(shared.id).survival_fitness == 0.95

    def test_bare_list_accepted(self, tmp_path):
        path = tmp_path / "triples.json"
        path.write_text(json.dumps([make_triple().to_dict()]), encoding="utf-8")
        assert len(load_report_triples(path)) == 1

    @pytest.mark.parametrize("content", ["not json", '{"metadata": {}}', '[{"id": "x"}]'])
    def test_invalid_report(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ReportLoadError):
            load_report_triples(path)

    def test_missing_report(self, tmp_path):
        with pytest.raises(ReportLoadError):
            load_report_triples(tmp_path / "missing.json")

    def test_merged_corpus_is_a_corpus(self):
        result = merge_triple_sets([("a", [make_triple()])])
        assert isinstance(result.merged, Corpus)
