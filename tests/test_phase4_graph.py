"""
Tests for Phase 4: Relationship Graph.

These tests verify:
1. The exact three-way connection rule (and nothing more)
2. Category matches only appear as export edges on request
3. Cross-document gating of relationships
4. Relationship ordering
"""

from datetime import datetime, timezone

import pytest

from livingtriples.corpus import Corpus
from livingtriples.domain import ConnectionBasis, Triple
from livingtriples.graph.builder import build_graph, find_cross_document_relationships
from livingtriples.identity import create_triple_id


# =============================================================================
# TEST FIXTURES
# =============================================================================

def make_triple(
    subject: str,
    obj: str,
    origin_id: str = "doc_a.md",
    fitness: float = 0.8,
    category: str = "knowledge",
    predicate: str = "relates_to",
    supporting_origins: tuple = (),
) -> Triple:
    """Helper to create a Triple for testing."""
    return Triple(
        id=create_triple_id(subject, predicate, obj),
        subject=subject,
        predicate=predicate,
        object=obj,
        confidence=fitness,
        category=category,
        origin_id=origin_id,
        extracted_at=datetime(2026, 1, 20, tzinfo=timezone.utc),
        survival_fitness=fitness,
        supporting_origins=supporting_origins,
    )


@pytest.fixture
def sample():
    """
    t1 (A -> x) and t2 (A -> y) share a subject
    t1 and t3 (B -> x) share an object
    t4 (x -> z) has a subject equal to the object of t1 and t3
    t5 (C -> w) is isolated
    """
    triples = {
        "t1": make_triple("A", "x"),
        "t2": make_triple("A", "y"),
        "t3": make_triple("B", "x"),
        "t4": make_triple("x", "z"),
        "t5": make_triple("C", "w"),
    }
    return triples, Corpus(triples.values())


# =============================================================================
# CONNECTION TESTS
# =============================================================================

class TestConnections:
    """Test the three-way connection rule."""

    def test_neighbors(self, sample):
        t, corpus = sample
        graph = build_graph(corpus)

        assert graph.neighbors(t["t1"].id) == {t["t2"].id, t["t3"].id, t["t4"].id}
        assert graph.neighbors(t["t2"].id) == {t["t1"].id}
        assert graph.neighbors(t["t3"].id) == {t["t1"].id, t["t4"].id}
        assert graph.neighbors(t["t4"].id) == {t["t1"].id, t["t3"].id}
        assert graph.neighbors(t["t5"].id) == set()

    def test_connection_counts(self, sample):
        t, corpus = sample
        counts = build_graph(corpus).connection_counts()
        assert [counts[t[k].id] for k in ("t1", "t2", "t3", "t4", "t5")] == [3, 1, 2, 2, 0]

    def test_connection_is_symmetric(self, sample):
        _, corpus = sample
        graph = build_graph(corpus)
        for triple in corpus:
            for other in graph.neighbors(triple.id):
                assert triple.id in graph.neighbors(other)

    def test_same_category_is_not_a_connection(self):
        corpus = Corpus([
            make_triple("A", "x", category="mathematical"),
            make_triple("B", "y", category="mathematical"),
        ])
        counts = build_graph(corpus).connection_counts()
        assert set(counts.values()) == {0}

    def test_matching_ignores_case(self):
        first = make_triple("Golden Ratio", "phi")
        second = make_triple("Sacred Geometry System", "golden ratio")
        graph = build_graph(Corpus([first, second]))
        assert graph.neighbors(first.id) == {second.id}

    def test_unknown_id(self, sample):
        _, corpus = sample
        with pytest.raises(KeyError):
            build_graph(corpus).neighbors("tri_missing")

    def test_mean_connections(self, sample):
        _, corpus = sample
        assert build_graph(corpus).mean_connections() == pytest.approx(8 / 5)

    def test_empty_graph(self):
        graph = build_graph(Corpus())
        assert graph.connection_counts() == {}
        assert graph.mean_connections() == 0.0
        assert graph.edges() == []


# =============================================================================
# EDGE EXPORT TESTS
# =============================================================================

class TestEdges:

    def test_edge_bases(self, sample):
        t, corpus = sample
        edges = build_graph(corpus).edges()
        found = {(e.triple_id_a, e.triple_id_b, e.basis) for e in edges}

        def pair(a, b, basis):
            low, high = sorted((t[a].id, t[b].id))
            return (low, high, basis)

        assert pair("t1", "t2", ConnectionBasis.SHARED_SUBJECT) in found
        assert pair("t1", "t3", ConnectionBasis.SHARED_OBJECT) in found
        assert pair("t1", "t4", ConnectionBasis.SUBJECT_EQUALS_OBJECT) in found
        assert pair("t3", "t4", ConnectionBasis.SUBJECT_EQUALS_OBJECT) in found
        assert len(found) == 4

    def test_edges_are_ordered_pairs(self, sample):
        _, corpus = sample
        for edge in build_graph(corpus).edges():
            assert edge.triple_id_a < edge.triple_id_b

    def test_category_edges_only_on_request(self, sample):
        _, corpus = sample
        graph = build_graph(corpus)

        default = graph.edges()
        exported = graph.edges(include_category_matches=True)

        assert all(e.basis != ConnectionBasis.CATEGORY_MATCH for e in default)
        category_edges = [e for e in exported if e.basis == ConnectionBasis.CATEGORY_MATCH]
        # All five sample triples share one category
        assert len(category_edges) == 10

    def test_edge_to_dict(self, sample):
        _, corpus = sample
        edge = build_graph(corpus).edges()[0]
        assert set(edge.to_dict()) == {"tripleIdA", "tripleIdB", "basis"}


# =============================================================================
# CROSS-DOCUMENT RELATIONSHIP TESTS
# =============================================================================

class TestCrossDocumentRelationships:
    """Test cross-document gating."""

    def test_single_document_concept_excluded(self):
        corpus = Corpus([
            make_triple("Visualization System", "hypergraph", origin_id="doc_a.md"),
            make_triple("Visualization System", "graph theory", origin_id="doc_a.md"),
        ])
        assert find_cross_document_relationships(corpus) == []

    def test_two_documents_included(self):
        corpus = Corpus([
            make_triple("Sacred Geometry System", "golden ratio", origin_id="doc_a.md"),
            make_triple("Sacred Geometry System", "fibonacci", origin_id="doc_b.md",
                        category="mathematical"),
        ])
        relationships = find_cross_document_relationships(corpus)

        assert len(relationships) == 1
        relationship = relationships[0]
        assert relationship.concept == "Sacred Geometry System"
        assert relationship.origin_ids == ("doc_a.md", "doc_b.md")
        assert relationship.triple_count == 2
        assert relationship.mean_fitness == pytest.approx(0.8)
        assert relationship.categories == ("knowledge", "mathematical")
        assert relationship.cross_category is True

    def test_folded_triple_counts_all_origins(self):
        folded = make_triple(
            "Sacred Geometry System", "golden ratio",
            origin_id="doc_a.md", supporting_origins=("doc_b.md",),
        )
        relationships = find_cross_document_relationships(Corpus([folded]))
        assert [r.concept for r in relationships] == ["Sacred Geometry System"]
        assert relationships[0].cross_category is False

    def test_ordering(self):
        corpus = Corpus([
            make_triple("Beta", "one", origin_id="a"),
            make_triple("Beta", "two", origin_id="b"),
            make_triple("Alpha", "one", origin_id="a"),
            make_triple("Alpha", "two", origin_id="b"),
            make_triple("Gamma", "one", origin_id="a"),
            make_triple("Gamma", "two", origin_id="b"),
            make_triple("Gamma", "three", origin_id="c"),
        ])
        concepts = [r.concept for r in find_cross_document_relationships(corpus)]
        assert concepts == ["Gamma", "Alpha", "Beta"]

    def test_to_dict(self):
        corpus = Corpus([
            make_triple("Hub", "one", origin_id="a"),
            make_triple("Hub", "two", origin_id="b"),
        ])
        data = find_cross_document_relationships(corpus)[0].to_dict()
        assert data["originIds"] == ["a", "b"]
        assert data["crossCategory"] is False
