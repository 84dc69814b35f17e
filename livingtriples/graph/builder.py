"""
Relationship Graph Builder for Living Triples.

Two triples are connected iff:
1. they share a subject, or
2. they share an object, or
3. one's subject equals the other's object.

Nothing else counts as a connection. Category matches are available as
export-only edges.

Index keys use the same normalization as triple identity (casefold and
collapsed whitespace), so "Sacred Geometry System" as a subject meets
"sacred geometry system" as an object.

A triple's neighbours are the union of four buckets:

    by_subject[s] | by_object[o] | by_object[s] | by_subject[o]

so counting costs O(n * k) for bucket size k instead of O(n^2).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any

from ..corpus import Corpus
from ..domain import ConnectionBasis, ConnectionEdge, Triple
from ..identity import normalize_component

logger = logging.getLogger(__name__)


# =============================================================================
# GRAPH
# =============================================================================

@dataclass
class RelationshipGraph:
    """
    Indices over one corpus snapshot.

    The graph is built once per pass and never updated; a new corpus needs
    a new graph.
    """
    corpus: Corpus
    by_subject: dict[str, set[str]] = field(default_factory=dict)
    by_object: dict[str, set[str]] = field(default_factory=dict)
    by_category: dict[str, set[str]] = field(default_factory=dict)

    def neighbors(self, triple_id: str) -> set[str]:
        """Ids connected to triple_id, excluding itself."""
        triple = self.corpus.get(triple_id)
        if triple is None:
            raise KeyError(triple_id)

        subject = normalize_component(triple.subject)
        obj = normalize_component(triple.object)
        empty: set[str] = set()

        found = (
            self.by_subject.get(subject, empty)
            | self.by_object.get(obj, empty)
            | self.by_object.get(subject, empty)
            | self.by_subject.get(obj, empty)
        )
        return found - {triple_id}

    def connection_count(self, triple_id: str) -> int:
        return len(self.neighbors(triple_id))

    def connection_counts(self) -> dict[str, int]:
        """Connection count for every triple in the snapshot."""
        return {triple_id: self.connection_count(triple_id) for triple_id in self.corpus.ids()}

    def mean_connections(self) -> float:
        if not self.corpus:
            return 0.0
        counts = self.connection_counts()
        return sum(counts.values()) / len(counts)

    def edges(self, include_category_matches: bool = False) -> list[ConnectionEdge]:
        """
        All edges, one per (pair, basis) that holds.

        Category-match edges are quadratic in cluster size and only
        produced when explicitly requested.
        """
        found: set[tuple[str, str, ConnectionBasis]] = set()

        def add_pairs(ids: set[str], basis: ConnectionBasis) -> None:
            for a, b in combinations(sorted(ids), 2):
                found.add((a, b, basis))

        for ids in self.by_subject.values():
            add_pairs(ids, ConnectionBasis.SHARED_SUBJECT)
        for ids in self.by_object.values():
            add_pairs(ids, ConnectionBasis.SHARED_OBJECT)

        for key, subject_ids in self.by_subject.items():
            object_ids = self.by_object.get(key)
            if not object_ids:
                continue
            for a in subject_ids:
                for b in object_ids:
                    if a != b:
                        low, high = sorted((a, b))
                        found.add((low, high, ConnectionBasis.SUBJECT_EQUALS_OBJECT))

        if include_category_matches:
            for ids in self.by_category.values():
                add_pairs(ids, ConnectionBasis.CATEGORY_MATCH)

        return [
            ConnectionEdge(triple_id_a=a, triple_id_b=b, basis=basis)
            for a, b, basis in sorted(found, key=lambda e: (e[0], e[1], e[2].value))
        ]


def build_graph(corpus: Corpus) -> RelationshipGraph:
    """Index a corpus by normalized subject, normalized object and category."""
    by_subject: dict[str, set[str]] = defaultdict(set)
    by_object: dict[str, set[str]] = defaultdict(set)
    by_category: dict[str, set[str]] = defaultdict(set)

    for triple in corpus:
        by_subject[normalize_component(triple.subject)].add(triple.id)
        by_object[normalize_component(triple.object)].add(triple.id)
        by_category[triple.category].add(triple.id)

    logger.debug(
        "Indexed %d triples: %d subjects, %d objects, %d categories",
        len(corpus), len(by_subject), len(by_object), len(by_category),
    )
    return RelationshipGraph(
        corpus=corpus,
        by_subject=dict(by_subject),
        by_object=dict(by_object),
        by_category=dict(by_category),
    )


# =============================================================================
# CROSS-DOCUMENT RELATIONSHIPS
# =============================================================================

@dataclass(frozen=True)
class CrossDocumentRelationship:
    """A subject whose triples come from two or more distinct documents."""
    concept: str
    origin_ids: tuple[str, ...]
    triple_count: int
    mean_fitness: float
    categories: tuple[str, ...]

    @property
    def cross_category(self) -> bool:
        return len(self.categories) > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept": self.concept,
            "originIds": list(self.origin_ids),
            "tripleCount": self.triple_count,
            "meanFitness": self.mean_fitness,
            "categories": list(self.categories),
            "crossCategory": self.cross_category,
        }


def find_cross_document_relationships(corpus: Corpus) -> list[CrossDocumentRelationship]:
    """
    Group by subject and keep groups backed by 2+ distinct origins.

    Origins are counted through ``supporting_origins``, so a triple folded
    from several documents counts for all of them.
    """
    groups: dict[str, list[Triple]] = defaultdict(list)
    for triple in corpus:
        groups[triple.subject].append(triple)

    relationships = []
    for concept, members in groups.items():
        origins = sorted({o for t in members for o in t.supporting_origins})
        if len(origins) < 2:
            continue
        relationships.append(
            CrossDocumentRelationship(
                concept=concept,
                origin_ids=tuple(origins),
                triple_count=len(members),
                mean_fitness=sum(t.survival_fitness for t in members) / len(members),
                categories=tuple(sorted({t.category for t in members})),
            )
        )

    relationships.sort(key=lambda r: (-r.triple_count, r.concept))
    logger.info("Found %d cross-document relationships", len(relationships))
    return relationships
