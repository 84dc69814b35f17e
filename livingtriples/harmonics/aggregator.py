"""
Harmonic Aggregator for Living Triples.

For each concept cluster and for the whole corpus:

    meanFitness       average survival fitness
    meanConnections   average connection count in the current snapshot
    coherence         min(1, meanFitness * 0.8)
    harmonicFrequency meanFitness * PHI
    phiAlignment      0.9 when |meanConnections - PHI| < 1, else 0.5

Clusters are built by subject and by category. Nothing here changes the
corpus.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..corpus import Corpus
from ..domain import Triple
from ..graph.builder import RelationshipGraph, build_graph

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

PHI = (1 + math.sqrt(5)) / 2
COHERENCE_SCALE = 0.8
ALIGNED_SCORE = 0.9
UNALIGNED_SCORE = 0.5

SYSTEM_KEY = "system"


# =============================================================================
# CLUSTERS
# =============================================================================

class ClusterScope(Enum):
    SYSTEM = "system"
    SUBJECT = "subject"
    CATEGORY = "category"


@dataclass
class ConceptCluster:
    """Triples sharing a grouping key; lives for one aggregation pass."""
    scope: ClusterScope
    key: str
    members: list[Triple]


def build_clusters(corpus: Corpus) -> list[ConceptCluster]:
    """Subject clusters then category clusters, each in first-seen order."""
    by_subject: dict[str, list[Triple]] = defaultdict(list)
    by_category: dict[str, list[Triple]] = defaultdict(list)

    for triple in corpus:
        by_subject[triple.subject].append(triple)
        by_category[triple.category].append(triple)

    clusters = [
        ConceptCluster(ClusterScope.SUBJECT, key, members)
        for key, members in by_subject.items()
    ]
    clusters.extend(
        ConceptCluster(ClusterScope.CATEGORY, key, members)
        for key, members in by_category.items()
    )
    return clusters


# =============================================================================
# SIGNATURES
# =============================================================================

@dataclass(frozen=True)
class HarmonicSignature:
    scope: ClusterScope
    key: str
    triple_count: int
    mean_fitness: float
    mean_connections: float
    coherence: float
    harmonic_frequency: float
    phi_alignment: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope.value,
            "key": self.key,
            "tripleCount": self.triple_count,
            "meanFitness": self.mean_fitness,
            "meanConnections": self.mean_connections,
            "coherence": self.coherence,
            "harmonicFrequency": self.harmonic_frequency,
            "phiAlignment": self.phi_alignment,
        }


def compute_coherence(mean_fitness: float) -> float:
    return min(1.0, mean_fitness * COHERENCE_SCALE)


def compute_phi_alignment(mean_connections: float) -> float:
    if abs(mean_connections - PHI) < 1:
        return ALIGNED_SCORE
    return UNALIGNED_SCORE


def compute_signature(
    scope: ClusterScope,
    key: str,
    members: list[Triple],
    counts: dict[str, int],
) -> HarmonicSignature:
    """
    Signature for a group of triples.

    An empty group has zero statistics (its alignment is still computed
    from a mean of 0 connections).
    """
    if members:
        mean_fitness = sum(t.survival_fitness for t in members) / len(members)
        mean_connections = sum(counts.get(t.id, 0) for t in members) / len(members)
    else:
        mean_fitness = 0.0
        mean_connections = 0.0

    return HarmonicSignature(
        scope=scope,
        key=key,
        triple_count=len(members),
        mean_fitness=mean_fitness,
        mean_connections=mean_connections,
        coherence=compute_coherence(mean_fitness),
        harmonic_frequency=mean_fitness * PHI,
        phi_alignment=compute_phi_alignment(mean_connections),
    )


@dataclass
class HarmonicReport:
    system: HarmonicSignature
    clusters: list[HarmonicSignature]

    @property
    def signatures(self) -> list[HarmonicSignature]:
        """System signature first, then clusters by coherence descending."""
        return [self.system, *self.clusters]

    def to_list(self) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self.signatures]


def aggregate(corpus: Corpus, graph: Optional[RelationshipGraph] = None) -> HarmonicReport:
    """Compute the system signature and one signature per cluster."""
    if graph is None or graph.corpus is not corpus:
        graph = build_graph(corpus)
    counts = graph.connection_counts()

    system = compute_signature(ClusterScope.SYSTEM, SYSTEM_KEY, corpus.triples(), counts)
    clusters = [
        compute_signature(cluster.scope, cluster.key, cluster.members, counts)
        for cluster in build_clusters(corpus)
    ]
    clusters.sort(key=lambda s: (-s.coherence, s.scope.value, s.key))

    logger.info(
        "Aggregated %d clusters; system coherence %.3f", len(clusters), system.coherence
    )
    return HarmonicReport(system=system, clusters=clusters)
