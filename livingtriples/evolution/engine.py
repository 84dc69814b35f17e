"""
Evolutionary Survival Engine for Living Triples.

One generation:
1. Build the relationship graph for the current corpus (the snapshot)
2. Count every triple's connections against that snapshot
3. Scale fitness by the survival rule for that count, then by the
   category and provenance multipliers, and clamp to [0, 1]
4. Keep triples with fitness >= threshold, with generation + 1

Counts are all taken before any triple is removed, so a removal never
changes another triple's count in the same generation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from ..corpus import Corpus
from ..domain import CorpusEmpty, Triple, clamp_unit
from ..extraction.rules import HIGH_VALUE_CATEGORIES
from ..graph.builder import build_graph

logger = logging.getLogger(__name__)


# =============================================================================
# SURVIVAL RULES
# =============================================================================

class SurvivalRule(Enum):
    """Which band a connection count falls into."""
    ISOLATION = "isolation"
    OPTIMAL = "optimal"
    OVERCROWDING = "overcrowding"


@dataclass(frozen=True)
class EvolutionProfile:
    """
    Band and multipliers for one survival model.

    Default: band 2-3, isolation x0.5, optimal x1.2, overcrowding x0.8,
    high-value category x1.1, validated x1.1, threshold 0.3.
    """
    band_low: int = 2
    band_high: int = 3
    isolation_multiplier: float = 0.5
    optimal_multiplier: float = 1.2
    overcrowding_multiplier: float = 0.8
    high_value_multiplier: float = 1.1
    validated_multiplier: float = 1.1
    survival_threshold: float = 0.3
    high_value_categories: frozenset[str] = HIGH_VALUE_CATEGORIES

    def __post_init__(self):
        if self.band_low < 0 or self.band_high < self.band_low:
            raise ValueError(f"Invalid optimal band [{self.band_low}, {self.band_high}]")
        if not 0.0 <= self.survival_threshold <= 1.0:
            raise ValueError(f"survival_threshold {self.survival_threshold} is outside [0, 1]")
        multipliers = (
            self.isolation_multiplier,
            self.optimal_multiplier,
            self.overcrowding_multiplier,
            self.high_value_multiplier,
            self.validated_multiplier,
        )
        if any(m < 0 for m in multipliers):
            raise ValueError("Multipliers cannot be negative")

    def classify(self, connections: int) -> SurvivalRule:
        if connections < self.band_low:
            return SurvivalRule.ISOLATION
        if connections <= self.band_high:
            return SurvivalRule.OPTIMAL
        return SurvivalRule.OVERCROWDING

    def rule_multiplier(self, rule: SurvivalRule) -> float:
        return {
            SurvivalRule.ISOLATION: self.isolation_multiplier,
            SurvivalRule.OPTIMAL: self.optimal_multiplier,
            SurvivalRule.OVERCROWDING: self.overcrowding_multiplier,
        }[rule]

    def multiplier_for(self, triple: Triple, connections: int) -> float:
        """Combined multiplier: survival rule x category x provenance."""
        multiplier = self.rule_multiplier(self.classify(connections))
        if triple.category in self.high_value_categories:
            multiplier *= self.high_value_multiplier
        if triple.web_validated:
            multiplier *= self.validated_multiplier
        return multiplier

    def survives(self, fitness: float) -> bool:
        return fitness >= self.survival_threshold


# =============================================================================
# GENERATION STATISTICS
# =============================================================================

@dataclass
class GenerationStats:
    """What one pass did."""
    generation: int
    before_count: int
    after_count: int
    removed_ids: list[str] = field(default_factory=list)
    rule_tallies: dict[str, int] = field(default_factory=dict)
    mean_fitness_before: float = 0.0
    mean_fitness_after: float = 0.0

    @property
    def removed_count(self) -> int:
        return len(self.removed_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generation": self.generation,
            "beforeCount": self.before_count,
            "afterCount": self.after_count,
            "removedIds": list(self.removed_ids),
            "ruleTallies": dict(self.rule_tallies),
            "meanFitnessBefore": self.mean_fitness_before,
            "meanFitnessAfter": self.mean_fitness_after,
        }


@dataclass
class EvolutionResult:
    corpus: Corpus
    passes: list[GenerationStats]

    @property
    def extinct(self) -> bool:
        return len(self.corpus) == 0

    @property
    def total_removed(self) -> int:
        return sum(p.removed_count for p in self.passes)


# =============================================================================
# ENGINE
# =============================================================================

def evolve_once(
    corpus: Corpus,
    profile: Optional[EvolutionProfile] = None,
    generation: Optional[int] = None,
) -> tuple[Corpus, GenerationStats]:
    """Apply one generation and return the new corpus with its statistics."""
    if profile is None:
        profile = EvolutionProfile()

    graph = build_graph(corpus)
    counts = graph.connection_counts()

    survivors: list[Triple] = []
    removed: list[str] = []
    tallies = {rule.value: 0 for rule in SurvivalRule}

    for triple in corpus:
        connections = counts[triple.id]
        tallies[profile.classify(connections).value] += 1

        fitness = clamp_unit(triple.survival_fitness * profile.multiplier_for(triple, connections))

        if profile.survives(fitness):
            survivors.append(
                replace(
                    triple,
                    survival_fitness=fitness,
                    generation=triple.generation + 1,
                    connections=connections,
                )
            )
        else:
            removed.append(triple.id)

    next_corpus = corpus.replaced_by(survivors)

    if generation is None:
        generation = max((t.generation for t in corpus), default=0) + 1

    stats = GenerationStats(
        generation=generation,
        before_count=len(corpus),
        after_count=len(next_corpus),
        removed_ids=removed,
        rule_tallies=tallies,
        mean_fitness_before=corpus.mean_fitness(),
        mean_fitness_after=next_corpus.mean_fitness(),
    )
    logger.info(
        "Generation %d: %d -> %d triples (%d removed)",
        generation, stats.before_count, stats.after_count, stats.removed_count,
    )
    return next_corpus, stats


def evolve(
    corpus: Corpus,
    generations: int = 1,
    profile: Optional[EvolutionProfile] = None,
) -> EvolutionResult:
    """
    Run ``generations`` passes by repeated application.

    Stops early once the corpus is empty; later passes would do nothing.
    """
    if generations < 1:
        raise ValueError("generations must be at least 1")
    if profile is None:
        profile = EvolutionProfile()

    passes: list[GenerationStats] = []
    current = corpus

    for number in range(1, generations + 1):
        if not current:
            break
        current, stats = evolve_once(current, profile, generation=number)
        passes.append(stats)

    return EvolutionResult(corpus=current, passes=passes)


def ensure_survivors(corpus: Corpus) -> None:
    """
    Raises:
        CorpusEmpty: If no triple survived
    """
    if not corpus:
        raise CorpusEmpty("No triples survived evolution")
