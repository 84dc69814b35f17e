"""
Fitness Annotator for Living Triples.

Each component is independently computable with no hidden weights.

Components:
    - Base Weight: The producing rule's weight (0.7 - 0.95)
    - Category Bonus: Small fixed importance bonus per category
    - High-Value Bonus: +0.05 per high-value term group found in the object
    - Kind Bonus: Structured documents get a small bonus
    - Validation Bonus: Objects matching a validated concept

The total is clamped to [0, 1]. ``survival_fitness`` starts equal to the
clamped confidence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..domain import DocumentKind, Triple, clamp_unit, utc_now
from ..enrichment.validator import KnowledgeValidator
from ..extraction.extractor import Candidate
from ..identity import create_triple_id


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

HIGH_VALUE_BONUS = 0.05
STRUCTURED_KIND_BONUS = 0.05
VALIDATION_BONUS = 0.1

# Each group adds the bonus once, however many of its terms appear
HIGH_VALUE_TERM_GROUPS = (
    ("phi", "golden"),
    ("conscious",),
    ("anarcho",),
    ("decentral",),
)


# =============================================================================
# COMPONENT SCORES
# =============================================================================

@dataclass
class ComponentScore:
    """
    A single confidence component with full transparency.

    - name: What this component measures
    - raw_value: The underlying measurement
    - contribution: Amount added to confidence
    - reason: Human-readable explanation
    """
    name: str
    raw_value: float
    contribution: float
    reason: str


def compute_base_weight(candidate: Candidate) -> ComponentScore:
    return ComponentScore(
        name="base_weight",
        raw_value=candidate.base_weight,
        contribution=candidate.base_weight,
        reason=f"Rule '{candidate.rule_name}' base weight {candidate.base_weight:.2f}",
    )


def compute_category_bonus(candidate: Candidate) -> ComponentScore:
    bonus = candidate.category_bonus
    if bonus == 0:
        reason = f"No importance bonus for category '{candidate.category}'"
    else:
        reason = f"Category '{candidate.category}' importance (+{bonus:.2f})"
    return ComponentScore(
        name="category_bonus",
        raw_value=bonus,
        contribution=bonus,
        reason=reason,
    )


def compute_high_value_bonus(obj: str) -> ComponentScore:
    """
    Count high-value term groups present in the object.

    Matching is substring-based, so "consciousness" counts for "conscious".
    """
    text = obj.lower()
    matched = [
        group[0]
        for group in HIGH_VALUE_TERM_GROUPS
        if any(term in text for term in group)
    ]
    bonus = HIGH_VALUE_BONUS * len(matched)

    if matched:
        reason = f"High-value terms: {', '.join(matched)} (+{bonus:.2f})"
    else:
        reason = "No high-value terms in object"

    return ComponentScore(
        name="high_value_bonus",
        raw_value=float(len(matched)),
        contribution=bonus,
        reason=reason,
    )


def compute_kind_bonus(kind: DocumentKind) -> ComponentScore:
    if kind is DocumentKind.STRUCTURED:
        return ComponentScore(
            name="kind_bonus",
            raw_value=1.0,
            contribution=STRUCTURED_KIND_BONUS,
            reason=f"Extracted from a structured document (+{STRUCTURED_KIND_BONUS:.2f})",
        )
    return ComponentScore(
        name="kind_bonus",
        raw_value=0.0,
        contribution=0.0,
        reason=f"No bonus for {kind.value} documents",
    )


def compute_validation_bonus(
    obj: str,
    validator: Optional[KnowledgeValidator] = None,
) -> ComponentScore:
    if validator is None:
        return ComponentScore(
            name="validation_bonus",
            raw_value=0.0,
            contribution=0.0,
            reason="No knowledge validator configured",
        )

    entry = validator.match(obj)
    if entry is None:
        return ComponentScore(
            name="validation_bonus",
            raw_value=0.0,
            contribution=0.0,
            reason="Object matches no validated concept",
        )

    return ComponentScore(
        name="validation_bonus",
        raw_value=entry.relevance,
        contribution=VALIDATION_BONUS,
        reason=f"Matches validated concept '{entry.concept}' (+{VALIDATION_BONUS:.2f})",
    )


# =============================================================================
# BREAKDOWN
# =============================================================================

@dataclass
class FitnessBreakdown:
    """Complete confidence decomposition for one triple."""
    base_weight: ComponentScore
    category_bonus: ComponentScore
    high_value_bonus: ComponentScore
    kind_bonus: ComponentScore
    validation_bonus: ComponentScore

    @property
    def components(self) -> list[ComponentScore]:
        return [
            self.base_weight,
            self.category_bonus,
            self.high_value_bonus,
            self.kind_bonus,
            self.validation_bonus,
        ]

    @property
    def raw_total(self) -> float:
        """Sum of contributions before clamping."""
        return sum(c.contribution for c in self.components)

    @property
    def confidence(self) -> float:
        return clamp_unit(self.raw_total)

    @property
    def validated(self) -> bool:
        return self.validation_bonus.contribution > 0

    def explain(self) -> str:
        lines = [f"Confidence: {self.confidence:.3f}"]
        for component in self.components:
            if component.contribution:
                lines.append(f"  +{component.contribution:.2f}  {component.reason}")
        if self.raw_total > 1.0:
            lines.append(f"  (clamped from {self.raw_total:.3f})")
        return "\n".join(lines)


@dataclass
class AnnotatedTriple:
    triple: Triple
    breakdown: FitnessBreakdown


# =============================================================================
# ANNOTATOR
# =============================================================================

def compute_breakdown(
    candidate: Candidate,
    kind: DocumentKind,
    validator: Optional[KnowledgeValidator] = None,
) -> FitnessBreakdown:
    """Pure function of one candidate, its document kind and the validator."""
    return FitnessBreakdown(
        base_weight=compute_base_weight(candidate),
        category_bonus=compute_category_bonus(candidate),
        high_value_bonus=compute_high_value_bonus(candidate.object),
        kind_bonus=compute_kind_bonus(kind),
        validation_bonus=compute_validation_bonus(candidate.object, validator),
    )


def annotate(
    candidate: Candidate,
    kind: DocumentKind,
    origin_id: str,
    validator: Optional[KnowledgeValidator] = None,
    extracted_at: Optional[datetime] = None,
) -> AnnotatedTriple:
    """Turn a candidate into a generation-0 Triple with its breakdown."""
    breakdown = compute_breakdown(candidate, kind, validator)
    confidence = breakdown.confidence

    triple = Triple(
        id=create_triple_id(candidate.subject, candidate.predicate, candidate.object),
        subject=candidate.subject,
        predicate=candidate.predicate,
        object=candidate.object,
        confidence=confidence,
        category=candidate.category,
        origin_id=origin_id,
        extracted_at=extracted_at or utc_now(),
        survival_fitness=confidence,
        generation=0,
        web_validated=breakdown.validated,
    )
    return AnnotatedTriple(triple=triple, breakdown=breakdown)


def annotate_all(
    candidates: list[Candidate],
    kind: DocumentKind,
    origin_id: str,
    validator: Optional[KnowledgeValidator] = None,
    extracted_at: Optional[datetime] = None,
) -> list[AnnotatedTriple]:
    stamp = extracted_at or utc_now()
    return [
        annotate(candidate, kind, origin_id, validator, stamp)
        for candidate in candidates
    ]
