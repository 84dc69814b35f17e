"""
Pattern Extractor for Living Triples.

Applies every catalogue rule to a document body and yields candidate
triples. Rules are independent: overlapping matches from different
categories are all kept and left for dedup. Within one document the output
is a set keyed by normalized content.

Structured documents that decoded strictly are also walked for structural
candidates (subject "JSON Structure"), in addition to the lexical scan of
their raw text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from ..domain import Diagnostic, Document, DocumentKind, MalformedRule
from ..identity import content_key, normalize_component, transform_object
from .rules import CATEGORY_BONUSES, PatternRule, RuleCatalogue

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

STRUCTURE_SUBJECT = "JSON Structure"
STRUCTURE_CATEGORY = "structure"
STRUCTURE_RULE = "json_structure"
STRUCTURE_MAX_DEPTH = 4
STRUCTURE_MAX_STRING = 200
STRUCTURE_MAX_OBJECT = 100

# Base weight per structural predicate
STRUCTURE_WEIGHTS = {
    "contains": 0.75,
    "has_numeric_value": 0.7,
    "contains_array": 0.8,
}


# =============================================================================
# CANDIDATES
# =============================================================================

@dataclass(frozen=True)
class Candidate:
    """
    An extracted assertion before annotation.

    Carries everything the fitness annotator needs from the rule that
    produced it, so annotation never looks the rule up again.
    """
    subject: str
    predicate: str
    object: str
    category: str
    rule_name: str
    base_weight: float
    category_bonus: float = 0.0
    high_value: bool = False

    @property
    def key(self) -> str:
        return content_key(self.subject, self.predicate, self.object)

    @classmethod
    def from_rule(cls, rule: PatternRule, matched_text: str) -> Candidate:
        return cls(
            subject=rule.subject,
            predicate=rule.predicate,
            object=transform_object(matched_text),
            category=rule.category,
            rule_name=rule.name,
            base_weight=rule.base_weight,
            category_bonus=rule.category_bonus,
            high_value=rule.high_value,
        )


@dataclass
class ExtractionResult:
    """Candidates from one document plus any rule failures."""
    origin_id: str
    candidates: list[Candidate] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def rule_tallies(self) -> dict[str, int]:
        tallies: dict[str, int] = {}
        for candidate in self.candidates:
            tallies[candidate.rule_name] = tallies.get(candidate.rule_name, 0) + 1
        return tallies


# =============================================================================
# STRUCTURAL WALK
# =============================================================================

def walk_structure(
    payload: Any,
    depth: int = 0,
    max_depth: int = STRUCTURE_MAX_DEPTH,
) -> Iterator[tuple[str, str]]:
    """
    Yield (predicate, object) pairs describing a decoded payload.

    - short string value → contains "key: value"
    - number             → has_numeric_value key
    - list               → contains_array key
    - nested object      → recurse, one level deeper
    """
    if depth > max_depth:
        return

    if isinstance(payload, list):
        for item in payload:
            if isinstance(item, dict):
                yield from walk_structure(item, depth + 1, max_depth)
        return

    if not isinstance(payload, dict):
        return

    for key, value in payload.items():
        if isinstance(value, str):
            if value and len(value) < STRUCTURE_MAX_STRING:
                text = normalize_component(f"{key}: {value}")
                yield "contains", text[:STRUCTURE_MAX_OBJECT].strip()
        elif isinstance(value, bool):
            # JSON true/false is not a numeric value
            continue
        elif isinstance(value, (int, float)):
            yield "has_numeric_value", str(key)
        elif isinstance(value, list):
            yield "contains_array", str(key)
        elif isinstance(value, dict):
            yield from walk_structure(value, depth + 1, max_depth)


def extract_structural(document: Document) -> list[Candidate]:
    """Structural candidates for a strictly decoded structured document."""
    if document.kind is not DocumentKind.STRUCTURED or document.payload is None:
        return []

    return [
        Candidate(
            subject=STRUCTURE_SUBJECT,
            predicate=predicate,
            object=obj,
            category=STRUCTURE_CATEGORY,
            rule_name=STRUCTURE_RULE,
            base_weight=STRUCTURE_WEIGHTS[predicate],
            category_bonus=CATEGORY_BONUSES.get(STRUCTURE_CATEGORY, 0.0),
        )
        for predicate, obj in walk_structure(document.payload)
        if obj
    ]


# =============================================================================
# EXTRACTION
# =============================================================================

def extract_candidates(document: Document, catalogue: RuleCatalogue) -> ExtractionResult:
    """
    Apply every rule to one document.

    This function guarantees:
    - A failing rule is recorded as MalformedRule and the rest still run
    - Each normalized content appears at most once (first rule wins)
    """
    result = ExtractionResult(origin_id=document.origin_id)
    seen: set[str] = set()

    def add(candidate: Candidate) -> None:
        if candidate.key in seen:
            return
        seen.add(candidate.key)
        result.candidates.append(candidate)

    for rule in catalogue:
        try:
            matches = rule.find_matches(document.body)
        except MalformedRule as e:
            e.origin_id = document.origin_id
            logger.warning("Rule %s failed on %s: %s", rule.name, document.origin_id, e.reason)
            result.diagnostics.append(Diagnostic.from_error(e))
            continue

        for matched_text in matches:
            candidate = Candidate.from_rule(rule, matched_text)
            if candidate.object:
                add(candidate)

    for candidate in extract_structural(document):
        add(candidate)

    logger.debug(
        "Extracted %d candidates from %s", len(result.candidates), document.origin_id
    )
    return result
