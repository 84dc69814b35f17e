"""
Core Domain Objects for Living Triples.

All domain objects are immutable values. Stages never edit a triple in
place; they build a new one with ``dataclasses.replace``.

Domain Objects:
    Document        — A normalized input document (body plus metadata)
    Triple          — A subject/predicate/object assertion with fitness
    ConnectionEdge  — A derived link between two triples
    Diagnostic      — A recoverable problem recorded for the report
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


# =============================================================================
# DIAGNOSTIC SYSTEM
# =============================================================================

class DiagnosticKind(Enum):
    """
    Recoverable error taxonomy.

    None of these abort a batch:
    DECODE_ERROR:     structured decode failed, document read as text
    SKIPPED_DOCUMENT: too small, too large, unreadable or past the deadline
    MALFORMED_RULE:   a rule failed for one document; other rules continue
    CORPUS_EMPTY:     no triple survived; the report is still emitted
    """
    DECODE_ERROR = "decode_error"
    SKIPPED_DOCUMENT = "skipped_document"
    MALFORMED_RULE = "malformed_rule"
    CORPUS_EMPTY = "corpus_empty"


class PipelineWarning(Exception):
    """Raised inside a stage for a recoverable, per-item problem."""

    kind: DiagnosticKind = DiagnosticKind.SKIPPED_DOCUMENT

    def __init__(
        self,
        reason: str,
        origin_id: Optional[str] = None,
        rule: Optional[str] = None,
    ):
        self.reason = reason
        self.origin_id = origin_id
        self.rule = rule
        super().__init__(f"[{self.kind.value}] {reason}")


class DecodeError(PipelineWarning):
    kind = DiagnosticKind.DECODE_ERROR


class SkippedDocument(PipelineWarning):
    kind = DiagnosticKind.SKIPPED_DOCUMENT


class MalformedRule(PipelineWarning):
    kind = DiagnosticKind.MALFORMED_RULE


class CorpusEmpty(PipelineWarning):
    kind = DiagnosticKind.CORPUS_EMPTY


class NoDocumentsError(Exception):
    """Raised when a batch has no input documents at all."""
    pass


class RuleCatalogueError(Exception):
    """Raised when a rule catalogue file cannot be loaded or validated."""
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Diagnostic:
    """
    A recoverable problem with an auditable reason.

    Diagnostics are attached to the run report. Logging a problem is never
    a substitute for recording it here.
    """
    kind: DiagnosticKind
    reason: str
    origin_id: Optional[str] = None
    rule: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def from_error(
        cls,
        error: PipelineWarning,
        timestamp: Optional[datetime] = None,
    ) -> Diagnostic:
        """Create a Diagnostic from a PipelineWarning."""
        if timestamp is None:
            timestamp = utc_now()

        return cls(
            kind=error.kind,
            reason=error.reason,
            origin_id=error.origin_id,
            rule=error.rule,
            timestamp=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "reason": self.reason,
            "originId": self.origin_id,
            "rule": self.rule,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Diagnostic:
        return cls(
            kind=DiagnosticKind(data["kind"]),
            reason=data.get("reason", ""),
            origin_id=data.get("originId"),
            rule=data.get("rule"),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


# =============================================================================
# DOCUMENT
# =============================================================================

class DocumentKind(Enum):
    """Declared or inferred document kind, dispatched explicitly."""
    TEXT = "text"
    STRUCTURED = "structured"
    CODE = "code"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Document:
    """
    A normalized document.

    ``payload`` holds the strictly decoded structure for STRUCTURED
    documents and is None otherwise. A structured document that failed to
    decode has already been re-tagged as TEXT by the normalizer.
    """
    origin_id: str
    kind: DocumentKind
    body: str
    size_bytes: int
    modified_at: Optional[datetime] = None
    payload: Any = None

    def __post_init__(self):
        if not self.origin_id:
            raise ValueError("origin_id is required for document provenance")
        if self.size_bytes < 0:
            raise ValueError("size_bytes cannot be negative")


# =============================================================================
# TRIPLE
# =============================================================================

def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class Triple:
    """
    A subject/predicate/object assertion.

    Invariants:
    - ``id`` is derived from the normalized content (see identity.py)
    - ``confidence`` and ``survival_fitness`` are in [0, 1]
    - ``generation`` is never negative
    - ``supporting_origins`` always contains ``origin_id``
    """
    id: str
    subject: str
    predicate: str
    object: str
    confidence: float
    category: str
    origin_id: str
    extracted_at: datetime
    survival_fitness: float
    generation: int = 0
    web_validated: bool = False
    supporting_origins: tuple[str, ...] = ()
    connections: int = 0

    def __post_init__(self):
        if not self.id:
            raise ValueError("triple id is required")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence {self.confidence} is outside [0, 1]")
        if not 0.0 <= self.survival_fitness <= 1.0:
            raise ValueError(
                f"survival_fitness {self.survival_fitness} is outside [0, 1]"
            )
        if self.generation < 0:
            raise ValueError("generation cannot be negative")

        origins = set(self.supporting_origins)
        origins.add(self.origin_id)
        object.__setattr__(self, "supporting_origins", tuple(sorted(origins)))

    @property
    def origin_count(self) -> int:
        return len(self.supporting_origins)

    def with_fitness(self, fitness: float) -> Triple:
        return replace(self, survival_fitness=clamp_unit(fitness))

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the report field names."""
        return {
            "id": self.id,
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object,
            "confidence": self.confidence,
            "category": self.category,
            "originId": self.origin_id,
            "extractedAt": self.extracted_at.isoformat(),
            "survivalFitness": self.survival_fitness,
            "generation": self.generation,
            "webValidated": self.web_validated,
            "supportingOrigins": list(self.supporting_origins),
            "connections": self.connections,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Triple:
        """
        Rebuild a triple from a report entry.

        Scores are clamped on the way in so hand-edited or foreign reports
        cannot break the invariants.
        """
        confidence = clamp_unit(data.get("confidence", 0.0))
        return cls(
            id=data["id"],
            subject=data["subject"],
            predicate=data["predicate"],
            object=data["object"],
            confidence=confidence,
            category=data.get("category", "unknown"),
            origin_id=data["originId"],
            extracted_at=_parse_timestamp(data.get("extractedAt")),
            survival_fitness=clamp_unit(data.get("survivalFitness", confidence)),
            generation=max(0, int(data.get("generation", 0))),
            web_validated=bool(data.get("webValidated", False)),
            supporting_origins=tuple(data.get("supportingOrigins") or ()),
            connections=int(data.get("connections", 0)),
        )


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    return datetime.fromisoformat(value)


# =============================================================================
# CONNECTION EDGE
# =============================================================================

class ConnectionBasis(Enum):
    """
    Why two triples are linked.

    Only the first three bases count as connections during evolution.
    CATEGORY_MATCH is produced for graph export on request.
    """
    SHARED_SUBJECT = "shared_subject"
    SHARED_OBJECT = "shared_object"
    SUBJECT_EQUALS_OBJECT = "subject_equals_object"
    CATEGORY_MATCH = "category_match"


@dataclass(frozen=True)
class ConnectionEdge:
    """An undirected edge; ``triple_id_a`` sorts before ``triple_id_b``."""
    triple_id_a: str
    triple_id_b: str
    basis: ConnectionBasis

    def to_dict(self) -> dict[str, str]:
        return {
            "tripleIdA": self.triple_id_a,
            "tripleIdB": self.triple_id_b,
            "basis": self.basis.value,
        }
