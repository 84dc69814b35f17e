"""
Knowledge Validator for Living Triples.

The validator is fed externally (a JSON file or a list built in code); this
module never touches the network.

Validator file format:

    [
      {"concept": "golden ratio",
       "relatedConcepts": ["fibonacci", "phi"],
       "relevance": 0.85}
    ]

A triple object is validated when it and any concept (or related concept)
contain one another, case-insensitively.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ValidatorLoadError(Exception):
    """Raised when a validator file cannot be read or parsed."""
    pass


@dataclass(frozen=True)
class ValidatedConcept:
    concept: str
    related_concepts: tuple[str, ...] = ()
    relevance: float = 1.0

    def __post_init__(self):
        if not self.concept.strip():
            raise ValueError("validated concept cannot be empty")
        if not 0.0 <= self.relevance <= 1.0:
            raise ValueError(f"relevance {self.relevance} is outside [0, 1]")

    @property
    def terms(self) -> list[str]:
        return [t.lower() for t in (self.concept, *self.related_concepts) if t.strip()]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidatedConcept:
        return cls(
            concept=str(data["concept"]),
            related_concepts=tuple(str(c) for c in data.get("relatedConcepts", ())),
            relevance=float(data.get("relevance", 1.0)),
        )


@dataclass
class KnowledgeValidator:
    """Matches triple objects against a list of validated concepts."""
    entries: list[ValidatedConcept] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def match(self, text: str) -> Optional[ValidatedConcept]:
        """The first entry matching text, or None."""
        needle = text.lower().strip()
        if not needle:
            return None
        for entry in self.entries:
            for term in entry.terms:
                if term in needle or needle in term:
                    return entry
        return None

    def is_validated(self, text: str) -> bool:
        return self.match(text) is not None

    @classmethod
    def from_json(cls, path: Path | str) -> KnowledgeValidator:
        """
        Raises:
            ValidatorLoadError: If the file is unreadable or malformed
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ValidatorLoadError(f"Cannot read validator file {path}: {e}")
        except json.JSONDecodeError as e:
            raise ValidatorLoadError(f"Validator file {path} is not valid JSON: {e}")

        if not isinstance(data, list):
            raise ValidatorLoadError("Validator file must contain a JSON list")

        try:
            entries = [ValidatedConcept.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise ValidatorLoadError(f"Invalid validator entry: {e}")

        logger.info("Loaded %d validated concepts from %s", len(entries), path)
        return cls(entries=entries)
