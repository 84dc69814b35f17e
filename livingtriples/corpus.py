"""
The Corpus: an immutable id -> Triple snapshot.

Stages never mutate a corpus. The evolution engine and the merge service
return a new Corpus; every other stage only reads one.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

from .domain import Triple


class DuplicateTripleError(ValueError):
    """Raised when a corpus is built from triples sharing an id."""
    pass


class Corpus:
    """
    A read-only mapping of triple id to Triple.

    Iteration order is insertion order, so a corpus built from an ordered
    list reproduces that order in reports.
    """

    __slots__ = ("_triples",)

    def __init__(self, triples: Iterable[Triple] = ()):
        mapping: dict[str, Triple] = {}
        for triple in triples:
            if triple.id in mapping:
                raise DuplicateTripleError(
                    f"Triple id {triple.id} appears more than once; fold duplicates first"
                )
            mapping[triple.id] = triple
        self._triples: Mapping[str, Triple] = MappingProxyType(mapping)

    def __len__(self) -> int:
        return len(self._triples)

    def __iter__(self) -> Iterator[Triple]:
        return iter(self._triples.values())

    def __contains__(self, triple_id: object) -> bool:
        return triple_id in self._triples

    def __bool__(self) -> bool:
        return bool(self._triples)

    def __repr__(self) -> str:
        return f"Corpus({len(self)} triples)"

    def get(self, triple_id: str) -> Optional[Triple]:
        return self._triples.get(triple_id)

    def ids(self) -> list[str]:
        return list(self._triples)

    def triples(self) -> list[Triple]:
        return list(self._triples.values())

    def as_mapping(self) -> Mapping[str, Triple]:
        return self._triples

    def mean_fitness(self) -> float:
        if not self._triples:
            return 0.0
        return sum(t.survival_fitness for t in self) / len(self)

    def replaced_by(self, triples: Iterable[Triple]) -> Corpus:
        """Whole-set replacement: a new corpus, this one untouched."""
        return Corpus(triples)
