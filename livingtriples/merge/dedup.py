"""
Merge/Dedup Service for Living Triples.

Given labelled triple sets (one per document inside a run, or one per
report file across runs), this module produces:

1. duplicate ids, with occurrence counts per source
2. duplicate normalized (subject, predicate, object) contents, checked
   independently of the ids as a consistency guard
3. a merged corpus with one representative per id

Representative selection: the occurrence with the highest survival
fitness, first seen on ties. Its ``supporting_origins`` becomes the union
across every occurrence.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

from ..corpus import Corpus
from ..domain import Triple
from ..identity import content_key

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class DuplicateId:
    """An id that occurred more than once across the inputs."""
    triple_id: str
    count: int
    per_source: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.triple_id, "count": self.count, "perSource": dict(self.per_source)}


@dataclass(frozen=True)
class DuplicateContent:
    """A normalized content seen more than once, with the ids it carried."""
    content: str
    count: int
    triple_ids: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "count": self.count, "ids": list(self.triple_ids)}


@dataclass(frozen=True)
class IdentityConflict:
    """
    Two ids for one content, or two contents for one id.

    Either means an input was produced with a different identity scheme or
    was edited by hand.
    """
    reason: str
    triple_ids: tuple[str, ...]
    contents: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "ids": list(self.triple_ids),
            "contents": list(self.contents),
        }


@dataclass
class MergeResult:
    merged: Corpus
    input_sizes: dict[str, int]
    duplicate_ids: list[DuplicateId] = field(default_factory=list)
    duplicate_contents: list[DuplicateContent] = field(default_factory=list)
    conflicts: list[IdentityConflict] = field(default_factory=list)

    @property
    def total_input(self) -> int:
        return sum(self.input_sizes.values())

    @property
    def merged_size(self) -> int:
        return len(self.merged)

    @property
    def consistent(self) -> bool:
        return not self.conflicts

    def count_for(self, triple_id: str) -> int:
        """Occurrences of triple_id across all inputs (0 if absent)."""
        for duplicate in self.duplicate_ids:
            if duplicate.triple_id == triple_id:
                return duplicate.count
        return 1 if triple_id in self.merged else 0

    def summary(self) -> dict[str, Any]:
        return {
            "inputSizes": dict(self.input_sizes),
            "totalInput": self.total_input,
            "mergedSize": self.merged_size,
            "duplicateIds": [d.to_dict() for d in self.duplicate_ids],
            "duplicateContents": [d.to_dict() for d in self.duplicate_contents],
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


# =============================================================================
# MERGE
# =============================================================================

def _pick_representative(current: Triple, candidate: Triple) -> Triple:
    """Higher fitness wins; the earlier occurrence wins ties."""
    if candidate.survival_fitness > current.survival_fitness:
        return candidate
    return current


def merge_triple_sets(sources: Iterable[tuple[str, Iterable[Triple]]]) -> MergeResult:
    """
    Merge labelled triple sets.

    Args:
        sources: (label, triples) pairs; labels are origin ids inside a
            run and report paths across runs

    Returns:
        MergeResult whose corpus holds one triple per id, in first-seen order
    """
    representatives: dict[str, Triple] = {}
    origins: dict[str, set[str]] = defaultdict(set)
    id_counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    content_ids: dict[str, list[str]] = defaultdict(list)
    id_contents: dict[str, set[str]] = defaultdict(set)
    input_sizes: dict[str, int] = {}

    for label, triples in sources:
        size = 0
        for triple in triples:
            size += 1
            key = content_key(triple.subject, triple.predicate, triple.object)

            id_counts[triple.id][label] += 1
            content_ids[key].append(triple.id)
            id_contents[triple.id].add(key)
            origins[triple.id].update(triple.supporting_origins)

            if triple.id in representatives:
                representatives[triple.id] = _pick_representative(
                    representatives[triple.id], triple
                )
            else:
                representatives[triple.id] = triple
        input_sizes[label] = input_sizes.get(label, 0) + size

    merged = Corpus(
        replace(triple, supporting_origins=tuple(sorted(origins[triple_id])))
        for triple_id, triple in representatives.items()
    )

    duplicate_ids = [
        DuplicateId(
            triple_id=triple_id,
            count=sum(per_source.values()),
            per_source=dict(per_source),
        )
        for triple_id, per_source in id_counts.items()
        if sum(per_source.values()) > 1
    ]
    duplicate_ids.sort(key=lambda d: (-d.count, d.triple_id))

    duplicate_contents = [
        DuplicateContent(content=key, count=len(ids), triple_ids=tuple(sorted(set(ids))))
        for key, ids in content_ids.items()
        if len(ids) > 1
    ]
    duplicate_contents.sort(key=lambda d: (-d.count, d.content))

    conflicts = [
        IdentityConflict(
            reason="one content carries several ids",
            triple_ids=tuple(sorted(set(ids))),
            contents=(key,),
        )
        for key, ids in content_ids.items()
        if len(set(ids)) > 1
    ]
    conflicts.extend(
        IdentityConflict(
            reason="one id carries several contents",
            triple_ids=(triple_id,),
            contents=tuple(sorted(keys)),
        )
        for triple_id, keys in id_contents.items()
        if len(keys) > 1
    )

    for conflict in conflicts:
        logger.warning("Identity conflict (%s): %s", conflict.reason, ", ".join(conflict.triple_ids))

    result = MergeResult(
        merged=merged,
        input_sizes=input_sizes,
        duplicate_ids=duplicate_ids,
        duplicate_contents=duplicate_contents,
        conflicts=conflicts,
    )
    logger.info(
        "Merged %d triples from %d sources into %d (%d duplicate ids)",
        result.total_input, len(input_sizes), result.merged_size, len(duplicate_ids),
    )
    return result


def fold_document_triples(per_document: list[tuple[str, list[Triple]]]) -> MergeResult:
    """Fold per-document triple lists into one corpus for a run."""
    return merge_triple_sets(per_document)
