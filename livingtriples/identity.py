"""
Content identity for triples.

Two triples with the same normalized (subject, predicate, object) get the
same id, wherever and whenever they were extracted.
"""

from __future__ import annotations

import hashlib
import re

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[\W_]+")


def normalize_component(text: str) -> str:
    """Casefold and collapse whitespace."""
    return _WHITESPACE.sub(" ", text.casefold()).strip()


def normalize_content(subject: str, predicate: str, obj: str) -> tuple[str, str, str]:
    return (
        normalize_component(subject),
        normalize_component(predicate),
        normalize_component(obj),
    )


def content_key(subject: str, predicate: str, obj: str) -> str:
    """The normalized ``subject|predicate|object`` string."""
    return "|".join(normalize_content(subject, predicate, obj))


def create_triple_id(subject: str, predicate: str, obj: str) -> str:
    """Generate the deterministic triple id from normalized content."""
    digest = hashlib.sha256(content_key(subject, predicate, obj).encode("utf-8"))
    return f"tri_{digest.hexdigest()[:16]}"


def transform_object(matched_text: str) -> str:
    """
    Derive a triple object from matched text.

    e.g., "Golden-Ratio" -> "golden ratio"
    """
    return _PUNCTUATION.sub(" ", matched_text.lower()).strip()
