"""
Document Normalizer for Living Triples.

This module turns a document handle (origin id, declared kind, raw bytes)
into a Document with a plain-text body.

Design principles:
- Pure transform: the handle is read once, nothing is written back
- Structured documents get a strict JSON decode; on failure they are
  re-tagged as text and a DecodeError diagnostic is recorded
- Documents outside the size window, or unreadable, are skipped with a
  recorded reason and never abort the batch
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from ..domain import (
    DecodeError,
    Diagnostic,
    Document,
    DocumentKind,
    DiagnosticKind,
    SkippedDocument,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

DEFAULT_MIN_BYTES = 50
DEFAULT_MAX_BYTES = 10_000_000

# Extension to kind, used only when the caller declares no kind
EXTENSION_KINDS = {
    ".json": DocumentKind.STRUCTURED,
    ".js": DocumentKind.CODE,
    ".ts": DocumentKind.CODE,
    ".py": DocumentKind.CODE,
    ".md": DocumentKind.TEXT,
    ".txt": DocumentKind.TEXT,
}


# =============================================================================
# DOCUMENT HANDLES
# =============================================================================

@dataclass(frozen=True)
class DocumentHandle:
    """
    A reference to one input document.

    Content is either given inline (``content``) or fetched through
    ``loader``. A loader that raises marks the document skipped.
    """
    origin_id: str
    kind: Optional[DocumentKind] = None
    content: Optional[bytes] = None
    loader: Optional[Callable[[], bytes]] = field(default=None, compare=False)
    modified_at: Optional[datetime] = None

    def read(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.loader is not None:
            return self.loader()
        raise OSError(f"No content source for {self.origin_id}")

    @property
    def resolved_kind(self) -> DocumentKind:
        if self.kind is not None:
            return self.kind
        return infer_kind(self.origin_id)

    @classmethod
    def from_path(
        cls,
        path: os.PathLike | str,
        kind: Optional[DocumentKind] = None,
    ) -> DocumentHandle:
        """Build a lazily-read handle for a file on disk."""
        path = Path(path)
        try:
            modified_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except OSError:
            # Reported as unreadable when the loader runs
            modified_at = None
        return cls(
            origin_id=str(path),
            kind=kind,
            loader=path.read_bytes,
            modified_at=modified_at,
        )

    @classmethod
    def from_text(
        cls,
        origin_id: str,
        text: str,
        kind: Optional[DocumentKind] = None,
    ) -> DocumentHandle:
        return cls(origin_id=origin_id, kind=kind, content=text.encode("utf-8"))


def infer_kind(origin_id: str) -> DocumentKind:
    """Infer a document kind from the origin id's extension."""
    suffix = Path(origin_id).suffix.lower()
    return EXTENSION_KINDS.get(suffix, DocumentKind.UNKNOWN)


# =============================================================================
# DECODING
# =============================================================================

def decode_text(raw: bytes) -> str:
    """UTF-8 decode with replacement; never fails."""
    return raw.decode("utf-8", errors="replace")


def decode_structured(raw: bytes, origin_id: Optional[str] = None) -> Any:
    """
    Strict structured decode.

    Raises:
        DecodeError: If the bytes are not valid UTF-8 JSON
    """
    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Structured document is not valid UTF-8: {e}", origin_id)
    except json.JSONDecodeError as e:
        raise DecodeError(
            f"Structured document is not valid JSON (line {e.lineno}, column {e.colno}): {e.msg}",
            origin_id,
        )


# =============================================================================
# NORMALIZATION
# =============================================================================

@dataclass
class NormalizationResult:
    """Result of normalizing one handle."""
    success: bool
    document: Optional[Document] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


def check_size(
    size: int,
    origin_id: str,
    min_bytes: int = DEFAULT_MIN_BYTES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> None:
    """
    Accept only min_bytes < size < max_bytes; both bounds are exclusive.

    Raises:
        SkippedDocument: If size is at or outside either bound
    """
    if size <= min_bytes:
        raise SkippedDocument(
            f"Document is {size} bytes, must be more than the minimum of {min_bytes} bytes",
            origin_id,
        )
    if size >= max_bytes:
        raise SkippedDocument(
            f"Document is {size} bytes, must be less than the maximum of {max_bytes} bytes",
            origin_id,
        )


def normalize_document(
    handle: DocumentHandle,
    min_bytes: int = DEFAULT_MIN_BYTES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> NormalizationResult:
    """
    Normalize a single handle.

    This function guarantees:
    - It never raises for a bad document
    - Every skip and every text fallback has a Diagnostic
    """
    diagnostics: list[Diagnostic] = []

    try:
        try:
            raw = handle.read()
        except OSError as e:
            raise SkippedDocument(f"Document is unreadable: {e}", handle.origin_id)
        except Exception as e:
            raise SkippedDocument(f"Document loader failed: {e}", handle.origin_id)
        if not raw:
            raise SkippedDocument("Document is unreadable: no content", handle.origin_id)

        check_size(len(raw), handle.origin_id, min_bytes, max_bytes)
    except SkippedDocument as e:
        logger.warning("Skipping %s: %s", handle.origin_id, e.reason)
        return NormalizationResult(success=False, diagnostics=[Diagnostic.from_error(e)])

    kind = handle.resolved_kind
    payload = None

    if kind is DocumentKind.STRUCTURED:
        try:
            payload = decode_structured(raw, handle.origin_id)
        except DecodeError as e:
            logger.warning("Falling back to text for %s: %s", handle.origin_id, e.reason)
            diagnostics.append(Diagnostic.from_error(e))
            kind = DocumentKind.TEXT

    document = Document(
        origin_id=handle.origin_id,
        kind=kind,
        body=decode_text(raw),
        size_bytes=len(raw),
        modified_at=handle.modified_at,
        payload=payload,
    )
    logger.debug("Normalized %s as %s (%d bytes)", handle.origin_id, kind.value, len(raw))

    return NormalizationResult(success=True, document=document, diagnostics=diagnostics)


# =============================================================================
# BATCH NORMALIZATION
# =============================================================================

@dataclass
class BatchNormalizationResult:
    """Result of normalizing a list of handles."""
    total_handles: int
    documents: list[Document]
    diagnostics: list[Diagnostic]

    @property
    def acceptance_rate(self) -> float:
        if self.total_handles == 0:
            return 0.0
        return len(self.documents) / self.total_handles

    @property
    def skipped(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is DiagnosticKind.SKIPPED_DOCUMENT]


def normalize_documents(
    handles: list[DocumentHandle],
    min_bytes: int = DEFAULT_MIN_BYTES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> BatchNormalizationResult:
    """Normalize handles sequentially, in input order."""
    documents: list[Document] = []
    diagnostics: list[Diagnostic] = []

    for handle in handles:
        result = normalize_document(handle, min_bytes, max_bytes)
        diagnostics.extend(result.diagnostics)
        if result.success and result.document is not None:
            documents.append(result.document)

    logger.info("Normalized %d of %d documents", len(documents), len(handles))
    return BatchNormalizationResult(
        total_handles=len(handles),
        documents=documents,
        diagnostics=diagnostics,
    )
