"""
Run Report for Living Triples.

One report per run: metadata, surviving triples, cross-document
relationships, harmonic signatures, per-generation statistics, diagnostics
and the in-run dedup summary. Serialized as JSON with camelCase field
names so independent runs can be merged later.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .domain import Diagnostic, DiagnosticKind, Triple, utc_now

logger = logging.getLogger(__name__)

REPORT_FORMAT_VERSION = 1


class ReportLoadError(Exception):
    """Raised when a report file cannot be read or is not a run report."""
    pass


@dataclass
class RunMetadata:
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    documents_total: int = 0
    documents_processed: int = 0
    documents_skipped: int = 0
    candidates_extracted: int = 0
    initial_triples: int = 0
    surviving_triples: int = 0
    generations: int = 0
    survival_threshold: float = 0.0
    stage_seconds: dict[str, float] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "formatVersion": REPORT_FORMAT_VERSION,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "durationSeconds": self.duration_seconds,
            "documentsTotal": self.documents_total,
            "documentsProcessed": self.documents_processed,
            "documentsSkipped": self.documents_skipped,
            "candidatesExtracted": self.candidates_extracted,
            "initialTriples": self.initial_triples,
            "survivingTriples": self.surviving_triples,
            "generations": self.generations,
            "survivalThreshold": self.survival_threshold,
            "stageSeconds": dict(self.stage_seconds),
        }


@dataclass
class RunReport:
    """
    Complete, serializable output of one run.

    Sections other than ``triples`` are plain dicts/lists already in their
    JSON shape; the typed objects live on PipelineResult.
    """
    metadata: RunMetadata
    triples: list[Triple]
    relationships: list[dict[str, Any]] = field(default_factory=list)
    harmonics: list[dict[str, Any]] = field(default_factory=list)
    generations: list[dict[str, Any]] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    dedup: dict[str, Any] = field(default_factory=dict)

    def diagnostics_of(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "triples": [t.to_dict() for t in self.triples],
            "relationships": list(self.relationships),
            "harmonics": list(self.harmonics),
            "generations": list(self.generations),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "dedup": dict(self.dedup),
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def write(self, path: Path | str) -> Path:
        path = Path(path)
        path.write_text(self.to_json(), encoding="utf-8")
        logger.info("Wrote report with %d triples to %s", len(self.triples), path)
        return path


def load_report_triples(path: Path | str) -> list[Triple]:
    """
    Read the triples section of a previously written report.

    A bare JSON list of triple objects is accepted too.

    Raises:
        ReportLoadError: If the file is unreadable or malformed
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ReportLoadError(f"Cannot read report {path}: {e}")
    except json.JSONDecodeError as e:
        raise ReportLoadError(f"Report {path} is not valid JSON: {e}")

    entries = data.get("triples") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ReportLoadError(f"Report {path} has no triples list")

    try:
        return [Triple.from_dict(entry) for entry in entries]
    except (KeyError, TypeError, ValueError) as e:
        raise ReportLoadError(f"Report {path} has an invalid triple: {e}")
