"""
Pipeline Orchestrator for Living Triples.

Ties all stages together into a single execution flow.

Pipeline stages:
    1. Normalize, extract and annotate each document (parallel, per document)
    2. Fold per-document triples into one corpus (merge/dedup)
    3. Find cross-document relationships on the folded corpus
    4. Evolve the corpus for the configured number of generations
    5. Aggregate harmonic signatures on the survivors

Only a batch with no documents at all fails. Every other problem becomes a
Diagnostic on the report.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from ..config import Settings, get_settings
from ..corpus import Corpus
from ..domain import (
    CorpusEmpty,
    Diagnostic,
    NoDocumentsError,
    SkippedDocument,
    Triple,
    utc_now,
)
from ..enrichment.validator import KnowledgeValidator
from ..evolution.engine import EvolutionProfile, EvolutionResult, ensure_survivors, evolve
from ..extraction.extractor import extract_candidates
from ..extraction.rules import RuleCatalogue, load_catalogue
from ..graph.builder import (
    CrossDocumentRelationship,
    RelationshipGraph,
    build_graph,
    find_cross_document_relationships,
)
from ..harmonics.aggregator import HarmonicReport, aggregate
from ..ingestion.normalizer import DocumentHandle, normalize_document
from ..merge.dedup import MergeResult, fold_document_triples, merge_triple_sets
from ..report import RunMetadata, RunReport, load_report_triples
from ..scoring.fitness import AnnotatedTriple, FitnessBreakdown, annotate_all

logger = logging.getLogger(__name__)


# =============================================================================
# PER-DOCUMENT WORK
# =============================================================================

@dataclass
class DocumentOutcome:
    """Everything one worker produced for one document."""
    index: int
    origin_id: str
    processed: bool
    annotated: list[AnnotatedTriple] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    candidate_count: int = 0

    @property
    def triples(self) -> list[Triple]:
        return [a.triple for a in self.annotated]

    @classmethod
    def skipped(cls, index: int, origin_id: str, reason: str) -> DocumentOutcome:
        error = SkippedDocument(reason, origin_id)
        return cls(
            index=index,
            origin_id=origin_id,
            processed=False,
            diagnostics=[Diagnostic.from_error(error)],
        )


def process_document(
    index: int,
    handle: DocumentHandle,
    catalogue: RuleCatalogue,
    settings: Settings,
    validator: Optional[KnowledgeValidator] = None,
) -> DocumentOutcome:
    """Normalize, extract and annotate one document."""
    normalized = normalize_document(
        handle,
        min_bytes=settings.min_document_bytes,
        max_bytes=settings.max_document_bytes,
    )
    if not normalized.success or normalized.document is None:
        return DocumentOutcome(
            index=index,
            origin_id=handle.origin_id,
            processed=False,
            diagnostics=normalized.diagnostics,
        )

    document = normalized.document
    extraction = extract_candidates(document, catalogue)
    annotated = annotate_all(extraction.candidates, document.kind, document.origin_id, validator)

    return DocumentOutcome(
        index=index,
        origin_id=document.origin_id,
        processed=True,
        annotated=annotated,
        diagnostics=normalized.diagnostics + extraction.diagnostics,
        candidate_count=len(extraction.candidates),
    )


def outcome_from_future(future: Future, index: int, origin_id: str) -> DocumentOutcome:
    """The outcome of a finished worker; a worker that raised is recorded as skipped."""
    try:
        return future.result()
    except Exception as e:
        logger.error("Error processing %s: %s", origin_id, e)
        return DocumentOutcome.skipped(index, origin_id, f"Processing failed: {e}")


def process_documents(
    handles: list[DocumentHandle],
    catalogue: RuleCatalogue,
    settings: Settings,
    validator: Optional[KnowledgeValidator] = None,
) -> list[DocumentOutcome]:
    """
    Run process_document for every handle on a worker pool.

    Results come back in input order whatever order the workers finish in.
    When the batch deadline passes, unfinished documents are cancelled and
    reported as skipped.
    """
    outcomes: dict[int, DocumentOutcome] = {}
    deadline_passed = False
    executor = ThreadPoolExecutor(max_workers=settings.max_workers)

    def collect(future: Future, index: int) -> None:
        outcomes[index] = outcome_from_future(future, index, handles[index].origin_id)

    try:
        futures = {
            executor.submit(process_document, index, handle, catalogue, settings, validator): index
            for index, handle in enumerate(handles)
        }

        try:
            for future in as_completed(futures, timeout=settings.batch_deadline_seconds):
                collect(future, futures[future])
        except FuturesTimeout:
            deadline_passed = True
            logger.warning(
                "Batch deadline of %ss passed with %d documents unfinished",
                settings.batch_deadline_seconds, len(handles) - len(outcomes),
            )
            for future, index in futures.items():
                if index in outcomes:
                    continue
                if future.done() and not future.cancelled():
                    collect(future, index)
                    continue
                future.cancel()
                outcomes[index] = DocumentOutcome.skipped(
                    index, handles[index].origin_id, "Batch deadline exceeded"
                )
    finally:
        # A worker already running past the deadline cannot be interrupted;
        # its result is discarded and the batch does not wait for it
        executor.shutdown(wait=not deadline_passed, cancel_futures=True)

    return [outcomes[index] for index in range(len(handles))]


# =============================================================================
# PIPELINE RESULT
# =============================================================================

@dataclass
class PipelineResult:
    """
    Complete result of running the pipeline.

    Exposes:
    - The serializable report
    - The typed intermediate values (for inspection and tests)
    - Per-triple confidence breakdowns
    """
    report: RunReport
    initial_corpus: Corpus
    corpus: Corpus
    graph: RelationshipGraph
    evolution: EvolutionResult
    relationships: list[CrossDocumentRelationship]
    harmonics: HarmonicReport
    dedup: MergeResult
    outcomes: list[DocumentOutcome]
    breakdowns: dict[str, FitnessBreakdown] = field(default_factory=dict)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return self.report.diagnostics

    @property
    def surviving_triples(self) -> list[Triple]:
        return self.corpus.triples()

    def get_triple(self, triple_id: str) -> Optional[Triple]:
        return self.corpus.get(triple_id) or self.initial_corpus.get(triple_id)

    def explain(self, triple_id: str) -> Optional[str]:
        """Confidence breakdown for a triple, as text."""
        breakdown = self.breakdowns.get(triple_id)
        if breakdown is None:
            return None
        return breakdown.explain()


# =============================================================================
# PIPELINE EXECUTION
# =============================================================================

def default_profile(settings: Settings, catalogue: RuleCatalogue) -> EvolutionProfile:
    """Default profile with the configured threshold and the catalogue's high-value categories."""
    return EvolutionProfile(
        survival_threshold=settings.survival_threshold,
        high_value_categories=frozenset(r.category for r in catalogue if r.high_value),
    )


def run_pipeline(
    handles: list[DocumentHandle],
    settings: Optional[Settings] = None,
    catalogue: Optional[RuleCatalogue] = None,
    validator: Optional[KnowledgeValidator] = None,
    profile: Optional[EvolutionProfile] = None,
) -> PipelineResult:
    """
    Execute the full pipeline over a batch of document handles.

    Args:
        handles: Documents to process, in the order the report lists them
        settings: Explicit settings (cached environment settings if None)
        catalogue: Rule catalogue (loaded from settings.rules_path if None)
        validator: Optional knowledge validator
        profile: Evolution profile (default profile if None)

    Returns:
        PipelineResult with the report and all intermediate values

    Raises:
        NoDocumentsError: If handles is empty
    """
    if not handles:
        raise NoDocumentsError("No input documents were given")

    if settings is None:
        settings = get_settings()
    if catalogue is None:
        catalogue = load_catalogue(settings.rules_path)
    if profile is None:
        profile = default_profile(settings, catalogue)

    metadata = RunMetadata(
        documents_total=len(handles),
        generations=settings.generations,
        survival_threshold=profile.survival_threshold,
    )
    diagnostics: list[Diagnostic] = []
    logger.info("Starting run over %d documents with %d rules", len(handles), len(catalogue))

    # ==========================================================================
    # STAGE 1: Normalize, extract, annotate (per document)
    # ==========================================================================
    started = time.perf_counter()
    outcomes = process_documents(handles, catalogue, settings, validator)
    metadata.stage_seconds["documents"] = time.perf_counter() - started

    breakdowns: dict[str, FitnessBreakdown] = {}
    for outcome in outcomes:
        diagnostics.extend(outcome.diagnostics)
        for item in outcome.annotated:
            breakdowns.setdefault(item.triple.id, item.breakdown)

    processed = [o for o in outcomes if o.processed]
    metadata.documents_processed = len(processed)
    metadata.documents_skipped = len(outcomes) - len(processed)
    metadata.candidates_extracted = sum(o.candidate_count for o in processed)

    # ==========================================================================
    # STAGE 2: Fold per-document triples
    # ==========================================================================
    started = time.perf_counter()
    dedup = fold_document_triples([(o.origin_id, o.triples) for o in processed])
    initial_corpus = dedup.merged
    metadata.initial_triples = len(initial_corpus)
    metadata.stage_seconds["fold"] = time.perf_counter() - started

    # ==========================================================================
    # STAGE 3: Cross-document relationships (before any triple dies)
    # ==========================================================================
    started = time.perf_counter()
    relationships = find_cross_document_relationships(initial_corpus)
    metadata.stage_seconds["relationships"] = time.perf_counter() - started

    # ==========================================================================
    # STAGE 4: Evolution
    # ==========================================================================
    started = time.perf_counter()
    evolution = evolve(initial_corpus, settings.generations, profile)
    corpus = evolution.corpus
    metadata.surviving_triples = len(corpus)
    metadata.stage_seconds["evolution"] = time.perf_counter() - started

    try:
        ensure_survivors(corpus)
    except CorpusEmpty as e:
        logger.warning("%s; emitting an empty report", e.reason)
        diagnostics.append(Diagnostic.from_error(e))

    # ==========================================================================
    # STAGE 5: Harmonics on the survivors
    # ==========================================================================
    started = time.perf_counter()
    graph = build_graph(corpus)
    harmonics = aggregate(corpus, graph)
    metadata.stage_seconds["aggregation"] = time.perf_counter() - started

    metadata.finished_at = utc_now()

    report = RunReport(
        metadata=metadata,
        triples=corpus.triples(),
        relationships=[r.to_dict() for r in relationships],
        harmonics=harmonics.to_list(),
        generations=[p.to_dict() for p in evolution.passes],
        diagnostics=diagnostics,
        dedup=dedup.summary(),
    )
    logger.info(
        "Run finished: %d of %d triples survived, %d diagnostics",
        len(corpus), len(initial_corpus), len(diagnostics),
    )

    return PipelineResult(
        report=report,
        initial_corpus=initial_corpus,
        corpus=corpus,
        graph=graph,
        evolution=evolution,
        relationships=relationships,
        harmonics=harmonics,
        dedup=dedup,
        outcomes=outcomes,
        breakdowns=breakdowns,
    )


def run_paths(
    paths: Iterable[Path | str],
    settings: Optional[Settings] = None,
    validator: Optional[KnowledgeValidator] = None,
) -> PipelineResult:
    """Run the pipeline over named files; directories are not walked."""
    handles = [DocumentHandle.from_path(path) for path in paths]
    return run_pipeline(handles, settings=settings, validator=validator)


def merge_reports(paths: Iterable[Path | str]) -> MergeResult:
    """Merge the triples of previously written reports."""
    return merge_triple_sets((str(path), load_report_triples(path)) for path in paths)
