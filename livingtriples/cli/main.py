"""
Living Triples CLI.

Commands:
    livingtriples run FILE...       — Run the pipeline over named files
    livingtriples merge REPORT...   — Merge previously written reports

The CLI never walks directories: every input file is named explicitly.
Exit status is 0 on success and 1 on a top-level failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..config import Settings, get_settings
from ..domain import NoDocumentsError, RuleCatalogueError
from ..enrichment.validator import KnowledgeValidator, ValidatorLoadError
from ..log import configure_logging
from ..merge.dedup import MergeResult
from ..report import ReportLoadError
from .pipeline import PipelineResult, merge_reports, run_paths

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_run_summary(result: PipelineResult) -> str:
    """Format the statistics block printed after a run."""
    meta = result.report.metadata
    lines = [
        "STATISTICS:",
        f"  Documents given:     {meta.documents_total}",
        f"  Documents processed: {meta.documents_processed}",
        f"  Documents skipped:   {meta.documents_skipped}",
        f"  Candidates:          {meta.candidates_extracted}",
        f"  Initial triples:     {meta.initial_triples}",
        f"  Surviving triples:   {meta.surviving_triples}",
        f"  Generations:         {len(result.evolution.passes)}",
        f"  Relationships:       {len(result.relationships)}",
        f"  System coherence:    {result.harmonics.system.coherence:.3f}",
    ]

    if result.diagnostics:
        lines.append("")
        lines.append("DIAGNOSTICS:")
        for diagnostic in result.diagnostics[:5]:
            origin = f" {diagnostic.origin_id}" if diagnostic.origin_id else ""
            lines.append(f"  • [{diagnostic.kind.value}]{origin}: {diagnostic.reason[:60]}")
        if len(result.diagnostics) > 5:
            lines.append(f"  ... and {len(result.diagnostics) - 5} more")

    return "\n".join(lines)


def format_merge_summary(result: MergeResult) -> str:
    lines = [
        "MERGE:",
        f"  Sources:        {len(result.input_sizes)}",
        f"  Input triples:  {result.total_input}",
        f"  Merged triples: {result.merged_size}",
        f"  Duplicate ids:  {len(result.duplicate_ids)}",
    ]
    for duplicate in result.duplicate_ids[:5]:
        lines.append(f"  • {duplicate.triple_id} x{duplicate.count}")
    if result.conflicts:
        lines.append(f"  Identity conflicts: {len(result.conflicts)}")
    return "\n".join(lines)


# =============================================================================
# CLI COMMANDS
# =============================================================================

def cmd_run(args: argparse.Namespace) -> int:
    """Run the pipeline and write the report."""
    settings: Settings = args.settings
    if args.generations is not None:
        try:
            settings = Settings(**{**settings.model_dump(), "generations": args.generations})
        except ValidationError as e:
            print(f"ERROR: {e}")
            return 1

    validator = None
    if args.validator:
        try:
            validator = KnowledgeValidator.from_json(args.validator)
        except ValidatorLoadError as e:
            print(f"ERROR: {e}")
            return 1

    print("Living Triples")
    print("=" * 50)

    try:
        result = run_paths(args.files, settings=settings, validator=validator)
    except (NoDocumentsError, RuleCatalogueError) as e:
        print("ERROR: Pipeline failed")
        print(f"Reason: {e}")
        return 1

    try:
        out = result.report.write(args.out)
    except OSError as e:
        print(f"ERROR: Cannot write report: {e}")
        return 1

    print(format_run_summary(result))
    print()
    print(f"Report written to {out}")
    return 0


def cmd_merge(args: argparse.Namespace) -> int:
    """Merge reports and write the merged triples."""
    try:
        result = merge_reports(args.reports)
    except ReportLoadError as e:
        print("ERROR: Merge failed")
        print(f"Reason: {e}")
        return 1

    payload = {
        "triples": [t.to_dict() for t in result.merged],
        "dedup": result.summary(),
    }
    try:
        Path(args.out).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as e:
        print(f"ERROR: Cannot write merged triples: {e}")
        return 1

    print(format_merge_summary(result))
    print()
    print(f"Merged triples written to {args.out}")
    return 0


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="livingtriples",
        description="Living Triples — Knowledge Triple Extraction & Evolutionary Scoring",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the pipeline over named files",
    )
    run_parser.add_argument("files", nargs="+", help="Input files (no directory walking)")
    run_parser.add_argument("--out", default="living-triples-report.json", help="Report path")
    run_parser.add_argument("--generations", type=int, default=None, help="Evolutionary passes")
    run_parser.add_argument("--validator", default=None, help="Validated-concepts JSON file")
    run_parser.set_defaults(func=cmd_run)

    # Merge command
    merge_parser = subparsers.add_parser(
        "merge",
        help="Merge previously written reports",
    )
    merge_parser.add_argument("reports", nargs="+", help="Report files to merge")
    merge_parser.add_argument("--out", default="living-triples-merged.json", help="Merged output path")
    merge_parser.set_defaults(func=cmd_merge)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        args.settings = get_settings()
    except ValidationError as e:
        print(f"ERROR: Invalid configuration\n{e}")
        return 1

    configure_logging(args.settings.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
