"""
Trust Phase: score catalog subjects and fill categorical fields by consensus.

For each subject in the working set:
- Computes confidence_score, trust_badge and confidence_breakdown
- Derives primary_genre / age_rating from enrichment signals when enough
  independent sources agree, never overwriting higher-confidence data
- Leaves ambiguous cases empty and lists them in the audit report

Usage:
    python score_phase.py --limit 200 --dry-run --verbose
    python score_phase.py --fields primary_genre --decade 1990 --report
    python score_phase.py --all --verify-images --report
"""

import argparse
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

load_dotenv(Path(__file__).parent / ".env")

from catalog_trust.config import load_engine_config
from catalog_trust.db import BatchFilter, SubjectRepository, close_connection
from catalog_trust.errors import RecordStoreUnavailableError
from catalog_trust.models.outcomes import TrustBadge
from catalog_trust.models.run import RunResult
from catalog_trust.scorers.source_registry import get_source_registry
from catalog_trust.services import ImageProbe, TrustRunCoordinator
from catalog_trust.utils import AuditReport, PipelineLogger, configure_global_logging

console = Console()

PHASE = "Trust"


def parse_fields(value: str) -> list[str]:
    """Parse a comma-separated field list."""
    fields = [item.strip() for item in value.split(",") if item.strip()]
    if not fields:
        raise argparse.ArgumentTypeError("expected at least one field name")
    return fields


def parse_decade(value: str) -> int:
    """Accept '1990', '1990s' or '90s'. Two-digit decades up to the current one mean the 2000s."""
    text = value.strip().lower().rstrip("s")
    if not text.isdigit():
        raise argparse.ArgumentTypeError(f"invalid decade '{value}'")
    year = int(text)
    if len(text) == 2:
        year += 2000 if 2000 + year <= datetime.now().year else 1900
    elif len(text) != 4:
        raise argparse.ArgumentTypeError(f"invalid decade '{value}'")
    if year % 10:
        raise argparse.ArgumentTypeError(f"decade must start on a multiple of ten, got {value}")
    return year


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score catalog subjects and fill categorical fields by consensus")
    parser.add_argument("--limit", type=int, help="Maximum subjects to process (default: from config)")
    parser.add_argument("--dry-run", action="store_true", help="Compute everything, write nothing")
    parser.add_argument("--verbose", action="store_true", help="Log one trace line per subject")
    parser.add_argument("--report", action="store_true", help="Write the Markdown/JSON audit report")
    parser.add_argument("--fields", type=parse_fields, help="Categorical fields to derive (e.g. age_rating)")
    parser.add_argument("--decade", type=parse_decade, help="Only subjects released in this decade (e.g. 1990s)")
    parser.add_argument("--director", type=str, help="Only subjects by this director")
    parser.add_argument("--actor", type=str, help="Only subjects whose lead actor matches")
    parser.add_argument("--language", type=str, help="Only subjects in this language")
    parser.add_argument("--all", action="store_true", help="Re-process subjects that are already scored")
    parser.add_argument("--workers", type=int, help="Parallel scoring workers (default: from config)")
    parser.add_argument("--verify-images", action="store_true", help="Probe poster URLs before scoring")
    parser.add_argument("--config", type=Path, help="Path to trust_engine.yaml")
    parser.add_argument("--registry", type=Path, help="Path to source_registry.yaml")
    parser.add_argument("--report-dir", type=Path, help="Audit report directory (default: data dir/reports)")
    parser.add_argument(
        "--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level (default: INFO)"
    )
    parser.add_argument("--log-file", type=str, help="Also log to this file under logs/")
    return parser


def display_summary(result: RunResult, logged: dict | None = None) -> None:
    """Print the run summary, with the run logger's tracked errors and warnings."""
    stats = result.stats
    logged = logged or {"total_errors": 0, "total_warnings": 0}
    mode = "[yellow]DRY RUN[/yellow]" if result.dry_run else "[green]EXECUTE[/green]"
    summary = (
        f"Mode: {mode}\n"
        f"Subjects read: {stats.total}\n"
        f"Written: {stats.written}  Unchanged: {stats.unchanged}  Errors: {stats.errors}\n"
        f"Needs manual review: {result.manual_review_count}\n"
        f"Logged errors: {logged['total_errors']}  Warnings: {logged['total_warnings']}\n"
        f"Duration: {result.duration_seconds:.1f}s"
    )
    console.print()
    console.print(Panel(summary, title="Trust Run Summary", border_style="blue"))

    table = Table(title="Outcomes")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")
    for label, count in stats.summary_rows():
        style = "red" if label == "failed-io" and count else ""
        table.add_row(label, f"[{style}]{count}[/{style}]" if style else str(count))
    console.print(table)

    badges = Table(title="Badges")
    badges.add_column("Badge", style="cyan")
    badges.add_column("Count", justify="right")
    for badge in TrustBadge:
        badges.add_row(badge.value, str(stats.badge_distribution.get(badge.value, 0)))
    console.print(badges)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    configure_global_logging(args.log_level, phase=PHASE)
    logger = PipelineLogger("catalog_trust.run", log_level=args.log_level, log_file=args.log_file, phase=PHASE)

    try:
        config = load_engine_config(args.config)
        if args.workers:
            config = replace(config, workers=args.workers)
        registry = get_source_registry(args.registry)
    except (OSError, ValueError) as e:
        logger.error("Invalid configuration", exception=e)
        return 2

    filters = BatchFilter(decade=args.decade, director=args.director, actor=args.actor, language=args.language)
    logger.info("Starting trust run", dry_run=args.dry_run, filters=filters.describe(), include_all=args.all)

    probe = None
    if args.verify_images:
        probe = ImageProbe(timeout=config.image_probe_timeout, max_workers=config.image_probe_workers)
    try:
        coordinator = TrustRunCoordinator(
            repository=SubjectRepository(rescore_below=config.rescore_below),
            registry=registry,
            config=config,
            fields=args.fields,
            dry_run=args.dry_run,
            verbose=args.verbose,
            image_probe=probe,
            run_logger=logger,
        )
        result = coordinator.run(limit=args.limit, filters=filters, include_all=args.all)
    except ValueError as e:
        logger.error("Invalid arguments", exception=e)
        return 2
    except RecordStoreUnavailableError as e:
        logger.error("Aborting run: record store unavailable", exception=e)
        return 2
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted - subjects written so far are kept; rerun to continue[/yellow]")
        return 130
    finally:
        if probe is not None:
            probe.close()
        close_connection()

    display_summary(result, logger.get_error_summary())

    if args.report:
        markdown_path, json_path = AuditReport(result, config).write(args.report_dir)
        console.print(f"\nReport: {markdown_path}\nJSON:   {json_path}")

    return 1 if result.stats.failed_io or result.stats.errors else 0


if __name__ == "__main__":
    sys.exit(main())
