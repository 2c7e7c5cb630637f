"""
Audit report for trust scoring runs.

Generates, per run:
- Summary table of outcomes plus the manual-review count
- Badge distribution
- The live confidence thresholds
- Per-field tables of cases left null, with candidates, sources and weights
- A sample of accepted classifications
- Fixed known limitations

Written as Markdown with a JSON export next to it (same timestamp stem).
The manual-review count always equals the number of review rows.
"""

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Optional

from .. import constants
from ..config import TrustEngineConfig, get_report_dir
from ..models.outcomes import TrustBadge
from ..models.run import RunResult

logger = logging.getLogger(__name__)

KNOWN_LIMITATIONS = [
    "Signals are only as good as the enrichment passes that produce them; the engine does not re-check sources.",
    "Subjects without genres or synopsis text produce few signals, so their categorical fields often stay empty.",
    "Values set upstream without a recorded tier are treated as authoritative and are never re-derived.",
    "Rating alignment needs at least two independent ratings and is skipped otherwise.",
    "Close calls between similar genres (e.g. Action vs Drama) are common and are left for manual review.",
]


def _cell(value: Any) -> str:
    """Render a Markdown table cell."""
    if value is None or value == "":
        return "-"
    return str(value).replace("|", "\\|").replace("\n", " ")


def _field_title(field: str) -> str:
    return field.replace("_", " ").title()


class AuditReport:
    """Builds the audit document for one run."""

    def __init__(
        self,
        result: RunResult,
        config: Optional[TrustEngineConfig] = None,
        max_rows_per_field: Optional[int] = None,
        sample_size: int = constants.REPORT_SAMPLE_SIZE,
    ):
        self.result = result
        self.config = config or TrustEngineConfig()
        self.max_rows_per_field = max_rows_per_field
        self.sample_size = sample_size

    @property
    def stem(self) -> str:
        return f"trust-audit-{self.result.as_of.strftime('%Y%m%dT%H%M%SZ')}"

    def threshold_lines(self) -> list[str]:
        cfg = self.config
        lines = [
            f"- Consensus threshold: leading candidate needs cumulative weight >= {cfg.consensus_threshold:.2f}",
            f"- Ambiguity margin: leader must beat the runner-up by >= {cfg.ambiguity_margin:.2f}",
            f"- High tier: {cfg.high_tier_min_tier1}+ tier-1 sources, or 1 tier-1 source among 2+ sources",
            f"- Medium tier: exactly 1 tier-1 source, or {cfg.medium_tier_min_tier2}+ tier-2 sources",
            f"- Verified badge: score >= {cfg.verified_badge_threshold:.2f} "
            f"with {cfg.verified_min_tier1_sources}+ tier-1 sources",
            f"- Badge cutoffs: high >= {cfg.high_badge_threshold:.2f}, medium >= {cfg.medium_badge_threshold:.2f}, "
            f"low >= {cfg.low_badge_threshold:.2f}",
            f"- Score bounds: [{cfg.confidence_floor:.2f}, {cfg.confidence_ceiling:.2f}]",
            "- Never overwrites a set value with a lower or equal tier, never replaces a value with null",
        ]
        for field, order in cfg.ordered_fields.items():
            lines.append(f"- Never downgrades {field} ({' < '.join(order)})")
        return lines

    def render_markdown(self) -> str:
        result = self.result
        stats = result.stats

        lines = [
            "# Trust Scoring Audit Report",
            "",
            f"**Generated:** {result.as_of.isoformat()}",
            "",
            f"**Mode:** {'DRY RUN' if result.dry_run else 'EXECUTE'}",
            "",
            f"**Fields:** {', '.join(result.fields) or '-'}",
            "",
            "## Summary",
            "",
            "| Outcome | Count |",
            "|---------|-------|",
            f"| total | {stats.total} |",
        ]
        lines.extend(f"| {label} | {count} |" for label, count in stats.summary_rows())
        lines.extend(
            [
                f"| unchanged | {stats.unchanged} |",
                f"| errors | {stats.errors} |",
                f"| **Needs Manual Review** | **{result.manual_review_count}** |",
                "",
                "## Badge Distribution",
                "",
                "| Badge | Count |",
                "|-------|-------|",
            ]
        )
        lines.extend(f"| {badge.value} | {stats.badge_distribution.get(badge.value, 0)} |" for badge in TrustBadge)
        lines.extend(["", "## Confidence Thresholds", ""])
        lines.extend(self.threshold_lines())
        lines.append("")

        if result.review_cases:
            by_field = defaultdict(list)
            for case in result.review_cases:
                by_field[case.field].append(case)

            lines.extend([f"## Cases Needing Manual Review ({result.manual_review_count})", ""])
            for field in sorted(by_field):
                cases = by_field[field]
                lines.extend(
                    [
                        f"### {_field_title(field)} ({len(cases)})",
                        "",
                        "| Subject | Year | Outcome | Reason | Candidates |",
                        "|---------|------|---------|--------|------------|",
                    ]
                )
                shown = cases if self.max_rows_per_field is None else cases[: self.max_rows_per_field]
                for case in shown:
                    candidates = "; ".join(c.describe() for c in case.candidates)
                    lines.append(
                        f"| {_cell(case.title)} | {_cell(case.year)} | {case.outcome.value} | "
                        f"{_cell(case.reason)} | {_cell(candidates)} |"
                    )
                if len(shown) < len(cases):
                    lines.extend(["", f"*... and {len(cases) - len(shown)} more (see JSON export)*"])
                lines.append("")

        sample = result.filled[: self.sample_size]
        if sample:
            lines.extend(
                [
                    "## Sample Successful Classifications",
                    "",
                    "| Subject | Year | Field | Value | Tier | Sources |",
                    "|---------|------|-------|-------|------|---------|",
                ]
            )
            for item in sample:
                lines.append(
                    f"| {_cell(item.title)} | {_cell(item.year)} | {item.field} | {_cell(item.value)} | "
                    f"{item.tier.value} | {_cell(', '.join(item.sources))} |"
                )
            lines.append("")

        lines.extend(["## Known Limitations", ""])
        lines.extend(f"{i}. {text}" for i, text in enumerate(KNOWN_LIMITATIONS, start=1))
        lines.append("")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        result = self.result
        return {
            "generated": result.as_of.isoformat(),
            "dry_run": result.dry_run,
            "fields": result.fields,
            "duration_seconds": round(result.duration_seconds, 2),
            "summary": result.stats.to_dict(),
            "manual_review_count": result.manual_review_count,
            "thresholds": {
                "consensus_threshold": self.config.consensus_threshold,
                "ambiguity_margin": self.config.ambiguity_margin,
                "verified_badge_threshold": self.config.verified_badge_threshold,
                "high_badge_threshold": self.config.high_badge_threshold,
                "medium_badge_threshold": self.config.medium_badge_threshold,
                "low_badge_threshold": self.config.low_badge_threshold,
            },
            "review_cases": [case.to_dict() for case in result.review_cases],
            "filled": [item.to_dict() for item in result.filled],
            "known_limitations": KNOWN_LIMITATIONS,
        }

    def write(self, report_dir: Optional[Path] = None) -> tuple[Path, Path]:
        """
        Write the Markdown report and its JSON export.

        Args:
            report_dir: Output directory (default: get_report_dir())

        Returns:
            (markdown_path, json_path)
        """
        report_dir = Path(report_dir) if report_dir else get_report_dir()
        report_dir.mkdir(parents=True, exist_ok=True)

        markdown_path = report_dir / f"{self.stem}.md"
        json_path = report_dir / f"{self.stem}.json"
        markdown_path.write_text(self.render_markdown())
        with open(json_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Audit report written to {markdown_path} ({self.result.manual_review_count} cases for review)")
        return markdown_path, json_path
