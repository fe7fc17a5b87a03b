"""Migration run report generation.

This module renders a RunSummary as JSON and Markdown and saves both under
the report directory. Reports never contain passwords: account passwords
are generated and sent once, and are not part of any outcome.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from hub_migration.migration.orchestrator import RunSummary
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)

REPORT_VERSION = "1.0"

# Row-level entries shown per phase in the Markdown report
MAX_MARKDOWN_ROWS = 20


@dataclass
class RunReport:
    """Serializable view of one migration run."""

    summary: RunSummary
    command: str = "migrate"
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def status(self) -> str:
        return "completed" if self.summary.success else "completed_with_errors"

    def to_dict(self) -> dict[str, Any]:
        """Build the report as plain data."""
        summary = self.summary
        return {
            "report_version": REPORT_VERSION,
            "generated_at": self.generated_at.isoformat(),
            "command": self.command,
            "status": self.status,
            "started_at": summary.started_at.isoformat(),
            "finished_at": summary.finished_at.isoformat() if summary.finished_at else None,
            "duration_seconds": summary.duration_seconds,
            "total_written": summary.total_written,
            "tables": [
                {
                    "table": t.table,
                    "status": t.status.value,
                    "rows": t.rows,
                    "written": t.written,
                    "rejected": t.rejected,
                    "source": t.source,
                    "note": t.note,
                }
                for t in summary.tables
            ],
            "phases": [
                {
                    "phase": p.phase,
                    "ran": p.ran,
                    "note": p.note,
                    **p.counts(),
                    "outcomes": [
                        {
                            "row_index": o.row_index,
                            "status": o.status.value,
                            "key": o.key,
                            "reason": o.reason,
                        }
                        for o in p.outcomes
                    ],
                }
                for p in summary.phases
            ],
            "rejections": {
                table: [
                    {
                        "line_number": r.line_number,
                        "column": r.column,
                        "value": r.value,
                        "reason": r.reason,
                    }
                    for r in rejections
                ]
                for table, rejections in summary.rejections.items()
            },
            "fatal_errors": summary.fatal_errors,
        }

    def to_json(self) -> str:
        """Render the report as JSON."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def to_markdown(self) -> str:
        """Render the report as Markdown."""
        summary = self.summary
        lines = [
            "# Hub Migration Report",
            "",
            f"**Command:** `{self.command}`  ",
            f"**Generated:** {self.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}  ",
            f"**Status:** {self.status}  ",
            f"**Duration:** {self._format_duration(summary.duration_seconds)}  ",
            "",
        ]

        if summary.tables:
            lines.extend(
                [
                    "## Tables",
                    "",
                    "| Table | Status | Rows | Written | Rejected | Note |",
                    "|-------|--------|-----:|--------:|---------:|------|",
                ]
            )
            for t in summary.tables:
                lines.append(
                    f"| {t.table} | {t.status.value} | {t.rows:,} | {t.written:,} "
                    f"| {t.rejected:,} | {t.note} |"
                )
            lines.append("")

        if summary.phases:
            lines.extend(
                [
                    "## Identity Phases",
                    "",
                    "| Phase | Rows | Created | Matched | Written | Skipped | Dropped | Failed |",
                    "|-------|-----:|--------:|--------:|--------:|--------:|--------:|-------:|",
                ]
            )
            for p in summary.phases:
                if not p.ran:
                    lines.append(f"| {p.phase} | not run: {p.note} | | | | | | |")
                    continue
                lines.append(
                    f"| {p.phase} | {p.rows:,} | {p.created:,} | {p.matched:,} | {p.written:,} "
                    f"| {p.skipped:,} | {p.dropped:,} | {p.failed:,} |"
                )
            lines.append("")

            for p in summary.phases:
                if not p.outcomes:
                    continue
                lines.extend([f"### {p.phase}: row outcomes", ""])
                for o in p.outcomes[:MAX_MARKDOWN_ROWS]:
                    key = f" `{o.key}`" if o.key else ""
                    reason = f": {o.reason}" if o.reason else ""
                    lines.append(f"- row {o.row_index + 1}{key} {o.status.value}{reason}")
                if len(p.outcomes) > MAX_MARKDOWN_ROWS:
                    lines.append(f"- *... and {len(p.outcomes) - MAX_MARKDOWN_ROWS} more*")
                lines.append("")

        if summary.rejections:
            lines.extend(["## Rejected Rows", ""])
            for table, rejections in summary.rejections.items():
                for r in rejections[:MAX_MARKDOWN_ROWS]:
                    lines.append(f"- {table} line {r.line_number}, `{r.column}`: {r.reason}")
                if len(rejections) > MAX_MARKDOWN_ROWS:
                    lines.append(f"- *... and {len(rejections) - MAX_MARKDOWN_ROWS} more*")
            lines.append("")

        if summary.fatal_errors:
            lines.extend(["## Fatal Errors", ""])
            for idx, error in enumerate(summary.fatal_errors, 1):
                lines.extend(
                    [
                        f"### Error {idx}",
                        f"- **Unit:** {error['unit']}",
                        f"- **Collection:** {error['collection']}",
                        f"- **Committed before failure:** {error['committed']}",
                        f"- **Message:** {error['error']}",
                        "",
                    ]
                )

        return "\n".join(lines)

    def save(self, output_dir: str | Path) -> dict[str, str]:
        """Write JSON and Markdown reports.

        Args:
            output_dir: Directory to save reports

        Returns:
            Dictionary mapping format to file path
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        base_filename = f"migration_{self.generated_at.strftime('%Y%m%d_%H%M%S')}"
        json_path = output_path / f"{base_filename}.json"
        md_path = output_path / f"{base_filename}.md"

        json_path.write_text(self.to_json(), encoding="utf-8")
        md_path.write_text(self.to_markdown(), encoding="utf-8")

        files = {"json": str(json_path), "markdown": str(md_path)}
        logger.info("migration_reports_generated", files=files)
        return files

    @staticmethod
    def _format_duration(seconds: float | None) -> str:
        if seconds is None:
            return "N/A"

        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)

        if hours > 0:
            return f"{hours}h {minutes}m {secs}s"
        elif minutes > 0:
            return f"{minutes}m {secs}s"
        else:
            return f"{secs}s"


def generate_run_report(
    summary: RunSummary,
    output_dir: str | Path = "reports",
    command: str = "migrate",
) -> dict[str, str]:
    """Build and save the report of a run.

    Returns:
        Dictionary mapping format to file path
    """
    return RunReport(summary, command=command).save(output_dir)
