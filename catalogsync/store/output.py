"""Report output: console tables, markdown summary and CI step summary."""

import logging
import os
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..sync.models import RunReport, VersionReport

console = Console()
logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "METADATA_UPDATE_SUMMARY.md"
STEP_SUMMARY_ENV = "GITHUB_STEP_SUMMARY"


def _pct(value: float) -> str:
    return f"{value:.1f}%"


class ReportGenerator:
    """Render run reports for humans and for CI."""

    def __init__(self, output: Console | None = None):
        self.console = output or console

    def metrics_rows(self, report: RunReport) -> list[tuple[str, int, str]]:
        s = report.summary()
        return [
            ("Total files", s["total"], "100%"),
            ("Updated", s["updated"], _pct(s["updated_percent"])),
            ("Star count changed", s["star_changes"], f"{_pct(s['star_changes_percent'])} of updated"),
            ("Version changed", s["version_changes"], f"{_pct(s['version_changes_percent'])} of updated"),
            ("Skipped (no source / invalid URL)", s["skipped"], _pct(s["skipped_percent"])),
            ("Fetch failed", s["failed"], _pct(s["failed_percent"])),
            ("Rate limited", s["rate_limited"], _pct(s["rate_limited_percent"])),
        ]

    def print_report(self, report: RunReport) -> None:
        """Print key metrics and the detailed change table."""
        s = report.summary()
        self.console.print(
            f"\n[bold]{report.title}[/bold]\n"
            f"Updated {s['updated']} repositories. {s['star_changes']} had star count changes.\n"
        )

        metrics = Table(title="Key Metrics")
        metrics.add_column("Metric", style="cyan")
        metrics.add_column("Count", justify="right")
        metrics.add_column("Percent", justify="right")
        for label, count, percent in self.metrics_rows(report):
            metrics.add_row(label, str(count), percent)
        self.console.print(metrics)

        if report.changes:
            changes = Table(title="Detailed Changes")
            changes.add_column("Repository", style="cyan")
            changes.add_column("Old Stars", justify="right")
            changes.add_column("New Stars", justify="right")
            changes.add_column("Diff", justify="right")
            changes.add_column("Old Version")
            changes.add_column("New Version")
            for change in report.changes:
                color = "green" if change.star_diff > 0 else "red" if change.star_diff < 0 else "dim"
                changes.add_row(
                    change.repository,
                    str(change.old_stars),
                    str(change.new_stars),
                    f"[{color}]{change.star_diff_label}[/{color}]",
                    change.old_version,
                    change.new_version,
                )
            self.console.print(changes)

        if report.stopped_early:
            self.console.print(
                f"[yellow]Stopped early: {s['repositories_processed']} of "
                f"{s['repositories_total']} repositories processed, "
                f"{s['pending']} entries pending.[/yellow]"
            )

    def render_markdown(self, report: RunReport, generated_at: datetime | None = None) -> str:
        """Markdown summary with Key Metrics and Detailed Changes tables."""
        generated_at = generated_at or report.finished_at or datetime.now()
        s = report.summary()

        content = f"""# {report.title}

**Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S')}

Updated **{s['updated']}** repositories. **{s['star_changes']}** had star count changes.

## Key Metrics

| Metric | Count | Percent |
|--------|-------|---------|
"""
        for label, count, percent in self.metrics_rows(report):
            content += f"| {label} | {count} | {percent} |\n"

        if report.stopped_early:
            content += (
                f"\n> Stopped early after {s['repositories_processed']} of "
                f"{s['repositories_total']} repositories because of rate limiting.\n"
            )

        if report.changes:
            content += "\n## Detailed Changes\n\n"
            content += "| Repository | Old Stars | New Stars | Difference | Old Version | New Version | Link |\n"
            content += "|------------|-----------|-----------|------------|-------------|-------------|------|\n"
            for change in report.changes:
                link = f"[Link]({change.link})" if change.link else ""
                content += (
                    f"| {change.repository} | {change.old_stars} | {change.new_stars} "
                    f"| {change.star_diff_label} | {change.old_version} | {change.new_version} | {link} |\n"
                )

        return content

    def write_summary(self, report: RunReport, path: Path | str = SUMMARY_FILENAME) -> Path:
        """Write the markdown summary and append it to the CI step summary if set."""
        path = Path(path)
        content = self.render_markdown(report)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        self.console.print(f"[green]✓[/green] Summary written to {path}")

        step_summary = os.environ.get(STEP_SUMMARY_ENV)
        if step_summary:
            try:
                with open(step_summary, "a", encoding="utf-8") as f:
                    f.write(content + "\n")
            except OSError as e:
                logger.warning("Could not append to %s: %s", STEP_SUMMARY_ENV, e)

        return path

    def print_versions_report(self, report: VersionReport) -> None:
        s = report.summary()

        if report.changes:
            self.console.print("\n[bold]Changed versions:[/bold]")
            for change in report.changes[:20]:
                self.console.print(f"  {change.name}: {change.old_version} -> {change.new_version}")
            if len(report.changes) > 20:
                self.console.print(f"  ... and {len(report.changes) - 20} more")

        if report.added:
            self.console.print("\n[bold]New repositories added:[/bold]")
            for name in report.added[:10]:
                self.console.print(f"  {name}")
            if len(report.added) > 10:
                self.console.print(f"  ... and {len(report.added) - 10} more")

        table = Table(title=report.title)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right")
        for label, key in (
            ("Total repos", "total"),
            ("Updated", "updated"),
            ("Unchanged", "unchanged"),
            ("Changed", "changed"),
            ("Added", "added"),
            ("No releases", "no_releases"),
            ("Fetch failed", "failed"),
            ("Rate limited", "rate_limited"),
        ):
            table.add_row(label, str(s[key]))
        self.console.print(table)
