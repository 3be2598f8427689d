"""Result models for batch synchronization runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..status.classifier import MaintenanceStatus

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_RATE_LIMITED = 3


class Outcome(str, Enum):
    """What happened to one catalog entry or repository."""

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"
    NO_RELEASES = "no_releases"
    # Never reached because the run stopped early.
    PENDING = "pending"


PROCESSED_OUTCOMES = (
    Outcome.UPDATED,
    Outcome.UNCHANGED,
    Outcome.FAILED,
    Outcome.RATE_LIMITED,
    Outcome.NO_RELEASES,
)

OUTCOME_MARKERS = {
    Outcome.UPDATED: "[green]✓[/green]",
    Outcome.UNCHANGED: "[dim]=[/dim]",
    Outcome.SKIPPED: "[dim]⊘[/dim]",
    Outcome.FAILED: "[red]✗[/red]",
    Outcome.RATE_LIMITED: "[yellow]⏸[/yellow]",
    Outcome.NO_RELEASES: "[dim]∅[/dim]",
    Outcome.PENDING: "[dim]…[/dim]",
}


@dataclass(frozen=True)
class ChangeRecord:
    """Before/after comparison for one rewritten entry."""
    repository: str
    old_stars: int
    new_stars: int
    old_version: str
    new_version: str
    license_changed: bool
    link: str

    @property
    def star_diff(self) -> int:
        return self.new_stars - self.old_stars

    @property
    def version_changed(self) -> bool:
        return self.old_version != self.new_version

    @property
    def star_diff_label(self) -> str:
        return f"+{self.star_diff}" if self.star_diff > 0 else str(self.star_diff)


@dataclass
class ItemResult:
    """Per-entry result of a run."""
    name: str
    outcome: Outcome
    path: Path | None = None
    repository: str | None = None
    reason: str | None = None
    status: MaintenanceStatus | None = None
    change: ChangeRecord | None = None


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


@dataclass
class RunReport:
    """Aggregate outcome of a metadata sync run."""
    title: str = "Repository Metadata Update Report"
    items: list[ItemResult] = field(default_factory=list)
    repositories_total: int = 0
    repositories_processed: int = 0
    stopped_early: bool = False
    rate_limit_hits: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def add(self, item: ItemResult) -> None:
        self.items.append(item)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for item in self.items if item.outcome == outcome)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def entries_processed(self) -> int:
        """Entries whose repository was actually fetched (any result)."""
        return sum(1 for item in self.items if item.outcome in PROCESSED_OUTCOMES)

    @property
    def changes(self) -> list[ChangeRecord]:
        """Change records, largest absolute star difference first."""
        records = [item.change for item in self.items if item.change is not None]
        return sorted(records, key=lambda c: abs(c.star_diff), reverse=True)

    @property
    def star_changes(self) -> int:
        return sum(1 for c in self.changes if c.star_diff != 0)

    @property
    def version_changes(self) -> int:
        return sum(1 for c in self.changes if c.version_changed)

    @property
    def exit_code(self) -> int:
        return EXIT_RATE_LIMITED if self.stopped_early else EXIT_OK

    def statuses(self) -> dict[str, MaintenanceStatus]:
        """Classification per entry name, for entries that were fetched."""
        return {item.name: item.status for item in self.items if item.status is not None}

    def summary(self) -> dict:
        """Counts and percentages; stable across runs with the same outcome."""
        total = self.total
        updated = self.count(Outcome.UPDATED)
        skipped = self.count(Outcome.SKIPPED)
        failed = self.count(Outcome.FAILED)
        rate_limited = self.count(Outcome.RATE_LIMITED)
        return {
            "total": total,
            "updated": updated,
            "updated_percent": _percent(updated, total),
            "unchanged": self.count(Outcome.UNCHANGED),
            "star_changes": self.star_changes,
            "star_changes_percent": _percent(self.star_changes, updated),
            "version_changes": self.version_changes,
            "version_changes_percent": _percent(self.version_changes, updated),
            "skipped": skipped,
            "skipped_percent": _percent(skipped, total),
            "failed": failed,
            "failed_percent": _percent(failed, total),
            "rate_limited": rate_limited,
            "rate_limited_percent": _percent(rate_limited, total),
            "pending": self.count(Outcome.PENDING),
            "repositories_total": self.repositories_total,
            "repositories_processed": self.repositories_processed,
            "entries_processed": self.entries_processed,
            "stopped_early": self.stopped_early,
        }


@dataclass(frozen=True)
class VersionChange:
    """A registry row whose version moved."""
    name: str
    old_version: str
    new_version: str


@dataclass
class VersionReport:
    """Aggregate outcome of a versions registry refresh."""
    title: str = "Versions Update Report"
    items: list[ItemResult] = field(default_factory=list)
    changes: list[VersionChange] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    repositories_total: int = 0
    stopped_early: bool = False
    rate_limit_hits: int = 0
    written: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def add(self, item: ItemResult) -> None:
        self.items.append(item)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for item in self.items if item.outcome == outcome)

    @property
    def exit_code(self) -> int:
        return EXIT_RATE_LIMITED if self.stopped_early else EXIT_OK

    def summary(self) -> dict:
        return {
            "total": self.repositories_total,
            "updated": self.count(Outcome.UPDATED),
            "unchanged": self.count(Outcome.UNCHANGED),
            "changed": len(self.changes),
            "added": len(self.added),
            "no_releases": self.count(Outcome.NO_RELEASES),
            "failed": self.count(Outcome.FAILED),
            "rate_limited": self.count(Outcome.RATE_LIMITED),
            "pending": self.count(Outcome.PENDING),
            "stopped_early": self.stopped_early,
        }
