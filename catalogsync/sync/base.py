"""Shared plumbing for pooled batch runners."""

import logging
from dataclasses import dataclass, field

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..crawler.client import SnapshotSource
from ..crawler.models import RepositoryIdentity
from ..crawler.resolver import RepositoryResolver, create_default_resolver
from ..store.catalog import CatalogEntry, CatalogError, CatalogStore
from .models import OUTCOME_MARKERS, ItemResult, Outcome

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_THRESHOLD = 5
AUTHENTICATED_PARALLELISM = 50
ANONYMOUS_PARALLELISM = 10


def default_parallelism(authenticated: bool) -> int:
    """Concurrency default: high with a token, low without."""
    return AUTHENTICATED_PARALLELISM if authenticated else ANONYMOUS_PARALLELISM


@dataclass
class RepositoryWork:
    """One upstream repository and the catalog entries that point at it."""
    identity: RepositoryIdentity
    entries: list[CatalogEntry] = field(default_factory=list)


def group_entries(
    entries: list[CatalogEntry],
    resolver: RepositoryResolver,
) -> tuple[list[RepositoryWork], list[ItemResult]]:
    """Resolve entries and group them by repository, in first-seen order.

    Entries without a source URL or with an unsupported one come back as
    skipped results.
    """
    grouped: dict[RepositoryIdentity, RepositoryWork] = {}
    skipped: list[ItemResult] = []

    for entry in entries:
        url = entry.source_url
        if not url:
            skipped.append(ItemResult(
                name=entry.name, outcome=Outcome.SKIPPED, path=entry.path, reason="no_source",
            ))
            continue

        identity = resolver.parse(url)
        if identity is None:
            skipped.append(ItemResult(
                name=entry.name, outcome=Outcome.SKIPPED, path=entry.path, reason="invalid_url",
            ))
            continue

        grouped.setdefault(identity, RepositoryWork(identity=identity)).entries.append(entry)

    return list(grouped.values()), skipped


def apply_limit(
    work: list[RepositoryWork],
    skipped: list[ItemResult],
    limit: int | None,
) -> tuple[list[RepositoryWork], list[ItemResult]]:
    """Keep the first ``limit`` repositories.

    Skipped entries are kept only when their file sorts before the first
    entry of the first repository left out, so the report covers the same
    slice of the catalog as the fetched repositories.
    """
    if limit is None or len(work) <= max(0, limit):
        return work, skipped

    limit = max(0, limit)
    kept, dropped = work[:limit], work[limit:]
    cutoff = min(entry.path for entry in dropped[0].entries)
    return kept, [item for item in skipped if item.path is not None and item.path < cutoff]


class PooledRunner:
    """Base for runners that fan repository fetches out over a worker pool."""

    description = "Processing repositories..."

    def __init__(
        self,
        client: SnapshotSource,
        parallelism: int = ANONYMOUS_PARALLELISM,
        rate_limit_threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD,
        resolver: RepositoryResolver | None = None,
        output: Console | None = None,
        show_progress: bool = True,
    ):
        self.client = client
        self.parallelism = max(1, parallelism)
        self.rate_limit_threshold = rate_limit_threshold
        self.resolver = resolver or create_default_resolver()
        self.console = output or console
        self.show_progress = show_progress

    def _discover(self, store: CatalogStore, only: str | None = None):
        if only:
            entry = store.find(only)
            if entry is None:
                raise CatalogError(f"Entry not found: {only}")
            entries = [entry]
        else:
            entries = list(store.iter_entries())
        return entries, *group_entries(entries, self.resolver)

    def _progress(self) -> Progress:
        # One refresh per second keeps the bar from flooding CI logs.
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("({task.percentage:>3.0f}%)"),
            console=self.console,
            refresh_per_second=1,
            disable=not self.show_progress,
        )

    def _print(self, progress: Progress, outcome: Outcome, label: str, detail: str = "") -> None:
        if not self.show_progress:
            return
        marker = OUTCOME_MARKERS[outcome]
        suffix = f": {detail}" if detail else ""
        progress.console.print(f"  {marker} {label}{suffix}")

    def _warn_rate_limited(self, hits: int, processed: int, total: int) -> None:
        logger.warning("Rate limit circuit breaker tripped after %d responses", hits)
        self.console.print(
            f"\n[yellow]Rate limit hit {hits} times; stopped after processing "
            f"{processed} of {total} repositories.[/yellow]"
        )
        self.console.print(
            "  Set GITHUB_TOKEN for higher limits or lower the parallelism "
            "(SYNC_PARALLELISM / --parallelism) and run again."
        )
