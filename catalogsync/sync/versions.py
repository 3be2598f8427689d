"""Refresh of the versions registry from upstream releases."""

import logging
from pathlib import Path

from ..crawler.models import ForgeError, RateLimitedError, ReleaseInfo
from ..crawler.worker_pool import BoundedWorkerPool, RateLimitBreaker
from ..store.catalog import VERSIONS_FILENAME, CatalogError, CatalogStore
from ..store.versions import AppVersion, load_versions, save_versions, sort_newest_first
from ..time_utils import to_timestamp_string, utc_now
from .base import PooledRunner, RepositoryWork, apply_limit
from .models import ItemResult, Outcome, VersionChange, VersionReport

logger = logging.getLogger(__name__)


class VersionSyncRunner(PooledRunner):
    """Records the latest release of every referenced repository."""

    description = "Updating versions..."

    def run(
        self,
        catalog_dir: Path | str,
        versions_file: Path | str | None = None,
        limit: int | None = None,
    ) -> VersionReport:
        store = CatalogStore(catalog_dir)
        path = Path(versions_file) if versions_file else store.catalog_dir / VERSIONS_FILENAME
        report = VersionReport(started_at=utc_now())

        _, work, _ = self._discover(store)
        work, _ = apply_limit(work, [], limit)
        report.repositories_total = len(work)

        try:
            previous = {row.name: row for row in load_versions(path)}
        except CatalogError as e:
            logger.warning("Starting a fresh registry: %s", e)
            previous = {}
        rows = dict(previous)

        logger.info("Fetching releases for %d repositories", len(work))
        breaker = RateLimitBreaker(self.rate_limit_threshold)
        pool = BoundedWorkerPool(
            lambda w: self.client.fetch_release(w.identity),
            parallelism=self.parallelism,
        )
        done: set = set()

        with self._progress() as progress:
            task = progress.add_task(self.description, total=len(work))
            for result in pool.run(work, should_continue=lambda: not breaker.tripped):
                job: RepositoryWork = result.item
                name = job.identity.full_name
                done.add(job.identity)

                if isinstance(result.error, RateLimitedError):
                    breaker.record()
                    self._record(report, progress, name, Outcome.RATE_LIMITED, "rate_limited")
                elif result.error is not None:
                    if not isinstance(result.error, ForgeError):
                        logger.exception("Unexpected error for %s", name, exc_info=result.error)
                    reason = getattr(result.error, "kind", "error")
                    self._record(report, progress, name, Outcome.FAILED, reason)
                elif result.value is None:
                    self._record(report, progress, name, Outcome.NO_RELEASES, "no_releases")
                else:
                    self._apply(report, progress, rows, previous.get(name), name, result.value)

                progress.advance(task)

        for job in work:
            if job.identity not in done:
                report.add(ItemResult(
                    name=job.identity.full_name,
                    outcome=Outcome.PENDING,
                    repository=job.identity.full_name,
                    reason="not_processed",
                ))

        ordered = sort_newest_first(list(rows.values()))
        if ordered != sort_newest_first(list(previous.values())) or not path.exists():
            save_versions(path, ordered)
            report.written = True

        report.rate_limit_hits = breaker.count
        report.stopped_early = breaker.tripped
        report.finished_at = utc_now()
        if report.stopped_early:
            self._warn_rate_limited(breaker.count, len(done), len(work))
        return report

    def _record(self, report, progress, name: str, outcome: Outcome, reason: str) -> None:
        report.add(ItemResult(name=name, outcome=outcome, repository=name, reason=reason))
        self._print(progress, outcome, name, reason)

    def _apply(
        self,
        report: VersionReport,
        progress,
        rows: dict[str, AppVersion],
        old: AppVersion | None,
        name: str,
        release: ReleaseInfo,
    ) -> None:
        row = AppVersion(
            name=name,
            version=release.tag,
            date=to_timestamp_string(release.published_at) or (old.date if old else ""),
        )
        rows[name] = row

        if old is None:
            report.added.append(name)
        elif old.version != row.version:
            report.changes.append(VersionChange(name, old.version, row.version))

        outcome = Outcome.UNCHANGED if row == old else Outcome.UPDATED
        report.add(ItemResult(name=name, outcome=outcome, repository=name))
        self._print(progress, outcome, name, row.version)
