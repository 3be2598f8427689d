"""Batch synchronization of repository metadata into catalog entries."""

import logging
from pathlib import Path

from ..crawler.models import ForgeError, RateLimitedError, RepositorySnapshot
from ..crawler.worker_pool import BoundedWorkerPool, RateLimitBreaker
from ..status.classifier import classify
from ..store.catalog import CatalogEntry, CatalogStore
from ..time_utils import utc_now
from .base import PooledRunner, RepositoryWork, apply_limit
from .models import ChangeRecord, ItemResult, Outcome, RunReport

logger = logging.getLogger(__name__)


def _as_int(value) -> int:
    try:
        return int(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return 0


def build_change_record(
    entry: CatalogEntry,
    before: dict,
    snapshot: RepositorySnapshot,
) -> ChangeRecord:
    """Compare an entry's metadata before a write with the new snapshot."""
    old_metadata = before.get("metadata") if isinstance(before.get("metadata"), dict) else {}
    return ChangeRecord(
        repository=entry.name,
        old_stars=_as_int(old_metadata.get("github_stars")),
        new_stars=snapshot.star_count,
        old_version=old_metadata.get("version") or "N/A",
        new_version=snapshot.latest_version_tag or "N/A",
        license_changed=old_metadata.get("license") != snapshot.license,
        link=entry.source_url or "",
    )


class BatchSyncRunner(PooledRunner):
    """Refreshes synced metadata for every entry of a catalog directory."""

    description = "Updating metadata..."

    def run(
        self,
        catalog_dir: Path | str,
        limit: int | None = None,
        only: str | None = None,
    ) -> RunReport:
        """Fetch every referenced repository once and write results back.

        Raises CatalogError when the directory (or the ``only`` entry) is
        missing; per-repository failures are recorded in the report.
        """
        store = CatalogStore(catalog_dir)
        report = RunReport(started_at=utc_now())

        entries, work, skipped = self._discover(store, only)
        work, skipped = apply_limit(work, skipped, limit)

        report.repositories_total = len(work)
        logger.info(
            "Syncing %d repositories from %d entries (%d skipped) with parallelism %d",
            len(work), len(entries), len(skipped), self.parallelism,
        )

        breaker = RateLimitBreaker(self.rate_limit_threshold)
        pool = BoundedWorkerPool(
            lambda w: self.client.fetch_snapshot(w.identity),
            parallelism=self.parallelism,
        )
        now = utc_now()
        done: set = set()

        with self._progress() as progress:
            for item in skipped:
                report.add(item)
                self._print(progress, item.outcome, item.name, item.reason or "")

            task = progress.add_task(self.description, total=len(work))
            for result in pool.run(work, should_continue=lambda: not breaker.tripped):
                job: RepositoryWork = result.item
                done.add(job.identity)
                report.repositories_processed += 1

                if isinstance(result.error, RateLimitedError):
                    if breaker.record() and breaker.count == breaker.threshold:
                        logger.warning("Rate limit threshold reached; draining in-flight work")
                    self._record_all(report, progress, job, Outcome.RATE_LIMITED, "rate_limited")
                elif result.error is not None:
                    reason = getattr(result.error, "kind", "error")
                    if not isinstance(result.error, ForgeError):
                        logger.exception(
                            "Unexpected error for %s", job.identity, exc_info=result.error
                        )
                    self._record_all(
                        report, progress, job, Outcome.FAILED, reason, str(result.error)
                    )
                else:
                    self._write_back(report, progress, store, job, result.value, now)

                progress.advance(task)

        for job in work:
            if job.identity not in done:
                for entry in job.entries:
                    report.add(ItemResult(
                        name=entry.name,
                        outcome=Outcome.PENDING,
                        path=entry.path,
                        repository=job.identity.full_name,
                        reason="not_processed",
                    ))

        report.rate_limit_hits = breaker.count
        report.stopped_early = breaker.tripped
        report.finished_at = utc_now()

        if report.stopped_early:
            self._warn_rate_limited(
                breaker.count, report.repositories_processed, report.repositories_total
            )
        return report

    def _record_all(
        self,
        report: RunReport,
        progress,
        job: RepositoryWork,
        outcome: Outcome,
        reason: str,
        detail: str = "",
    ) -> None:
        for entry in job.entries:
            report.add(ItemResult(
                name=entry.name,
                outcome=outcome,
                path=entry.path,
                repository=job.identity.full_name,
                reason=reason,
            ))
            self._print(progress, outcome, entry.name, detail or reason)

    def _write_back(
        self,
        report: RunReport,
        progress,
        store: CatalogStore,
        job: RepositoryWork,
        snapshot: RepositorySnapshot,
        now,
    ) -> None:
        status = classify(snapshot.is_archived, snapshot.last_commit_at, now)

        for entry in job.entries:
            before = entry.data
            try:
                written = store.write_back(entry, job.identity, snapshot)
            except OSError as e:
                logger.error("Failed to write %s: %s", entry.path, e)
                report.add(ItemResult(
                    name=entry.name,
                    outcome=Outcome.FAILED,
                    path=entry.path,
                    repository=job.identity.full_name,
                    reason="write_failed",
                    status=status,
                ))
                self._print(progress, Outcome.FAILED, entry.name, f"write failed: {e}")
                continue

            if written:
                change = build_change_record(entry, before, snapshot)
                report.add(ItemResult(
                    name=entry.name,
                    outcome=Outcome.UPDATED,
                    path=entry.path,
                    repository=job.identity.full_name,
                    status=status,
                    change=change,
                ))
                detail = f"{change.old_stars} -> {change.new_stars} stars"
                if change.version_changed:
                    detail += f", {change.old_version} -> {change.new_version}"
                self._print(progress, Outcome.UPDATED, entry.name, detail)
            else:
                report.add(ItemResult(
                    name=entry.name,
                    outcome=Outcome.UNCHANGED,
                    path=entry.path,
                    repository=job.identity.full_name,
                    status=status,
                ))
                self._print(progress, Outcome.UNCHANGED, entry.name)
