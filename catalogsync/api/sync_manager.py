"""Background sync job manager.

Runs the metadata sync (and optionally the versions refresh) in a daemon
thread so the API stays responsive.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from ..crawler.client import SnapshotSource
from ..settings import Settings
from ..store.output import ReportGenerator
from ..sync.runner import BatchSyncRunner
from ..sync.versions import VersionSyncRunner

logger = logging.getLogger(__name__)


class SyncStage(str, Enum):
    """Stages of a background sync."""

    IDLE = "idle"
    METADATA = "metadata"
    VERSIONS = "versions"
    REPORT = "report"
    COMPLETED = "completed"
    FAILED = "failed"


STAGE_ORDER = [
    SyncStage.METADATA,
    SyncStage.VERSIONS,
    SyncStage.REPORT,
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SyncJob:
    """A single background sync run."""

    job_id: str
    status: str = "idle"  # idle | running | completed | failed
    current_stage: str = SyncStage.IDLE.value
    stage_index: int = -1
    total_stages: int = len(STAGE_ORDER)
    stage_detail: str = ""
    started_at: str | None = None
    completed_at: str | None = None
    error: str | None = None
    limit: int | None = None
    include_versions: bool = False
    summary: dict | None = None
    versions_summary: dict | None = None
    log: deque = field(default_factory=lambda: deque(maxlen=200))

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "current_stage": self.current_stage,
            "stage_index": self.stage_index,
            "total_stages": self.total_stages,
            "stage_detail": self.stage_detail,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error": self.error,
            "limit": self.limit,
            "include_versions": self.include_versions,
            "summary": self.summary,
            "versions_summary": self.versions_summary,
            "log": list(self.log),
        }


class SyncManager:
    """Manages background sync execution.

    Usage::

        manager = SyncManager(settings, client)
        manager.set_on_complete(invalidate_caches)
        result = manager.start(limit=50)
        status = manager.get_status()
    """

    def __init__(self, settings: Settings, client: SnapshotSource):
        self.settings = settings
        self.client = client
        self.job: SyncJob = SyncJob(job_id="none")
        self._on_complete_callback: Callable | None = None
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def set_on_complete(self, callback: Callable) -> None:
        """Register a callback invoked after a successful sync."""
        self._on_complete_callback = callback

    def is_running(self) -> bool:
        """Return True if a sync is executing; recovers if its thread died."""
        if self.job.status == "running":
            if self._thread is None or not self._thread.is_alive():
                self.job.status = "failed"
                self.job.current_stage = SyncStage.FAILED.value
                self.job.error = self.job.error or "Sync thread died unexpectedly"
                self.job.completed_at = _now()
                self._log("Recovered from stale running state (thread dead)")
                return False
            return True
        return False

    def get_status(self) -> dict:
        return self.job.to_dict()

    def wait(self, timeout: float | None = None) -> None:
        """Block until the current sync thread finishes."""
        if self._thread is not None:
            self._thread.join(timeout)

    def start(self, limit: int | None = None, include_versions: bool = False) -> dict:
        """Start a sync in a background thread.

        Returns an error dict if a sync is already running, otherwise the
        initial job state.
        """
        with self._lock:
            if self.is_running():
                return {
                    "error": "A sync is already running",
                    "job": self.job.to_dict(),
                }

            job_id = uuid.uuid4().hex[:12]
            self.job = SyncJob(
                job_id=job_id,
                status="running",
                started_at=_now(),
                limit=limit,
                include_versions=include_versions,
            )
            self._thread = threading.Thread(
                target=self._run,
                name=f"sync-{job_id}",
                daemon=True,
            )
            self._thread.start()

        return self.job.to_dict()

    def _log(self, message: str) -> None:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        self.job.log.append(f"[{timestamp}] {message}")

    def _set_stage(self, stage: SyncStage, detail: str = "") -> None:
        self.job.current_stage = stage.value
        if stage in STAGE_ORDER:
            self.job.stage_index = STAGE_ORDER.index(stage)
        self.job.stage_detail = detail
        self._log(f"Stage: {stage.value}" + (f" - {detail}" if detail else ""))

    def _runner_kwargs(self) -> dict:
        return {
            "client": self.client,
            "parallelism": self.settings.effective_parallelism,
            "rate_limit_threshold": self.settings.rate_limit_threshold,
            "show_progress": False,
        }

    def _run(self) -> None:
        """Execute the sync (runs in a daemon thread)."""
        try:
            settings = self.settings

            self._set_stage(SyncStage.METADATA, f"Syncing {settings.catalog_path}")
            report = BatchSyncRunner(**self._runner_kwargs()).run(
                settings.catalog_path, limit=self.job.limit
            )
            self.job.summary = report.summary()
            self._log(
                f"Metadata sync: {self.job.summary['updated']} updated, "
                f"{self.job.summary['failed']} failed, "
                f"{self.job.summary['skipped']} skipped"
            )

            if self.job.include_versions and not report.stopped_early:
                self._set_stage(SyncStage.VERSIONS, f"Refreshing {settings.versions_path}")
                versions = VersionSyncRunner(**self._runner_kwargs()).run(
                    settings.catalog_path, settings.versions_path, limit=self.job.limit
                )
                self.job.versions_summary = versions.summary()
                self._log(
                    f"Versions: {self.job.versions_summary['changed']} changed, "
                    f"{self.job.versions_summary['added']} added"
                )
            elif self.job.include_versions:
                self._log("Versions refresh skipped after rate limiting")

            self._set_stage(SyncStage.REPORT, f"Writing {settings.report_path}")
            ReportGenerator().write_summary(report, settings.report_path)

            if self._on_complete_callback:
                self._on_complete_callback()

            self.job.status = "completed"
            self.job.current_stage = SyncStage.COMPLETED.value
            self.job.completed_at = _now()
            if report.stopped_early:
                self._log("Stopped early: rate limit threshold reached")
            self._log("Sync finished")

        except Exception as exc:
            logger.exception("Background sync failed")
            self.job.status = "failed"
            self.job.current_stage = SyncStage.FAILED.value
            self.job.error = str(exc)
            self.job.completed_at = _now()
            self._log(f"Sync failed: {exc}")
