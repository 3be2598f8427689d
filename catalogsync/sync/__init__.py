"""Batch synchronization of catalog metadata and the versions registry."""

from .base import default_parallelism, group_entries
from .models import EXIT_FATAL, EXIT_OK, EXIT_RATE_LIMITED, ChangeRecord, ItemResult, Outcome, RunReport, VersionReport
from .runner import BatchSyncRunner
from .versions import VersionSyncRunner

__all__ = [
    "BatchSyncRunner",
    "VersionSyncRunner",
    "RunReport",
    "VersionReport",
    "ItemResult",
    "ChangeRecord",
    "Outcome",
    "EXIT_OK",
    "EXIT_FATAL",
    "EXIT_RATE_LIMITED",
    "default_parallelism",
    "group_entries",
]
