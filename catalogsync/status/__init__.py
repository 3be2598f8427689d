"""Maintenance status classification and lookup."""

from .classifier import MaintenanceStatus, StatusDisplay, classify, describe, relative_time
from .service import StatusService, StatusView, resolve_metadata_source

__all__ = [
    "MaintenanceStatus",
    "StatusDisplay",
    "StatusService",
    "StatusView",
    "classify",
    "describe",
    "relative_time",
    "resolve_metadata_source",
]
