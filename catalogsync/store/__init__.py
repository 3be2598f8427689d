"""Catalog files, caches, the versions registry and report output."""

from .cache import FreshnessCache
from .catalog import CatalogEntry, CatalogError, CatalogStore
from .versions import AppVersion, VersionIndex

__all__ = [
    "FreshnessCache",
    "CatalogEntry",
    "CatalogError",
    "CatalogStore",
    "AppVersion",
    "VersionIndex",
]
