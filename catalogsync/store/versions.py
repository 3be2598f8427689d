"""The ``versions.json`` registry of latest releases per repository."""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

from ..crawler.resolver import RepositoryResolver, create_default_resolver
from ..time_utils import parse_timestamp
from .cache import LIST_TTL_SECONDS, FreshnessCache
from .catalog import CatalogEntry, CatalogError, write_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppVersion:
    """One registry row."""
    name: str
    version: str
    date: str

    @property
    def released_at(self) -> datetime | None:
        return parse_timestamp(self.date)


def _sort_key(row: AppVersion) -> float:
    moment = row.released_at
    return moment.timestamp() if moment else float("-inf")


def sort_newest_first(rows: list[AppVersion]) -> list[AppVersion]:
    """Order rows by release date, newest first; undated rows go last."""
    return sorted(rows, key=_sort_key, reverse=True)


def load_versions(path: Path | str) -> list[AppVersion]:
    """Read a registry file. A missing file is an empty registry."""
    path = Path(path)
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read {path.name}: {e}") from e
    if not isinstance(raw, list):
        raise CatalogError(f"{path.name} is not a JSON list")

    rows = []
    for item in raw:
        if isinstance(item, dict) and item.get("name"):
            rows.append(AppVersion(
                name=str(item["name"]),
                version=str(item.get("version") or "unknown"),
                date=str(item.get("date") or ""),
            ))
    return rows


def save_versions(path: Path | str, rows: list[AppVersion]) -> None:
    """Write rows newest first."""
    data = [asdict(row) for row in sort_newest_first(rows)]
    write_atomic(Path(path), json.dumps(data, indent=2, ensure_ascii=False) + "\n")


class VersionIndex:
    """Cached read access to the registry for status and API lookups.

    The file is re-read at most once per cache TTL. When a re-read fails the
    last list that loaded successfully is served, however old.
    """

    def __init__(
        self,
        path: Path | str,
        cache: FreshnessCache | None = None,
        resolver: RepositoryResolver | None = None,
    ):
        self.path = Path(path)
        self.cache = cache if cache is not None else FreshnessCache(ttl=LIST_TTL_SECONDS)
        self.resolver = resolver or create_default_resolver()

    def rows(self) -> list[AppVersion]:
        try:
            return self.cache.get_or_load(self.path, load_versions)
        except CatalogError as e:
            stale = self.cache.get_stale(self.path)
            logger.warning("Using %s registry after read failure: %s",
                           "stale" if stale else "empty", e)
            return stale.snapshot if stale else []

    def get(self, full_name: str) -> AppVersion | None:
        wanted = full_name.lower()
        for row in self.rows():
            if row.name.lower() == wanted:
                return row
        return None

    def last_release_date(self, entry: CatalogEntry) -> datetime | None:
        """Release date recorded for the repository an entry points at."""
        identity = self.resolver.parse(entry.source_url)
        if identity is None:
            return None
        row = self.get(identity.full_name)
        return row.released_at if row else None
