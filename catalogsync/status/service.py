"""Maintenance status for a single catalog entry, for interactive reads."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from ..crawler.client import SnapshotSource
from ..crawler.models import ForgeError, RepositorySnapshot
from ..crawler.resolver import RepositoryResolver, create_default_resolver
from ..store.cache import FreshnessCache
from ..store.catalog import CatalogEntry
from ..time_utils import parse_timestamp, utc_now
from .classifier import MaintenanceStatus, StatusDisplay, classify, classify_days, days_since, describe

logger = logging.getLogger(__name__)

NO_REPOSITORY_MESSAGE = "No repository information"
INVALID_URL_MESSAGE = "Invalid repository URL"
LOAD_ERROR_MESSAGE = "Error loading repository info"


@dataclass
class StatusView:
    """Everything a page needs to show an entry's maintenance status."""
    status: MaintenanceStatus
    message: str
    icon: str
    color: str
    badge_variant: str
    last_commit_at: datetime | None = None
    last_release_at: datetime | None = None
    version: str | None = None
    is_archived: bool = False
    days_since_last_commit: int | None = None
    days_since_last_release: int | None = None
    source: str = "none"
    error: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        for key in ("last_commit_at", "last_release_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass(frozen=True)
class SyncedMetadata:
    """Entry already carries fields written by a batch sync."""
    last_commit: str
    last_release: str | None
    version: str | None


@dataclass(frozen=True)
class LegacyStatus:
    """Entry carries an older ``repository_status`` object."""
    status: str | None
    last_commit: str | None
    last_release: str | None
    version: str | None
    is_archived: bool


@dataclass(frozen=True)
class UnknownMetadata:
    """Nothing stored; status has to be fetched live."""


MetadataSource = SyncedMetadata | LegacyStatus | UnknownMetadata


def resolve_metadata_source(entry: CatalogEntry) -> MetadataSource:
    """Pick where an entry's status comes from, in preference order."""
    metadata = entry.data.get("metadata")
    if isinstance(metadata, dict) and metadata.get("date_last_commit"):
        return SyncedMetadata(
            last_commit=metadata["date_last_commit"],
            last_release=metadata.get("date_last_released"),
            version=metadata.get("version"),
        )

    legacy = entry.data.get("repository_status")
    if isinstance(legacy, dict):
        return LegacyStatus(
            status=legacy.get("status"),
            last_commit=legacy.get("last_commit"),
            last_release=legacy.get("last_release"),
            version=legacy.get("version"),
            is_archived=bool(legacy.get("is_archived", False)),
        )

    return UnknownMetadata()


def _view(
    status: MaintenanceStatus,
    display: StatusDisplay,
    **fields,
) -> StatusView:
    return StatusView(
        status=status,
        message=display.message,
        icon=display.icon,
        color=display.color,
        badge_variant=display.badge_variant,
        **fields,
    )


def _coerce_status(value) -> MaintenanceStatus:
    try:
        return MaintenanceStatus(value)
    except ValueError:
        return MaintenanceStatus.UNKNOWN


class StatusService:
    """Resolve an entry's status from stored fields, falling back to a live fetch."""

    def __init__(
        self,
        client: SnapshotSource,
        cache: FreshnessCache | None = None,
        resolver: RepositoryResolver | None = None,
        clock=utc_now,
    ):
        self.client = client
        self.cache = cache if cache is not None else FreshnessCache()
        self.resolver = resolver or create_default_resolver()
        self.clock = clock

    def get_status(self, entry: CatalogEntry) -> StatusView:
        """Never raises; problems come back as an ``unknown`` view."""
        now = self.clock()
        source = resolve_metadata_source(entry)

        if isinstance(source, SyncedMetadata):
            return self._from_stored(
                MaintenanceStatus.UNKNOWN, source.last_commit, source.last_release,
                source.version, False, now, "synced", recompute=True,
            )
        if isinstance(source, LegacyStatus):
            return self._from_stored(
                _coerce_status(source.status), source.last_commit, source.last_release,
                source.version, source.is_archived, now, "legacy", recompute=False,
            )
        return self._live(entry, now)

    def _from_stored(
        self,
        status: MaintenanceStatus,
        last_commit,
        last_release,
        version: str | None,
        is_archived: bool,
        now: datetime,
        source: str,
        recompute: bool,
    ) -> StatusView:
        commit_days = days_since(last_commit, now)
        if recompute:
            status = classify_days(is_archived, commit_days)
        return _view(
            status,
            describe(status, commit_days),
            last_commit_at=parse_timestamp(last_commit),
            last_release_at=parse_timestamp(last_release),
            version=version or None,
            is_archived=is_archived,
            days_since_last_commit=commit_days,
            days_since_last_release=days_since(last_release, now),
            source=source,
        )

    def _unknown(self, message: str, error: str | None = None) -> StatusView:
        display = describe(MaintenanceStatus.UNKNOWN, None)
        return StatusView(
            status=MaintenanceStatus.UNKNOWN,
            message=message,
            icon=display.icon,
            color=display.color,
            badge_variant=display.badge_variant,
            error=error,
        )

    def _live(self, entry: CatalogEntry, now: datetime) -> StatusView:
        url = entry.source_url
        if not url:
            return self._unknown(NO_REPOSITORY_MESSAGE)
        identity = self.resolver.parse(url)
        if identity is None:
            return self._unknown(INVALID_URL_MESSAGE)

        try:
            snapshot: RepositorySnapshot = self.cache.get_or_load(
                identity, self.client.fetch_snapshot
            )
        except ForgeError as e:
            logger.warning("Live status fetch failed for %s: %s", identity, e)
            return self._unknown(LOAD_ERROR_MESSAGE, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error loading status for %s", identity)
            return self._unknown(LOAD_ERROR_MESSAGE, error=str(e))

        status = classify(snapshot.is_archived, snapshot.last_commit_at, now)
        commit_days = days_since(snapshot.last_commit_at, now)
        return _view(
            status,
            describe(status, commit_days),
            last_commit_at=snapshot.last_commit_at,
            last_release_at=snapshot.last_release_at,
            version=snapshot.latest_version_tag,
            is_archived=snapshot.is_archived,
            days_since_last_commit=commit_days,
            days_since_last_release=days_since(snapshot.last_release_at, now),
            source="live",
        )
