"""Tests for the interactive status lookup."""

from datetime import timedelta

from catalogsync.crawler.models import NetworkError, RateLimitedError
from catalogsync.status.classifier import MaintenanceStatus
from catalogsync.status.service import (
    LegacyStatus,
    StatusService,
    SyncedMetadata,
    UnknownMetadata,
    resolve_metadata_source,
)
from catalogsync.store.cache import FreshnessCache
from catalogsync.store.catalog import CatalogStore


def _service(client, now):
    return StatusService(client, clock=lambda: now)


def _entry(catalog_dir, write_entry, slug, source=None, **extra):
    write_entry(slug, source, **extra)
    return CatalogStore(catalog_dir).find(slug)


def test_synced_metadata_needs_no_network(catalog_dir, write_entry, fake_client, now):
    entry = _entry(
        catalog_dir, write_entry, "widget", "https://github.com/acme/widget",
        metadata={"date_last_commit": "2024-05-22", "date_last_released": "2024-04-01", "version": "v2.1.0"},
    )
    client = fake_client()

    view = _service(client, now).get_status(entry)

    assert client.calls == []
    assert view.status == MaintenanceStatus.ACTIVE
    assert view.source == "synced"
    assert view.days_since_last_commit == 10
    assert view.days_since_last_release == 61
    assert view.version == "v2.1.0"
    assert view.message == "Actively Updated - Last commit 1 week ago"


def test_synced_metadata_wins_over_legacy(catalog_dir, write_entry, fake_client, now):
    entry = _entry(
        catalog_dir, write_entry, "widget",
        metadata={"date_last_commit": "2023-01-01"},
        repository_status={"status": "active", "last_commit": "2024-05-30"},
    )
    assert isinstance(resolve_metadata_source(entry), SyncedMetadata)
    assert _service(fake_client(), now).get_status(entry).status == MaintenanceStatus.DORMANT


def test_legacy_repository_status(catalog_dir, write_entry, fake_client, now):
    entry = _entry(
        catalog_dir, write_entry, "widget", "https://github.com/acme/widget",
        repository_status={
            "status": "occasional",
            "last_commit": "2023-10-01T00:00:00Z",
            "last_release": "2023-09-01",
            "version": "1.2",
            "is_archived": False,
        },
    )
    client = fake_client()

    view = _service(client, now).get_status(entry)

    assert isinstance(resolve_metadata_source(entry), LegacyStatus)
    assert client.calls == []
    assert view.status == MaintenanceStatus.OCCASIONAL
    assert view.source == "legacy"
    assert view.version == "1.2"
    assert view.message.startswith("Occasionally Updated - Last commit 8 months ago")


def test_legacy_with_unrecognized_status(catalog_dir, write_entry, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", repository_status={"status": "thriving"})
    view = _service(fake_client(), now).get_status(entry)
    assert view.status == MaintenanceStatus.UNKNOWN


def test_live_fetch_through_cache(catalog_dir, write_entry, make_snapshot, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", "https://github.com/acme/widget")
    client = fake_client(snapshots={
        "acme/widget": make_snapshot(last_commit_at=now - timedelta(days=200), latest_version_tag="v9"),
    })
    service = _service(client, now)

    assert isinstance(resolve_metadata_source(entry), UnknownMetadata)
    first = service.get_status(entry)
    second = service.get_status(entry)

    assert first.status == MaintenanceStatus.OCCASIONAL
    assert first.source == "live"
    assert first.version == "v9"
    assert second == first
    assert len(client.calls) == 1


def test_live_archived(catalog_dir, write_entry, make_snapshot, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", "https://github.com/acme/widget")
    client = fake_client(snapshots={
        "acme/widget": make_snapshot(last_commit_at=now - timedelta(days=1), is_archived=True),
    })

    view = _service(client, now).get_status(entry)
    assert view.status == MaintenanceStatus.ARCHIVED
    assert view.is_archived


def test_missing_source(catalog_dir, write_entry, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget")
    view = _service(fake_client(), now).get_status(entry)
    assert view.status == MaintenanceStatus.UNKNOWN
    assert view.message == "No repository information"


def test_invalid_url(catalog_dir, write_entry, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", "https://example.com/acme/widget")
    view = _service(fake_client(), now).get_status(entry)
    assert view.status == MaintenanceStatus.UNKNOWN
    assert view.message == "Invalid repository URL"


def test_fetch_failures_never_raise(catalog_dir, write_entry, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", "https://github.com/acme/widget")
    for error in (NetworkError("timeout"), RateLimitedError("rate limit exceeded"), RuntimeError("bug")):
        client = fake_client(errors={"acme/widget": error})

        view = _service(client, now).get_status(entry)

        assert view.status == MaintenanceStatus.UNKNOWN
        assert view.message == "Error loading repository info"
        assert view.error == str(error)


def test_failed_fetch_is_not_cached(catalog_dir, write_entry, make_snapshot, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", "https://github.com/acme/widget")
    client = fake_client(
        snapshots={"acme/widget": make_snapshot(last_commit_at=now)},
        errors={"acme/widget": NetworkError("timeout")},
    )
    service = _service(client, now)

    assert service.get_status(entry).status == MaintenanceStatus.UNKNOWN
    del client.errors["acme/widget"]
    assert service.get_status(entry).status == MaintenanceStatus.ACTIVE


def test_to_dict_is_json_friendly(catalog_dir, write_entry, fake_client, now):
    entry = _entry(catalog_dir, write_entry, "widget", metadata={"date_last_commit": "2024-05-22"})
    data = _service(fake_client(), now).get_status(entry).to_dict()
    assert data["status"] == "active"
    assert data["last_commit_at"] == "2024-05-22T00:00:00+00:00"


def test_injected_cache_is_used_even_when_empty(catalog_dir, write_entry, make_snapshot, fake_client):
    entry = _entry(catalog_dir, write_entry, "widget", "https://github.com/acme/widget")
    cache = FreshnessCache(ttl=30)
    service = StatusService(fake_client(snapshots={"acme/widget": make_snapshot()}), cache=cache)

    assert service.cache is cache
    service.get_status(entry)
    assert len(cache) == 1
