"""Tests for the versions registry and its refresh runner."""

import json
from datetime import datetime, timezone

from catalogsync.crawler.models import NetworkError, RateLimitedError, ReleaseInfo
from catalogsync.store.cache import FreshnessCache
from catalogsync.store.catalog import CatalogStore
from catalogsync.store.versions import AppVersion, VersionIndex, load_versions, save_versions
from catalogsync.sync.models import Outcome
from catalogsync.sync.versions import VersionSyncRunner


def _release(tag, year, month, day, from_tag=False):
    return ReleaseInfo(tag=tag, published_at=datetime(year, month, day, tzinfo=timezone.utc), from_tag=from_tag)


def _runner(client):
    return VersionSyncRunner(client, parallelism=4, show_progress=False)


def _write_registry(catalog_dir, rows):
    (catalog_dir / "versions.json").write_text(json.dumps(rows, indent=2))


def test_rows_written_newest_first(catalog_dir, write_entry, fake_client):
    write_entry("alpha", "https://github.com/acme/alpha")
    write_entry("bravo", "https://gitlab.com/team/bravo")
    write_entry("charlie", "https://github.com/acme/charlie")
    client = fake_client(releases={
        "acme/alpha": _release("v1.0", 2023, 1, 1),
        "team/bravo": _release("2.0", 2024, 5, 1, from_tag=True),
        "acme/charlie": _release("v3.3", 2024, 1, 15),
    })

    report = _runner(client).run(catalog_dir)

    rows = json.loads((catalog_dir / "versions.json").read_text())
    assert rows == [
        {"name": "team/bravo", "version": "2.0", "date": "2024-05-01T00:00:00Z"},
        {"name": "acme/charlie", "version": "v3.3", "date": "2024-01-15T00:00:00Z"},
        {"name": "acme/alpha", "version": "v1.0", "date": "2023-01-01T00:00:00Z"},
    ]
    assert report.written
    assert report.summary()["added"] == 3


def test_failures_and_missing_releases_keep_previous_rows(catalog_dir, write_entry, fake_client):
    write_entry("alpha", "https://github.com/acme/alpha")
    write_entry("bravo", "https://github.com/acme/bravo")
    write_entry("charlie", "https://github.com/acme/charlie")
    _write_registry(catalog_dir, [
        {"name": "acme/alpha", "version": "v0.9", "date": "2022-06-01T00:00:00Z"},
        {"name": "acme/bravo", "version": "v5", "date": "2022-01-01T00:00:00Z"},
        {"name": "acme/gone", "version": "v1", "date": "2021-01-01T00:00:00Z"},
    ])
    client = fake_client(
        releases={"acme/alpha": _release("v1.0", 2024, 2, 2), "acme/charlie": None},
        errors={"acme/bravo": NetworkError("timeout")},
    )

    report = _runner(client).run(catalog_dir)

    rows = {row.name: row for row in load_versions(catalog_dir / "versions.json")}
    assert rows["acme/alpha"].version == "v1.0"
    assert rows["acme/bravo"].version == "v5"
    assert rows["acme/gone"].version == "v1"
    assert "acme/charlie" not in rows

    summary = report.summary()
    assert summary["changed"] == 1
    assert summary["no_releases"] == 1
    assert summary["failed"] == 1
    assert report.changes[0].old_version == "v0.9"


def test_unchanged_registry_is_not_rewritten(catalog_dir, write_entry, fake_client):
    write_entry("alpha", "https://github.com/acme/alpha")
    client = fake_client(releases={"acme/alpha": _release("v1.0", 2024, 2, 2)})

    _runner(client).run(catalog_dir)
    path = catalog_dir / "versions.json"
    mtime = path.stat().st_mtime_ns

    second = _runner(client).run(catalog_dir)

    assert not second.written
    assert path.stat().st_mtime_ns == mtime
    assert second.count(Outcome.UNCHANGED) == 1


def test_shared_repository_fetched_once(catalog_dir, write_entry, fake_client):
    write_entry("one", "https://github.com/acme/tool")
    write_entry("two", "https://github.com/acme/tool.git")
    client = fake_client(releases={"acme/tool": _release("v1", 2024, 1, 1)})

    _runner(client).run(catalog_dir)

    assert len(client.calls) == 1


def test_breaker_stops_versions_refresh(catalog_dir, write_entry, fake_client):
    for i in range(20):
        write_entry(f"app{i:02d}", f"https://github.com/acme/app{i:02d}")
    client = fake_client(errors={
        f"acme/app{i:02d}": RateLimitedError("rate limit exceeded") for i in range(20)
    })

    report = VersionSyncRunner(
        client, parallelism=1, rate_limit_threshold=3, show_progress=False
    ).run(catalog_dir)

    assert report.stopped_early
    assert len(client.calls) == 3
    assert report.count(Outcome.PENDING) == 17
    assert report.exit_code == 3


def test_custom_versions_file(catalog_dir, write_entry, tmp_path, fake_client):
    write_entry("alpha", "https://github.com/acme/alpha")
    target = tmp_path / "out" / "versions.json"
    target.parent.mkdir()
    client = fake_client(releases={"acme/alpha": _release("v1.0", 2024, 2, 2)})

    _runner(client).run(catalog_dir, versions_file=target)

    assert load_versions(target)[0].name == "acme/alpha"
    assert not (catalog_dir / "versions.json").exists()


def test_save_versions_sorts_undated_last(tmp_path):
    path = tmp_path / "versions.json"
    save_versions(path, [
        AppVersion("a/undated", "v1", ""),
        AppVersion("a/old", "v1", "2020-01-01T00:00:00Z"),
        AppVersion("a/new", "v2", "2024-01-01T00:00:00Z"),
    ])
    assert [row.name for row in load_versions(path)] == ["a/new", "a/old", "a/undated"]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_version_index_caches_and_serves_stale_on_failure(catalog_dir, write_entry):
    path = catalog_dir / "versions.json"
    _write_registry(catalog_dir, [{"name": "acme/widget", "version": "v2.1.0", "date": "2024-05-01T00:00:00Z"}])
    clock = FakeClock()
    index = VersionIndex(path, cache=FreshnessCache(ttl=300, clock=clock))

    assert index.get("acme/widget").version == "v2.1.0"
    assert index.get("ACME/Widget").version == "v2.1.0"

    _write_registry(catalog_dir, [{"name": "acme/widget", "version": "v3.0.0", "date": "2024-06-01T00:00:00Z"}])
    clock.now = 299
    assert index.get("acme/widget").version == "v2.1.0"

    path.write_text("{broken")
    clock.now = 301
    assert index.get("acme/widget").version == "v2.1.0"

    _write_registry(catalog_dir, [{"name": "acme/widget", "version": "v3.0.0", "date": "2024-06-01T00:00:00Z"}])
    assert index.get("acme/widget").version == "v3.0.0"


def test_version_index_last_release_date(catalog_dir, write_entry):
    write_entry("widget", "https://github.com/acme/widget")
    write_entry("nosource")
    _write_registry(catalog_dir, [{"name": "acme/widget", "version": "v2.1.0", "date": "2024-05-01T00:00:00Z"}])
    store = CatalogStore(catalog_dir)
    index = VersionIndex(catalog_dir / "versions.json")

    assert index.last_release_date(store.find("widget")) == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert index.last_release_date(store.find("nosource")) is None
    assert index.get("acme/missing") is None


def test_version_index_missing_file_is_empty(tmp_path):
    assert VersionIndex(tmp_path / "versions.json").rows() == []


def test_injected_cache_is_used_even_when_empty(tmp_path):
    cache = FreshnessCache(ttl=30)
    assert VersionIndex(tmp_path / "versions.json", cache=cache).cache is cache
