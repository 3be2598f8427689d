"""Shared test fixtures."""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from catalogsync.crawler.models import (
    RepositoryIdentity,
    RepositoryNotFoundError,
    RepositorySnapshot,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _days_ago(days: int, now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)


def _make_snapshot(**overrides) -> RepositorySnapshot:
    values = {
        "last_commit_at": _days_ago(10),
        "last_release_at": _days_ago(20),
        "latest_version_tag": "v2.1.0",
        "star_count": 500,
        "is_archived": False,
        "homepage_url": None,
        "license": "MIT",
        "web_url": None,
        "has_release": True,
    }
    values.update(overrides)
    return RepositorySnapshot(**values)


class FakeForgeClient:
    """Thread-safe in-memory stand-in for ForgeClient.

    Keys are ``owner/repo``; errors win over snapshots, unknown repositories
    raise RepositoryNotFoundError.
    """

    def __init__(self, snapshots=None, releases=None, errors=None, gate=None):
        self.snapshots = dict(snapshots or {})
        self.releases = dict(releases or {})
        self.errors = dict(errors or {})
        self.gate = gate
        self.calls: list[RepositoryIdentity] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def _enter(self, identity: RepositoryIdentity) -> None:
        with self._lock:
            self.calls.append(identity)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

    def _leave(self) -> None:
        with self._lock:
            self.in_flight -= 1

    def _lookup(self, identity: RepositoryIdentity, table: dict):
        self._enter(identity)
        try:
            if self.gate is not None:
                self.gate.wait(5)
            error = self.errors.get(identity.full_name)
            if error is not None:
                raise error
            if identity.full_name not in table:
                raise RepositoryNotFoundError(f"Repository not found: {identity.full_name}", identity)
            return table[identity.full_name]
        finally:
            self._leave()

    def fetch_snapshot(self, identity: RepositoryIdentity) -> RepositorySnapshot:
        return self._lookup(identity, self.snapshots)

    def fetch_release(self, identity: RepositoryIdentity):
        return self._lookup(identity, self.releases)


@pytest.fixture
def catalog_dir(tmp_path):
    """An empty catalog directory."""
    path = tmp_path / "json"
    path.mkdir()
    return path


@pytest.fixture
def write_entry(catalog_dir):
    """Factory writing a catalog entry file and returning its path."""

    def _write(slug: str, source: str | None = None, **extra):
        data = {"name": slug.title(), "slug": slug, "description": f"{slug} entry"}
        if source is not None:
            data["resources"] = {"source_code": source}
        data.update(extra)
        path = catalog_dir / f"{slug}.json"
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def now():
    """Fixed reference time for classification tests."""
    return NOW


@pytest.fixture(name="days_ago")
def days_ago_fixture():
    return _days_ago


@pytest.fixture(name="make_snapshot")
def make_snapshot_fixture():
    """Build a RepositorySnapshot with sensible defaults."""
    return _make_snapshot


@pytest.fixture
def fake_client():
    """The FakeForgeClient class, called with snapshots, releases, errors or gate."""
    return FakeForgeClient


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep the developer's environment out of the tests."""
    for name in (
        "GITHUB_TOKEN",
        "GITLAB_TOKEN",
        "SYNC_PARALLELISM",
        "SYNC_LIMIT",
        "GITHUB_STEP_SUMMARY",
        "CATALOGSYNC_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)
