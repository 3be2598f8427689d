"""Catalog entry files: discovery, synced-field write-back and atomic saves."""

import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from ..crawler.models import Platform, RepositoryIdentity, RepositorySnapshot
from ..time_utils import to_date_string

logger = logging.getLogger(__name__)

VERSIONS_FILENAME = "versions.json"

# The only fields a sync may write.
METADATA_FIELDS = ("license", "version", "date_last_released", "date_last_commit", "github_stars")
RESOURCE_FIELDS = ("website", "documentation", "issues", "releases")
# Resource fields that are only filled in when the entry has no value yet.
FILL_ONLY_RESOURCES = ("website", "documentation")


class CatalogError(Exception):
    """The catalog directory or an entry file cannot be used."""


@dataclass
class CatalogEntry:
    """One catalog entry file."""
    path: Path
    data: dict[str, Any]

    @property
    def slug(self) -> str:
        return self.data.get("slug") or self.path.stem

    @property
    def name(self) -> str:
        return self.data.get("name") or self.slug

    @property
    def source_url(self) -> str | None:
        return source_url(self.data)


def source_url(data: dict) -> str | None:
    """Source-code URL of an entry, from ``resources`` or the legacy top level."""
    resources = data.get("resources")
    if isinstance(resources, dict) and resources.get("source_code"):
        return resources["source_code"]
    return data.get("source_code") or None


def _issues_url(identity: RepositoryIdentity, web_url: str) -> str:
    if identity.platform == Platform.GITLAB:
        return f"{web_url}/-/issues"
    return f"{web_url}/issues"


def _releases_url(identity: RepositoryIdentity, web_url: str) -> str:
    if identity.platform == Platform.GITLAB:
        return f"{web_url}/-/releases"
    return f"{web_url}/releases"


def synced_fields(identity: RepositoryIdentity, snapshot: RepositorySnapshot) -> dict[str, dict]:
    """Compute the metadata and resource values a snapshot implies."""
    web_url = identity.web_url
    return {
        "metadata": {
            "license": snapshot.license,
            "version": snapshot.latest_version_tag,
            "date_last_released": to_date_string(snapshot.last_release_at),
            "date_last_commit": to_date_string(snapshot.last_commit_at),
            "github_stars": snapshot.star_count,
        },
        "resources": {
            "website": snapshot.homepage_url,
            "documentation": snapshot.homepage_url,
            "issues": _issues_url(identity, web_url),
            "releases": _releases_url(identity, web_url) if snapshot.has_release else None,
        },
    }


def merge_synced_fields(data: dict, fields: dict[str, dict]) -> dict:
    """Return a copy of ``data`` with synced fields applied.

    Key order of existing fields is kept; nothing outside
    METADATA_FIELDS/RESOURCE_FIELDS is touched.
    """
    merged = copy.deepcopy(data)

    metadata = merged.get("metadata")
    if not isinstance(metadata, dict):
        metadata = merged["metadata"] = {}
    for key in METADATA_FIELDS:
        metadata[key] = fields["metadata"][key]

    resources = merged.get("resources")
    if not isinstance(resources, dict):
        resources = merged["resources"] = {}
    for key in RESOURCE_FIELDS:
        value = fields["resources"][key]
        if key in FILL_ONLY_RESOURCES:
            if value and not resources.get(key):
                resources[key] = value
        else:
            resources[key] = value

    return merged


def serialize(data: dict) -> str:
    """Serialize an entry the way catalog files are formatted."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_atomic(path: Path, content: str) -> None:
    """Write via a temp file in the same directory, then replace."""
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class CatalogStore:
    """Reads and updates the JSON entry files of a catalog directory."""

    def __init__(self, catalog_dir: Path | str):
        self.catalog_dir = Path(catalog_dir)
        if not self.catalog_dir.is_dir():
            raise CatalogError(f"Catalog directory not found: {self.catalog_dir}")

    def entry_paths(self) -> list[Path]:
        """All entry files, sorted by name, excluding the versions registry."""
        return sorted(
            p for p in self.catalog_dir.glob("*.json")
            if p.name != VERSIONS_FILENAME and not p.name.startswith(".")
        )

    def load(self, path: Path | str) -> CatalogEntry:
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Cannot read {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise CatalogError(f"{path.name} is not a JSON object")
        return CatalogEntry(path=path, data=data)

    def iter_entries(self) -> Iterator[CatalogEntry]:
        """Yield every readable entry; unreadable files are logged and skipped."""
        for path in self.entry_paths():
            try:
                yield self.load(path)
            except CatalogError as e:
                logger.warning("Skipping entry: %s", e)

    def find(self, name: str) -> CatalogEntry | None:
        """Find an entry by file name (``x.json``) or slug."""
        filename = name if name.endswith(".json") else f"{name}.json"
        path = self.catalog_dir / filename
        if path.is_file():
            return self.load(path)
        for entry in self.iter_entries():
            if entry.data.get("slug") == name:
                return entry
        return None

    def write_back(
        self,
        entry: CatalogEntry,
        identity: RepositoryIdentity,
        snapshot: RepositorySnapshot,
    ) -> bool:
        """Apply a snapshot's synced fields to an entry file.

        Returns False without touching the file when the fields are already
        up to date. On a write, ``entry.data`` is replaced by the new content.
        """
        updated = merge_synced_fields(entry.data, synced_fields(identity, snapshot))
        if updated == entry.data:
            return False
        write_atomic(entry.path, serialize(updated))
        entry.data = updated
        return True
