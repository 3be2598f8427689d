"""Configuration loading: YAML file plus environment overrides."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

from .crawler.client import ForgeClient
from .store.cache import INTERACTIVE_TTL_SECONDS, LIST_TTL_SECONDS
from .store.catalog import VERSIONS_FILENAME
from .store.output import SUMMARY_FILENAME
from .sync.base import DEFAULT_RATE_LIMIT_THRESHOLD, default_parallelism

DEFAULT_CONFIG_PATH = Path("config/config.yaml")
CONFIG_ENV = "CATALOGSYNC_CONFIG"


class ConfigError(Exception):
    """Configuration is missing or invalid."""


@dataclass
class Settings:
    """Resolved runtime settings."""
    catalog_path: Path = Path("public/json")
    versions_file: Path | None = None
    github_token: str | None = None
    gitlab_url: str = "https://gitlab.com"
    gitlab_token: str | None = None
    parallelism: int | None = None
    limit: int | None = None
    rate_limit_threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD
    timeout: float = 15.0
    report_path: Path = Path(SUMMARY_FILENAME)
    cache_ttl: float = INTERACTIVE_TTL_SECONDS
    list_cache_ttl: float = LIST_TTL_SECONDS

    @property
    def authenticated(self) -> bool:
        return bool(self.github_token)

    @property
    def versions_path(self) -> Path:
        return self.versions_file or self.catalog_path / VERSIONS_FILENAME

    @property
    def effective_parallelism(self) -> int:
        return self.parallelism or default_parallelism(self.authenticated)

    def build_client(self) -> ForgeClient:
        return ForgeClient.from_tokens(
            github_token=self.github_token,
            gitlab_token=self.gitlab_token,
            gitlab_url=self.gitlab_url,
            timeout=self.timeout,
            pool_size=self.effective_parallelism,
        )


def load_config(config_path: Path | str | None = None) -> dict:
    """Load configuration from a YAML file.

    Without an explicit path, ``$CATALOGSYNC_CONFIG`` or the default path is
    tried and a missing file means built-in defaults.
    """
    explicit = config_path is not None or bool(os.environ.get(CONFIG_ENV))
    path = Path(config_path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)

    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return {}

    try:
        config = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Config {path} must be a mapping")
    return config


def _int(value, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _float(value, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _section(config: dict, name: str) -> dict:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return section


def build_settings(config: dict, env: Mapping[str, str] | None = None) -> Settings:
    """Combine a config dict with environment overrides."""
    env = os.environ if env is None else env
    catalog = _section(config, "catalog")
    github = _section(config, "github")
    gitlab = _section(config, "gitlab")
    sync = _section(config, "sync")
    cache = _section(config, "cache")

    settings = Settings()
    if catalog.get("path"):
        settings.catalog_path = Path(catalog["path"])
    if catalog.get("versions_file"):
        settings.versions_file = Path(catalog["versions_file"])

    settings.github_token = env.get("GITHUB_TOKEN") or github.get("token") or None
    settings.gitlab_token = env.get("GITLAB_TOKEN") or gitlab.get("token") or None
    settings.gitlab_url = gitlab.get("url") or settings.gitlab_url

    settings.parallelism = _int(
        env.get("SYNC_PARALLELISM") or sync.get("parallelism"), "sync.parallelism"
    )
    if settings.parallelism is not None and settings.parallelism < 1:
        raise ConfigError("sync.parallelism must be at least 1")
    settings.limit = _int(env.get("SYNC_LIMIT") or sync.get("limit"), "sync.limit")

    threshold = _int(sync.get("rate_limit_threshold"), "sync.rate_limit_threshold")
    if threshold is not None:
        if threshold < 1:
            raise ConfigError("sync.rate_limit_threshold must be at least 1")
        settings.rate_limit_threshold = threshold
    if sync.get("timeout") is not None:
        settings.timeout = _float(sync["timeout"], "sync.timeout")
        if settings.timeout <= 0:
            raise ConfigError("sync.timeout must be greater than 0")
    if sync.get("report_path"):
        settings.report_path = Path(sync["report_path"])

    if cache.get("ttl_seconds") is not None:
        settings.cache_ttl = _float(cache["ttl_seconds"], "cache.ttl_seconds")
    if cache.get("list_ttl_seconds") is not None:
        settings.list_cache_ttl = _float(cache["list_ttl_seconds"], "cache.list_ttl_seconds")

    return settings
