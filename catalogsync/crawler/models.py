"""Shared data models for repository crawlers."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Platform(str, Enum):
    """Supported source forges."""

    GITHUB = "github"
    GITLAB = "gitlab"


PLATFORM_HOSTS = {
    Platform.GITHUB: "github.com",
    Platform.GITLAB: "gitlab.com",
}


@dataclass(frozen=True)
class RepositoryIdentity:
    """Normalized repository coordinates, used as the dedup key."""
    platform: Platform
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def web_url(self) -> str:
        return f"https://{PLATFORM_HOSTS[self.platform]}/{self.full_name}"

    def __str__(self) -> str:
        return f"{self.platform.value}:{self.full_name}"


@dataclass(frozen=True)
class ReleaseInfo:
    """Latest release of a repository.

    ``from_tag`` is set when no release exists and the version was taken from
    the most recent tag instead.
    """
    tag: str
    published_at: datetime | None
    from_tag: bool = False


@dataclass(frozen=True)
class RepositorySnapshot:
    """Upstream facts about one repository as of a single fetch."""
    last_commit_at: datetime | None
    last_release_at: datetime | None
    latest_version_tag: str | None
    star_count: int
    is_archived: bool
    homepage_url: str | None
    license: str | None = None
    web_url: str | None = None
    has_release: bool = False


class ForgeError(Exception):
    """Base class for failures talking to a source forge."""

    kind = "error"

    def __init__(self, message: str, identity: RepositoryIdentity | None = None):
        super().__init__(message)
        self.identity = identity


class InvalidUrlError(ForgeError):
    """The URL does not resolve to a supported forge repository."""

    kind = "invalid_url"


class RepositoryNotFoundError(ForgeError):
    """The repository does not exist (HTTP 404)."""

    kind = "not_found"


class RateLimitedError(ForgeError):
    """The forge refused the call because a rate limit was hit."""

    kind = "rate_limited"


class NetworkError(ForgeError):
    """Timeout, DNS failure, reset connection or other transport fault."""

    kind = "network_error"


class ApiError(ForgeError):
    """Any other non-2xx response."""

    kind = "api_error"

    def __init__(
        self,
        message: str,
        identity: RepositoryIdentity | None = None,
        status: int | None = None,
    ):
        super().__init__(message, identity)
        self.status = status
