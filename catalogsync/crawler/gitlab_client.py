"""GitLab API client for repository metadata."""

import logging

import gitlab
from requests.exceptions import RequestException

from ..time_utils import parse_timestamp
from .models import (
    ApiError,
    ForgeError,
    NetworkError,
    RateLimitedError,
    ReleaseInfo,
    RepositoryIdentity,
    RepositoryNotFoundError,
    RepositorySnapshot,
)

logger = logging.getLogger(__name__)

USER_AGENT = "catalogsync"

# Passed on every call: python-gitlab otherwise sleeps and retries on 429.
NO_RETRY = {"obey_rate_limit": False, "retry_transient_errors": False}


class GitLabClient:
    """Client for fetching repository snapshots from the GitLab v4 API."""

    def __init__(
        self,
        url: str = "https://gitlab.com",
        token: str | None = None,
        timeout: float = 15,
        gl: gitlab.Gitlab | None = None,
    ):
        self.url = url
        self.authenticated = bool(token)
        self.gl = gl or gitlab.Gitlab(
            url,
            private_token=token or None,
            timeout=timeout,
            user_agent=USER_AGENT,
        )

    def _translate(self, exc: Exception, identity: RepositoryIdentity) -> ForgeError:
        """Map a python-gitlab/requests exception onto the forge error taxonomy."""
        if isinstance(exc, RequestException):
            return NetworkError(f"{identity.full_name}: {exc}", identity)

        code = getattr(exc, "response_code", None)
        if code == 429:
            return RateLimitedError(f"{identity.full_name}: rate limit exceeded", identity)
        if code == 404:
            return RepositoryNotFoundError(
                f"Repository not found: {identity.full_name}", identity
            )
        return ApiError(
            f"{identity.full_name}: GitLab API error {code}: {exc}",
            identity,
            status=code,
        )

    def _get_project(self, identity: RepositoryIdentity):
        try:
            return self.gl.projects.get(identity.full_name, license=True, **NO_RETRY)
        except (gitlab.exceptions.GitlabError, RequestException) as e:
            raise self._translate(e, identity) from e

    def _first(self, identity: RepositoryIdentity, manager, missing_ok: bool = True):
        """Return the first item of a list endpoint, or None."""
        try:
            items = manager.list(per_page=1, get_all=False, **NO_RETRY)
        except gitlab.exceptions.GitlabError as e:
            if missing_ok and getattr(e, "response_code", None) == 404:
                return None
            raise self._translate(e, identity) from e
        except RequestException as e:
            raise self._translate(e, identity) from e
        return items[0] if items else None

    def _latest_release(self, identity: RepositoryIdentity, project) -> ReleaseInfo | None:
        release = self._first(identity, project.releases)
        if release is not None:
            attrs = release.attributes
            return ReleaseInfo(
                tag=attrs.get("tag_name"),
                published_at=parse_timestamp(
                    attrs.get("released_at") or attrs.get("created_at")
                ),
            )

        logger.debug("No releases for %s, trying tags", identity.full_name)
        tag = self._first(identity, project.tags)
        if tag is None:
            return None
        commit = tag.attributes.get("commit") or {}
        return ReleaseInfo(
            tag=tag.attributes.get("name"),
            published_at=parse_timestamp(commit.get("committed_date")),
            from_tag=True,
        )

    def fetch_release(self, identity: RepositoryIdentity) -> ReleaseInfo | None:
        """Get the latest release, or the latest tag when there are no releases."""
        project = self._get_project(identity)
        return self._latest_release(identity, project)

    def fetch_snapshot(self, identity: RepositoryIdentity) -> RepositorySnapshot:
        """Fetch project info, latest release and latest commit."""
        project = self._get_project(identity)
        attrs = project.attributes

        release = self._latest_release(identity, project)

        commit = self._first(identity, project.commits)
        if commit is not None:
            last_commit_at = parse_timestamp(commit.attributes.get("committed_date"))
        else:
            last_commit_at = parse_timestamp(attrs.get("last_activity_at"))

        license_info = attrs.get("license") or {}

        return RepositorySnapshot(
            last_commit_at=last_commit_at,
            last_release_at=release.published_at if release else None,
            latest_version_tag=release.tag if release else None,
            star_count=attrs.get("star_count") or 0,
            is_archived=bool(attrs.get("archived")),
            homepage_url=None,
            license=license_info.get("nickname") or license_info.get("name"),
            web_url=attrs.get("web_url") or identity.web_url,
            has_release=release is not None and not release.from_tag,
        )
