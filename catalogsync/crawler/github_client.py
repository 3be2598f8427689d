"""GitHub API client for repository metadata."""

import logging

from github import (
    Auth,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from requests.exceptions import RequestException

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

# GitHub answers the commit list of an empty repository with 409 Conflict.
EMPTY_REPOSITORY_STATUS = 409


def _error_message(exc: GithubException) -> str:
    data = exc.data
    if isinstance(data, dict):
        return str(data.get("message") or "")
    return str(data or "")


def is_rate_limited(exc: GithubException) -> bool:
    """Tell a rate-limit refusal apart from a plain permission error.

    Both arrive as 403; GitHub signals primary and secondary limits through
    the body message ("API rate limit exceeded ...", "You have exceeded a
    secondary rate limit ..."). 429 is always a limit.
    """
    if isinstance(exc, RateLimitExceededException):
        return True
    if exc.status == 429:
        return True
    return exc.status == 403 and "rate limit" in _error_message(exc).lower()


class GitHubClient:
    """Client for fetching repository snapshots from the GitHub REST API."""

    def __init__(
        self,
        token: str | None = None,
        timeout: float = 15,
        pool_size: int | None = None,
        gh: Github | None = None,
    ):
        self.authenticated = bool(token)
        if gh is not None:
            self.gh = gh
        else:
            # retry=None: a rate limit must surface, never be slept through.
            self.gh = Github(
                auth=Auth.Token(token) if token else None,
                timeout=timeout,
                user_agent=USER_AGENT,
                retry=None,
                pool_size=pool_size,
            )

    def _translate(self, exc: Exception, identity: RepositoryIdentity) -> ForgeError:
        """Map a PyGithub/requests exception onto the forge error taxonomy."""
        if isinstance(exc, RequestException):
            return NetworkError(f"{identity.full_name}: {exc}", identity)

        if isinstance(exc, GithubException):
            if is_rate_limited(exc):
                return RateLimitedError(
                    f"{identity.full_name}: rate limit exceeded", identity
                )
            if isinstance(exc, UnknownObjectException) or exc.status == 404:
                return RepositoryNotFoundError(
                    f"Repository not found: {identity.full_name}", identity
                )
            message = _error_message(exc) or "unexpected response"
            return ApiError(
                f"{identity.full_name}: GitHub API error {exc.status}: {message}",
                identity,
                status=exc.status,
            )

        return ApiError(f"{identity.full_name}: {exc}", identity)

    def _get_repo(self, identity: RepositoryIdentity):
        try:
            return self.gh.get_repo(identity.full_name)
        except (GithubException, RequestException) as e:
            raise self._translate(e, identity) from e

    def _latest_tag(self, identity: RepositoryIdentity, repo) -> ReleaseInfo | None:
        """Fall back to the newest tag and its commit date."""
        try:
            tag = next(iter(repo.get_tags()), None)
            if tag is None:
                return None
            committed_at = tag.commit.commit.committer.date
        except UnknownObjectException:
            return None
        except (GithubException, RequestException) as e:
            raise self._translate(e, identity) from e

        return ReleaseInfo(tag=tag.name, published_at=committed_at, from_tag=True)

    def _latest_release(self, identity: RepositoryIdentity, repo) -> ReleaseInfo | None:
        try:
            release = repo.get_latest_release()
        except UnknownObjectException:
            logger.debug("No releases for %s, trying tags", identity.full_name)
            return self._latest_tag(identity, repo)
        except (GithubException, RequestException) as e:
            raise self._translate(e, identity) from e

        return ReleaseInfo(
            tag=release.tag_name,
            published_at=release.published_at or release.created_at,
        )

    def _last_commit_at(self, identity: RepositoryIdentity, repo):
        try:
            commit = next(iter(repo.get_commits()), None)
        except GithubException as e:
            if e.status == EMPTY_REPOSITORY_STATUS:
                commit = None
            else:
                raise self._translate(e, identity) from e
        except RequestException as e:
            raise self._translate(e, identity) from e

        if commit is None:
            return repo.pushed_at
        return commit.commit.committer.date

    def fetch_release(self, identity: RepositoryIdentity) -> ReleaseInfo | None:
        """Get the latest release, or the latest tag when there are no releases."""
        repo = self._get_repo(identity)
        return self._latest_release(identity, repo)

    def fetch_snapshot(self, identity: RepositoryIdentity) -> RepositorySnapshot:
        """Fetch repository info, latest release and latest commit."""
        repo = self._get_repo(identity)
        release = self._latest_release(identity, repo)
        last_commit_at = self._last_commit_at(identity, repo)

        license_name = None
        if repo.license is not None:
            spdx = repo.license.spdx_id
            license_name = spdx if spdx and spdx != "NOASSERTION" else repo.license.name

        return RepositorySnapshot(
            last_commit_at=last_commit_at,
            last_release_at=release.published_at if release else None,
            latest_version_tag=release.tag if release else None,
            star_count=repo.stargazers_count or 0,
            is_archived=bool(repo.archived),
            homepage_url=repo.homepage or None,
            license=license_name,
            web_url=repo.html_url or identity.web_url,
            has_release=release is not None and not release.from_tag,
        )
