"""Source-forge client that routes calls to the GitHub or GitLab backend."""

from typing import Protocol

from .github_client import GitHubClient
from .gitlab_client import GitLabClient
from .models import ApiError, Platform, ReleaseInfo, RepositoryIdentity, RepositorySnapshot


class SnapshotSource(Protocol):
    """Anything that can fetch upstream facts for a repository."""

    def fetch_snapshot(self, identity: RepositoryIdentity) -> RepositorySnapshot: ...

    def fetch_release(self, identity: RepositoryIdentity) -> ReleaseInfo | None: ...


class ForgeClient:
    """Dispatch fetches to the backend registered for the identity's platform."""

    def __init__(self, backends: dict[Platform, SnapshotSource]):
        self.backends = dict(backends)

    @classmethod
    def from_tokens(
        cls,
        github_token: str | None = None,
        gitlab_token: str | None = None,
        gitlab_url: str = "https://gitlab.com",
        timeout: float = 15,
        pool_size: int | None = None,
    ) -> "ForgeClient":
        """Build a client for github.com and a GitLab instance."""
        return cls({
            Platform.GITHUB: GitHubClient(
                token=github_token, timeout=timeout, pool_size=pool_size
            ),
            Platform.GITLAB: GitLabClient(
                url=gitlab_url, token=gitlab_token, timeout=timeout
            ),
        })

    def _backend(self, identity: RepositoryIdentity) -> SnapshotSource:
        backend = self.backends.get(identity.platform)
        if backend is None:
            raise ApiError(f"No client configured for {identity.platform.value}", identity)
        return backend

    def fetch_snapshot(self, identity: RepositoryIdentity) -> RepositorySnapshot:
        return self._backend(identity).fetch_snapshot(identity)

    def fetch_release(self, identity: RepositoryIdentity) -> ReleaseInfo | None:
        return self._backend(identity).fetch_release(identity)
