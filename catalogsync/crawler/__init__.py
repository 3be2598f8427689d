"""Repository crawler module."""

from .models import (
    ApiError,
    ForgeError,
    InvalidUrlError,
    NetworkError,
    Platform,
    RateLimitedError,
    ReleaseInfo,
    RepositoryIdentity,
    RepositoryNotFoundError,
    RepositorySnapshot,
)
from .resolver import RepositoryResolver, create_default_resolver, parse
from .github_client import GitHubClient
from .gitlab_client import GitLabClient
from .client import ForgeClient
from .worker_pool import BoundedWorkerPool, RateLimitBreaker

__all__ = [
    "ApiError",
    "ForgeError",
    "InvalidUrlError",
    "NetworkError",
    "Platform",
    "RateLimitedError",
    "ReleaseInfo",
    "RepositoryIdentity",
    "RepositoryNotFoundError",
    "RepositorySnapshot",
    "RepositoryResolver",
    "create_default_resolver",
    "parse",
    "GitHubClient",
    "GitLabClient",
    "ForgeClient",
    "BoundedWorkerPool",
    "RateLimitBreaker",
]
