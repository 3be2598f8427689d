"""Resolve source-code URLs to repository identities."""

import re
from dataclasses import dataclass

from .models import Platform, RepositoryIdentity

_PREFIX = re.compile(r"^(?:https?://)?(?:www\.)?", re.IGNORECASE)


@dataclass(frozen=True)
class ResolverRule:
    """A host pattern mapped to a platform.

    The pattern is matched against the URL with protocol and ``www.``
    stripped and must capture ``owner`` and ``repo``.
    """
    pattern: re.Pattern
    platform: Platform


class RepositoryResolver:
    """Ordered list of URL rules; the first matching rule wins."""

    def __init__(self, rules: list[ResolverRule] | None = None):
        self._rules: list[ResolverRule] = list(rules or [])

    @property
    def rules(self) -> list[ResolverRule]:
        return list(self._rules)

    def register_rule(self, pattern: str, platform: Platform) -> None:
        """Append a rule, evaluated after the existing ones."""
        self._rules.append(ResolverRule(re.compile(pattern, re.IGNORECASE), platform))

    def parse(self, url: str | None) -> RepositoryIdentity | None:
        """Parse a URL into a RepositoryIdentity, or None when unsupported."""
        if not isinstance(url, str):
            return None

        cleaned = _PREFIX.sub("", url.strip())
        if not cleaned:
            return None

        for rule in self._rules:
            match = rule.pattern.match(cleaned)
            if not match:
                continue

            owner = match.group("owner")
            repo = match.group("repo")
            if repo.lower().endswith(".git"):
                repo = repo[:-4]
            if not owner or not repo:
                return None
            return RepositoryIdentity(platform=rule.platform, owner=owner, repo=repo)

        return None


def create_default_resolver() -> RepositoryResolver:
    """Create a resolver for github.com and gitlab.com."""
    resolver = RepositoryResolver()
    segment = r"[^/\s?#]+"
    resolver.register_rule(
        rf"github\.com/(?P<owner>{segment})/(?P<repo>{segment})",
        Platform.GITHUB,
    )
    resolver.register_rule(
        rf"gitlab\.com/(?P<owner>{segment})/(?P<repo>{segment})",
        Platform.GITLAB,
    )
    return resolver


_default_resolver = create_default_resolver()


def parse(url: str | None) -> RepositoryIdentity | None:
    """Parse a URL with the default rules."""
    return _default_resolver.parse(url)
