"""Domain entities for managed GitHub repositories."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from cdktf_cdktf_provider_github.provider import GithubProvider

DEFAULT_DESCRIPTION = "Repository management for prebuilt cdktf providers via cdktf"
DEFAULT_TOPICS = (
    "cdktf",
    "terraform",
    "terraform-cdk",
    "cdk",
    "provider",
    "pre-built-provider",
)


class PolicyRevision(Enum):
    """Baseline of auxiliary policy applied to every repository."""

    LEGACY = "legacy"
    CURRENT = "current"

    @property
    def default_checks(self) -> Tuple[str, ...]:
        if self is PolicyRevision.LEGACY:
            return ("build",)
        return ("build", "license/cla")


class RepositoryKind(Enum):
    CREATED = "created"
    EXISTING = "existing"


@dataclass(frozen=True)
class Team:
    """Team that administers the repositories; ``id`` may be a token."""

    id: str


@dataclass(frozen=True)
class RepositoryHandle:
    """
    A declared repository or a read-only lookup of one.

    Both variants expose ``name``, the token of the owning element's ``name``
    attribute. ``static_name`` is set when the name is known while the stack
    is being built.
    """

    kind: RepositoryKind
    name: str
    static_name: Optional[str] = None


@dataclass(frozen=True)
class RepositoryConfig:
    """
    Configuration for a repository created and managed by the stack.

    ``description`` and ``topics`` left as None take the defaults.
    """

    team: Team
    provider: Optional[GithubProvider] = None
    description: Optional[str] = None
    topics: Optional[Sequence[str]] = None
    protect_main: bool = False
    protect_main_checks: Optional[Sequence[str]] = None
    webhook_url: Optional[str] = None
    revision: PolicyRevision = PolicyRevision.CURRENT

    @property
    def resolved_description(self) -> str:
        if self.description is None:
            return DEFAULT_DESCRIPTION
        return self.description

    @property
    def resolved_topics(self) -> Tuple[str, ...]:
        if self.topics is None:
            return DEFAULT_TOPICS
        return tuple(self.topics)


@dataclass(frozen=True)
class ExistingRepositoryConfig:
    """Configuration for a repository whose creation is managed elsewhere."""

    team: Team
    repository_name: str
    provider: Optional[GithubProvider] = None
    webhook_url: Optional[str] = None
    revision: PolicyRevision = PolicyRevision.CURRENT
