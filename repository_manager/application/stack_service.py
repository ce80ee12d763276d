"""Application service that builds a Terraform stack from a stack definition."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from cdktf import App, PgBackend, TerraformStack
from cdktf_cdktf_provider_github.data_github_team import DataGithubTeam
from cdktf_cdktf_provider_github.provider import GithubProvider
from constructs import Construct

from repository_manager.application.repository_setup import (
    GithubRepository,
    GithubRepositoryFromExistingRepository,
)
from repository_manager.domain.repository import (
    ExistingRepositoryConfig,
    PolicyRevision,
    RepositoryConfig,
    Team,
)
from repository_manager.infrastructure.logical_ids import construct_id
from repository_manager.infrastructure.state_store import build_backend_connection_string

logger = logging.getLogger(__name__)

TEAM_LOOKUP_ID = "managing-team"
RESERVED_PREFIX = "secret-"


class StackDefinitionError(Exception):
    """Raised when a stack definition cannot be turned into a stack."""
    pass


@dataclass(frozen=True)
class RepositoryDefinition:
    name: str
    description: Optional[str] = None
    topics: Optional[Tuple[str, ...]] = None
    protect_main: bool = False
    protect_main_checks: Optional[Tuple[str, ...]] = None
    secrets: Tuple[str, ...] = ()


def _string_list(value: Any, what: str) -> Tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) and item for item in value):
        raise StackDefinitionError(f"{what} must be a list of non-empty strings, got {value!r}")
    return tuple(value)


def _entries(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise StackDefinitionError(f"'{key}' must be a list, got {value!r}")
    return value


@dataclass(frozen=True)
class StackDefinition:
    """Everything needed to declare one stack of repositories."""

    name: str
    owner: str
    team_id: Optional[str] = None
    team_slug: Optional[str] = None
    provider_alias: Optional[str] = None
    revision: PolicyRevision = PolicyRevision.CURRENT
    webhook_url: Optional[str] = None
    state_schema: Optional[str] = None
    repositories: Tuple[RepositoryDefinition, ...] = field(default_factory=tuple)
    existing_repositories: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Any, webhook_url: Optional[str] = None) -> "StackDefinition":
        """
        Parse a stack definition.

        Args:
            data: Decoded JSON definition
            webhook_url: Fallback webhook URL when the definition has none

        Returns:
            The parsed definition

        Raises:
            StackDefinitionError: If the definition is malformed or inconsistent
        """
        if not isinstance(data, dict):
            raise StackDefinitionError(f"Stack definition must be an object, got {type(data).__name__}")

        for key in ("name", "owner"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise StackDefinitionError(f"Stack definition is missing '{key}'")

        team = data.get("team")
        if not isinstance(team, dict) or bool(team.get("id")) == bool(team.get("slug")):
            raise StackDefinitionError("'team' must set exactly one of 'id' or 'slug'")

        try:
            revision = PolicyRevision(data.get("revision", PolicyRevision.CURRENT.value))
        except ValueError:
            raise StackDefinitionError(f"Unknown policy revision: {data.get('revision')!r}") from None

        webhook_url = data.get("webhook_url") or webhook_url
        if revision is PolicyRevision.LEGACY and not webhook_url:
            raise StackDefinitionError("The legacy policy revision requires a webhook_url")

        repositories = []
        for entry in _entries(data, "repositories"):
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str) or not entry["name"]:
                raise StackDefinitionError(f"Repository entry without a name: {entry!r}")
            name = entry["name"]
            topics = entry.get("topics")
            checks = entry.get("protect_main_checks")
            repositories.append(RepositoryDefinition(
                name=name,
                description=entry.get("description"),
                topics=_string_list(topics, f"{name}.topics") if topics is not None else None,
                protect_main=bool(entry.get("protect_main", False)),
                protect_main_checks=_string_list(checks, f"{name}.protect_main_checks") if checks is not None else None,
                secrets=_string_list(entry.get("secrets", []), f"{name}.secrets"),
            ))

        existing = []
        for entry in _entries(data, "existing_repositories"):
            existing_name = entry.get("name") if isinstance(entry, dict) else entry
            if not isinstance(existing_name, str) or not existing_name:
                raise StackDefinitionError(f"Existing repository entry without a name: {entry!r}")
            existing.append(existing_name)

        seen = set()
        for name in [repo.name for repo in repositories] + existing:
            key = construct_id(name)
            if key in seen:
                raise StackDefinitionError(f"Repository {name} is listed more than once")
            if key == TEAM_LOOKUP_ID or key.startswith(RESERVED_PREFIX):
                raise StackDefinitionError(f"Repository name {name} is reserved")
            seen.add(key)

        return cls(
            name=data["name"],
            owner=data["owner"],
            team_id=team.get("id"),
            team_slug=team.get("slug"),
            provider_alias=data.get("provider_alias"),
            revision=revision,
            webhook_url=webhook_url,
            state_schema=data.get("state_schema"),
            repositories=tuple(repositories),
            existing_repositories=tuple(existing),
        )


def load_stack_definition(path: str, webhook_url: Optional[str] = None) -> StackDefinition:
    """Read a stack definition from a JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise StackDefinitionError(f"Invalid JSON in {path}: {e}") from e
    return StackDefinition.from_dict(data, webhook_url=webhook_url)


class RepositoryStack(TerraformStack):
    """Terraform stack declaring every repository of a definition."""

    def __init__(self, scope: Construct, definition: StackDefinition):
        super().__init__(scope, definition.name)
        self.definition = definition

        if definition.state_schema:
            PgBackend(self, conn_str=build_backend_connection_string(), schema_name=definition.state_schema)

        self.provider = GithubProvider(self, "github", owner=definition.owner, alias=definition.provider_alias)
        self.team = self._team()

        self.repositories: List[GithubRepository] = []
        for repo in definition.repositories:
            github_repository = GithubRepository(self, repo.name, RepositoryConfig(
                team=self.team,
                provider=self.provider,
                description=repo.description,
                topics=repo.topics,
                protect_main=repo.protect_main,
                protect_main_checks=repo.protect_main_checks,
                webhook_url=definition.webhook_url,
                revision=definition.revision,
            ))
            for secret in repo.secrets:
                github_repository.add_secret(secret)
            self.repositories.append(github_repository)

        self.existing_repositories: List[GithubRepositoryFromExistingRepository] = []
        for existing_name in definition.existing_repositories:
            self.existing_repositories.append(GithubRepositoryFromExistingRepository(
                self,
                existing_name,
                ExistingRepositoryConfig(
                    team=self.team,
                    repository_name=existing_name,
                    provider=self.provider,
                    webhook_url=definition.webhook_url,
                    revision=definition.revision,
                ),
            ))

    def _team(self) -> Team:
        if self.definition.team_id:
            return Team(id=self.definition.team_id)
        lookup = DataGithubTeam(self, TEAM_LOOKUP_ID, slug=self.definition.team_slug, provider=self.provider)
        return Team(id=lookup.id)


class StackService:
    """Service for declaring a stack definition into a cdktf app."""

    def build(self, definition: StackDefinition, app: Optional[App] = None) -> RepositoryStack:
        """
        Build the Terraform stack for a definition.

        Args:
            definition: Parsed stack definition
            app: App to add the stack to; a new one is created if None

        Returns:
            Stack ready to be synthesized
        """
        logger.info(
            f"Building stack {definition.name} for {definition.owner} "
            f"({len(definition.repositories)} new, "
            f"{len(definition.existing_repositories)} existing repositories)"
        )
        if app is None:
            app = App()

        stack = RepositoryStack(app, definition)
        logger.info(f"Declared {len(stack.node.find_all())} constructs for stack {definition.name}")
        return stack
