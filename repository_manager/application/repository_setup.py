"""Constructs that declare GitHub repositories and their auxiliary policy."""

import logging
from typing import List, Optional, Sequence

from cdktf import Fn, TerraformElement, TerraformStack, TerraformVariable, Token
from cdktf_cdktf_provider_github.actions_secret import ActionsSecret
from cdktf_cdktf_provider_github.branch_protection import (
    BranchProtection,
    BranchProtectionRequiredPullRequestReviews,
    BranchProtectionRequiredStatusChecks,
)
from cdktf_cdktf_provider_github.data_github_repository import DataGithubRepository
from cdktf_cdktf_provider_github.issue_label import IssueLabel
from cdktf_cdktf_provider_github.provider import GithubProvider
from cdktf_cdktf_provider_github.repository import Repository
from cdktf_cdktf_provider_github.repository_file import RepositoryFile
from cdktf_cdktf_provider_github.repository_webhook import (
    RepositoryWebhook,
    RepositoryWebhookConfiguration,
)
from cdktf_cdktf_provider_github.team_repository import TeamRepository
from constructs import Construct

from repository_manager.domain.repository import (
    ExistingRepositoryConfig,
    PolicyRevision,
    RepositoryConfig,
    RepositoryHandle,
    RepositoryKind,
    Team,
)
from repository_manager.infrastructure.logical_ids import construct_id, set_old_id

logger = logging.getLogger(__name__)

HOMEPAGE_URL = "https://cdk.tf"
CODEOWNERS_PATH = ".github/CODEOWNERS"
CODEOWNERS_CONTENT = "* @cdktf/tf-cdk-team"
GO_SUFFIX = "-go"


class DuplicateSecretError(Exception):
    """Raised when a secret is bound to the same repository twice."""
    pass


class RepositorySetup(Construct):
    """
    Attach the auxiliary policy bundle to a repository handle.

    Elements are declared in a fixed order: labels, branch protection,
    team binding, webhook and (legacy revision) the CODEOWNERS file.
    """

    LABELS = {
        PolicyRevision.LEGACY: (("automerge", "5DC8DB"),),
        PolicyRevision.CURRENT: (
            ("automerge", "5DC8DB"),
            ("no-auto-close", "EE2222"),
            ("auto-approve", "8BF8BD"),
        ),
    }

    def __init__(
        self,
        scope: Construct,
        id: str,
        *,
        team: Team,
        repository: RepositoryHandle,
        provider: Optional[GithubProvider] = None,
        webhook_url: Optional[str] = None,
        protect_main: bool = False,
        protect_main_checks: Optional[Sequence[str]] = None,
        revision: PolicyRevision = PolicyRevision.CURRENT,
    ):
        """
        Declare the bundle under ``scope``.

        Args:
            scope: Enclosing construct
            id: Construct id of the bundle
            team: Team granted admin permission
            repository: Handle of the repository being configured
            provider: Provider handle used by every element
            webhook_url: Notification endpoint for new issues
            protect_main: Whether to declare branch protection for main
            protect_main_checks: Required status checks; defaults per revision
            revision: Policy baseline to apply

        Raises:
            ValueError: If the legacy revision is used without a webhook URL
        """
        if revision is PolicyRevision.LEGACY and not webhook_url:
            raise ValueError("webhook_url is required for the legacy policy revision")

        super().__init__(scope, id)
        self.repository = repository
        self.provider = provider
        self.revision = revision
        self.elements: List[TerraformElement] = []

        if protect_main_checks is None:
            protect_main_checks = revision.default_checks

        for label, color in self.LABELS[revision]:
            self._track(IssueLabel(
                self,
                f"{label}-label",
                repository=repository.name,
                name=label,
                color=color,
                provider=provider,
            ))

        if protect_main:
            self._track(self._branch_protection(list(protect_main_checks)))

        self._track(TeamRepository(
            self,
            "managing-team",
            team_id=team.id,
            repository=repository.name,
            permission="admin",
            provider=provider,
        ))

        # Pull requests are auto-created, only issues need a notification
        if webhook_url:
            self._track(RepositoryWebhook(
                self,
                "slack-webhook",
                repository=repository.name,
                configuration=RepositoryWebhookConfiguration(url=webhook_url, content_type="json"),
                events=["issues"],
                provider=provider,
            ))
        else:
            logger.debug(f"No webhook URL for {self.node.path}, skipping webhook")

        if revision is PolicyRevision.LEGACY:
            self._codeowners()

    def _branch_protection(self, checks: List[str]) -> BranchProtection:
        reviews = None
        resolve_conversations = None
        if self.revision is PolicyRevision.CURRENT:
            reviews = [BranchProtectionRequiredPullRequestReviews(
                required_approving_review_count=1,
                require_code_owner_reviews=False,
            )]
            resolve_conversations = True

        return BranchProtection(
            self,
            "main-protection",
            repository_id=self.repository.name,
            pattern="main",
            enforce_admins=True,
            allows_deletions=False,
            allows_force_pushes=False,
            required_status_checks=[BranchProtectionRequiredStatusChecks(strict=True, contexts=checks)],
            required_pull_request_reviews=reviews,
            require_conversation_resolution=resolve_conversations,
            provider=self.provider,
        )

    def _codeowners(self):
        count = None
        static_name = self.repository.static_name
        if static_name is not None:
            if not static_name.endswith(GO_SUFFIX):
                return
        else:
            count = Token.as_number(Fn.conditional(Fn.endswith(self.repository.name, GO_SUFFIX), 1, 0))

        self._track(RepositoryFile(
            self,
            "codeowners",
            repository=self.repository.name,
            file=CODEOWNERS_PATH,
            content=CODEOWNERS_CONTENT,
            commit_message="Add CODEOWNERS",
            overwrite_on_create=True,
            count=count,
            provider=self.provider,
        ))

    def _track(self, element: TerraformElement) -> TerraformElement:
        if self.revision is PolicyRevision.CURRENT:
            set_old_id(element)
        self.elements.append(element)
        return element


class SecretFromVariable(Construct):
    """Actions secret whose value is read from a sensitive stack variable."""

    def __init__(self, scope: Construct, name: str):
        super().__init__(scope, f"secret-{name}")
        self.name = name
        self.variable = TerraformVariable(self, "value", type="string", sensitive=True)
        self.variable.override_logical_id(name)

    @classmethod
    def for_stack(cls, scope: Construct, name: str) -> "SecretFromVariable":
        """Return the stack's secret called ``name``, declaring it on first use."""
        stack = TerraformStack.of(scope)
        existing = stack.node.try_find_child(f"secret-{name}")
        if existing is not None:
            return existing
        return cls(stack, name)

    def set_secret_for_repository(
        self,
        scope: Construct,
        repository: RepositoryHandle,
        provider: Optional[GithubProvider] = None,
    ) -> ActionsSecret:
        if scope.node.try_find_child(f"secret-{self.name}") is not None:
            raise DuplicateSecretError(f"Secret {self.name} is already set for {scope.node.path}")
        return ActionsSecret(
            scope,
            f"secret-{self.name}",
            repository=repository.name,
            secret_name=self.name,
            plaintext_value=self.variable.string_value,
            provider=provider,
        )


class GithubRepository(Construct):
    """Declare a new repository with the baseline settings and policy bundle."""

    def __init__(self, scope: Construct, name: str, config: RepositoryConfig):
        super().__init__(scope, construct_id(name))
        self.name = name
        self.config = config

        current = config.revision is PolicyRevision.CURRENT
        self.resource = Repository(
            self,
            "repo",
            name=name,
            description=config.resolved_description,
            visibility="public",
            homepage_url=HOMEPAGE_URL,
            has_issues=not name.endswith(GO_SUFFIX) if current else True,
            has_wiki=False,
            auto_init=True,
            has_projects=False,
            delete_branch_on_merge=True,
            topics=list(config.resolved_topics),
            archive_on_destroy=True if current else None,
            allow_auto_merge=True if current else None,
            allow_update_branch=True if current else None,
            squash_merge_commit_title="PR_TITLE" if current else None,
            squash_merge_commit_message="PR_BODY" if current else None,
            vulnerability_alerts=True if current else None,
            provider=config.provider,
        )
        if current:
            set_old_id(self.resource)

        self.handle = RepositoryHandle(
            kind=RepositoryKind.CREATED,
            name=self.resource.name,
            static_name=name,
        )
        self.setup = RepositorySetup(
            self,
            "repository-setup",
            team=config.team,
            repository=self.handle,
            provider=config.provider,
            webhook_url=config.webhook_url,
            protect_main=config.protect_main,
            protect_main_checks=config.protect_main_checks,
            revision=config.revision,
        )

    def add_secret(self, name: str) -> ActionsSecret:
        """Bind the stack variable ``name`` to this repository as an Actions secret."""
        secret = SecretFromVariable.for_stack(self, name)
        element = secret.set_secret_for_repository(self, self.handle, self.config.provider)
        logger.debug(f"Added secret {name} to {self.name}")
        return element


class GithubRepositoryFromExistingRepository(Construct):
    """Apply the policy bundle to a repository created elsewhere."""

    def __init__(self, scope: Construct, id: str, config: ExistingRepositoryConfig):
        super().__init__(scope, construct_id(id))
        self.config = config

        self.resource = DataGithubRepository(
            self,
            "repo",
            name=config.repository_name,
            provider=config.provider,
        )
        self.handle = RepositoryHandle(
            kind=RepositoryKind.EXISTING,
            name=self.resource.name,
            static_name=config.repository_name,
        )
        self.setup = RepositorySetup(
            self,
            "repository-setup",
            team=config.team,
            repository=self.handle,
            provider=config.provider,
            webhook_url=config.webhook_url,
            revision=config.revision,
        )
