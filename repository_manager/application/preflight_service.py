"""Application service that checks a stack definition against GitHub before synthesis."""

import logging
from typing import List

from repository_manager.application.stack_service import StackDefinition
from repository_manager.infrastructure.github_client import GitHubRESTClient

logger = logging.getLogger(__name__)


class PreflightService:
    """Service for catching definitions that would fail at apply time."""

    def __init__(self, github_client: GitHubRESTClient):
        """
        Initialize pre-flight service.

        Args:
            github_client: GitHub API client
        """
        self.github_client = github_client

    def verify(self, definition: StackDefinition) -> List[str]:
        """
        Look up every remote object the stack depends on.

        Args:
            definition: Parsed stack definition

        Returns:
            Human readable problems; empty when the stack can be applied
        """
        problems = []
        owner = definition.owner

        if definition.team_slug:
            if self.github_client.get_team(owner, definition.team_slug) is None:
                problems.append(f"Team {owner}/{definition.team_slug} does not exist")

        for name in definition.existing_repositories:
            if self.github_client.get_repository(owner, name) is None:
                problems.append(f"Existing repository {owner}/{name} was not found")

        for repo in definition.repositories:
            if self.github_client.get_repository(owner, repo.name) is not None:
                problems.append(
                    f"Repository {owner}/{repo.name} already exists; import it or list it "
                    f"under existing_repositories"
                )

        for problem in problems:
            logger.warning(problem)
        logger.info(f"Pre-flight for stack {definition.name} found {len(problems)} problems")
        return problems
