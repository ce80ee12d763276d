#!/usr/bin/env python3
"""Script to check a stack definition against GitHub before applying it."""

import logging
import sys
import os

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from repository_manager.application.preflight_service import PreflightService
from repository_manager.application.stack_service import load_stack_definition
from repository_manager.infrastructure.github_client import GitHubRESTClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Report teams and repositories the stack expects but GitHub does not have."""
    try:
        github_token = os.getenv("GITHUB_TOKEN")
        if not github_token:
            logger.warning("GITHUB_TOKEN not found. Private repositories and teams will look missing.")

        definition = load_stack_definition(os.getenv("STACK_CONFIG", "stack.json"))
        preflight = PreflightService(GitHubRESTClient(token=github_token))
        problems = preflight.verify(definition)

        if problems:
            logger.error(f"Pre-flight failed with {len(problems)} problems")
            return 1
        logger.info("Pre-flight passed")
        return 0

    except Exception as e:
        logger.error(f"Pre-flight failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
