#!/usr/bin/env python3
"""Script to synthesize a stack definition into a Terraform JSON configuration."""

import logging
import sys
import os

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cdktf import App

from repository_manager.application.stack_service import StackService, load_stack_definition

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Build the stack and write cdk.tf.json."""
    try:
        stack_config = os.getenv("STACK_CONFIG", "stack.json")
        output_dir = os.getenv("OUTPUT_DIR", "cdktf.out")

        # Webhook URL is a secret in CI, so it may come from the environment
        definition = load_stack_definition(stack_config, webhook_url=os.getenv("WEBHOOK_URL"))
        if not definition.webhook_url:
            logger.warning("No webhook URL configured. Repositories will not notify about issues.")

        app = App(outdir=output_dir)
        StackService().build(definition, app)
        app.synth()

        path = os.path.join(output_dir, "stacks", definition.name, "cdk.tf.json")
        logger.info(f"Stack {definition.name} synthesized to {path}")
        secrets = sorted({secret for repo in definition.repositories for secret in repo.secrets})
        if secrets:
            logger.info(f"Provide values for: {', '.join(secrets)}")
        return 0

    except Exception as e:
        logger.error(f"Synthesis failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
