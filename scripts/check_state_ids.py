#!/usr/bin/env python3
"""Script to compare synthesized logical ids with the stored Terraform state."""

import logging
import sys
import os

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from repository_manager.application.identity_report import compare_addresses
from repository_manager.application.stack_service import StackService, load_stack_definition
from repository_manager.infrastructure.state_store import DEFAULT_SCHEMA, TerraformStateRepository

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Fail when the next apply would recreate managed resources."""
    state_repository = None
    try:
        definition = load_stack_definition(os.getenv("STACK_CONFIG", "stack.json"))
        stack = StackService().build(definition)

        state_repository = TerraformStateRepository(schema_name=definition.state_schema or DEFAULT_SCHEMA)
        state_repository.connect()
        addresses = state_repository.get_resource_addresses(os.getenv("TF_WORKSPACE", "default"))

        report = compare_addresses(stack, addresses)
        for address in report.to_create:
            logger.info(f"+ {address}")
        for address in report.to_destroy:
            logger.warning(f"- {address}")

        # Additions alone are expected for new repositories
        return 1 if report.to_destroy else 0

    except Exception as e:
        logger.error(f"State check failed: {e}", exc_info=True)
        return 1
    finally:
        if state_repository:
            state_repository.close()


if __name__ == "__main__":
    sys.exit(main())
