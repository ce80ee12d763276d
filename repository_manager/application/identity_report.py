"""Compare synthesized logical ids with the addresses tracked in Terraform state."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from cdktf import TerraformStack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityReport:
    """Addresses the next apply would create and destroy."""

    to_create: Tuple[str, ...]
    to_destroy: Tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.to_create and not self.to_destroy


def declared_addresses(stack: TerraformStack) -> List[str]:
    """Addresses (``type.id``, ``data.type.id``) of every element the stack synthesizes."""
    document = stack.to_terraform()
    addresses = []
    for resource_type, by_id in document.get("resource", {}).items():
        addresses.extend(f"{resource_type}.{logical_id}" for logical_id in by_id)
    for data_type, by_id in document.get("data", {}).items():
        addresses.extend(f"data.{data_type}.{logical_id}" for logical_id in by_id)
    return addresses


def compare_addresses(stack: TerraformStack, state_addresses: Iterable[str]) -> IdentityReport:
    """
    Diff the stack's addresses against the ones already in state.

    An element that was moved without pinning its old id shows up in both
    lists: its new address is created and its old one destroyed.
    """
    declared = declared_addresses(stack)
    tracked = set(state_addresses)
    declared_set = set(declared)

    report = IdentityReport(
        to_create=tuple(address for address in declared if address not in tracked),
        to_destroy=tuple(sorted(tracked - declared_set)),
    )
    logger.info(
        f"Stack {stack.node.id}: {len(report.to_create)} new addresses, "
        f"{len(report.to_destroy)} addresses no longer declared"
    )
    return report
