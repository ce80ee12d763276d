"""Logical id helpers layered on cdktf's id allocation."""

import hashlib
import logging
import re
from typing import List

from cdktf import TerraformElement, TerraformStack
from constructs import IConstruct

logger = logging.getLogger(__name__)

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")
_IDENTIFIER_START = re.compile(r"^[A-Za-z_]")


def construct_id(name: str) -> str:
    """
    Construct id for a repository name.

    Terraform identifiers must start with a letter or underscore while
    repository names may start with a digit, and the first path component
    ends up at the front of every logical id below it.
    """
    if _IDENTIFIER_START.match(name):
        return name
    return f"repo-{name}"


def _stack_path(construct: IConstruct) -> List[str]:
    stack = TerraformStack.of(construct)
    scopes = construct.node.scopes
    index = next(i for i, scope in enumerate(scopes) if scope.node.path == stack.node.path)
    return [scope.node.id for scope in scopes[index + 1:]]


def make_legacy_id(construct: IConstruct) -> str:
    """Logical id as allocated before separators were allowed in ids."""
    components = _stack_path(construct)
    readable = "".join(_NON_ALPHANUMERIC.sub("", component) for component in components)
    if len(components) > 1:
        digest = hashlib.md5("/".join(components).encode("utf-8")).hexdigest()[:8].upper()
        readable = f"{readable}{digest}"
    if not _IDENTIFIER_START.match(readable):
        readable = f"_{readable}"
    return readable


def set_old_id(element: TerraformElement):
    """Pin an element to its legacy logical id so existing state keeps tracking it."""
    legacy_id = make_legacy_id(element)
    element.override_logical_id(legacy_id)
    logger.debug(f"Pinned {element.node.path} to {legacy_id}")
