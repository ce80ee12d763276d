import json

import pytest
from cdktf import TerraformDataSource, TerraformStack, Testing
from cdktf_cdktf_provider_github.provider import GithubProvider

from repository_manager.domain.repository import Team


@pytest.fixture
def stack() -> TerraformStack:
    return TerraformStack(Testing.app(), "repos")


@pytest.fixture
def provider(stack) -> GithubProvider:
    return GithubProvider(stack, "github", owner="cdktf")


@pytest.fixture
def team() -> Team:
    return Team(id="4242")


@pytest.fixture
def synth():
    def _synth(stack):
        return json.loads(Testing.synth(stack))
    return _synth


@pytest.fixture
def rendered():
    def _rendered(document, element):
        section = "data" if isinstance(element, TerraformDataSource) else "resource"
        return document[section][element.terraform_resource_type][element.friendly_unique_id]
    return _rendered


def block(value):
    """Single nested block, whether rendered as an object or a one item list."""
    if isinstance(value, list):
        assert len(value) == 1
        return value[0]
    return value


@pytest.fixture
def first_block():
    return block
