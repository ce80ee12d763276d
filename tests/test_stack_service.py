import json

import pytest
from cdktf import Testing

from repository_manager.application.stack_service import (
    TEAM_LOOKUP_ID,
    StackDefinition,
    StackDefinitionError,
    StackService,
    load_stack_definition,
)
from repository_manager.domain.repository import PolicyRevision


def _definition(**overrides):
    data = {
        "name": "repos",
        "owner": "cdktf",
        "team": {"slug": "tf-cdk-team"},
        "repositories": [
            {"name": "cdktf-provider-random", "protect_main": True, "secrets": ["GH_TOKEN", "NPM_TOKEN"]},
            {"name": "cdktf-provider-null", "topics": ["cdktf"]},
        ],
        "existing_repositories": ["cdktf-repository-manager", {"name": "cdktf-provider-project"}],
    }
    data.update(overrides)
    return data


def _build(data):
    return StackService().build(StackDefinition.from_dict(data), Testing.app())


def test_from_dict_parses_definition() -> None:
    definition = StackDefinition.from_dict(_definition(revision="legacy", webhook_url="https://hooks.example.com"))

    assert definition.revision is PolicyRevision.LEGACY
    assert definition.team_slug == "tf-cdk-team"
    assert definition.team_id is None
    assert definition.repositories[0].secrets == ("GH_TOKEN", "NPM_TOKEN")
    assert definition.repositories[0].topics is None
    assert definition.repositories[0].description is None
    assert definition.repositories[1].topics == ("cdktf",)
    assert definition.existing_repositories == ("cdktf-repository-manager", "cdktf-provider-project")


def test_from_dict_uses_fallback_webhook() -> None:
    definition = StackDefinition.from_dict(_definition(), webhook_url="https://hooks.example.com")

    assert definition.webhook_url == "https://hooks.example.com"


def test_legacy_revision_accepts_fallback_webhook() -> None:
    definition = StackDefinition.from_dict(_definition(revision="legacy"), webhook_url="https://hooks.example.com")

    assert definition.revision is PolicyRevision.LEGACY


@pytest.mark.parametrize(
    "overrides",
    [
        {"owner": ""},
        {"name": None},
        {"team": {}},
        {"team": {"id": "1", "slug": "tf-cdk-team"}},
        {"revision": "next"},
        {"revision": "legacy"},
        {"repositories": None},
        {"repositories": {"name": "cdktf-provider-random"}},
        {"existing_repositories": None},
        {"repositories": [{"topics": []}]},
        {"repositories": [{"name": "cdktf-provider-random", "topics": "cdktf"}]},
        {"existing_repositories": [{}]},
        {"existing_repositories": ["cdktf-provider-random"]},
        {"repositories": [{"name": "cdktf-provider-null"}, {"name": "cdktf-provider-null"}]},
        {"existing_repositories": [TEAM_LOOKUP_ID]},
        {"repositories": [{"name": "secret-GH_TOKEN"}]},
        {"repositories": [{"name": "1password"}, {"name": "repo-1password"}]},
    ],
)
def test_from_dict_rejects_invalid_definitions(overrides) -> None:
    with pytest.raises(StackDefinitionError):
        StackDefinition.from_dict(_definition(**overrides))


@pytest.mark.parametrize("data", [[], "repos", None])
def test_from_dict_rejects_non_object(data) -> None:
    with pytest.raises(StackDefinitionError):
        StackDefinition.from_dict(data)


def test_build_declares_every_repository() -> None:
    stack = _build(_definition())

    assert [repo.handle.static_name for repo in stack.repositories] == [
        "cdktf-provider-random",
        "cdktf-provider-null",
    ]
    assert [repo.handle.static_name for repo in stack.existing_repositories] == [
        "cdktf-repository-manager",
        "cdktf-provider-project",
    ]

    document = json.loads(Testing.synth(stack))
    assert len(document["resource"]["github_repository"]) == 2
    assert len(document["data"]["github_repository"]) == 2
    assert len(document["resource"]["github_branch_protection"]) == 1
    assert len(document["resource"]["github_actions_secret"]) == 2
    assert "github_repository_webhook" not in document["resource"]
    assert sorted(document["variable"]) == ["GH_TOKEN", "NPM_TOKEN"]


def test_build_looks_up_team_by_slug() -> None:
    stack = _build(_definition())

    document = json.loads(Testing.synth(stack))
    [team_id] = document["data"]["github_team"]
    assert document["data"]["github_team"][team_id]["slug"] == "tf-cdk-team"
    bindings = document["resource"]["github_team_repository"].values()
    assert len(bindings) == 4
    for binding in bindings:
        assert binding["team_id"] == f"${{data.github_team.{team_id}.id}}"


def test_build_uses_team_id_directly() -> None:
    stack = _build(_definition(team={"id": "4242"}))

    document = json.loads(Testing.synth(stack))
    assert "github_team" not in document.get("data", {})
    assert {binding["team_id"] for binding in document["resource"]["github_team_repository"].values()} == {"4242"}


def test_build_configures_backend_and_webhooks(monkeypatch) -> None:
    monkeypatch.setenv("POSTGRES_HOST", "db.internal")
    monkeypatch.setenv("POSTGRES_PASSWORD", "hunter2")
    definition = StackDefinition.from_dict(_definition(
        state_schema="repos_state",
        webhook_url="https://hooks.example.com",
    ))

    stack = StackService().build(definition, Testing.app())

    document = json.loads(Testing.synth(stack))
    assert len(document["resource"]["github_repository_webhook"]) == 4
    backend = document["terraform"]["backend"]["pg"]
    assert backend["schema_name"] == "repos_state"
    assert "host=db.internal" in backend["conn_str"]
    assert "hunter2" not in backend["conn_str"]


def test_build_provider_alias() -> None:
    stack = _build(_definition(provider_alias="cdktf"))

    document = json.loads(Testing.synth(stack))
    [provider] = document["provider"]["github"]
    assert provider["owner"] == "cdktf"
    assert provider["alias"] == "cdktf"
    for repository in document["resource"]["github_repository"].values():
        assert repository["provider"] == "github.cdktf"


def test_build_digit_leading_repository() -> None:
    stack = _build(_definition(repositories=[{"name": "1password-provider"}], existing_repositories=[]))

    [repository] = stack.repositories
    assert repository.node.id == "repo-1password-provider"


def test_load_stack_definition(tmp_path) -> None:
    path = tmp_path / "stack.json"
    path.write_text(json.dumps(_definition()), encoding="utf-8")

    definition = load_stack_definition(str(path))
    assert definition.name == "repos"


def test_load_stack_definition_rejects_invalid_json(tmp_path) -> None:
    path = tmp_path / "stack.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StackDefinitionError):
        load_stack_definition(str(path))
