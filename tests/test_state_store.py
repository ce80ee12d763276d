import json
from unittest.mock import MagicMock

import pytest

from repository_manager.infrastructure.state_store import (
    TerraformStateRepository,
    build_connection_string,
)

STATE = {
    "version": 4,
    "resources": [
        {"mode": "managed", "type": "github_repository", "name": "cdktfproviderrandomrepoA1B2C3D4", "instances": []},
        {"mode": "data", "type": "github_team", "name": "team", "instances": []},
        {"module": "module.other", "mode": "managed", "type": "github_issue_label", "name": "x", "instances": []},
    ],
}


def _repository_with_row(row):
    cursor = MagicMock()
    cursor.fetchone.return_value = row
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    repository = TerraformStateRepository(connection_string="dbname=test")
    repository.pool = MagicMock()
    repository.pool.getconn.return_value = conn
    return repository, cursor, conn


def test_connection_string_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("POSTGRES_HOST", "db")
    monkeypatch.setenv("POSTGRES_PORT", "6543")
    monkeypatch.setenv("POSTGRES_DB", "tf")
    monkeypatch.setenv("POSTGRES_USER", "terraform")
    monkeypatch.setenv("POSTGRES_PASSWORD", "secret")

    assert build_connection_string() == "host=db port=6543 dbname=tf user=terraform password=secret"


def test_get_resource_addresses() -> None:
    repository, cursor, conn = _repository_with_row((json.dumps(STATE),))

    addresses = repository.get_resource_addresses("production")

    assert addresses == {"github_repository.cdktfproviderrandomrepoA1B2C3D4", "data.github_team.team"}
    assert cursor.execute.call_args[0][1] == ("production",)
    repository.pool.putconn.assert_called_once_with(conn)


def test_missing_workspace_has_no_addresses() -> None:
    repository, _, _ = _repository_with_row(None)

    assert repository.get_state() is None
    assert repository.get_resource_addresses() == set()


def test_connection_returned_on_error() -> None:
    repository, cursor, conn = _repository_with_row(None)
    cursor.execute.side_effect = RuntimeError("broken")

    with pytest.raises(RuntimeError):
        repository.get_state()
    repository.pool.putconn.assert_called_once_with(conn)
