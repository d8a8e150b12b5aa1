"""
Tests for YAML/env configuration.
"""
import pytest

from agencyboard.kanban.config import BoardConfig, ConfigError
from agencyboard.kanban.schema import TaskStatus


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("AGENCYBOARD_DB", "AGENCYBOARD_API_URL", "AGENCYBOARD_API_SECRET"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_file_missing(tmp_path):
    cfg = BoardConfig.load(str(tmp_path / "missing.yaml"))
    assert cfg.api_url == "http://127.0.0.1:3000"
    assert cfg.request_timeout == 10.0
    assert len(cfg.column_table()) == 5


def test_load_yaml_ignores_unknown_keys(tmp_path):
    path = tmp_path / "agencyboard.yaml"
    path.write_text(
        "api_url: http://board.example:8080\n"
        "request_timeout: 3\n"
        "theme: dark\n"
        "columns:\n"
        "  - {id: backlog, name: Backlog, status: todo}\n"
        "  - {id: shipped, name: Shipped, status: DONE, color: '#0f0'}\n"
    )
    cfg = BoardConfig.load(str(path))

    assert cfg.api_url == "http://board.example:8080"
    assert cfg.request_timeout == 3
    table = cfg.column_table()
    assert table.column_ids == ["backlog", "shipped"]
    assert table.column_id_to_status("shipped") == TaskStatus.DONE
    assert table.status_to_column_id(TaskStatus.IN_PROGRESS) is None


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "agencyboard.yaml"
    path.write_text("api_key: from-file\ndb_path: /srv/file.db\n")
    monkeypatch.setenv("AGENCYBOARD_API_SECRET", "from-env")
    monkeypatch.setenv("AGENCYBOARD_DB", str(tmp_path / "env.db"))

    cfg = BoardConfig.load(str(path))
    assert cfg.api_key == "from-env"
    assert cfg.db_path == str(tmp_path / "env.db")

    client = cfg.service_client()
    assert client.api_key == "from-env"
    assert client.base_url == "http://127.0.0.1:3000"
    assert client.timeout == 10.0


@pytest.mark.parametrize("columns", [
    [{"id": "a", "status": "ARCHIVED"}],
    [{"name": "No id", "status": "TODO"}],
    [{"id": "a", "status": "TODO"}, {"id": "b", "status": "TODO"}],
    [{"id": "a", "status": "TODO"}, {"id": "a", "status": "DONE"}],
    ["todo"],
])
def test_invalid_columns(columns):
    with pytest.raises(ConfigError):
        BoardConfig(columns=columns).column_table()


def test_unparseable_yaml(tmp_path):
    path = tmp_path / "agencyboard.yaml"
    path.write_text("columns: [unclosed\n")
    with pytest.raises(ConfigError):
        BoardConfig.load(str(path))


def test_non_mapping_yaml(tmp_path):
    path = tmp_path / "agencyboard.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        BoardConfig.load(str(path))
