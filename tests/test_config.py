from pathlib import Path

import pytest

from outreach.config import (
    DEFAULT_BASE_URL,
    WORKSPACES_DIR,
    WorkspaceError,
    load_workspace,
    parse_workspace,
    set_current_workspace,
    write_workspace_config,
)


def test_written_config_loads_back(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config_path = write_workspace_config("demo", "https://crm.example.com/")
    set_current_workspace("demo")

    ws = load_workspace()

    assert config_path == WORKSPACES_DIR / "demo" / "workspace.yaml"
    assert ws.name == "demo"
    assert ws.api.base_url == "https://crm.example.com/"
    assert ws.api.activity_limit == 10000
    assert ws.funnel.rules().sql_notes_threshold == 50
    assert ws.cache.ttl_seconds == 60


def test_missing_sections_use_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "workspace.yaml"
    config_path.write_text("workspace: demo\nfunnel:\n  sql_notes_threshold: 80\n")

    ws = parse_workspace(config_path, "demo")

    assert ws.api.base_url == DEFAULT_BASE_URL
    assert ws.funnel.sql_notes_threshold == 80
    assert ws.path == tmp_path


def test_token_comes_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "workspace.yaml"
    config_path.write_text("api:\n  token_env: CRM_TOKEN\n")
    monkeypatch.setenv("CRM_TOKEN", "abc123")

    assert parse_workspace(config_path, "demo").api.token() == "abc123"


@pytest.mark.parametrize(
    "body",
    [
        "api: [1, 2]\n",
        "api:\n  timeout: fast\n",
        "api:\n  base_url: ''\n",
        "funnel:\n  sql_notes_threshold: true\n",
        "cache:\n  ttl_seconds: -5\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, body: str) -> None:
    config_path = tmp_path / "workspace.yaml"
    config_path.write_text(body)
    with pytest.raises(WorkspaceError):
        parse_workspace(config_path, "demo")


def test_no_active_workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(WorkspaceError):
        load_workspace()
