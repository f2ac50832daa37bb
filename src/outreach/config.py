from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from outreach.adapters.backend.client import DEFAULT_ACTIVITY_LIMIT, DEFAULT_TIMEOUT
from outreach.domain.funnels import DEFAULT_SQL_NOTES_THRESHOLD, FunnelRules
from outreach.services.cache import DEFAULT_TTL_SECONDS

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"
DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_TOKEN_ENV = "OUTREACH_API_TOKEN"


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = DEFAULT_BASE_URL
    token_env: str = DEFAULT_TOKEN_ENV
    timeout: float = DEFAULT_TIMEOUT
    activity_limit: int = DEFAULT_ACTIVITY_LIMIT

    def token(self) -> str | None:
        return os.getenv(self.token_env) or None


@dataclass(frozen=True)
class FunnelConfig:
    sql_notes_threshold: int = DEFAULT_SQL_NOTES_THRESHOLD

    def rules(self) -> FunnelRules:
        return FunnelRules(sql_notes_threshold=self.sql_notes_threshold)


@dataclass(frozen=True)
class CacheConfig:
    ttl_seconds: float = DEFAULT_TTL_SECONDS


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    path: Path
    api: ApiConfig = field(default_factory=ApiConfig)
    funnel: FunnelConfig = field(default_factory=FunnelConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `outreach workspace use <name>`.")
    return CURRENT_WORKSPACE_FILE.read_text(encoding="utf-8").strip()


def workspace_path(name: str) -> Path:
    return WORKSPACES_DIR / name


def workspace_config_path(name: str) -> Path:
    return workspace_path(name) / WORKSPACE_FILENAME


def load_workspace(name: str | None = None) -> WorkspaceConfig:
    if name is None:
        name = get_current_workspace_name()
    config_path = workspace_config_path(name)
    if not config_path.exists():
        raise WorkspaceError(f"Workspace config not found: {config_path}")
    return parse_workspace(config_path, name)


def parse_workspace(config_path: Path, name: str) -> WorkspaceConfig:
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a mapping: {config_path}")
    return WorkspaceConfig(
        name=name,
        path=config_path.parent,
        api=_parse_api(data.get("api")),
        funnel=_parse_funnel(data.get("funnel")),
        cache=_parse_cache(data.get("cache")),
    )


def write_workspace_config(name: str, base_url: str | None) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    config = {
        "workspace": name,
        "api": {
            "base_url": base_url or DEFAULT_BASE_URL,
            "token_env": DEFAULT_TOKEN_ENV,
            "timeout": DEFAULT_TIMEOUT,
            "activity_limit": DEFAULT_ACTIVITY_LIMIT,
        },
        "funnel": {"sql_notes_threshold": DEFAULT_SQL_NOTES_THRESHOLD},
        "cache": {"ttl_seconds": DEFAULT_TTL_SECONDS},
    }
    config_path = workspace_config_path(name)
    config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return config_path


def _section(data: Any, section: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace {section} configuration must be a mapping.")
    return data


def _number(value: Any, default: float, field_name: str, minimum: float = 0) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise WorkspaceError(f"Workspace {field_name} must be a number.")
    if value < minimum:
        raise WorkspaceError(f"Workspace {field_name} must be at least {minimum}.")
    return value


def _parse_api(api_data: Any) -> ApiConfig:
    data = _section(api_data, "api")
    base_url = data.get("base_url", DEFAULT_BASE_URL)
    if not isinstance(base_url, str) or not base_url.strip():
        raise WorkspaceError("Workspace api.base_url must be a non-empty string.")
    token_env = data.get("token_env", DEFAULT_TOKEN_ENV)
    if not isinstance(token_env, str) or not token_env:
        raise WorkspaceError("Workspace api.token_env must be a string.")
    return ApiConfig(
        base_url=base_url.strip(),
        token_env=token_env,
        timeout=_number(data.get("timeout"), DEFAULT_TIMEOUT, "api.timeout", minimum=1),
        activity_limit=int(
            _number(data.get("activity_limit"), DEFAULT_ACTIVITY_LIMIT, "api.activity_limit", 1)
        ),
    )


def _parse_funnel(funnel_data: Any) -> FunnelConfig:
    data = _section(funnel_data, "funnel")
    threshold = _number(
        data.get("sql_notes_threshold"),
        DEFAULT_SQL_NOTES_THRESHOLD,
        "funnel.sql_notes_threshold",
    )
    return FunnelConfig(sql_notes_threshold=int(threshold))


def _parse_cache(cache_data: Any) -> CacheConfig:
    data = _section(cache_data, "cache")
    return CacheConfig(
        ttl_seconds=_number(data.get("ttl_seconds"), DEFAULT_TTL_SECONDS, "cache.ttl_seconds")
    )
