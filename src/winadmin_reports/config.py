from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from winadmin_reports.errors import ConfigError

Backend = Literal["graph", "msol_snapshot"]


class PathsConfig(BaseModel):
    logs_dir: Path = Field(default=Path("logs"))


class GraphConfig(BaseModel):
    base_url: str = Field(default="https://graph.microsoft.com/v1.0")

    # Bearer token is issued outside this tool (az cli, Connect-MgGraph, app registration).
    # Read primarily from env GRAPH_ACCESS_TOKEN; never commit it to YAML.
    access_token: Optional[str] = Field(default=None)

    timeout_s: float = Field(default=30.0)
    max_attempts: int = Field(default=3)
    page_size: int = Field(default=999)


class ExportConfig(BaseModel):
    # Unresolvable entities become an explicit "Error" row instead of being dropped.
    emit_error_rows: bool = Field(default=True)


class Settings(BaseModel):
    """Application settings.

    Backends:
    - graph: Microsoft Graph v1.0 (users + authentication methods).
    - msol_snapshot: JSON export of Get-MsolUser (legacy MSOnline module).

    Registry:
    - registry_snapshot_path points to a YAML dump of registry values. When unset,
      checks read the live registry (Windows only).
    """

    backend: Backend = Field(default="graph")

    msol_snapshot_path: Optional[Path] = Field(default=None)
    registry_snapshot_path: Optional[Path] = Field(default=None)

    graph: GraphConfig = Field(default_factory=GraphConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    paths: PathsConfig = Field(default_factory=PathsConfig)


def load_settings(config_path: Optional[Path]) -> Settings:
    """Load settings from .env + optional YAML.

    Precedence:
      1) defaults
      2) .env / environment (GRAPH_ACCESS_TOKEN, REPORT_BACKEND, MSOL_SNAPSHOT_PATH)
      3) YAML file (if provided)

    Notes:
      - Only the project's local `.env` file is loaded, never one from a parent
        directory, so runs stay reproducible.
    """

    load_dotenv(dotenv_path=Path(".env"), override=False)

    base = Settings()

    # P0: defaults
    merged: Dict[str, Any] = base.model_dump(mode="python")

    # P1: environment overrides
    env_token = _getenv("GRAPH_ACCESS_TOKEN")
    env_backend = _getenv("REPORT_BACKEND")
    env_snapshot = _getenv("MSOL_SNAPSHOT_PATH")

    if env_token is not None:
        merged["graph"]["access_token"] = env_token
    if env_backend is not None:
        merged["backend"] = env_backend
    if env_snapshot is not None:
        merged["msol_snapshot_path"] = env_snapshot

    if config_path is not None:
        cfg = _load_yaml(config_path)
        merged = _deep_merge(merged, cfg)

    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def _getenv(key: str) -> Optional[str]:
    import os

    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ConfigError("YAML config must be a mapping/object at the top level")
    return parsed


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if (
            k in out
            and isinstance(out[k], dict)
            and isinstance(v, dict)
        ):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out
