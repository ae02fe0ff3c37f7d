"""Configuration loading from YAML and environment."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from autoagent.exceptions import ConfigError

_DEFAULT_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "agent_config.yaml"


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """
    Load agent config from YAML file with optional env var overrides.

    Values in the file are merged over the built-in defaults, so a partial
    file only needs the keys it changes.

    Args:
        config_path: Path to agent_config.yaml. Defaults to config/agent_config.yaml.

    Returns:
        Nested config dict.

    Raises:
        ConfigError: If the file does not contain a YAML mapping.

    Example:
        >>> cfg = load_config()
        >>> cfg["budget"]["daily_limit"]
        100000
    """
    path = get_config_path(config_path)
    config = _default_config()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must contain a mapping, got {type(raw).__name__}")
        _deep_merge(config, raw)
    _apply_env_overrides(config)
    return config


def get_config_path(config_path: str | Path | None = None) -> Path:
    """Return the path to the config file used for load/save."""
    if config_path is None:
        config_path = _DEFAULT_PATH
    return Path(config_path)


def save_config(config: dict[str, Any], config_path: str | Path | None = None) -> None:
    """Write config dict to YAML file."""
    path = get_config_path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)


def _apply_env_overrides(config: dict[str, Any]) -> None:
    if data_dir := os.getenv("AGENT_DATA_DIR"):
        config.setdefault("agent", {})["data_dir"] = data_dir
    if daily := os.getenv("AGENT_DAILY_BUDGET"):
        try:
            config.setdefault("budget", {})["daily_limit"] = int(daily)
        except ValueError:
            raise ConfigError(f"AGENT_DAILY_BUDGET must be an integer, got {daily!r}") from None
    if provider := os.getenv("AGENT_BACKEND"):
        config.setdefault("backend", {})["provider"] = provider
    if url := os.getenv("AGENT_BACKEND_URL"):
        config.setdefault("backend", {})["base_url"] = url
    if api_key := os.getenv("AGENT_API_KEY"):
        config.setdefault("backend", {})["api_key"] = api_key
    if level := os.getenv("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base (in place). Non-dict values replace."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _default_config() -> dict[str, Any]:
    """Default config when no file is present."""
    return {
        "agent": {
            "data_dir": "./data",
            "peers": ["claude-code-cli", "claude-desktop-agent", "cursor-ide-agent"],
            "roles": {
                "claude-code-cli": "Project leadership coordination",
                "claude-desktop-agent": "Infrastructure health checks",
                "cursor-ide-agent": "Development system checks",
            },
        },
        "budget": {
            "daily_limit": 100000,
            "warn_ratio": 0.8,
            "default_cost": 50,
            "costs": {
                "check_messages": 50,
                "record_entity": 200,
                "send_message": 150,
                "log_entry": 10,
                "status_update": 100,
                "process_work": 200,
            },
        },
        "polling": {"base_interval_ms": 15000, "max_interval_ms": 300000},
        "work": {"drain_interval_ms": 60000, "min_work_interval_ms": 60000},
        "status": {"interval_seconds": 300},
        "backend": {
            "provider": "mcp_http",
            "base_url": "http://localhost:6174",
            "api_key": None,
            "timeout_seconds": 30.0,
        },
        "logging": {"level": "INFO", "json": False},
        "metrics": {"enabled": False, "port": 9090},
    }
