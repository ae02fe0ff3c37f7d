"""Unit tests for config loading."""

import pytest
import yaml

from autoagent.exceptions import ConfigError
from autoagent.utils.config import load_config, save_config

ENV_VARS = ["AGENT_DATA_DIR", "AGENT_DAILY_BUDGET", "AGENT_BACKEND", "AGENT_BACKEND_URL", "AGENT_API_KEY", "LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.yaml")
    assert cfg["budget"]["daily_limit"] == 100000
    assert cfg["budget"]["costs"]["record_entity"] == 200
    assert cfg["polling"] == {"base_interval_ms": 15000, "max_interval_ms": 300000}
    assert cfg["backend"]["base_url"] == "http://localhost:6174"


def test_partial_file_merges_over_defaults(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text("budget:\n  daily_limit: 500\n  costs:\n    send_message: 1\n")
    cfg = load_config(path)
    assert cfg["budget"]["daily_limit"] == 500
    assert cfg["budget"]["costs"]["send_message"] == 1
    # siblings survive the merge
    assert cfg["budget"]["costs"]["check_messages"] == 50
    assert cfg["budget"]["warn_ratio"] == 0.8


def test_empty_file_is_defaults(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text("")
    assert load_config(path)["work"]["min_work_interval_ms"] == 60000


def test_non_mapping_file_rejected(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENT_DATA_DIR", "/var/lib/agents")
    monkeypatch.setenv("AGENT_DAILY_BUDGET", "2500")
    monkeypatch.setenv("AGENT_BACKEND", "memory")
    monkeypatch.setenv("AGENT_BACKEND_URL", "http://gateway:6174")
    monkeypatch.setenv("AGENT_API_KEY", "secret")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    cfg = load_config(tmp_path / "nope.yaml")
    assert cfg["agent"]["data_dir"] == "/var/lib/agents"
    assert cfg["budget"]["daily_limit"] == 2500
    assert cfg["backend"]["provider"] == "memory"
    assert cfg["backend"]["base_url"] == "http://gateway:6174"
    assert cfg["backend"]["api_key"] == "secret"
    assert cfg["logging"]["level"] == "DEBUG"


def test_bad_budget_env_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENT_DAILY_BUDGET", "lots")
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_save_config_writes_yaml(tmp_path):
    path = tmp_path / "out" / "agent.yaml"
    cfg = load_config(tmp_path / "nope.yaml")
    cfg["budget"]["daily_limit"] = 42
    save_config(cfg, path)
    assert yaml.safe_load(path.read_text())["budget"]["daily_limit"] == 42
    assert load_config(path)["budget"]["daily_limit"] == 42


def test_shipped_config_loads():
    cfg = load_config()
    assert set(cfg["agent"]["roles"]) == {"claude-code-cli", "claude-desktop-agent", "cursor-ide-agent"}
    assert cfg["status"]["interval_seconds"] == 300
