from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest

from tapback.config.loader import SECRET_FIELDS, env_var_for, load_config, read_secrets, save_config
from tapback.config.schema import Config

_SECRETS = tuple(env_var_for(field) for field in SECRET_FIELDS)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # load_config injects .env values into os.environ; registering each name
    # with monkeypatch makes teardown remove them again.
    for name in _SECRETS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults() -> None:
    config = Config()
    assert config.store.history_limit == 20
    assert config.store.conversation_ttl == 3600
    assert config.assistant.contact_card_interval == 5
    assert config.dispatch.pace_min == 0.4 and config.dispatch.pace_max == 0.8
    assert config.gateway.port == 3000


def test_save_moves_secrets_to_env_file(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    env_path = tmp_path / ".env"
    config = Config()
    config.providers.anthropic.api_key = "sk-ant-123"
    config.linq.token = "linq-token"

    save_config(config, config_path, env_path)

    data = json.loads(config_path.read_text())
    assert data["providers"]["anthropic"]["apiKey"] == ""
    assert data["linq"]["token"] == ""
    assert data["assistant"]["displayName"] == "Claude Sullivan"
    assert read_secrets(env_path) == {
        "TAPBACK_PROVIDERS__ANTHROPIC__API_KEY": "sk-ant-123",
        "TAPBACK_LINQ__TOKEN": "linq-token",
    }
    assert stat.S_IMODE(env_path.stat().st_mode) == 0o600


def test_load_round_trip_restores_secrets(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    env_path = tmp_path / ".env"
    config = Config()
    config.providers.openai.api_key = "sk-openai"
    config.store.backend = "memory"
    save_config(config, config_path, env_path)

    loaded = load_config(config_path, env_path)

    assert loaded.providers.openai.api_key == "sk-openai"
    assert loaded.store.backend == "memory"


def test_real_environment_wins_over_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text('TAPBACK_LINQ__TOKEN="from-file"\n')
    monkeypatch.setenv("TAPBACK_LINQ__TOKEN", "from-env")

    loaded = load_config(tmp_path / "missing.json", env_path)

    assert loaded.linq.token == "from-env"


def test_invalid_config_falls_back_to_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{ nope")

    loaded = load_config(config_path, tmp_path / ".env")

    assert loaded.store.history_limit == 20


def test_secret_env_var_names() -> None:
    assert env_var_for(("linq", "token")) == "TAPBACK_LINQ__TOKEN"
    assert env_var_for(("providers", "openai", "api_key")) == "TAPBACK_PROVIDERS__OPENAI__API_KEY"


def test_camel_case_keys_are_accepted(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"store": {"historyLimit": 5, "conversationTtl": 60}}))

    loaded = load_config(config_path, tmp_path / ".env")

    assert loaded.store.history_limit == 5
    assert loaded.store.conversation_ttl == 60
