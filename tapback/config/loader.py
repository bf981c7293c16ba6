"""Load and save ~/.tapback/config.json, keeping credentials in ~/.tapback/.env."""

import json
import os
import stat
from pathlib import Path
from typing import Any, Callable

from dotenv import dotenv_values, load_dotenv, set_key
from loguru import logger
from pydantic.alias_generators import to_camel, to_snake

from tapback.config.schema import Config

# Attribute paths of credential fields. They never land in config.json.
SECRET_FIELDS: tuple[tuple[str, ...], ...] = (
    ("providers", "anthropic", "api_key"),
    ("providers", "openai", "api_key"),
    ("linq", "token"),
)


def env_var_for(field: tuple[str, ...]) -> str:
    """Env var holding a secret field, e.g. ``TAPBACK_LINQ__TOKEN``."""
    return "TAPBACK_" + "__".join(part.upper() for part in field)


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".tapback" / "config.json"


def get_env_path() -> Path:
    """Get the default secrets .env file path."""
    return Path.home() / ".tapback" / ".env"


def _rekey(data: Any, convert: Callable[[str], str]) -> Any:
    if isinstance(data, dict):
        return {convert(k): _rekey(v, convert) for k, v in data.items()}
    if isinstance(data, list):
        return [_rekey(item, convert) for item in data]
    return data


def _restrict(path: Path) -> None:
    try:
        path.chmod(stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        logger.debug(f"Could not restrict permissions on {path}")


def load_config(config_path: Path | None = None, env_path: Path | None = None) -> Config:
    """
    Load configuration from config.json plus .env secrets.

    Real environment variables win over the .env file, which wins over
    whatever config.json holds. A config.json that does not parse or
    validate is logged and replaced by defaults.
    """
    path = config_path or get_config_path()
    load_dotenv(env_path or get_env_path(), override=False)

    config = Config()
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            config = Config.model_validate(_rekey(data, to_snake))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")

    for field in SECRET_FIELDS:
        value = os.environ.get(env_var_for(field))
        if not value:
            continue
        section: Any = config
        for part in field[:-1]:
            section = getattr(section, part)
        setattr(section, field[-1], value)

    return config


def save_config(config: Config, config_path: Path | None = None, env_path: Path | None = None) -> None:
    """Write config.json with credentials blanked, and the credentials to .env (mode 600)."""
    path = config_path or get_config_path()
    env_path = env_path or get_env_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(exist_ok=True)

    data = config.model_dump()
    for field in SECRET_FIELDS:
        section = data
        for part in field[:-1]:
            section = section[part]
        if section[field[-1]]:
            set_key(env_path, env_var_for(field), section[field[-1]])
        section[field[-1]] = ""

    path.write_text(json.dumps(_rekey(data, to_camel), indent=2), encoding="utf-8")
    _restrict(path)
    _restrict(env_path)


def read_secrets(env_path: Path | None = None) -> dict[str, str]:
    """Secrets currently stored in the .env file, without touching os.environ."""
    values = dotenv_values(env_path or get_env_path())
    return {k: v for k, v in values.items() if v is not None}
