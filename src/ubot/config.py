from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import ConfigError
from .settings import BotSettings

__all__ = [
    "ConfigError",
    "ENV_BOT_TOKEN",
    "HOME_CONFIG_PATH",
    "LOCAL_CONFIG_NAME",
    "load_config",
    "load_settings",
    "settings_from_mapping",
]

# Environment variable names for secrets
ENV_BOT_TOKEN = "UBOT_BOT_TOKEN"

LOCAL_CONFIG_NAME = Path(".ubot") / "ubot.toml"
HOME_CONFIG_PATH = Path.home() / ".ubot" / "ubot.toml"


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict, Path]:
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate

    raise ConfigError("Missing ubot config.")


def settings_from_mapping(
    config: Mapping[str, Any], *, source: str = "config"
) -> BotSettings:
    """Validate a raw config table.

    The ``UBOT_BOT_TOKEN`` environment variable takes precedence over
    ``api_token`` in the table.
    """
    data = dict(config)
    env_token = os.environ.get(ENV_BOT_TOKEN)
    if env_token and env_token.strip():
        data["api_token"] = env_token.strip()
    if "api_token" not in data:
        raise ConfigError(
            f"Missing bot token. Set {ENV_BOT_TOKEN} environment variable "
            f"or add `api_token` to {source}."
        )
    try:
        return BotSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {source}: {exc}") from exc


def load_settings(path: str | Path | None = None) -> tuple[BotSettings, Path]:
    config, cfg_path = load_config(path)
    return settings_from_mapping(config, source=str(cfg_path)), cfg_path
