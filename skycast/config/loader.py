"""Configuration loading utilities.

``config.json`` holds everything except credentials, in camelCase. The bot
token and API key live in a ``.env`` file next to it (mode 600), which
pydantic-settings reads together with the real environment.
"""

import json
import stat
from pathlib import Path
from typing import Any

from dotenv import set_key
from loguru import logger
from pydantic import ValidationError

from skycast.config.schema import Config

# (section, camelCase key) -> env var holding the secret
SECRETS: dict[tuple[str, str], str] = {
    ("provider", "apiKey"): "SKYCAST_PROVIDER__API_KEY",
    ("telegram", "token"): "SKYCAST_TELEGRAM__TOKEN",
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".skycast" / "config.json"


def get_env_path() -> Path:
    """Get the default secrets .env file path."""
    return Path.home() / ".skycast" / ".env"


def _lock_file(path: Path) -> None:
    """Set file permissions to 600 (owner read/write only)."""
    try:
        path.chmod(stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        pass  # Windows or restricted FS


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to read config from {path}: {e}. Using default configuration.")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Config in {path} is not a JSON object. Using default configuration.")
        return {}
    return data


def load_config(config_path: Path | None = None, env_path: Path | None = None) -> Config:
    """
    Load configuration from file + .env secrets.

    Resolution order (highest priority wins):
      1. Real environment variables (e.g. export SKYCAST_TELEGRAM__TOKEN=…)
      2. ~/.skycast/.env file
      3. ~/.skycast/config.json
    """
    path = config_path or get_config_path()
    env_path = env_path or get_env_path()

    data = _read_json(path)
    try:
        # camelCase keys -> field names, so env values merge over the same keys.
        fields = Config.model_validate(data).model_dump(exclude_unset=True)
        return Config(_env_file=env_path, **fields)
    except ValidationError as e:
        logger.warning(f"Invalid config in {path}: {e}. Using default configuration.")
        return Config(_env_file=env_path)


def save_config(config: Config, config_path: Path | None = None, env_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Secrets are written to the .env file (mode 600) and blanked in
    config.json so that the JSON file contains no credentials.
    """
    path = config_path or get_config_path()
    env_path = env_path or get_env_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", by_alias=True)

    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.touch(exist_ok=True)
    _lock_file(env_path)
    for (section, key), env_var in SECRETS.items():
        value = data[section][key]
        if value:
            set_key(env_path, env_var, value, quote_mode="always")
        data[section][key] = ""

    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    _lock_file(path)


def config_has_secrets(config_path: Path | None = None) -> bool:
    """Check if config.json still contains non-empty secret values."""
    data = _read_json(config_path or get_config_path())
    return any(
        isinstance(data.get(section), dict) and data[section].get(key)
        for section, key in SECRETS
    )
