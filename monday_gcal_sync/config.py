"""Configuration helpers for the mgint CLI."""
from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv


DEFAULT_CONFIG_PATH = Path.home() / ".mgint.yml"
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_DUE_DATE_FORMAT = "%Y-%m-%d %H:%M %z"


class ConfigError(RuntimeError):
    """Raised when required configuration is missing."""


@dataclass(frozen=True, slots=True)
class ConfigKey:
    name: str
    env_var: str
    help: str
    required: bool = True
    secret: bool = False


CONFIG_KEYS = (
    ConfigKey("monday_api_key", "MONDAY_API_KEY", "Monday.com API key", secret=True),
    ConfigKey(
        "google_client_id",
        "GOOGLE_CALENDAR_CLIENT_ID",
        "Google OAuth client id with Calendar scope",
    ),
    ConfigKey(
        "google_client_secret",
        "GOOGLE_CALENDAR_CLIENT_SECRET",
        "Google OAuth client secret",
        secret=True,
    ),
    ConfigKey(
        "google_refresh_token",
        "GOOGLE_CALENDAR_REFRESH_TOKEN",
        "Google OAuth refresh token for the calendar account",
        secret=True,
    ),
    ConfigKey("timezone", "MGINT_TIMEZONE", "IANA time zone for all dates", required=False),
    ConfigKey(
        "due_date_format",
        "MGINT_DUE_DATE_FORMAT",
        "strptime format of the DueDateAndTime column",
        required=False,
    ),
    ConfigKey(
        "skip_unrecognized_groups",
        "MGINT_SKIP_UNRECOGNIZED_GROUPS",
        "Skip groups not named after a weekday instead of failing",
        required=False,
    ),
)

CONFIG_KEY_NAMES = tuple(key.name for key in CONFIG_KEYS)

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    """Runtime configuration for a sync run."""

    monday_api_key: str
    google_client_id: str
    google_client_secret: str
    google_refresh_token: str
    timezone: ZoneInfo
    due_date_format: str = DEFAULT_DUE_DATE_FORMAT
    skip_unrecognized_groups: bool = False

    @property
    def timezone_name(self) -> str:
        return self.timezone.key


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Return the config file path from the argument, MGINT_CONFIG, or the default."""
    if path is not None:
        return Path(path).expanduser()
    env_path = os.getenv("MGINT_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping of keys to values.")
    return data


def load_settings(
    *,
    config_path: Optional[Path] = None,
    use_dotenv: bool = True,
) -> Settings:
    """Load settings from environment variables and the YAML config file.

    Environment variables win over values in the config file.

    Args:
        config_path: Config file to read. Defaults to $MGINT_CONFIG or ~/.mgint.yml.
        use_dotenv: Load a local .env file into the environment first.

    Returns:
        Settings with every required value resolved.

    Raises:
        ConfigError: if a required value is missing or the time zone is unknown.
    """

    if use_dotenv:
        load_dotenv()

    path = resolve_config_path(config_path)
    file_values = read_config_file(path)

    values: Dict[str, Optional[str]] = {}
    for key in CONFIG_KEYS:
        value = os.getenv(key.env_var) or None
        if value is None and file_values.get(key.name) is not None:
            value = str(file_values[key.name])
        values[key.name] = value.strip() if value is not None else None

    missing = [
        f"{key.name} ({key.env_var})"
        for key in CONFIG_KEYS
        if key.required and not values[key.name]
    ]
    if missing:
        raise ConfigError(
            f"Missing configuration: {', '.join(missing)}. "
            f"Export the env vars or run 'mgint config set <key>=<value>' (config file {path})."
        )

    tz_name = values["timezone"] or DEFAULT_TIMEZONE
    try:
        timezone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown time zone '{tz_name}'") from exc

    skip_raw = values["skip_unrecognized_groups"] or ""

    return Settings(
        monday_api_key=values["monday_api_key"],
        google_client_id=values["google_client_id"],
        google_client_secret=values["google_client_secret"],
        google_refresh_token=values["google_refresh_token"],
        timezone=timezone,
        due_date_format=values["due_date_format"] or DEFAULT_DUE_DATE_FORMAT,
        skip_unrecognized_groups=skip_raw.lower() in _TRUE_VALUES,
    )


def set_config_values(pairs: Iterable[str], *, config_path: Optional[Path] = None) -> Path:
    """Write ``key=value`` pairs into the YAML config file.

    The file is created when it does not exist yet. All pairs are validated
    before anything is written.

    Returns:
        The path of the config file that was written.

    Raises:
        ConfigError: on an empty argument list, a malformed pair, or an unknown key.
    """
    pairs = list(pairs)
    if not pairs:
        raise ConfigError("No key=value pairs given.")

    updates: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key or not value:
            raise ConfigError("Use '<key>=<value>' format (no spaces).")
        if key not in CONFIG_KEY_NAMES:
            raise ConfigError(
                f"The key '{key}' is not a valid config key. "
                f"Valid keys: {', '.join(CONFIG_KEY_NAMES)}"
            )
        updates[key] = value

    path = resolve_config_path(config_path)
    data = read_config_file(path)
    data.update(updates)

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, default_flow_style=False, sort_keys=True)
    return path


def describe_settings(*, config_path: Optional[Path] = None) -> Dict[str, str]:
    """Return the effective value of every key with secrets masked."""
    path = resolve_config_path(config_path)
    file_values = read_config_file(path)

    described: Dict[str, str] = {}
    for key in CONFIG_KEYS:
        value = os.getenv(key.env_var) or None
        source = "env"
        if value is None:
            value = file_values.get(key.name)
            source = "file"
        if value is None:
            described[key.name] = "(unset)"
            continue
        text = str(value)
        if key.secret:
            text = text[:4] + "..."
        described[key.name] = f"{text} [{source}]"
    return described
