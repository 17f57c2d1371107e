"""Server configuration management.

Configuration is loaded from a single YAML file:
- listen: address and port for the Subsonic HTTP API
- mpd: MPD server address and optional password
- subsonic: credentials Subsonic clients must present
- music_directory: MPD's music_directory, used for streaming
- keepalive: seconds between MPD keepalive pings (0 disables)
- verbose: trace every request

Values given on the command line override the file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_BIND = "0.0.0.0"
DEFAULT_PORT = 4040
DEFAULT_MPD_HOST = "localhost"
DEFAULT_MPD_PORT = 6600
DEFAULT_MUSIC_DIRECTORY = Path("/var/lib/mpd/music")

CONFIG_ENV_VAR = "MPDSUB_CONFIG"


class ConfigError(Exception):
    """Configuration error."""


@dataclass(frozen=True)
class Config:
    """Configuration for a Server.

    Immutable once built; shared read-only by every request thread and
    the keepalive thread.
    """

    # Credentials which Subsonic clients must provide to authenticate
    subsonic_user: str = ""
    subsonic_password: str = field(default="", repr=False)

    # Root music directory for the MPD server. Must match the value in
    # MPD's own configuration so stream paths resolve.
    music_directory: Path = DEFAULT_MUSIC_DIRECTORY

    verbose: bool = False

    # Seconds between keepalive pings to MPD, 0 disables
    keepalive: float = 0.0

    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("subsonic"),
        repr=False,
        compare=False,
    )


@dataclass(frozen=True)
class Settings:
    """Process-level settings: where to listen, where MPD is, and the Config."""

    config: Config
    bind: str = DEFAULT_BIND
    port: int = DEFAULT_PORT
    mpd_host: str = DEFAULT_MPD_HOST
    mpd_port: int = DEFAULT_MPD_PORT
    mpd_password: str = field(default="", repr=False)


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _to_int(value, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")


def _to_bool(value, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be true or false, got {value!r}")
    return value


def parse_keepalive(value) -> float:
    """Parse a keepalive interval in seconds.

    Raises:
        ConfigError: If the value is not a non-negative number
    """
    if value is None or value == "":
        return 0.0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'keepalive' must be a number of seconds, got {value!r}")
    if seconds < 0:
        raise ConfigError(f"'keepalive' must not be negative, got {value!r}")
    return seconds


def get_config_path() -> Optional[Path]:
    """Return the config file named by $MPDSUB_CONFIG, if set."""
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path)
    return None


def load_settings(path: Optional[Path] = None, **overrides) -> Settings:
    """Load settings from a YAML file, applying keyword overrides.

    Overrides whose value is None are ignored, so parsed argparse values
    can be passed straight through.

    Args:
        path: YAML config file (optional if every required value is overridden)
        **overrides: bind, port, mpd_host, mpd_port, mpd_password,
            subsonic_user, subsonic_password, music_directory, keepalive,
            verbose

    Returns:
        Settings with a validated Config

    Raises:
        ConfigError: On unreadable files or missing/invalid values
    """
    data = _parse_yaml(path) if path is not None else {}

    listen = _section(data, "listen")
    mpd = _section(data, "mpd")
    subsonic = _section(data, "subsonic")

    values = {
        "bind": listen.get("bind", DEFAULT_BIND),
        "port": listen.get("port", DEFAULT_PORT),
        "mpd_host": mpd.get("host", DEFAULT_MPD_HOST),
        "mpd_port": mpd.get("port", DEFAULT_MPD_PORT),
        "mpd_password": mpd.get("password") or "",
        "subsonic_user": subsonic.get("user") or "",
        "subsonic_password": subsonic.get("password") or "",
        "music_directory": data.get("music_directory", DEFAULT_MUSIC_DIRECTORY),
        "keepalive": data.get("keepalive", 0),
        "verbose": data.get("verbose", False),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})

    if not values["subsonic_user"]:
        raise ConfigError("subsonic.user is required")
    if not values["subsonic_password"]:
        raise ConfigError("subsonic.password is required")

    config = Config(
        subsonic_user=str(values["subsonic_user"]),
        subsonic_password=str(values["subsonic_password"]),
        music_directory=Path(values["music_directory"]),
        verbose=_to_bool(values["verbose"], "verbose"),
        keepalive=parse_keepalive(values["keepalive"]),
    )

    return Settings(
        config=config,
        bind=str(values["bind"]),
        port=_to_int(values["port"], "listen.port"),
        mpd_host=str(values["mpd_host"]),
        mpd_port=_to_int(values["mpd_port"], "mpd.port"),
        mpd_password=str(values["mpd_password"]),
    )
