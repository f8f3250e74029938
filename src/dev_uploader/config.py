import json
import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    DEBOUNCE_SECONDS,
    DEFAULT_MIRROR_DIR,
    GIT_TIMEOUT_SECONDS,
    HTTP_TIMEOUT_SECONDS,
    POLL_INTERVAL_SECONDS,
)

logger = logging.getLogger(APP_NAME)


class ConfigError(Exception):
    """Raised when the configuration file is missing or malformed."""


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '3s', '500ms', '1min') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Negative duration '{value}'")
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "ms": 0.001,
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
    }
    return num * multiplier[unit]


@dataclass
class MirrorConfig:
    """Mirror directory settings.

    Attributes:
        dir (str): Mirror root, relative to the configuration file's directory.
        base_url (str | None): Public URL the mirror root is reachable under.
    """

    dir: str = DEFAULT_MIRROR_DIR
    base_url: str | None = None


@dataclass
class WatchConfig:
    """Change detection settings.

    Attributes:
        debounce (float): Seconds of quiet before a local batch is flushed.
        poll_interval (float): Seconds between remote polling cycles.
        poll_concurrency (int): Number of URLs checked in parallel per cycle.
    """

    debounce: float = DEBOUNCE_SECONDS
    poll_interval: float = POLL_INTERVAL_SECONDS
    poll_concurrency: int = 1


@dataclass
class PublishConfig:
    """Publishing settings.

    Attributes:
        remote (str | None): Remote to push to. None pushes to the upstream.
        branch (str | None): Branch to push. Only used together with `remote`.
        timeout (float): Timeout for each git invocation.
    """

    remote: str | None = None
    branch: str | None = None
    timeout: float = GIT_TIMEOUT_SECONDS


@dataclass
class HttpConfig:
    """Download settings.

    Attributes:
        timeout (float): Connect/read timeout per request.
        insecure_loopback (bool): Accept self-signed certificates on loopback hosts.
    """

    timeout: float = HTTP_TIMEOUT_SECONDS
    insecure_loopback: bool = True


@dataclass
class LogConfig:
    """Logging settings.

    Attributes:
        level (str): Log level name.
        file (str | None): Daemon log file, rotated at `max_size`. Defaults to
            the state directory.
        max_size (int): Max bytes for the log file before rotation.
    """

    level: str = "INFO"
    file: str | None = None
    max_size: int = 5 * 1024 * 1024


_SECTIONS = ("mirror", "watch", "publish", "http", "log")
_TIME_KEYS = {"debounce", "poll_interval", "timeout"}
_OPTIONAL_STR_KEYS = {"base_url", "remote", "branch", "file"}
_STR_KEYS = {"dir", "level"}


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        paths (list[str]): The configured source identifiers.
        base_dir (Path): Directory relative mirror paths are resolved against.
        mirror (MirrorConfig): Mirror directory settings.
        watch (WatchConfig): Change detection settings.
        publish (PublishConfig): Publishing settings.
        http (HttpConfig): Download settings.
        log (LogConfig): Logging settings.
    """

    paths: list[str] = field(default_factory=list)
    base_dir: Path = field(default_factory=Path.cwd)
    mirror: MirrorConfig = field(default_factory=MirrorConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def mirror_root(self) -> Path:
        """The absolute mirror directory."""
        return (self.base_dir / self.mirror.dir).resolve()

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Loads the JSON configuration file.

        Args:
            path (Path): The configuration file.

        Returns:
            Config: The populated configuration object.

        Raises:
            ConfigError: If the file cannot be read, is not valid JSON, or does
                not contain a list of source identifiers under `paths`.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config syntax error in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Could not read config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config root in {path} must be a JSON object")

        paths = data.get("paths", [])
        if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
            raise ConfigError(f"'paths' in {path} must be a list of strings")

        instance = cls(paths=[p for p in paths if p.strip()], base_dir=path.parent)
        instance._merge(data)
        return instance

    def _merge(self, data: dict) -> None:
        """Merges the optional sections into the current instance."""
        unknown = set(data.keys()) - set(_SECTIONS) - {"paths"}
        if unknown:
            logger.warning(
                f"Unknown config keys: {', '.join(sorted(unknown))}. Ignoring."
            )

        for name in _SECTIONS:
            section = data.get(name)
            if section is None:
                continue
            if not isinstance(section, dict):
                logger.warning(f"Config section [{name}] must be an object. Ignoring.")
                continue
            setattr(self, name, self._update_dataclass(name, getattr(self, name), section))

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k in _TIME_KEYS:
                    filtered_updates[k] = parse_time(v)
                elif k == "max_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "poll_concurrency":
                    if isinstance(v, bool) or not isinstance(v, int) or v < 1:
                        raise ValueError(f"expected a positive integer, got '{v}'")
                    filtered_updates[k] = v
                elif k in _STR_KEYS or k in _OPTIONAL_STR_KEYS:
                    if not isinstance(v, str) and not (v is None and k in _OPTIONAL_STR_KEYS):
                        raise ValueError(f"expected a string, got '{v}'")
                    filtered_updates[k] = v
                elif k == "insecure_loopback":
                    if not isinstance(v, bool):
                        raise ValueError(f"expected true or false, got '{v}'")
                    filtered_updates[k] = v
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)


def resolve_config_path(explicit: str | None = None) -> Path:
    """Determines which configuration file to load.

    Resolution order: explicit argument, the `DEV_UPLOADER_CONFIG` environment
    variable, then `devuploader.config.json` in the current directory.
    """
    if explicit:
        return Path(explicit).expanduser().resolve()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.cwd() / CONFIG_FILENAME
