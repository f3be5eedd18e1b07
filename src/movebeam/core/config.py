"""Configuration management for Movebeam."""

import copy
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional, Union

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

from movebeam import APP_NAME
from movebeam.core.policy import InactivityPolicy
from movebeam.core.timers import TimerConfig

_DURATION_PATTERN = r"^\d+:\d+$"

_DURATION_SCHEMA = {
    "oneOf": [
        {"type": "string", "pattern": _DURATION_PATTERN},
        {"type": "integer", "minimum": 0},
    ]
}

_OPTIONAL_DURATION_SCHEMA = {"oneOf": [*_DURATION_SCHEMA["oneOf"], {"type": "null"}]}


def default_config_path() -> Path:
    """Get the default configuration file path (``~/.config/movebeam/movebeam.yml``)."""
    return Path.home() / ".config" / APP_NAME / f"{APP_NAME}.yml"


def parse_duration(value: Union[str, int]) -> timedelta:
    """Parse a ``"MM:SS"`` string or a number of seconds.

    Minutes may exceed 59, so ``"120:00"`` is two hours.

    Raises:
        ValueError: If the value is not a valid duration
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Invalid duration: {value!r}")
        return timedelta(seconds=value)
    if not isinstance(value, str) or not re.match(_DURATION_PATTERN, value.strip()):
        raise ValueError(f"Invalid duration {value!r}, expected MM:SS")
    minutes, seconds = value.strip().split(":")
    return timedelta(minutes=int(minutes), seconds=int(seconds))


def format_duration(duration: timedelta) -> str:
    """Format a duration as ``MM:SS`` (minutes are not wrapped into hours)."""
    total = int(duration.total_seconds())
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02}:{seconds:02}"


class ConfigManager:
    """Load and validate the daemon configuration."""

    DEFAULT_CONFIG: dict[str, Any] = {
        "version": "1.0",
        "daemon": {
            "heartbeat": 1,
            "log_level": "INFO",
            "socket_path": None,
        },
        "activity": {
            "enabled": True,
            "source": "daemon",
            "socket_path": None,
            "inactivity_pause": "00:10",
            "inactivity_reset": "05:00",
        },
        "notifications": {
            "enabled": True,
        },
        "timers": [
            {
                "name": "move",
                "interval": "20:00",
                "break_duration": "01:00",
                "notify": True,
            },
            {
                "name": "break",
                "interval": "120:00",
                "break_duration": "10:00",
                "notify": True,
            },
        ],
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "daemon": {
                "type": "object",
                "properties": {
                    "heartbeat": {"type": "number", "exclusiveMinimum": 0, "maximum": 60},
                    "log_level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                    "socket_path": {"type": ["string", "null"]},
                },
            },
            "activity": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "source": {"type": "string", "enum": ["daemon", "idle"]},
                    "socket_path": {"type": ["string", "null"]},
                    "inactivity_pause": _OPTIONAL_DURATION_SCHEMA,
                    "inactivity_reset": _OPTIONAL_DURATION_SCHEMA,
                },
            },
            "notifications": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                },
            },
            "timers": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "interval": _DURATION_SCHEMA,
                        "break_duration": _OPTIONAL_DURATION_SCHEMA,
                        "notify": {"type": "boolean"},
                    },
                    "required": ["name", "interval"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.config/movebeam/movebeam.yml

        Raises:
            ValueError: If the configuration file is invalid
        """
        self.config_path = config_path or default_config_path()
        self._config: dict[str, Any] = {}
        self._load_or_default()

    def _load_or_default(self) -> None:
        """Load existing config, or fall back to the built-in defaults."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            if not isinstance(loaded_config, dict):
                raise ValueError(f"Invalid configuration: {self.config_path} is not a mapping")
            loaded_config.setdefault("version", self.DEFAULT_CONFIG["version"])
            self._config = self._merge_with_defaults(loaded_config)
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.validate()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """Merge config with defaults to ensure all keys exist.

        The timer list is replaced, not merged.
        """
        result = copy.deepcopy(self.DEFAULT_CONFIG)
        self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override into base dictionary (in-place)."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Example:
            >>> config.get('activity.inactivity_pause')
            '00:10'
        """
        keys = key.split(".")
        value: Any = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def validate(self) -> bool:
        """Validate configuration against schema.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=self.CONFIG_SCHEMA)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

        names = [timer["name"] for timer in self._config.get("timers", [])]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Invalid configuration: duplicate timer names {duplicates}")
        return True

    @property
    def timers(self) -> list[TimerConfig]:
        """Configured timers, in file order."""
        return [
            TimerConfig(
                name=timer["name"],
                interval=parse_duration(timer["interval"]),
                break_duration=(
                    parse_duration(timer["break_duration"])
                    if timer.get("break_duration") is not None
                    else None
                ),
                notify=timer.get("notify", True),
            )
            for timer in self._config.get("timers", [])
        ]

    @property
    def activity_enabled(self) -> bool:
        """Whether an activity source and inactivity policy are configured."""
        return bool(self.get("activity.enabled", False))

    @property
    def inactivity_policy(self) -> InactivityPolicy:
        """Inactivity thresholds; empty when activity tracking is disabled."""
        if not self.activity_enabled:
            return InactivityPolicy()
        pause = self.get("activity.inactivity_pause")
        reset = self.get("activity.inactivity_reset")
        return InactivityPolicy(
            pause_threshold=parse_duration(pause) if pause is not None else None,
            reset_threshold=parse_duration(reset) if reset is not None else None,
        )

    @property
    def heartbeat(self) -> float:
        """Heartbeat period in seconds."""
        return float(self.get("daemon.heartbeat", 1))

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    def to_dict(self) -> dict[str, Any]:
        """Get full configuration as dictionary."""
        return copy.deepcopy(self._config)
