from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, cast

from .errors import ConfigError
from .models import DEFAULT_PRAYER_NAMES, TimeFormat, normalize_event_name

CONFIG_DIR_NAME = "prayer-times"
CONFIG_FILE_NAME = "config.json"

VALID_KEYS: tuple[str, ...] = (
    "city",
    "country",
    "latitude",
    "longitude",
    "method",
    "school",
    "time_format",
    "prayers",
    "cache_dir",
)


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / CONFIG_DIR_NAME


def config_path() -> Path:
    return config_dir() / CONFIG_FILE_NAME


@dataclass
class Config:
    """User settings. ``None`` means "not set": defaults or auto-detection apply."""

    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    method: int | None = None
    school: int | None = None
    time_format: TimeFormat | None = None
    prayers: str | None = None
    cache_dir: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        config = cls()
        for key, value in data.items():
            if key not in VALID_KEYS or value is None or value == "":
                continue
            config.set(key, str(value))
        return config

    @property
    def effective_time_format(self) -> TimeFormat:
        return self.time_format or "24h"

    @property
    def selected_prayers(self) -> list[str]:
        if not self.prayers:
            return list(DEFAULT_PRAYER_NAMES)
        return [_parse_prayer_name(part) for part in self.prayers.split(",")]

    def merged(self, **overrides: Any) -> "Config":
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        unknown = set(changes) - {item.name for item in fields(self)}
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def set(self, key: str, value: str) -> None:
        if key in ("city", "country", "cache_dir"):
            setattr(self, key, value)
        elif key == "latitude":
            self.latitude = _parse_float(key, value, 90.0)
        elif key == "longitude":
            self.longitude = _parse_float(key, value, 180.0)
        elif key == "method":
            parsed = _parse_int(key, value)
            if parsed < 0 or parsed > 23:
                raise ConfigError(f"invalid method {value!r}: must be between 0 and 23")
            self.method = parsed
        elif key == "school":
            parsed = _parse_int(key, value)
            if parsed not in (0, 1):
                raise ConfigError(f"invalid school {value!r}: must be 0 (Shafi) or 1 (Hanafi)")
            self.school = parsed
        elif key == "time_format":
            if value not in ("12h", "24h"):
                raise ConfigError(f'invalid time_format {value!r}: must be "12h" or "24h"')
            self.time_format = cast(TimeFormat, value)
        elif key == "prayers":
            names = [_parse_prayer_name(part) for part in value.split(",")]
            self.prayers = ",".join(names)
        else:
            raise ConfigError(f"unknown config key {key!r}; valid keys: {', '.join(VALID_KEYS)}")

    def get(self, key: str) -> str:
        if key not in VALID_KEYS:
            raise ConfigError(f"unknown config key {key!r}")
        value = getattr(self, key)
        return "" if value is None else str(value)


def _parse_float(key: str, value: str, limit: float) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"invalid {key} {value!r}: must be a number") from exc
    if parsed < -limit or parsed > limit:
        raise ConfigError(f"invalid {key} {value!r}: must be between {-limit:g} and {limit:g}")
    return parsed


def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"invalid {key} {value!r}: must be an integer") from exc


def _parse_prayer_name(value: str) -> str:
    name = normalize_event_name(value)
    if name is None:
        raise ConfigError(f"invalid prayer name {value.strip()!r} in prayers list")
    return name


def load_config(path: Path | None = None) -> Config:
    path = path or config_path()
    if not path.exists():
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"invalid config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"invalid config file {path}: expected a JSON object")
    return Config.from_dict(data)


def save_config(config: Config, path: Path | None = None) -> None:
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")


def reset_config(path: Path | None = None) -> None:
    path = path or config_path()
    path.unlink(missing_ok=True)
