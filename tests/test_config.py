from __future__ import annotations

from pathlib import Path

import pytest

from prayertimes_cli.config import Config, config_path, load_config, reset_config, save_config
from prayertimes_cli.errors import ConfigError


def test_missing_file_gives_empty_config(tmp_path: Path) -> None:
    config = load_config(tmp_path / "config.json")

    assert config == Config()
    assert config.effective_time_format == "24h"
    assert config.selected_prayers == ["Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha"]


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    config = Config()
    config.set("city", "Riyadh")
    config.set("country", "Saudi Arabia")
    config.set("method", "4")
    config.set("school", "0")
    config.set("time_format", "12h")
    config.set("prayers", "fajr, Isha")

    save_config(config, path)
    loaded = load_config(path)

    assert loaded == config
    assert loaded.method == 4
    assert loaded.school == 0
    assert loaded.selected_prayers == ["Fajr", "Isha"]
    assert loaded.get("latitude") == ""


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("latitude", "91"),
        ("longitude", "abc"),
        ("method", "24"),
        ("school", "2"),
        ("time_format", "13h"),
        ("prayers", "Fajr,Tahajjud"),
        ("colour", "red"),
    ],
)
def test_invalid_values_are_rejected(key: str, value: str) -> None:
    with pytest.raises(ConfigError):
        Config().set(key, value)


def test_invalid_json_is_an_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_merged_prefers_overrides() -> None:
    config = Config(city="London", country="UK", method=2)

    merged = config.merged(city="Leeds", method=None, school=1)

    assert (merged.city, merged.country, merged.method, merged.school) == ("Leeds", "UK", 2, 1)
    assert config.city == "London"


def test_merged_rejects_unknown_keys() -> None:
    with pytest.raises(ConfigError):
        Config().merged(colour="red")


def test_xdg_config_home_and_reset(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert config_path() == tmp_path / "prayer-times" / "config.json"

    save_config(Config(latitude=0.0, longitude=0.0))
    assert load_config().latitude == 0.0

    reset_config()
    reset_config()
    assert not config_path().exists()
