from __future__ import annotations

import calendar
import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from .errors import CacheCorruptError
from .models import DayData, GeoLocation

logger = logging.getLogger(__name__)

APP_NAME = "prayer-times"
TIMINGS_PREFIX = "timings_"
CALENDAR_PREFIX = "calendar_"
GEO_CACHE_FILE = "geolocation.json"
GEO_TTL = timedelta(hours=24)


def default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / APP_NAME


def cache_key(
    period: str,
    latitude: float,
    longitude: float,
    city: str,
    country: str,
    method: int | None,
    school: int | None,
) -> str:
    method_id = -1 if method is None else method
    school_id = -1 if school is None else school
    raw = f"{period}|{latitude:.6f}|{longitude:.6f}|{city}|{country}|{method_id}|{school_id}"
    # 8 bytes of sha256 is enough for a handful of local files.
    return hashlib.sha256(raw.encode("utf-8")).digest()[:8].hex()


@dataclass
class DayCacheEntry:
    date: str
    method: int | None
    school: int | None
    day: DayData

    def to_dict(self) -> dict[str, Any]:
        payload = self.day.to_dict()
        return {
            "date": self.date,
            "method": self.method,
            "school": self.school,
            "timings": payload["timings"],
            "meta": payload["meta"],
            "date_info": payload["date"],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DayCacheEntry":
        return cls(
            date=str(data["date"]),
            method=_optional_int(data.get("method")),
            school=_optional_int(data.get("school")),
            day=DayData.from_dict(
                {
                    "timings": data["timings"],
                    "meta": data.get("meta"),
                    "date": data.get("date_info"),
                }
            ),
        )


@dataclass
class MonthCacheEntry:
    year: int
    month: int
    method: int | None
    school: int | None
    days: list[DayData]

    @property
    def is_complete(self) -> bool:
        return len(self.days) == calendar.monthrange(self.year, self.month)[1]

    def day(self, day: date) -> DayData:
        index = day.day - 1
        if index < 0 or index >= len(self.days):
            raise CacheCorruptError(
                f"day {day.day} out of range for {self.year}-{self.month:02d} "
                f"(got {len(self.days)} days)"
            )
        return self.days[index]

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "method": self.method,
            "school": self.school,
            "days": [item.to_dict() for item in self.days],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonthCacheEntry":
        days = data["days"]
        if not isinstance(days, list):
            raise TypeError("days must be a list")
        return cls(
            year=int(data["year"]),
            month=int(data["month"]),
            method=_optional_int(data.get("method")),
            school=_optional_int(data.get("school")),
            days=[DayData.from_dict(item) for item in days],
        )


@dataclass
class GeoCacheEntry:
    location: GeoLocation
    cached_at: datetime


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


class CacheStore:
    """File cache for day timetables, month calendars and the detected location.

    Reads never raise: a missing, unreadable or stale record is a miss.
    Writes raise ``OSError`` and callers treat them as best-effort.
    """

    def __init__(self, directory: Path | str | None = None) -> None:
        self.directory = Path(directory).expanduser() if directory else default_cache_dir()

    def _path(self, prefix: str, key: str) -> Path:
        return self.directory / f"{prefix}{key}.json"

    def _safe_read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.debug("Ignoring unreadable cache file %s: %s", path, exc)
            return None

        if not isinstance(data, dict):
            logger.debug("Ignoring malformed cache file %s", path)
            return None
        return data

    def _write(self, path: Path, payload: dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load_day(
        self,
        day: date,
        latitude: float,
        longitude: float,
        city: str,
        country: str,
        method: int | None,
        school: int | None,
    ) -> DayCacheEntry | None:
        date_str = day.isoformat()
        key = cache_key(date_str, latitude, longitude, city, country, method, school)
        data = self._safe_read(self._path(TIMINGS_PREFIX, key))
        if data is None:
            return None

        try:
            entry = DayCacheEntry.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Ignoring corrupt timings record %s: %s", key, exc)
            return None

        if entry.date != date_str:
            logger.debug("Timings record %s is for %s, wanted %s", key, entry.date, date_str)
            return None
        return entry

    def save_day(
        self,
        day: date,
        latitude: float,
        longitude: float,
        city: str,
        country: str,
        method: int | None,
        school: int | None,
        data: DayData,
    ) -> None:
        date_str = day.isoformat()
        key = cache_key(date_str, latitude, longitude, city, country, method, school)
        entry = DayCacheEntry(date=date_str, method=method, school=school, day=data)
        self._write(self._path(TIMINGS_PREFIX, key), entry.to_dict())

    def load_month(
        self,
        year: int,
        month: int,
        latitude: float,
        longitude: float,
        city: str,
        country: str,
        method: int | None,
        school: int | None,
    ) -> MonthCacheEntry | None:
        period = f"{year:04d}-{month:02d}"
        key = cache_key(period, latitude, longitude, city, country, method, school)
        data = self._safe_read(self._path(CALENDAR_PREFIX, key))
        if data is None:
            return None

        try:
            entry = MonthCacheEntry.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Ignoring corrupt calendar record %s: %s", key, exc)
            return None

        if (entry.year, entry.month) != (year, month):
            logger.debug("Calendar record %s is for %s-%s", key, entry.year, entry.month)
            return None
        if not entry.is_complete:
            logger.warning(
                "Calendar record for %s has %d days, expected %d",
                period,
                len(entry.days),
                calendar.monthrange(year, month)[1],
            )
        return entry

    def save_month(
        self,
        year: int,
        month: int,
        latitude: float,
        longitude: float,
        city: str,
        country: str,
        method: int | None,
        school: int | None,
        days: list[DayData],
    ) -> None:
        period = f"{year:04d}-{month:02d}"
        key = cache_key(period, latitude, longitude, city, country, method, school)
        entry = MonthCacheEntry(year=year, month=month, method=method, school=school, days=days)
        self._write(self._path(CALENDAR_PREFIX, key), entry.to_dict())

    def load_geo(self, now: datetime | None = None) -> GeoLocation | None:
        data = self._safe_read(self.directory / GEO_CACHE_FILE)
        if data is None:
            return None

        try:
            location = GeoLocation.from_dict(data["location"])
            cached_at = datetime.fromisoformat(str(data["cached_at"]))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Ignoring corrupt geolocation record: %s", exc)
            return None

        if cached_at.tzinfo is None:
            cached_at = cached_at.astimezone()
        current = (now or datetime.now()).astimezone()
        age = current - cached_at
        if age < timedelta(0) or age >= GEO_TTL:
            logger.debug("Geolocation record expired or from the future (cached at %s)", cached_at.isoformat())
            return None
        return location

    def save_geo(self, location: GeoLocation, now: datetime | None = None) -> None:
        cached_at = (now or datetime.now()).astimezone()
        payload = {"location": location.to_dict(), "cached_at": cached_at.isoformat()}
        self._write(self.directory / GEO_CACHE_FILE, payload)

    def clear(self, include_geo: bool = False) -> int:
        if not self.directory.exists():
            return 0

        removed = 0
        for path in self.directory.glob("*.json"):
            is_timetable = path.name.startswith((TIMINGS_PREFIX, CALENDAR_PREFIX))
            if is_timetable or (include_geo and path.name == GEO_CACHE_FILE):
                path.unlink(missing_ok=True)
                removed += 1
        return removed
