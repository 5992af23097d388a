from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

TimeFormat = Literal["12h", "24h"]
LocationMode = Literal["coordinates", "city"]
EventName = Literal[
    "Fajr",
    "Sunrise",
    "Dhuhr",
    "Asr",
    "Sunset",
    "Maghrib",
    "Isha",
    "Imsak",
    "Midnight",
    "Firstthird",
    "Lastthird",
]

EVENT_NAMES: tuple[EventName, ...] = (
    "Fajr",
    "Sunrise",
    "Dhuhr",
    "Asr",
    "Sunset",
    "Maghrib",
    "Isha",
    "Imsak",
    "Midnight",
    "Firstthird",
    "Lastthird",
)

DEFAULT_PRAYER_NAMES: tuple[EventName, ...] = (
    "Fajr",
    "Sunrise",
    "Dhuhr",
    "Asr",
    "Maghrib",
    "Isha",
)

SHORT_NAMES: dict[str, str] = {
    "Fajr": "F",
    "Sunrise": "S",
    "Dhuhr": "D",
    "Asr": "A",
    "Sunset": "St",
    "Maghrib": "M",
    "Isha": "I",
    "Imsak": "Im",
    "Midnight": "Mi",
    "Firstthird": "F3",
    "Lastthird": "L3",
}

CALCULATION_METHODS: tuple[tuple[int, str], ...] = (
    (0, "Shia Ithna-Ashari (Jafari)"),
    (1, "University of Islamic Sciences, Karachi"),
    (2, "Islamic Society of North America (ISNA)"),
    (3, "Muslim World League (MWL)"),
    (4, "Umm Al-Qura University, Makkah"),
    (5, "Egyptian General Authority of Survey"),
    (7, "Institute of Geophysics, University of Tehran"),
    (8, "Gulf Region"),
    (9, "Kuwait"),
    (10, "Qatar"),
    (11, "Majlis Ugama Islam Singapura (Singapore)"),
    (12, "Union Organization Islamic de France"),
    (13, "Diyanet Isleri Baskanligi, Turkey (experimental)"),
    (14, "Spiritual Administration of Muslims of Russia"),
    (15, "Moonsighting Committee Worldwide"),
    (16, "Dubai (experimental)"),
    (17, "JAKIM (Malaysia)"),
    (18, "Tunisia"),
    (19, "Algeria"),
    (20, "KEMENAG (Indonesia)"),
    (21, "Morocco"),
    (22, "Comunidade Islamica de Lisboa (Portugal)"),
    (23, "Ministry of Awqaf, Jordan"),
)

SCHOOLS: dict[int, str] = {0: "Shafi", 1: "Hanafi"}


def normalize_event_name(value: str) -> EventName | None:
    wanted = value.strip().lower()
    for name in EVENT_NAMES:
        if name.lower() == wanted:
            return name
    return None


@dataclass
class Prayer:
    name: str
    time: datetime


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if not value:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"{what} must be a mapping")
    return value


@dataclass
class Timings:
    Fajr: str = ""
    Sunrise: str = ""
    Dhuhr: str = ""
    Asr: str = ""
    Sunset: str = ""
    Maghrib: str = ""
    Isha: str = ""
    Imsak: str = ""
    Midnight: str = ""
    Firstthird: str = ""
    Lastthird: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Timings":
        if not isinstance(data, dict):
            raise TypeError("timings must be a mapping")
        return cls(**{name: str(data.get(name, "")) for name in EVENT_NAMES})

    def to_dict(self) -> dict[str, str]:
        return {name: self.get(name) for name in EVENT_NAMES}

    def get(self, name: str) -> str:
        return getattr(self, name)


@dataclass
class Meta:
    latitude: float = 0.0
    longitude: float = 0.0
    timezone: str = ""
    method_id: int | None = None
    method_name: str = ""
    school: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Meta":
        data = _mapping(data, "meta")
        method = _mapping(data.get("method"), "meta.method")
        method_id = method.get("id")
        return cls(
            latitude=float(data.get("latitude") or 0.0),
            longitude=float(data.get("longitude") or 0.0),
            timezone=str(data.get("timezone") or ""),
            method_id=int(method_id) if method_id is not None else None,
            method_name=str(method.get("name") or ""),
            school=str(data.get("school") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timezone": self.timezone,
            "method": {"id": self.method_id, "name": self.method_name},
            "school": self.school,
        }


@dataclass
class HijriDate:
    day: str = ""
    month: str = ""
    year: str = ""
    designation: str = "AH"

    def format(self) -> str:
        if not (self.day and self.month and self.year):
            return ""
        return f"{self.day} {self.month} {self.year} {self.designation or 'AH'}"


@dataclass
class GregorianDate:
    day: str = ""
    month: str = ""
    year: str = ""
    weekday: str = ""

    def format(self) -> str:
        if not (self.day and self.month and self.year):
            return ""
        return f"{self.day} {self.month} {self.year}"


@dataclass
class DateInfo:
    readable: str = ""
    hijri: HijriDate = field(default_factory=HijriDate)
    gregorian: GregorianDate = field(default_factory=GregorianDate)

    @classmethod
    def from_dict(cls, data: Any) -> "DateInfo":
        data = _mapping(data, "date")
        hijri = _mapping(data.get("hijri"), "date.hijri")
        gregorian = _mapping(data.get("gregorian"), "date.gregorian")
        hijri_month = _mapping(hijri.get("month"), "date.hijri.month")
        designation = _mapping(hijri.get("designation"), "date.hijri.designation")
        gregorian_month = _mapping(gregorian.get("month"), "date.gregorian.month")
        weekday = _mapping(gregorian.get("weekday"), "date.gregorian.weekday")
        return cls(
            readable=str(data.get("readable") or ""),
            hijri=HijriDate(
                day=str(hijri.get("day") or ""),
                month=str(hijri_month.get("en") or ""),
                year=str(hijri.get("year") or ""),
                designation=str(designation.get("abbreviated") or "AH"),
            ),
            gregorian=GregorianDate(
                day=str(gregorian.get("day") or ""),
                month=str(gregorian_month.get("en") or ""),
                year=str(gregorian.get("year") or ""),
                weekday=str(weekday.get("en") or ""),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "readable": self.readable,
            "hijri": {
                "day": self.hijri.day,
                "month": {"en": self.hijri.month},
                "year": self.hijri.year,
                "designation": {"abbreviated": self.hijri.designation},
            },
            "gregorian": {
                "day": self.gregorian.day,
                "month": {"en": self.gregorian.month},
                "year": self.gregorian.year,
                "weekday": {"en": self.gregorian.weekday},
            },
        }


@dataclass
class DayData:
    timings: Timings
    date: DateInfo = field(default_factory=DateInfo)
    meta: Meta = field(default_factory=Meta)

    @classmethod
    def from_dict(cls, data: Any) -> "DayData":
        data = _mapping(data, "day")
        return cls(
            timings=Timings.from_dict(data["timings"]),
            date=DateInfo.from_dict(data.get("date")),
            meta=Meta.from_dict(data.get("meta")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timings": self.timings.to_dict(),
            "date": self.date.to_dict(),
            "meta": self.meta.to_dict(),
        }


@dataclass
class GeoLocation:
    latitude: float
    longitude: float
    city: str = ""
    country: str = ""
    timezone: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoLocation":
        return cls(
            latitude=float(data["lat"]),
            longitude=float(data["lon"]),
            city=str(data.get("city") or ""),
            country=str(data.get("country") or ""),
            timezone=str(data.get("timezone") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.latitude,
            "lon": self.longitude,
            "city": self.city,
            "country": self.country,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class ResolvedLocation:
    mode: LocationMode
    latitude: float = 0.0
    longitude: float = 0.0
    city: str = ""
    country: str = ""
    timezone: str | None = None
    display_name: str = ""

    def label(self, meta: Meta | None = None) -> str:
        if self.city and self.country:
            return f"{self.city}, {self.country}"
        if self.display_name:
            return self.display_name
        if meta is not None and (meta.latitude or meta.longitude):
            return f"{meta.latitude:.4f}, {meta.longitude:.4f}"
        return f"{self.latitude:.4f}, {self.longitude:.4f}"
