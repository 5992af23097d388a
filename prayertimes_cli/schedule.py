from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .cache import CacheStore, MonthCacheEntry
from .errors import FetchFailedError, NoUpcomingPrayerError, PrayerTimesError
from .models import DayData, Prayer, ResolvedLocation, TimeFormat
from .output import format_output, format_unknown_time
from .prayer_logic import current_prayer, next_prayer, parse_timings

logger = logging.getLogger(__name__)


class TimetableFetcher(Protocol):
    def fetch_day(
        self,
        day: date,
        location: ResolvedLocation,
        method: int | None = None,
        school: int | None = None,
    ) -> DayData: ...

    def fetch_month(
        self,
        year: int,
        month: int,
        location: ResolvedLocation,
        method: int | None = None,
        school: int | None = None,
    ) -> list[DayData]: ...


def load_zone(name: str | None) -> ZoneInfo:
    if not name:
        raise PrayerTimesError("no timezone available for this location")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise PrayerTimesError(f"invalid timezone {name!r}") from exc


@dataclass
class NextPrayerResult:
    prayer: Prayer
    now: datetime
    time_zone: str
    # Tomorrow could not be fetched; ``prayer`` is today's last event.
    degraded: bool = False

    def render(self, mode: str, time_format: TimeFormat) -> str:
        if self.degraded:
            return format_unknown_time(self.prayer)
        return format_output(self.prayer, self.now, mode, time_format)


@dataclass
class DaySchedule:
    day: DayData
    time_zone: str
    now: datetime
    prayers: list[Prayer]
    current: Prayer | None
    upcoming: Prayer | None


@dataclass
class DaysSchedule:
    time_zone: str
    today: date
    rows: list[tuple[date, DayData, list[Prayer]]] = field(default_factory=list)


class ScheduleResolver:
    def __init__(
        self,
        client: TimetableFetcher,
        cache: CacheStore | None = None,
        method: int | None = None,
        school: int | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.method = method
        self.school = school

    def fetch_day(self, day: date, location: ResolvedLocation) -> DayData:
        if self.cache is not None:
            entry = self.cache.load_day(
                day,
                location.latitude,
                location.longitude,
                location.city,
                location.country,
                self.method,
                self.school,
            )
            if entry is not None:
                logger.debug("Timings for %s served from cache", day)
                return entry.day

        data = self.client.fetch_day(day, location, self.method, self.school)

        if self.cache is not None:
            try:
                self.cache.save_day(
                    day,
                    location.latitude,
                    location.longitude,
                    location.city,
                    location.country,
                    self.method,
                    self.school,
                    data,
                )
            except OSError as exc:
                logger.warning("Could not cache timings for %s: %s", day, exc)
        return data

    def fetch_month(self, year: int, month: int, location: ResolvedLocation) -> MonthCacheEntry:
        if self.cache is not None:
            entry = self.cache.load_month(
                year,
                month,
                location.latitude,
                location.longitude,
                location.city,
                location.country,
                self.method,
                self.school,
            )
            if entry is not None:
                logger.debug("Calendar for %d-%02d served from cache", year, month)
                return entry

        try:
            days = self.client.fetch_month(year, month, location, self.method, self.school)
        except FetchFailedError as exc:
            raise FetchFailedError(f"failed to fetch calendar for {year}-{month:02d}: {exc}") from exc

        if self.cache is not None:
            try:
                self.cache.save_month(
                    year,
                    month,
                    location.latitude,
                    location.longitude,
                    location.city,
                    location.country,
                    self.method,
                    self.school,
                    days,
                )
            except OSError as exc:
                logger.warning("Could not cache calendar for %d-%02d: %s", year, month, exc)

        return MonthCacheEntry(
            year=year, month=month, method=self.method, school=self.school, days=days
        )

    def fetch_days(self, start: date, count: int, location: ResolvedLocation) -> list[tuple[date, DayData]]:
        """Return ``count`` consecutive days from ``start``, one calendar
        request (or cache read) per distinct month."""
        wanted = [start + timedelta(days=offset) for offset in range(count)]

        months: dict[tuple[int, int], MonthCacheEntry] = {}
        for day in wanted:
            key = (day.year, day.month)
            if key not in months:
                months[key] = self.fetch_month(day.year, day.month, location)

        return [(day, months[(day.year, day.month)].day(day)) for day in wanted]

    def load_today(
        self,
        now: datetime,
        location: ResolvedLocation,
        selected: Iterable[str],
    ) -> DaySchedule:
        if location.timezone:
            now = now.astimezone(load_zone(location.timezone))

        data = self.fetch_day(now.date(), location)
        zone_name = location.timezone or data.meta.timezone
        zone = load_zone(zone_name)

        local_now = now.astimezone(zone)
        if local_now.date() != now.date():
            data = self.fetch_day(local_now.date(), location)

        prayers = parse_timings(data.timings, local_now.date(), zone, selected)
        return DaySchedule(
            day=data,
            time_zone=zone_name,
            now=local_now,
            prayers=prayers,
            current=current_prayer(prayers, local_now),
            upcoming=next_prayer(prayers, local_now),
        )

    def find_next(
        self,
        now: datetime,
        location: ResolvedLocation,
        selected: Iterable[str],
    ) -> NextPrayerResult:
        selected = list(selected)
        today = self.load_today(now, location, selected)
        if today.upcoming is not None:
            return NextPrayerResult(today.upcoming, today.now, today.time_zone)

        tomorrow = today.now.date() + timedelta(days=1)
        logger.debug("No prayers left today, rolling over to %s", tomorrow)
        try:
            data = self.fetch_day(tomorrow, location)
        except FetchFailedError as exc:
            if today.prayers:
                logger.warning("Could not fetch tomorrow's timings: %s", exc)
                return NextPrayerResult(
                    today.prayers[-1], today.now, today.time_zone, degraded=True
                )
            raise FetchFailedError(f"failed to fetch tomorrow's times: {exc}") from exc

        zone = load_zone(today.time_zone)
        tomorrow_prayers = parse_timings(data.timings, tomorrow, zone, selected)
        if not tomorrow_prayers:
            raise NoUpcomingPrayerError("could not determine next prayer")
        return NextPrayerResult(tomorrow_prayers[0], today.now, today.time_zone)

    def list_days(
        self,
        now: datetime,
        count: int,
        location: ResolvedLocation,
        selected: Iterable[str],
    ) -> DaysSchedule:
        selected = list(selected)
        if location.timezone:
            now = now.astimezone(load_zone(location.timezone))

        days = self.fetch_days(now.date(), count, location)
        zone_name = location.timezone or (days[0][1].meta.timezone if days else "")
        zone = load_zone(zone_name)

        local_today = now.astimezone(zone).date()
        if days and days[0][0] != local_today:
            days = self.fetch_days(local_today, count, location)

        schedule = DaysSchedule(time_zone=zone_name, today=local_today)
        for day, data in days:
            schedule.rows.append((day, data, parse_timings(data.timings, day, zone, selected)))
        return schedule
