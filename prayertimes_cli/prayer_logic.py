from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable

from .errors import MalformedTimeError, UnknownPrayerError
from .models import EVENT_NAMES, Prayer, Timings


def _is_plain_integer(piece: str) -> bool:
    # int() also takes "1_5" and non-ASCII digits.
    digits = piece[1:] if piece[:1] in ("+", "-") else piece
    return digits.isascii() and digits.isdigit()


def parse_time(raw: str, day: date, tz: tzinfo) -> datetime:
    """Turn a provider time such as ``"15:02"`` or ``"15:02 (BST)"`` into an
    aware datetime on ``day`` in ``tz``.

    Anything after the first whitespace is a timezone label and is ignored.
    Hour and minute are taken as given, without range checks.
    """
    token = raw.strip()
    parts = token.split(None, 1)
    token = parts[0] if parts else ""

    pieces = token.split(":")
    if len(pieces) != 2:
        raise MalformedTimeError(f"invalid time format: {raw!r}")

    if not all(_is_plain_integer(piece) for piece in pieces):
        raise MalformedTimeError(f"invalid time format: {raw!r}")

    hours = int(pieces[0], 10)
    minutes = int(pieces[1], 10)

    return datetime(day.year, day.month, day.day, tzinfo=tz) + timedelta(
        hours=hours, minutes=minutes
    )


def parse_timings(
    timings: Timings,
    day: date,
    tz: tzinfo,
    selected: Iterable[str],
) -> list[Prayer]:
    prayers: list[Prayer] = []
    for name in selected:
        if name not in EVENT_NAMES:
            raise UnknownPrayerError(f"unknown prayer name: {name}")

        raw = timings.get(name)
        try:
            moment = parse_time(raw, day, tz)
        except MalformedTimeError as exc:
            raise MalformedTimeError(f"failed to parse time for {name} ({raw!r})") from exc

        prayers.append(Prayer(name=name, time=moment))
    return prayers


def next_prayer(prayers: list[Prayer], now: datetime) -> Prayer | None:
    # An event exactly at ``now`` has already started.
    for prayer in prayers:
        if prayer.time > now:
            return prayer
    return None


def current_prayer(prayers: list[Prayer], now: datetime) -> Prayer | None:
    current: Prayer | None = None
    for prayer in prayers:
        if prayer.time <= now:
            current = prayer
    return current


def time_remaining(prayer: Prayer, now: datetime) -> timedelta:
    return prayer.time - now


def format_remaining(delta: timedelta) -> str:
    if delta < timedelta(0):
        return "0m"

    total_minutes = int(delta.total_seconds() // 60)
    hours = total_minutes // 60
    minutes = total_minutes % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
