from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from prayertimes_cli.errors import MalformedTimeError, UnknownPrayerError
from prayertimes_cli.models import Prayer, Timings
from prayertimes_cli.prayer_logic import (
    current_prayer,
    format_remaining,
    next_prayer,
    parse_time,
    parse_timings,
)

UTC = timezone.utc
DAY = date(2026, 2, 28)


def _sample_prayers() -> list[Prayer]:
    return [
        Prayer("Fajr", datetime(2026, 2, 28, 5, 17, tzinfo=UTC)),
        Prayer("Dhuhr", datetime(2026, 2, 28, 12, 13, tzinfo=UTC)),
        Prayer("Asr", datetime(2026, 2, 28, 15, 2, tzinfo=UTC)),
        Prayer("Maghrib", datetime(2026, 2, 28, 17, 39, tzinfo=UTC)),
        Prayer("Isha", datetime(2026, 2, 28, 19, 10, tzinfo=UTC)),
    ]


def test_parse_time_builds_instant_on_date() -> None:
    tz = ZoneInfo("Europe/London")
    parsed = parse_time("15:02", DAY, tz)

    assert (parsed.year, parsed.month, parsed.day) == (2026, 2, 28)
    assert (parsed.hour, parsed.minute, parsed.second) == (15, 2, 0)
    assert parsed.tzinfo == tz


def test_parse_time_ignores_timezone_suffix() -> None:
    tz = ZoneInfo("Europe/London")
    assert parse_time("15:02 (BST)", DAY, tz) == parse_time("15:02", DAY, tz)
    assert parse_time("  05:17   (GMT) ", DAY, tz) == parse_time("05:17", DAY, tz)


@pytest.mark.parametrize("raw", ["", "1502", "15:02:00", "ab:cd", "15:", "(BST)", "1_5:02", "١٥:02", "+-5:02", "15: 02"])
def test_parse_time_rejects_malformed_values(raw: str) -> None:
    with pytest.raises(MalformedTimeError):
        parse_time(raw, DAY, UTC)


def test_parse_timings_keeps_selected_order() -> None:
    timings = Timings(Fajr="05:17", Sunrise="06:40", Dhuhr="12:13", Asr="15:02")

    prayers = parse_timings(timings, DAY, UTC, ["Fajr", "Asr"])

    assert [p.name for p in prayers] == ["Fajr", "Asr"]
    assert prayers[1].time == datetime(2026, 2, 28, 15, 2, tzinfo=UTC)


def test_parse_timings_rejects_unknown_name() -> None:
    with pytest.raises(UnknownPrayerError):
        parse_timings(Timings(Fajr="05:17"), DAY, UTC, ["Tahajjud"])


def test_parse_timings_reports_malformed_event() -> None:
    with pytest.raises(MalformedTimeError, match="Dhuhr"):
        parse_timings(Timings(Fajr="05:17", Dhuhr="noon"), DAY, UTC, ["Fajr", "Dhuhr"])


def test_next_prayer_picks_first_future_event() -> None:
    now = datetime(2026, 2, 28, 13, 0, tzinfo=UTC)
    upcoming = next_prayer(_sample_prayers(), now)

    assert upcoming is not None
    assert upcoming.name == "Asr"


def test_next_prayer_skips_event_at_exactly_now() -> None:
    now = datetime(2026, 2, 28, 15, 2, tzinfo=UTC)
    upcoming = next_prayer(_sample_prayers(), now)

    assert upcoming is not None
    assert upcoming.name == "Maghrib"


def test_next_prayer_none_after_last_event() -> None:
    assert next_prayer(_sample_prayers(), datetime(2026, 2, 28, 19, 10, tzinfo=UTC)) is None
    assert next_prayer(_sample_prayers(), datetime(2026, 2, 28, 23, 59, tzinfo=UTC)) is None


def test_current_prayer() -> None:
    prayers = _sample_prayers()

    assert current_prayer(prayers, datetime(2026, 2, 28, 4, 0, tzinfo=UTC)) is None
    current = current_prayer(prayers, datetime(2026, 2, 28, 15, 2, tzinfo=UTC))
    assert current is not None and current.name == "Asr"


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(0), "0m"),
        (timedelta(minutes=45), "45m"),
        (timedelta(minutes=60), "1h 0m"),
        (timedelta(minutes=61), "1h 1m"),
        (timedelta(hours=2, minutes=2, seconds=59), "2h 2m"),
        (timedelta(minutes=-5), "0m"),
    ],
)
def test_format_remaining(delta: timedelta, expected: str) -> None:
    assert format_remaining(delta) == expected
