from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .errors import TemplateError
from .models import SHORT_NAMES, DayData, Prayer, ResolvedLocation, TimeFormat
from .prayer_logic import format_remaining, time_remaining

FORMAT_TIME_REMAINING = "time-remaining"
FORMAT_NEXT_PRAYER_TIME = "next-prayer-time"
FORMAT_NAME_AND_TIME = "name-and-time"
FORMAT_NAME_AND_REMAINING = "name-and-remaining"
FORMAT_SHORT_NAME_AND_TIME = "short-name-and-time"
FORMAT_SHORT_NAME_AND_REMAINING = "short-name-and-remaining"
FORMAT_FULL = "full"

OUTPUT_FORMATS: tuple[str, ...] = (
    FORMAT_TIME_REMAINING,
    FORMAT_NEXT_PRAYER_TIME,
    FORMAT_NAME_AND_TIME,
    FORMAT_NAME_AND_REMAINING,
    FORMAT_SHORT_NAME_AND_TIME,
    FORMAT_SHORT_NAME_AND_REMAINING,
    FORMAT_FULL,
)

UNKNOWN_TIME = "--:--"
TEMPLATE_FIELDS: tuple[str, ...] = ("Name", "ShortName", "Time", "Remaining", "Hours", "Minutes")

_ACTION_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_FIELD_RE = re.compile(r"^\s*\.?([A-Za-z_]\w*)\s*$")


def format_time(moment: datetime, time_format: TimeFormat) -> str:
    if time_format == "24h":
        return moment.strftime("%H:%M")

    rendered = moment.strftime("%I:%M %p")
    return rendered[1:] if rendered.startswith("0") else rendered


def render_template(template: str, fields: dict[str, Any]) -> str:
    """Substitute ``{{.Field}}`` (or ``{{Field}}``) references.

    Only the keys of ``fields`` can be referenced; anything else, including
    an unterminated ``{{``, raises :class:`TemplateError`.
    """
    pieces: list[str] = []
    position = 0

    for match in _ACTION_RE.finditer(template):
        literal = template[position : match.start()]
        if "{{" in literal:
            raise TemplateError("unclosed action")
        pieces.append(literal)

        field_match = _FIELD_RE.match(match.group(1))
        if not field_match:
            raise TemplateError(f"bad action {{{{{match.group(1)}}}}}")

        name = field_match.group(1)
        if name not in fields:
            raise TemplateError(f"can't evaluate field {name}")
        pieces.append(str(fields[name]))
        position = match.end()

    tail = template[position:]
    if "{{" in tail:
        raise TemplateError("unclosed action")
    pieces.append(tail)
    return "".join(pieces)


def format_output(prayer: Prayer, now: datetime, mode: str, time_format: TimeFormat) -> str:
    delta = time_remaining(prayer, now)
    remaining = format_remaining(delta)
    time_str = format_time(prayer.time, time_format)
    short = SHORT_NAMES.get(prayer.name, prayer.name)

    if "{{" in mode:
        total_minutes = max(0, int(delta.total_seconds() // 60))
        fields = {
            "Name": prayer.name,
            "ShortName": short,
            "Time": time_str,
            "Remaining": remaining,
            "Hours": total_minutes // 60,
            "Minutes": total_minutes % 60,
        }
        try:
            return render_template(mode, fields)
        except TemplateError as exc:
            return f"template-err: {exc}"

    if mode == FORMAT_TIME_REMAINING:
        return remaining
    if mode == FORMAT_NEXT_PRAYER_TIME:
        return time_str
    if mode == FORMAT_NAME_AND_REMAINING:
        return f"{prayer.name} {remaining}"
    if mode == FORMAT_SHORT_NAME_AND_TIME:
        return f"{short} {time_str}"
    if mode == FORMAT_SHORT_NAME_AND_REMAINING:
        return f"{short} {remaining}"
    if mode == FORMAT_FULL:
        return f"{prayer.name} {time_str} ({remaining})"
    return f"{prayer.name} {time_str}"


def format_unknown_time(prayer: Prayer) -> str:
    return f"{prayer.name} {UNKNOWN_TIME}"


def _row_style(
    prayer: Prayer,
    current: Prayer | None,
    upcoming: Prayer | None,
    now: datetime,
) -> str | None:
    if upcoming is not None and prayer.name == upcoming.name:
        return "bold green"
    if current is not None and prayer.name == current.name:
        return "bold yellow"
    if prayer.time <= now:
        return "dim"
    return None


def build_today_panel(
    location: ResolvedLocation,
    day: DayData,
    prayers: list[Prayer],
    current: Prayer | None,
    upcoming: Prayer | None,
    now: datetime,
    time_zone: str,
    time_format: TimeFormat,
) -> Panel:
    table = Table(show_header=True, header_style="bold cyan", expand=False)
    table.add_column("Prayer", style="bold")
    table.add_column("Time", justify="right")
    table.add_column("", justify="left")

    for prayer in prayers:
        marker = ""
        if upcoming is not None and prayer.name == upcoming.name:
            marker = f"in {format_remaining(time_remaining(prayer, now))}"
        elif current is not None and prayer.name == current.name:
            marker = "now"
        table.add_row(
            prayer.name,
            format_time(prayer.time, time_format),
            marker,
            style=_row_style(prayer, current, upcoming, now),
        )

    lines: list[Any] = [
        Text(location.label(day.meta), style="bold"),
        Text(time_zone, style="cyan"),
        Text(day.date.gregorian.format() or now.strftime("%d %b %Y")),
    ]
    hijri = day.date.hijri.format()
    if hijri:
        lines.append(Text(hijri, style="dim"))
    lines.append(table)
    return Panel(Group(*lines), title="Prayer Times", border_style="blue")


def build_days_table(
    title: str,
    rows: list[tuple[date, list[Prayer]]],
    names: list[str],
    today: date,
    time_format: TimeFormat,
) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan", expand=False)
    table.add_column("Date", style="bold")
    for name in names:
        table.add_column(name, justify="right")

    for day, prayers in rows:
        style = "bold green" if day == today else None
        table.add_row(
            day.strftime("%a %d %b"),
            *(format_time(prayer.time, time_format) for prayer in prayers),
            style=style,
        )
    return table


def today_payload(
    location: ResolvedLocation,
    day: DayData,
    prayers: list[Prayer],
    current: Prayer | None,
    upcoming: Prayer | None,
    now: datetime,
    time_zone: str,
    time_format: TimeFormat,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "location": location_payload(location, day, time_zone),
        "date": {
            "gregorian": day.date.gregorian.format() or now.strftime("%d %b %Y"),
            "hijri": day.date.hijri.format(),
        },
        "timings": {p.name.lower(): format_time(p.time, time_format) for p in prayers},
        "current": current.name.lower() if current else "",
        "next": None,
    }
    if upcoming is not None:
        payload["next"] = {
            "prayer": upcoming.name.lower(),
            "time": format_time(upcoming.time, time_format),
            "remaining": format_remaining(time_remaining(upcoming, now)),
        }
    return payload


def location_payload(location: ResolvedLocation, day: DayData, time_zone: str) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "timezone": time_zone,
        "latitude": day.meta.latitude,
        "longitude": day.meta.longitude,
    }
    if location.city and location.country:
        payload["city"] = location.city
        payload["country"] = location.country
    return payload
