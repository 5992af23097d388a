from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .cache import CacheStore
from .config import VALID_KEYS, Config, config_path, load_config, reset_config, save_config
from .errors import ConfigError, PrayerTimesError
from .location import resolve_location
from .models import CALCULATION_METHODS, EVENT_NAMES, SCHOOLS, ResolvedLocation, normalize_event_name
from .output import FORMAT_FULL, build_days_table, build_today_panel, format_time, location_payload, today_payload
from .prayer_api import PrayerApiClient
from .schedule import ScheduleResolver

app = typer.Typer(
    help="Islamic prayer times from the Al Adhan API.",
    no_args_is_help=False,
    invoke_without_command=True,
    add_completion=True,
)
config_app = typer.Typer(help="Show or modify configuration.", invoke_without_command=True)
cache_app = typer.Typer(help="Inspect or clear the local cache.")
app.add_typer(config_app, name="config")
app.add_typer(cache_app, name="cache")

console = Console()
err_console = Console(stderr=True)


@dataclass
class AppState:
    config: Config
    as_json: bool = False


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"prayer-times {__version__}")
        raise typer.Exit()


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


def _state(ctx: typer.Context) -> AppState:
    state = ctx.find_root().obj
    if not isinstance(state, AppState):
        state = AppState(config=Config())
    return state


def _open_cache(config: Config) -> CacheStore | None:
    store = CacheStore(config.cache_dir)
    try:
        store.directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        err_console.print(f"[yellow]warning:[/yellow] cache disabled: {exc}")
        return None
    return store


def _prepare(config: Config) -> tuple[ScheduleResolver, ResolvedLocation, list[str]]:
    cache = _open_cache(config)
    location = resolve_location(
        config.latitude,
        config.longitude,
        config.city,
        config.country,
        cache,
    )
    resolver = ScheduleResolver(
        PrayerApiClient(),
        cache=cache,
        method=config.method,
        school=config.school,
    )
    return resolver, location, config.selected_prayers


def _print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _parse_days(value: str) -> int:
    if value == "week":
        return 7
    if value == "month":
        return 30
    try:
        days = int(value)
    except ValueError:
        days = 0
    if days < 1:
        raise typer.BadParameter(
            f"invalid days value {value!r}: must be a positive integer, 'week', or 'month'"
        )
    return days


def _show_today(state: AppState) -> None:
    config = state.config
    time_format = config.effective_time_format
    try:
        resolver, location, selected = _prepare(config)
        today = resolver.load_today(datetime.now().astimezone(), location, selected)
    except (PrayerTimesError, ConfigError) as exc:
        _fail(str(exc))

    if state.as_json:
        _print_json(
            today_payload(
                location,
                today.day,
                today.prayers,
                today.current,
                today.upcoming,
                today.now,
                today.time_zone,
                time_format,
            )
        )
        return

    console.print(
        build_today_panel(
            location,
            today.day,
            today.prayers,
            today.current,
            today.upcoming,
            today.now,
            today.time_zone,
            time_format,
        )
    )


def _show_days(state: AppState, days: int, names: list[str] | None = None, title: str = "") -> None:
    config = state.config
    time_format = config.effective_time_format
    try:
        resolver, location, selected = _prepare(config)
        selected = names or selected
        schedule = resolver.list_days(datetime.now().astimezone(), days, location, selected)
    except (PrayerTimesError, ConfigError) as exc:
        _fail(str(exc))

    first = schedule.rows[0][1]
    if state.as_json:
        _print_json(
            {
                "location": location_payload(location, first, schedule.time_zone),
                "days": [
                    {
                        "date": day.strftime("%d %b %Y"),
                        "hijri": data.date.hijri.format(),
                        "timings": {p.name.lower(): format_time(p.time, time_format) for p in prayers},
                    }
                    for day, data, prayers in schedule.rows
                ],
            }
        )
        return

    console.print(location.label(first.meta), style="bold")
    console.print(
        build_days_table(
            title or f"Prayer Times - {days} Days",
            [(day, prayers) for day, _, prayers in schedule.rows],
            selected,
            schedule.today,
            time_format,
        )
    )


@app.callback(invoke_without_command=True)
def root(
    ctx: typer.Context,
    city: Optional[str] = typer.Option(None, "--city", help="Override city (needs --country)."),
    country: Optional[str] = typer.Option(None, "--country", help="Override country."),
    latitude: Optional[float] = typer.Option(None, "--latitude", min=-90.0, max=90.0),
    longitude: Optional[float] = typer.Option(None, "--longitude", min=-180.0, max=180.0),
    method: Optional[int] = typer.Option(None, "--method", min=0, max=23, help="Calculation method (0-23)."),
    school: Optional[int] = typer.Option(None, "--school", min=0, max=1, help="0=Shafi, 1=Hanafi."),
    time_format: Optional[str] = typer.Option(None, "--time-format", help="12h or 24h."),
    prayers: Optional[str] = typer.Option(None, "--prayers", help="Comma-separated prayers to track."),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Cache directory."),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON (where supported)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log cache and network activity."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Show today's prayer times."""
    _ = version
    _setup_logging(verbose)

    try:
        loaded = load_config()
        overrides = Config()
        if time_format is not None:
            overrides.set("time_format", time_format)
        if prayers is not None:
            overrides.set("prayers", prayers)
        config = loaded.merged(
            city=city,
            country=country,
            latitude=latitude,
            longitude=longitude,
            method=method,
            school=school,
            time_format=overrides.time_format,
            prayers=overrides.prayers,
            cache_dir=cache_dir,
        )
    except ConfigError as exc:
        if ctx.invoked_subcommand != "config":
            _fail(str(exc))
        # Let `config reset` repair a broken file.
        ctx.obj = AppState(config=Config(), as_json=as_json)
        return

    # Explicit coordinates replace a configured city and vice versa.
    if latitude is not None or longitude is not None:
        config.city = city
        config.country = country
    elif city is not None:
        config.latitude = None
        config.longitude = None

    ctx.obj = AppState(config=config, as_json=as_json)
    if ctx.invoked_subcommand is None:
        _show_today(ctx.obj)


@app.command("next")
def next_command(
    ctx: typer.Context,
    output_format: str = typer.Option(
        FORMAT_FULL,
        "--format",
        help=(
            "time-remaining, next-prayer-time, name-and-time, name-and-remaining, "
            "short-name-and-time, short-name-and-remaining, full, or a template such as "
            "'{{.Name}} in {{.Remaining}}'."
        ),
    ),
) -> None:
    """Show the next prayer, for status bars."""
    state = _state(ctx)
    try:
        resolver, location, selected = _prepare(state.config)
        result = resolver.find_next(datetime.now().astimezone(), location, selected)
    except (PrayerTimesError, ConfigError) as exc:
        _fail(str(exc))

    typer.echo(result.render(output_format, state.config.effective_time_format))


@app.command("list")
def list_command(
    ctx: typer.Context,
    days: int = typer.Argument(7, min=1, help="Number of days to show."),
) -> None:
    """Show prayer times for several days."""
    _show_days(_state(ctx), days)


@app.command("week")
def week_command(ctx: typer.Context) -> None:
    """Show prayer times for the next 7 days."""
    _show_days(_state(ctx), 7)


@app.command("month")
def month_command(ctx: typer.Context) -> None:
    """Show prayer times for the next 30 days."""
    _show_days(_state(ctx), 30)


@app.command("query")
def query_command(
    ctx: typer.Context,
    prayer: str = typer.Argument(..., help=f"One of: {', '.join(EVENT_NAMES)}"),
    days: Optional[str] = typer.Option(None, "--days", help="Number of days, 'week' or 'month'."),
) -> None:
    """Show one prayer's time, today or across several days."""
    state = _state(ctx)
    name = normalize_event_name(prayer)
    if name is None:
        raise typer.BadParameter(f"unknown prayer {prayer!r}; valid names: {', '.join(EVENT_NAMES)}")

    count = _parse_days(days) if days else 1
    if count > 1:
        _show_days(state, count, [name], title=f"{name} Times - {count} Days")
        return

    time_format = state.config.effective_time_format
    try:
        resolver, location, _ = _prepare(state.config)
        today = resolver.load_today(datetime.now().astimezone(), location, [name])
    except (PrayerTimesError, ConfigError) as exc:
        _fail(str(exc))

    moment = format_time(today.prayers[0].time, time_format)
    if state.as_json:
        _print_json(
            {
                "prayer": name.lower(),
                "time": moment,
                "date": today.now.strftime("%d %b %Y"),
                "hijri": today.day.date.hijri.format(),
            }
        )
        return
    typer.echo(f"{name} {moment}")


@app.command("methods")
def methods_command() -> None:
    """List the supported calculation methods."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    for method_id, name in CALCULATION_METHODS:
        table.add_row(str(method_id), name)
    console.print(table)
    console.print("Use --method <ID> to select a calculation method.")
    console.print("[dim]If omitted, the API picks a default based on your location.[/dim]")


def _describe(key: str, value: str) -> str:
    if not value:
        return "(not set)"
    if key == "method":
        names = dict(CALCULATION_METHODS)
        if int(value) in names:
            return f"{value} ({names[int(value)]})"
    if key == "school" and int(value) in SCHOOLS:
        return f"{value} ({SCHOOLS[int(value)]})"
    return value


@config_app.callback(invoke_without_command=True)
def config_show(ctx: typer.Context) -> None:
    """Show the configuration file contents."""
    if ctx.invoked_subcommand is not None:
        return
    try:
        config = load_config()
    except ConfigError as exc:
        _fail(str(exc))

    console.print(f"Configuration ({config_path()})\n")
    for key in VALID_KEYS:
        console.print(f"  {key:<14} {_describe(key, config.get(key))}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help=f"One of: {', '.join(VALID_KEYS)}"),
    value: str = typer.Argument(...),
) -> None:
    """Set a config value."""
    try:
        config = load_config()
        config.set(key, value)
        save_config(config)
    except (ConfigError, OSError) as exc:
        _fail(str(exc))
    console.print(f"Set {key} = {value}")


@config_app.command("get")
def config_get(key: str = typer.Argument(...)) -> None:
    """Print a single config value."""
    try:
        typer.echo(load_config().get(key))
    except ConfigError as exc:
        _fail(str(exc))


@config_app.command("reset")
def config_reset() -> None:
    """Delete the config file."""
    try:
        reset_config()
    except OSError as exc:
        _fail(f"failed to delete config file: {exc}")
    console.print("Configuration reset to defaults.")


@config_app.command("path")
def config_path_command() -> None:
    """Print the config file path."""
    typer.echo(str(config_path()))


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    include_geo: bool = typer.Option(False, "--all", help="Also forget the detected location."),
) -> None:
    """Remove cached timetables."""
    store = CacheStore(_state(ctx).config.cache_dir)
    try:
        removed = store.clear(include_geo=include_geo)
    except OSError as exc:
        _fail(f"failed to clear cache: {exc}")
    console.print(f"Removed {removed} cached file(s) from {store.directory}")


@cache_app.command("path")
def cache_path(ctx: typer.Context) -> None:
    """Print the cache directory."""
    typer.echo(str(CacheStore(_state(ctx).config.cache_dir).directory))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
