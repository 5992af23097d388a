from __future__ import annotations

from datetime import date
from typing import Any

import httpx
import pytest

from prayertimes_cli.errors import FetchFailedError
from prayertimes_cli.models import ResolvedLocation
from prayertimes_cli.prayer_api import PrayerApiClient


def _day_payload(fajr: str = "05:17") -> dict[str, Any]:
    return {
        "timings": {
            "Fajr": fajr,
            "Sunrise": "06:48",
            "Dhuhr": "12:13",
            "Asr": "15:02 (GMT)",
            "Sunset": "17:39",
            "Maghrib": "17:39",
            "Isha": "19:10",
            "Imsak": "05:07",
            "Midnight": "00:13",
            "Firstthird": "22:02",
            "Lastthird": "02:25",
        },
        "date": {
            "readable": "28 Feb 2026",
            "hijri": {
                "day": "10",
                "month": {"number": 9, "en": "Ramaḍān"},
                "year": "1447",
                "designation": {"abbreviated": "AH"},
            },
            "gregorian": {
                "day": "28",
                "month": {"number": 2, "en": "February"},
                "year": "2026",
                "weekday": {"en": "Saturday"},
            },
        },
        "meta": {
            "latitude": 51.5074,
            "longitude": -0.1278,
            "timezone": "Europe/London",
            "method": {"id": 2, "name": "ISNA"},
            "school": "STANDARD",
        },
    }


def _client(handler) -> PrayerApiClient:
    return PrayerApiClient(
        base_url="https://api.test/v1",
        transport=httpx.MockTransport(handler),
        retry_delay=0,
    )


def test_fetch_by_coordinates_sends_expected_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": 200, "status": "OK", "data": _day_payload()})

    day = _client(handler).fetch_by_coordinates(date(2026, 2, 28), 51.5074, -0.1278, 2, 1)

    assert seen[0].url.path == "/v1/timings/28-02-2026"
    assert seen[0].url.params["latitude"] == "51.507400"
    assert seen[0].url.params["method"] == "2"
    assert seen[0].url.params["school"] == "1"
    assert day.timings.Asr == "15:02 (GMT)"
    assert day.meta.timezone == "Europe/London"
    assert day.meta.method_id == 2
    assert day.date.hijri.format() == "10 Ramaḍān 1447 AH"


def test_unset_method_and_school_are_not_sent() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": 200, "status": "OK", "data": _day_payload()})

    _client(handler).fetch_by_city(date(2026, 2, 28), "London", "UK")

    assert seen[0].url.path == "/v1/timingsByCity/28-02-2026"
    assert seen[0].url.params["city"] == "London"
    assert "method" not in seen[0].url.params
    assert "school" not in seen[0].url.params


def test_fetch_month_dispatches_on_location_mode() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        data = [_day_payload() for _ in range(28)]
        return httpx.Response(200, json={"code": 200, "status": "OK", "data": data})

    client = _client(handler)
    by_city = client.fetch_month(2026, 2, ResolvedLocation(mode="city", city="London", country="UK"))
    by_coords = client.fetch_month(2026, 2, ResolvedLocation(mode="coordinates", latitude=51.5, longitude=-0.1))

    assert len(by_city) == 28
    assert len(by_coords) == 28
    assert seen == ["/v1/calendarByCity/2026/2", "/v1/calendar/2026/2"]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, text="bad request"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"code": 400, "status": "BAD_REQUEST", "data": "Invalid date"}),
        httpx.Response(200, json={"code": 200, "status": "OK", "data": {"meta": {}}}),
        httpx.Response(
            200,
            json={"code": 200, "status": "OK", "data": {"timings": {"Fajr": "05:17"}, "meta": {"method": "MWL"}}},
        ),
        httpx.Response(
            200,
            json={"code": 200, "status": "OK", "data": {"timings": {"Fajr": "05:17"}, "date": {"hijri": [1]}}},
        ),
    ],
)
def test_bad_responses_raise_fetch_failed(response: httpx.Response) -> None:
    client = _client(lambda request: response)

    with pytest.raises(FetchFailedError):
        client.fetch_by_coordinates(date(2026, 2, 28), 51.5, -0.1)


def test_server_errors_are_retried() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(502, text="bad gateway")
        return httpx.Response(200, json={"code": 200, "status": "OK", "data": _day_payload("05:16")})

    day = _client(handler).fetch_by_coordinates(date(2026, 3, 1), 51.5, -0.1)

    assert len(attempts) == 3
    assert day.timings.Fajr == "05:16"


def test_transport_errors_become_fetch_failed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchFailedError, match="API request failed"):
        _client(handler).fetch_by_coordinates(date(2026, 2, 28), 51.5, -0.1)
