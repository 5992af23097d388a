from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any

import httpx

from . import __version__
from .errors import FetchFailedError
from .models import DayData, ResolvedLocation

logger = logging.getLogger(__name__)

ALADHAN_BASE_URL = "https://api.aladhan.com/v1"
REQUEST_TIMEOUT_SEC = 10.0
MAX_RETRIES = 2
RETRY_BASE_DELAY_SEC = 0.8


def _calculation_params(method: int | None, school: int | None) -> dict[str, str]:
    params: dict[str, str] = {}
    if method is not None and method >= 0:
        params["method"] = str(method)
    if school is not None and school >= 0:
        params["school"] = str(school)
    return params


def _parse_day(data: Any) -> DayData:
    if not isinstance(data, dict):
        raise FetchFailedError("Unexpected response format from AlAdhan")
    try:
        return DayData.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise FetchFailedError("Unexpected response format from AlAdhan") from exc


class PrayerApiClient:
    def __init__(
        self,
        base_url: str = ALADHAN_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SEC,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY_SEC,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.transport = transport

    def _get_with_retries(self, url: str, params: dict[str, str]) -> httpx.Response:
        last_error: Exception | None = None
        headers = {"User-Agent": f"prayer-times/{__version__}"}

        for attempt in range(self.max_retries + 1):
            try:
                with httpx.Client(
                    timeout=self.timeout, headers=headers, transport=self.transport
                ) as client:
                    response = client.get(url, params=params)

                if response.status_code >= 500 and attempt < self.max_retries:
                    logger.debug("%s returned %s, retrying", url, response.status_code)
                    time.sleep(self.retry_delay * (attempt + 1))
                    continue

                return response
            except httpx.HTTPError as exc:
                last_error = exc
                logger.debug("Request to %s failed: %s", url, exc)
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay * (attempt + 1))
                    continue
                break

        raise FetchFailedError(f"API request failed: {last_error}") from last_error

    def _request(self, path: str, params: dict[str, str]) -> Any:
        url = f"{self.base_url}/{path}"
        logger.debug("Fetching %s %s", url, params)
        response = self._get_with_retries(url, params)

        if response.status_code != 200:
            raise FetchFailedError(f"API returned status {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchFailedError("Invalid response from AlAdhan") from exc

        if not isinstance(payload, dict):
            raise FetchFailedError("Unexpected response format from AlAdhan")
        if payload.get("code") != 200:
            raise FetchFailedError(
                f"API error: code={payload.get('code')} status={payload.get('status')}"
            )
        return payload.get("data")

    def fetch_by_coordinates(
        self,
        day: date,
        latitude: float,
        longitude: float,
        method: int | None = None,
        school: int | None = None,
    ) -> DayData:
        params = {"latitude": f"{latitude:f}", "longitude": f"{longitude:f}"}
        params.update(_calculation_params(method, school))
        return _parse_day(self._request(f"timings/{day.strftime('%d-%m-%Y')}", params))

    def fetch_by_city(
        self,
        day: date,
        city: str,
        country: str,
        method: int | None = None,
        school: int | None = None,
    ) -> DayData:
        params = {"city": city, "country": country}
        params.update(_calculation_params(method, school))
        return _parse_day(self._request(f"timingsByCity/{day.strftime('%d-%m-%Y')}", params))

    def fetch_calendar_by_coordinates(
        self,
        year: int,
        month: int,
        latitude: float,
        longitude: float,
        method: int | None = None,
        school: int | None = None,
    ) -> list[DayData]:
        params = {"latitude": f"{latitude:f}", "longitude": f"{longitude:f}"}
        params.update(_calculation_params(method, school))
        return self._parse_calendar(self._request(f"calendar/{year}/{month}", params))

    def fetch_calendar_by_city(
        self,
        year: int,
        month: int,
        city: str,
        country: str,
        method: int | None = None,
        school: int | None = None,
    ) -> list[DayData]:
        params = {"city": city, "country": country}
        params.update(_calculation_params(method, school))
        return self._parse_calendar(self._request(f"calendarByCity/{year}/{month}", params))

    def _parse_calendar(self, data: Any) -> list[DayData]:
        if not isinstance(data, list):
            raise FetchFailedError("Unexpected calendar response from AlAdhan")
        return [_parse_day(item) for item in data]

    def fetch_day(
        self,
        day: date,
        location: ResolvedLocation,
        method: int | None = None,
        school: int | None = None,
    ) -> DayData:
        if location.mode == "city":
            return self.fetch_by_city(day, location.city, location.country, method, school)
        return self.fetch_by_coordinates(
            day, location.latitude, location.longitude, method, school
        )

    def fetch_month(
        self,
        year: int,
        month: int,
        location: ResolvedLocation,
        method: int | None = None,
        school: int | None = None,
    ) -> list[DayData]:
        if location.mode == "city":
            return self.fetch_calendar_by_city(
                year, month, location.city, location.country, method, school
            )
        return self.fetch_calendar_by_coordinates(
            year, month, location.latitude, location.longitude, method, school
        )
