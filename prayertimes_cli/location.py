from __future__ import annotations

import logging
from typing import Callable

import httpx

from .cache import CacheStore
from .errors import LocationUnavailableError, MissingCountryError
from .models import GeoLocation, ResolvedLocation

logger = logging.getLogger(__name__)

IP_GEOLOCATION_URL = "http://ip-api.com/json/?fields=status,message,lat,lon,city,country,timezone"
GEO_TIMEOUT_SEC = 5.0


def detect_location_from_ip(
    url: str = IP_GEOLOCATION_URL,
    transport: httpx.BaseTransport | None = None,
) -> GeoLocation:
    try:
        with httpx.Client(timeout=GEO_TIMEOUT_SEC, transport=transport) as client:
            response = client.get(url)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as exc:
        raise LocationUnavailableError(f"geolocation request failed: {exc}") from exc
    except ValueError as exc:
        raise LocationUnavailableError("failed to decode geolocation response") from exc

    if not isinstance(data, dict) or data.get("status") != "success":
        message = data.get("message") if isinstance(data, dict) else None
        raise LocationUnavailableError(f"geolocation failed: {message or 'unknown error'}")

    try:
        return GeoLocation.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise LocationUnavailableError("incomplete geolocation response") from exc


def _from_geo(geo: GeoLocation) -> ResolvedLocation:
    display_name = ", ".join(part for part in (geo.city, geo.country) if part)
    return ResolvedLocation(
        mode="coordinates",
        latitude=geo.latitude,
        longitude=geo.longitude,
        timezone=geo.timezone or None,
        display_name=display_name,
    )


def resolve_location(
    latitude: float | None,
    longitude: float | None,
    city: str | None,
    country: str | None,
    cache: CacheStore | None = None,
    detect: Callable[[], GeoLocation] = detect_location_from_ip,
) -> ResolvedLocation:
    """Pick the location used for every lookup in this run.

    Explicit coordinates win, then a city (which needs a country), then a
    geolocation cached within the last day, then an IP lookup. ``None``
    means "not given", so ``0.0`` is a usable coordinate.
    """
    if latitude is not None or longitude is not None:
        return ResolvedLocation(
            mode="coordinates",
            latitude=latitude or 0.0,
            longitude=longitude or 0.0,
        )

    if city:
        if not country:
            raise MissingCountryError("--country is required when using --city")
        return ResolvedLocation(mode="city", city=city, country=country)

    if cache is not None:
        cached = cache.load_geo()
        if cached is not None:
            logger.debug("Using cached geolocation %s, %s", cached.latitude, cached.longitude)
            return _from_geo(cached)

    try:
        detected = detect()
    except LocationUnavailableError as exc:
        raise LocationUnavailableError(
            f"no location specified and auto-detection failed: {exc}"
        ) from exc

    if cache is not None:
        try:
            cache.save_geo(detected)
        except OSError as exc:
            logger.warning("Could not cache detected location: %s", exc)

    return _from_geo(detected)
