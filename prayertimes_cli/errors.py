from __future__ import annotations


class PrayerTimesError(RuntimeError):
    pass


class MalformedTimeError(PrayerTimesError, ValueError):
    pass


class UnknownPrayerError(PrayerTimesError, ValueError):
    pass


class MissingCountryError(PrayerTimesError):
    pass


class LocationUnavailableError(PrayerTimesError):
    pass


class CacheCorruptError(PrayerTimesError):
    pass


class FetchFailedError(PrayerTimesError):
    pass


class NoUpcomingPrayerError(PrayerTimesError):
    pass


class TemplateError(PrayerTimesError):
    pass


class ConfigError(PrayerTimesError):
    pass
