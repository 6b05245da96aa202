# tests/conftest.py

import pytest
from datetime import date, datetime, timedelta

from panchangam.timeutil import local_instant_for_timezone, normalize_angle_360


class LinearEphemeris:
    """Sun and Moon moving at constant rates from ``jd0``.

    With the defaults the elongation grows 12 deg/day, so every tithi lasts
    exactly one day and a tithi changes at jd0 + k. Rise/set are fixed local
    wall-clock times; ``moonrise`` may be a dict day -> datetime.
    """

    def __init__(self, jd0=2460676.5, sun0=15.0, sun_rate=1.0, moon0=15.0, moon_rate=13.0,
                 ayanamsa=0.0, sunrise=(6, 0), sunset=(18, 0), moonrise=None):
        self.jd0 = jd0
        self.sun0, self.sun_rate = sun0, sun_rate
        self.moon0, self.moon_rate = moon0, moon_rate
        self._ayanamsa = ayanamsa
        self._sunrise = sunrise
        self._sunset = sunset
        self._moonrise = moonrise or {}

    def sun_longitude(self, jd):
        return normalize_angle_360(self.sun0 + self.sun_rate * (jd - self.jd0))

    def moon_longitude(self, jd):
        return normalize_angle_360(self.moon0 + self.moon_rate * (jd - self.jd0))

    def ayanamsa(self, jd):
        return self._ayanamsa

    def _at(self, day, hm, tz):
        if hm is None:
            return None
        utc = local_instant_for_timezone(day.year, day.month, day.day, hm[0], hm[1], zone=tz)
        return utc.astimezone(tz)

    def sunrise(self, day, lat, lon, tz, elevation=0.0):
        return self._at(day, self._sunrise, tz)

    def sunset(self, day, lat, lon, tz, elevation=0.0):
        return self._at(day, self._sunset, tz)

    def moonrise(self, day, lat, lon, tz, elevation=0.0):
        return self._moonrise.get(day)

    def moonset(self, day, lat, lon, tz, elevation=0.0):
        return None


@pytest.fixture
def linear():
    return LinearEphemeris
