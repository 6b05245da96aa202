"""Julian Day, timezone and angle helpers shared by every calendrical module.

Julian Days are always UT here; the ephemeris layer adds Delta T itself.
Timezones are resolved explicitly (IANA zone or fixed offset) at the date in
question, never from the host's locale.
"""
from __future__ import annotations
from datetime import date, datetime, timedelta, timezone, tzinfo
from math import floor, isfinite
from typing import Optional, Union

import pytz

from .errors import InvalidInstantError

UTC = pytz.utc

TzSpec = Union[str, int, float, tzinfo, None]


# ---------------- Angles ----------------------
def normalize_angle_360(x: float) -> float:
    v = x % 360.0
    # -1e-18 % 360 rounds to 360.0 in floating point
    if v >= 360.0:
        v -= 360.0
    return v


def normalize_angle_signed180(x: float) -> float:
    a = (x + 180.0) % 360.0 - 180.0
    if a < -180.0:
        a += 360.0
    return a


# ---------------- Julian Day -------------------
def civil_to_julian_day(year: int, month: int, day_fraction: float) -> float:
    """Meeus' algorithm; ``day_fraction`` carries the hours (15.5 = 15th, 12:00)."""
    y, m = year, month
    if m <= 2:
        y -= 1
        m += 12
    a = floor(y / 100)
    b = 2 - a + floor(a / 4)
    return floor(365.25 * (y + 4716)) + floor(30.6001 * (m + 1)) + day_fraction + b - 1524.5


def julian_day_to_utc(jd: float) -> datetime:
    if not is_valid_julian_day(jd):
        raise InvalidInstantError(f"invalid Julian Day: {jd!r}")
    j = jd + 0.5
    z = floor(j)
    f = j - z
    a = z
    if z >= 2299161:
        alpha = floor((z - 1867216.25) / 36524.25)
        a = z + 1 + alpha - floor(alpha / 4)
    b = a + 1524
    c = floor((b - 122.1) / 365.25)
    d = floor(365.25 * c)
    e = floor((b - d) / 30.6001)
    day = b - d - floor(30.6001 * e) + f
    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715
    day_int = floor(day)
    return datetime(year, month, day_int, tzinfo=UTC) + timedelta(days=day - day_int)


def datetime_to_julian_day(dt: datetime) -> float:
    if dt.tzinfo is None:
        raise ValueError("naive datetime; attach a timezone first")
    u = dt.astimezone(UTC)
    hours = u.hour + (u.minute + (u.second + u.microsecond / 1e6) / 60.0) / 60.0
    return civil_to_julian_day(u.year, u.month, u.day + hours / 24.0)


def is_valid_julian_day(jd: Optional[float]) -> bool:
    return jd is not None and isfinite(jd)


# ---------------- Timezones -------------------
def resolve_timezone(spec: TzSpec = None, *, offset_minutes: Optional[float] = None):
    """Turn an IANA name, a fixed offset in minutes or a tzinfo into a tzinfo."""
    if offset_minutes is not None:
        return pytz.FixedOffset(int(round(offset_minutes)))
    if spec is None:
        raise ValueError("timezone required: pass an IANA zone or offset_minutes")
    if isinstance(spec, str):
        return pytz.timezone(spec)
    if isinstance(spec, (int, float)):
        return pytz.FixedOffset(int(round(spec)))
    return spec


def offset_minutes_for_zone(zone, sample_utc: datetime) -> int:
    """UTC offset (minutes east) of ``zone`` at the given UTC instant."""
    tz = resolve_timezone(zone)
    local = sample_utc.astimezone(tz)
    return int(round(local.utcoffset().total_seconds() / 60.0))


def local_instant_for_timezone(year: int, month: int, day: int, hour: int = 0, minute: int = 0,
                               second: float = 0, *, offset_minutes: Optional[float] = None,
                               zone=None) -> datetime:
    """UTC instant of local wall-clock fields in a fixed offset or IANA zone.

    A zone is localized at the wall-clock time itself, so the offset in force
    at that moment applies on DST-change days. Times skipped by a spring-forward
    take the standard-time offset.
    """
    naive = datetime(year, month, day, hour, minute) + timedelta(seconds=second)
    if offset_minutes is not None:
        return (naive - timedelta(minutes=offset_minutes)).replace(tzinfo=UTC)
    if zone is None:
        raise ValueError("pass offset_minutes or zone")
    tz = resolve_timezone(zone)
    local = tz.localize(naive, is_dst=False) if hasattr(tz, "localize") else naive.replace(tzinfo=tz)
    return local.astimezone(UTC)


def local_midnight(day: date, tz) -> datetime:
    return local_instant_for_timezone(day.year, day.month, day.day, zone=tz)


def local_date_of(instant: datetime, tz) -> date:
    return instant.astimezone(resolve_timezone(tz)).date()


def local_year_of(instant: datetime, tz) -> int:
    return local_date_of(instant, tz).year


def utc_date_of(instant: datetime) -> date:
    return instant.astimezone(timezone.utc).date()


def jd_to_local_date(jd: float, tz) -> date:
    return local_date_of(julian_day_to_utc(jd), tz)
