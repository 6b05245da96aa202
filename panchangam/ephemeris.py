from __future__ import annotations
from datetime import date, datetime, timedelta
from math import radians, sin
from typing import Optional, Protocol

from astral import Observer
from astral.sun import sunrise as astral_sunrise, sunset as astral_sunset
from astral.moon import moonrise as astral_moonrise, moonset as astral_moonset
from skyfield.api import load

from .errors import EphemerisUnavailable, UnsupportedAyanamsaError
from .timeutil import normalize_angle_360, julian_day_to_utc, local_instant_for_timezone

J2000 = 2451545.0


class EphemerisProvider(Protocol):
    """Longitudes take a Julian Day in UT and return apparent tropical degrees.

    ``ayanamsa`` is the signed correction added to a tropical longitude to get
    the sidereal one (negative for Lahiri). Rise/set return an aware datetime,
    or None when the body does not rise/set on that civil day.
    """

    def sun_longitude(self, jd: float) -> float: ...
    def moon_longitude(self, jd: float) -> float: ...
    def ayanamsa(self, jd: float) -> float: ...
    def sunrise(self, day: date, lat: float, lon: float, tz, elevation: float = 0.0) -> Optional[datetime]: ...
    def sunset(self, day: date, lat: float, lon: float, tz, elevation: float = 0.0) -> Optional[datetime]: ...
    def moonrise(self, day: date, lat: float, lon: float, tz, elevation: float = 0.0) -> Optional[datetime]: ...
    def moonset(self, day: date, lat: float, lon: float, tz, elevation: float = 0.0) -> Optional[datetime]: ...


# ---------------- Delta T / ayanamsa -----------
def delta_t_seconds(year: float) -> float:
    """Espenak & Meeus polynomials (TT - UT)."""
    y = year
    if y < 1900 or y >= 2150:
        u = (y - 1820) / 100.0
        return -20 + 32 * u * u
    if y < 1920:
        t = y - 1900
        return -2.79 + 1.494119 * t - 0.0598939 * t**2 + 0.0061966 * t**3 - 0.000197 * t**4
    if y < 1941:
        t = y - 1920
        return 21.20 + 0.84493 * t - 0.076100 * t**2 + 0.0020936 * t**3
    if y < 1961:
        t = y - 1950
        return 29.07 + 0.407 * t - t**2 / 233 + t**3 / 2547
    if y < 1986:
        t = y - 1975
        return 45.45 + 1.067 * t - t**2 / 260 - t**3 / 718
    if y < 2005:
        t = y - 2000
        return (63.86 + 0.3345 * t - 0.060374 * t**2 + 0.0017275 * t**3
                + 0.000651814 * t**4 + 0.00002373599 * t**5)
    if y < 2050:
        t = y - 2000
        return 62.92 + 0.32217 * t + 0.005589 * t**2
    u = (y - 1820) / 100.0
    return -20 + 32 * u * u - 0.5628 * (2150 - y)


def jd_ut_to_tt(jd: float) -> float:
    year = 2000.0 + (jd - J2000) / 365.25
    return jd + delta_t_seconds(year) / 86400.0


# Value at J2000.0 (degrees); all modes advance with general precession.
AYANAMSA_AT_J2000 = {
    "lahiri": 23.857092,
    "raman": 22.410791,
    "krishnamurti": 23.760240,
    "fagan_bradley": 24.740300,
}


def ayanamsa_degrees(jd: float, mode: str = "lahiri") -> float:
    try:
        base = AYANAMSA_AT_J2000[mode.lower()]
    except KeyError:
        raise UnsupportedAyanamsaError(f"unsupported ayanamsa mode: {mode!r}") from None
    t = (jd - J2000) / 36525.0
    precession_sec = 5028.796195 * t + 1.1054348 * t * t
    return base + precession_sec / 3600.0


# ---------------- Rise / set (astral) ----------
def _observer(lat: float, lon: float, elevation: float) -> Observer:
    return Observer(latitude=lat, longitude=lon, elevation=elevation)


class AstralRiseSet:
    """Rise/set lookups shared by the longitude backends."""

    def sunrise(self, day, lat, lon, tz, elevation=0.0):
        try:
            return astral_sunrise(_observer(lat, lon, elevation), day, tzinfo=tz)
        except ValueError:
            return None

    def sunset(self, day, lat, lon, tz, elevation=0.0):
        try:
            return astral_sunset(_observer(lat, lon, elevation), day, tzinfo=tz)
        except ValueError:
            return None

    def moonrise(self, day, lat, lon, tz, elevation=0.0):
        try:
            return astral_moonrise(_observer(lat, lon, elevation), day, tzinfo=tz)
        except ValueError:
            return None

    def moonset(self, day, lat, lon, tz, elevation=0.0):
        try:
            return astral_moonset(_observer(lat, lon, elevation), day, tzinfo=tz)
        except ValueError:
            return None


# ---------------- Analytic series --------------
# (D, M, M', F, coefficient in 1e-6 degrees)
MOON_LON_TERMS = (
    (0, 0, 1, 0, 6288774), (2, 0, -1, 0, 1274027), (2, 0, 0, 0, 658314),
    (0, 0, 2, 0, 213618), (0, 1, 0, 0, -185116), (0, 0, 0, 2, -114332),
    (2, 0, -2, 0, 58793), (2, -1, -1, 0, 57066), (2, 0, 1, 0, 53322),
    (2, -1, 0, 0, 45758), (0, 1, -1, 0, -40923), (1, 0, 0, 0, -34720),
    (0, 1, 1, 0, -30383), (2, 0, 0, -2, 15327), (0, 0, 1, 2, -12528),
    (0, 0, 1, -2, 10980), (4, 0, -1, 0, 10675), (0, 0, 3, 0, 10034),
    (4, 0, -2, 0, 8548), (2, 1, -1, 0, -7888), (2, 1, 0, 0, -6766),
    (1, 0, -1, 0, -5163), (1, 1, 0, 0, 4987), (2, -1, 1, 0, 4036),
    (2, 0, 2, 0, 3994), (4, 0, 0, 0, 3861), (2, 0, -3, 0, 3665),
    (0, 1, -2, 0, -2689), (2, 0, -1, 2, -2602), (2, -1, -2, 0, 2390),
    (1, 0, 1, 0, -2348), (2, -2, 0, 0, 2236), (0, 1, 2, 0, -2120),
    (0, 2, 0, 0, -2069), (2, -2, -1, 0, 2048), (2, 0, 1, -2, -1773),
    (2, 0, 0, 2, -1595), (4, -1, -1, 0, 1215), (0, 0, 2, 2, -1110),
    (3, 0, -1, 0, -892), (2, 1, 1, 0, -810), (4, -1, -2, 0, 759),
    (0, 2, -1, 0, -713), (2, 2, -1, 0, -700), (2, 1, -2, 0, 691),
    (2, -1, 0, -2, 596), (4, 0, 1, 0, 549), (0, 0, 4, 0, 537),
    (4, -1, 0, 0, 520), (1, 0, -2, 0, -487), (2, 1, 0, -2, -399),
    (0, 0, 2, -2, -381), (1, 1, 1, 0, 351), (3, 0, -2, 0, -340),
    (4, 0, -3, 0, 330), (2, -1, 2, 0, 327), (0, 2, 1, 0, -323),
    (1, 1, -1, 0, 299), (2, 0, 3, 0, 294),
)


class AnalyticEphemeris(AstralRiseSet):
    """Offline Meeus-style Sun and Moon, good to roughly 0.01 degree.

    Enough for day-level festival dating; use SkyfieldEphemeris when
    boundary instants must match a JPL ephemeris to the second.
    """

    def __init__(self, ayanamsa_mode: str = "lahiri"):
        ayanamsa_degrees(J2000, ayanamsa_mode)  # validate early
        self.ayanamsa_mode = ayanamsa_mode

    def sun_longitude(self, jd: float) -> float:
        t = (jd_ut_to_tt(jd) - J2000) / 36525.0
        l0 = 280.46646 + 36000.76983 * t + 0.0003032 * t * t
        m = radians(357.52911 + 35999.05029 * t - 0.0001537 * t * t)
        c = ((1.914602 - 0.004817 * t - 0.000014 * t * t) * sin(m)
             + (0.019993 - 0.000101 * t) * sin(2 * m)
             + 0.000289 * sin(3 * m))
        omega = radians(125.04 - 1934.136 * t)
        return normalize_angle_360(l0 + c - 0.00569 - 0.00478 * sin(omega))

    def moon_longitude(self, jd: float) -> float:
        t = (jd_ut_to_tt(jd) - J2000) / 36525.0
        t2, t3, t4 = t * t, t ** 3, t ** 4
        lp = 218.3164477 + 481267.88123421 * t - 0.0015786 * t2 + t3 / 538841 - t4 / 65194000
        d = 297.8501921 + 445267.1114034 * t - 0.0018819 * t2 + t3 / 545868 - t4 / 113065000
        m = 357.5291092 + 35999.0502909 * t - 0.0001536 * t2 + t3 / 24490000
        mp = 134.9633964 + 477198.8675055 * t + 0.0087414 * t2 + t3 / 69699 - t4 / 14712000
        f = 93.2720950 + 483202.0175233 * t - 0.0036539 * t2 - t3 / 3526000 + t4 / 863310000
        e = 1.0 - 0.002516 * t - 0.0000074 * t2

        d_r, m_r, mp_r, f_r = radians(d), radians(m), radians(mp), radians(f)
        total = 0.0
        for cd, cm, cmp, cf, coef in MOON_LON_TERMS:
            if abs(cm) == 1:
                coef *= e
            elif abs(cm) == 2:
                coef *= e * e
            total += coef * sin(cd * d_r + cm * m_r + cmp * mp_r + cf * f_r)

        a1 = radians(119.75 + 131.849 * t)
        a2 = radians(53.09 + 479264.290 * t)
        total += 3958 * sin(a1) + 1962 * sin(radians(lp - f)) + 318 * sin(a2)

        omega = radians(125.04452 - 1934.136261 * t)
        return normalize_angle_360(lp + total / 1e6 - 0.00478 * sin(omega))

    def ayanamsa(self, jd: float) -> float:
        return -ayanamsa_degrees(jd, self.ayanamsa_mode)


# ---------------- Skyfield (JPL) ---------------
_eph = None
_ts = None


def _load_ephem(kernel: str = "de421.bsp"):
    global _eph, _ts
    if _eph is None or _ts is None:
        _eph = load(kernel)
        _ts = load.timescale()
    return _eph, _ts


class SkyfieldEphemeris(AstralRiseSet):
    """Apparent longitudes of date from a JPL kernel (downloaded on first use)."""

    def __init__(self, ayanamsa_mode: str = "lahiri", kernel: str = "de421.bsp"):
        ayanamsa_degrees(J2000, ayanamsa_mode)
        self.ayanamsa_mode = ayanamsa_mode
        self.kernel = kernel

    def _longitude(self, body: str, jd: float) -> float:
        eph, ts = _load_ephem(self.kernel)
        t = ts.ut1_jd(jd)
        apparent = eph["earth"].at(t).observe(eph[body]).apparent()
        _, lon, _ = apparent.ecliptic_latlon(epoch="date")
        return lon.degrees % 360.0

    def sun_longitude(self, jd: float) -> float:
        return self._longitude("sun", jd)

    def moon_longitude(self, jd: float) -> float:
        return self._longitude("moon", jd)

    def ayanamsa(self, jd: float) -> float:
        return -ayanamsa_degrees(jd, self.ayanamsa_mode)


def make_provider(name: str = "analytic", ayanamsa_mode: str = "lahiri") -> EphemerisProvider:
    if name == "analytic":
        return AnalyticEphemeris(ayanamsa_mode)
    if name == "skyfield":
        return SkyfieldEphemeris(ayanamsa_mode)
    raise ValueError(f"unknown ephemeris backend: {name!r}")


# ---------------- Derived longitudes -----------
def sidereal_sun_longitude(provider: EphemerisProvider, jd: float) -> float:
    return normalize_angle_360(provider.sun_longitude(jd) + provider.ayanamsa(jd))


def sidereal_moon_longitude(provider: EphemerisProvider, jd: float) -> float:
    return normalize_angle_360(provider.moon_longitude(jd) + provider.ayanamsa(jd))


def lunar_elongation(provider: EphemerisProvider, jd: float) -> float:
    return normalize_angle_360(provider.moon_longitude(jd) - provider.sun_longitude(jd))


def yoga_longitude(provider: EphemerisProvider, jd: float) -> float:
    ay = provider.ayanamsa(jd)
    return normalize_angle_360(provider.sun_longitude(jd) + provider.moon_longitude(jd) + 2 * ay)


# ---------------- Adjacent-day fallbacks -------
MOONRISE_LOOKBACK = timedelta(hours=24)


def moonrise_near(provider: EphemerisProvider, day: date, lat: float, lon: float, tz,
                  elevation: float = 0.0) -> Optional[datetime]:
    """Moonrise for ``day``; otherwise the previous day's rise if it lies
    within 24 h before local noon of ``day``."""
    rise = provider.moonrise(day, lat, lon, tz, elevation)
    if rise is not None:
        return rise
    prev = provider.moonrise(day - timedelta(days=1), lat, lon, tz, elevation)
    if prev is None:
        return None
    noon = local_instant_for_timezone(day.year, day.month, day.day, 12, zone=tz)
    gap = noon - prev
    if timedelta(0) <= gap < MOONRISE_LOOKBACK:
        return prev
    return None


def moonset_near(provider: EphemerisProvider, day: date, lat: float, lon: float, tz,
                 elevation: float = 0.0) -> Optional[datetime]:
    found = provider.moonset(day, lat, lon, tz, elevation)
    if found is None:
        found = provider.moonset(day + timedelta(days=1), lat, lon, tz, elevation)
    return found


def require(value: Optional[datetime], what: str, day: date) -> datetime:
    if value is None:
        raise EphemerisUnavailable(f"no {what} on {day.isoformat()}")
    return value


def utc_of(jd: float) -> datetime:
    return julian_day_to_utc(jd)
