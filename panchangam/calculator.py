from __future__ import annotations
import logging
from datetime import date, datetime, timedelta
from math import floor
from typing import Callable, List, Optional, Tuple

from .config import DEFAULT_OPTIONS, EngineOptions
from .ephemeris import (EphemerisProvider, lunar_elongation, moonrise_near, moonset_near,
                        sidereal_moon_longitude, sidereal_sun_longitude, yoga_longitude)
from .errors import InvalidInstantError, NoBracketError
from .models import (DayAnga, DayPanchangam, DayPeriods, Karana, Masa, Nakshatra,
                     PanchangamSnapshot, Paksha, Tithi, Yoga)
from .solver import find_crossing
from .timeutil import (datetime_to_julian_day, is_valid_julian_day, julian_day_to_utc,
                       local_instant_for_timezone, resolve_timezone)

logger = logging.getLogger(__name__)

TITHI_DEG = 12.0
KARANA_DEG = 6.0
NAKSHATRA_DEG = 360.0 / 27.0
YOGA_DEG = 360.0 / 27.0
SIGN_DEG = 30.0
MEAN_ELONGATION_RATE = 12.190749  # degrees/day
SYNODIC_MONTH = 29.530589
PRABHAVA_YEAR = 1867  # Ugadi 1867 opened a Prabhava year

# Longest duration of each anga, with margin (days)
_MAX_SPAN = {"tithi": 1.3, "nakshatra": 1.3, "yoga": 1.3, "karana": 0.7}


# ---------------- Indices ----------------------
def tithi_index(elongation: float) -> int:
    return int(floor(elongation / TITHI_DEG)) % 30


def nakshatra_index(sidereal_moon: float) -> int:
    return int(floor(sidereal_moon / NAKSHATRA_DEG)) % 27


def yoga_index(sidereal_sum: float) -> int:
    return int(floor(sidereal_sum / YOGA_DEG)) % 27


def karana_index(elongation: float) -> int:
    """0-6 are the repeating karanas; 7-10 the fixed ones at the month's ends."""
    nk = int(floor(elongation / KARANA_DEG)) % 60
    if nk == 0:
        return 10
    if nk >= 57:
        return nk - 50
    return (nk - 1) % 7


def paksha_for_tithi(tithi_ino: int) -> Paksha:
    return Paksha(0 if tithi_ino < 15 else 1)


def sign_index(sidereal_longitude: float) -> int:
    return int(floor(sidereal_longitude / SIGN_DEG)) % 12


def masa_index_for_new_moon(sidereal_sun: float) -> int:
    # Sun in Meena (11) at the new moon opens Chaitra (0)
    return (sign_index(sidereal_sun) + 1) % 12


def purnimanta_index(masa_ino: int, tithi_ino: int) -> int:
    return (masa_ino + 1) % 12 if tithi_ino >= 15 else masa_ino


def ritu_index(masa_ino: int) -> int:
    return masa_ino // 2


def ayana_index(sidereal_sun: float) -> int:
    """0 (Uttarayana) from Makara sankranti until Karka sankranti, else 1."""
    return 0 if (sign_index(sidereal_sun) - 9) % 12 < 6 else 1


def samvatsara_index(jd: float, masa: Masa) -> int:
    """Position in the 60-year cycle; the year turns at Chaitra Shukla Pratipada.

    Stepping back one mean lunation per masa lands in March-June of the year
    whose Ugadi opened the current samvatsara. Adhika Chaitra precedes Ugadi.
    """
    back = 12 if masa.ino == 0 and masa.is_leap_month else masa.ino
    ugadi_year = julian_day_to_utc(jd - back * SYNODIC_MONTH).year
    return (ugadi_year - PRABHAVA_YEAR) % 60


# ---------------- New moons / masa -------------
def _elongation_fn(provider: EphemerisProvider) -> Callable[[float], float]:
    return lambda jd: lunar_elongation(provider, jd)


def new_moon_before(provider: EphemerisProvider, jd: float,
                    options: EngineOptions = DEFAULT_OPTIONS) -> float:
    """Julian Day of the new moon opening the lunation that contains ``jd``."""
    guess = jd - lunar_elongation(provider, jd) / MEAN_ELONGATION_RATE
    root = find_crossing(_elongation_fn(provider), 0.0, guess - 3.0, guess + 3.0,
                         tol_sec=options.tol_sec, max_iter=options.max_iter,
                         max_expansions=options.max_expansions, expand_days=1.0)
    return root.jd


def new_moon_after(provider: EphemerisProvider, jd: float,
                   options: EngineOptions = DEFAULT_OPTIONS) -> float:
    guess = jd + (360.0 - lunar_elongation(provider, jd)) / MEAN_ELONGATION_RATE
    root = find_crossing(_elongation_fn(provider), 0.0, guess - 3.0, guess + 3.0,
                         tol_sec=options.tol_sec, max_iter=options.max_iter,
                         max_expansions=options.max_expansions, expand_days=1.0)
    return root.jd


def lunation_masa(provider: EphemerisProvider, nm_start: float, nm_end: float) -> Tuple[int, bool]:
    """(masa_ino, is_leap_month) for the lunation between two new moons."""
    sid_start = sidereal_sun_longitude(provider, nm_start)
    sid_end = sidereal_sun_longitude(provider, nm_end)
    is_leap = sign_index(sid_start) == sign_index(sid_end)
    return masa_index_for_new_moon(sid_start), is_leap


def masa_at(provider: EphemerisProvider, jd: float, tithi_ino: Optional[int] = None,
            options: EngineOptions = DEFAULT_OPTIONS) -> Masa:
    nm_start = new_moon_before(provider, jd, options)
    nm_end = new_moon_after(provider, jd, options)
    ino, leap = lunation_masa(provider, nm_start, nm_end)
    if tithi_ino is None:
        tithi_ino = tithi_index(lunar_elongation(provider, jd))
    return Masa(ino, leap, purnimanta_index(ino, tithi_ino))


# ---------------- Anga start/end ---------------
def _anga_span(angle_fn: Callable[[float], float], jd: float, width: float, span: float,
               options: EngineOptions) -> Tuple[Optional[datetime], Optional[datetime]]:
    value = angle_fn(jd)
    idx = floor(value / width)
    kw = dict(tol_sec=options.tol_sec, max_iter=options.max_iter,
              max_expansions=1, expand_days=0.3)
    start = end = None
    try:
        start = julian_day_to_utc(find_crossing(angle_fn, idx * width, jd - span, jd, **kw).jd)
    except NoBracketError as e:
        logger.warning("start not bracketed near jd=%.5f: %s", jd, e)
    try:
        end = julian_day_to_utc(find_crossing(angle_fn, (idx + 1) * width, jd, jd + span, **kw).jd)
    except NoBracketError as e:
        logger.warning("end not bracketed near jd=%.5f: %s", jd, e)
    return start, end


def compute_tithi(provider: EphemerisProvider, jd: float,
                  options: EngineOptions = DEFAULT_OPTIONS) -> Tithi:
    fn = _elongation_fn(provider)
    start, end = _anga_span(fn, jd, TITHI_DEG, _MAX_SPAN["tithi"], options)
    return Tithi(tithi_index(fn(jd)), start, end)


def compute_nakshatra(provider: EphemerisProvider, jd: float,
                      options: EngineOptions = DEFAULT_OPTIONS) -> Nakshatra:
    fn = lambda t: sidereal_moon_longitude(provider, t)
    start, end = _anga_span(fn, jd, NAKSHATRA_DEG, _MAX_SPAN["nakshatra"], options)
    return Nakshatra(nakshatra_index(fn(jd)), start, end)


def compute_yoga(provider: EphemerisProvider, jd: float,
                 options: EngineOptions = DEFAULT_OPTIONS) -> Yoga:
    fn = lambda t: yoga_longitude(provider, t)
    start, end = _anga_span(fn, jd, YOGA_DEG, _MAX_SPAN["yoga"], options)
    return Yoga(yoga_index(fn(jd)), start, end)


def compute_karana(provider: EphemerisProvider, jd: float,
                   options: EngineOptions = DEFAULT_OPTIONS) -> Karana:
    fn = _elongation_fn(provider)
    start, end = _anga_span(fn, jd, KARANA_DEG, _MAX_SPAN["karana"], options)
    return Karana(karana_index(fn(jd)), start, end)


# ---------------- Day angas --------------------
_DAY_ANGAS = (
    ("tithi", TITHI_DEG, tithi_index),
    ("nakshatra", NAKSHATRA_DEG, nakshatra_index),
    ("yoga", YOGA_DEG, yoga_index),
    ("karana", KARANA_DEG, karana_index),
)
_STEP_PAST_END = 60.0 / 86400.0


def _angle_fn(provider: EphemerisProvider, kind: str) -> Callable[[float], float]:
    if kind in ("tithi", "karana"):
        return _elongation_fn(provider)
    if kind == "nakshatra":
        return lambda t: sidereal_moon_longitude(provider, t)
    return lambda t: yoga_longitude(provider, t)


def day_angas(provider: EphemerisProvider, sunrise: datetime, next_sunrise: datetime,
              options: EngineOptions = DEFAULT_OPTIONS) -> List[DayAnga]:
    """Every tithi, nakshatra, yoga and karana current between two sunrises.

    A tithi that begins and ends inside the day is kshaya; one that spans
    both sunrises is vriddhi.
    """
    jd_end = datetime_to_julian_day(next_sunrise)
    out: List[DayAnga] = []
    for kind, width, index_fn in _DAY_ANGAS:
        fn = _angle_fn(provider, kind)
        jd = datetime_to_julian_day(sunrise)
        while jd < jd_end:
            start, end = _anga_span(fn, jd, width, _MAX_SPAN[kind], options)
            kshaya = vriddhi = False
            if kind == "tithi" and start is not None and end is not None:
                kshaya = start > sunrise and end < next_sunrise
                vriddhi = start < sunrise and end > next_sunrise
            out.append(DayAnga(kind, index_fn(fn(jd)), start, end, kshaya, vriddhi))
            if end is None:
                break
            jd = datetime_to_julian_day(end) + _STEP_PAST_END
    return out


# ---------------- Rahu kalam -------------------
# eighth of daylight (0-based) by weekday, Monday = 0
_RAHU_SEG = {0: 1, 1: 6, 2: 4, 3: 5, 4: 3, 5: 2, 6: 7}
_YAMAGANDA_SEG = {0: 3, 1: 2, 2: 1, 3: 0, 4: 6, 5: 5, 6: 4}
_GULIKA_SEG = {0: 5, 1: 4, 2: 3, 3: 2, 4: 1, 5: 0, 6: 6}


def day_periods(sunrise: Optional[datetime], sunset: Optional[datetime],
                weekday: int) -> Optional[DayPeriods]:
    if sunrise is None or sunset is None or sunset <= sunrise:
        return None
    seg = (sunset - sunrise) / 8

    def eighth(n: int) -> Tuple[datetime, datetime]:
        start = sunrise + seg * n
        return start, start + seg

    return DayPeriods(rahu_kalam=eighth(_RAHU_SEG[weekday]),
                      yamagandam=eighth(_YAMAGANDA_SEG[weekday]),
                      gulika=eighth(_GULIKA_SEG[weekday]))


# ---------------- Snapshots --------------------
def panchangam_at(provider: EphemerisProvider, instant: datetime,
                  options: EngineOptions = DEFAULT_OPTIONS) -> PanchangamSnapshot:
    """Every anga at ``instant``; the caller picks sunrise, pradosha and so on."""
    jd = datetime_to_julian_day(instant)
    if not is_valid_julian_day(jd):
        raise InvalidInstantError(f"invalid instant: {instant!r}")

    sun = provider.sun_longitude(jd)
    moon = provider.moon_longitude(jd)
    ay = provider.ayanamsa(jd)
    sid_sun = sidereal_sun_longitude(provider, jd)
    sid_moon = sidereal_moon_longitude(provider, jd)

    tithi = compute_tithi(provider, jd, options)
    masa = masa_at(provider, jd, tithi.ino, options)
    return PanchangamSnapshot(
        instant=julian_day_to_utc(jd),
        julian_day=jd,
        sun_longitude=sun,
        moon_longitude=moon,
        ayanamsa=ay,
        sidereal_sun=sid_sun,
        sidereal_moon=sid_moon,
        tithi=tithi,
        paksha=tithi.paksha,
        nakshatra=compute_nakshatra(provider, jd, options),
        yoga=compute_yoga(provider, jd, options),
        karana=compute_karana(provider, jd, options),
        masa=masa,
        raasi=sign_index(sid_moon),
        sun_sign=sign_index(sid_sun),
        ritu=ritu_index(masa.ino),
        ayana=ayana_index(sid_sun),
        samvatsara=samvatsara_index(jd, masa),
    )


def day_panchangam(provider: EphemerisProvider, day: date, lat: float, lon: float, tz,
                   options: EngineOptions = DEFAULT_OPTIONS) -> DayPanchangam:
    """Panchangam at local sunrise of ``day`` (local noon when the sun does not rise),
    with every anga of the day and its rahu kalam, yamagandam and gulika."""
    tz = resolve_timezone(tz)
    elev = options.elevation
    sunrise = provider.sunrise(day, lat, lon, tz, elev)
    sunset = provider.sunset(day, lat, lon, tz, elev)
    moonrise = moonrise_near(provider, day, lat, lon, tz, elev)
    moonset = moonset_near(provider, day, lat, lon, tz, elev)

    instant = sunrise
    if instant is None:
        logger.debug("no sunrise on %s at (%.4f, %.4f); using local noon", day, lat, lon)
        instant = local_instant_for_timezone(day.year, day.month, day.day, 12, zone=tz)
    next_sunrise = provider.sunrise(day + timedelta(days=1), lat, lon, tz, elev)
    day_end = next_sunrise or instant + timedelta(days=1)
    return DayPanchangam(
        day=day,
        sunrise=sunrise,
        sunset=sunset,
        moonrise=moonrise,
        moonset=moonset,
        weekday=day.weekday(),
        panchangam=panchangam_at(provider, instant, options),
        next_sunrise=next_sunrise,
        angas=tuple(day_angas(provider, instant, day_end, options)),
        periods=day_periods(sunrise, sunset, day.weekday()),
    )
