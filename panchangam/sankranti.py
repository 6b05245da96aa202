from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from .config import DEFAULT_OPTIONS, EngineOptions
from .ephemeris import EphemerisProvider, sidereal_sun_longitude
from .errors import NoBracketError
from .models import SankrantiEvent
from .solver import Root, find_crossing
from .timeutil import julian_day_to_utc, datetime_to_julian_day, local_instant_for_timezone, local_year_of

logger = logging.getLogger(__name__)

# sign -> (start month, day, year shift), (end month, day, year shift)
# Local calendar windows that always contain the Sun's entry into the sign.
SANKRANTI_WINDOWS = {
    0: ((4, 12, 0), (5, 14, 0)),
    1: ((5, 12, 0), (6, 14, 0)),
    2: ((6, 13, 0), (7, 16, 0)),
    3: ((7, 14, 0), (8, 17, 0)),
    4: ((8, 15, 0), (9, 18, 0)),
    5: ((9, 16, 0), (10, 18, 0)),
    6: ((10, 17, 0), (11, 17, 0)),
    7: ((11, 16, 0), (12, 16, 0)),
    8: ((12, 15, 0), (1, 15, 1)),
    9: ((1, 12, 1), (2, 14, 1)),
    10: ((2, 11, 1), (3, 14, 1)),
    11: ((3, 11, 1), (4, 14, 1)),
}


def find_sankranti_jd(provider: EphemerisProvider, target_angle: float, jd_a: float, jd_b: float,
                      tol_sec: float = 1.0, max_iter: int = 80, max_expansions: int = 3) -> Root:
    """Julian Day where the sidereal Sun reaches ``target_angle``, by bisection."""
    return find_crossing(lambda jd: sidereal_sun_longitude(provider, jd), target_angle, jd_a, jd_b,
                         tol_sec=tol_sec, max_iter=max_iter,
                         max_expansions=max_expansions, expand_days=3.0)


def sankranti_window(sign_index: int, year: int, tz):
    """(jd_start, jd_end) of the search window, local 00:00 to local 23:59."""
    (m0, d0, s0), (m1, d1, s1) = SANKRANTI_WINDOWS[sign_index]
    start = local_instant_for_timezone(year + s0, m0, d0, 0, 0, zone=tz)
    end = local_instant_for_timezone(year + s1, m1, d1, 23, 59, zone=tz)
    return datetime_to_julian_day(start), datetime_to_julian_day(end)


def find_sankranti_for_sign(provider: EphemerisProvider, sign_index: int, year: int, tz,
                            options: EngineOptions = DEFAULT_OPTIONS) -> SankrantiEvent:
    jd_a, jd_b = sankranti_window(sign_index, year, tz)
    root = find_sankranti_jd(provider, sign_index * 30.0, jd_a, jd_b,
                             tol_sec=options.tol_sec, max_iter=options.max_iter,
                             max_expansions=options.max_expansions)
    instant = julian_day_to_utc(root.jd)
    return SankrantiEvent(
        sign_index=sign_index,
        instant=instant,
        julian_day=root.jd,
        local_year=local_year_of(instant, tz),
        ayanamsa=provider.ayanamsa(root.jd),
        debug=root.debug,
    )


def _search(provider, sign_index, year, tz, options) -> Optional[SankrantiEvent]:
    try:
        return find_sankranti_for_sign(provider, sign_index, year, tz, options)
    except NoBracketError as e:
        logger.warning("sankranti for sign %d (%d) skipped: %s %s", sign_index, year, e, e.debug)
        return None


def get_sankrantis_for_calendar_year(provider: EphemerisProvider, year: int, tz,
                                     options: EngineOptions = DEFAULT_OPTIONS,
                                     max_workers: Optional[int] = None) -> List[SankrantiEvent]:
    """The twelve sankrantis whose local instant falls in ``year``, sorted.

    Each sign is searched from the windows of year-1, year and year+1 so a
    transit near New Year is found whichever table row brackets it.
    """
    jobs = [(sign, y) for sign in range(12) for y in (year - 1, year, year + 1)]
    workers = max_workers if max_workers is not None else options.max_workers
    if workers and workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            found = list(pool.map(lambda job: _search(provider, job[0], job[1], tz, options), jobs))
    else:
        found = [_search(provider, sign, y, tz, options) for sign, y in jobs]

    best: Dict[int, SankrantiEvent] = {}
    for ev in found:
        if ev is None or ev.local_year != year:
            continue
        cur = best.get(ev.sign_index)
        if cur is None or ev.julian_day < cur.julian_day:
            best[ev.sign_index] = ev
    if len(best) != 12:
        logger.warning("found %d of 12 sankrantis for %d", len(best), year)
    return sorted(best.values(), key=lambda ev: ev.julian_day)
