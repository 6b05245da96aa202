"""Year scans: every tithi (and nakshatra) boundary with its lunar month.

The scan walks crossing to crossing in the Moon's own cadence rather than in
fixed day steps, so each boundary costs one short bisection.
"""
from __future__ import annotations
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from math import floor
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .calculator import (NAKSHATRA_DEG, TITHI_DEG, lunation_masa, new_moon_after,
                         new_moon_before)
from .config import DEFAULT_OPTIONS, EngineOptions
from .ephemeris import EphemerisProvider, lunar_elongation, sidereal_moon_longitude
from .errors import NoBracketError, NoMatchingTithiBoundary
from .models import NakshatraBoundary, TithiBoundary
from .solver import find_crossing, next_crossing
from .timeutil import datetime_to_julian_day, julian_day_to_utc, local_instant_for_timezone

logger = logging.getLogger(__name__)

# Lunation length stays within 29.26 - 29.84 days
_LUNATION_MIN, _LUNATION_MAX = 27.0, 31.0


@dataclass(frozen=True)
class Lunation:
    start_jd: float  # new moon
    end_jd: float    # next new moon
    masa_ino: int
    is_leap_month: bool

    def contains(self, jd: float) -> bool:
        return self.start_jd <= jd < self.end_jd


def _year_window(year: int, tz) -> Tuple[float, float]:
    """Local Dec 15 of year-1 through local Jan 15 of year+1."""
    a = local_instant_for_timezone(year - 1, 12, 15, zone=tz)
    b = local_instant_for_timezone(year + 1, 1, 15, zone=tz)
    return datetime_to_julian_day(a), datetime_to_julian_day(b)


def _civil_year_bounds(year: int, tz) -> Tuple[datetime, datetime]:
    return (local_instant_for_timezone(year, 1, 1, zone=tz),
            local_instant_for_timezone(year + 1, 1, 1, zone=tz))


def lunations_covering_year(provider: EphemerisProvider, year: int, tz,
                            options: EngineOptions = DEFAULT_OPTIONS) -> List[Lunation]:
    jd_a, jd_b = _year_window(year, tz)
    elong = lambda jd: lunar_elongation(provider, jd)
    nm = new_moon_before(provider, jd_a, options)
    last = new_moon_after(provider, jd_b, options)

    out: List[Lunation] = []
    while nm < last - 1.0:
        nxt = next_crossing(elong, 0.0, nm, _LUNATION_MIN, _LUNATION_MAX,
                            tol_sec=options.tol_sec, max_iter=options.max_iter,
                            max_expansions=options.max_expansions).jd
        masa, leap = lunation_masa(provider, nm, nxt)
        out.append(Lunation(nm, nxt, masa, leap))
        nm = nxt
    logger.debug("%d lunations cover %d", len(out), year)
    return out


def _tithi_crossings(provider: EphemerisProvider, lun: Lunation, options: EngineOptions) -> List[float]:
    """New moon, the 29 tithi changes, next new moon."""
    elong = lambda jd: lunar_elongation(provider, jd)
    marks = [lun.start_jd]
    for k in range(1, 30):
        root = next_crossing(elong, k * TITHI_DEG, marks[-1], 0.5, 1.5,
                             tol_sec=options.tol_sec, max_iter=options.max_iter,
                             max_expansions=options.max_expansions)
        marks.append(root.jd)
    marks.append(lun.end_jd)
    return marks


def scan_tithi_boundaries(provider: EphemerisProvider, year: int, tz,
                          options: EngineOptions = DEFAULT_OPTIONS,
                          lunations: Optional[Sequence[Lunation]] = None) -> List[TithiBoundary]:
    """All tithis overlapping the civil year in ``tz``, sorted by start."""
    if lunations is None:
        lunations = lunations_covering_year(provider, year, tz, options)
    year_start, year_end = _civil_year_bounds(year, tz)

    rows: List[TithiBoundary] = []
    for lun in lunations:
        try:
            marks = _tithi_crossings(provider, lun, options)
        except NoBracketError as e:
            logger.warning("tithis of lunation at JD %.5f skipped: %s %s", lun.start_jd, e, e.debug)
            continue
        for ino in range(30):
            start = julian_day_to_utc(marks[ino])
            end = julian_day_to_utc(marks[ino + 1])
            if end <= year_start or start >= year_end:
                continue
            rows.append(TithiBoundary(ino, lun.masa_ino, lun.is_leap_month, start, end))
    rows.sort(key=lambda r: r.start)
    return rows


def scan_nakshatra_boundaries(provider: EphemerisProvider, year: int, tz,
                              options: EngineOptions = DEFAULT_OPTIONS,
                              lunations: Optional[Sequence[Lunation]] = None) -> List[NakshatraBoundary]:
    """Nakshatras overlapping the civil year; masa is that of the lunation
    in which the nakshatra starts."""
    if lunations is None:
        lunations = lunations_covering_year(provider, year, tz, options)
    year_start, year_end = _civil_year_bounds(year, tz)
    jd_a, jd_b = _year_window(year, tz)
    sid = lambda jd: sidereal_moon_longitude(provider, jd)
    kw = dict(tol_sec=options.tol_sec, max_iter=options.max_iter,
              max_expansions=options.max_expansions)

    idx = int(floor(sid(jd_a) / NAKSHATRA_DEG))
    start = find_crossing(sid, idx * NAKSHATRA_DEG, jd_a - 1.3, jd_a, expand_days=0.3, **kw).jd

    rows: List[NakshatraBoundary] = []
    while start < jd_b:
        try:
            end = next_crossing(sid, ((idx + 1) % 27) * NAKSHATRA_DEG, start, 0.5, 1.6, **kw).jd
        except NoBracketError as e:
            logger.warning("nakshatra scan stopped at JD %.5f: %s %s", start, e, e.debug)
            break
        lun = next((l for l in lunations if l.contains(start)), None)
        s_dt, e_dt = julian_day_to_utc(start), julian_day_to_utc(end)
        if lun is not None and e_dt > year_start and s_dt < year_end:
            rows.append(NakshatraBoundary(idx % 27, lun.masa_ino, lun.is_leap_month, s_dt, e_dt))
        idx, start = (idx + 1) % 27, end
    return rows


# ---------------- Lookup tables ---------------
class TithiBoundaryIndex:
    """Rows keyed by (tithi_ino, masa_ino, is_leap_month)."""

    def __init__(self, rows: Sequence[TithiBoundary]):
        self.rows = list(rows)
        self._by_key: Dict[Tuple[int, int, bool], List[TithiBoundary]] = defaultdict(list)
        for r in self.rows:
            self._by_key[r.key].append(r)

    def lookup(self, tithi_ino: int, masa_ino: int, is_leap_month: bool = False) -> List[TithiBoundary]:
        return list(self._by_key.get((tithi_ino, masa_ino, bool(is_leap_month)), ()))

    def require(self, tithi_ino: int, masa_ino: int, is_leap_month: bool = False) -> List[TithiBoundary]:
        found = self.lookup(tithi_ino, masa_ino, is_leap_month)
        if not found:
            raise NoMatchingTithiBoundary(
                f"no tithi {tithi_ino} in masa {masa_ino} (leap={is_leap_month})")
        return found

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[TithiBoundary]:
        return iter(self.rows)


class NakshatraBoundaryIndex:
    def __init__(self, rows: Sequence[NakshatraBoundary]):
        self.rows = list(rows)
        self._by_key: Dict[Tuple[int, int], List[NakshatraBoundary]] = defaultdict(list)
        for r in self.rows:
            self._by_key[(r.nakshatra_ino, r.masa_ino)].append(r)

    def lookup(self, nakshatra_ino: int, masa_ino: Optional[int] = None) -> List[NakshatraBoundary]:
        if masa_ino is None:
            return [r for r in self.rows if r.nakshatra_ino == nakshatra_ino]
        return list(self._by_key.get((nakshatra_ino, masa_ino), ()))

    def __len__(self) -> int:
        return len(self.rows)
