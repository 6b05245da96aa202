"""Festival resolution: which civil date each catalog rule lands on in a year.

A rule names a tithi (or nakshatra) and optionally a masa; the scanned
boundary gives the interval the tithi is current, and the rule's
calculation basis picks the civil day from that interval.
"""
from __future__ import annotations
import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from math import floor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .calculator import nakshatra_index
from .catalog import DEFAULT_RULES
from .config import DEFAULT_OPTIONS, EngineOptions
from .ephemeris import EphemerisProvider, moonrise_near, sidereal_moon_longitude
from .errors import InvalidInstantError, NoMatchingTithiBoundary
from .models import (MAKARA, SIGN_KEYS, CalculationBasis, FestivalOccurrence, FestivalRule,
                     SankrantiEvent)
from .sankranti import get_sankrantis_for_calendar_year
from .tithi_scan import (NakshatraBoundaryIndex, TithiBoundaryIndex, lunations_covering_year,
                         scan_nakshatra_boundaries, scan_tithi_boundaries)
from .timeutil import (datetime_to_julian_day, local_date_of, local_instant_for_timezone,
                       resolve_timezone, utc_date_of)

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
MUHURTAS_PER_NIGHT = 30


# ---------------- Evaluation instants ----------
def sunrise_evaluation(sunrise: datetime, options: EngineOptions = DEFAULT_OPTIONS) -> datetime:
    return sunrise + timedelta(minutes=options.sunrise_offset_minutes)


def pradosha_time(sunset: datetime, options: EngineOptions = DEFAULT_OPTIONS) -> datetime:
    return sunset + timedelta(minutes=options.pradosha_offset_minutes)


def nishita_window(sunset: datetime, next_sunrise: datetime) -> Tuple[datetime, datetime]:
    """The muhurta (1/30 of the night) containing the night's midpoint."""
    night = (next_sunrise - sunset).total_seconds()
    muhurta = night / MUHURTAS_PER_NIGHT
    i = int(floor((night / 2.0) / muhurta + 1e-9))
    start = sunset + timedelta(seconds=i * muhurta)
    return start, start + timedelta(seconds=muhurta)


# ---------------- Context ----------------------
class FestivalContext:
    """Everything computed once per (year, location, timezone).

    Owned by the caller: build one, resolve as many rule sets as needed
    against it, then drop it. Rows can be passed in precomputed.
    """

    def __init__(self, provider: EphemerisProvider, year: int, lat: float, lon: float, tz=None, *,
                 offset_minutes: Optional[float] = None,
                 options: EngineOptions = DEFAULT_OPTIONS,
                 tithi_index: Optional[TithiBoundaryIndex] = None,
                 nakshatra_index: Optional[NakshatraBoundaryIndex] = None,
                 sankrantis: Optional[Sequence[SankrantiEvent]] = None):
        self.provider = provider
        self.year = year
        self.lat = lat
        self.lon = lon
        self.tz = resolve_timezone(tz, offset_minutes=offset_minutes)
        self.options = options
        self._tithi_index = tithi_index
        self._nakshatra_index = nakshatra_index
        self._sankrantis = list(sankrantis) if sankrantis is not None else None
        self._lunations = None
        self._rise_set: Dict[Tuple[str, date], Optional[datetime]] = {}

    # -- year scans --
    def _lunation_list(self):
        if self._lunations is None:
            self._lunations = lunations_covering_year(self.provider, self.year, self.tz, self.options)
        return self._lunations

    @property
    def tithi_index(self) -> TithiBoundaryIndex:
        if self._tithi_index is None:
            rows = scan_tithi_boundaries(self.provider, self.year, self.tz, self.options,
                                         lunations=self._lunation_list())
            self._tithi_index = TithiBoundaryIndex(rows)
        return self._tithi_index

    @property
    def nakshatra_index(self) -> NakshatraBoundaryIndex:
        if self._nakshatra_index is None:
            rows = scan_nakshatra_boundaries(self.provider, self.year, self.tz, self.options,
                                             lunations=self._lunation_list())
            self._nakshatra_index = NakshatraBoundaryIndex(rows)
        return self._nakshatra_index

    @property
    def sankrantis(self) -> List[SankrantiEvent]:
        if self._sankrantis is None:
            self._sankrantis = get_sankrantis_for_calendar_year(
                self.provider, self.year, self.tz, self.options)
        return self._sankrantis

    # -- rise/set --
    def _cached(self, what: str, day: date, fn) -> Optional[datetime]:
        key = (what, day)
        if key not in self._rise_set:
            self._rise_set[key] = fn()
        return self._rise_set[key]

    def sunrise(self, day: date) -> Optional[datetime]:
        return self._cached("sunrise", day, lambda: self.provider.sunrise(
            day, self.lat, self.lon, self.tz, self.options.elevation))

    def sunset(self, day: date) -> Optional[datetime]:
        return self._cached("sunset", day, lambda: self.provider.sunset(
            day, self.lat, self.lon, self.tz, self.options.elevation))

    def moonrise(self, day: date) -> Optional[datetime]:
        return self._cached("moonrise", day, lambda: moonrise_near(
            self.provider, day, self.lat, self.lon, self.tz, self.options.elevation))

    def local_date(self, instant: datetime) -> date:
        return local_date_of(instant, self.tz)

    def evaluation_instant(self, basis: CalculationBasis, day: date) -> Optional[datetime]:
        if basis is CalculationBasis.SUNRISE:
            sr = self.sunrise(day)
            return sunrise_evaluation(sr, self.options) if sr else None
        if basis is CalculationBasis.SUNSET:
            return self.sunset(day)
        if basis is CalculationBasis.PRADOSHA:
            ss = self.sunset(day)
            return pradosha_time(ss, self.options) if ss else None
        if basis is CalculationBasis.MOONRISE:
            return self.moonrise(day)
        if basis is CalculationBasis.SHIVARATRI:
            window = self.nishita(day)
            return window[0] if window else None
        return self.sunrise(day)

    def nishita(self, day: date) -> Optional[Tuple[datetime, datetime]]:
        ss, sr = self.sunset(day), self.sunrise(day + ONE_DAY)
        if ss is None or sr is None:
            return None
        return nishita_window(ss, sr)

    def in_year(self, start: datetime, end: datetime) -> bool:
        """Starts in the local civil year and is over by local Jan 1 of the next."""
        year_start = local_instant_for_timezone(self.year, 1, 1, zone=self.tz)
        next_year = local_instant_for_timezone(self.year + 1, 1, 1, zone=self.tz)
        return start >= year_start and end <= next_year


# ---------------- Basis resolution -------------
Resolution = Tuple[date, Optional[datetime], Optional[datetime]]


def _presence(ctx: FestivalContext, basis: CalculationBasis, start: datetime, end: datetime) -> date:
    """Start day if its evaluation instant is inside the interval, else the
    next day if that one's is, else the start day."""
    day = ctx.local_date(start)
    for candidate in (day, day + ONE_DAY):
        ev = ctx.evaluation_instant(basis, candidate)
        if ev is not None and start <= ev < end:
            return candidate
    return day


def resolve_display_date(ctx: FestivalContext, basis: CalculationBasis,
                         start: datetime, end: datetime) -> Resolution:
    """(display date, muhurta start, muhurta end) for one boundary."""
    day = ctx.local_date(start)

    if basis in (CalculationBasis.SUNRISE, CalculationBasis.SUNSET, CalculationBasis.PRADOSHA):
        return _presence(ctx, basis, start, end), None, None

    if basis is CalculationBasis.MOONRISE:
        rise = ctx.moonrise(day)
        if rise is None or rise < start:
            return day + ONE_DAY, None, None
        return ctx.local_date(rise), None, None

    if basis is CalculationBasis.SHIVARATRI:
        window = ctx.nishita(day)
        if window is None:
            logger.debug("no nishita window on %s; keeping start day", day)
            return day, None, None
        n_start, n_end = window
        if start < n_start:
            return day, n_start, n_end
        nxt = ctx.nishita(day + ONE_DAY)
        if nxt is None:
            return day + ONE_DAY, None, None
        return day + ONE_DAY, nxt[0], nxt[1]

    if basis is CalculationBasis.AFTER_SUNRISE:
        ss = ctx.sunset(day)
        if ss is not None and start > ss:
            return day + ONE_DAY, None, None
        return day, None, None

    raise ValueError(f"unhandled calculation basis: {basis!r}")


def _nakshatra_at(ctx: FestivalContext, instant: datetime) -> int:
    jd = datetime_to_julian_day(instant)
    return nakshatra_index(sidereal_moon_longitude(ctx.provider, jd))


# ---------------- Rule kinds -------------------
def _tithi_occurrences(ctx: FestivalContext, rule: FestivalRule) -> List[FestivalOccurrence]:
    masas = [rule.masa] if rule.masa is not None else list(range(12))
    index = ctx.tithi_index
    out: List[FestivalOccurrence] = []
    for masa in masas:
        if rule.masa is not None:
            try:
                rows = index.require(rule.tithi, masa, rule.adhik_maasa)
            except NoMatchingTithiBoundary as e:
                logger.debug("rule %s skipped for %d: %s", rule.key, ctx.year, e)
                continue
        else:
            rows = index.lookup(rule.tithi, masa, rule.adhik_maasa)

        for row in rows:
            if not ctx.in_year(row.start, row.end):
                continue
            try:
                day, m_start, m_end = resolve_display_date(ctx, rule.basis, row.start, row.end)
                if rule.nakshatra is not None:
                    ev = ctx.evaluation_instant(rule.basis, day) or ctx.sunrise(day)
                    if ev is None or _nakshatra_at(ctx, ev) != rule.nakshatra:
                        continue
            except InvalidInstantError as e:
                logger.warning("rule %s: bad instant for boundary %s: %s", rule.key, row, e)
                continue
            out.append(FestivalOccurrence(
                date=day, rule=rule, calculation_type=rule.basis,
                masa_ino=row.masa_ino, is_leap_month=row.is_leap_month,
                tithi_start=row.start, tithi_end=row.end,
                muhurta_start=m_start, muhurta_end=m_end))
    return out


def _nakshatra_occurrences(ctx: FestivalContext, rule: FestivalRule) -> List[FestivalOccurrence]:
    out: List[FestivalOccurrence] = []
    for row in ctx.nakshatra_index.lookup(rule.nakshatra, rule.masa):
        if row.is_leap_month != rule.adhik_maasa or not ctx.in_year(row.start, row.end):
            continue
        try:
            day, m_start, m_end = resolve_display_date(ctx, rule.basis, row.start, row.end)
        except InvalidInstantError as e:
            logger.warning("rule %s: bad instant for boundary %s: %s", rule.key, row, e)
            continue
        out.append(FestivalOccurrence(
            date=day, rule=rule, calculation_type=rule.basis,
            masa_ino=row.masa_ino, is_leap_month=row.is_leap_month,
            muhurta_start=m_start, muhurta_end=m_end))
    return out


def _gregorian_occurrences(ctx: FestivalContext, rule: FestivalRule) -> List[FestivalOccurrence]:
    try:
        day = date(ctx.year, rule.gregorian_month, rule.gregorian_day)
    except ValueError:
        # Feb 29 outside leap years
        return []
    return [FestivalOccurrence(date=day, rule=rule, calculation_type=rule.basis)]


def sankranti_rules(event: SankrantiEvent) -> List[Tuple[int, FestivalRule]]:
    """(day offset, rule) pairs synthesized from one sankranti."""
    key = SIGN_KEYS[event.sign_index]
    is_makara = event.sign_index == MAKARA
    out = [(0, FestivalRule(key=f"{key}_sankranti", name_key=f"{key}_sankranti",
                            priority=1 if is_makara else 3, festival_type="sankranti"))]
    if is_makara:
        out.insert(0, (-1, FestivalRule(key="bhogi", name_key="bhogi", priority=1,
                                        festival_type="sankranti")))
        out.append((1, FestivalRule(key="kanuma", name_key="kanuma", priority=1,
                                    festival_type="sankranti")))
    return out


def sankranti_festivals(ctx: FestivalContext) -> List[FestivalOccurrence]:
    out: List[FestivalOccurrence] = []
    for ev in ctx.sankrantis:
        if ctx.options.sankranti_anchor == "local":
            anchor = ctx.local_date(ev.instant)
        else:
            anchor = utc_date_of(ev.instant)
        for offset, rule in sankranti_rules(ev):
            out.append(FestivalOccurrence(date=anchor + timedelta(days=offset), rule=rule,
                                          calculation_type=rule.basis))
    return out


# ---------------- Entry points -----------------
def resolve_festivals(ctx: FestivalContext, rules: Iterable[FestivalRule],
                      include_sankranti: bool = True) -> List[FestivalOccurrence]:
    """Occurrences sorted by date, then priority, then registration order."""
    tagged: List[Tuple[int, FestivalOccurrence]] = []
    order = 0
    for order, rule in enumerate(rules):
        if rule.is_gregorian:
            found = _gregorian_occurrences(ctx, rule)
        elif rule.tithi is not None:
            found = _tithi_occurrences(ctx, rule)
        elif rule.nakshatra is not None:
            found = _nakshatra_occurrences(ctx, rule)
        else:
            logger.warning("rule %s has no tithi, nakshatra or civil date; ignored", rule.key)
            continue
        tagged.extend((order, occ) for occ in found)

    if include_sankranti:
        base = order + 1
        tagged.extend((base + i, occ) for i, occ in enumerate(sankranti_festivals(ctx)))

    tagged.sort(key=lambda t: (t[1].date, t[1].priority, t[0]))
    return [occ for _, occ in tagged]


def festivals_for_year(provider: EphemerisProvider, year: int, lat: float, lon: float, tz=None, *,
                       offset_minutes: Optional[float] = None,
                       rules: Optional[Iterable[FestivalRule]] = None,
                       options: EngineOptions = DEFAULT_OPTIONS,
                       include_sankranti: bool = True) -> List[FestivalOccurrence]:
    if rules is None:
        rules = DEFAULT_RULES
    ctx = FestivalContext(provider, year, lat, lon, tz, offset_minutes=offset_minutes, options=options)
    return resolve_festivals(ctx, rules, include_sankranti=include_sankranti)


def group_by_date(occurrences: Iterable[FestivalOccurrence]) -> "OrderedDict[date, List[FestivalOccurrence]]":
    grouped: "OrderedDict[date, List[FestivalOccurrence]]" = OrderedDict()
    for occ in occurrences:
        grouped.setdefault(occ.date, []).append(occ)
    return grouped
