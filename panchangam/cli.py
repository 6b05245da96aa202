from __future__ import annotations
import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from .calculator import day_panchangam
from .config import DEFAULT_OPTIONS, EngineOptions
from .ephemeris import make_provider
from .festivals import festivals_for_year, group_by_date
from .location import autolocate, iana_timezone_for
from .models import AYANA_KEYS, MASA_KEYS, SAMVATSARA_KEYS, SIGN_KEYS
from .sankranti import get_sankrantis_for_calendar_year
from .tithi_scan import scan_tithi_boundaries
from .timeutil import resolve_timezone


def _parse_ymd(s: str) -> date:
    y, m, d = map(int, s.split("-"))
    return date(y, m, d)


def _common() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--lat", type=float, help="Latitude (decimal)")
    p.add_argument("--lon", type=float, help="Longitude (decimal)")
    p.add_argument("--auto-location", action="store_true", help="Detect lat/lon from IP")
    p.add_argument("--tz", type=str, help="IANA zone, e.g. Asia/Kolkata (default: from coordinates)")
    p.add_argument("--offset-minutes", type=float, help="Fixed UTC offset instead of a zone, e.g. 330")
    p.add_argument("--ephemeris", choices=["analytic", "skyfield"], default="analytic")
    p.add_argument("--ayanamsa", choices=["lahiri", "raman", "krishnamurti", "fagan_bradley"],
                   default=DEFAULT_OPTIONS.ayanamsa)
    p.add_argument("--anchor", choices=["utc", "local"], default=DEFAULT_OPTIONS.sankranti_anchor,
                   help="Civil date used for sankranti festivals")
    p.add_argument("--workers", type=int, help="Threads for the sankranti searches")
    p.add_argument("--verbose", "-v", action="store_true")
    return p


def _setup(args):
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    if args.auto_location:
        if args.lat is not None or args.lon is not None:
            print("Note: --auto-location overrides --lat/--lon")
        try:
            args.lat, args.lon = autolocate()
        except Exception as e:
            raise SystemExit(f"Auto-location failed ({e}). Pass --lat and --lon.")
    if args.lat is None or args.lon is None:
        raise SystemExit("Provide --lat and --lon, or use --auto-location.")

    if args.offset_minutes is not None:
        tz = resolve_timezone(offset_minutes=args.offset_minutes)
    elif args.tz:
        tz = resolve_timezone(args.tz)
    else:
        tz = iana_timezone_for(args.lat, args.lon)

    options = EngineOptions(ayanamsa=args.ayanamsa, sankranti_anchor=args.anchor,
                            max_workers=args.workers)
    provider = make_provider(args.ephemeris, args.ayanamsa)
    return provider, tz, options


def _fmt(dt, tz) -> str:
    return dt.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S") if dt else "-"


def cmd_day(args) -> int:
    provider, tz, options = _setup(args)
    dp = day_panchangam(provider, _parse_ymd(args.date), args.lat, args.lon, tz, options)
    p = dp.panchangam
    print(f"{dp.day.isoformat()}  (lat={args.lat}, lon={args.lon}, tz={tz})")
    print(f"  sunrise   {_fmt(dp.sunrise, tz)}   sunset  {_fmt(dp.sunset, tz)}")
    print(f"  moonrise  {_fmt(dp.moonrise, tz)}   moonset {_fmt(dp.moonset, tz)}")
    print(f"  tithi     {p.tithi.ino:2d}  {_fmt(p.tithi.start, tz)} -> {_fmt(p.tithi.end, tz)}")
    print(f"  nakshatra {p.nakshatra.ino:2d}  {_fmt(p.nakshatra.start, tz)} -> {_fmt(p.nakshatra.end, tz)}")
    print(f"  yoga      {p.yoga.ino:2d}  {_fmt(p.yoga.start, tz)} -> {_fmt(p.yoga.end, tz)}")
    print(f"  karana    {p.karana.ino:2d}  {_fmt(p.karana.start, tz)} -> {_fmt(p.karana.end, tz)}")
    leap = " (adhika)" if p.masa.is_leap_month else ""
    print(f"  masa      {MASA_KEYS[p.masa.ino]}{leap}  purnimanta {MASA_KEYS[p.masa.purnimanta_ino]}")
    print(f"  paksha {p.paksha.ino}  raasi {SIGN_KEYS[p.raasi]}  ritu {p.ritu}  ayanamsa {p.ayanamsa:.6f}")
    print(f"  {AYANA_KEYS[p.ayana]}  samvatsara {SAMVATSARA_KEYS[p.samvatsara]}")
    for kind in ("tithi", "nakshatra", "yoga", "karana"):
        for a in dp.angas_of(kind):
            tag = " [kshaya]" if a.kshaya else " [vriddhi]" if a.vriddhi else ""
            print(f"    {kind:<9} {a.ino:2d}  {_fmt(a.start, tz)} -> {_fmt(a.end, tz)}{tag}")
    if dp.periods is not None:
        for label, (start, end) in (("rahu kalam", dp.periods.rahu_kalam),
                                    ("yamagandam", dp.periods.yamagandam),
                                    ("gulika", dp.periods.gulika)):
            print(f"  {label:<10} {_fmt(start, tz)} -> {_fmt(end, tz)}")
    return 0


def cmd_sankranti(args) -> int:
    provider, tz, options = _setup(args)
    events = get_sankrantis_for_calendar_year(provider, args.year, tz, options)
    for ev in events:
        print(f"{ev.sign_index:2d} {ev.sign_key:<11} {_fmt(ev.instant, tz)}  "
              f"(iter={ev.debug.get('iterations')})")
    return 0 if len(events) == 12 else 1


def cmd_tithis(args) -> int:
    provider, tz, options = _setup(args)
    for row in scan_tithi_boundaries(provider, args.year, tz, options):
        leap = "*" if row.is_leap_month else " "
        print(f"{MASA_KEYS[row.masa_ino]:<11}{leap} tithi {row.tithi_ino:2d}  "
              f"{_fmt(row.start, tz)} -> {_fmt(row.end, tz)}")
    return 0


def cmd_festivals(args) -> int:
    provider, tz, options = _setup(args)
    occ = festivals_for_year(provider, args.year, args.lat, args.lon, tz, options=options)
    for day, items in group_by_date(occ).items():
        names = ", ".join(f"{o.rule.name_key}[{o.priority}]" for o in items)
        print(f"{day.isoformat()}  {names}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    common = _common()
    p = argparse.ArgumentParser(prog="panchangam", description="Location-aware Panchangam engine CLI.")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_day = sub.add_parser("day", parents=[common], help="Panchangam at sunrise of a civil day")
    p_day.add_argument("date", help="YYYY-MM-DD")
    p_day.set_defaults(func=cmd_day)

    for name, fn, text in (("sankranti", cmd_sankranti, "Twelve sankranti instants of a year"),
                           ("tithis", cmd_tithis, "Every tithi boundary of a year"),
                           ("festivals", cmd_festivals, "Festival dates of a year")):
        sp = sub.add_parser(name, parents=[common], help=text)
        sp.add_argument("--year", type=int, required=True, help="Civil year, e.g. 2025")
        sp.set_defaults(func=fn)

    args = p.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
