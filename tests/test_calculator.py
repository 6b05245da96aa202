# tests/test_calculator.py

from datetime import date, datetime, timedelta, timezone

import pytest
import pytz

from panchangam.calculator import (ayana_index, day_panchangam, day_periods, karana_index,
                                   masa_index_for_new_moon, nakshatra_index, new_moon_before,
                                   panchangam_at, purnimanta_index, ritu_index, samvatsara_index,
                                   tithi_index, yoga_index)
from panchangam.ephemeris import AnalyticEphemeris
from panchangam.models import SAMVATSARA_KEYS, Masa
from panchangam.timeutil import datetime_to_julian_day, julian_day_to_utc

UTC = timezone.utc
IST = pytz.timezone("Asia/Kolkata")
HYD = (17.385, 78.4867)


@pytest.mark.parametrize("elongation, expected", [
    (3.0, 10),     # first half of Shukla Pratipada: Kimstughna
    (6.0, 0),      # Bava
    (12.0, 1),
    (48.0, 0),     # the seven movable karanas repeat
    (341.9, 6),
    (342.0, 7),    # Shakuni
    (348.0, 8),    # Chatushpada
    (354.0, 9),    # Naga
    (359.99, 9),
])
def test_karana_index(elongation, expected):
    assert karana_index(elongation) == expected


def test_indices_at_the_seam():
    assert tithi_index(0.0) == 0
    assert tithi_index(359.999) == 29
    assert nakshatra_index(359.999) == 26
    assert nakshatra_index(13.3334) == 1
    assert yoga_index(0.0) == 0
    assert yoga_index(359.9) == 26


def test_masa_and_season_helpers():
    assert masa_index_for_new_moon(345.0) == 0  # Sun in Meena opens Chaitra
    assert masa_index_for_new_moon(15.0) == 1
    assert masa_index_for_new_moon(285.4) == 10
    assert purnimanta_index(11, 20) == 0
    assert purnimanta_index(11, 3) == 11
    assert ritu_index(0) == 0 and ritu_index(11) == 5


def test_snapshot_on_linear_ephemeris(linear):
    prov = linear()  # new moon at jd0, one tithi per day
    snap = panchangam_at(prov, julian_day_to_utc(prov.jd0 + 3.5))
    assert snap.tithi.ino == 3
    assert snap.paksha.ino == 0
    assert abs(snap.tithi.start - julian_day_to_utc(prov.jd0 + 3)) <= timedelta(seconds=2)
    assert abs(snap.tithi.end - julian_day_to_utc(prov.jd0 + 4)) <= timedelta(seconds=2)
    assert snap.karana.ino == (7 - 1) % 7
    # sidereal Sun 15 deg at the new moon: Mesha, so the lunation is Vaisakha
    assert snap.masa.ino == 1
    assert not snap.masa.is_leap_month
    assert snap.sun_sign == 0


def test_krishna_paksha_purnimanta(linear):
    prov = linear()
    snap = panchangam_at(prov, julian_day_to_utc(prov.jd0 + 20.5))
    assert snap.tithi.ino == 20
    assert snap.paksha.ino == 1
    assert snap.masa.purnimanta_ino == (snap.masa.ino + 1) % 12


def test_new_moon_before(linear):
    prov = linear()
    nm = new_moon_before(prov, prov.jd0 + 17.25)
    assert nm == pytest.approx(prov.jd0, abs=1.0 / 86400.0)


def test_naive_instant_rejected(linear):
    with pytest.raises(ValueError):
        panchangam_at(linear(), datetime(2025, 1, 1))


def test_ugadi_2024_is_chaitra_pratipada():
    snap = panchangam_at(AnalyticEphemeris(), datetime(2024, 4, 9, 1, 0, tzinfo=UTC))
    assert snap.tithi.ino == 0
    assert snap.masa.ino == 0
    assert not snap.masa.is_leap_month


def test_adhika_shravana_2023():
    prov = AnalyticEphemeris()
    adhika = panchangam_at(prov, datetime(2023, 8, 1, 0, 0, tzinfo=UTC))
    nija = panchangam_at(prov, datetime(2023, 8, 25, 0, 0, tzinfo=UTC))
    assert (adhika.masa.ino, adhika.masa.is_leap_month) == (4, True)
    assert (nija.masa.ino, nija.masa.is_leap_month) == (4, False)


def test_day_panchangam_at_sunrise(linear):
    prov = linear()
    day = date(2025, 1, 3)
    dp = day_panchangam(prov, day, 17.385, 78.4867, "Asia/Kolkata")
    assert dp.sunrise.hour == 6
    assert abs(dp.panchangam.instant - dp.sunrise) < timedelta(milliseconds=1)
    assert dp.weekday == day.weekday()
    assert dp.moonrise is None


def test_day_panchangam_without_sunrise(linear):
    prov = linear(sunrise=None)
    dp = day_panchangam(prov, date(2025, 6, 21), 78.2, 15.6, "UTC")
    assert dp.sunrise is None
    assert abs(dp.panchangam.instant - datetime(2025, 6, 21, 12, 0, tzinfo=UTC)) < timedelta(milliseconds=1)


def test_ayana_index():
    assert ayana_index(270.0) == 0   # Makara sankranti
    assert ayana_index(10.0) == 0
    assert ayana_index(89.9) == 0
    assert ayana_index(90.0) == 1    # Karka sankranti
    assert ayana_index(269.9) == 1


def test_samvatsara_turns_at_ugadi():
    prov = AnalyticEphemeris()
    before = panchangam_at(prov, datetime(2025, 1, 14, 1, 0, tzinfo=UTC))
    after = panchangam_at(prov, datetime(2025, 4, 15, 1, 0, tzinfo=UTC))
    assert SAMVATSARA_KEYS[before.samvatsara] == "krodhi"
    assert SAMVATSARA_KEYS[after.samvatsara] == "vishvavasu"


def test_adhika_chaitra_belongs_to_previous_year():
    jd = datetime_to_julian_day(datetime(2025, 3, 10, tzinfo=UTC))
    assert samvatsara_index(jd, Masa(0, True, 0)) == 37
    assert samvatsara_index(jd, Masa(0, False, 0)) == 38


def test_kshaya_tithi(linear):
    # 13.5 deg/day elongation: tithis last 21h20m, so one fits between two sunrises
    prov = linear(moon_rate=14.5)
    dp = day_panchangam(prov, date(2025, 1, 8), HYD[0], HYD[1], IST)
    tithis = dp.angas_of("tithi")
    assert [t.ino for t in tithis] == [7, 8, 9]
    assert [(t.kshaya, t.vriddhi) for t in tithis] == [(False, False), (True, False), (False, False)]
    assert tithis[0].ino == dp.panchangam.tithi.ino


def test_vriddhi_tithi(linear):
    # 11.5 deg/day elongation: a tithi lasts longer than the day
    prov = linear(moon_rate=12.5)
    dp = day_panchangam(prov, date(2025, 1, 1), HYD[0], HYD[1], IST)
    tithis = dp.angas_of("tithi")
    assert len(tithis) == 1
    assert tithis[0].vriddhi and not tithis[0].kshaya


def test_day_angas_are_contiguous(linear):
    dp = day_panchangam(linear(), date(2025, 1, 3), HYD[0], HYD[1], IST)
    assert dp.next_sunrise == IST.localize(datetime(2025, 1, 4, 6, 0))
    for kind in ("tithi", "nakshatra", "yoga", "karana"):
        angas = dp.angas_of(kind)
        assert angas[0].start <= dp.sunrise < angas[0].end
        assert angas[-1].end >= dp.next_sunrise
        for a, b in zip(angas, angas[1:]):
            assert abs(a.end - b.start) < timedelta(seconds=2)
    # karanas are half tithis
    assert len(dp.angas_of("karana")) in (2, 3)
    assert not any(a.kshaya or a.vriddhi for a in dp.angas if a.kind != "tithi")


def test_rahu_yamaganda_gulika(linear):
    sunday = day_panchangam(linear(), date(2025, 1, 5), HYD[0], HYD[1], IST).periods
    assert sunday.rahu_kalam == (IST.localize(datetime(2025, 1, 5, 16, 30)),
                                 IST.localize(datetime(2025, 1, 5, 18, 0)))
    assert sunday.yamagandam[0] == IST.localize(datetime(2025, 1, 5, 12, 0))
    assert sunday.gulika[0] == IST.localize(datetime(2025, 1, 5, 15, 0))

    sr = IST.localize(datetime(2025, 1, 6, 6, 0))
    monday = day_periods(sr, IST.localize(datetime(2025, 1, 6, 18, 0)), 0)
    assert monday.rahu_kalam[0] == IST.localize(datetime(2025, 1, 6, 7, 30))
    assert monday.yamagandam[0] == IST.localize(datetime(2025, 1, 6, 10, 30))
    assert monday.gulika[0] == IST.localize(datetime(2025, 1, 6, 13, 30))
    assert day_periods(sr, None, 0) is None
    assert day_periods(sr, sr, 0) is None
