# tests/test_sankranti.py

from datetime import date
from unittest import mock

import pytest

from panchangam import sankranti
from panchangam.config import EngineOptions
from panchangam.ephemeris import AnalyticEphemeris
from panchangam.errors import NoBracketError
from panchangam.models import MAKARA
from panchangam.sankranti import (SANKRANTI_WINDOWS, find_sankranti_for_sign, find_sankranti_jd,
                                  get_sankrantis_for_calendar_year, sankranti_window)
from panchangam.solver import find_crossing
from panchangam.timeutil import local_date_of

IST = "Asia/Kolkata"


def test_bisection_converges_to_synthetic_root(linear):
    jd_root = 2460690.3141
    # sidereal Sun crosses 0 deg at jd_root
    prov = linear(jd0=jd_root, sun0=0.0, sun_rate=0.9856)
    root = find_sankranti_jd(prov, 0.0, jd_root - 20.0, jd_root + 13.0, tol_sec=1.0)
    assert abs(root.jd - jd_root) * 86400.0 <= 1.0
    assert root.fa < 0 < root.fb
    assert root.iterations <= 80
    assert set(root.debug) == {"fa", "fb", "iterations", "bracket"}


def test_bisection_any_target(linear):
    jd_root = 2460700.0
    prov = linear(jd0=jd_root, sun0=270.0, sun_rate=1.0, ayanamsa=-24.2)
    # sidereal = 270 - 24.2 at jd_root; reaches 270 about 24.2 days later
    root = find_sankranti_jd(prov, 270.0, jd_root + 10.0, jd_root + 40.0, tol_sec=0.5)
    assert root.jd == pytest.approx(jd_root + 24.2, abs=1.0 / 86400.0)


def test_bisection_respects_max_iter(linear):
    prov = linear(jd0=2460690.0, sun0=0.0)
    root = find_sankranti_jd(prov, 0.0, 2460680.0, 2460700.0, tol_sec=1e-9, max_iter=5)
    assert root.iterations == 5


def test_window_widened_when_root_just_outside(linear):
    jd_root = 2460690.0
    prov = linear(jd0=jd_root, sun0=0.0)
    # root lies 2 days past the end; one 3-day widening finds it
    root = find_sankranti_jd(prov, 0.0, jd_root - 20.0, jd_root - 2.0, max_expansions=1)
    assert root.jd == pytest.approx(jd_root, abs=1.0 / 86400.0)
    assert root.bracket == (jd_root - 23.0, jd_root + 1.0)


def test_no_bracket_carries_debug(linear):
    jd_root = 2460690.0
    prov = linear(jd0=jd_root, sun0=0.0)
    with pytest.raises(NoBracketError) as exc:
        find_sankranti_jd(prov, 0.0, jd_root + 40.0, jd_root + 50.0, max_expansions=2)
    err = exc.value
    assert err.fa > 0 and err.fb > 0
    assert err.bracket == (jd_root + 34.0, jd_root + 56.0)
    assert set(err.debug) == {"fa", "fb", "iterations", "bracket"}


def test_seam_jump_is_not_a_root():
    # an angle jumping from +179 to -179 changes sign but never reaches 0
    def angle(jd):
        return 170.0 + jd if jd < 10.0 else -190.0 + jd
    with pytest.raises(NoBracketError):
        find_crossing(angle, 0.0, 5.0, 15.0, max_expansions=0)


def test_windows_cover_all_signs():
    assert sorted(SANKRANTI_WINDOWS) == list(range(12))
    for sign in range(12):
        a, b = sankranti_window(sign, 2025, IST)
        assert 28.0 < b - a < 36.0


def test_window_uses_local_midnight():
    a, _ = sankranti_window(MAKARA, 2024, IST)
    # Jan 12 2025 00:00 IST == Jan 11 18:30 UTC
    assert a == pytest.approx(2460687.5 - 5.5 / 24.0, abs=1e-9)


def test_makara_sankranti_2025():
    ev = find_sankranti_for_sign(AnalyticEphemeris(), MAKARA, 2024, IST)
    assert ev.sign_index == MAKARA
    assert ev.local_year == 2025
    assert local_date_of(ev.instant, IST) == date(2025, 1, 14)
    assert ev.ayanamsa < 0


def test_twelve_unique_sankrantis():
    events = get_sankrantis_for_calendar_year(AnalyticEphemeris(), 2025, IST)
    assert len(events) == 12
    assert sorted(ev.sign_index for ev in events) == list(range(12))
    assert all(ev.local_year == 2025 for ev in events)
    jds = [ev.julian_day for ev in events]
    assert jds == sorted(jds)
    # Makara opens the civil year
    assert events[0].sign_index == MAKARA


def test_thread_pool_matches_sequential():
    prov = AnalyticEphemeris()
    seq = get_sankrantis_for_calendar_year(prov, 2024, 330)
    par = get_sankrantis_for_calendar_year(prov, 2024, 330, max_workers=4)
    assert [e.julian_day for e in seq] == [e.julian_day for e in par]


def test_fixed_offset_and_zone_agree():
    prov = AnalyticEphemeris()
    opts = EngineOptions(tol_sec=1.0)
    by_zone = get_sankrantis_for_calendar_year(prov, 2025, IST, opts)
    by_offset = get_sankrantis_for_calendar_year(prov, 2025, 330, opts)
    assert [e.julian_day for e in by_zone] == pytest.approx([e.julian_day for e in by_offset], abs=1e-9)


def test_failed_sign_leaves_the_other_eleven():
    real = sankranti.find_sankranti_jd

    def no_simha(provider, target_angle, jd_a, jd_b, **kw):
        if target_angle == 120.0:
            raise NoBracketError("no bracket", fa=-3.0, fb=-1.0, iterations=0, bracket=(jd_a, jd_b))
        return real(provider, target_angle, jd_a, jd_b, **kw)

    with mock.patch.object(sankranti, "find_sankranti_jd", side_effect=no_simha):
        events = get_sankrantis_for_calendar_year(AnalyticEphemeris(), 2025, IST)
    assert len(events) == 11
    assert 4 not in {ev.sign_index for ev in events}
