"""Bounded bisection for the instant a cyclic angle reaches a target.

Every boundary in the calendar (sankranti, tithi, nakshatra, yoga, karana,
new moon) is the root of ``normalize_angle_signed180(angle(jd) - target)``,
which is monotonic across a short enough bracket.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple

from .errors import NoBracketError
from .timeutil import normalize_angle_signed180

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0
WRAP_SHIFTS = (-360.0, 360.0, -720.0, 720.0)
SEAM_JUMP_DEG = 90.0


@dataclass(frozen=True)
class Root:
    jd: float
    fa: float
    fb: float
    iterations: int
    bracket: Tuple[float, float]

    @property
    def debug(self) -> dict:
        return {"fa": self.fa, "fb": self.fb,
                "iterations": self.iterations, "bracket": self.bracket}


def angle_offset(angle_fn: Callable[[float], float], target: float) -> Callable[[float], float]:
    def f(jd: float) -> float:
        return normalize_angle_signed180(angle_fn(jd) - target)
    return f


def _bisect(f, a: float, b: float, tol_sec: float, max_iter: int):
    fa, fb = f(a), f(b)
    if fa * fb > 0 and not any(fa * (fb + shift) <= 0 for shift in WRAP_SHIFTS):
        return None, fa, fb, 0

    lo, hi, f_lo = a, b, fa
    it = 0
    while (hi - lo) * SECONDS_PER_DAY > tol_sec and it < max_iter:
        mid = 0.5 * (lo + hi)
        fm = f(mid)
        if f_lo * fm <= 0:
            hi = mid
        else:
            lo, f_lo = mid, fm
        it += 1

    # A shifted fb can fake a sign change; the final bracket must still
    # straddle zero without spanning the +-180 seam.
    f_lo, f_hi = f(lo), f(hi)
    if f_lo * f_hi > 0 or abs(f_hi - f_lo) > SEAM_JUMP_DEG:
        return None, fa, fb, it
    return Root(0.5 * (lo + hi), fa, fb, it, (a, b)), fa, fb, it


def find_crossing(angle_fn: Callable[[float], float], target: float, jd_a: float, jd_b: float, *,
                  tol_sec: float = 1.0, max_iter: int = 80, max_expansions: int = 3,
                  expand_days: float = 3.0) -> Root:
    """Julian Day in ``[jd_a, jd_b]`` (widened if needed) where ``angle_fn`` hits ``target``.

    Without a sign change at the ends, ``fb`` shifted by +-360/720 degrees is tried;
    failing that the bracket is widened by ``expand_days`` on both sides, at
    most ``max_expansions`` times, before raising ``NoBracketError``.
    """
    f = angle_offset(angle_fn, target)
    tried: List[Tuple[float, float]] = []
    a, b = jd_a, jd_b
    fa = fb = float("nan")
    iterations = 0
    for _ in range(max_expansions + 1):
        tried.append((a, b))
        root, fa, fb, iterations = _bisect(f, a, b, tol_sec, max_iter)
        if root is not None:
            return root
        logger.debug("no sign change for target %.4f in [%.5f, %.5f] (fa=%.4f fb=%.4f)",
                     target, a, b, fa, fb)
        a -= expand_days
        b += expand_days
    raise NoBracketError(
        f"no bracket for target {target:.4f} after {len(tried)} tries",
        fa=fa, fb=fb, iterations=iterations, bracket=tried[-1])


def next_crossing(angle_fn: Callable[[float], float], target: float, after_jd: float,
                  min_days: float, max_days: float, *, tol_sec: float = 1.0,
                  max_iter: int = 80, max_expansions: int = 3) -> Root:
    """Crossing expected between ``after_jd + min_days`` and ``after_jd + max_days``."""
    return find_crossing(angle_fn, target, after_jd + min_days, after_jd + max_days,
                         tol_sec=tol_sec, max_iter=max_iter,
                         max_expansions=max_expansions, expand_days=0.25 * (max_days - min_days))
