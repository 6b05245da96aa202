from __future__ import annotations
from typing import Optional, Tuple


class PanchangamError(Exception):
    """Base error for the calendrical engine."""


class NoBracketError(PanchangamError):
    """Bisection found no sign change, even after wraparound and widening."""

    def __init__(self, message: str, *, fa: float, fb: float, iterations: int = 0,
                 bracket: Optional[Tuple[float, float]] = None):
        super().__init__(message)
        self.fa = fa
        self.fb = fb
        self.iterations = iterations
        self.bracket = bracket

    @property
    def debug(self) -> dict:
        return {"fa": self.fa, "fb": self.fb,
                "iterations": self.iterations, "bracket": self.bracket}


class EphemerisUnavailable(PanchangamError):
    """A rise/set event does not happen on the requested civil day."""


class NoMatchingTithiBoundary(PanchangamError):
    """No scanned tithi boundary matches a rule's (tithi, masa, leap) key."""


class InvalidInstantError(PanchangamError, ValueError):
    """A Julian Day or datetime conversion produced NaN/inf."""


class UnsupportedAyanamsaError(PanchangamError, ValueError):
    pass


class UnknownCalculationBasisError(PanchangamError, ValueError):
    pass
