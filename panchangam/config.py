from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class EngineOptions:
    ayanamsa: str = "lahiri"
    tol_sec: float = 1.0
    max_iter: int = 80
    max_expansions: int = 3
    elevation: float = 0.0
    sunrise_offset_minutes: int = 150
    pradosha_offset_minutes: int = 90
    sankranti_anchor: str = "utc"  # or "local"
    max_workers: Optional[int] = None

    def with_overrides(self, **kw) -> "EngineOptions":
        return replace(self, **{k: v for k, v in kw.items() if v is not None})


DEFAULT_OPTIONS = EngineOptions()
