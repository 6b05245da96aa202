from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple

from .errors import UnknownCalculationBasisError

# Index tables only; display text belongs to the caller.
MASA_KEYS = ["chaitra", "vaisakha", "jyeshtha", "ashadha", "shravana", "bhadrapada",
             "ashwayuja", "kartika", "margashira", "pushya", "magha", "phalguna"]
SIGN_KEYS = ["mesha", "vrishabha", "mithuna", "karka", "simha", "kanya",
             "tula", "vrishchika", "dhanu", "makara", "kumbha", "meena"]
MAKARA = 9
AYANA_KEYS = ["uttarayana", "dakshinayana"]
SAMVATSARA_KEYS = [
    "prabhava", "vibhava", "shukla", "pramoduta", "prajotpatti", "angirasa", "shrimukha", "bhava",
    "yuva", "dhata", "ishvara", "bahudhanya", "pramathi", "vikrama", "vrusha", "chitrabhanu",
    "svabhanu", "tarana", "parthiva", "vyaya", "sarvajit", "sarvadhari", "virodhi", "vikriti",
    "khara", "nandana", "vijaya", "jaya", "manmatha", "durmukhi", "hevilambi", "vilambi",
    "vikari", "sharvari", "plava", "shubhakrut", "shobhakrut", "krodhi", "vishvavasu", "parabhava",
    "plavanga", "kilaka", "saumya", "sadharana", "virodhikrut", "paridhavi", "pramadicha", "ananda",
    "rakshasa", "nala", "pingala", "kalayukti", "siddharthi", "raudri", "durmati", "dundubhi",
    "rudhirodgari", "raktakshi", "krodhana", "akshaya"]


class CalculationBasis(str, Enum):
    SUNRISE = "Sunrise"
    SUNSET = "Sunset"
    PRADOSHA = "Pradosha"
    MOONRISE = "Moonrise"
    SHIVARATRI = "Shivaratri"
    AFTER_SUNRISE = "AfterSunrise"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CalculationBasis":
        """Case-insensitive; empty means Sunrise (the catalog's default)."""
        if not value:
            return cls.SUNRISE
        if isinstance(value, cls):
            return value
        key = value.strip().lower().replace("_", "").replace("-", "").replace(" ", "")
        for member in cls:
            if member.value.lower() == key:
                return member
        raise UnknownCalculationBasisError(f"unknown calculation basis: {value!r}")


# ---------------- Angas ------------------------
@dataclass(frozen=True)
class Paksha:
    ino: int  # 0 = Shukla (bright), 1 = Krishna (dark)

    @property
    def is_bright(self) -> bool:
        return self.ino == 0


@dataclass(frozen=True)
class Tithi:
    ino: int
    start: Optional[datetime]
    end: Optional[datetime]

    @property
    def paksha(self) -> Paksha:
        return Paksha(0 if self.ino < 15 else 1)


@dataclass(frozen=True)
class Nakshatra:
    ino: int
    start: Optional[datetime]
    end: Optional[datetime]


@dataclass(frozen=True)
class Yoga:
    ino: int
    start: Optional[datetime]
    end: Optional[datetime]


@dataclass(frozen=True)
class Karana:
    ino: int
    start: Optional[datetime]
    end: Optional[datetime]


@dataclass(frozen=True)
class Masa:
    ino: int
    is_leap_month: bool
    purnimanta_ino: int

    @property
    def key(self) -> str:
        return MASA_KEYS[self.ino]


@dataclass(frozen=True)
class PanchangamSnapshot:
    instant: datetime
    julian_day: float
    sun_longitude: float
    moon_longitude: float
    ayanamsa: float
    sidereal_sun: float
    sidereal_moon: float
    tithi: Tithi
    paksha: Paksha
    nakshatra: Nakshatra
    yoga: Yoga
    karana: Karana
    masa: Masa
    raasi: int
    sun_sign: int
    ritu: int
    ayana: int       # 0 = Uttarayana, 1 = Dakshinayana
    samvatsara: int  # 0 = Prabhava .. 59 = Akshaya


@dataclass(frozen=True)
class DayAnga:
    """One anga current at some point between sunrise and the next sunrise."""
    kind: str  # "tithi", "nakshatra", "yoga" or "karana"
    ino: int
    start: Optional[datetime]
    end: Optional[datetime]
    kshaya: bool = False   # begins and ends between the two sunrises
    vriddhi: bool = False  # spans both sunrises


@dataclass(frozen=True)
class DayPeriods:
    rahu_kalam: Tuple[datetime, datetime]
    yamagandam: Tuple[datetime, datetime]
    gulika: Tuple[datetime, datetime]


@dataclass(frozen=True)
class DayPanchangam:
    day: date
    sunrise: Optional[datetime]
    sunset: Optional[datetime]
    moonrise: Optional[datetime]
    moonset: Optional[datetime]
    weekday: int  # Monday = 0, as datetime.weekday()
    panchangam: PanchangamSnapshot
    next_sunrise: Optional[datetime] = None
    angas: Tuple[DayAnga, ...] = ()
    periods: Optional[DayPeriods] = None

    def angas_of(self, kind: str) -> List[DayAnga]:
        return [a for a in self.angas if a.kind == kind]


# ---------------- Year scans -------------------
@dataclass(frozen=True)
class SankrantiEvent:
    sign_index: int
    instant: datetime
    julian_day: float
    local_year: int
    ayanamsa: float
    debug: dict = field(default_factory=dict, compare=False)

    @property
    def sign_key(self) -> str:
        return SIGN_KEYS[self.sign_index]


@dataclass(frozen=True)
class TithiBoundary:
    tithi_ino: int
    masa_ino: int
    is_leap_month: bool
    start: datetime
    end: datetime

    @property
    def key(self) -> Tuple[int, int, bool]:
        return (self.tithi_ino, self.masa_ino, self.is_leap_month)


@dataclass(frozen=True)
class NakshatraBoundary:
    nakshatra_ino: int
    masa_ino: int
    is_leap_month: bool
    start: datetime
    end: datetime


# ---------------- Festivals --------------------
@dataclass(frozen=True)
class FestivalRule:
    key: str
    name_key: str
    tithi: Optional[int] = None
    masa: Optional[int] = None
    nakshatra: Optional[int] = None
    adhik_maasa: bool = False
    basis: CalculationBasis = CalculationBasis.SUNRISE
    priority: int = 3
    festival_type: str = "festival"
    gregorian_month: Optional[int] = None
    gregorian_day: Optional[int] = None

    @property
    def is_gregorian(self) -> bool:
        return self.gregorian_month is not None and self.gregorian_day is not None


@dataclass(frozen=True)
class FestivalOccurrence:
    date: date
    rule: FestivalRule
    calculation_type: CalculationBasis
    masa_ino: Optional[int] = None  # None for solar and civil-date festivals
    is_leap_month: bool = False
    tithi_start: Optional[datetime] = None
    tithi_end: Optional[datetime] = None
    muhurta_start: Optional[datetime] = None
    muhurta_end: Optional[datetime] = None

    @property
    def priority(self) -> int:
        return self.rule.priority
