from __future__ import annotations
import json
import re
from typing import Dict, Iterable, List, Optional

from .models import CalculationBasis as B, FestivalRule

# Masa indices (amanta, 0 = Chaitra)
CHAITRA, VAISAKHA, JYESHTHA, ASHADHA, SHRAVANA, BHADRAPADA = range(6)
ASHWAYUJA, KARTIKA, MARGASHIRA, PUSHYA, MAGHA, PHALGUNA = range(6, 12)

# Tithi indices are 0-based: Shukla Pratipada = 0, Purnima = 14, Amavasya = 29
_S = lambda n: n - 1        # Shukla tithi n (1..15)
_K = lambda n: n + 14       # Krishna tithi n (1..15)

ARDRA = 5


def _rule(key, tithi=None, masa=None, basis=B.SUNRISE, priority=3, **kw) -> FestivalRule:
    return FestivalRule(key=key, name_key=key, tithi=tithi, masa=masa, basis=basis,
                        priority=priority, **kw)


DEFAULT_RULES: List[FestivalRule] = [
    _rule("ugadi", _S(1), CHAITRA, priority=1),
    _rule("sri_rama_navami", _S(9), CHAITRA, priority=1),
    _rule("akshaya_tritiya", _S(3), VAISAKHA, priority=2),
    _rule("guru_purnima", _S(15), ASHADHA, priority=2),
    _rule("nagula_panchami", _S(5), SHRAVANA),
    _rule("raksha_bandhan", _S(15), SHRAVANA, priority=2),
    _rule("krishna_janmashtami", _K(8), SHRAVANA, B.SHIVARATRI, priority=1),
    _rule("vinayaka_chavithi", _S(4), BHADRAPADA, priority=1),
    _rule("durgashtami", _S(8), ASHWAYUJA, priority=2),
    _rule("vijaya_dashami", _S(10), ASHWAYUJA, priority=1),
    _rule("dhanteras", _K(13), ASHWAYUJA, B.PRADOSHA, priority=2),
    _rule("naraka_chaturdashi", _K(14), ASHWAYUJA, priority=2),
    _rule("deepavali", _K(15), ASHWAYUJA, B.PRADOSHA, priority=1),
    _rule("karthika_purnima", _S(15), KARTIKA, priority=2),
    _rule("vaikuntha_ekadashi", _S(11), PUSHYA, priority=1),
    _rule("ratha_saptami", _S(7), MAGHA, priority=2),
    _rule("maha_shivaratri", _K(14), MAGHA, B.SHIVARATRI, priority=1),
    _rule("holika_dahan", _S(15), PHALGUNA, B.PRADOSHA, priority=2),
    _rule("arudra_darshanam", masa=MARGASHIRA, nakshatra=ARDRA),
    # monthly observances
    _rule("shukla_ekadashi", _S(11), priority=4, festival_type="vratham"),
    _rule("krishna_ekadashi", _K(11), priority=4, festival_type="vratham"),
    _rule("adhika_ekadashi", _S(11), adhik_maasa=True, priority=4, festival_type="vratham"),
    _rule("shukla_pradosha", _S(13), basis=B.PRADOSHA, priority=5, festival_type="vratham"),
    _rule("krishna_pradosha", _K(13), basis=B.PRADOSHA, priority=5, festival_type="vratham"),
    _rule("sankatahara_chaturthi", _K(4), basis=B.MOONRISE, priority=5, festival_type="vratham"),
    _rule("masa_shivaratri", _K(14), basis=B.SHIVARATRI, priority=4, festival_type="vratham"),
    _rule("purnima", _S(15), priority=5, festival_type="vratham"),
    _rule("amavasya", _K(15), basis=B.AFTER_SUNRISE, priority=5, festival_type="vratham"),
    # civil calendar
    _rule("new_year", gregorian_month=1, gregorian_day=1, festival_type="holiday"),
    _rule("republic_day", gregorian_month=1, gregorian_day=26, festival_type="holiday"),
    _rule("independence_day", gregorian_month=8, gregorian_day=15, festival_type="holiday"),
    _rule("gandhi_jayanti", gregorian_month=10, gregorian_day=2, festival_type="holiday"),
    _rule("christmas", gregorian_month=12, gregorian_day=25, festival_type="holiday"),
]


# ---------------- Records ----------------------
def _index(value) -> Optional[int]:
    """'' -> None, '1' -> 0 (records count from 1)."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return int(text) - 1


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _number(value) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    return int(text) if text else None


def rule_from_record(rec: Dict[str, str]) -> FestivalRule:
    """One catalog row: 1-based ``tithi``/``telugu_month``/``nakshatra``
    strings, ``adhik_maasa`` '1' for leap months, ``festival_based_on``
    naming the calculation basis and ``telugu_en_priority``.

    Civil-date rows carry ``month``/``date`` instead and ignore the lunar fields.
    """
    name = rec.get("festival_en") or rec.get("festival_name") or ""
    priority = str(rec.get("telugu_en_priority") or "").strip()
    month, day = _number(rec.get("month")), _number(rec.get("date"))
    civil = month is not None and day is not None
    return FestivalRule(
        key=slugify(name),
        name_key=rec.get("festival_name") or slugify(name),
        tithi=None if civil else _index(rec.get("tithi")),
        masa=None if civil else _index(rec.get("telugu_month")),
        nakshatra=None if civil else _index(rec.get("nakshatra")),
        adhik_maasa=not civil and str(rec.get("adhik_maasa") or "").strip() == "1",
        basis=B.parse(rec.get("festival_based_on")),
        priority=int(priority) if priority.isdigit() else 999,
        festival_type=rec.get("festival_type") or ("holiday" if civil else "festival"),
        gregorian_month=month if civil else None,
        gregorian_day=day if civil else None,
    )


def rules_from_records(records: Iterable[Dict[str, str]]) -> List[FestivalRule]:
    return [rule_from_record(r) for r in records]


def load_rules(path: str) -> List[FestivalRule]:
    with open(path, encoding="utf-8") as fh:
        return rules_from_records(json.load(fh))
