"""
value_aggregator.py - Per-Area Values for One Year and Category

Turns a year's indicator rows into the two lookups the polygon layers use to
colour features: one keyed by CBSA/GEOID code and one keyed by canonical area
name ("anchorage, ak").
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from .normalizers import OVERALL, canon_area_name, finite_mean, normalize_sdg, pick, to_number

AREA_COLUMNS = ["area_name", "area", "msa", "name"]
SDG_COLUMNS = ["sdg", "indicator"]
VALUE_COLUMNS = ["sdg_lq", "value", "score", "lq"]
CODE_COLUMNS = ["CBSA", "GEOID", "cbsa_code"]

Row = Mapping[str, Any]


@dataclass(frozen=True)
class ValueLookup:
    """Values for one category; missing/unparsable data is stored as None."""

    sdg: str
    value_by_code: Dict[str, Optional[float]] = field(default_factory=dict)
    value_by_name: Dict[str, Optional[float]] = field(default_factory=dict)
    matched: int = 0
    total: int = 0

    def value_for(self, code: Optional[str] = None, name: Optional[str] = None) -> Optional[float]:
        """Look up by code first, then by canonical name."""
        code = (code or "").strip()
        if code and code in self.value_by_code:
            return self.value_by_code[code]
        key = canon_area_name(name)
        return self.value_by_name.get(key) if key else None


def group_by_area(rows: Sequence[Row]) -> Dict[str, List[Row]]:
    """Group rows by canonical area name, keeping first-seen order."""
    groups: Dict[str, List[Row]] = {}
    for row in rows:
        area = canon_area_name(pick(row, AREA_COLUMNS))
        if not area:
            continue
        groups.setdefault(area, []).append(row)
    return groups


def _row_value(row: Row) -> float:
    return to_number(pick(row, VALUE_COLUMNS))


def _row_sdg(row: Row) -> str:
    return normalize_sdg(pick(row, SDG_COLUMNS))


def _first_code(rows: Sequence[Row]) -> str:
    for row in rows:
        code = pick(row, CODE_COLUMNS).strip()
        if code:
            return code
    return ""


def area_value(rows: Sequence[Row], wanted: str) -> Optional[float]:
    """Value of one area group for a normalized category.

    For "overall", rows tagged overall are preferred; without any, the mean
    over every row of the group is used instead.
    """
    if wanted == OVERALL:
        selected = [r for r in rows if _row_sdg(r) == OVERALL]
        if not selected:
            return finite_mean(_row_value(r) for r in rows)
    else:
        selected = [r for r in rows if _row_sdg(r) == wanted]

    if len(selected) > 1:
        # Upstream files occasionally repeat an (area, category) pair.
        area = pick(selected[0], AREA_COLUMNS)
        logger.debug(f"    🔁 Averaging {len(selected)} rows for {area!r} / {wanted}")

    return finite_mean(_row_value(r) for r in selected)


def aggregate_values(rows: Sequence[Row], sdg_input: Any = OVERALL) -> ValueLookup:
    """Build code- and name-keyed value lookups for one category.

    Every area group gets exactly one name entry; a code entry is added only
    when some row of the group carries a CBSA/GEOID code.
    """
    wanted = normalize_sdg(sdg_input)
    by_code: Dict[str, Optional[float]] = {}
    by_name: Dict[str, Optional[float]] = {}

    groups = group_by_area(rows)
    for area_key, group in groups.items():
        value = area_value(group, wanted)
        by_name[area_key] = value
        code = _first_code(group)
        if code:
            by_code[code] = value

    logger.debug(f"  📊 Values sdg={wanted}: areas={len(groups):,}, with codes={len(by_code):,}")
    return ValueLookup(
        sdg=wanted,
        value_by_code=by_code,
        value_by_name=by_name,
        matched=len(by_name),
        total=len(groups),
    )
