"""
point_join.py - Indicator x Coordinate Join for MSA Point Layers

Joins an MSA indicator table (area_name / sdg / sdg_lq) against a metro
coordinate table (SimpleMaps-style "Anchorage, AK Metro Area" rows with
lat/lng) so every indicator row can be drawn as a point.

Join strategy:
1. Exact "{city}|{state}" key.
2. City-only fallback when the indicator row carries no state: used only if
   the candidates for that city are unique or all sit in the same state.
3. Anything else is a miss. Misses are collected for diagnostics, never
   raised, and an ambiguous city is never guessed.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from .normalizers import (
    OVERALL,
    normalize_area_name,
    normalize_metro_name,
    normalize_sdg,
    pick,
    to_number,
    unquote,
)

METRO_NAME_COLUMNS = ["metro", "name", "metro_name", "cbsa_title", "cbsa"]
METRO_STATE_COLUMNS = ["state_id", "state", "st", "state_code"]
LAT_COLUMNS = ["lat", "latitude", "y"]
LNG_COLUMNS = ["lng", "lon", "long", "longitude", "x"]

AREA_COLUMNS = ["area_name", "msa", "name", "area", "area_name_2010", "area2010"]
SDG_COLUMNS = ["sdg", "indicator", "sdg_code"]
VALUE_COLUMNS = ["sdg_lq", "value", "score", "lq", "sdg_lq_2010"]


@dataclass(frozen=True)
class MetroPoint:
    """A named place from the coordinate table."""

    city: str
    state: str
    lat: float
    lng: float


@dataclass(frozen=True)
class IndicatorRow:
    area_name: str
    sdg: str
    sdg_lq: float
    city: str
    state: str


@dataclass(frozen=True)
class MsaPoint:
    """One joined indicator value with the coordinates of its area."""

    area_name: str
    sdg: str
    sdg_lq: float
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MetroIndex:
    by_key: Dict[str, MetroPoint] = field(default_factory=dict)
    by_city: Dict[str, List[MetroPoint]] = field(default_factory=dict)

    def lookup(self, city: str, state: str) -> Optional[MetroPoint]:
        return self.by_key.get(f"{city}|{state}")

    def lookup_city(self, city: str) -> Optional[MetroPoint]:
        """City-only match: unique candidate, or several sharing one state."""
        candidates = self.by_city.get(city, [])
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1 and len({c.state for c in candidates}) == 1:
            return candidates[0]
        return None


@dataclass(frozen=True)
class JoinResult:
    points: List[MsaPoint]
    unmatched: List[str]
    fallback_hits: int = 0


def build_metro_index(metro_rows: Sequence[Mapping[str, Any]]) -> MetroIndex:
    """Index the coordinate table by exact key and by city."""
    index = MetroIndex()
    skipped = 0

    for row in metro_rows:
        metro_name = pick(row, METRO_NAME_COLUMNS)
        state_id = pick(row, METRO_STATE_COLUMNS)
        lat = to_number(pick(row, LAT_COLUMNS))
        lng = to_number(pick(row, LNG_COLUMNS))

        city, state = normalize_metro_name(metro_name, state_id)
        if not city or not math.isfinite(lat) or not math.isfinite(lng):
            skipped += 1
            continue

        point = MetroPoint(city=city, state=state, lat=lat, lng=lng)
        index.by_key[f"{city}|{state}"] = point
        index.by_city.setdefault(city, []).append(point)

    logger.debug(f"  🗂️ Metro index: {len(index.by_key):,} keys ({skipped:,} rows skipped)")
    return index


def normalize_indicator_rows(indicator_rows: Sequence[Mapping[str, Any]]) -> List[IndicatorRow]:
    """Resolve aliased columns and normalize names/categories; drop rows without a city."""
    normalized: List[IndicatorRow] = []
    for row in indicator_rows:
        area_name = pick(row, AREA_COLUMNS)
        city, state = normalize_area_name(area_name)
        if not city:
            continue

        normalized.append(
            IndicatorRow(
                area_name=unquote(area_name),
                sdg=normalize_sdg(pick(row, SDG_COLUMNS)),
                sdg_lq=to_number(pick(row, VALUE_COLUMNS)),
                city=city,
                state=state,
            )
        )
    return normalized


def filter_by_sdg(rows: Sequence[IndicatorRow], selected_sdg: Any) -> List[IndicatorRow]:
    wanted = normalize_sdg(selected_sdg)
    if wanted == OVERALL:
        return list(rows)
    return [r for r in rows if r.sdg == wanted]


def join_msa_points(
    indicator_rows: Sequence[Mapping[str, Any]],
    metro_rows: Sequence[Mapping[str, Any]],
    selected_sdg: Any = OVERALL,
    index: Optional[MetroIndex] = None,
) -> JoinResult:
    """Join indicator rows to metro coordinates for one category.

    Args:
        indicator_rows: Rows of the MSA indicator table
        metro_rows: Rows of the coordinate table (ignored when ``index`` is given)
        selected_sdg: Category to keep; "overall" keeps every row
        index: Optional prebuilt metro index

    Returns:
        JoinResult with points in indicator-row order
    """
    if index is None:
        index = build_metro_index(metro_rows)

    normalized = normalize_indicator_rows(indicator_rows)
    filtered = filter_by_sdg(normalized, selected_sdg)
    logger.debug(
        f"  🔎 Filter {normalize_sdg(selected_sdg)}: {len(filtered):,}/{len(normalized):,} rows"
    )

    points: List[MsaPoint] = []
    unmatched: List[str] = []
    fallback_hits = 0

    for row in filtered:
        metro = index.lookup(row.city, row.state)

        if metro is None and not row.state:
            metro = index.lookup_city(row.city)
            if metro is not None:
                fallback_hits += 1

        if metro is None:
            label = f"{row.city}, {row.state}" if row.state else row.city
            unmatched.append(f'"{label}" <- "{row.area_name}"')
            continue

        if not math.isfinite(row.sdg_lq):
            continue

        points.append(
            MsaPoint(
                area_name=row.area_name,
                sdg=row.sdg,
                sdg_lq=row.sdg_lq,
                lat=metro.lat,
                lng=metro.lng,
            )
        )

    logger.debug(f"  📍 Matched {len(points):,} points (fallback: {fallback_hits})")
    if unmatched:
        logger.warning(f"  ⚠️ {len(unmatched):,} rows not matched, e.g. {unmatched[:10]}")

    return JoinResult(points=points, unmatched=unmatched, fallback_hits=fallback_hits)
