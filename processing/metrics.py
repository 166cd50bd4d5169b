"""
metrics.py - Choropleth Metric Tables

Reshapes year datasets into the ``{feature_id: {category: value}}`` tables the
county and state choropleths are keyed on, plus the option lists offered by
the year/category/area selectors.
"""

import functools
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from .crosswalk import counties_for_msa
from .normalizers import pad_code, to_finite

Metrics = Dict[str, Dict[str, Optional[float]]]

_SDG_KEY = re.compile(r"SDG-(\d{1,2})", re.IGNORECASE)


def build_county_metrics(
    records: Iterable[Mapping[str, Any]], crosswalk: Mapping[str, List[str]]
) -> Metrics:
    """Fan MSA records out onto their counties: ``{GEOID: {sdg: value}}``.

    A county that belongs to several MSAs keeps the value of the last record.
    Null or unparsable values are stored as None.
    """
    out: Metrics = {}
    for record in records:
        geoids = counties_for_msa(crosswalk, str(record.get("area_name") or ""))
        value = to_finite(record.get("sdg_lq"))
        for geoid in geoids:
            out.setdefault(geoid, {})[str(record.get("sdg"))] = value
    return out


def build_state_metrics(records: Iterable[Mapping[str, Any]]) -> Metrics:
    """State records keyed by 2-digit state FIPS: ``{"06": {sdg: value}}``."""
    out: Metrics = {}
    for record in records:
        state_num = record.get("state_num")
        if state_num is None or not str(state_num).strip():
            continue
        state_id = pad_code(state_num, 2)
        out.setdefault(state_id, {})[str(record.get("sdg"))] = to_finite(record.get("sdg_lq"))
    return out


def _compare_sdg_keys(a: str, b: str) -> int:
    ma, mb = _SDG_KEY.fullmatch(a), _SDG_KEY.fullmatch(b)
    if ma and mb:
        return int(ma.group(1)) - int(mb.group(1))
    return (a > b) - (a < b)


def sort_sdg_keys(keys: Iterable[str]) -> List[str]:
    """Sort category keys so SDG-2 comes before SDG-10."""
    return sorted(keys, key=functools.cmp_to_key(_compare_sdg_keys))


def sdg_options(records: Sequence[Mapping[str, Any]]) -> List[str]:
    return sort_sdg_keys({str(r.get("sdg")) for r in records if r.get("sdg") is not None})


def area_options(records: Sequence[Mapping[str, Any]]) -> List[str]:
    return sorted({str(r.get("area_name")) for r in records if r.get("area_name") is not None})


def active_county_set(crosswalk: Mapping[str, List[str]], msa: Optional[str]) -> FrozenSet[str]:
    return frozenset(counties_for_msa(crosswalk, msa))
