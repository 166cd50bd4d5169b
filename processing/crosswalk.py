"""
crosswalk.py - MSA Title to County GEOID Crosswalk

Builds the lookup that fans MSA-level indicator values out onto county
polygons. Source rows come from the Census delineation file (exported to
JSON or CSV), whose headers are not always intact after spreadsheet
conversion, so each field is resolved through a list of aliases ending in a
positional "Unnamed: N" column.

Usage:
    from processing.crosswalk import build_msa_to_counties, counties_for_msa

    crosswalk = build_msa_to_counties(rows)
    counties_for_msa(crosswalk, "Anchorage, AK")   # ["02020", "02170"]
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger

from .csv_parser import read_csv_file
from .normalizers import coalesce, to_geoid

MsaToCounties = Dict[str, List[str]]

TITLE_COLUMNS = [
    "CBSA Title",
    "Metropolitan/Micropolitan Statistical Area",
    "Title",
    "Unnamed: 3",
]
STATE_FIPS_COLUMNS = ["FIPS State Code", "State FIPS", "Unnamed: 9"]
COUNTY_FIPS_COLUMNS = ["FIPS County Code", "County FIPS", "Unnamed: 10"]


def build_msa_to_counties(rows: Optional[Iterable[Mapping[str, Any]]]) -> MsaToCounties:
    """Build ``{MSA title: sorted unique county GEOIDs}`` from crosswalk rows.

    Rows without a title or without either FIPS value are skipped; a FIPS
    value of zero is kept.
    """
    mapping: MsaToCounties = {}
    skipped = 0
    malformed = 0

    for row in rows or []:
        title = coalesce(row, TITLE_COLUMNS)
        state_fips = coalesce(row, STATE_FIPS_COLUMNS)
        county_fips = coalesce(row, COUNTY_FIPS_COLUMNS)

        if not title or state_fips is None or county_fips is None:
            skipped += 1
            continue

        geoid = to_geoid(state_fips, county_fips)
        if len(geoid) != 5 or not (geoid.isascii() and geoid.isdigit()):
            malformed += 1
            logger.debug(f"    ⚠️ Ignoring malformed GEOID {geoid!r} for {title!r}")
            continue

        mapping.setdefault(str(title).strip(), []).append(geoid)

    for title, geoids in mapping.items():
        mapping[title] = sorted(set(geoids))

    logger.debug(
        f"  🔗 Crosswalk: {len(mapping):,} MSAs "
        f"(skipped {skipped:,} incomplete rows, {malformed:,} malformed GEOIDs)"
    )
    return mapping


def counties_for_msa(crosswalk: Mapping[str, List[str]], title: Optional[str]) -> List[str]:
    """County GEOIDs for an MSA title (trimmed before lookup); [] on a miss."""
    return list(crosswalk.get((title or "").strip(), []))


def load_crosswalk_rows(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read crosswalk rows from a JSON list of records or a CSV file."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON list of records in {path}")
        return [row for row in data if isinstance(row, dict)]
    return read_csv_file(path)
