"""
cbsa_layers.py - CBSA Centroid and Polygon Tables

The CBSA table (one row per core-based statistical area) carries a centroid
for every area and, in some exports, the area outline. This module turns its
rows into:

- Centroid points with an optional value, plus the code-keyed value map
- Polygon features whose outline is stored as a GeoJSON string (geometry or
  Feature), as WKT, or as a raw rings/coordinates array

Only Polygon and MultiPolygon outlines are accepted; rows whose outline
cannot be parsed are skipped and counted, never raised.

Usage:
    centroids = build_cbsa_centroids(rows)
    polygons = build_cbsa_polygons(rows, value_column="overall")
    polygons = resolve_polygon_values(polygons, value_by_cbsa(centroids), lookup.value_by_name)
"""

import json
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import geopandas as gpd
import pandas as pd
from loguru import logger
from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry

from .geo_layers import WGS84, resolve_feature_value
from .normalizers import pick, to_finite, to_number
from .point_join import LAT_COLUMNS, LNG_COLUMNS

CENTROID_ID_COLUMNS = ["GEOID", "CBSA"]
CENTROID_NAME_COLUMNS = ["NAME", "BASENAME"]
POLYGON_ID_COLUMNS = ["cbsa_code", "CBSA", "GEOID"]
POLYGON_NAME_COLUMNS = ["NAME", "BASENAME", "msa_name", "area_name"]
VALUE_FALLBACK_COLUMNS = ["sdg_lq", "score", "value", "lq"]

GEOJSON_COLUMNS = ["geojson", "geometry"]
WKT_COLUMNS = ["wkt", "geometry"]
COORDINATE_COLUMNS = ["rings", "coordinates"]
POLYGON_TYPES = ("Polygon", "MultiPolygon")

Row = Mapping[str, Any]


@dataclass(frozen=True)
class CbsaCentroid:
    """Centroid of one CBSA; ``value`` is None when the row carries none."""

    geoid: str
    name: str
    lat: float
    lng: float
    value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_cbsa_centroids(rows: Sequence[Row], value_column: str = "overall") -> List[CbsaCentroid]:
    """Centroids for every row with a code and finite coordinates.

    The name falls back to the code when NAME and BASENAME are both blank.
    """
    centroids: List[CbsaCentroid] = []
    skipped = 0

    for row in rows:
        geoid = pick(row, CENTROID_ID_COLUMNS).strip()
        lat = to_number(pick(row, LAT_COLUMNS))
        lng = to_number(pick(row, LNG_COLUMNS))
        if not geoid or not math.isfinite(lat) or not math.isfinite(lng):
            skipped += 1
            continue

        centroids.append(
            CbsaCentroid(
                geoid=geoid,
                name=(pick(row, CENTROID_NAME_COLUMNS) or geoid).strip(),
                lat=lat,
                lng=lng,
                value=to_finite(pick(row, [value_column])),
            )
        )

    logger.debug(f"  📍 CBSA centroids: {len(centroids):,} ({skipped:,} rows skipped)")
    return centroids


def value_by_cbsa(centroids: Sequence[CbsaCentroid]) -> Dict[str, Optional[float]]:
    # A repeated code keeps the value of its last row.
    return {c.geoid: c.value for c in centroids}


def centroids_to_geodataframe(centroids: Sequence[CbsaCentroid]) -> gpd.GeoDataFrame:
    """CBSA centroids as a WGS84 point layer."""
    frame = pd.DataFrame(
        [c.to_dict() for c in centroids], columns=["geoid", "name", "lat", "lng", "value"]
    )
    geometry = [Point(lng, lat) for lat, lng in zip(frame["lat"], frame["lng"])]
    return gpd.GeoDataFrame(frame, geometry=geometry, crs=WGS84)


def _polygonal(geometry: Any) -> Optional[BaseGeometry]:
    if not isinstance(geometry, dict) or geometry.get("type") not in POLYGON_TYPES:
        return None
    return shape(geometry)


def _from_geojson(text: str) -> Optional[BaseGeometry]:
    try:
        data = json.loads(text)
        if isinstance(data, dict) and data.get("type") == "Feature":
            data = data.get("geometry")
        return _polygonal(data)
    except (ValueError, TypeError, IndexError, ShapelyError):
        return None


def _from_wkt(text: str) -> Optional[BaseGeometry]:
    try:
        geometry = wkt.loads(text)
    except (ValueError, ShapelyError):
        return None
    return geometry if geometry.geom_type in POLYGON_TYPES else None


def _is_multipolygon_array(coords: Any) -> bool:
    # [[[[x, y], ...]]] is a MultiPolygon, [[[x, y], ...]] a Polygon
    level = coords
    for _ in range(3):
        if not isinstance(level, list) or not level:
            return False
        level = level[0]
    return isinstance(level, list)


def _from_coordinates(text: str) -> Optional[BaseGeometry]:
    try:
        coords = json.loads(text)
        kind = "MultiPolygon" if _is_multipolygon_array(coords) else "Polygon"
        return shape({"type": kind, "coordinates": coords})
    except (ValueError, TypeError, IndexError, ShapelyError):
        return None


def row_geometry(row: Row) -> Optional[BaseGeometry]:
    """Parse a row's outline: GeoJSON string, then WKT, then a coordinate array."""
    parsers = (
        (GEOJSON_COLUMNS, _from_geojson),
        (WKT_COLUMNS, _from_wkt),
        (COORDINATE_COLUMNS, _from_coordinates),
    )
    for columns, parse in parsers:
        text = pick(row, columns).strip()
        if not text:
            continue
        geometry = parse(text)
        if geometry is not None and not geometry.is_empty:
            return geometry
    return None


def polygon_value(row: Row, value_column: str = "overall") -> Optional[float]:
    """Value from ``value_column``, falling back to sdg_lq, score, value and lq."""
    return to_finite(pick(row, [value_column] + VALUE_FALLBACK_COLUMNS))


def build_cbsa_polygons(rows: Sequence[Row], value_column: str = "overall") -> gpd.GeoDataFrame:
    """Polygon layer with GEOID, NAME and value properties for every parsable row."""
    records: List[Dict[str, Any]] = []
    geometries: List[BaseGeometry] = []
    skipped = 0

    for row in rows:
        geometry = row_geometry(row)
        if geometry is None:
            skipped += 1
            continue
        geoid = pick(row, POLYGON_ID_COLUMNS).strip()
        records.append(
            {
                "GEOID": geoid,
                "NAME": (pick(row, POLYGON_NAME_COLUMNS) or geoid).strip(),
                "value": polygon_value(row, value_column),
            }
        )
        geometries.append(geometry)

    if skipped:
        logger.info(f"  ⚠️ Skipped {skipped:,} CBSA rows without a usable outline")
    logger.debug(f"  🗺️ CBSA polygons: {len(records):,}")

    frame = pd.DataFrame(records, columns=["GEOID", "NAME", "value"])
    return gpd.GeoDataFrame(frame, geometry=geometries, crs=WGS84)


def resolve_polygon_values(
    gdf: gpd.GeoDataFrame,
    value_by_code: Mapping[str, Optional[float]],
    value_by_name: Mapping[str, Optional[float]],
    column: str = "value",
) -> gpd.GeoDataFrame:
    """Fill ``column`` per feature: own value, then CBSA code, then canonical NAME."""
    gdf = gdf.copy()
    properties = gdf.drop(columns=gdf.geometry.name).to_dict(orient="records")
    gdf[column] = [resolve_feature_value(p, value_by_code, value_by_name) for p in properties]
    resolved = gdf[column].notna().sum()
    logger.info(f"  🎯 Resolved values for {resolved:,}/{len(gdf):,} CBSA polygons")
    return gdf
