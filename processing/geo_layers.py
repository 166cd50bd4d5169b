"""
geo_layers.py - GeoJSON Layer Preparation for the SDG Choropleths

Prepares the static polygon layers so the value lookups can be keyed onto
them, and turns joined MSA points into a point layer.

- County layers: GEOID filled from STATE + COUNTY where the property is missing
- State layers: STATE zero-padded to two characters
- Value attachment by feature id, with CBSA code -> canonical NAME fallback
- Export with coordinate precision control

Dependencies:
- geopandas, pandas, shapely, loguru
"""

from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

import geopandas as gpd
import pandas as pd
from loguru import logger
from shapely.geometry import Point

from .normalizers import canon_area_name, pad_code, to_finite
from .point_join import MsaPoint

WGS84 = "EPSG:4326"


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value))


def load_geojson_layer(input_path: Union[str, Path]) -> Optional[gpd.GeoDataFrame]:
    """
    Load a GeoJSON layer, assuming WGS84 when no CRS is declared.

    Args:
        input_path: Path to input GeoJSON file

    Returns:
        GeoDataFrame or None if loading failed
    """
    input_path = Path(input_path)
    logger.info(f"🗺️ Loading GeoJSON from {input_path}")

    if not input_path.exists():
        logger.error(f"❌ Input file not found: {input_path}")
        return None

    try:
        gdf = gpd.read_file(input_path)
    except Exception as e:
        logger.error(f"❌ Failed to load GeoJSON: {e}")
        return None

    if gdf.crs is None:
        gdf = gdf.set_crs(WGS84)
        logger.info("  🌍 Set CRS to WGS84 (was None)")

    logger.success(f"  ✅ Loaded {len(gdf):,} features")
    return gdf


def ensure_county_geoids(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Fill missing county GEOIDs from the STATE and COUNTY properties."""
    gdf = gdf.copy()
    if "GEOID" not in gdf.columns:
        gdf["GEOID"] = None

    def _geoid(row: pd.Series) -> str:
        if not _is_missing(row["GEOID"]):
            return str(row["GEOID"])
        state = row.get("STATE")
        county = row.get("COUNTY")
        return pad_code("" if _is_missing(state) else state, 2) + pad_code(
            "" if _is_missing(county) else county, 3
        )

    missing = gdf["GEOID"].isna().sum()
    gdf["GEOID"] = gdf.apply(_geoid, axis=1) if len(gdf) else gdf["GEOID"]
    if missing:
        logger.info(f"  🔧 Filled {missing:,} county GEOIDs from STATE + COUNTY")
    return gdf


def ensure_state_ids(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Zero-pad the STATE property to two characters."""
    gdf = gdf.copy()
    if "STATE" not in gdf.columns:
        logger.warning("  ⚠️ State layer has no STATE property")
        return gdf
    gdf["STATE"] = [pad_code("" if _is_missing(v) else v, 2) for v in gdf["STATE"]]
    return gdf


def resolve_feature_value(
    properties: Mapping[str, Any],
    value_by_code: Mapping[str, Optional[float]],
    value_by_name: Mapping[str, Optional[float]],
) -> Optional[float]:
    """Value for a polygon: its own ``value`` first, then GEOID/CBSA code, then canonical NAME.

    An own value that is not a finite number is treated as absent.
    """
    own = to_finite(properties.get("value"))
    if own is not None:
        return own

    code = properties.get("GEOID")
    if _is_missing(code):
        code = properties.get("CBSA")
    code = "" if _is_missing(code) else str(code).strip()
    if code and code in value_by_code:
        found = value_by_code[code]
        if found is not None:
            return found

    name_key = canon_area_name(properties.get("NAME"))
    if name_key:
        return value_by_name.get(name_key)
    return None


def attach_values(
    gdf: gpd.GeoDataFrame,
    values: Mapping[str, Any],
    id_property: str = "GEOID",
    column: str = "value",
) -> gpd.GeoDataFrame:
    """Add ``column`` holding ``values[feature[id_property]]`` (missing -> NaN)."""
    gdf = gdf.copy()
    if id_property not in gdf.columns:
        logger.warning(f"  ⚠️ Layer has no '{id_property}' property; nothing attached")
        gdf[column] = None
        return gdf

    gdf[column] = gdf[id_property].map(
        lambda fid: None if _is_missing(fid) else values.get(str(fid))
    )
    matched = gdf[column].notna().sum()
    logger.info(f"  🎯 Attached values to {matched:,}/{len(gdf):,} features by {id_property}")
    return gdf


def attach_metric(
    gdf: gpd.GeoDataFrame,
    metrics: Mapping[str, Mapping[str, Optional[float]]],
    sdg: str,
    id_property: str = "GEOID",
    column: str = "value",
) -> gpd.GeoDataFrame:
    """Attach one category of a ``{feature_id: {sdg: value}}`` metrics table."""
    flat = {fid: by_sdg.get(sdg) for fid, by_sdg in metrics.items()}
    return attach_values(gdf, flat, id_property=id_property, column=column)


def points_to_geodataframe(points: Sequence[MsaPoint]) -> gpd.GeoDataFrame:
    """Joined MSA points as a WGS84 point layer."""
    frame = pd.DataFrame(
        [p.to_dict() for p in points], columns=["area_name", "sdg", "sdg_lq", "lat", "lng"]
    )
    geometry = [Point(lng, lat) for lat, lng in zip(frame["lat"], frame["lng"])]
    return gpd.GeoDataFrame(frame, geometry=geometry, crs=WGS84)


def export_geojson(gdf: gpd.GeoDataFrame, output_path: Union[str, Path], precision: int = 6) -> bool:
    """
    Export GeoJSON with precision control.

    Args:
        gdf: GeoDataFrame to export
        output_path: Output file path
        precision: Coordinate decimal places

    Returns:
        True if export successful, False otherwise
    """
    output_path = Path(output_path)
    logger.info(f"💾 Exporting GeoJSON to {output_path}")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        gdf.to_file(output_path, driver="GeoJSON", coordinate_precision=precision)
    except Exception as e:
        logger.error(f"  ❌ Export failed: {e}")
        return False

    logger.success(f"  ✅ Exported {len(gdf):,} features ({output_path.stat().st_size:,} bytes)")
    return True
