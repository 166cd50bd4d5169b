"""Tests for the CBSA centroid table and CSV polygon rows."""

import json

import pandas as pd
import pytest
from shapely.geometry import box

from processing.cbsa_layers import (
    CbsaCentroid,
    build_cbsa_centroids,
    build_cbsa_polygons,
    centroids_to_geodataframe,
    polygon_value,
    resolve_polygon_values,
    row_geometry,
    value_by_cbsa,
)
from processing.geo_layers import WGS84

SQUARE = [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]
SQUARE_WKT = "POLYGON ((0 0, 1 0, 1 1, 0 1, 0 0))"


# ---------------------------------------------------------------------------
# Centroids
# ---------------------------------------------------------------------------


def test_centroid_code_and_name_fallbacks():
    rows = [
        {"GEOID": "11260", "NAME": "Anchorage, AK", "lat": 61.2, "lng": -149.9, "overall": 1.5},
        {"CBSA": "14260", "BASENAME": "Boise City", "lat": "43.6", "lng": "-116.2"},
        {"GEOID": "99999", "lat": "40", "lng": "-100", "overall": "x"},
    ]
    centroids = build_cbsa_centroids(rows)

    assert centroids == [
        CbsaCentroid("11260", "Anchorage, AK", 61.2, -149.9, 1.5),
        CbsaCentroid("14260", "Boise City", 43.6, -116.2, None),
        CbsaCentroid("99999", "99999", 40.0, -100.0, None),
    ]


def test_centroid_rows_without_code_or_coordinates_are_skipped():
    rows = [
        {"NAME": "No code", "lat": "1", "lng": "2"},
        {"GEOID": "1", "lat": "", "lng": "2"},
        {"GEOID": "2", "lat": "north", "lng": "2"},
        {"GEOID": "3", "latitude": "1", "longitude": "2"},
    ]
    assert [c.geoid for c in build_cbsa_centroids(rows)] == ["3"]


def test_centroid_value_column_is_configurable():
    rows = [{"GEOID": "1", "lat": "1", "lng": "2", "overall": "1", "SDG-01": "0.4"}]
    assert build_cbsa_centroids(rows, value_column="SDG-01")[0].value == 0.4


def test_value_by_cbsa_last_row_wins():
    centroids = [
        CbsaCentroid("1", "A", 0.0, 0.0, 1.0),
        CbsaCentroid("2", "B", 0.0, 0.0, None),
        CbsaCentroid("1", "A", 0.0, 0.0, 3.0),
    ]
    assert value_by_cbsa(centroids) == {"1": 3.0, "2": None}


def test_centroids_to_geodataframe():
    gdf = centroids_to_geodataframe([CbsaCentroid("11260", "Anchorage, AK", 61.2, -149.9, 1.5)])

    assert gdf.crs.to_string() == WGS84
    assert (gdf.geometry.iloc[0].x, gdf.geometry.iloc[0].y) == (-149.9, 61.2)
    assert list(gdf["geoid"]) == ["11260"]


# ---------------------------------------------------------------------------
# Polygon rows
# ---------------------------------------------------------------------------


def test_geometry_from_geojson_string():
    geometry = row_geometry({"geometry": json.dumps({"type": "Polygon", "coordinates": SQUARE})})
    assert geometry.equals(box(0, 0, 1, 1))


def test_geometry_from_geojson_feature_string():
    feature = {
        "type": "Feature",
        "properties": {},
        "geometry": {"type": "MultiPolygon", "coordinates": [SQUARE]},
    }
    geometry = row_geometry({"geojson": json.dumps(feature)})
    assert geometry.geom_type == "MultiPolygon"
    assert geometry.area == 1.0


def test_geometry_from_wkt():
    assert row_geometry({"wkt": SQUARE_WKT}).equals(box(0, 0, 1, 1))
    multi = row_geometry({"geometry": "MULTIPOLYGON (((0 0, 1 0, 1 1, 0 1, 0 0)))"})
    assert multi.geom_type == "MultiPolygon"


def test_geometry_from_coordinate_arrays():
    polygon = row_geometry({"rings": json.dumps(SQUARE)})
    multi = row_geometry({"coordinates": json.dumps([SQUARE, [[[2, 2], [3, 2], [3, 3], [2, 2]]]])})

    assert polygon.geom_type == "Polygon"
    assert multi.geom_type == "MultiPolygon"
    assert len(multi.geoms) == 2


def test_geojson_column_wins_over_wkt():
    row = {"geojson": json.dumps({"type": "Polygon", "coordinates": SQUARE}), "wkt": "bad"}
    assert row_geometry(row).equals(box(0, 0, 1, 1))


@pytest.mark.parametrize(
    "row",
    [
        {},
        {"wkt": "POINT (1 2)"},
        {"wkt": "not wkt"},
        {"geometry": json.dumps({"type": "LineString", "coordinates": [[0, 0], [1, 1]]})},
        {"rings": "[1, 2"},
        {"rings": "[]"},
        {"wkt": "POLYGON EMPTY"},
    ],
)
def test_unusable_geometry_is_none(row):
    assert row_geometry(row) is None


def test_polygon_value_fallback_order():
    assert polygon_value({"overall": "2", "sdg_lq": "1"}) == 2.0
    assert polygon_value({"overall": "", "sdg_lq": "1", "score": "3"}) == 1.0
    assert polygon_value({"score": "3", "value": "4"}) == 3.0
    assert polygon_value({"value": "4", "lq": "5"}) == 4.0
    assert polygon_value({"lq": "5"}) == 5.0
    assert polygon_value({"my_col": "7", "lq": "5"}, value_column="my_col") == 7.0
    assert polygon_value({"overall": "n/a"}) is None


def test_build_cbsa_polygons_skips_rows_without_outline():
    rows = [
        {"cbsa_code": "11260", "NAME": "Anchorage, AK", "wkt": SQUARE_WKT, "overall": "1.5"},
        {"GEOID": "14260", "msa_name": "Boise City", "rings": json.dumps(SQUARE)},
        {"GEOID": "99999", "NAME": "Nowhere"},
    ]
    gdf = build_cbsa_polygons(rows)

    assert gdf.crs.to_string() == WGS84
    assert list(gdf["GEOID"]) == ["11260", "14260"]
    assert list(gdf["NAME"]) == ["Anchorage, AK", "Boise City"]
    assert gdf["value"].iloc[0] == 1.5
    assert pd.isna(gdf["value"].iloc[1])


def test_build_cbsa_polygons_empty():
    gdf = build_cbsa_polygons([])
    assert len(gdf) == 0
    assert list(gdf.columns[:3]) == ["GEOID", "NAME", "value"]


def test_resolve_polygon_values_order():
    rows = [
        {"GEOID": "1", "NAME": "A", "wkt": SQUARE_WKT, "overall": "9"},
        {"GEOID": "2", "NAME": "B", "wkt": SQUARE_WKT},
        {"GEOID": "3", "NAME": "Reno, NV", "wkt": SQUARE_WKT},
        {"GEOID": "4", "NAME": "Nowhere", "wkt": SQUARE_WKT},
    ]
    gdf = build_cbsa_polygons(rows)
    resolved = resolve_polygon_values(gdf, {"2": 0.8, "3": None}, {"reno, nv": 0.3})

    assert list(resolved["value"].iloc[:3]) == [9.0, 0.8, 0.3]
    assert pd.isna(resolved["value"].iloc[3])
    assert pd.isna(gdf["value"].iloc[1])
