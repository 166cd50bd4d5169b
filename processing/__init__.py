"""
Processing package for SDG Maps

This package contains the data-joining layer: CSV parsing, identifier
normalization, the MSA -> county crosswalk, the point and value joins, and
the loading service that feeds them, plus the CBSA centroid and polygon
tables.
"""

__version__ = "0.1.0"

# Import key utilities for easy access
from .cbsa_layers import CbsaCentroid, build_cbsa_centroids, build_cbsa_polygons
from .crosswalk import build_msa_to_counties, counties_for_msa
from .csv_parser import parse_csv_text, split_csv_line
from .data_service import DataService, LatestOnlyLoader, LoadResult, YearDataset
from .normalizers import (
    canon,
    norm_state_token,
    normalize_area_name,
    normalize_metro_name,
    normalize_sdg,
    pick,
    unquote,
)
from .point_join import JoinResult, MsaPoint, join_msa_points
from .value_aggregator import ValueLookup, aggregate_values

__all__ = [
    "parse_csv_text",
    "split_csv_line",
    "canon",
    "unquote",
    "normalize_sdg",
    "norm_state_token",
    "normalize_area_name",
    "normalize_metro_name",
    "pick",
    "build_msa_to_counties",
    "counties_for_msa",
    "join_msa_points",
    "JoinResult",
    "MsaPoint",
    "aggregate_values",
    "ValueLookup",
    "DataService",
    "LatestOnlyLoader",
    "LoadResult",
    "YearDataset",
    "CbsaCentroid",
    "build_cbsa_centroids",
    "build_cbsa_polygons",
]
