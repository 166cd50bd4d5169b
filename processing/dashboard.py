"""
dashboard.py - Derived Structures for the Dashboard Selectors

Composes the data service with the pure join/aggregate functions. Every
derivation is a function of (inputs, selectors); results are memoized on the
identity of the input collections plus the selector values and are rebuilt
wholesale when either changes, never patched in place.

Usage:
    service = DataService(Config())
    dashboard = Dashboard(service)
    lookup = dashboard.msa_values(2015, "SDG-03")
    metrics = dashboard.county_metrics(2015)
"""

from typing import Any, Callable, Dict, FrozenSet, List, NamedTuple, Optional, Tuple

import geopandas as gpd
from loguru import logger

from .cbsa_layers import (
    CbsaCentroid,
    build_cbsa_centroids,
    build_cbsa_polygons,
    resolve_polygon_values,
    value_by_cbsa,
)
from .crosswalk import MsaToCounties
from .data_service import DataService, LoadResult, YearDataset
from .metrics import (
    Metrics,
    active_county_set,
    area_options,
    build_county_metrics,
    build_state_metrics,
    sdg_options,
)
from .normalizers import normalize_sdg
from .point_join import JoinResult, join_msa_points
from .value_aggregator import ValueLookup, aggregate_values


class DefaultSelection(NamedTuple):
    sdg: Optional[str] = None
    area_name: Optional[str] = None
    state_sdg: Optional[str] = None


class IdentityMemo:
    """Caches results keyed on the identity of input objects and selector values."""

    def __init__(self):
        self._entries: Dict[Tuple[str, Tuple[Any, ...]], Tuple[Tuple[Any, ...], Any]] = {}

    def get(
        self,
        name: str,
        inputs: Tuple[Any, ...],
        selectors: Tuple[Any, ...],
        compute: Callable[[], Any],
    ) -> Any:
        key = (name, tuple(id(obj) for obj in inputs) + selectors)
        entry = self._entries.get(key)
        # The stored inputs keep their ids from being reused by new objects.
        if entry is not None and all(a is b for a, b in zip(entry[0], inputs)):
            return entry[1]
        value = compute()
        self._entries[key] = (inputs, value)
        return value

    def clear(self) -> None:
        self._entries.clear()


class Dashboard:
    """
    Selector-driven view over the loaded datasets.
    """

    def __init__(self, service: DataService, crosswalk: Optional[MsaToCounties] = None):
        self.service = service
        self.crosswalk: MsaToCounties = crosswalk if crosswalk is not None else service.load_crosswalk()
        self._datasets: Dict[Tuple[str, int], YearDataset] = {}
        self._metros: Optional[LoadResult] = None
        self._cbsa: Optional[LoadResult] = None
        self._memo = IdentityMemo()

    # Inputs

    def dataset(self, kind: str, year: int) -> YearDataset:
        key = (kind, int(year))
        if key not in self._datasets:
            self._datasets[key] = self.service.load_year(kind, year)
        return self._datasets[key]

    def metros(self) -> LoadResult:
        if self._metros is None:
            self._metros = self.service.load_metros()
        return self._metros

    def cbsa_table(self) -> LoadResult:
        if self._cbsa is None:
            self._cbsa = self.service.load_cbsa_table()
        return self._cbsa

    def preload(self, kind: str, year: int) -> Tuple[YearDataset, LoadResult]:
        """Load a year's indicator table and the coordinate table concurrently."""
        key = (kind, int(year))
        missing_metros = self._metros is None
        paths = []
        if key not in self._datasets:
            path = self.service.year_files(kind).get(int(year))
            if path is not None:
                paths.append(path)
        if missing_metros:
            paths.append(self.service.config.get_input_path("metros_csv"))

        results = self.service.load_many(paths)
        if missing_metros:
            self._metros = results.pop()
        if key not in self._datasets:
            if results:
                loaded = results[0]
                self._datasets[key] = YearDataset(
                    year=int(year), rows=loaded.rows, error=loaded.error, source=loaded.source
                )
            else:
                self._datasets[key] = self.service.load_year(kind, year)
        return self._datasets[key], self.metros()

    # Derivations

    def msa_points(self, year: int, sdg: Any, kind: str = "msa_csv") -> JoinResult:
        dataset, metros = self.preload(kind, year)
        wanted = normalize_sdg(sdg)
        return self._memo.get(
            "msa_points",
            (dataset.rows, metros.rows),
            (wanted,),
            lambda: join_msa_points(dataset.rows, metros.rows, wanted),
        )

    def msa_values(self, year: int, sdg: Any, kind: str = "msa_csv") -> ValueLookup:
        dataset = self.dataset(kind, year)
        wanted = normalize_sdg(sdg)
        return self._memo.get(
            "msa_values",
            (dataset.rows,),
            (wanted,),
            lambda: aggregate_values(dataset.rows, wanted),
        )

    def county_metrics(self, year: int) -> Metrics:
        dataset = self.dataset("msa", year)
        return self._memo.get(
            "county_metrics",
            (dataset.rows, self.crosswalk),
            (),
            lambda: build_county_metrics(dataset.rows, self.crosswalk),
        )

    def state_metrics(self, year: int) -> Metrics:
        dataset = self.dataset("state", year)
        return self._memo.get(
            "state_metrics", (dataset.rows,), (), lambda: build_state_metrics(dataset.rows)
        )

    def sdg_options(self, year: int, kind: str = "msa") -> List[str]:
        dataset = self.dataset(kind, year)
        return self._memo.get(
            f"sdg_options:{kind}", (dataset.rows,), (), lambda: sdg_options(dataset.rows)
        )

    def msa_options(self, year: int) -> List[str]:
        dataset = self.dataset("msa", year)
        return self._memo.get("msa_options", (dataset.rows,), (), lambda: area_options(dataset.rows))

    def cbsa_centroids(self) -> List[CbsaCentroid]:
        rows = self.cbsa_table().rows
        return self._memo.get("cbsa_centroids", (rows,), (), lambda: build_cbsa_centroids(rows))

    def cbsa_values(self) -> Dict[str, Optional[float]]:
        centroids = self.cbsa_centroids()
        return self._memo.get("cbsa_values", (centroids,), (), lambda: value_by_cbsa(centroids))

    def cbsa_polygons(
        self, year: int, sdg: Any, value_column: str = "overall", kind: str = "msa_csv"
    ) -> gpd.GeoDataFrame:
        """CBSA outlines coloured by their own value, else the CBSA code, else the area name."""
        rows = self.cbsa_table().rows
        polygons = self._memo.get(
            "cbsa_polygons",
            (rows,),
            (value_column,),
            lambda: build_cbsa_polygons(rows, value_column),
        )
        by_code = self.cbsa_values()
        lookup = self.msa_values(year, sdg, kind)
        return self._memo.get(
            "cbsa_polygon_values",
            (polygons, by_code, lookup),
            (),
            lambda: resolve_polygon_values(polygons, by_code, lookup.value_by_name),
        )

    def active_counties(self, msa: Optional[str]) -> FrozenSet[str]:
        return active_county_set(self.crosswalk, msa)

    def default_selection(self, year: int) -> DefaultSelection:
        """Selector values to apply when the year changes.

        The MSA panel takes the first MSA record's category and area, the
        state panel the first state record's category. Fields stay None when
        the year has no records of that kind.
        """
        msa_rows = self.dataset("msa", year).rows
        state_rows = self.dataset("state", year).rows
        if not msa_rows:
            logger.debug(f"  📭 No MSA records for {year}")
        if not state_rows:
            logger.debug(f"  📭 No state records for {year}")

        first_msa = msa_rows[0] if msa_rows else {}
        first_state = state_rows[0] if state_rows else {}
        return DefaultSelection(
            sdg=first_msa.get("sdg") or None,
            area_name=first_msa.get("area_name") or None,
            state_sdg=first_state.get("sdg") or None,
        )
