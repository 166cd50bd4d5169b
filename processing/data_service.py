"""
data_service.py - Static Data Loading for the SDG Maps Data Layer

Explicit loading service built once by the composition root and passed by
reference. It replaces module-level year caches with immutable per-year
datasets and guarantees that a failed load degrades to an empty result plus
an error message instead of an exception.

Key Features:
- CSV (quoted-field aware) and JSON record loading
- Year discovery from file names ("msa_2015.json" -> 2015)
- Concurrent independent loads joined before dependent work runs
- LatestOnlyLoader: results of superseded selector changes are discarded

Usage:
    from ops import Config
    from processing.data_service import DataService

    service = DataService(Config())
    years = service.available_years("msa")
    dataset = service.load_year("msa", years[-1])
    if dataset.error:
        logger.warning(dataset.error)
"""

import json
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from loguru import logger

from .crosswalk import MsaToCounties, build_msa_to_counties, load_crosswalk_rows
from .csv_parser import read_csv_file

Row = Mapping[str, Any]


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one static-file load; ``rows`` is empty whenever ``error`` is set."""

    rows: Tuple[Row, ...]
    error: Optional[str] = None
    source: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class YearDataset:
    year: int
    rows: Tuple[Row, ...]
    error: Optional[str] = None
    source: Optional[Path] = None


def discover_year_files(directory: Union[str, Path], pattern: str) -> Dict[int, Path]:
    """Map year -> file for files in ``directory`` whose name matches ``pattern``.

    ``pattern`` must contain one capture group holding the year. The result is
    ordered by ascending year; a missing directory yields an empty mapping.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"⚠️ Year directory not found: {directory}")
        return {}

    regex = re.compile(pattern, re.IGNORECASE)
    found: Dict[int, Path] = {}
    for path in directory.iterdir():
        match = regex.search(path.name)
        if path.is_file() and match:
            found[int(match.group(1))] = path

    return dict(sorted(found.items()))


def read_records(path: Union[str, Path]) -> List[Row]:
    """Read rows from a .csv file or a .json list of records."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON list of records in {path.name}")
        return [row for row in data if isinstance(row, dict)]
    return read_csv_file(path)


class DataService:
    """
    Loads the dashboard's static resources as immutable structures.
    """

    def __init__(self, config, max_workers: Optional[int] = None):
        """
        Initialize the service.

        Args:
            config: Configuration instance (ops.Config)
            max_workers: Thread pool size for concurrent loads
        """
        self.config = config
        self.max_workers = max_workers or int(config.get_loading_setting("max_workers") or 4)
        self._year_files: Dict[str, Dict[int, Path]] = {}

    def load_rows(self, path: Union[str, Path]) -> LoadResult:
        """Load one resource; failures are logged and returned as an error."""
        path = Path(path)
        try:
            rows = read_records(path)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            message = f"Failed to load {path}: {e}"
            logger.error(f"❌ {message}")
            return LoadResult(rows=(), error=message, source=path)

        logger.debug(f"  📥 Loaded {len(rows):,} rows from {path.name}")
        return LoadResult(rows=tuple(rows), source=path)

    def load_many(self, paths: Sequence[Union[str, Path]]) -> List[LoadResult]:
        """Load independent resources concurrently; returns once all are done, in input order."""
        if not paths:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(paths))) as executor:
            futures = [executor.submit(self.load_rows, path) for path in paths]
            return [future.result() for future in futures]

    def year_files(self, kind: str) -> Dict[int, Path]:
        if kind not in self._year_files:
            directory, pattern = self.config.get_year_files(kind)
            self._year_files[kind] = discover_year_files(directory, pattern)
            logger.debug(f"  📅 {kind}: {len(self._year_files[kind])} year files in {directory}")
        return self._year_files[kind]

    def available_years(self, kind: str) -> List[int]:
        return list(self.year_files(kind))

    def load_year(self, kind: str, year: int) -> YearDataset:
        """Load one year of a per-year dataset ("msa", "state" or "msa_csv")."""
        path = self.year_files(kind).get(int(year))
        if path is None:
            message = f"no data file for year {year} ({kind})"
            logger.warning(f"⚠️ {message}")
            return YearDataset(year=int(year), rows=(), error=message)

        result = self.load_rows(path)
        return YearDataset(year=int(year), rows=result.rows, error=result.error, source=path)

    def load_crosswalk(self) -> MsaToCounties:
        """Build the MSA -> county crosswalk; {} when the source cannot be read."""
        path = self.config.get_input_path("crosswalk")
        try:
            rows = load_crosswalk_rows(path)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"⚠️ Failed to build MSA→Counties crosswalk from {path}: {e}")
            return {}
        crosswalk = build_msa_to_counties(rows)
        logger.info(f"🔗 Crosswalk ready: {len(crosswalk):,} MSAs")
        return crosswalk

    def load_metros(self) -> LoadResult:
        return self.load_rows(self.config.get_input_path("metros_csv"))

    def load_cbsa_table(self) -> LoadResult:
        return self.load_rows(self.config.get_input_path("cbsa_csv"))


class LatestOnlyLoader:
    """
    Runs loads for a changing selector (e.g. the active year) in the
    background and publishes only the result of the most recent request.

    Each request bumps a generation counter; a load that completes after a
    newer request has been issued is dropped.
    """

    def __init__(
        self,
        load: Callable[[Any], Any],
        on_result: Optional[Callable[[Any, Any], None]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._load = load
        self._on_result = on_result
        self._executor = executor or ThreadPoolExecutor(max_workers=2)
        self._owns_executor = executor is None
        self._generation = 0
        self._lock = threading.Lock()
        self.selector: Any = None
        self.result: Any = None
        self.discarded = 0

    def request(self, selector: Any) -> Future:
        with self._lock:
            self._generation += 1
            generation = self._generation
        future = self._executor.submit(self._load, selector)
        future.add_done_callback(lambda f: self._complete(generation, selector, f))
        return future

    def _complete(self, generation: int, selector: Any, future: Future) -> None:
        if future.cancelled():
            return

        with self._lock:
            if generation != self._generation:
                self.discarded += 1
                logger.debug(f"  ⏭️ Discarding stale load for {selector!r}")
                return
            error = future.exception()
            if error is not None:
                logger.error(f"❌ Load for {selector!r} failed: {error}")
                return
            self.selector = selector
            self.result = future.result()

        if self._on_result is not None:
            self._on_result(selector, self.result)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
