#!/usr/bin/env python3
"""
SDG Maps Data Pipeline with Click CLI

Runs the data-joining layer over the bundled static files and exports the
structures the map and chart components consume: the MSA -> county
crosswalk, joined MSA points, per-area value lookups and county/state metric
tables.

Usage:
    sdg-maps years
    sdg-maps crosswalk --output output/msa_to_counties.json
    sdg-maps points --year 2015 --sdg SDG-01 --output output/msa_points.geojson
    sdg-maps values --year 2015 --sdg overall --output output/msa_values.csv
    sdg-maps county-metrics --year 2015 --output output/county_metrics.json
    sdg-maps state-metrics --year 2015 --sdg SDG-03 --output output/states.geojson
    sdg-maps centroids --output output/cbsa_centroids.geojson
    sdg-maps cbsa-polygons --year 2015 --sdg SDG-01 --output output/cbsa_polygons.geojson

    # Override config values without editing config.yaml:
    sdg-maps --set input_files.metros_csv=data/other_metros.csv points --year 2015

    # Verbose logging:
    sdg-maps --verbose values --year 2015
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import pandas as pd
from loguru import logger

from ops.config_loader import Config
from processing.cbsa_layers import centroids_to_geodataframe
from processing.dashboard import Dashboard
from processing.data_service import DataService
from processing.geo_layers import (
    attach_metric,
    ensure_county_geoids,
    ensure_state_ids,
    export_geojson,
    load_geojson_layer,
    points_to_geodataframe,
)
from processing.metrics import sort_sdg_keys

YEAR_KINDS = ["msa", "state", "msa_csv"]


class PipelineContext:
    """Click context object: config overrides and the lazily built dashboard."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file
        self.overrides: Dict[str, Any] = {}
        self._config: Optional[Config] = None
        self._dashboard: Optional[Dashboard] = None

    def add_override(self, key: str, value: Any) -> None:
        self.overrides[key] = value
        logger.debug(f"Added override: {key} = {value}")

    @property
    def config(self) -> Config:
        if self._config is None:
            self._config = Config(self.config_file, overrides=self.overrides)
        return self._config

    @property
    def service(self) -> DataService:
        return self.dashboard.service

    @property
    def dashboard(self) -> Dashboard:
        if self._dashboard is None:
            self._dashboard = Dashboard(DataService(self.config))
        return self._dashboard


class ConfigOverride(click.ParamType):
    """Custom parameter type for config overrides."""

    name = "config_override"

    def convert(self, value, param, ctx) -> Tuple[str, Any]:
        if "=" not in value:
            self.fail(f"Invalid format: {value}. Use KEY=VALUE", param, ctx)

        key, val = value.split("=", 1)

        # Auto-parse value type
        if val.lower() in ("true", "false"):
            parsed_val: Any = val.lower() == "true"
        elif val.isdigit():
            parsed_val = int(val)
        elif "." in val and val.replace(".", "", 1).isdigit():
            parsed_val = float(val)
        else:
            parsed_val = val

        return key, parsed_val


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    elif verbose:
        log_level = "DEBUG"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    else:
        log_level = "INFO"
        log_format = (
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    os.environ["LOGURU_LEVEL"] = log_level

    if verbose:
        logger.debug("🔧 Verbose logging enabled (DEBUG level)")
    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """
    Log a critical error; the full traceback is only emitted in TRACE mode.

    Args:
        error: The exception that occurred
        context: Additional context about where the error occurred
    """
    if os.environ.get("LOGURU_LEVEL", "INFO") == "TRACE":
        logger.opt(exception=error).trace(f"Error context: {context}")

    logger.critical(f"💥 CRITICAL ERROR: {context}")
    logger.critical(f"Exception: {type(error).__name__}: {error}")


def _write_json(data: Any, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True, allow_nan=False)
    logger.success(f"  ✅ Wrote {output}")


def _write_frame(frame: pd.DataFrame, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.suffix.lower() == ".json":
        frame.to_json(output, orient="records", indent=2)
    else:
        frame.to_csv(output, index=False)
    logger.success(f"  ✅ Wrote {len(frame):,} rows to {output}")


def _pipeline(ctx: click.Context) -> PipelineContext:
    pipeline: PipelineContext = ctx.obj
    try:
        config = pipeline.config
    except (FileNotFoundError, ValueError) as e:
        handle_critical_error(e, "configuration")
        logger.info("💡 Make sure config.yaml exists and is valid")
        ctx.exit(1)
    config.print_config_summary()
    return pipeline


def _latest_year(pipeline: PipelineContext, kind: str, year: Optional[int]) -> Optional[int]:
    if year is not None:
        return year
    years = pipeline.service.available_years(kind)
    return years[-1] if years else None


@click.group()
@click.option("--config", "config_file", type=click.Path(), help="Path to config.yaml")
@click.option(
    "--set",
    "config_overrides",
    multiple=True,
    type=ConfigOverride(),
    help="Set config values using dot notation (e.g., loading.max_workers=8)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option("--trace", is_flag=True, help="Enable TRACE level logging for deep debugging")
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, config_file, config_overrides, verbose, trace, log_file):
    """
    SDG Maps data pipeline: crosswalks, joins and value lookups for the
    metro, county and state maps.
    """
    setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        log_level = "TRACE" if trace else ("DEBUG" if verbose else "INFO")
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    pipeline = PipelineContext(config_file)
    for key, value in config_overrides:
        pipeline.add_override(key, value)
    ctx.obj = pipeline


@cli.command()
@click.pass_context
def years(ctx):
    """List the years available for each per-year dataset."""
    pipeline = _pipeline(ctx)
    for kind in YEAR_KINDS:
        try:
            available = pipeline.service.available_years(kind)
        except ValueError as e:
            logger.warning(f"⚠️ {e}")
            continue
        span = f"{available[0]}-{available[-1]}" if available else "none"
        click.echo(f"{kind}: {len(available)} years ({span})")


@cli.command()
@click.option("--output", "-o", type=click.Path(), help="Write the crosswalk as JSON")
@click.pass_context
def crosswalk(ctx, output):
    """Build the MSA title -> county GEOID crosswalk."""
    pipeline = _pipeline(ctx)
    mapping = pipeline.dashboard.crosswalk
    counties = sum(len(v) for v in mapping.values())
    click.echo(f"{len(mapping):,} MSAs -> {counties:,} county assignments")
    if output:
        _write_json(mapping, Path(output))


@cli.command()
@click.option("--year", type=int, help="Data year (defaults to the latest available)")
@click.option("--sdg", default="overall", show_default=True, help="Category, e.g. SDG-01")
@click.option("--output", "-o", type=click.Path(), help="Write points as .geojson, .csv or .json")
@click.pass_context
def points(ctx, year, sdg, output):
    """Join MSA indicator rows to metro coordinates."""
    pipeline = _pipeline(ctx)
    year = _latest_year(pipeline, "msa_csv", year)
    if year is None:
        logger.error("❌ No MSA indicator files found")
        ctx.exit(1)

    result = pipeline.dashboard.msa_points(year, sdg)
    click.echo(
        f"{year} {sdg}: {len(result.points):,} points, "
        f"{len(result.unmatched):,} unmatched, {result.fallback_hits:,} city-only matches"
    )
    if not output:
        return

    output = Path(output)
    if output.suffix.lower() == ".geojson":
        precision = int(pipeline.config.get_export_setting("precision") or 6)
        if not export_geojson(points_to_geodataframe(result.points), output, precision):
            ctx.exit(1)
    else:
        _write_frame(pd.DataFrame([p.to_dict() for p in result.points]), output)


@cli.command()
@click.option("--year", type=int, help="Data year (defaults to the latest available)")
@click.option("--sdg", default="overall", show_default=True, help="Category, e.g. SDG-01")
@click.option("--output", "-o", type=click.Path(), help="Write values as .csv or .json")
@click.pass_context
def values(ctx, year, sdg, output):
    """Aggregate per-area values keyed by code and canonical name."""
    pipeline = _pipeline(ctx)
    year = _latest_year(pipeline, "msa_csv", year)
    if year is None:
        logger.error("❌ No MSA indicator files found")
        ctx.exit(1)

    dataset = pipeline.dashboard.dataset("msa_csv", year)
    if dataset.error:
        logger.warning(f"⚠️ {dataset.error}")

    lookup = pipeline.dashboard.msa_values(year, sdg)
    click.echo(
        f"{year} {lookup.sdg}: {lookup.total:,} areas, {len(lookup.value_by_code):,} with codes"
    )
    if output:
        frame = pd.DataFrame(
            [{"key": k, "key_type": "name", "value": v} for k, v in lookup.value_by_name.items()]
            + [{"key": k, "key_type": "code", "value": v} for k, v in lookup.value_by_code.items()],
            columns=["key", "key_type", "value"],
        )
        _write_frame(frame, Path(output))


def _export_metrics(ctx, pipeline, metrics, sdg, output, layer_key, prepare, id_property):
    output = Path(output)
    if output.suffix.lower() != ".geojson":
        _write_json(metrics, output)
        return

    if sdg is None:
        logger.error("❌ --sdg is required for GeoJSON output")
        ctx.exit(1)

    layer = load_geojson_layer(pipeline.config.get_input_path(layer_key))
    if layer is None:
        ctx.exit(1)
    layer = attach_metric(prepare(layer), metrics, sdg, id_property=id_property)
    precision = int(pipeline.config.get_export_setting("precision") or 6)
    if not export_geojson(layer, output, precision):
        ctx.exit(1)


@cli.command("county-metrics")
@click.option("--year", type=int, help="Data year (defaults to the latest available)")
@click.option("--sdg", help="Category to attach when writing GeoJSON")
@click.option("--output", "-o", type=click.Path(), help="Write metrics as .json or a county .geojson")
@click.pass_context
def county_metrics(ctx, year, sdg, output):
    """Fan MSA records out onto counties through the crosswalk."""
    pipeline = _pipeline(ctx)
    year = _latest_year(pipeline, "msa", year)
    if year is None:
        logger.error("❌ No MSA JSON files found")
        ctx.exit(1)

    metrics = pipeline.dashboard.county_metrics(year)
    options = pipeline.dashboard.sdg_options(year, "msa")
    click.echo(f"{year}: {len(metrics):,} counties, categories: {', '.join(options)}")
    if output:
        _export_metrics(
            ctx, pipeline, metrics, sdg, output, "counties_geojson", ensure_county_geoids, "GEOID"
        )


@cli.command("state-metrics")
@click.option("--year", type=int, help="Data year (defaults to the latest available)")
@click.option("--sdg", help="Category to attach when writing GeoJSON")
@click.option("--output", "-o", type=click.Path(), help="Write metrics as .json or a state .geojson")
@click.pass_context
def state_metrics(ctx, year, sdg, output):
    """Key state records by 2-digit state FIPS."""
    pipeline = _pipeline(ctx)
    year = _latest_year(pipeline, "state", year)
    if year is None:
        logger.error("❌ No state JSON files found")
        ctx.exit(1)

    metrics = pipeline.dashboard.state_metrics(year)
    categories = sort_sdg_keys({sdg_key for by_sdg in metrics.values() for sdg_key in by_sdg})
    click.echo(f"{year}: {len(metrics):,} states, categories: {', '.join(categories)}")
    if output:
        _export_metrics(
            ctx, pipeline, metrics, sdg, output, "states_geojson", ensure_state_ids, "STATE"
        )


@cli.command()
@click.option("--output", "-o", type=click.Path(), help="Write centroids as .geojson, .csv or .json")
@click.pass_context
def centroids(ctx, output):
    """Read CBSA centroids and their overall values."""
    pipeline = _pipeline(ctx)
    table = pipeline.dashboard.cbsa_table()
    if table.error:
        logger.warning(f"⚠️ {table.error}")

    found = pipeline.dashboard.cbsa_centroids()
    with_values = sum(1 for c in found if c.value is not None)
    click.echo(f"{len(found):,} CBSA centroids, {with_values:,} with values")
    if not output:
        return

    output = Path(output)
    if output.suffix.lower() == ".geojson":
        precision = int(pipeline.config.get_export_setting("precision") or 6)
        if not export_geojson(centroids_to_geodataframe(found), output, precision):
            ctx.exit(1)
    else:
        _write_frame(pd.DataFrame([c.to_dict() for c in found]), output)


@cli.command("cbsa-polygons")
@click.option("--year", type=int, help="Data year for the name fallback (defaults to the latest)")
@click.option("--sdg", default="overall", show_default=True, help="Category for the name fallback")
@click.option("--value-column", default="overall", show_default=True, help="CBSA table value column")
@click.option("--output", "-o", type=click.Path(), help="Write the polygon layer as .geojson")
@click.pass_context
def cbsa_polygons(ctx, year, sdg, value_column, output):
    """Build CBSA outlines from the CBSA table and resolve their values."""
    pipeline = _pipeline(ctx)
    year = _latest_year(pipeline, "msa_csv", year)
    if year is None:
        logger.error("❌ No MSA indicator files found")
        ctx.exit(1)

    layer = pipeline.dashboard.cbsa_polygons(year, sdg, value_column=value_column)
    resolved = int(layer["value"].notna().sum())
    click.echo(f"{year} {sdg}: {len(layer):,} CBSA polygons, {resolved:,} with values")
    if output:
        precision = int(pipeline.config.get_export_setting("precision") or 6)
        if not export_geojson(layer, Path(output), precision):
            ctx.exit(1)


if __name__ == "__main__":
    cli()
