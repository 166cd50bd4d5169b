"""
Configuration Loader for the SDG Maps Data Layer

This module provides a centralized way to load and access configuration
settings (data file locations, year-file patterns, loader settings) from the
config.yaml file.

Usage:
    from ops.config_loader import Config

    config = Config()
    metros_csv = config.get_input_path('metros_csv')
    msa_dir, pattern = config.get_year_files('msa')
    output_dir = config.get_output_dir('output')
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger


class Config:
    """Configuration manager for the SDG maps data layer."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "project_name": "SDG Dashboard",
        "directories": {"data": "data", "output": "output"},
        "input_files": {
            "metros_csv": "data/usmetros.csv",
            "crosswalk": "data/msaTOcounties.json",
            "counties_geojson": "data/counties_500k.json",
            "states_geojson": "data/usa_state_20m.json",
            "cbsa_csv": "data/msa2025_centroids.csv",
        },
        "year_files": {
            "msa": {"directory": "data/msa_json", "pattern": r"msa_(\d{4})\.json$"},
            "state": {"directory": "data/msa_state_json", "pattern": r"msa_state_(\d{4})\.json$"},
            "msa_csv": {"directory": "data/eung_msa", "pattern": r"eung_msa_(\d{4})\.csv$"},
        },
        "loading": {"max_workers": 4},
        "export": {"precision": 6},
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable SDG_MAPS_CONFIG_PATH
                        2. config.yaml in current directory
                        3. ops/config.yaml below the current directory
            project_root_override: Override project root detection
            overrides: Dot-notation overrides applied on top of the file
        """
        if config_file is None:
            env_config = os.environ.get("SDG_MAPS_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif Path("ops/config.yaml").exists():
                config_file = "ops/config.yaml"
                logger.debug("Using ops/config.yaml from project root")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set SDG_MAPS_CONFIG_PATH"
                )

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r") as f:
            self.data = yaml.safe_load(f) or {}

        if not isinstance(self.data, dict):
            raise ValueError(f"Config file must contain a mapping: {self.config_path}")

        for key_path, value in (overrides or {}).items():
            self.set(key_path, value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with intelligent defaults.

        Sections present both in the file and in DEFAULTS are merged, so a
        partial section only replaces the keys it names.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")
        configured = self._lookup(self.data, keys)
        fallback = self._lookup(self.DEFAULTS, keys)

        if isinstance(configured, dict) and isinstance(fallback, dict):
            return {**fallback, **configured}
        if configured is not None:
            return configured
        if fallback is not None:
            return fallback
        return default

    @staticmethod
    def _lookup(source: Dict[str, Any], keys: List[str]) -> Any:
        value: Any = source
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def set(self, key_path: str, value: Any) -> None:
        """Override a configuration value in memory using dot notation."""
        keys = key_path.split(".")
        current = self.data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value
        logger.debug(f"Added override: {key_path} = {value}")

    def resolve_path(self, relative_path: Union[str, Path]) -> Path:
        path = Path(relative_path)
        if path.is_absolute():
            return path
        return self.project_root / path

    def get_input_path(self, filename_key: str) -> Path:
        """
        Get full path to an input file, joined with the project root.

        Args:
            filename_key: Key for the filename in input_files

        Returns:
            Full absolute path to the input file
        """
        relative_path_str = self.get(f"input_files.{filename_key}")
        if not relative_path_str:
            raise ValueError(
                f"Input filename key '{filename_key}' not found in config: input_files"
            )
        return self.resolve_path(relative_path_str)

    def get_year_files(self, kind: str) -> Tuple[Path, str]:
        """Directory and filename regex (with one year group) for a per-year dataset."""
        settings = self.get(f"year_files.{kind}")
        if not isinstance(settings, dict) or "directory" not in settings or "pattern" not in settings:
            raise ValueError(f"Year file settings for '{kind}' not found in config: year_files")
        return self.resolve_path(settings["directory"]), str(settings["pattern"])

    def get_output_dir(self, dir_key: str = "output") -> Path:
        """
        Get full path to an output directory, creating it when missing.

        Args:
            dir_key: Directory key under ``directories``

        Returns:
            Full path to the directory
        """
        relative = self.get(f"directories.{dir_key}")
        if not relative:
            raise ValueError(f"Unknown directory key: {dir_key}")
        directory = self.resolve_path(relative)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def get_loading_setting(self, setting_key: str) -> Any:
        return self.get(f"loading.{setting_key}")

    def get_export_setting(self, setting_key: str) -> Any:
        return self.get(f"export.{setting_key}")

    def validate_input_files(self) -> Dict[str, bool]:
        """Validate that input files exist."""
        results: Dict[str, bool] = {}
        input_files = {**self.DEFAULTS["input_files"], **self.data.get("input_files", {})}

        for filename_key in input_files:
            try:
                results[filename_key] = self.get_input_path(filename_key).exists()
            except ValueError:
                results[filename_key] = False

        return results

    def print_config_summary(self) -> None:
        """Print a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        logger.debug("📊 Input Files:")
        for file_key, exists in self.validate_input_files().items():
            status = "✅" if exists else "❌"
            logger.debug(f"  {status} {file_key}")

    def _find_project_root(self) -> Path:
        """Find the project root directory by looking for characteristic files/directories."""
        current = self.config_path.parent

        project_markers = ["data", "ops", "processing", "pyproject.toml", ".git"]

        for _ in range(5):
            markers_found = sum(1 for marker in project_markers if (current / marker).exists())
            if markers_found >= 2:
                return current

            parent = current.parent
            if parent == current:
                break
            current = parent

        # Fallback: if config is in ops/, project root is parent
        if self.config_path.parent.name == "ops":
            return self.config_path.parent.parent

        logger.warning(
            f"Could not reliably detect project root, using config directory: {self.config_path.parent}"
        )
        return self.config_path.parent
