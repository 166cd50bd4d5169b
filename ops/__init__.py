"""
Operations package for the SDG Maps data layer

This package centralizes the operational tools:
- Configuration management
- The command-line pipeline (crosswalk, joins, value lookups, exports)

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]
