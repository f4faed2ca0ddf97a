"""
Core module providing foundational components.

This module contains the configuration loader, centralized logging setup,
and custom exception hierarchy. It has no internal dependencies.
"""

from .config_loader import get_config, load_config_or_default, reload_config, Config
from .logger import get_logger, setup_logging
from .exceptions import (
    EbookIndexError,
    ConfigurationError,
    ExtractionError,
    ManifestError,
    IndexStoreError,
    IndexNotFoundError,
    IndexCorruptedError,
    SearchError
)

__all__ = [
    "get_config",
    "load_config_or_default",
    "reload_config",
    "Config",
    "get_logger",
    "setup_logging",
    "EbookIndexError",
    "ConfigurationError",
    "ExtractionError",
    "ManifestError",
    "IndexStoreError",
    "IndexNotFoundError",
    "IndexCorruptedError",
    "SearchError"
]
