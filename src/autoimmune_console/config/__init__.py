"""Configuration module for the Autoimmune Reference Console."""

from .settings import config, Config, ServiceConfig, BrowseConfig, DataConfig, AppConfig
from .logging_config import setup_logging, get_logger
from .constants import (
    FILTER_CHAIN,
    VALUE_SCOPE_FIELDS,
    FILTER_FIELDS,
    SEARCH_SCOPES,
    SORT_ORDERS,
    DEFAULT_SORT_BY,
    DEFAULT_SORT_ORDER,
)

__all__ = [
    # Settings
    "config",
    "Config",
    "ServiceConfig",
    "BrowseConfig",
    "DataConfig",
    "AppConfig",
    # Logging
    "setup_logging",
    "get_logger",
    # Filter hierarchy
    "FILTER_CHAIN",
    "VALUE_SCOPE_FIELDS",
    "FILTER_FIELDS",
    "SEARCH_SCOPES",
    "SORT_ORDERS",
    "DEFAULT_SORT_BY",
    "DEFAULT_SORT_ORDER",
]
