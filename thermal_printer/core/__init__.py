"""
Core utilities for the thermal print service.

This package groups non-Flask helpers used across the app:
- config: paths, JSON load/save, printer configuration store
- logging: Request ID aware logging filters/formatters and root logger config
- session: session id generation and validation

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    DEFAULT_SETTINGS,
    PrinterConfigStore,
    default_config_path,
    default_media_path,
    get_config_path,
    get_media_path,
    load_config,
    save_config,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)
from .session import SESSION_ID_RE, SessionIdGenerator

__all__ = [
    # config
    "DEFAULT_SETTINGS",
    "PrinterConfigStore",
    "default_config_path",
    "default_media_path",
    "get_config_path",
    "get_media_path",
    "load_config",
    "save_config",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
    # session
    "SESSION_ID_RE",
    "SessionIdGenerator",
]
