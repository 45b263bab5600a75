"""Shared modules for api-tester-cli.

This module provides functionality used across all commands:
- Paths (~/.api-tester layout, session slot resolution)
- Auth (bearer header helpers)
- Logging (structlog configuration)
"""

from .auth import auth_headers, has_authorization
from .logging import configure_logging, get_logger
from .paths import (
    CONSOLE_DIR,
    LOG_DIR,
    SESSIONS_DIR,
    default_session_id,
    ensure_dirs,
    get_session_file,
)

__all__ = [
    # Paths
    "CONSOLE_DIR",
    "SESSIONS_DIR",
    "LOG_DIR",
    "ensure_dirs",
    "default_session_id",
    "get_session_file",
    # Auth
    "auth_headers",
    "has_authorization",
    # Logging
    "configure_logging",
    "get_logger",
]
