"""Configuration utilities for the usersync CLI.

This module provides shared functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

from usersync.core.config import ServerConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Send ``usersync`` log records to stderr.

    Args:
        verbose: Log at DEBUG instead of INFO.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger = logging.getLogger("usersync")
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def load_params(path: Path) -> dict[str, Any]:
    """Load a JSON parameter file.

    Raises:
        ValueError: If the file is not a JSON object.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def server_config(server: str | None, token: str | None) -> ServerConfig:
    """Connection settings from command options.

    Raises:
        ValueError: If the server URL or the token is missing.
    """
    if not server:
        raise ValueError("No server given. Use --server or set it in the parameter file.")
    if not token:
        raise ValueError("No token given. Use --token or set USERSYNC_TOKEN.")
    return ServerConfig(server_url=server, token=token)
