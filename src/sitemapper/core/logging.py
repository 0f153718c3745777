"""
Logging configuration.

The packaged YAML dictConfig (`src/sitemapper/config/logging.yaml`) is the base;
the level comes from settings (`SITEMAPPER_LOG_LEVEL`) unless the caller passes one
explicitly (the CLI does for `--log-level`).
"""

from __future__ import annotations

import copy
import logging.config

from sitemapper.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    """Apply the packaged logging config with the effective level on root + handlers."""
    config = copy.deepcopy(get_logging_config())
    effective = (level or get_settings().app.log_level).upper()

    config.setdefault("root", {})["level"] = effective
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = effective

    logging.config.dictConfig(config)
