"""
closing_config -- single public entrypoint for closing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.

Architecture position:
    Configuration -- sits beside ``closing_kernel`` (never imports its ORM
    layer) and below ``closing_services``.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ConfigurationError`` -- YAML or structural validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call logs ``closing_config_loaded``
    with the source path and checksum, tying each close to the exact
    configuration that governed its tolerance and draft sources.
"""

from __future__ import annotations

import logging
from pathlib import Path

from closing_config.loader import compute_checksum, load_config, parse_config
from closing_config.schema import ClosingConfig, CurrencyRule, DraftSourceDef

_logger = logging.getLogger("closing_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> ClosingConfig:
    """
    The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the packaged defaults.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file fails validation.
    """
    config = load_config(Path(path) if path is not None else DEFAULT_CONFIG_PATH)
    _logger.info(
        "closing_config_loaded",
        extra={
            "source": config.source,
            "checksum": config.checksum,
            "base_currency": config.base_currency,
            "draft_categories": list(config.categories),
        },
    )
    return config


__all__ = [
    "ClosingConfig",
    "CurrencyRule",
    "DraftSourceDef",
    "compute_checksum",
    "get_active_config",
    "parse_config",
]
