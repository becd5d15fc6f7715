"""
travel_config -- single entrypoint for back-office configuration.

Runtime code obtains configuration through ``get_active_config()``; the
loader is used directly only by tests and tooling that need a custom file.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from travel_config.loader import load_config
from travel_config.schema import (
    AccessConfig,
    AccountingConfig,
    BackOfficeConfig,
    CurrencyConfig,
    NumberingConfig,
    TaxConfig,
)
from travel_kernel.logging_config import get_logger

_logger = get_logger("config")

__all__ = [
    "AccessConfig",
    "AccountingConfig",
    "BackOfficeConfig",
    "CurrencyConfig",
    "NumberingConfig",
    "TaxConfig",
    "get_active_config",
    "load_config",
]


@lru_cache(maxsize=8)
def _load_cached(path: str | None) -> BackOfficeConfig:
    return load_config(path)


def get_active_config(path: Path | str | None = None) -> BackOfficeConfig:
    """Return the validated configuration, cached per file path."""
    config = _load_cached(str(path) if path else None)
    _logger.info(
        "config_loaded",
        extra={
            "base_currency": config.base_currency,
            "checksum": config.checksum,
            "path": str(path) if path else "defaults",
        },
    )
    return config
