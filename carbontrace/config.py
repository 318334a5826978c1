# -*- coding: utf-8 -*-
"""
carbontrace Configuration

Centralized configuration for the carbon aggregation and simulation engine
covering:
- Logging level for the library and the CLI
- Prometheus metrics toggle
- Reporting of declared/aggregate footprint mismatches
- Simulation token limits and compression level

All settings can be overridden via environment variables with the
``CT_`` prefix (e.g. ``CT_MAX_TOKEN_LENGTH``).

Example:
    >>> from carbontrace.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.compression_level, cfg.report_mismatches)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "CT_"

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# CarbonTraceConfig
# ---------------------------------------------------------------------------


@dataclass
class CarbonTraceConfig:
    """Complete configuration for carbontrace.

    Attributes:
        log_level: Logging level used by :func:`configure_logging`.
        enable_metrics: Whether Prometheus metrics are recorded.
        report_mismatches: Whether declared/aggregate CO2eq mismatches are
            sent to the diagnostics sink (they are always logged).
        dedupe_mismatches: Whether a mismatch already reported for the same
            asset is suppressed in the diagnostics sink.
        max_pending_diagnostics: Most diagnostics buffered while no handler is
            registered; the oldest are dropped beyond that.
        max_token_length: Longest simulation token accepted for decoding.
        compression_level: zlib level (0-9) used when encoding tokens.
    """

    # -- Logging -------------------------------------------------------------
    log_level: str = "WARNING"

    # -- Metrics -------------------------------------------------------------
    enable_metrics: bool = True

    # -- Diagnostics ---------------------------------------------------------
    report_mismatches: bool = True
    dedupe_mismatches: bool = True
    max_pending_diagnostics: int = 1000

    # -- Simulation tokens ---------------------------------------------------
    max_token_length: int = 1_000_000
    compression_level: int = 9

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> CarbonTraceConfig:
        """Build a CarbonTraceConfig from environment variables.

        Every field can be overridden via ``CT_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).

        Returns:
            Populated CarbonTraceConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            log_level=_str("LOG_LEVEL", cls.log_level),
            enable_metrics=_bool("ENABLE_METRICS", cls.enable_metrics),
            report_mismatches=_bool(
                "REPORT_MISMATCHES", cls.report_mismatches,
            ),
            dedupe_mismatches=_bool(
                "DEDUPE_MISMATCHES", cls.dedupe_mismatches,
            ),
            max_pending_diagnostics=_int(
                "MAX_PENDING_DIAGNOSTICS", cls.max_pending_diagnostics,
            ),
            max_token_length=_int("MAX_TOKEN_LENGTH", cls.max_token_length),
            compression_level=_int(
                "COMPRESSION_LEVEL", cls.compression_level,
            ),
        )

        if not 0 <= config.compression_level <= 9:
            logger.warning(
                "Invalid compression level %d, using default %d",
                config.compression_level, cls.compression_level,
            )
            config.compression_level = cls.compression_level

        if config.max_pending_diagnostics < 1:
            logger.warning(
                "Invalid diagnostics buffer size %d, using default %d",
                config.max_pending_diagnostics, cls.max_pending_diagnostics,
            )
            config.max_pending_diagnostics = cls.max_pending_diagnostics

        logger.debug(
            "CarbonTraceConfig loaded: log_level=%s, metrics=%s, "
            "report_mismatches=%s (dedupe=%s), max_token_length=%d, "
            "compression_level=%d",
            config.log_level,
            config.enable_metrics,
            config.report_mismatches,
            config.dedupe_mismatches,
            config.max_token_length,
            config.compression_level,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[CarbonTraceConfig] = None
_config_lock = threading.Lock()


def get_config() -> CarbonTraceConfig:
    """Return the singleton CarbonTraceConfig, creating from env if needed.

    Returns:
        CarbonTraceConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = CarbonTraceConfig.from_env()
    return _config_instance


def set_config(config: CarbonTraceConfig) -> None:
    """Replace the singleton CarbonTraceConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("CarbonTraceConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for command line use.

    Args:
        level: Level name; defaults to the configured ``log_level``.
    """
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format=_LOG_FORMAT,
    )


__all__ = [
    "CarbonTraceConfig",
    "get_config",
    "set_config",
    "reset_config",
    "configure_logging",
]
