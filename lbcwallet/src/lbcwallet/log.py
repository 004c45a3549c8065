"""
Per-subsystem log levels and loguru sink configuration.

Every module logs through ``logger.bind(subsystem=...)``. The level of each
subsystem lives in a ``SubsystemLevels`` table that the sinks consult through
their filter, so levels can be changed per subsystem without touching the
handlers.

The ``--debuglevel`` option accepts either a single level applied to every
subsystem, or a comma-separated list of ``subsystem=level`` pairs:

    --debuglevel=debug
    --debuglevel=wallet=trace,chain=error
    --debuglevel=show          # list the supported subsystems and exit
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger

from lbcwallet.errors import ConfigError
from lbcwallet.results import Terminate

DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_FILENAME = "lbcwallet.log"
SHOW_SUBSYSTEMS = "show"

# Ordered from most to least verbose
LOG_LEVELS: tuple[str, ...] = ("trace", "debug", "info", "warn", "error", "critical")

# Names of the matching loguru levels
LOGURU_LEVELS: dict[str, str] = {
    "trace": "TRACE",
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}

SUBSYSTEMS: tuple[str, ...] = (
    "chain",
    "config",
    "loader",
    "main",
    "rpcclient",
    "rpcserver",
    "txmgr",
    "wallet",
)

# Subsystem assumed for records logged without a bound subsystem
DEFAULT_SUBSYSTEM = "main"

STDERR_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[subsystem]: <9}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[subsystem]: <9} | "
    "{name}:{function}:{line} - {message}"
)


def valid_log_level(level: str) -> bool:
    return level in LOG_LEVELS


class SubsystemLevels:
    """Table of log levels keyed by subsystem identifier."""

    def __init__(
        self,
        subsystems: Iterable[str] = SUBSYSTEMS,
        default_level: str = DEFAULT_LOG_LEVEL,
    ) -> None:
        if not valid_log_level(default_level):
            raise ConfigError(f"the specified debug level [{default_level}] is invalid")
        self._levels: dict[str, str] = {name: default_level for name in subsystems}

    def __contains__(self, subsystem: object) -> bool:
        return subsystem in self._levels

    def supported_subsystems(self) -> list[str]:
        """Return the registered subsystem identifiers, sorted for stable display."""
        return sorted(self._levels)

    def get_level(self, subsystem: str) -> str:
        return self._levels[subsystem]

    def set_level(self, subsystem: str, level: str) -> None:
        if subsystem not in self._levels:
            raise KeyError(subsystem)
        self._levels[subsystem] = level

    def set_all(self, level: str) -> None:
        for subsystem in self._levels:
            self._levels[subsystem] = level

    def as_dict(self) -> dict[str, str]:
        return dict(self._levels)

    def filter(self, record: dict[str, Any]) -> bool:
        """loguru filter: pass records at or above their subsystem's level."""
        subsystem = record["extra"].get("subsystem", DEFAULT_SUBSYSTEM)
        fallback = self._levels.get(DEFAULT_SUBSYSTEM, DEFAULT_LOG_LEVEL)
        level = self._levels.get(subsystem, fallback)
        return bool(record["level"].no >= logger.level(LOGURU_LEVELS[level]).no)


def parse_and_set_debug_levels(debug_level: str, levels: SubsystemLevels) -> Terminate | None:
    """
    Parse a ``--debuglevel`` value and apply it to ``levels``.

    Returns:
        ``Terminate(0, ...)`` listing the supported subsystems for ``show``
        (nothing is changed in that case), otherwise None

    Raises:
        ConfigError: For an invalid level, a malformed pair or an unknown subsystem
    """
    if debug_level == SHOW_SUBSYSTEMS:
        supported = " ".join(levels.supported_subsystems())
        return Terminate(0, f"Supported subsystems [{supported}]")

    # Without delimiters the value is the level for every subsystem
    if "," not in debug_level and "=" not in debug_level:
        if not valid_log_level(debug_level):
            raise ConfigError(f"the specified debug level [{debug_level}] is invalid")
        levels.set_all(debug_level)
        return None

    # Validate every pair before applying any of them
    pending: list[tuple[str, str]] = []
    for pair in debug_level.split(","):
        if "=" not in pair:
            raise ConfigError(
                f"the specified debug level contains an invalid subsystem/level pair [{pair}]"
            )
        subsystem, level = pair.split("=", 1)

        if subsystem not in levels:
            supported = " ".join(levels.supported_subsystems())
            raise ConfigError(
                f"the specified subsystem [{subsystem}] is invalid -- "
                f"supported subsystems [{supported}]"
            )
        if not valid_log_level(level):
            raise ConfigError(f"the specified debug level [{level}] is invalid")
        pending.append((subsystem, level))

    for subsystem, level in pending:
        levels.set_level(subsystem, level)
    return None


def setup_logging(levels: SubsystemLevels, log_dir: str | Path | None = None) -> None:
    """
    Configure loguru sinks filtered by the per-subsystem level table.

    Args:
        levels: Subsystem level table consulted by every sink
        log_dir: Directory for the rotated ``lbcwallet.log`` file (None = stderr only)
    """
    logger.remove()
    logger.configure(extra={"subsystem": DEFAULT_SUBSYSTEM})

    logger.add(
        sys.stderr,
        format=STDERR_FORMAT,
        level="TRACE",
        filter=levels.filter,
        colorize=True,
    )

    if log_dir is not None:
        logger.add(
            Path(log_dir) / DEFAULT_LOG_FILENAME,
            format=FILE_FORMAT,
            level="TRACE",
            filter=levels.filter,
            rotation="10 MB",
            retention=3,
        )


__all__ = [
    "LOG_LEVELS",
    "SUBSYSTEMS",
    "SubsystemLevels",
    "valid_log_level",
    "parse_and_set_debug_levels",
    "setup_logging",
]
