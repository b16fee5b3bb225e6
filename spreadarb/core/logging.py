"""
Logging configuration for spreadarb.

Supports:
- Local: Human-readable format
- Cloud: JSON format for log collectors

Level and environment come from Settings (LOG_LEVEL, SPREADARB_ENV).
File handler paths in logging.yaml are relative to the project root.
"""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Optional

import yaml

from spreadarb.core.config import Settings, find_project_root, get_settings

# Streaming and exchange clients log every frame at DEBUG
THIRD_PARTY_LOGGERS = ("websockets", "ccxt")


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Setup logging configuration.

    Args:
        config_path: Path to logging.yaml. Auto-detected if not provided.
        log_level: Override the level from settings (e.g. --verbose).
        settings: Application settings (cached settings if not provided).
    """
    settings = settings or get_settings()
    level = (log_level or settings.log_level).upper()
    root = find_project_root()

    if config_path is None and root is not None:
        config_path = str(root / "config" / "logging.yaml")

    if config_path and Path(config_path).exists():
        logging.config.dictConfig(_load_config(config_path, root))
    else:
        _setup_basic_logging(json_lines=not settings.is_local, level=level)

    logging.getLogger("spreadarb").setLevel(level)

    third_party_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def _load_config(config_path: str, root: Optional[Path]) -> dict[str, Any]:
    """Read a dictConfig file and create the directories its file handlers write to."""
    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    for handler in config.get("handlers", {}).values():
        if "filename" not in handler:
            continue
        path = Path(handler["filename"])
        if not path.is_absolute() and root is not None:
            path = root / path
        path.parent.mkdir(parents=True, exist_ok=True)
        handler["filename"] = str(path)

    return config


def _setup_basic_logging(json_lines: bool, level: str) -> None:
    """Setup basic logging when YAML config is not available."""
    if json_lines:
        fmt = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name. Will be prefixed with 'spreadarb.' if not already.

    Returns:
        Logger instance
    """
    if not name.startswith("spreadarb"):
        name = f"spreadarb.{name}"
    return logging.getLogger(name)


class LoggerMixin:
    """Mixin class to add logging capability to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
