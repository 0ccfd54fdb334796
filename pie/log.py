# pie/log.py
# -*- coding: utf-8 -*-
"""
Logging module for pie
- init_logging(conf) sets up the root handlers from the 'logging' config section
- get_logger(name) returns a per-module logger
- set_level(level) for runtime adjustment (the CLI's --verbose)
- shutdown_logging() flushes and detaches handlers

Console output goes to stderr so stdout stays reserved for command output.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from logging import Logger
from pathlib import Path
from typing import Any, Dict, List, Optional

_GLOBAL: Dict[str, Any] = {
    "initialized": False,
    "handlers": [],
    "config_snapshot": None,
}

_DEFAULT_LOG_CONFIG: Dict[str, Any] = {
    "level": "WARNING",
    "logfile": None,
    "max_size_mb": 5,
    "backup_count": 3,
    "console": True,
    "console_colors": True,
}

_CONSOLE_FMT = "[%(levelname)s] %(name)s: %(message)s"
_FILE_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------- Formatters ----------------

class ColorFormatter(logging.Formatter):
    COLOR_MAP = {
        "DEBUG": "\033[94m",    # light blue
        "INFO": "\033[92m",     # green
        "WARNING": "\033[93m",  # yellow
        "ERROR": "\033[91m",    # red
        "CRITICAL": "\033[95m", # magenta
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt, style="%")
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        if self.use_colors and record.levelname in self.COLOR_MAP:
            return f"{self.COLOR_MAP[record.levelname]}{msg}{self.RESET}"
        return msg


# ---------------- Utilities ----------------

def _merge_with_defaults(conf: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    base = dict(_DEFAULT_LOG_CONFIG)
    if conf:
        base.update({k: v for k, v in conf.items() if v is not None or k == "logfile"})
    return base


def _level_str_to_int(level: Any) -> int:
    if isinstance(level, int):
        return level
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else logging.INFO


# ---------------- Initialization / teardown ----------------

def init_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """
    Configure the root logger from a 'logging' config section.
    Calling it again replaces the handlers installed by the previous call.
    """
    conf = _merge_with_defaults(config)
    shutdown_logging()

    root = logging.getLogger()
    level = _level_str_to_int(conf.get("level", "WARNING"))
    root.setLevel(level)

    handlers: List[logging.Handler] = []

    if conf.get("console", True):
        use_colors = bool(conf.get("console_colors", True)) and sys.stderr.isatty()
        ch = logging.StreamHandler(sys.stderr)
        ch.setFormatter(ColorFormatter(_CONSOLE_FMT, use_colors=use_colors))
        handlers.append(ch)

    logfile = conf.get("logfile")
    if logfile:
        try:
            Path(logfile).parent.mkdir(parents=True, exist_ok=True)
            fh = logging.handlers.RotatingFileHandler(
                logfile,
                maxBytes=int(conf.get("max_size_mb", 5)) * 1024 * 1024,
                backupCount=int(conf.get("backup_count", 3)),
                encoding="utf-8",
            )
            fh.setFormatter(logging.Formatter(_FILE_FMT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
            handlers.append(fh)
        except OSError:
            fallback = logging.StreamHandler(sys.stderr)
            fallback.setFormatter(logging.Formatter(_FILE_FMT))
            handlers.append(fallback)
            root.warning("Could not open log file '%s', falling back to stderr.", logfile)

    for h in handlers:
        root.addHandler(h)

    _GLOBAL["initialized"] = True
    _GLOBAL["handlers"] = handlers
    _GLOBAL["config_snapshot"] = conf
    root.debug("Logging initialized: %s", conf)


def shutdown_logging() -> None:
    root = logging.getLogger()
    for h in _GLOBAL.get("handlers") or []:
        h.flush()
        h.close()
        root.removeHandler(h)
    _GLOBAL["handlers"] = []
    _GLOBAL["initialized"] = False


def set_level(level: Any) -> None:
    logging.getLogger().setLevel(_level_str_to_int(level))


def get_logger(name: str) -> Logger:
    """
    Return a logger under the pie namespace.
    """
    if name != "pie" and not name.startswith("pie."):
        name = f"pie.{name}"
    return logging.getLogger(name)
