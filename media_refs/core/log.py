# media_refs/core/log.py
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

ROOT_LOGGER = "media_refs"

_DEBUG_HANDLER: logging.Handler | None = None


def debug_enabled() -> bool:
    return os.getenv("MEDIA_REFS_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def get_logger(name: str) -> logging.Logger:
    """
    Child of the package logger. Attaches the rotating debug file handler
    once, and only when MEDIA_REFS_DEBUG is set.
    """
    if debug_enabled():
        _install_debug_handler()
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _install_debug_handler() -> None:
    global _DEBUG_HANDLER
    if _DEBUG_HANDLER is not None:
        return

    root = logging.getLogger(ROOT_LOGGER)
    log_path = os.path.join("logs", "media_refs_debug.log")
    try:
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    except OSError:
        # unwritable cwd: keep logging to whatever handlers the host configured
        return

    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="(%Y-%m-%d %H:%M:%S)",
        )
    )
    handler.setLevel(logging.DEBUG)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    _DEBUG_HANDLER = handler
