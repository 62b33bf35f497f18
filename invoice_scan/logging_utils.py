# invoice_scan/logging_utils.py
"""Shared logger factory: stdout handler, LOG_LEVEL and optional LOG_FILE."""
from __future__ import annotations

import logging
import os
from typing import Optional, Union

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(value: Optional[Union[str, int]]) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``invoice_scan`` namespace.

    The namespace root gets its handlers once; child loggers propagate to it,
    so calling this from every module never duplicates output.
    """
    root = logging.getLogger("invoice_scan")
    if not getattr(root, "_invoice_scan_configured", False):
        level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
        root.setLevel(level)
        formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

        sh = logging.StreamHandler()
        sh.setFormatter(formatter)
        root.addHandler(sh)

        log_file = os.environ.get("LOG_FILE")
        if log_file:
            try:
                fh = logging.FileHandler(log_file, encoding="utf-8")
                fh.setFormatter(formatter)
                root.addHandler(fh)
            except OSError:
                root.warning("LOG_FILE could not be opened; continuing without file logging")

        root.propagate = False
        setattr(root, "_invoice_scan_configured", True)

    if name == "invoice_scan" or name.startswith("invoice_scan."):
        return logging.getLogger(name)
    return logging.getLogger(f"invoice_scan.{name}")
