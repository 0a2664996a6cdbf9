# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# logger.py
# -----------------------------------------------------------------------------
# Purpose:
#   Logging setup for the simulator: console output plus an optional
#   timestamped log file.
#
# Design notes:
#   - Modules log through logging.getLogger(__name__), which lands under the
#     "checkout_sim" logger configured here.
#   - The file handler always records DEBUG so event-level traces survive
#     a quiet console.
#
# Usage:
#   from checkout_sim.logger import setup_logger
#   setup_logger(level=logging.DEBUG, log_to_file=True)
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging, sys
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_NAME = "checkout_sim"


def setup_logger(name: str = DEFAULT_NAME, level: int = logging.INFO,
                 log_to_file: bool = False, log_dir: str = "logs") -> logging.Logger:
    """
    Configure a logger with console and optional file output.

    Args:
        name: Logger name.
        level: Console level (DEBUG, INFO, WARNING, ERROR).
        log_to_file: Also write a timestamped file in log_dir.
        log_dir: Directory for log files.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if log_to_file else level)
    logger.handlers.clear()

    detailed = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                                 datefmt="%Y-%m-%d %H:%M:%S")
    simple = logging.Formatter("%(levelname)s - %(message)s")

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(simple)
    logger.addHandler(console)

    if log_to_file:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        log_file = path / f"simulation_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(detailed)
        logger.addHandler(fh)
        logger.info("Logging to file: %s", log_file)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Existing logger by name, set up with defaults on first use."""
    logger = logging.getLogger(name or DEFAULT_NAME)
    if not logger.handlers:
        return setup_logger(name or DEFAULT_NAME)
    return logger
