"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

ScalpScan Logging Utilities
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional

from core import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-request detector traffic would drown the pipeline log
QUIET_LOGGERS = ["httpx", "httpcore", "uvicorn.access"]


def setup_logging(settings: Optional[config.Settings] = None) -> None:
    """
    Configure the root logger for the service.

    Writes to stdout, to a daily rotated scalpscan.log holding descent
    diagnostics and stage timings, and to a size-rotated scalpscan_errors.log
    that only receives detector outages and crashes. Debug mode forces the
    DEBUG level so every confidence attempt is logged.
    """
    settings = settings or config.settings
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper())

    Path(settings.log_dir).mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(settings, level):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("scalpscan").setLevel(level)


def _build_handlers(settings: config.Settings, level: int) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    pipeline_log = logging.handlers.TimedRotatingFileHandler(
        filename=os.path.join(settings.log_dir, "scalpscan.log"),
        when=settings.log_rotation_interval,
        backupCount=settings.log_rotation_count,
        encoding="utf-8",
    )
    pipeline_log.setLevel(level)

    error_log = logging.handlers.RotatingFileHandler(
        filename=os.path.join(settings.log_dir, "scalpscan_errors.log"),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    error_log.setLevel(logging.ERROR)

    return [console, pipeline_log, error_log]


def get_logger(name: str) -> logging.Logger:
    """Logger under the "scalpscan.<area>" hierarchy."""
    return logging.getLogger(name)
