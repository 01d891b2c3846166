#!/usr/bin/env python3
"""
Centralized logging setup for the whole package.

Usage:
    from stock_wallets.utils.logging_utils import setup_logging
    setup_logging()  # preferably at app entry points
"""

import logging
from typing import Optional


DEFAULT_LEVEL = logging.INFO
DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None, config=None):
    """Initialize root logging configuration once.

    - Level/format come from the arguments, then from ``config`` (a
      ServiceConfig), then from ServiceConfig.from_env().
    - Safe to call multiple times; only configures when no handlers exist.
    """
    root = logging.getLogger()
    if root.handlers:
        if level:
            root.setLevel(_to_level(level))
        return

    if config is None and (not level or not fmt):
        from ..data.config import ServiceConfig
        config = ServiceConfig.from_env()

    log_level = _to_level(level or (config.log_level if config else DEFAULT_LEVEL))
    log_format = fmt or (config.log_format if config else DEFAULT_FORMAT)

    handlers = [logging.StreamHandler()]
    if config is not None and config.enable_file_logging:
        handlers.append(logging.FileHandler(config.log_file_path, encoding='utf-8'))

    logging.basicConfig(level=log_level, format=log_format, handlers=handlers)


def _to_level(level_val):
    if isinstance(level_val, int):
        return level_val
    if isinstance(level_val, str):
        return getattr(logging, level_val.upper(), DEFAULT_LEVEL)
    return DEFAULT_LEVEL
