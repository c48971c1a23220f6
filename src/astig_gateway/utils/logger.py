# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

import os
import sys

from loguru import logger

_DEFAULT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"


def configure_logging(level: str = "INFO", serialize: bool = False) -> None:
    """
    Replaces loguru's default sink with a single stderr sink.

    Args:
        level: Minimum level to emit.
        serialize: Emit one JSON object per record instead of formatted text.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_DEFAULT_FORMAT,
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )


configure_logging(
    level=os.getenv("LOG_LEVEL", "INFO"),
    serialize=os.getenv("LOG_JSON", "").strip().lower() in {"1", "true", "yes"},
)

__all__ = ["configure_logging", "logger"]
