"""
Numeric log levels for tts-gateway.

    1 = MINIMAL  - startup, shutdown, failures
    2 = NORMAL   - request lifecycle, credential refresh (default)
    3 = VERBOSE  - per-batch timing
    4 = DEBUG    - per-call tracing

Each level maps onto a standard ``logging`` level so handlers can filter:
MINIMAL -> WARNING, NORMAL -> INFO, VERBOSE -> DEBUG, DEBUG -> 5 (TRACE).
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


TRACE = logging.DEBUG - 5


class LogLevel(IntEnum):
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: TRACE,
}

LEVEL_NAMES = {level.value: level.name for level in LogLevel}

_NAME_MAP = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    # Python level names
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert an int, a level name or a numeric string to LogLevel.

    Python logging integers are accepted too (WARNING -> MINIMAL,
    INFO -> NORMAL, lower -> DEBUG). Anything unparseable is NORMAL.

        >>> coerce_level("3")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level("info")
        <LogLevel.NORMAL: 2>
    """
    if isinstance(value, LogLevel):
        return value
    if isinstance(value, bool):
        return LogLevel.NORMAL
    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG
    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit():
            return coerce_level(int(text))
        return _NAME_MAP.get(text, LogLevel.NORMAL)
    return LogLevel.NORMAL
