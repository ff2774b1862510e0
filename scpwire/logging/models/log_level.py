from __future__ import annotations

from enum import Enum
from typing import Literal


LogLevelName = Literal[
    'trace',
    'debug',
    'info',
    'warn',
    'error',
    'critical',
    'fatal',
]


class LogLevel(Enum):
    TRACE = 'TRACE'
    DEBUG = 'DEBUG'
    INFO = 'INFO'
    WARN = 'WARN'
    ERROR = 'ERROR'
    CRITICAL = 'CRITICAL'
    FATAL = 'FATAL'

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self]

    @classmethod
    def to_level(cls, level_name: LogLevelName | str) -> LogLevel:
        """Unknown names fall back to INFO"""

        return cls.__members__.get(level_name.upper(), cls.INFO)


_LEVEL_RANKS = {level: rank for rank, level in enumerate(LogLevel)}
