from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LogLevel(str, Enum):
    INFORMATION = "INFORMATION"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LogEntry:
    candle_index: int
    level: LogLevel
    message: str
