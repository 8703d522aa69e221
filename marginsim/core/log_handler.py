from __future__ import annotations

from marginsim.core.backtest_state import BacktestState
from marginsim.models.log import LogEntry, LogLevel


def add_log_entry(
    state: BacktestState,
    message: str,
    candle_index: int,
    level: LogLevel = LogLevel.INFORMATION,
) -> LogEntry:
    entry = LogEntry(candle_index=candle_index, level=level, message=message)
    state.log_entries.append(entry)

    if state.logger is not None:
        line = f"[candle {candle_index}] {message}"
        if level == LogLevel.ERROR:
            state.logger.log_error(line)
        elif level == LogLevel.WARNING:
            state.logger.log_warning(line)
        else:
            state.logger.log_info(line)
    return entry
