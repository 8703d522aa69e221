from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _ts() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _amount(x: Decimal) -> str:
    return f"{x:,.4f}"


@dataclass
class ConsoleLogger:
    log_dir: str = "logs"
    log_file: str = "backtest.log"
    log_level: str = "info"

    console: Console = field(default_factory=Console, init=False)
    file_logger: logging.Logger = field(default_factory=lambda: logging.getLogger("marginsim"), init=False)

    def __post_init__(self) -> None:
        os.makedirs(self.log_dir, exist_ok=True)

        level = _LEVELS.get(self.log_level.strip().lower(), logging.INFO)
        self.file_logger.setLevel(level)
        self.file_logger.propagate = False
        for handler in self.file_logger.handlers:
            handler.close()
        self.file_logger.handlers.clear()

        fh = logging.FileHandler(os.path.join(self.log_dir, self.log_file), encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        self.file_logger.addHandler(fh)

        self._print_header()

    def _print_header(self) -> None:
        title = Text("MARGIN BACKTEST", style="bold cyan")
        self.console.print(Panel(title, expand=False, border_style="cyan"))

    def _log(self, message: str, *, level: int = logging.INFO, style: Optional[str] = None) -> None:
        if level < self.file_logger.level:
            return
        prefix = f"[{_ts()}] "
        if style:
            self.console.print(prefix + message, style=style)
        else:
            self.console.print(prefix + message)
        self.file_logger.log(level, message)

    def log_info(self, message: str) -> None:
        self._log(message)

    def log_warning(self, message: str) -> None:
        self._log(f"⚠️  {message}", level=logging.WARNING, style="bold yellow")

    def log_error(self, message: str) -> None:
        self._log(f"❌ {message}", level=logging.ERROR, style="bold red")

    def log_balances(self, candle_index: int, base_balance: Decimal, quote_balance: Decimal, open_positions: int) -> None:
        self._log(
            f"💰 Candle {candle_index} | base={_amount(base_balance)} quote={_amount(quote_balance)} "
            f"| Open Positions: {open_positions}",
            style="green",
        )

    def log_summary(
        self,
        total_positions: int,
        liquidated: int,
        base_balance: Decimal,
        quote_balance: Decimal,
        combined_quote: Decimal,
    ) -> None:
        self._log(
            f"📌 SUMMARY | positions={total_positions} liquidated={liquidated} "
            f"base={_amount(base_balance)} quote={_amount(quote_balance)} value={_amount(combined_quote)} quote",
            style="bold cyan",
        )
