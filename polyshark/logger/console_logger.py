from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
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


def _usd(x: float) -> str:
    return f"${x:,.2f}"


@dataclass
class ConsoleLogger:
    log_dir: str = "logs"
    log_file: str = "bot.log"
    log_level: str = "info"

    console: Console = field(default_factory=lambda: Console(encoding="utf-8"), init=False)
    file_logger: logging.Logger = field(default_factory=lambda: logging.getLogger("polyshark"), init=False)

    def __post_init__(self) -> None:
        os.makedirs(self.log_dir, exist_ok=True)

        self._level = _LEVELS.get(self.log_level.strip().lower(), logging.INFO)

        self.file_logger.setLevel(self._level)
        self.file_logger.propagate = False
        self.file_logger.handlers.clear()

        fh = logging.FileHandler(
            os.path.join(self.log_dir, self.log_file),
            encoding="utf-8",
        )
        fh.setLevel(self._level)
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        self.file_logger.addHandler(fh)

        self._print_header()

    def _print_header(self) -> None:
        title = Text("POLYSHARK - ARBITRAGE EXECUTION SIMULATOR", style="bold cyan")
        self.console.print(Panel(title, expand=False, border_style="cyan"))

    def _log(self, message: str, *, level: int = logging.INFO, style: Optional[str] = None) -> None:
        if level < self._level:
            return

        prefix = f"[{_ts()}] "
        if style:
            self.console.print(prefix + message, style=style)
        else:
            self.console.print(prefix + message)
        self.file_logger.log(level, message)

    def log_debug(self, message: str) -> None:
        self._log(message, level=logging.DEBUG, style="dim")

    def log_info(self, message: str) -> None:
        self._log(message)

    def log_warning(self, message: str) -> None:
        self._log(message, level=logging.WARNING, style="yellow")

    def log_error(self, message: str) -> None:
        self._log(f"❌ {message}", level=logging.ERROR, style="bold red")

    def log_summary(self, total_trades: int, wins: int, fees: float, pnl: float, equity: float) -> None:
        self._log(
            f"📌 SUMMARY | trades={total_trades} wins={wins} fees={_usd(fees)} pnl={_usd(pnl)} equity={_usd(equity)}",
            style="bold cyan",
        )
