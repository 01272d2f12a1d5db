from __future__ import annotations

import signal

from polyshark.core.bot_config import BotConfig
from polyshark.core.polymarket_client import PolymarketClientService
from polyshark.core.rate_limiter import RateLimiter
from polyshark.logger.console_logger import ConsoleLogger
from polyshark.services.arbitrage_bot import ArbitrageBotService


def main() -> None:
    cfg = BotConfig.load()
    cfg.validate()

    logger = ConsoleLogger(log_level=cfg.log_level)

    provider = PolymarketClientService(
        gamma_host=cfg.gamma_host,
        clob_host=cfg.clob_host,
        mock_mode=cfg.mock_mode,
        market_limit=cfg.market_limit,
        seed=cfg.seed,
        logger=logger,
        gamma_rate_limiter=RateLimiter(max_calls=cfg.gamma_rps, period_seconds=1.0),
    )

    bot = ArbitrageBotService(provider, cfg, logger)

    def _request_stop(signum, frame) -> None:
        bot.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _request_stop)

    bot.start()

    reports = bot.get_reports()
    ledger = reports[-1].ledger if reports else bot.wallet.snapshot()
    logger.log_summary(
        ledger.total_trades,
        ledger.winning_trades,
        ledger.total_fees_paid,
        ledger.pnl,
        ledger.equity,
    )


if __name__ == "__main__":
    main()
