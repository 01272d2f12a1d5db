from dataclasses import dataclass, field, replace
from typing import List, Sequence, Tuple

import pytest
import requests

from polyshark.core.bot_config import BotConfig
from polyshark.core.polymarket_client import MarketSnapshot
from polyshark.models.market import Market, OrderBook
from polyshark.services.arbitrage_bot import ArbitrageBotService


@dataclass
class StubLogger:
    infos: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def log_debug(self, message: str) -> None: ...

    def log_info(self, message: str) -> None:
        self.infos.append(message)

    def log_warning(self, message: str) -> None:
        self.warnings.append(message)

    def log_error(self, message: str) -> None:
        self.errors.append(message)


class StubProvider:
    def __init__(self, snapshots: Sequence[object]):
        self._snapshots = list(snapshots)

    def fetch(self) -> MarketSnapshot:
        item = self._snapshots.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _config(**overrides: object) -> BotConfig:
    cfg = BotConfig(
        gamma_host="http://gamma.invalid",
        clob_host="http://clob.invalid",
        starting_capital=1_000.0,
        min_spread_threshold=0.02,
        min_profit_threshold=0.5,
        risk_pct=1.0,
        liquidity_pct=0.1,
        max_spread=0.1,
        confidence_cap=200.0,
        slippage_k=0.01,
        slippage_alpha=1.5,
        latency_mean_ms=0.0,
        latency_std_ms=0.0,
        adverse_move_mean=0.0,
        adverse_move_std=0.0,
        exit_spread_threshold=0.005,
        max_hold_seconds=600.0,
        target_spread=0.02,
        market_limit=10,
        tick_interval_ms=1,
        seed=1,
        mock_mode=True,
        log_level="info",
        gamma_rps=5,
    )
    return replace(cfg, **overrides)


def _market(market_id: str, yes: float, no: float) -> Market:
    return Market(
        id=market_id,
        outcomes=("Yes", "No"),
        outcome_prices=(yes, no),
        token_ids=(f"{market_id}-yes", f"{market_id}-no"),
        liquidity=10_000.0,
    )


def _books(market_id: str, yes: Tuple[float, float], no: Tuple[float, float]) -> dict:
    return {
        f"{market_id}-yes": OrderBook.from_levels(f"{market_id}-yes", bids=[(yes[0], 1_000)], asks=[(yes[1], 1_000)]),
        f"{market_id}-no": OrderBook.from_levels(f"{market_id}-no", bids=[(no[0], 1_000)], asks=[(no[1], 1_000)]),
    }


def _entry_snapshot(timestamp: float = 0.0) -> MarketSnapshot:
    return MarketSnapshot(
        timestamp=timestamp,
        markets=[_market("m1", 0.40, 0.50)],
        books=_books("m1", yes=(0.39, 0.40), no=(0.49, 0.50)),
    )


def test_tick_buys_underpriced_basket() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(), StubLogger())

    report = bot.run_tick(_entry_snapshot())

    assert len(report.signals) == 1
    assert report.admitted == 1
    assert [r.success for r in report.executions] == [True, True]
    # size is capped by confidence: (0.1 / 0.1) * 200
    assert report.executions[0].filled_size == pytest.approx(200.0)
    assert report.ledger.cash == pytest.approx(1_000.0 - 200 * 0.40 - 200 * 0.50)
    assert len(report.ledger.positions) == 2
    assert report.closed_trades == []


def test_mean_reversion_closes_basket_for_profit() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(), StubLogger())
    bot.run_tick(_entry_snapshot())

    reverted = MarketSnapshot(
        timestamp=30.0,
        markets=[_market("m1", 0.45, 0.55)],
        books=_books("m1", yes=(0.45, 0.46), no=(0.55, 0.56)),
    )
    report = bot.run_tick(reverted)

    assert report.signals == []
    assert {t.reason for t in report.closed_trades} == {"MEAN_REVERTED"}
    assert sum(t.pnl for t in report.closed_trades) == pytest.approx(20.0)
    assert report.ledger.cash == pytest.approx(1_020.0)
    assert report.ledger.positions == ()
    assert report.ledger.win_rate == 1.0


def test_max_hold_forces_exit() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(), StubLogger())
    bot.run_tick(_entry_snapshot())

    report = bot.run_tick(_entry_snapshot(timestamp=601.0))

    assert {t.reason for t in report.closed_trades} == {"MAX_HOLD"}
    assert report.ledger.win_rate == 0.0
    assert report.ledger.cash >= 0.0


def test_open_market_is_not_traded_again() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(), StubLogger())
    bot.run_tick(_entry_snapshot())

    report = bot.run_tick(_entry_snapshot(timestamp=10.0))

    assert report.skipped == {"m1": "POSITION_OPEN"}
    assert report.decisions == []


def test_later_signals_see_cash_spent_by_earlier_fills() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(starting_capital=100.0, confidence_cap=100.0), StubLogger())
    books = {**_books("m1", yes=(0.39, 0.40), no=(0.49, 0.50)), **_books("m2", yes=(0.39, 0.40), no=(0.49, 0.50))}
    snapshot = MarketSnapshot(timestamp=0.0, markets=[_market("m1", 0.40, 0.50), _market("m2", 0.40, 0.50)], books=books)

    report = bot.run_tick(snapshot)

    assert [d.reason for d in report.decisions] == ["ADMITTED", "INSUFFICIENT_FUNDS"]
    assert {p.market_id for p in report.ledger.positions} == {"m1"}
    assert report.ledger.cash >= 0.0


def test_missing_book_skips_only_that_market() -> None:
    logger = StubLogger()
    bot = ArbitrageBotService(StubProvider([]), _config(), logger)
    books = _books("m1", yes=(0.39, 0.40), no=(0.49, 0.50))
    books.update({"m2-yes": OrderBook.from_levels("m2-yes", asks=[(0.40, 1_000)])})
    snapshot = MarketSnapshot(timestamp=0.0, markets=[_market("m2", 0.40, 0.50), _market("m1", 0.40, 0.50)], books=books)

    report = bot.run_tick(snapshot)

    assert report.skipped == {"m2": "STALE_OR_MISSING_MARKET_DATA"}
    assert {p.market_id for p in report.ledger.positions} == {"m1"}
    assert len(logger.warnings) == 1


def test_start_runs_ticks_and_survives_feed_errors() -> None:
    logger = StubLogger()
    provider = StubProvider([requests.ConnectionError("down"), _entry_snapshot()])
    bot = ArbitrageBotService(provider, _config(), logger)

    bot.start(max_ticks=2)

    assert len(bot.get_reports()) == 1
    assert len(logger.errors) == 1
    assert len(bot.wallet.get_open_positions()) == 2


def test_leg_move_with_unchanged_spread_closes_nothing() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(), StubLogger())
    bot.run_tick(_entry_snapshot())

    # yes rallied, no fell: the basket still sums to 0.90.
    moved = MarketSnapshot(
        timestamp=30.0,
        markets=[_market("m1", 0.45, 0.45)],
        books=_books("m1", yes=(0.44, 0.45), no=(0.44, 0.45)),
    )
    report = bot.run_tick(moved)

    assert report.closed_trades == []
    assert {p.token_id for p in report.ledger.positions} == {"m1-yes", "m1-no"}


def test_target_spread_closes_whole_basket() -> None:
    bot = ArbitrageBotService(StubProvider([]), _config(), StubLogger())
    bot.run_tick(_entry_snapshot())

    narrowed = MarketSnapshot(
        timestamp=30.0,
        markets=[_market("m1", 0.44, 0.545)],
        books=_books("m1", yes=(0.44, 0.45), no=(0.54, 0.55)),
    )
    report = bot.run_tick(narrowed)

    assert report.signals == []
    assert sorted(t.token_id for t in report.closed_trades) == ["m1-no", "m1-yes"]
    assert {t.reason for t in report.closed_trades} == {"TARGET_HIT"}
    assert report.ledger.positions == ()


class RepeatingProvider:
    def __init__(self, snapshot: MarketSnapshot):
        self.snapshot = snapshot

    def fetch(self) -> MarketSnapshot:
        return self.snapshot


def test_report_history_is_bounded() -> None:
    bot = ArbitrageBotService(RepeatingProvider(_entry_snapshot()), _config(), StubLogger(), report_history=5)

    bot.start(max_ticks=20)

    assert len(bot.get_reports()) == 5

    with pytest.raises(ValueError):
        ArbitrageBotService(StubProvider([]), _config(), StubLogger(), report_history=0)
