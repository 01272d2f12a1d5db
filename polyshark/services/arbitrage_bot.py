from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Protocol

import requests

from polyshark.core.bot_config import BotConfig
from polyshark.core.errors import StaleOrMissingMarketData
from polyshark.core.execution import ExecutionEngine
from polyshark.core.fees import FeeModel
from polyshark.core.latency import LatencyModel
from polyshark.core.polymarket_client import MarketSnapshot, SnapshotProvider
from polyshark.core.risk_manager import RiskManager
from polyshark.core.slippage import SlippageModel
from polyshark.core.wallet import Wallet
from polyshark.models.market import Market, OrderBook
from polyshark.models.trade import Position, Trade
from polyshark.strategies.arbitrage_pure.detector import ArbitragePureDetector
from polyshark.strategies.arbitrage_pure.sizing import DecisionGate, PositionSizer
from polyshark.strategies.arbitrage_pure.types import ExecutionResult, TickReport, TradeDecision


class Logger(Protocol):
    def log_debug(self, message: str) -> None: ...

    def log_info(self, message: str) -> None: ...

    def log_warning(self, message: str) -> None: ...

    def log_error(self, message: str) -> None: ...


@dataclass
class ArbitrageBotService:
    """Runs the simulator one tick at a time: scan, gate, execute, exit-check.

    The wallet is owned by this service and only mutated inside ``run_tick``;
    reports carry an immutable ledger snapshot taken at the end of each tick.
    """

    provider: SnapshotProvider
    config: BotConfig
    logger: Logger
    report_history: int = 100

    wallet: Wallet = field(init=False)
    detector: ArbitragePureDetector = field(init=False)
    gate: DecisionGate = field(init=False)
    engine: ExecutionEngine = field(init=False)
    exits: RiskManager = field(init=False)

    _running: bool = field(default=False, init=False)
    _reports: Deque[TickReport] = field(init=False, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.report_history <= 0:
            raise ValueError("report_history must be > 0")
        # Only the most recent reports are kept.
        self._reports = deque(maxlen=self.report_history)

        cfg = self.config
        latency = LatencyModel(
            delay_mean_ms=cfg.latency_mean_ms,
            delay_std_ms=cfg.latency_std_ms,
            adverse_move_mean=cfg.adverse_move_mean,
            adverse_move_std=cfg.adverse_move_std,
            seed=cfg.seed,
        )

        self.wallet = Wallet(starting_balance=cfg.starting_capital)
        self.detector = ArbitragePureDetector(
            min_spread_threshold=cfg.min_spread_threshold,
            logger=self.logger,
        )
        self.gate = DecisionGate(
            sizer=PositionSizer(
                risk_pct=cfg.risk_pct,
                liquidity_pct=cfg.liquidity_pct,
                max_spread=cfg.max_spread,
                confidence_cap=cfg.confidence_cap,
            ),
            slippage_model=SlippageModel(k=cfg.slippage_k, alpha=cfg.slippage_alpha),
            latency_model=latency,
            min_profit_threshold=cfg.min_profit_threshold,
            logger=self.logger,
        )
        self.engine = ExecutionEngine(latency_model=latency, logger=self.logger)
        self.exits = RiskManager(
            exit_spread_threshold=cfg.exit_spread_threshold,
            max_hold_seconds=cfg.max_hold_seconds,
            target_spread=cfg.target_spread,
        )

    def start(self, max_ticks: Optional[int] = None) -> None:
        self._running = True
        self._stop_event.clear()

        self.logger.log_info(
            f"Starting simulator | balance=${self.wallet.cash:.2f} mock={self.config.mock_mode}"
        )

        ticks = 0
        while self._running:
            started = time.monotonic()
            try:
                snapshot = self.provider.fetch()
            except (requests.RequestException, ValueError) as e:
                self.logger.log_error(f"snapshot fetch failed, skipping tick: {e}")
            else:
                self.run_tick(snapshot)

            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break

            elapsed = time.monotonic() - started
            sleep_for = max(0.0, (self.config.tick_interval_ms / 1000.0) - elapsed)
            # stop() interrupts the wait.
            self._stop_event.wait(timeout=sleep_for)

        self._running = False

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()
        self.logger.log_info("Stopping simulator...")

    def run_tick(self, snapshot: MarketSnapshot) -> TickReport:
        now = snapshot.timestamp
        markets_by_id: Dict[str, Market] = {m.id: m for m in snapshot.markets}
        marks = _mark_prices(snapshot.books)

        decisions: List[TradeDecision] = []
        executions: List[ExecutionResult] = []
        closed: List[Trade] = []
        skipped: Dict[str, str] = {}

        signals = self.detector.scan(snapshot.markets, timestamp=now)

        # Markets are handled in feed order so later signals see cash spent by earlier fills.
        for signal in signals:
            market = markets_by_id[signal.market_id]

            if self.wallet.get_open_positions_for_market(market.id):
                skipped[market.id] = "POSITION_OPEN"
                continue

            try:
                books = _books_for(market, snapshot.books)
            except StaleOrMissingMarketData as e:
                skipped[market.id] = e.code
                self.logger.log_warning(f"⚠️ skipping {market.id}: {e}")
                continue

            self.logger.log_info(
                f"🔍 {market.question or market.id}: sum={signal.price_sum:.4f} "
                f"spread={signal.spread * 100:.2f}% side={signal.recommended_side.value}"
            )

            decision = self.gate.evaluate(signal, market, self.wallet, self.wallet.equity(marks), books)
            decisions.append(decision)
            if not decision.admitted:
                continue

            results = self.engine.execute_basket(books, signal, decision.size, self.wallet, FeeModel.from_market(market))
            executions.extend(results)
            if all(r.success for r in results):
                self.logger.log_info(
                    f"⚡ EXECUTED {market.id} legs={len(results)} size={results[0].filled_size:.2f} "
                    f"cost=${sum(r.total_cost for r in results):.2f} cash=${self.wallet.cash:.2f}"
                )

        for market_id, legs in _group_by_market(self.wallet.get_open_positions()).items():
            market = markets_by_id.get(market_id)
            if market is None or any(p.token_id not in snapshot.books for p in legs):
                skipped.setdefault(market_id, StaleOrMissingMarketData.code)
                continue

            action = self.exits.check_basket(legs, market.get_spread(), now)
            if action == "HOLD":
                continue

            results, trades = self.engine.close_basket(
                snapshot.books, legs, self.wallet, FeeModel.from_market(market), timestamp=now, reason=action
            )
            executions.extend(results)
            for trade in trades:
                closed.append(trade)
                self.logger.log_info(
                    f"🏁 CLOSED {trade.token_id} reason={trade.reason} pnl=${trade.pnl:.4f} "
                    f"net=${trade.net_pnl:.4f} cash=${self.wallet.cash:.2f}"
                )

        report = TickReport(
            timestamp=now,
            signals=signals,
            decisions=decisions,
            executions=executions,
            closed_trades=closed,
            ledger=self.wallet.snapshot(marks),
            skipped=skipped,
        )
        self._reports.append(report)

        self.logger.log_info(
            f"📊 tick signals={len(signals)} admitted={report.admitted} "
            f"closed={len(closed)} equity=${report.ledger.equity:.2f} win_rate={report.ledger.win_rate * 100:.1f}%"
        )
        return report

    def get_reports(self) -> List[TickReport]:
        return list(self._reports)


def _books_for(market: Market, books: Dict[str, OrderBook]) -> Dict[str, OrderBook]:
    if not market.token_ids:
        raise StaleOrMissingMarketData(f"market {market.id} has no token ids")

    missing = [t for t in market.token_ids if t not in books]
    if missing:
        raise StaleOrMissingMarketData(f"no book for {', '.join(missing)}")
    return {t: books[t] for t in market.token_ids}


def _mark_prices(books: Dict[str, OrderBook]) -> Dict[str, float]:
    marks: Dict[str, float] = {}
    for token_id, book in books.items():
        mid = book.midpoint()
        if mid is not None:
            marks[token_id] = mid
    return marks


def _group_by_market(positions: List[Position]) -> Dict[str, List[Position]]:
    grouped: Dict[str, List[Position]] = {}
    for position in positions:
        grouped.setdefault(position.market_id, []).append(position)
    return grouped
