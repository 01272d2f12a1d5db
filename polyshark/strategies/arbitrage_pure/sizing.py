from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from polyshark.core.fees import FeeModel
from polyshark.core.fills import FillModel
from polyshark.core.latency import LatencyModel
from polyshark.core.slippage import SlippageModel
from polyshark.core.wallet import Wallet
from polyshark.models.market import Market, OrderBook
from polyshark.strategies.arbitrage_pure.detector import LoggerProtocol
from polyshark.strategies.arbitrage_pure.types import ArbitrageSignal, DecisionReason, TradeDecision


@dataclass
class PositionSizer:
    risk_pct: float = 0.02
    liquidity_pct: float = 0.10
    max_spread: float = 0.10
    confidence_cap: float = 500.0

    def __post_init__(self) -> None:
        if self.max_spread <= 0:
            raise ValueError("max_spread must be > 0")
        if min(self.risk_pct, self.liquidity_pct, self.confidence_cap) < 0:
            raise ValueError("risk_pct, liquidity_pct and confidence_cap must be >= 0")

    def size(self, equity: float, liquidity: float, spread: float) -> float:
        """Units per leg. Zero means "do not trade"."""

        by_equity = max(0.0, equity * self.risk_pct)
        by_liquidity = max(0.0, liquidity * self.liquidity_pct)
        by_confidence = max(0.0, (spread / self.max_spread) * self.confidence_cap)
        return min(by_equity, by_liquidity, by_confidence)


@dataclass
class DecisionGate:
    """Admits a signal only when its expected profit clears a strictly positive bar.

    Costs are estimated pre-trade: taker fees on every leg, parametric slippage
    from market liquidity, and the latency model's mean adverse move. When books
    are supplied the size is first cut down to what every leg can actually fill.
    """

    sizer: PositionSizer
    slippage_model: SlippageModel
    latency_model: Optional[LatencyModel] = None
    min_profit_threshold: float = 0.5

    logger: Optional[LoggerProtocol] = None

    def __post_init__(self) -> None:
        if self.min_profit_threshold <= 0:
            raise ValueError("min_profit_threshold must be > 0")

    def evaluate(
        self,
        signal: ArbitrageSignal,
        market: Market,
        wallet: Wallet,
        equity: float,
        books: Optional[Mapping[str, OrderBook]] = None,
    ) -> TradeDecision:
        size = self.sizer.size(equity, market.liquidity, signal.spread)
        if size <= 0:
            return self._decision(signal, market, 0.0, "NON_POSITIVE_SIZE")

        if books:
            for token_id in signal.token_ids:
                book = books.get(token_id)
                if book is None:
                    continue
                size = min(size, FillModel.filled_size(book, size, signal.recommended_side))
            if size <= 0:
                return self._decision(signal, market, 0.0, "NO_LIQUIDITY")

        decision = self._decision(signal, market, size, "ADMITTED")
        if decision.expected_profit <= self.min_profit_threshold:
            reason: DecisionReason = "BELOW_PROFIT_THRESHOLD"
        elif not wallet.can_afford(decision.notional_estimate + decision.fee_estimate):
            reason = "INSUFFICIENT_FUNDS"
        else:
            reason = "ADMITTED"

        if reason != "ADMITTED":
            decision = self._decision(signal, market, size, reason)

        if self.logger:
            self.logger.log_debug(
                f"[GATE] {signal.market_id} size={size:.2f} edge=${decision.gross_edge:.4f} "
                f"costs=${decision.expected_costs:.4f} profit=${decision.expected_profit:.4f} -> {reason}"
            )
        return decision

    def _decision(self, signal: ArbitrageSignal, market: Market, size: float, reason: DecisionReason) -> TradeDecision:
        fee_rate = FeeModel.from_market(market).taker_rate()
        notional = size * signal.price_sum

        adverse = 0.0
        if self.latency_model is not None:
            adverse = notional * self.latency_model.expected_adverse_move()

        return TradeDecision(
            signal=signal,
            size=size,
            gross_edge=signal.spread * size,
            fee_estimate=notional * fee_rate,
            slippage_estimate=size * self.slippage_model.estimate(size, market.liquidity),
            adverse_selection_estimate=adverse,
            notional_estimate=notional,
            admitted=reason == "ADMITTED",
            reason=reason,
        )
