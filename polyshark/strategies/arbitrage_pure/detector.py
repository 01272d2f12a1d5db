from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from polyshark.models.market import Market, Side
from polyshark.strategies.arbitrage_pure.types import ArbitrageSignal


class LoggerProtocol(Protocol):
    def log_debug(self, message: str) -> None: ...
    def log_info(self, message: str) -> None: ...
    def log_error(self, message: str) -> None: ...
    def log_warning(self, message: str) -> None: ...


@dataclass
class ConstraintChecker:
    """Checks the "outcome prices sum to 1" constraint for any number of outcomes."""

    min_spread_threshold: float = 0.02

    def __post_init__(self) -> None:
        if self.min_spread_threshold < 0:
            raise ValueError("min_spread_threshold must be >= 0")

    def check_violation(self, market: Market, timestamp: float = 0.0) -> Optional[ArbitrageSignal]:
        total = market.price_sum()
        spread = abs(1.0 - total)

        if spread <= self.min_spread_threshold:
            return None

        # Overpriced basket: sell every leg. Underpriced: buy every leg.
        recommended_side = Side.SELL if total > 1.0 else Side.BUY

        return ArbitrageSignal(
            market_id=market.id,
            spread=spread,
            edge=spread,
            recommended_side=recommended_side,
            outcomes=market.outcomes,
            outcome_prices=market.outcome_prices,
            token_ids=market.token_ids,
            timestamp=timestamp,
            question=market.question,
        )


@dataclass
class ArbitragePureDetector:
    min_spread_threshold: float = 0.02

    logger: Optional[LoggerProtocol] = None

    constraint_checker: ConstraintChecker = field(init=False)

    def __post_init__(self) -> None:
        self.constraint_checker = ConstraintChecker(self.min_spread_threshold)

    def scan(self, markets: Sequence[Market], timestamp: float = 0.0) -> List[ArbitrageSignal]:
        """Return every violation among active, order-accepting markets, in input order.

        Pure function of ``markets`` and ``timestamp``: no ranking, no state.
        """

        signals: List[ArbitrageSignal] = []
        tradable = 0

        for market in markets:
            if not (market.active and market.accepting_orders):
                continue
            tradable += 1

            signal = self.constraint_checker.check_violation(market, timestamp=timestamp)
            if signal is not None:
                signals.append(signal)

        if self.logger:
            self.logger.log_debug(
                f"🔍 [SCAN] {len(signals)} violations in {tradable}/{len(markets)} tradable markets"
            )

        return signals

    def expected_profit(
        self,
        signal: ArbitrageSignal,
        size: float,
        fee_rate: float,
        slippage: float,
    ) -> float:
        """Edge left after taker fees on every leg and per-unit slippage."""

        gross = signal.edge * size
        fee_cost = size * signal.price_sum * fee_rate
        slippage_cost = size * slippage
        return gross - fee_cost - slippage_cost

    def should_trade(
        self,
        signal: ArbitrageSignal,
        size: float,
        fee_rate: float,
        slippage: float,
        min_profit_threshold: float,
    ) -> bool:
        """Quick check on the bare edge formula.

        Admission itself is decided by ``DecisionGate``, which also prices
        adverse selection and wallet affordability.
        """

        return self.expected_profit(signal, size, fee_rate, slippage) > min_profit_threshold
