from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from polyshark.core.wallet import LedgerSnapshot
from polyshark.models.market import Side
from polyshark.models.trade import Trade


DecisionReason = Literal[
    "ADMITTED",
    "NON_POSITIVE_SIZE",
    "NO_LIQUIDITY",
    "BELOW_PROFIT_THRESHOLD",
    "INSUFFICIENT_FUNDS",
]


@dataclass(frozen=True)
class ArbitrageSignal:
    """Probability-sum violation found in one market during one tick."""

    market_id: str
    spread: float
    edge: float
    recommended_side: Side
    outcomes: Tuple[str, ...]
    outcome_prices: Tuple[float, ...]
    token_ids: Tuple[str, ...] = ()
    timestamp: float = 0.0
    question: str = ""

    @property
    def price_sum(self) -> float:
        return sum(self.outcome_prices)

    @property
    def average_price(self) -> float:
        return self.price_sum / len(self.outcome_prices)

    def price_for_token(self, token_id: str) -> Optional[float]:
        for tid, price in zip(self.token_ids, self.outcome_prices):
            if tid == token_id:
                return price
        return None


@dataclass(frozen=True)
class TradeDecision:
    signal: ArbitrageSignal
    size: float
    gross_edge: float
    fee_estimate: float
    slippage_estimate: float
    adverse_selection_estimate: float
    notional_estimate: float
    admitted: bool
    reason: DecisionReason

    @property
    def expected_costs(self) -> float:
        return self.fee_estimate + self.slippage_estimate + self.adverse_selection_estimate

    @property
    def expected_profit(self) -> float:
        return self.gross_edge - self.expected_costs


@dataclass(frozen=True)
class ExecutionResult:
    market_id: str
    token_id: str
    side: Side
    requested_size: float
    filled_size: float
    execution_price: float
    fee_paid: float
    slippage: float
    total_cost: float
    success: bool
    error: Optional[str] = None
    delay_seconds: float = 0.0
    reference_price: float = 0.0


@dataclass(frozen=True)
class TickReport:
    timestamp: float
    signals: List[ArbitrageSignal]
    decisions: List[TradeDecision]
    executions: List[ExecutionResult]
    closed_trades: List[Trade]
    ledger: LedgerSnapshot
    skipped: Dict[str, str] = field(default_factory=dict)

    @property
    def admitted(self) -> int:
        return sum(1 for d in self.decisions if d.admitted)
