from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence

from polyshark.models.trade import Position


ExitAction = Literal["HOLD", "MEAN_REVERTED", "MAX_HOLD", "TARGET_HIT"]


@dataclass
class RiskManager:
    """Mean-reversion exit rules for open arbitrage baskets.

    A basket is every open leg of one market. All rules read the market's
    spread (``abs(1 - sum(prices))``), so the legs of a basket always exit
    together. Triggers are checked in priority order: the spread is back
    within ``exit_spread_threshold``, the basket has been held longer than
    ``max_hold_seconds``, or the spread has narrowed to ``target_spread``.
    A ``target_spread`` at or below ``exit_spread_threshold`` never fires on
    its own.
    """

    exit_spread_threshold: float = 0.005
    max_hold_seconds: float = 3600.0
    target_spread: float = 0.01

    def __post_init__(self) -> None:
        if self.exit_spread_threshold < 0:
            raise ValueError("exit_spread_threshold must be >= 0")
        if self.max_hold_seconds <= 0:
            raise ValueError("max_hold_seconds must be > 0")
        if self.target_spread < 0:
            raise ValueError("target_spread must be >= 0")

    def check_position(self, position: Position, current_spread: Optional[float], now: float) -> ExitAction:
        return self.check_basket([position], current_spread, now)

    def check_basket(
        self,
        positions: Sequence[Position],
        current_spread: Optional[float],
        now: float,
    ) -> ExitAction:
        if not positions:
            return "HOLD"

        if current_spread is not None and current_spread <= self.exit_spread_threshold:
            return "MEAN_REVERTED"

        opened_at = min(p.entry_time for p in positions)
        if now - opened_at > self.max_hold_seconds:
            return "MAX_HOLD"

        if current_spread is not None and current_spread <= self.target_spread:
            return "TARGET_HIT"

        return "HOLD"
