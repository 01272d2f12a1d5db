from __future__ import annotations

from dataclasses import dataclass

from polyshark.models.market import Side


@dataclass(frozen=True)
class Position:
    token_id: str
    market_id: str
    side: Side
    size: float
    entry_price: float
    entry_time: float
    entry_fee: float = 0.0
    entry_spread: float = 0.0

    @property
    def entry_notional(self) -> float:
        return self.entry_price * self.size

    def unrealized_pnl(self, current_price: float) -> float:
        if self.side is Side.BUY:
            return (current_price - self.entry_price) * self.size
        return (self.entry_price - current_price) * self.size

    def mark_value(self, current_price: float) -> float:
        """Cash the position would return at ``current_price``, before exit fees."""

        return self.entry_notional + self.unrealized_pnl(current_price)


@dataclass(frozen=True)
class Trade:
    token_id: str
    market_id: str
    side: Side
    size: float
    entry_price: float
    entry_time: float
    exit_price: float
    exit_time: float
    pnl: float
    fees: float
    reason: str

    @property
    def net_pnl(self) -> float:
        return self.pnl - self.fees
