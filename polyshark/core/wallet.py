from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from polyshark.core.errors import InsufficientFunds, InvalidSize, PositionExists
from polyshark.models.market import Side
from polyshark.models.trade import Position, Trade


@dataclass(frozen=True)
class PositionEntry:
    """A simulated fill waiting to be booked into the wallet."""

    token_id: str
    market_id: str
    side: Side
    size: float
    price: float
    fee: float
    timestamp: float
    entry_spread: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.price * self.size + self.fee


@dataclass(frozen=True)
class LedgerSnapshot:
    cash: float
    equity: float
    pnl: float
    starting_balance: float
    total_fees_paid: float
    total_trades: int
    winning_trades: int
    win_rate: float
    positions: Tuple[Position, ...]


@dataclass
class Wallet:
    """Paper-trading ledger: cash, open positions keyed by token, and trade stats.

    Cash never goes below zero; every mutation that could push it negative
    raises ``InsufficientFunds`` before touching any state. Opening a position
    locks ``price * size + fee`` for either side (a sell posts its notional as
    collateral), and closing returns the locked notional plus the directional
    PnL minus the exit fee.
    """

    starting_balance: float = 1000.0

    cash: float = field(init=False)
    total_fees_paid: float = field(default=0.0, init=False)
    total_trades: int = field(default=0, init=False)
    winning_trades: int = field(default=0, init=False)
    _positions: Dict[str, Position] = field(default_factory=dict, init=False)
    _trades: List[Trade] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        if self.starting_balance < 0:
            raise ValueError("starting_balance must be >= 0")
        self.cash = float(self.starting_balance)

    def can_afford(self, amount: float) -> bool:
        return self.cash >= amount

    def deduct(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        if not self.can_afford(amount):
            raise InsufficientFunds(f"need ${amount:.4f}, have ${self.cash:.4f}")
        self.cash -= amount

    def credit(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self.cash += amount

    def record_fee(self, fee: float) -> None:
        self.total_fees_paid += fee

    def record_trade(self, is_winner: bool) -> None:
        self.total_trades += 1
        if is_winner:
            self.winning_trades += 1

    def open_position(self, entry: PositionEntry) -> Position:
        return self.open_positions([entry])[0]

    def open_positions(self, entries: Sequence[PositionEntry]) -> List[Position]:
        """Book a group of fills all-or-nothing.

        Every entry is validated and the combined cost checked against cash
        before the first mutation.
        """

        seen = set()
        for e in entries:
            if e.size <= 0:
                raise InvalidSize(f"size must be > 0, got {e.size}")
            if not (0.0 < e.price < 1.0):
                raise ValueError(f"price must be in (0, 1), got {e.price}")
            if e.token_id in self._positions or e.token_id in seen:
                raise PositionExists(f"position already open for token {e.token_id}")
            seen.add(e.token_id)

        total = sum(e.total_cost for e in entries)
        if not self.can_afford(total):
            raise InsufficientFunds(f"need ${total:.4f}, have ${self.cash:.4f}")

        opened: List[Position] = []
        for e in entries:
            self.cash -= e.total_cost
            self.record_fee(e.fee)
            position = Position(
                token_id=e.token_id,
                market_id=e.market_id,
                side=e.side,
                size=e.size,
                entry_price=e.price,
                entry_time=e.timestamp,
                entry_fee=e.fee,
                entry_spread=e.entry_spread,
            )
            self._positions[e.token_id] = position
            opened.append(position)
        return opened

    def close_position(
        self,
        token_id: str,
        exit_price: float,
        exit_fee: float = 0.0,
        exit_time: float = 0.0,
        reason: str = "CLOSED",
    ) -> Optional[Trade]:
        position = self._positions.get(token_id)
        if position is None:
            return None
        if exit_price <= 0:
            raise ValueError("exit_price must be > 0")

        pnl = position.unrealized_pnl(exit_price)
        settlement = position.mark_value(exit_price) - exit_fee
        if settlement < 0:
            # A short that moved far enough owes more than its collateral.
            self.deduct(-settlement)
        else:
            self.credit(settlement)

        fees = position.entry_fee + exit_fee
        self.record_fee(exit_fee)
        self.record_trade(pnl - fees > 0)

        trade = Trade(
            token_id=position.token_id,
            market_id=position.market_id,
            side=position.side,
            size=position.size,
            entry_price=position.entry_price,
            entry_time=position.entry_time,
            exit_price=exit_price,
            exit_time=exit_time,
            pnl=pnl,
            fees=fees,
            reason=reason,
        )

        del self._positions[token_id]
        self._trades.append(trade)
        return trade

    def get_position(self, token_id: str) -> Optional[Position]:
        return self._positions.get(token_id)

    def get_open_positions(self) -> List[Position]:
        return list(self._positions.values())

    def get_open_positions_for_market(self, market_id: str) -> List[Position]:
        return [p for p in self._positions.values() if p.market_id == market_id]

    def get_trades(self) -> List[Trade]:
        return list(self._trades)

    def equity(self, current_prices: Optional[Mapping[str, float]] = None) -> float:
        """Cash plus positions marked at ``current_prices`` (entry price when unknown)."""

        prices = current_prices or {}
        value = sum(p.mark_value(prices.get(p.token_id, p.entry_price)) for p in self._positions.values())
        return self.cash + value

    def pnl(self, current_prices: Optional[Mapping[str, float]] = None) -> float:
        return self.equity(current_prices) - self.starting_balance

    def win_rate(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.winning_trades / self.total_trades

    def snapshot(self, current_prices: Optional[Mapping[str, float]] = None) -> LedgerSnapshot:
        return LedgerSnapshot(
            cash=self.cash,
            equity=self.equity(current_prices),
            pnl=self.pnl(current_prices),
            starting_balance=self.starting_balance,
            total_fees_paid=self.total_fees_paid,
            total_trades=self.total_trades,
            winning_trades=self.winning_trades,
            win_rate=self.win_rate(),
            positions=tuple(self._positions.values()),
        )
