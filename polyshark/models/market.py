from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from polyshark.core.errors import InsufficientLiquidity, InvalidSize


# Remaining size below this is treated as fully filled.
_FILL_EPSILON = 1e-9


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Side":
        if self is Side.BUY:
            return Side.SELL
        return Side.BUY


@dataclass(frozen=True)
class Market:
    """Snapshot of a (binary or multi-outcome) prediction market for one tick."""

    id: str
    outcomes: Tuple[str, ...]
    outcome_prices: Tuple[float, ...]
    token_ids: Tuple[str, ...] = ()

    maker_fee_bps: int = 0
    taker_fee_bps: int = 0
    liquidity: float = 0.0
    volume_24hr: float = 0.0

    active: bool = True
    accepting_orders: bool = True

    question: str = ""
    slug: str = ""
    best_bid: Optional[float] = None
    best_ask: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", tuple(self.outcomes))
        object.__setattr__(self, "outcome_prices", tuple(float(p) for p in self.outcome_prices))
        object.__setattr__(self, "token_ids", tuple(self.token_ids))

        if len(self.outcomes) < 2:
            raise ValueError("market needs at least two outcomes")
        if len(self.outcomes) != len(self.outcome_prices):
            raise ValueError("outcomes and outcome_prices must have the same length")
        if self.token_ids and len(self.token_ids) != len(self.outcomes):
            raise ValueError("token_ids must be empty or match outcomes")
        if self.maker_fee_bps < 0 or self.taker_fee_bps < 0:
            raise ValueError("fee bps must be >= 0")

    def price_sum(self) -> float:
        return sum(self.outcome_prices)

    def get_spread(self) -> float:
        return abs(1.0 - self.price_sum())

    def price_for_token(self, token_id: str) -> Optional[float]:
        for tid, price in zip(self.token_ids, self.outcome_prices):
            if tid == token_id:
                return price
        return None


@dataclass(frozen=True)
class PriceLevel:
    price: float
    size: float

    def __post_init__(self) -> None:
        if not (0.0 < self.price < 1.0):
            raise ValueError(f"price must be in (0, 1), got {self.price}")
        if self.size < 0:
            raise ValueError(f"size must be >= 0, got {self.size}")


def _is_monotonic(levels: Tuple[PriceLevel, ...], descending: bool) -> bool:
    for prev, cur in zip(levels, levels[1:]):
        if descending and cur.price > prev.price:
            return False
        if not descending and cur.price < prev.price:
            return False
    return True


@dataclass(frozen=True)
class OrderBook:
    """Order book for a single outcome token.

    Bids are kept best (highest) first, asks best (lowest) first. The book is
    never mutated by the simulator; ``shifted`` returns a new book.
    """

    token_id: str
    bids: Tuple[PriceLevel, ...] = field(default_factory=tuple)
    asks: Tuple[PriceLevel, ...] = field(default_factory=tuple)
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "bids", tuple(self.bids))
        object.__setattr__(self, "asks", tuple(self.asks))

        if not _is_monotonic(self.bids, descending=True):
            raise ValueError("bids must be sorted by descending price")
        if not _is_monotonic(self.asks, descending=False):
            raise ValueError("asks must be sorted by ascending price")

    @classmethod
    def from_levels(
        cls,
        token_id: str,
        bids: Iterable[Tuple[float, float]] = (),
        asks: Iterable[Tuple[float, float]] = (),
        timestamp: float = 0.0,
    ) -> "OrderBook":
        """Build a book from raw (price, size) pairs in any order."""

        bid_levels = sorted((PriceLevel(float(p), float(s)) for p, s in bids), key=lambda lv: lv.price, reverse=True)
        ask_levels = sorted((PriceLevel(float(p), float(s)) for p, s in asks), key=lambda lv: lv.price)
        return cls(token_id=token_id, bids=tuple(bid_levels), asks=tuple(ask_levels), timestamp=timestamp)

    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None

    def midpoint(self) -> Optional[float]:
        bid = self.best_bid()
        ask = self.best_ask()
        if bid is None or ask is None:
            return None
        return (bid + ask) / 2.0

    def spread(self) -> Optional[float]:
        bid = self.best_bid()
        ask = self.best_ask()
        if bid is None or ask is None:
            return None
        return ask - bid

    def total_bid_liquidity(self) -> float:
        return sum(lv.size for lv in self.bids)

    def total_ask_liquidity(self) -> float:
        return sum(lv.size for lv in self.asks)

    def levels_for(self, side: Side) -> Tuple[PriceLevel, ...]:
        """Levels an order on ``side`` consumes: asks for a buy, bids for a sell."""

        if side is Side.BUY:
            return self.asks
        if side is Side.SELL:
            return self.bids
        raise ValueError(f"unknown side: {side!r}")

    def liquidity_for(self, side: Side) -> float:
        return sum(lv.size for lv in self.levels_for(side))

    def execution_price(self, size: float, side: Side) -> float:
        """Volume-weighted average price for filling ``size`` on ``side``.

        Walks the opposite side of the book nearest price first. Raises
        ``InvalidSize`` for a non-positive size and ``InsufficientLiquidity``
        when the book cannot absorb the whole order.
        """

        if size <= 0:
            raise InvalidSize(f"size must be > 0, got {size}")

        remaining = float(size)
        cost = 0.0
        for level in self.levels_for(side):
            if remaining <= _FILL_EPSILON:
                break
            take = min(remaining, level.size)
            cost += take * level.price
            remaining -= take

        if remaining > _FILL_EPSILON:
            raise InsufficientLiquidity(
                f"book {self.token_id} can fill {size - remaining:.4f} of {size:.4f} on {side.value}"
            )

        return cost / size

    def shifted(self, factor: float) -> "OrderBook":
        """Return a copy with every level price scaled by ``factor``, clamped into (0, 1)."""

        def _move(levels: Tuple[PriceLevel, ...]) -> List[PriceLevel]:
            return [PriceLevel(_clamp_price(lv.price * factor), lv.size) for lv in levels]

        return OrderBook(
            token_id=self.token_id,
            bids=tuple(_move(self.bids)),
            asks=tuple(_move(self.asks)),
            timestamp=self.timestamp,
        )


def _clamp_price(x: float) -> float:
    return max(0.0001, min(0.9999, x))
