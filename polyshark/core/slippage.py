from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from polyshark.models.market import OrderBook, Side


@dataclass(frozen=True)
class SlippageModel:
    """Two interchangeable slippage measures.

    ``calculate`` is the realized (empirical) slippage from walking the book;
    ``estimate`` is the parametric pre-trade impact ``k * (size / liquidity) ** alpha``
    used when full depth is not at hand. ``k`` and ``alpha`` come from an
    offline calibration; alpha > 1 gives superlinear impact.
    """

    k: float = 0.1
    alpha: float = 1.5

    def __post_init__(self) -> None:
        if self.k < 0:
            raise ValueError("k must be >= 0")
        if self.alpha <= 0:
            raise ValueError("alpha must be > 0")

    @staticmethod
    def calculate(book: OrderBook, size: float, side: Side) -> Optional[float]:
        midpoint = book.midpoint()
        if midpoint is None or midpoint <= 0:
            return None
        exec_price = book.execution_price(size, side)
        return SlippageModel.realized(exec_price, midpoint)

    @staticmethod
    def realized(execution_price: float, midpoint: float) -> float:
        return abs(execution_price - midpoint) / midpoint

    def estimate(self, size: float, liquidity: float) -> float:
        if size <= 0:
            return 0.0
        if liquidity <= 0:
            # No depth to trade against.
            return 1.0
        return self.k * (size / liquidity) ** self.alpha

    @staticmethod
    def execution_cost(book: OrderBook, size: float, side: Side) -> float:
        return book.execution_price(size, side) * size
