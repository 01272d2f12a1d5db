from __future__ import annotations

from polyshark.models.market import OrderBook, Side


class FillModel:
    """Partial-fill estimator driven by visible depth on the side an order consumes."""

    @staticmethod
    def estimate_fill_ratio(book: OrderBook, size: float, side: Side) -> float:
        if size <= 0:
            return 0.0

        available = book.liquidity_for(side)
        if available <= 0:
            return 0.0
        return min(1.0, available / size)

    @classmethod
    def filled_size(cls, book: OrderBook, requested_size: float, side: Side) -> float:
        return requested_size * cls.estimate_fill_ratio(book, requested_size, side)
