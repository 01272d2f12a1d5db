from __future__ import annotations

from dataclasses import dataclass

from polyshark.models.market import Market


_BPS = 10_000.0


@dataclass(frozen=True)
class FeeModel:
    """Polymarket style fee schedule, rates in basis points (200 bps = 2%)."""

    maker_fee_bps: int = 0
    taker_fee_bps: int = 0

    def __post_init__(self) -> None:
        if self.maker_fee_bps < 0 or self.taker_fee_bps < 0:
            raise ValueError("fee bps must be >= 0")

    @classmethod
    def from_market(cls, market: Market) -> "FeeModel":
        return cls(maker_fee_bps=market.maker_fee_bps, taker_fee_bps=market.taker_fee_bps)

    def calculate(self, notional: float, is_maker: bool = False) -> float:
        bps = self.maker_fee_bps if is_maker else self.taker_fee_bps
        return notional * (bps / _BPS)

    def maker_rate(self) -> float:
        return self.maker_fee_bps / _BPS

    def taker_rate(self) -> float:
        return self.taker_fee_bps / _BPS
