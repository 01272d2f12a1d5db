from __future__ import annotations

import random
from dataclasses import dataclass, field

from polyshark.models.market import Side


@dataclass(frozen=True)
class LatencySample:
    delay_seconds: float
    adverse_move: float
    arrival_time: float
    reference_price: float
    drifted_price: float

    @property
    def drift_factor(self) -> float:
        if self.reference_price <= 0:
            return 1.0
        return self.drifted_price / self.reference_price


@dataclass
class LatencyModel:
    """Samples order latency and the adverse price move it costs.

    Delay and adverse move are drawn from normal distributions using a seeded
    ``random.Random`` so a simulation run is reproducible. A positive adverse
    move always works against the order: buys get pricier, sells get cheaper.
    """

    delay_mean_ms: float = 0.0
    delay_std_ms: float = 0.0
    adverse_move_mean: float = 0.0
    adverse_move_std: float = 0.0
    seed: int = 1337

    _rng: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.delay_mean_ms < 0 or self.delay_std_ms < 0 or self.adverse_move_std < 0:
            raise ValueError("latency distribution parameters must be >= 0")
        self._rng = random.Random(self.seed)

    def sample_delay(self) -> float:
        if self.delay_std_ms == 0:
            delay_ms = self.delay_mean_ms
        else:
            delay_ms = self._rng.gauss(self.delay_mean_ms, self.delay_std_ms)
        return max(0.0, delay_ms) / 1000.0

    def sample_adverse_move(self) -> float:
        if self.adverse_move_std == 0:
            return self.adverse_move_mean
        return self._rng.gauss(self.adverse_move_mean, self.adverse_move_std)

    def apply(self, reference_price: float, side: Side, signal_time: float) -> LatencySample:
        delay = self.sample_delay()
        move = self.sample_adverse_move()

        if side is Side.BUY:
            drifted = reference_price * (1.0 + move)
        elif side is Side.SELL:
            drifted = reference_price * (1.0 - move)
        else:
            raise ValueError(f"unknown side: {side!r}")

        drifted = max(0.0001, min(0.9999, drifted))
        return LatencySample(
            delay_seconds=delay,
            adverse_move=move,
            arrival_time=signal_time + delay,
            reference_price=reference_price,
            drifted_price=drifted,
        )

    def expected_adverse_move(self) -> float:
        """Mean adverse move, floored at zero, for pre-trade cost estimates."""

        return max(0.0, self.adverse_move_mean)
