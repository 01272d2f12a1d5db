from __future__ import annotations


class SimulationError(Exception):
    """Base class for per-order / per-market failures inside a tick."""

    code: str = "SIMULATION_ERROR"


class InvalidSize(SimulationError):
    code = "INVALID_SIZE"


class InsufficientLiquidity(SimulationError):
    code = "INSUFFICIENT_LIQUIDITY"


class InsufficientFunds(SimulationError):
    code = "INSUFFICIENT_FUNDS"


class StaleOrMissingMarketData(SimulationError):
    code = "STALE_OR_MISSING_MARKET_DATA"


class PositionExists(SimulationError):
    code = "POSITION_EXISTS"
