from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _getenv_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _getenv_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _getenv_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class BotConfig:
    """Config for the arbitrage simulator.

    Cost-model constants (slippage k/alpha, latency and adverse-move
    distributions) are produced by offline calibration and only read here.
    """

    gamma_host: str
    clob_host: str

    starting_capital: float

    min_spread_threshold: float
    min_profit_threshold: float

    risk_pct: float
    liquidity_pct: float
    max_spread: float
    confidence_cap: float

    slippage_k: float
    slippage_alpha: float

    latency_mean_ms: float
    latency_std_ms: float
    adverse_move_mean: float
    adverse_move_std: float

    exit_spread_threshold: float
    max_hold_seconds: float
    target_spread: float

    market_limit: int
    tick_interval_ms: int
    seed: int

    mock_mode: bool
    log_level: str

    gamma_rps: int

    @classmethod
    def load(cls, dotenv_path: Optional[str] = None) -> "BotConfig":
        load_dotenv(dotenv_path=dotenv_path)

        return cls(
            gamma_host=os.getenv("GAMMA_HOST", "https://gamma-api.polymarket.com"),
            clob_host=os.getenv("CLOB_HOST", "https://clob.polymarket.com"),
            starting_capital=_getenv_float("STARTING_CAPITAL", 1_000.0),
            min_spread_threshold=_getenv_float("MIN_SPREAD_THRESHOLD", 0.02),
            min_profit_threshold=_getenv_float("MIN_PROFIT_THRESHOLD", 0.50),
            risk_pct=_getenv_float("RISK_PCT", 0.02),
            liquidity_pct=_getenv_float("LIQUIDITY_PCT", 0.10),
            max_spread=_getenv_float("MAX_SPREAD", 0.10),
            confidence_cap=_getenv_float("CONFIDENCE_CAP", 500.0),
            slippage_k=_getenv_float("SLIPPAGE_K", 0.10),
            slippage_alpha=_getenv_float("SLIPPAGE_ALPHA", 1.5),
            latency_mean_ms=_getenv_float("LATENCY_MEAN_MS", 250.0),
            latency_std_ms=_getenv_float("LATENCY_STD_MS", 100.0),
            adverse_move_mean=_getenv_float("ADVERSE_MOVE_MEAN", 0.001),
            adverse_move_std=_getenv_float("ADVERSE_MOVE_STD", 0.002),
            exit_spread_threshold=_getenv_float("EXIT_SPREAD_THRESHOLD", 0.005),
            max_hold_seconds=_getenv_float("MAX_HOLD_SECONDS", 3_600.0),
            target_spread=_getenv_float("TARGET_SPREAD", 0.01),
            market_limit=_getenv_int("MARKET_LIMIT", 200),
            tick_interval_ms=_getenv_int("TICK_INTERVAL", 5_000),
            seed=_getenv_int("SEED", 1337),
            mock_mode=_getenv_bool("MOCK_MODE", True),
            log_level=os.getenv("LOG_LEVEL", "info"),
            gamma_rps=_getenv_int("GAMMA_RPS", 5),
        )

    def validate(self) -> None:
        if self.starting_capital <= 0:
            raise ValueError("STARTING_CAPITAL must be > 0")
        if self.min_spread_threshold < 0:
            raise ValueError("MIN_SPREAD_THRESHOLD must be >= 0")
        if self.min_profit_threshold <= 0:
            raise ValueError("MIN_PROFIT_THRESHOLD must be > 0")
        if min(self.risk_pct, self.liquidity_pct, self.confidence_cap) < 0:
            raise ValueError("RISK_PCT, LIQUIDITY_PCT and CONFIDENCE_CAP must be >= 0")
        if self.max_spread <= 0:
            raise ValueError("MAX_SPREAD must be > 0")
        if self.slippage_k < 0:
            raise ValueError("SLIPPAGE_K must be >= 0")
        if self.slippage_alpha <= 1:
            raise ValueError("SLIPPAGE_ALPHA must be > 1")
        if min(self.latency_mean_ms, self.latency_std_ms, self.adverse_move_std) < 0:
            raise ValueError("latency distribution parameters must be >= 0")
        if self.exit_spread_threshold < 0:
            raise ValueError("EXIT_SPREAD_THRESHOLD must be >= 0")
        if self.max_hold_seconds <= 0:
            raise ValueError("MAX_HOLD_SECONDS must be > 0")
        if self.target_spread < 0:
            raise ValueError("TARGET_SPREAD must be >= 0")
        if self.market_limit <= 0:
            raise ValueError("MARKET_LIMIT must be > 0")
        if self.tick_interval_ms <= 0:
            raise ValueError("TICK_INTERVAL must be > 0")
