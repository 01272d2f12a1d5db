import pytest

from polyshark.core.risk_manager import RiskManager
from polyshark.models.market import Side
from polyshark.models.trade import Position


def _position(token_id: str = "t1", side: Side = Side.BUY, entry_time: float = 1_000.0) -> Position:
    return Position(
        token_id=token_id,
        market_id="m1",
        side=side,
        size=100.0,
        entry_price=0.40,
        entry_time=entry_time,
        entry_spread=0.05,
    )


def test_check_position_actions() -> None:
    rm = RiskManager(exit_spread_threshold=0.005, max_hold_seconds=600.0, target_spread=0.02)
    p = _position()

    assert rm.check_position(p, current_spread=0.004, now=1_010.0) == "MEAN_REVERTED"
    assert rm.check_position(p, current_spread=0.05, now=1_601.0) == "MAX_HOLD"
    assert rm.check_position(p, current_spread=0.015, now=1_010.0) == "TARGET_HIT"
    assert rm.check_position(p, current_spread=0.05, now=1_010.0) == "HOLD"


def test_triggers_checked_in_priority_order() -> None:
    rm = RiskManager(exit_spread_threshold=0.005, max_hold_seconds=600.0, target_spread=0.02)
    p = _position()

    # Reverted, expired and on target all at once.
    assert rm.check_position(p, current_spread=0.0, now=5_000.0) == "MEAN_REVERTED"
    # Expired and on target.
    assert rm.check_position(p, current_spread=0.01, now=5_000.0) == "MAX_HOLD"


def test_hold_duration_must_be_exceeded() -> None:
    rm = RiskManager(max_hold_seconds=600.0, target_spread=0.0)

    assert rm.check_position(_position(), current_spread=0.05, now=1_600.0) == "HOLD"


def test_target_at_exit_threshold_never_fires_alone() -> None:
    rm = RiskManager(exit_spread_threshold=0.005, target_spread=0.005)

    assert rm.check_position(_position(), current_spread=0.006, now=1_010.0) == "HOLD"


def test_basket_uses_oldest_leg_for_hold_time() -> None:
    rm = RiskManager(max_hold_seconds=600.0, target_spread=0.0)
    legs = [_position("yes", entry_time=1_000.0), _position("no", Side.BUY, entry_time=1_300.0)]

    assert rm.check_basket(legs, current_spread=0.05, now=1_601.0) == "MAX_HOLD"
    assert rm.check_basket([], current_spread=0.0, now=1_601.0) == "HOLD"


def test_missing_spread_only_allows_time_exit() -> None:
    rm = RiskManager(max_hold_seconds=600.0)
    p = _position()

    assert rm.check_position(p, current_spread=None, now=1_010.0) == "HOLD"
    assert rm.check_position(p, current_spread=None, now=2_000.0) == "MAX_HOLD"


def test_invalid_parameters_rejected() -> None:
    with pytest.raises(ValueError):
        RiskManager(max_hold_seconds=0.0)
    with pytest.raises(ValueError):
        RiskManager(exit_spread_threshold=-0.1)
    with pytest.raises(ValueError):
        RiskManager(target_spread=-0.01)
