import pytest

from polyshark.core.fills import FillModel
from polyshark.core.latency import LatencyModel
from polyshark.core.slippage import SlippageModel
from polyshark.core.wallet import Wallet
from polyshark.models.market import Market, OrderBook, Side
from polyshark.strategies.arbitrage_pure.detector import ConstraintChecker
from polyshark.strategies.arbitrage_pure.sizing import DecisionGate, PositionSizer


def _market(liquidity: float, taker_fee_bps: int = 200) -> Market:
    return Market(
        id="m1",
        outcomes=("Yes", "No"),
        outcome_prices=(0.48, 0.47),
        token_ids=("yes", "no"),
        taker_fee_bps=taker_fee_bps,
        liquidity=liquidity,
    )


def test_size_is_tightest_of_three_bounds() -> None:
    sizer = PositionSizer(risk_pct=0.02, liquidity_pct=0.10, max_spread=0.10, confidence_cap=500.0)

    # equity bound 20, liquidity bound 100, confidence bound 250
    assert abs(sizer.size(equity=1_000.0, liquidity=1_000.0, spread=0.05) - 20.0) < 1e-9
    # liquidity bound wins
    assert abs(sizer.size(equity=100_000.0, liquidity=500.0, spread=0.05) - 50.0) < 1e-9
    # confidence bound wins
    assert abs(sizer.size(equity=100_000.0, liquidity=100_000.0, spread=0.01) - 50.0) < 1e-9


def test_non_positive_size_means_no_trade() -> None:
    sizer = PositionSizer()
    gate = DecisionGate(sizer=sizer, slippage_model=SlippageModel())
    signal = ConstraintChecker(0.02).check_violation(_market(1_000.0))

    assert sizer.size(equity=-50.0, liquidity=1_000.0, spread=0.05) == 0.0

    decision = gate.evaluate(signal, _market(1_000.0), Wallet(starting_balance=0.0), equity=0.0)
    assert not decision.admitted
    assert decision.reason == "NON_POSITIVE_SIZE"
    assert decision.size == 0.0


def test_profitable_signal_admitted() -> None:
    market = _market(liquidity=100.0)
    signal = ConstraintChecker(0.02).check_violation(market)
    gate = DecisionGate(
        sizer=PositionSizer(risk_pct=1.0, liquidity_pct=1.0, max_spread=0.05, confidence_cap=100.0),
        # 0.01 * (100 / 100) ** 1.5 = 1% slippage per unit
        slippage_model=SlippageModel(k=0.01, alpha=1.5),
        min_profit_threshold=0.5,
    )

    decision = gate.evaluate(signal, market, Wallet(starting_balance=1_000.0), equity=1_000.0)

    assert abs(decision.size - 100.0) < 1e-9
    assert abs(decision.gross_edge - 5.00) < 1e-9
    assert abs(decision.fee_estimate - 1.90) < 1e-9
    assert abs(decision.slippage_estimate - 1.00) < 1e-9
    assert abs(decision.expected_profit - 2.10) < 1e-9
    assert decision.admitted
    assert decision.reason == "ADMITTED"


def test_partial_fill_that_kills_the_edge_is_declined() -> None:
    market = _market(liquidity=1_000.0)
    signal = ConstraintChecker(0.02).check_violation(market)
    books = {
        "yes": OrderBook.from_levels("yes", asks=[(0.49, 300), (0.50, 300)]),
        "no": OrderBook.from_levels("no", asks=[(0.48, 1_000)]),
    }
    wallet = Wallet(starting_balance=10_000.0)
    gate = DecisionGate(
        sizer=PositionSizer(risk_pct=0.1, liquidity_pct=1.0, max_spread=0.05, confidence_cap=1_000.0),
        slippage_model=SlippageModel(k=0.1, alpha=1.5),
        min_profit_threshold=0.5,
    )

    assert abs(FillModel.estimate_fill_ratio(books["yes"], 1_000, Side.BUY) - 0.6) < 1e-12

    decision = gate.evaluate(signal, market, wallet, equity=wallet.equity(), books=books)

    assert abs(decision.size - 600.0) < 1e-9
    assert decision.expected_profit <= 0.5
    assert not decision.admitted
    assert decision.reason == "BELOW_PROFIT_THRESHOLD"
    assert wallet.cash == 10_000.0
    assert wallet.get_open_positions() == []


def test_no_depth_on_a_leg_is_declined() -> None:
    market = _market(liquidity=100.0)
    signal = ConstraintChecker(0.02).check_violation(market)
    books = {
        "yes": OrderBook.from_levels("yes", asks=[(0.49, 300)]),
        "no": OrderBook.from_levels("no", bids=[(0.46, 300)]),
    }
    gate = DecisionGate(sizer=PositionSizer(), slippage_model=SlippageModel())

    decision = gate.evaluate(signal, market, Wallet(starting_balance=1_000.0), equity=1_000.0, books=books)

    assert decision.reason == "NO_LIQUIDITY"


def test_gate_checks_affordability() -> None:
    market = _market(liquidity=100.0)
    signal = ConstraintChecker(0.02).check_violation(market)
    gate = DecisionGate(
        sizer=PositionSizer(risk_pct=1.0, liquidity_pct=1.0, max_spread=0.05, confidence_cap=100.0),
        slippage_model=SlippageModel(k=0.01, alpha=1.5),
        min_profit_threshold=0.5,
    )

    decision = gate.evaluate(signal, market, Wallet(starting_balance=10.0), equity=1_000.0)

    assert decision.expected_profit > 0.5
    assert decision.reason == "INSUFFICIENT_FUNDS"
    assert not decision.admitted


def test_adverse_selection_from_latency_model() -> None:
    market = _market(liquidity=100.0, taker_fee_bps=0)
    signal = ConstraintChecker(0.02).check_violation(market)
    gate = DecisionGate(
        sizer=PositionSizer(risk_pct=1.0, liquidity_pct=1.0, max_spread=0.05, confidence_cap=100.0),
        slippage_model=SlippageModel(k=0.0, alpha=1.5),
        latency_model=LatencyModel(adverse_move_mean=0.01),
        min_profit_threshold=0.5,
    )

    decision = gate.evaluate(signal, market, Wallet(starting_balance=1_000.0), equity=1_000.0)

    assert abs(decision.adverse_selection_estimate - 100 * 0.95 * 0.01) < 1e-9
    assert abs(decision.expected_profit - (5.0 - 0.95)) < 1e-9


def test_profit_threshold_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DecisionGate(sizer=PositionSizer(), slippage_model=SlippageModel(), min_profit_threshold=0.0)
