from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from polyshark.core.errors import (
    InsufficientFunds,
    InsufficientLiquidity,
    InvalidSize,
    SimulationError,
    StaleOrMissingMarketData,
)
from polyshark.core.fees import FeeModel
from polyshark.core.fills import FillModel
from polyshark.core.latency import LatencyModel
from polyshark.core.slippage import SlippageModel
from polyshark.core.wallet import PositionEntry, Wallet
from polyshark.models.market import OrderBook, Side
from polyshark.models.trade import Position, Trade
from polyshark.strategies.arbitrage_pure.types import ArbitrageSignal, ExecutionResult


NO_FILL = "NO_FILL"


class Logger(Protocol):
    def log_error(self, message: str) -> None: ...

    def log_info(self, message: str) -> None: ...


@dataclass(frozen=True)
class Fill:
    """Priced but not yet booked order."""

    token_id: str
    side: Side
    requested_size: float
    filled_size: float
    price: float
    fee: float
    slippage: float
    delay_seconds: float
    reference_price: float
    arrival_time: float

    @property
    def notional(self) -> float:
        return self.price * self.filled_size

    @property
    def total_cost(self) -> float:
        return self.notional + self.fee


@dataclass
class ExecutionEngine:
    """Simulates taker orders against order books and books them into a Wallet.

    Latency is applied before the book walk: the cached book is scaled by the
    sampled adverse move. Realized slippage is measured against the book's
    pre-trade midpoint so it includes the latency drift.
    """

    latency_model: Optional[LatencyModel] = None
    logger: Optional[Logger] = None

    def quote(
        self,
        book: OrderBook,
        side: Side,
        size: float,
        fee_model: FeeModel,
        signal_time: float = 0.0,
        reference_price: Optional[float] = None,
    ) -> Optional[Fill]:
        """Price an order without touching any wallet. ``None`` means nothing fills.

        A book without a midpoint (one side empty) never fills: realized
        slippage could not be measured against it.
        """

        if size <= 0:
            raise InvalidSize(f"size must be > 0, got {size}")

        midpoint = book.midpoint()
        if midpoint is None:
            return None

        basis = book
        delay = 0.0
        arrival = signal_time
        reference = reference_price if reference_price is not None and reference_price > 0 else midpoint

        if self.latency_model is not None:
            sample = self.latency_model.apply(reference, side, signal_time)
            delay = sample.delay_seconds
            arrival = sample.arrival_time
            if sample.drift_factor != 1.0:
                basis = book.shifted(sample.drift_factor)

        filled = FillModel.filled_size(basis, size, side)
        if filled <= 0:
            return None

        price = basis.execution_price(filled, side)
        slippage = SlippageModel.realized(price, midpoint)
        fee = fee_model.calculate(price * filled, is_maker=False)

        return Fill(
            token_id=book.token_id,
            side=side,
            requested_size=size,
            filled_size=filled,
            price=price,
            fee=fee,
            slippage=slippage,
            delay_seconds=delay,
            reference_price=reference,
            arrival_time=arrival,
        )

    def execute(
        self,
        book: OrderBook,
        signal: ArbitrageSignal,
        size: float,
        wallet: Wallet,
        fee_model: FeeModel,
    ) -> ExecutionResult:
        """Fill one leg of ``signal`` on ``book`` and open its position, or change nothing."""

        side = signal.recommended_side
        try:
            fill = self.quote(
                book,
                side,
                size,
                fee_model,
                signal_time=signal.timestamp,
                reference_price=signal.price_for_token(book.token_id),
            )
            if fill is None:
                return self._no_fill(signal.market_id, book.token_id, side, size)

            wallet.open_position(self._entry(signal, fill))
        except SimulationError as e:
            return self._failed(signal.market_id, book.token_id, side, size, e)

        self._log_fill(signal.market_id, fill)
        return self._result(signal.market_id, fill)

    def execute_basket(
        self,
        books: Mapping[str, OrderBook],
        signal: ArbitrageSignal,
        size: float,
        wallet: Wallet,
        fee_model: FeeModel,
    ) -> List[ExecutionResult]:
        """Fill every leg of ``signal`` at one common size, all legs or none."""

        side = signal.recommended_side
        token_ids = list(signal.token_ids)

        try:
            if size <= 0:
                raise InvalidSize(f"size must be > 0, got {size}")
            missing = [t for t in token_ids if t not in books]
            if not token_ids or missing:
                raise StaleOrMissingMarketData(f"no book for tokens {missing} in market {signal.market_id}")

            basket_size = min(FillModel.filled_size(books[t], size, side) for t in token_ids)
            if basket_size <= 0:
                return [self._no_fill(signal.market_id, t, side, size) for t in token_ids]

            fills: List[Fill] = []
            for token_id in token_ids:
                fill = self.quote(
                    books[token_id],
                    side,
                    basket_size,
                    fee_model,
                    signal_time=signal.timestamp,
                    reference_price=signal.price_for_token(token_id),
                )
                if fill is None:
                    return [self._no_fill(signal.market_id, t, side, size) for t in token_ids]
                fills.append(fill)

            wallet.open_positions([self._entry(signal, f) for f in fills])
        except SimulationError as e:
            return [self._failed(signal.market_id, t, side, size, e) for t in token_ids]

        for fill in fills:
            self._log_fill(signal.market_id, fill)
        return [self._result(signal.market_id, f) for f in fills]

    def close_position(
        self,
        book: OrderBook,
        position: Position,
        wallet: Wallet,
        fee_model: FeeModel,
        timestamp: float,
        reason: str,
    ) -> Tuple[ExecutionResult, Optional[Trade]]:
        """Exit ``position`` in full on the opposite side at the current book."""

        results, trades = self.close_basket(
            {position.token_id: book}, [position], wallet, fee_model, timestamp=timestamp, reason=reason
        )
        return results[0], (trades[0] if trades else None)

    def close_basket(
        self,
        books: Mapping[str, OrderBook],
        positions: Sequence[Position],
        wallet: Wallet,
        fee_model: FeeModel,
        timestamp: float,
        reason: str,
    ) -> Tuple[List[ExecutionResult], List[Trade]]:
        """Exit every leg in full, all legs or none.

        Every leg is priced and the net settlement checked against cash before
        the first leg is booked. Legs returning cash are booked first so a
        short that owes more than its collateral is paid from the proceeds.
        """

        def _no_fills() -> List[ExecutionResult]:
            return [self._no_fill(p.market_id, p.token_id, p.side.opposite, p.size) for p in positions]

        try:
            missing = [p.token_id for p in positions if p.token_id not in books]
            if missing:
                raise StaleOrMissingMarketData(f"no book for tokens {missing}")

            fills: List[Fill] = []
            for position in positions:
                fill = self.quote(
                    books[position.token_id], position.side.opposite, position.size, fee_model, signal_time=timestamp
                )
                if fill is None:
                    return _no_fills(), []
                if fill.filled_size < position.size:
                    raise InsufficientLiquidity(
                        f"can only exit {fill.filled_size:.4f} of {position.size:.4f} for {position.token_id}"
                    )
                fills.append(fill)

            settlements = [p.mark_value(f.price) - f.fee for p, f in zip(positions, fills)]
            if not wallet.can_afford(-sum(settlements)):
                raise InsufficientFunds(f"closing owes ${-sum(settlements):.4f}, have ${wallet.cash:.4f}")

            trades: Dict[str, Trade] = {}
            order = sorted(range(len(positions)), key=lambda i: settlements[i], reverse=True)
            for i in order:
                position, fill = positions[i], fills[i]
                trade = wallet.close_position(
                    position.token_id,
                    exit_price=fill.price,
                    exit_fee=fill.fee,
                    exit_time=fill.arrival_time,
                    reason=reason,
                )
                if trade is not None:
                    trades[position.token_id] = trade
        except SimulationError as e:
            return [self._failed(p.market_id, p.token_id, p.side.opposite, p.size, e) for p in positions], []

        results = [self._result(p.market_id, f) for p, f in zip(positions, fills)]
        return results, [trades[p.token_id] for p in positions if p.token_id in trades]

    def _entry(self, signal: ArbitrageSignal, fill: Fill) -> PositionEntry:
        return PositionEntry(
            token_id=fill.token_id,
            market_id=signal.market_id,
            side=fill.side,
            size=fill.filled_size,
            price=fill.price,
            fee=fill.fee,
            timestamp=fill.arrival_time,
            entry_spread=signal.spread,
        )

    def _result(self, market_id: str, fill: Fill) -> ExecutionResult:
        return ExecutionResult(
            market_id=market_id,
            token_id=fill.token_id,
            side=fill.side,
            requested_size=fill.requested_size,
            filled_size=fill.filled_size,
            execution_price=fill.price,
            fee_paid=fill.fee,
            slippage=fill.slippage,
            total_cost=fill.total_cost,
            success=True,
            delay_seconds=fill.delay_seconds,
            reference_price=fill.reference_price,
        )

    def _no_fill(self, market_id: str, token_id: str, side: Side, size: float) -> ExecutionResult:
        return ExecutionResult(
            market_id=market_id,
            token_id=token_id,
            side=side,
            requested_size=size,
            filled_size=0.0,
            execution_price=0.0,
            fee_paid=0.0,
            slippage=0.0,
            total_cost=0.0,
            success=False,
            error=NO_FILL,
        )

    def _failed(self, market_id: str, token_id: str, side: Side, size: float, error: SimulationError) -> ExecutionResult:
        if self.logger:
            self.logger.log_error(f"Execution failed market={market_id} token={token_id}: {error.code} {error}")
        return replace(self._no_fill(market_id, token_id, side, size), error=error.code)

    def _log_fill(self, market_id: str, fill: Fill) -> None:
        if self.logger:
            self.logger.log_info(
                f"FILLED {fill.side.value} {fill.filled_size:.2f} {fill.token_id} ({market_id}) "
                f"@ {fill.price:.4f} fee=${fill.fee:.4f} slip={fill.slippage * 100:.2f}%"
            )
