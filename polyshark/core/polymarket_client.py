from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

from polyshark.core.rate_limiter import RateLimiter
from polyshark.models.market import Market, OrderBook


class Logger(Protocol):
    def log_warning(self, message: str) -> None: ...


@dataclass(frozen=True)
class MarketSnapshot:
    """Everything the simulator sees for one tick."""

    timestamp: float
    markets: List[Market]
    books: Dict[str, OrderBook]


class SnapshotProvider(Protocol):
    def fetch(self) -> MarketSnapshot: ...


@dataclass
class _MockMarketState:
    market_id: str
    question: str
    fair: List[float]
    inefficiency: float
    liquidity: float
    taker_fee_bps: int


@dataclass
class PolymarketClientService:
    """Synchronous market snapshot provider.

    In mock mode a seeded random feed is generated locally; otherwise markets
    come from the Gamma API and order books from the CLOB ``/book`` endpoint.
    A token whose book cannot be fetched is left out of the snapshot, and the
    simulator skips its market for that tick.
    """

    gamma_host: str = "https://gamma-api.polymarket.com"
    clob_host: str = "https://clob.polymarket.com"
    mock_mode: bool = True
    market_limit: int = 200
    seed: int = 1337

    logger: Optional[Logger] = None
    clock: Callable[[], float] = field(default=time.time, repr=False)

    gamma_rate_limiter: RateLimiter = field(default_factory=lambda: RateLimiter(max_calls=5, period_seconds=1.0))
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    _rng: random.Random = field(init=False, repr=False)
    _mock_state: List[_MockMarketState] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def fetch(self) -> MarketSnapshot:
        if self.mock_mode:
            return self._mock_snapshot()

        markets = self.get_markets(limit=self.market_limit)
        books: Dict[str, OrderBook] = {}
        for market in markets:
            if not (market.active and market.accepting_orders):
                continue
            for token_id in market.token_ids:
                try:
                    books[token_id] = self.get_order_book(token_id)
                except (requests.RequestException, ValueError) as e:
                    if self.logger:
                        self.logger.log_warning(f"⚠️ [BOOK] {market.id} token {token_id}: {e}")

        return MarketSnapshot(timestamp=self.clock(), markets=markets, books=books)

    def get_markets(self, limit: int = 200) -> List[Market]:
        markets: List[Market] = []
        offset = 0
        page_size = min(500, max(1, limit))

        while len(markets) < limit:
            params = {"limit": page_size, "offset": offset, "active": "true", "closed": "false"}
            payload = self._get_json(f"{self.gamma_host}/markets", params=params)
            items = payload.get("markets") if isinstance(payload, dict) else payload
            if not isinstance(items, list) or not items:
                break

            for m in items:
                market = parse_market(m)
                if market is not None:
                    markets.append(market)
                    if len(markets) >= limit:
                        break

            offset += len(items)
            if len(items) < page_size:
                break

        return markets[:limit]

    def get_order_book(self, token_id: str) -> OrderBook:
        payload = self._get_json(f"{self.clob_host}/book", params={"token_id": token_id})
        return parse_order_book(token_id, payload, default_timestamp=self.clock())

    def _get_json(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        self.gamma_rate_limiter.acquire()
        resp = self.session.get(url, params=params, timeout=15)
        resp.raise_for_status()
        return resp.json()

    def _mock_snapshot(self) -> MarketSnapshot:
        if not self._mock_state:
            self._mock_state = [self._new_mock_market(i) for i in range(self.market_limit)]

        now = self.clock()
        markets: List[Market] = []
        books: Dict[str, OrderBook] = {}

        for state in self._mock_state:
            # Mispricings decay toward zero, with the odd fresh shock.
            if self._rng.random() < 0.05:
                state.inefficiency = self._rng.uniform(-0.06, 0.06)
            else:
                state.inefficiency = state.inefficiency * 0.6 + self._rng.uniform(-0.005, 0.005)

            n = len(state.fair)
            prices = [min(0.99, max(0.01, p + state.inefficiency / n)) for p in state.fair]
            token_ids = [f"{state.market_id}-{i}" for i in range(n)]
            outcomes = ["Yes", "No"] if n == 2 else [f"Outcome {i}" for i in range(n)]

            markets.append(
                Market(
                    id=state.market_id,
                    outcomes=tuple(outcomes),
                    outcome_prices=tuple(prices),
                    token_ids=tuple(token_ids),
                    maker_fee_bps=0,
                    taker_fee_bps=state.taker_fee_bps,
                    liquidity=state.liquidity,
                    question=state.question,
                )
            )
            for token_id, price in zip(token_ids, prices):
                books[token_id] = self._mock_book(token_id, price, state.liquidity / n, now)

        return MarketSnapshot(timestamp=now, markets=markets, books=books)

    def _new_mock_market(self, i: int) -> _MockMarketState:
        n = 2 if self._rng.random() < 0.8 else self._rng.randint(3, 5)
        weights = [self._rng.uniform(0.2, 1.0) for _ in range(n)]
        total = sum(weights)

        return _MockMarketState(
            market_id=f"mock-{i}",
            question=f"Mock Market #{i}",
            fair=[w / total for w in weights],
            inefficiency=self._rng.uniform(-0.04, 0.04),
            liquidity=float(self._rng.randint(1_000, 50_000)),
            taker_fee_bps=self._rng.choice([0, 0, 100, 200]),
        )

    def _mock_book(self, token_id: str, price: float, depth: float, now: float) -> OrderBook:
        half_spread = self._rng.uniform(0.001, 0.01)
        bids = []
        asks = []
        for level in range(5):
            size = depth * self._rng.uniform(0.05, 0.25)
            bids.append((_clamp_price(price - half_spread - level * 0.01), size))
            asks.append((_clamp_price(price + half_spread + level * 0.01), size))
        return OrderBook.from_levels(token_id, bids=bids, asks=asks, timestamp=now)


def _clamp_price(x: float) -> float:
    return max(0.001, min(0.999, x))


def _as_list(raw: Any) -> Optional[List[Any]]:
    # Gamma encodes list fields as JSON strings.
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    return raw if isinstance(raw, list) else None


def _as_float(raw: Any, default: float = 0.0) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def parse_market(m: Any) -> Optional[Market]:
    if not isinstance(m, dict):
        return None

    market_id = str(m.get("id") or m.get("conditionId") or "")
    outcomes = _as_list(m.get("outcomes"))
    prices = _as_list(m.get("outcomePrices"))
    token_ids = _as_list(m.get("clobTokenIds")) or []
    if not market_id or not outcomes or not prices or len(outcomes) != len(prices) or len(outcomes) < 2:
        return None
    if token_ids and len(token_ids) != len(outcomes):
        return None

    try:
        outcome_prices = tuple(float(p) for p in prices)
    except (TypeError, ValueError):
        return None

    best_bid = m.get("bestBid")
    best_ask = m.get("bestAsk")

    try:
        return Market(
            id=market_id,
            outcomes=tuple(str(o) for o in outcomes),
            outcome_prices=outcome_prices,
            token_ids=tuple(str(t) for t in token_ids),
            maker_fee_bps=int(_as_float(m.get("makerBaseFee"))),
            taker_fee_bps=int(_as_float(m.get("takerBaseFee"))),
            liquidity=_as_float(m.get("liquidityNum", m.get("liquidity"))),
            volume_24hr=_as_float(m.get("volume24hr")),
            active=bool(m.get("active", True)),
            accepting_orders=bool(m.get("acceptingOrders", True)),
            question=str(m.get("question") or ""),
            slug=str(m.get("slug") or ""),
            best_bid=_as_float(best_bid) if best_bid is not None else None,
            best_ask=_as_float(best_ask) if best_ask is not None else None,
        )
    except ValueError:
        # Fails Market validation, e.g. negative fee bps.
        return None


def parse_order_book(token_id: str, payload: Any, default_timestamp: float = 0.0) -> OrderBook:
    if not isinstance(payload, dict):
        raise ValueError(f"unexpected book payload for {token_id}")

    def _levels(raw: Any) -> List[tuple[float, float]]:
        out = []
        for lv in raw or []:
            price = _as_float(lv.get("price"), -1.0)
            size = _as_float(lv.get("size"), 0.0)
            if 0.0 < price < 1.0 and size > 0:
                out.append((price, size))
        return out

    # CLOB timestamps are milliseconds.
    ts_raw = payload.get("timestamp")
    timestamp = _as_float(ts_raw) / 1000.0 if ts_raw is not None else default_timestamp

    return OrderBook.from_levels(
        token_id,
        bids=_levels(payload.get("bids")),
        asks=_levels(payload.get("asks")),
        timestamp=timestamp,
    )
