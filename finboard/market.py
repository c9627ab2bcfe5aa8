"""
Simulated market data feed.

Quotes come from an in-memory reference table that drifts randomly on a
timer. A MarketFeed is an explicitly owned handle: whoever composes the
dashboard creates it, subscribes to it and stops it. At most one
subscription is live per feed; subscribing again cancels the previous one.
"""

import asyncio
import random
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from finboard.config import get_settings
from finboard.domain import MarketInfo, Signal
from finboard.events import EventBus, MARKET_UPDATED

log = structlog.get_logger(__name__)

MarketData = Dict[str, MarketInfo]
Callback = Callable[[MarketData], object]

SIGNAL_THRESHOLD_PCT = 2.0
MAX_TICK_MOVE = 0.01  # +/- 1% per tick

# ticker -> (price, change); signals are derived
REFERENCE_QUOTES: Dict[str, Tuple[float, float]] = {
    # B3
    "PETR4": (38.15, 0.5),
    "VALE3": (61.50, -0.8),
    "ITUB4": (32.20, 0.1),
    "BBDC4": (13.50, -0.2),
    "MGLU3": (12.80, 1.2),
    "WEGE3": (35.70, 0.4),
    "ABEV3": (14.10, 0.05),
    "MXRF11": (10.80, 0.05),
    "HGLG11": (165.40, 1.1),
    "KNCR11": (102.30, -0.1),
    # International
    "AAPL": (172.50, -1.2),
    "GOOGL": (175.30, 2.1),
    "MSFT": (420.70, 1.5),
    "AMZN": (185.00, -0.5),
    "TSLA": (180.20, -5.6),
    "O": (62.45, -0.25),
    "SPG": (150.80, 0.9),
    # Crypto
    "BTC": (68500.00, 1200.0),
    "ETH": (3500.00, -50.0),
    "SOL": (170.00, 15.0),
}


def signal(price: float, change: float) -> Signal:
    """Classify a move of `change` measured against the reference `price`.

    More than +2% is a buy, less than -2% a sell, anything else (including
    a zero reference price) a hold.
    """
    if price == 0:
        return Signal.HOLD
    pct = change / price * 100
    if pct > SIGNAL_THRESHOLD_PCT:
        return Signal.BUY
    if pct < -SIGNAL_THRESHOLD_PCT:
        return Signal.SELL
    return Signal.HOLD


def change_percent(info: MarketInfo) -> float:
    """Percent move of a quote whose price already includes its change."""
    base = info.price - info.change
    return info.change / base * 100 if base else 0.0


def quote(price: float, change: float) -> MarketInfo:
    return MarketInfo(price=price, change=change, signal=signal(price - change, change))


def rank_top_movers(table: Mapping[str, MarketInfo], limit: int = 10) -> List[Tuple[str, MarketInfo, float]]:
    ranked = sorted(
        ((ticker, info, change_percent(info)) for ticker, info in table.items()),
        key=lambda row: row[2],
        reverse=True,
    )
    return ranked[:limit]


def _rounded(info: MarketInfo) -> MarketInfo:
    return MarketInfo(price=round(info.price, 2), change=round(info.change, 2), signal=info.signal)


class FeedState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class Subscription:
    """Handle for one running update timer.

    `active` goes False on cancel and is checked before every callback, so a
    tick that was already due never reaches a torn-down consumer.
    """

    def __init__(self, tickers: Iterable[str], callback: Callback):
        self.tickers = tuple(tickers)
        self.callback = callback
        self.active = True
        self.task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self.task is not None and not self.task.done():
            self.task.cancel()
        log.info("subscription_cancelled", tickers=len(self.tickers))


class MarketFeed:

    def __init__(
        self,
        tick_seconds: Optional[float] = None,
        fetch_latency: Optional[float] = None,
        movers_latency: Optional[float] = None,
        rng: Optional[random.Random] = None,
        quotes: Optional[Mapping[str, Tuple[float, float]]] = None,
    ):
        settings = get_settings()
        self.tick_seconds = settings.tick_seconds if tick_seconds is None else tick_seconds
        self.fetch_latency = settings.fetch_latency if fetch_latency is None else fetch_latency
        self.movers_latency = settings.movers_latency if movers_latency is None else movers_latency
        self._rng = rng or random.Random()
        source = REFERENCE_QUOTES if quotes is None else quotes
        # Written only by tick(); everyone else gets copies
        self._table: MarketData = {t: quote(p, c) for t, (p, c) in source.items()}
        self._subscription: Optional[Subscription] = None

    @property
    def state(self) -> FeedState:
        if self._subscription is not None and self._subscription.active:
            return FeedState.ACTIVE
        return FeedState.IDLE

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def snapshot(self) -> MarketData:
        return dict(self._table)

    def _synthesize(self) -> MarketInfo:
        price = self._rng.random() * 200 + 10
        change = self._rng.random() * 10 - 5
        return MarketInfo(
            price=round(price, 2),
            change=round(change, 2),
            signal=signal(price - change, change),
        )

    async def fetch_prices(self, tickers: Iterable[str]) -> MarketData:
        """Current quote per ticker; unknown tickers get a made-up quote."""
        tickers = list(dict.fromkeys(tickers))
        log.info("market_fetch", tickers=tickers)
        await asyncio.sleep(self.fetch_latency)
        result: MarketData = {}
        for ticker in tickers:
            info = self._table.get(ticker)
            result[ticker] = info if info is not None else self._synthesize()
        return result

    async def top_movers(self) -> MarketData:
        await asyncio.sleep(self.movers_latency)
        return self.snapshot()

    def tick(self) -> MarketData:
        """Move every reference quote once and return the rounded patch."""
        patch: MarketData = {}
        for ticker, current in self._table.items():
            factor = (self._rng.random() - 0.5) * 2 * MAX_TICK_MOVE
            delta = current.price * factor
            updated = MarketInfo(
                price=current.price + delta,
                change=delta,
                signal=signal(current.price, delta),
            )
            self._table[ticker] = updated
            patch[ticker] = _rounded(updated)
        log.debug("market_tick", tickers=len(patch))
        return patch

    def subscribe(self, tickers: Iterable[str], callback: Callback) -> Callable[[], None]:
        """Start calling `callback(patch)` every tick_seconds.

        Must be called from a running event loop. Returns an idempotent
        unsubscribe function. If `callback` raises, the error is logged and
        the subscription ends; the feed goes back to IDLE.
        """
        self.stop()
        sub = Subscription(tickers, callback)
        sub.task = asyncio.get_running_loop().create_task(self._run(sub))
        self._subscription = sub
        log.info("subscription_started", tickers=len(sub.tickers), period=self.tick_seconds)

        def unsubscribe() -> None:
            sub.cancel()
            if self._subscription is sub:
                self._subscription = None

        return unsubscribe

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def _run(self, sub: Subscription) -> None:
        try:
            while sub.active:
                await asyncio.sleep(self.tick_seconds)
                if not sub.active:
                    break
                try:
                    sub.callback(self.tick())
                except Exception:
                    log.exception("subscription_callback_failed", tickers=len(sub.tickers))
                    break
        finally:
            if sub.active:
                sub.active = False
                if self._subscription is sub:
                    self._subscription = None
                log.warning("subscription_stopped", tickers=len(sub.tickers))


class MarketCache:
    """Consumer-side copy of market quotes.

    Patches are merged key by key, never swapped in wholesale, and each
    change bumps `version`.
    """

    def __init__(self, bus: Optional[EventBus] = None):
        self._prices: MarketData = {}
        self.bus = bus
        self.version = 0

    @property
    def prices(self) -> MarketData:
        return self._prices

    def replace(self, data: Mapping[str, MarketInfo]) -> None:
        self._prices = dict(data)
        self._bump(list(data))

    def merge(self, patch: Mapping[str, MarketInfo], subscription: Optional[Subscription] = None) -> bool:
        if subscription is not None and not subscription.active:
            return False
        self._prices = {**self._prices, **patch}
        self._bump(list(patch))
        return True

    def _bump(self, tickers: List[str]) -> None:
        self.version += 1
        if self.bus is not None:
            self.bus.publish(MARKET_UPDATED, {"tickers": tickers, "version": self.version})
