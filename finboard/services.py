from collections import defaultdict
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd
import structlog

from finboard import balances, portfolio
from finboard.domain import Account, Investment, Transaction, TransactionType
from finboard.lazy import iter_transactions, lazy_top_categories, of_type, since
from finboard.market import MarketCache, MarketFeed
from finboard.memo import memoized_view
from finboard.store import LedgerStore

log = structlog.get_logger(__name__)

TRANSACTION_COLUMNS = [
    "id", "date", "account_id", "type", "category", "description",
    "amount", "signed_amount", "payment_method", "to_account_id",
]


class DashboardService:
    """Read-only aggregates over a ledger and a market cache.

    Every view is memoized against (store.version, market.version) and is
    recomputed on the first read after either side changes. Nothing here
    mutates the store.
    """

    def __init__(self, store: LedgerStore, market: Optional[MarketCache] = None):
        self.store = store
        self.market = market if market is not None else MarketCache()
        self._memo: Dict[str, Tuple[Any, Any]] = {}

    def version_key(self) -> Tuple[int, int]:
        return self.store.version, self.market.version

    # --- cash ---

    @memoized_view
    def account_balances(self) -> Dict[str, float]:
        return balances.account_balances(self.store.accounts, self.store.transactions)

    @memoized_view
    def total_balance(self) -> float:
        return balances.total_balance(self.account_balances())

    @memoized_view
    def accounts_with_balance(self) -> List[Tuple[Account, float]]:
        return balances.accounts_with_balance(self.store.accounts, self.account_balances())

    def recent_transactions(self, n: int = 5) -> Tuple[Transaction, ...]:
        return self.store.transactions[:n]

    @memoized_view
    def cash_flow(self) -> List[Tuple[str, float, List[Transaction]]]:
        """(day, end-of-day total, transactions) per day, newest first."""
        by_day: Dict[str, List[Transaction]] = defaultdict(list)
        for t in self.store.transactions:
            by_day[t.date.date().isoformat()].append(t)
        running = balances.daily_running_balances(
            self.store.transactions, self.total_balance(), self.account_balances().keys()
        )
        return [(day, running[day], by_day[day]) for day in running]

    @memoized_view
    def transactions_frame(self) -> pd.DataFrame:
        rows = []
        for t in self.store.transactions:
            rows.append({
                "id": t.id,
                "date": t.date,
                "account_id": t.account_id,
                "type": t.type.value,
                "category": t.category,
                "description": t.description,
                "amount": t.amount,
                "signed_amount": balances.net_effect(t),
                "payment_method": t.payment_method,
                "to_account_id": t.to_account_id,
            })
        df = pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)
        df["date"] = pd.to_datetime(df["date"])
        return df

    def monthly_summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Income, expense and spending breakdown for the month containing `today`.

        Transfers are left out. `daily` holds one (day, income, expense) row
        for every day of the month up to and including `today`.
        """
        today = today or datetime.now().date()
        first = today.replace(day=1)
        in_month = since(first)
        cash_only = of_type(TransactionType.INCOME, TransactionType.EXPENSE)
        month = [
            t for t in iter_transactions(self.store.transactions, lambda t: in_month(t) and cash_only(t))
            if t.date.date() <= today
        ]

        income = sum(t.amount for t in month if t.type == TransactionType.INCOME)
        expense = sum(t.amount for t in month if t.type == TransactionType.EXPENSE)

        daily = {first.replace(day=d): [0.0, 0.0] for d in range(1, today.day + 1)}
        for t in month:
            slot = daily[t.date.date()]
            slot[0 if t.type == TransactionType.INCOME else 1] += t.amount

        return {
            "month": first.strftime("%Y-%m"),
            "income": income,
            "expense": expense,
            "net": income - expense,
            "savings_rate": (income - expense) / income if income else 0.0,
            "expense_by_category": list(lazy_top_categories(month)),
            "daily": [(d, inc, exp) for d, (inc, exp) in daily.items()],
        }

    # --- investments ---

    @memoized_view
    def total_invested(self) -> float:
        return portfolio.total_invested(self.store.investments, self.store.fixed_income)

    @memoized_view
    def portfolio_value(self) -> float:
        return portfolio.portfolio_value(self.store.investments, self.store.fixed_income, self.market.prices)

    @memoized_view
    def portfolio_pl(self) -> float:
        return self.portfolio_value() - self.total_invested()

    @memoized_view
    def pl_percentage(self) -> float:
        return portfolio.pl_percentage(self.portfolio_pl(), self.total_invested())

    @memoized_view
    def best_performer(self) -> Optional[Investment]:
        return portfolio.best_performer(self.store.investments, self.market.prices)

    @memoized_view
    def holdings(self) -> pd.DataFrame:
        return portfolio.holdings_frame(self.store.investments, self.market.prices)

    @memoized_view
    def investment_groups(self) -> Dict[str, tuple]:
        return portfolio.group_by_market(self.store.investments)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "accounts": self.store.accounts,
            "transactions": self.store.transactions,
            "investments": self.store.investments,
            "fixed_income": self.store.fixed_income,
            "categories": self.store.categories,
            "account_balances": self.account_balances(),
            "total_balance": self.total_balance(),
            "total_invested": self.total_invested(),
            "portfolio_value": self.portfolio_value(),
            "portfolio_pl": self.portfolio_pl(),
        }

    # --- market wiring ---

    def unpriced_tickers(self) -> Tuple[str, ...]:
        return tuple(t for t in self.store.tickers() if t not in self.market.prices)

    async def refresh_prices(self, feed: MarketFeed) -> None:
        """Fetch quotes for held tickers and merge them into the cache."""
        tickers = self.store.tickers()
        if not tickers:
            return
        self.market.merge(await feed.fetch_prices(tickers))

    async def connect(self, feed: MarketFeed) -> Callable[[], None]:
        """Load initial quotes, then follow the feed. Returns the unsubscribe function."""
        await self.refresh_prices(feed)

        def on_patch(patch):
            self.market.merge(patch, sub)

        unsubscribe = feed.subscribe(self.store.tickers(), on_patch)
        sub = feed.subscription
        log.info("dashboard_connected", tickers=len(self.store.tickers()), priced=len(self.market.prices))
        return unsubscribe
