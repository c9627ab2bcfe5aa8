import asyncio
import random
from datetime import date

import pytest

from finboard.domain import MarketInfo, Signal
from finboard.market import MarketCache, MarketFeed
from finboard.services import DashboardService
from finboard.store import LedgerStore


def build_service():
    store = LedgerStore()
    a = store.add_account({"name": "A", "bank": "Itaú", "initial_balance": 1000})
    b = store.add_account({"name": "B", "bank": "Nubank", "initial_balance": 500})
    return DashboardService(store, MarketCache()), a, b


def tx(acc, type, amount, ts, **extra):
    data = {"date": ts, "account_id": acc.id, "type": type, "category": "Geral",
            "description": "", "amount": amount}
    data.update(extra)
    return data


def test_balances_track_store_mutations():
    service, a, b = build_service()
    assert service.total_balance() == 1500.0

    service.store.add_transaction(tx(a, "transfer", 300, "2025-03-01", to_account_id=b.id))

    assert service.account_balances() == {a.id: 700.0, b.id: 800.0}
    assert service.total_balance() == 1500.0


def test_views_are_memoized_until_version_changes():
    service, a, _ = build_service()
    first = service.account_balances()

    assert service.account_balances() is first

    service.store.add_transaction(tx(a, "income", 500, "2025-03-01"))
    second = service.account_balances()
    assert second is not first
    assert second[a.id] == 1500.0


def test_portfolio_views_follow_market_cache():
    service, _, _ = build_service()
    service.store.add_investment({"type": "stock", "ticker": "AAA", "quantity": 10,
                                  "purchase_price": 100, "purchase_date": "2024-01-01"})
    service.store.add_fixed_income({"name": "CDB", "issuer": "X", "amount_invested": 1000,
                                    "yield_rate": "100% CDI", "purchase_date": "2024-01-01",
                                    "maturity_date": "2026-01-01"})

    assert service.portfolio_value() == 2000.0
    assert service.portfolio_pl() == 0.0

    service.market.merge({"AAA": MarketInfo(price=120.0, change=2.0, signal=Signal.HOLD)})

    assert service.total_invested() == 2000.0
    assert service.portfolio_value() == pytest.approx(2200.0)
    assert service.portfolio_pl() == pytest.approx(200.0)
    assert service.pl_percentage() == pytest.approx(0.1)
    assert service.best_performer().ticker == "AAA"
    assert service.holdings().loc[0, "pl"] == pytest.approx(200.0)


def test_valuation_follows_every_feed_tick():
    service, _, _ = build_service()
    service.store.add_investment({"type": "crypto", "ticker": "BTC", "quantity": 1,
                                  "purchase_price": 60000, "purchase_date": "2024-01-01"})
    feed = MarketFeed(tick_seconds=0.01, fetch_latency=0, movers_latency=0, rng=random.Random(3))

    for _ in range(3):
        patch = feed.tick()
        service.market.merge(patch)

        assert service.portfolio_value() == pytest.approx(patch["BTC"].price)
        assert service.holdings().loc[0, "current_price"] == pytest.approx(patch["BTC"].price)


def test_empty_portfolio_percentage_is_zero():
    service, _, _ = build_service()

    assert service.pl_percentage() == 0.0
    assert service.best_performer() is None


def test_monthly_summary_excludes_transfers_and_other_months():
    service, a, b = build_service()
    store = service.store
    store.add_transaction(tx(a, "income", 7500, "2025-03-01"))
    store.add_transaction(tx(a, "expense", 2000, "2025-03-02", category="Moradia"))
    store.add_transaction(tx(b, "expense", 600, "2025-03-05", category="Alimentação"))
    store.add_transaction(tx(b, "expense", 100, "2025-03-05", category="Moradia"))
    store.add_transaction(tx(a, "transfer", 1000, "2025-03-10", to_account_id=b.id))
    store.add_transaction(tx(a, "expense", 999, "2025-02-28"))

    summary = service.monthly_summary(today=date(2025, 3, 12))

    assert summary["month"] == "2025-03"
    assert summary["income"] == 7500.0
    assert summary["expense"] == 2700.0
    assert summary["savings_rate"] == pytest.approx(4800 / 7500)
    assert summary["expense_by_category"] == [("Moradia", 2100.0), ("Alimentação", 600.0)]
    assert len(summary["daily"]) == 12
    assert summary["daily"][4] == (date(2025, 3, 5), 0.0, 700.0)


def test_monthly_summary_without_income():
    service, _, _ = build_service()
    summary = service.monthly_summary(today=date(2025, 3, 1))

    assert summary["savings_rate"] == 0.0
    assert summary["expense_by_category"] == []


def test_cash_flow_groups_by_day():
    service, a, _ = build_service()
    service.store.add_transaction(tx(a, "income", 500, "2025-03-01T09:00:00"))
    service.store.add_transaction(tx(a, "expense", 200, "2025-03-02T10:00:00"))
    service.store.add_transaction(tx(a, "expense", 50, "2025-03-02T18:00:00"))

    flow = service.cash_flow()

    assert [day for day, _, _ in flow] == ["2025-03-02", "2025-03-01"]
    assert flow[0][1] == 1750.0
    assert flow[1][1] == 2000.0
    assert len(flow[0][2]) == 2


def test_cash_flow_agrees_with_balances_despite_dangling_accounts():
    service, a, _ = build_service()
    service.store.add_transaction(tx(a, "income", 70, "2025-03-01", account_id="ghost"))
    service.store.add_transaction(tx(a, "transfer", 100, "2025-03-02", to_account_id="closed"))

    flow = service.cash_flow()

    assert service.total_balance() == 1400.0
    assert [total for _, total, _ in flow] == [1400.0, 1500.0]


def test_transactions_frame_and_recent():
    service, a, _ = build_service()
    for day in range(1, 8):
        service.store.add_transaction(tx(a, "expense", day, f"2025-03-0{day}"))

    df = service.transactions_frame()
    assert len(df) == 7
    assert df["signed_amount"].sum() == -28.0
    assert [t.amount for t in service.recent_transactions(3)] == [7.0, 6.0, 5.0]


def test_snapshot_has_all_aggregates():
    service, _, _ = build_service()
    snap = service.snapshot()

    for key in ("accounts", "transactions", "total_balance", "account_balances",
                "total_invested", "portfolio_value", "portfolio_pl"):
        assert key in snap


def test_views_do_not_mutate_store():
    service, a, _ = build_service()
    service.store.add_transaction(tx(a, "income", 5, "2025-03-01"))
    version = service.store.version

    service.snapshot()
    service.monthly_summary(today=date(2025, 3, 1))
    service.cash_flow()

    assert service.store.version == version


@pytest.mark.asyncio
async def test_connect_loads_prices_and_follows_feed():
    service, _, _ = build_service()
    service.store.add_investment({"type": "international_stock", "ticker": "AAPL", "quantity": 1,
                                  "purchase_price": 100, "purchase_date": "2024-01-01"})
    feed = MarketFeed(tick_seconds=0.01, fetch_latency=0, movers_latency=0, rng=random.Random(1))

    unsubscribe = await service.connect(feed)
    assert "AAPL" in service.market.prices
    assert service.unpriced_tickers() == ()
    version = service.market.version

    await asyncio.sleep(0.05)
    unsubscribe()
    assert service.market.version > version
    frozen = service.market.version
    await asyncio.sleep(0.03)
    assert service.market.version == frozen
