from datetime import date

import pytest

from finboard.domain import AssetType, FixedIncomeInvestment, Investment, MarketInfo, Signal
from finboard.portfolio import (
    asset_pl, asset_pl_percentage, best_performer, current_price, group_by_market,
    holdings_frame, pl_percentage, portfolio_pl, portfolio_value, total_invested,
)


def make_inv(id, ticker, qty, price, type=AssetType.STOCK):
    return Investment(id=id, type=type, ticker=ticker, quantity=qty,
                      purchase_price=price, purchase_date=date(2024, 1, 1))


def make_fixed(id, amount):
    return FixedIncomeInvestment(id=id, name="CDB", issuer="Bank", amount_invested=amount,
                                 yield_rate="100% CDI", purchase_date=date(2024, 1, 1),
                                 maturity_date=date(2026, 1, 1))


def quote(price):
    return MarketInfo(price=price, change=0.0, signal=Signal.HOLD)


def test_asset_pl_scenario():
    inv = make_inv("i1", "PETR4", 10, 100.0)
    prices = {"PETR4": quote(120.0)}

    assert asset_pl(inv, prices) == pytest.approx(200.0)
    assert asset_pl_percentage(inv, prices) == pytest.approx(0.20)


def test_missing_quote_falls_back_to_purchase_price():
    inv = make_inv("i1", "XYZ", 4, 25.0)

    assert current_price(inv, {}) == 25.0
    assert portfolio_value((inv,), (), {}) == 100.0
    assert asset_pl(inv, {}) == 0.0


def test_fixed_income_is_valued_at_cost():
    fixed = (make_fixed("f1", 10000.0), make_fixed("f2", 5000.0))
    prices = {"CDB": quote(999999.0)}

    assert portfolio_value((), fixed, prices) == 15000.0
    assert total_invested((), fixed) == 15000.0
    assert portfolio_pl((), fixed, prices) == 0.0


def test_portfolio_totals():
    invs = (make_inv("i1", "AAA", 10, 100.0), make_inv("i2", "BBB", 2, 50.0))
    fixed = (make_fixed("f1", 1000.0),)
    prices = {"AAA": quote(110.0), "BBB": quote(40.0)}

    assert total_invested(invs, fixed) == 2100.0
    assert portfolio_value(invs, fixed, prices) == pytest.approx(2180.0)
    assert portfolio_pl(invs, fixed, prices) == pytest.approx(80.0)


def test_pl_percentage_guards_zero_invested():
    assert pl_percentage(0.0, 0.0) == 0.0
    assert pl_percentage(50.0, 200.0) == 0.25


def test_best_performer_uses_absolute_pl_and_first_wins_ties():
    a = make_inv("i1", "AAA", 1, 10.0)       # +90
    b = make_inv("i2", "BBB", 100, 10.0)     # +100
    c = make_inv("i3", "CCC", 100, 10.0)     # +100, later
    prices = {"AAA": quote(100.0), "BBB": quote(11.0), "CCC": quote(11.0)}

    assert best_performer((a, b, c), prices) is b
    assert best_performer((), prices) is None


def test_group_by_market():
    invs = (
        make_inv("i1", "PETR4", 1, 1.0, AssetType.STOCK),
        make_inv("i2", "MXRF11", 1, 1.0, AssetType.REAL_ESTATE_FUND),
        make_inv("i3", "AAPL", 1, 1.0, AssetType.INTERNATIONAL_STOCK),
        make_inv("i4", "O", 1, 1.0, AssetType.REIT),
        make_inv("i5", "BTC", 1, 1.0, AssetType.CRYPTO),
    )
    groups = group_by_market(invs)

    assert [i.ticker for i in groups["domestic"]] == ["PETR4", "MXRF11"]
    assert [i.ticker for i in groups["international"]] == ["AAPL", "O"]
    assert [i.ticker for i in groups["crypto"]] == ["BTC"]


def test_holdings_frame():
    invs = (make_inv("i1", "AAA", 10, 100.0), make_inv("i2", "ZZZ", 1, 5.0))
    prices = {"AAA": MarketInfo(price=120.0, change=3.0, signal=Signal.BUY)}
    df = holdings_frame(invs, prices)

    assert list(df["ticker"]) == ["AAA", "ZZZ"]
    assert df.loc[0, "pl"] == pytest.approx(200.0)
    assert df.loc[0, "signal"] == "buy"
    assert df.loc[1, "current_price"] == 5.0
    assert df.loc[1, "signal"] is None


def test_holdings_frame_empty_has_columns():
    df = holdings_frame((), {})

    assert df.empty
    assert "pl_pct" in df.columns
