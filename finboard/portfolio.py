from typing import Dict, Iterable, Mapping, Optional, Sequence

import pandas as pd

from finboard.domain import AssetType, FixedIncomeInvestment, Investment, MarketInfo

Prices = Mapping[str, MarketInfo]

MARKET_GROUPS = {
    "domestic": (AssetType.STOCK, AssetType.REAL_ESTATE_FUND),
    "international": (AssetType.INTERNATIONAL_STOCK, AssetType.REIT),
    "crypto": (AssetType.CRYPTO,),
}

HOLDING_COLUMNS = [
    "id", "ticker", "type", "quantity", "purchase_price", "current_price",
    "cost", "value", "pl", "pl_pct", "signal",
]


def current_price(inv: Investment, prices: Prices) -> float:
    """Latest market price for the holding, or what was paid when unquoted."""
    info = prices.get(inv.ticker)
    return info.price if info is not None else inv.purchase_price


def total_invested(investments: Iterable[Investment], fixed: Iterable[FixedIncomeInvestment]) -> float:
    return sum(inv.cost for inv in investments) + sum(f.amount_invested for f in fixed)


def portfolio_value(
    investments: Iterable[Investment], fixed: Iterable[FixedIncomeInvestment], prices: Prices
) -> float:
    # Fixed income is carried at cost; no yield accrual
    variable = sum(current_price(inv, prices) * inv.quantity for inv in investments)
    return variable + sum(f.amount_invested for f in fixed)


def portfolio_pl(
    investments: Sequence[Investment], fixed: Sequence[FixedIncomeInvestment], prices: Prices
) -> float:
    return portfolio_value(investments, fixed, prices) - total_invested(investments, fixed)


def pl_percentage(pl: float, invested: float) -> float:
    """P/L as a ratio of the amount invested; 0.0 when nothing is invested."""
    return pl / invested if invested > 0 else 0.0


def asset_pl(inv: Investment, prices: Prices) -> float:
    return (current_price(inv, prices) - inv.purchase_price) * inv.quantity


def asset_pl_percentage(inv: Investment, prices: Prices) -> float:
    cost = inv.cost
    return asset_pl(inv, prices) / cost if cost else 0.0


def best_performer(investments: Iterable[Investment], prices: Prices) -> Optional[Investment]:
    best, best_pl = None, None
    for inv in investments:
        pl = asset_pl(inv, prices)
        # strict comparison keeps the first holding on ties
        if best is None or pl > best_pl:
            best, best_pl = inv, pl
    return best


def group_by_market(investments: Iterable[Investment]) -> Dict[str, tuple]:
    groups: Dict[str, list] = {name: [] for name in MARKET_GROUPS}
    for inv in investments:
        for name, types in MARKET_GROUPS.items():
            if inv.type in types:
                groups[name].append(inv)
    return {name: tuple(items) for name, items in groups.items()}


def holdings_frame(investments: Iterable[Investment], prices: Prices) -> pd.DataFrame:
    """One row per variable income holding with its valuation and signal."""
    rows = []
    for inv in investments:
        info = prices.get(inv.ticker)
        price = current_price(inv, prices)
        rows.append({
            "id": inv.id,
            "ticker": inv.ticker,
            "type": inv.type.value,
            "quantity": inv.quantity,
            "purchase_price": inv.purchase_price,
            "current_price": price,
            "cost": inv.cost,
            "value": price * inv.quantity,
            "pl": asset_pl(inv, prices),
            "pl_pct": asset_pl_percentage(inv, prices),
            "signal": info.signal.value if info is not None else None,
        })
    return pd.DataFrame(rows, columns=HOLDING_COLUMNS)
