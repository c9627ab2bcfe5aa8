from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class CategoryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class AssetType(str, Enum):
    FIXED_INCOME = "fixed_income"
    STOCK = "stock"
    REAL_ESTATE_FUND = "real_estate_fund"
    CRYPTO = "crypto"
    INTERNATIONAL_STOCK = "international_stock"
    REIT = "reit"


VARIABLE_ASSET_TYPES = frozenset(t for t in AssetType if t is not AssetType.FIXED_INCOME)


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    bank: str
    initial_balance: float  # balance is always derived, never stored


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: CategoryType


@dataclass(frozen=True)
class Transaction:
    id: str
    date: datetime
    account_id: str
    type: TransactionType
    category: str      # category name, not id
    description: str
    amount: float      # non-negative magnitude; type gives the sign
    payment_method: str = ""
    to_account_id: Optional[str] = None  # transfers only


# Variable income holding, valued from the market price of its ticker
@dataclass(frozen=True)
class Investment:
    id: str
    type: AssetType
    ticker: str
    quantity: float
    purchase_price: float
    purchase_date: date

    @property
    def cost(self) -> float:
        return self.purchase_price * self.quantity


@dataclass(frozen=True)
class FixedIncomeInvestment:
    id: str
    name: str
    issuer: str
    amount_invested: float
    yield_rate: str    # descriptive only, e.g. "110% CDI"
    purchase_date: date
    maturity_date: date
    type: AssetType = AssetType.FIXED_INCOME


@dataclass(frozen=True)
class MarketInfo:
    price: float
    change: float    # absolute delta since the previous quote
    signal: Signal
