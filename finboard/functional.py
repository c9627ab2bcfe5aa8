from abc import ABC, abstractmethod
from datetime import datetime
from typing import TypeVar, Generic, Callable, Iterable, Optional
from finboard.domain import (
    Account, AssetType, Category, FixedIncomeInvestment, Investment, Transaction,
    TransactionType, VARIABLE_ASSET_TYPES,
)

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def get(self) -> T:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def is_right(self) -> bool:
        return True

    def get(self) -> T:
        return self._value

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return Left(self._error)

    def is_right(self) -> bool:
        return False

    def get(self) -> T:
        raise ValueError(f"Cannot get value from Left: {self._error}")

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def find_by_id(items: Iterable[T], item_id: str) -> Maybe[T]:
    for item in items:
        if getattr(item, "id", None) == item_id:
            return Some(item)
    return Nothing()


def _positive(field: str, value: float) -> Optional[dict]:
    # written as `not > 0` so that NaN is rejected too
    if value is None or not value > 0:
        return {
            "error": f"non_positive_{field}",
            "message": f"{field} must be greater than zero, got {value}",
            field: value,
        }
    return None


def _not_blank(field: str, value: str) -> Optional[dict]:
    if not value or not str(value).strip():
        return {
            "error": f"blank_{field}",
            "message": f"{field} must not be blank",
        }
    return None


def _check(problem: Optional[dict], value: T) -> Either[dict, T]:
    return Left(problem) if problem else Right(value)


def validate_account(a: Account) -> Either[dict, Account]:
    return _check(_not_blank("name", a.name), a)


def validate_category(c: Category) -> Either[dict, Category]:
    return _check(_not_blank("name", c.name), c)


def _has_date(t: Transaction) -> Either[dict, Transaction]:
    if not isinstance(t.date, datetime):
        return Left({
            "error": "missing_date",
            "message": f"Transaction needs a date, got {t.date!r}",
        })
    return Right(t)


def _destination_matches_type(t: Transaction) -> Either[dict, Transaction]:
    if t.type == TransactionType.TRANSFER:
        if not t.to_account_id:
            return Left({
                "error": "missing_destination",
                "message": "Transfer needs a destination account",
            })
        if t.to_account_id == t.account_id:
            return Left({
                "error": "same_account_transfer",
                "message": f"Transfer source and destination are both {t.account_id}",
                "account_id": t.account_id,
            })
    elif t.to_account_id is not None:
        return Left({
            "error": "unexpected_destination",
            "message": f"Only transfers have a destination account, got {t.type.value}",
            "to_account_id": t.to_account_id,
        })
    return Right(t)


def validate_transaction(t: Transaction) -> Either[dict, Transaction]:
    return (
        _has_date(t)
        .bind(lambda t: _check(_positive("amount", t.amount), t))
        .bind(_destination_matches_type)
    )


def validate_investment(inv: Investment) -> Either[dict, Investment]:
    if inv.type not in VARIABLE_ASSET_TYPES:
        return Left({
            "error": "wrong_asset_type",
            "message": f"{inv.type.value} is not a variable income asset",
            "type": inv.type.value,
        })
    problem = (
        _not_blank("ticker", inv.ticker)
        or _positive("quantity", inv.quantity)
        or _positive("purchase_price", inv.purchase_price)
    )
    return _check(problem, inv)


def _maturity_after_purchase(inv: FixedIncomeInvestment) -> Either[dict, FixedIncomeInvestment]:
    if inv.maturity_date < inv.purchase_date:
        return Left({
            "error": "maturity_before_purchase",
            "message": f"Maturity {inv.maturity_date} precedes purchase {inv.purchase_date}",
        })
    return Right(inv)


def validate_fixed_income(inv: FixedIncomeInvestment) -> Either[dict, FixedIncomeInvestment]:
    if inv.type != AssetType.FIXED_INCOME:
        return Left({
            "error": "wrong_asset_type",
            "message": f"{inv.type.value} is not a fixed income asset",
            "type": inv.type.value,
        })
    problem = _not_blank("name", inv.name) or _positive("amount_invested", inv.amount_invested)
    return _check(problem, inv).bind(_maturity_after_purchase)
