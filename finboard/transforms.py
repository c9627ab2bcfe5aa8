import json
from dataclasses import fields, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Tuple, TypeVar

from finboard.domain import (
    Account, AssetType, Category, CategoryType, FixedIncomeInvestment, Investment,
    Transaction, TransactionType,
)
from finboard.errors import LedgerValidationError, SeedFileError

E = TypeVar("E")


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # Stored naive in UTC so that every pair of dates is comparable
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return _as_datetime(value).date()


# Per-field coercions applied to incoming payloads (seed rows, form input)
_COERCE = {
    "date": _as_datetime,
    "purchase_date": _as_date,
    "maturity_date": _as_date,
    "initial_balance": float,
    "amount": float,
    "quantity": float,
    "purchase_price": float,
    "amount_invested": float,
}

_TYPE_ENUMS = {
    Transaction: TransactionType,
    Category: CategoryType,
    Investment: AssetType,
    FixedIncomeInvestment: AssetType,
}


def coerce_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    """Check `data` keys against the dataclass `cls` and normalise their values."""
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise LedgerValidationError({
            "error": "unknown_fields",
            "message": f"Unknown fields for {cls.__name__}: {sorted(unknown)}",
            "fields": sorted(unknown),
        })

    out = dict(data)
    try:
        for key, value in data.items():
            if key in _COERCE and value is not None:
                out[key] = _COERCE[key](value)
        enum_cls = _TYPE_ENUMS.get(cls)
        if enum_cls is not None and out.get("type") is not None:
            out["type"] = enum_cls(out["type"])
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError({
            "error": "bad_value",
            "message": f"Invalid value for {cls.__name__}: {exc}",
        }) from exc
    return out


def build_entity(cls, entity_id: str, data: Dict[str, Any]):
    payload = coerce_fields(cls, data)
    payload.pop("id", None)
    try:
        return cls(id=entity_id, **payload)
    except TypeError as exc:
        raise LedgerValidationError({
            "error": "missing_fields",
            "message": f"Cannot build {cls.__name__}: {exc}",
        }) from exc


def merge_entity(entity: E, partial: Dict[str, Any]) -> E:
    """Shallow-merge `partial` onto a frozen entity; `id` is immutable."""
    if "id" in partial and partial["id"] != entity.id:
        raise LedgerValidationError({
            "error": "id_immutable",
            "message": f"Cannot change id of {entity.id}",
        })
    changes = coerce_fields(type(entity), {k: v for k, v in partial.items() if k != "id"})
    return replace(entity, **changes)


def sort_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    # Stable: equal dates keep their insertion order
    return tuple(sorted(trans, key=lambda t: t.date, reverse=True))


def append(items: Tuple[E, ...], item: E) -> Tuple[E, ...]:
    return items + (item,)


def replace_by_id(items: Tuple[E, ...], updated: E) -> Tuple[E, ...]:
    return tuple(updated if i.id == updated.id else i for i in items)


def remove_by_id(items: Tuple[E, ...], item_id: str) -> Tuple[E, ...]:
    return tuple(i for i in items if i.id != item_id)


def load_seed(path: str) -> Dict[str, tuple]:
    """Read a seed ledger from JSON.

    Returns a dict with tuples under "accounts", "categories", "transactions",
    "investments" and "fixed_income". Records must carry their own ids.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    record_types = {
        "accounts": Account,
        "categories": Category,
        "transactions": Transaction,
        "investments": Investment,
        "fixed_income": FixedIncomeInvestment,
    }
    seed = {}
    for key, cls in record_types.items():
        try:
            seed[key] = tuple(build_entity(cls, row["id"], row) for row in data.get(key, []))
        except (KeyError, ValueError, LedgerValidationError) as exc:
            raise SeedFileError(f"Bad {key} record in {path}: {exc}") from exc

    seed["transactions"] = sort_transactions(seed["transactions"])
    return seed
