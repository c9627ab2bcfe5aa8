from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

import structlog

from finboard.domain import Account, Category, FixedIncomeInvestment, Investment, Transaction
from finboard.events import EventBus, LEDGER_CHANGED
from finboard.errors import LedgerValidationError
from finboard.functional import (
    Either, find_by_id, validate_account, validate_category, validate_fixed_income,
    validate_investment, validate_transaction,
)
from finboard.transforms import (
    append, build_entity, load_seed, merge_entity, remove_by_id, replace_by_id,
    sort_transactions,
)

log = structlog.get_logger(__name__)


def new_id() -> str:
    return uuid4().hex


class LedgerStore:
    """Single source of truth for accounts, transactions, holdings and categories.

    Collections are immutable tuples swapped on every mutation. Each successful
    mutation bumps `version` and publishes LEDGER_CHANGED on the bus, so
    derived views can tell when their inputs moved.
    """

    _COLLECTIONS = {
        "account": ("_accounts", Account, validate_account),
        "transaction": ("_transactions", Transaction, validate_transaction),
        "investment": ("_investments", Investment, validate_investment),
        "fixed_income": ("_fixed_income", FixedIncomeInvestment, validate_fixed_income),
        "category": ("_categories", Category, validate_category),
    }

    def __init__(
        self,
        accounts: Tuple[Account, ...] = (),
        transactions: Tuple[Transaction, ...] = (),
        investments: Tuple[Investment, ...] = (),
        fixed_income: Tuple[FixedIncomeInvestment, ...] = (),
        categories: Tuple[Category, ...] = (),
        bus: Optional[EventBus] = None,
        id_factory: Callable[[], str] = new_id,
    ):
        self._accounts = tuple(accounts)
        self._transactions = sort_transactions(tuple(transactions))
        self._investments = tuple(investments)
        self._fixed_income = tuple(fixed_income)
        self._categories = tuple(categories)
        self.bus = bus if bus is not None else EventBus()
        self._new_id = id_factory
        self.version = 0

    @classmethod
    def from_seed(cls, path: str, bus: Optional[EventBus] = None) -> "LedgerStore":
        seed = load_seed(path)
        log.info("ledger_seeded", path=path, **{k: len(v) for k, v in seed.items()})
        return cls(bus=bus, **seed)

    # --- snapshots ---

    @property
    def accounts(self) -> Tuple[Account, ...]:
        return self._accounts

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return self._transactions

    @property
    def investments(self) -> Tuple[Investment, ...]:
        return self._investments

    @property
    def fixed_income(self) -> Tuple[FixedIncomeInvestment, ...]:
        return self._fixed_income

    @property
    def categories(self) -> Tuple[Category, ...]:
        return self._categories

    def get(self, entity: str, entity_id: str):
        attr, _, _ = self._COLLECTIONS[entity]
        return find_by_id(getattr(self, attr), entity_id).get_or_else(None)

    # --- generic mutation helpers ---

    def _changed(self, entity: str, action: str, entity_id: str) -> None:
        self.version += 1
        log.info("ledger_changed", entity=entity, action=action, id=entity_id, version=self.version)
        self.bus.publish(LEDGER_CHANGED, {"entity": entity, "action": action, "id": entity_id})

    def _store(self, entity: str, items: tuple) -> None:
        attr, _, _ = self._COLLECTIONS[entity]
        if entity == "transaction":
            items = sort_transactions(items)
        setattr(self, attr, items)

    @staticmethod
    def _checked(result: Either):
        if not result.is_right():
            raise LedgerValidationError(result.get_error())
        return result.get()

    def _add(self, entity: str, data: Dict[str, Any]):
        attr, cls, validate = self._COLLECTIONS[entity]
        created = self._checked(validate(build_entity(cls, self._new_id(), data)))
        self._store(entity, append(getattr(self, attr), created))
        self._changed(entity, "add", created.id)
        return created

    def _update(self, entity: str, entity_id: str, partial: Dict[str, Any]):
        attr, _, validate = self._COLLECTIONS[entity]
        current = find_by_id(getattr(self, attr), entity_id)
        if not current.is_some():
            log.warning("update_not_found", entity=entity, id=entity_id)
            return None
        updated = self._checked(validate(merge_entity(current.get_or_else(None), partial)))
        self._store(entity, replace_by_id(getattr(self, attr), updated))
        self._changed(entity, "update", entity_id)
        return updated

    def _delete(self, entity: str, entity_id: str) -> bool:
        attr, _, _ = self._COLLECTIONS[entity]
        items = getattr(self, attr)
        remaining = remove_by_id(items, entity_id)
        if len(remaining) == len(items):
            log.info("delete_not_found", entity=entity, id=entity_id)
            return False
        self._store(entity, remaining)
        self._changed(entity, "delete", entity_id)
        return True

    # --- accounts ---

    def add_account(self, data: Dict[str, Any]) -> Account:
        return self._add("account", data)

    def update_account(self, account_id: str, partial: Dict[str, Any]) -> Optional[Account]:
        return self._update("account", account_id, partial)

    # --- transactions ---

    def add_transaction(self, data: Dict[str, Any]) -> Transaction:
        return self._add("transaction", data)

    def update_transaction(self, transaction_id: str, partial: Dict[str, Any]) -> Optional[Transaction]:
        return self._update("transaction", transaction_id, partial)

    def delete_transaction(self, transaction_id: str) -> bool:
        return self._delete("transaction", transaction_id)

    # --- variable income ---

    def add_investment(self, data: Dict[str, Any]) -> Investment:
        return self._add("investment", data)

    def update_investment(self, investment_id: str, partial: Dict[str, Any]) -> Optional[Investment]:
        return self._update("investment", investment_id, partial)

    def delete_investment(self, investment_id: str) -> bool:
        return self._delete("investment", investment_id)

    # --- fixed income ---

    def add_fixed_income(self, data: Dict[str, Any]) -> FixedIncomeInvestment:
        return self._add("fixed_income", data)

    def update_fixed_income(self, investment_id: str, partial: Dict[str, Any]) -> Optional[FixedIncomeInvestment]:
        return self._update("fixed_income", investment_id, partial)

    def delete_fixed_income(self, investment_id: str) -> bool:
        return self._delete("fixed_income", investment_id)

    # --- categories (referenced by name from transactions, so no cascade) ---

    def add_category(self, data: Dict[str, Any]) -> Category:
        return self._add("category", data)

    def update_category(self, category_id: str, partial: Dict[str, Any]) -> Optional[Category]:
        return self._update("category", category_id, partial)

    def delete_category(self, category_id: str) -> bool:
        return self._delete("category", category_id)

    def tickers(self) -> Tuple[str, ...]:
        """Distinct tickers held, in first-held order."""
        return tuple(dict.fromkeys(inv.ticker for inv in self._investments))
