from collections import defaultdict
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from finboard.domain import Account, Transaction, TransactionType

log = structlog.get_logger(__name__)


def account_balances(accounts: Iterable[Account], transactions: Iterable[Transaction]) -> Dict[str, float]:
    """Replay transactions oldest first on top of each account's initial balance.

    A transaction whose source account is unknown is skipped entirely; a
    transfer to an unknown account only debits the source.
    """
    balances: Dict[str, float] = {a.id: a.initial_balance for a in accounts}

    for t in sorted(transactions, key=lambda t: t.date):
        if t.account_id not in balances:
            log.debug("dangling_transaction_skipped", id=t.id, account_id=t.account_id)
            continue
        if t.type == TransactionType.INCOME:
            balances[t.account_id] += t.amount
        elif t.type == TransactionType.EXPENSE:
            balances[t.account_id] -= t.amount
        elif t.type == TransactionType.TRANSFER:
            balances[t.account_id] -= t.amount
            if t.to_account_id in balances:
                balances[t.to_account_id] += t.amount

    return balances


def total_balance(balances: Dict[str, float]) -> float:
    return sum(balances.values())


def accounts_with_balance(
    accounts: Iterable[Account], balances: Dict[str, float]
) -> List[Tuple[Account, float]]:
    return [(a, balances.get(a.id, a.initial_balance)) for a in accounts]


def net_effect(t: Transaction) -> float:
    """Effect of a transaction on the ledger-wide total; transfers net to zero."""
    if t.type == TransactionType.INCOME:
        return t.amount
    if t.type == TransactionType.EXPENSE:
        return -t.amount
    return 0.0


def ledger_effect(t: Transaction, known: Collection[str]) -> float:
    """net_effect restricted to the accounts in `known`, as account_balances applies it."""
    if t.account_id not in known:
        return 0.0
    if t.type == TransactionType.TRANSFER and t.to_account_id not in known:
        return -t.amount
    return net_effect(t)


def daily_running_balances(
    transactions: Sequence[Transaction],
    current_total: float,
    known_accounts: Optional[Collection[str]] = None,
) -> Dict[str, float]:
    """End-of-day ledger total for every day that has transactions.

    Walks back from `current_total` (the balance after the latest day),
    undoing one day of activity at a time. When `known_accounts` is given,
    transactions touching other accounts count only as far as they moved
    the known balances. Keys are ISO days, newest first.
    """
    per_day: Dict[str, float] = defaultdict(float)
    for t in transactions:
        delta = net_effect(t) if known_accounts is None else ledger_effect(t, known_accounts)
        per_day[t.date.date().isoformat()] += delta

    running = current_total
    result: Dict[str, float] = {}
    for day in sorted(per_day, reverse=True):
        result[day] = running
        running -= per_day[day]
    return result
