from collections import defaultdict
from datetime import date
from typing import Callable, Iterable, Iterator, Optional, Tuple

from finboard.domain import Transaction, TransactionType


def iter_transactions(
    trans: Iterable[Transaction], pred: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def since(start: date):
    def _filter(t: Transaction) -> bool:
        return t.date.date() >= start

    return _filter


def of_type(*types: TransactionType):
    def _filter(t: Transaction) -> bool:
        return t.type in types

    return _filter


def lazy_top_categories(
    trans: Iterable[Transaction], k: Optional[int] = None
) -> Iterator[Tuple[str, float]]:
    """Expense totals per category name, largest first; all of them when k is None."""
    totals_by_category: dict[str, float] = defaultdict(float)

    for t in trans:
        if t.type == TransactionType.EXPENSE:
            totals_by_category[t.category] += t.amount

    ordered = sorted(totals_by_category.items(), key=lambda item: item[1], reverse=True)
    if k is not None:
        ordered = ordered[: max(0, k)]

    for name, total in ordered:
        yield name, total
