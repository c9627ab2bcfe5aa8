import random
from datetime import datetime

from finboard.balances import (
    account_balances, accounts_with_balance, daily_running_balances, total_balance,
)
from finboard.domain import Account, Transaction, TransactionType


def make_acc(id, initial):
    return Account(id=id, name=f"Account {id}", bank="Bank", initial_balance=initial)


def make_tx(id, acc_id, type, amount, ts, to=None):
    return Transaction(
        id=id,
        date=datetime.fromisoformat(ts),
        account_id=acc_id,
        type=type,
        category="General",
        description="",
        amount=amount,
        to_account_id=to,
    )


def test_account_without_transactions_keeps_initial_balance():
    accounts = (make_acc("a1", 1000.0), make_acc("a2", 0.0))
    balances = account_balances(accounts, ())

    assert balances == {"a1": 1000.0, "a2": 0.0}


def test_income_and_expense_scenario():
    accounts = (make_acc("a1", 1000.0),)
    trans = (
        make_tx("t2", "a1", TransactionType.EXPENSE, 200.0, "2025-01-02"),
        make_tx("t1", "a1", TransactionType.INCOME, 500.0, "2025-01-01"),
    )
    balances = account_balances(accounts, trans)

    assert balances["a1"] == 1300.0
    assert total_balance(balances) == 1300.0


def test_transfer_between_accounts():
    accounts = (make_acc("A", 1000.0), make_acc("B", 500.0))
    before = total_balance(account_balances(accounts, ()))
    trans = (make_tx("t1", "A", TransactionType.TRANSFER, 300.0, "2025-01-05", to="B"),)
    balances = account_balances(accounts, trans)

    assert balances == {"A": 700.0, "B": 800.0}
    assert total_balance(balances) == before == 1500.0


def test_transfers_are_zero_sum_across_ledger():
    accounts = (make_acc("A", 100.0), make_acc("B", 200.0), make_acc("C", 300.0))
    trans = (
        make_tx("t1", "A", TransactionType.TRANSFER, 50.0, "2025-01-01", to="B"),
        make_tx("t2", "B", TransactionType.TRANSFER, 125.0, "2025-01-02", to="C"),
        make_tx("t3", "C", TransactionType.TRANSFER, 10.0, "2025-01-03", to="A"),
    )

    assert total_balance(account_balances(accounts, trans)) == 600.0


def test_balances_do_not_depend_on_storage_order():
    accounts = (make_acc("a1", 1000.0), make_acc("a2", 250.0))
    trans = [
        make_tx("t1", "a1", TransactionType.INCOME, 500.0, "2025-01-01"),
        make_tx("t2", "a1", TransactionType.EXPENSE, 120.0, "2025-01-02"),
        make_tx("t3", "a1", TransactionType.TRANSFER, 300.0, "2025-01-03", to="a2"),
        make_tx("t4", "a2", TransactionType.EXPENSE, 40.0, "2025-01-04"),
        make_tx("t5", "a2", TransactionType.INCOME, 75.0, "2025-01-04"),
    ]
    expected = account_balances(accounts, trans)

    rng = random.Random(3)
    for _ in range(5):
        shuffled = trans[:]
        rng.shuffle(shuffled)
        assert account_balances(accounts, tuple(shuffled)) == expected


def test_unknown_source_account_is_skipped():
    accounts = (make_acc("a1", 100.0),)
    trans = (
        make_tx("t1", "ghost", TransactionType.TRANSFER, 50.0, "2025-01-01", to="a1"),
        make_tx("t2", "ghost", TransactionType.INCOME, 50.0, "2025-01-02"),
    )

    assert account_balances(accounts, trans) == {"a1": 100.0}


def test_transfer_to_unknown_account_only_debits_source():
    accounts = (make_acc("a1", 100.0),)
    trans = (make_tx("t1", "a1", TransactionType.TRANSFER, 30.0, "2025-01-01", to="gone"),)

    assert account_balances(accounts, trans) == {"a1": 70.0}


def test_accounts_with_balance_falls_back_to_initial():
    accounts = (make_acc("a1", 10.0), make_acc("a2", 20.0))
    pairs = accounts_with_balance(accounts, {"a1": 15.0})

    assert [b for _, b in pairs] == [15.0, 20.0]


def test_daily_running_balances_walk_back_from_current_total():
    trans = (
        make_tx("t3", "a1", TransactionType.TRANSFER, 300.0, "2025-01-03", to="a2"),
        make_tx("t2", "a1", TransactionType.EXPENSE, 200.0, "2025-01-02"),
        make_tx("t1", "a1", TransactionType.INCOME, 500.0, "2025-01-01"),
    )
    result = daily_running_balances(trans, 1300.0)

    assert list(result) == ["2025-01-03", "2025-01-02", "2025-01-01"]
    assert result["2025-01-03"] == 1300.0
    assert result["2025-01-02"] == 1300.0
    assert result["2025-01-01"] == 1500.0


def test_daily_running_balances_follow_known_accounts():
    accounts = (make_acc("a1", 100.0),)
    trans = (
        make_tx("t3", "a1", TransactionType.INCOME, 20.0, "2025-01-03"),
        make_tx("t2", "a1", TransactionType.TRANSFER, 30.0, "2025-01-02", to="gone"),
        make_tx("t1", "ghost", TransactionType.INCOME, 50.0, "2025-01-01"),
    )
    total = total_balance(account_balances(accounts, trans))

    result = daily_running_balances(trans, total, {"a1"})

    assert total == 90.0
    assert result == {"2025-01-03": 90.0, "2025-01-02": 70.0, "2025-01-01": 100.0}
