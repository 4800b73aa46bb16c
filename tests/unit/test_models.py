from __future__ import annotations

from decimal import Decimal

import pytest

from buzo.models import (
    Budget,
    Expense,
    PendingSyncItem,
    SavingsGoal,
    SyncResult,
    SyncStatus,
    Transaction,
    ensure_unique_ids,
    parse_iso,
)


def test_budget_required_fields() -> None:
    budget = Budget(id="b1", name="Groceries", amount=Decimal("400"), category="Food")

    assert budget.spent == Decimal("0")
    assert budget.period == "monthly"
    assert budget.created_at
    assert budget.updated_at


def test_budget_validation() -> None:
    with pytest.raises(ValueError):
        Budget(id="b1", name="", amount=Decimal("400"), category="Food")

    with pytest.raises(ValueError):
        Budget(id="", name="Groceries", amount=Decimal("400"), category="Food")

    with pytest.raises(ValueError):
        Budget(id="b1", name="Groceries", amount=Decimal("-1"), category="Food")

    with pytest.raises(ValueError):
        Budget(id="b1", name="Groceries", amount=Decimal("400"), category="Food", period="daily")


def test_amount_bounds() -> None:
    with pytest.raises(ValueError):
        Budget(id="b1", name="Big", amount=Decimal("1000000000.01"), category="Food")

    with pytest.raises(ValueError):
        Budget(id="b1", name="Nan", amount=Decimal("NaN"), category="Food")

    with pytest.raises(ValueError):
        Budget(id="b1", name="Flag", amount=True, category="Food")

    budget = Budget(id="b1", name="Max", amount=Decimal("1000000000"), category="Food")
    assert budget.amount == Decimal("1000000000")


def test_budget_from_dict_accepts_camel_case(sample_budget_payload: dict) -> None:
    budget = Budget.from_dict(sample_budget_payload)

    assert budget.id == "budget-1"
    assert budget.amount == Decimal("400.0")
    assert budget.spent == Decimal("120.5")
    assert budget.created_at == "2026-02-01T09:00:00+00:00"


def test_budget_to_dict_uses_camel_case(sample_budget_payload: dict) -> None:
    payload = Budget.from_dict(sample_budget_payload).to_dict()

    assert payload == sample_budget_payload


def test_from_dict_rejects_missing_fields() -> None:
    with pytest.raises(ValueError):
        Budget.from_dict({"id": "b1", "name": "Groceries"})

    with pytest.raises(ValueError):
        Budget.from_dict(["not", "a", "record"])


def test_expense_dates_accept_trailing_z() -> None:
    expense = Expense(
        id="e1",
        title="Lunch",
        amount="12.50",
        category="Food",
        date="2026-02-16T12:00:00Z",
    )

    assert expense.amount == Decimal("12.50")
    assert expense.description is None

    with pytest.raises(ValueError):
        Expense(id="e2", title="Lunch", amount="1", category="Food", date="yesterday")


def test_savings_goal_derives_completion() -> None:
    open_goal = SavingsGoal(id="s1", title="Trip", target_amount=Decimal("1000"))
    done_goal = SavingsGoal(
        id="s2",
        title="Laptop",
        target_amount=Decimal("800"),
        current_amount=Decimal("800"),
    )
    explicit = SavingsGoal(
        id="s3",
        title="Car",
        target_amount=Decimal("800"),
        current_amount=Decimal("10"),
        is_completed=True,
    )

    assert open_goal.is_completed is False
    assert done_goal.is_completed is True
    assert explicit.is_completed is True
    assert open_goal.to_dict()["targetAmount"] == 1000.0


def test_transaction_kind_validation() -> None:
    txn = Transaction(id="t1", amount="5", category="Salary", date="2026-02-01", kind="income")

    assert txn.kind == "income"

    with pytest.raises(ValueError):
        Transaction(id="t2", amount="5", category="Salary", date="2026-02-01", kind="refund")


def test_ensure_unique_ids() -> None:
    first = Budget(id="b1", name="A", amount="1", category="Food")
    second = Budget(id="b1", name="B", amount="2", category="Food")

    with pytest.raises(ValueError):
        ensure_unique_ids([first, second], "budget")


def test_pending_item_round_trip() -> None:
    item = PendingSyncItem(
        id="q1",
        entity="budget",
        type="update",
        data={"id": "b1", "name": "Groceries"},
        timestamp=1700000000000,
        attempts=2,
        last_attempt=1700000005000,
        error="HTTP 500",
    )

    payload = item.to_dict()

    assert payload["lastAttempt"] == 1700000005000
    assert PendingSyncItem.from_dict(payload) == item
    assert item.failed is True
    assert item.record_id == "b1"


def test_pending_item_validation() -> None:
    with pytest.raises(ValueError):
        PendingSyncItem(id="q1", entity="invoice", type="create", data={}, timestamp=1)

    with pytest.raises(ValueError):
        PendingSyncItem(id="q1", entity="budget", type="upsert", data={}, timestamp=1)

    with pytest.raises(ValueError):
        PendingSyncItem(id="q1", entity="budget", type="create", data=None, timestamp=1)

    with pytest.raises(ValueError):
        PendingSyncItem.from_dict({"id": "q1", "entity": "budget"})

    delete = PendingSyncItem(id="q2", entity="budget", type="delete", data=None, timestamp=1)
    assert delete.record_id == "q2"
    assert delete.failed is False


def test_sync_status_defaults_and_bounds() -> None:
    status = SyncStatus()

    assert status.is_syncing is False
    assert status.last_successful_sync is None
    assert status.pending_count == 0
    assert status.to_dict()["syncProgress"] == 0.0

    with pytest.raises(ValueError):
        SyncStatus(pending_count=-1)

    with pytest.raises(ValueError):
        SyncStatus(sync_progress=1.5)


def test_sync_status_round_trip() -> None:
    status = SyncStatus(
        is_syncing=True,
        last_sync_attempt=10,
        last_successful_sync=5,
        pending_count=3,
        failed_count=1,
        sync_progress=0.5,
        error="boom",
    )

    assert SyncStatus.from_dict(status.to_dict()) == status
    assert status.evolve(is_syncing=False).is_syncing is False
    assert status.evolve(is_syncing=False).pending_count == 3


def test_sync_result_ok() -> None:
    item = PendingSyncItem(id="q1", entity="budget", type="delete", data=None, timestamp=1)

    assert SyncResult().ok is True
    assert SyncResult(skipped=True).ok is False
    assert SyncResult(failed=[(item, "boom")]).ok is False
    assert SyncResult(errors=["pull failed"]).ok is False


def test_parse_iso_assumes_utc_for_naive_values() -> None:
    assert parse_iso("2026-02-01T09:00:00").tzinfo is not None
    assert parse_iso("2026-02-01T09:00:00Z") == parse_iso("2026-02-01T09:00:00+00:00")
