"""Mock data generation for exercising offline mode."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
import random
import uuid

from buzo.client import BuzoClient
from buzo.models import Budget, Expense, SavingsGoal, now_iso

MOCK_CATEGORIES = ("Food", "Transport", "Entertainment", "Utilities")


def _cents(upper: int, rng: random.Random) -> Decimal:
    return Decimal(rng.randrange(upper)) / Decimal("100")


def generate_mock_budget(rng: random.Random | None = None) -> Budget:
    rng = rng or random.Random()
    return Budget(
        id=str(uuid.uuid4()),
        name=f"Test Budget {rng.randrange(1000)}",
        amount=_cents(10000, rng),
        category=rng.choice(MOCK_CATEGORIES),
        period=rng.choice(("weekly", "monthly")),
    )


def generate_mock_expense(rng: random.Random | None = None) -> Expense:
    rng = rng or random.Random()
    return Expense(
        id=str(uuid.uuid4()),
        title=f"Test Expense {rng.randrange(1000)}",
        amount=_cents(10000, rng),
        category=rng.choice(MOCK_CATEGORIES),
        date=now_iso(),
    )


def generate_mock_savings_goal(rng: random.Random | None = None) -> SavingsGoal:
    rng = rng or random.Random()
    target = _cents(100000, rng)
    current = (target * Decimal(str(rng.random()))).quantize(Decimal("0.01"))
    deadline = dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=rng.uniform(0, 30))
    return SavingsGoal(
        id=str(uuid.uuid4()),
        title=f"Test Goal {rng.randrange(1000)}",
        target_amount=target,
        current_amount=min(current, target),
        target_date=deadline.replace(microsecond=0).isoformat(),
    )


async def add_mock_budget(client: BuzoClient, rng: random.Random | None = None) -> Budget:
    budget = generate_mock_budget(rng)
    await client.add("budget", budget)
    return budget


async def add_mock_expense(client: BuzoClient, rng: random.Random | None = None) -> Expense:
    expense = generate_mock_expense(rng)
    await client.add("expense", expense)
    return expense


async def add_mock_savings_goal(
    client: BuzoClient, rng: random.Random | None = None
) -> SavingsGoal:
    goal = generate_mock_savings_goal(rng)
    await client.add("savings", goal)
    return goal


async def add_multiple_mock_items(
    client: BuzoClient,
    count: int = 3,
    rng: random.Random | None = None,
) -> dict[str, list]:
    """Add count budgets, expenses and savings goals, each queued for sync."""
    if count < 0:
        raise ValueError("count must not be negative")
    created: dict[str, list] = {"budgets": [], "expenses": [], "savings_goals": []}
    for _ in range(count):
        created["budgets"].append(await add_mock_budget(client, rng))
        created["expenses"].append(await add_mock_expense(client, rng))
        created["savings_goals"].append(await add_mock_savings_goal(client, rng))
    return created


async def clear_all_offline_data(client: BuzoClient) -> None:
    await client.clear_all_offline_data()
