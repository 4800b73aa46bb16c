"""Storage keys and sync vocabulary constants."""

from __future__ import annotations

from decimal import Decimal

STORAGE_KEYS = {
    "budgets": "buzo_budgets",
    "expenses": "buzo_expenses",
    "savings": "buzo_savings_goals",
    "transactions": "buzo_transactions",
    "pending_sync": "buzo_pending_sync",
    "last_sync": "buzo_last_sync",
    "sync_status": "buzo_sync_status",
    "network_online": "buzo_network_online",
}

ENTITY_TYPES = ("budget", "expense", "savings", "transaction")
OPERATION_TYPES = ("create", "update", "delete")

# Cached collection key per entity
ENTITY_COLLECTIONS = {
    "budget": STORAGE_KEYS["budgets"],
    "expense": STORAGE_KEYS["expenses"],
    "savings": STORAGE_KEYS["savings"],
    "transaction": STORAGE_KEYS["transactions"],
}

# Remote table per entity
REMOTE_TABLES = {
    "budget": "budgets",
    "expense": "expenses",
    "savings": "savings_goals",
    "transaction": "transactions",
}

# Entities compared against remote state to find unqueued local changes
CHANGE_DETECTION_ENTITIES = ("budget", "savings")

# Fields generated by the remote service
SERVER_MANAGED_FIELDS = ("createdAt", "updatedAt")

MAX_AMOUNT = Decimal("1000000000")
BUDGET_PERIODS = ("weekly", "monthly")
TRANSACTION_KINDS = ("expense", "income")

KV_TABLE = "kv_store"
