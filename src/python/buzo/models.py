"""Domain models for cached entities and sync bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
import datetime as dt
from decimal import Decimal, InvalidOperation
import time
from typing import Any, ClassVar

from buzo.schema import (
    BUDGET_PERIODS,
    ENTITY_TYPES,
    MAX_AMOUNT,
    OPERATION_TYPES,
    TRANSACTION_KINDS,
)


def current_millis() -> int:
    """Return the current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _ensure_non_empty(value: str, field_name: str) -> str:
    """Validate required text fields."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value.strip()


def _ensure_amount(value: Decimal | str | int | float, field_name: str) -> Decimal:
    """Parse and validate a non-negative, bounded amount."""
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a decimal")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} must be a decimal") from exc
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be finite")
    if amount < Decimal("0"):
        raise ValueError(f"{field_name} must not be negative")
    if amount > MAX_AMOUNT:
        raise ValueError(f"{field_name} exceeds the maximum of {MAX_AMOUNT}")
    return amount


def _ensure_iso(value: str | None, field_name: str, required: bool = True) -> str | None:
    """Validate an ISO-8601 date or date-time string."""
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required")
        return None
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    try:
        # Python < 3.11 rejects the trailing Z that JavaScript clients emit
        dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"{field_name} must be an ISO-8601 date") from exc
    return str(value)


def _ensure_choice(value: str, choices: tuple[str, ...], field_name: str) -> str:
    if value not in choices:
        raise ValueError(f"{field_name} must be one of {', '.join(choices)}")
    return value


def parse_iso(value: str) -> dt.datetime:
    """Parse an ISO-8601 string into an aware datetime (UTC when naive)."""
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


class BaseEntity:
    """Shared serialization for cached entity records."""

    entity: ClassVar[str]
    id: str

    def _validate_id(self) -> None:
        object.__setattr__(self, "id", _ensure_non_empty(self.id, "id"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase record stored in the local cache."""
        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, Decimal):
                value = float(value)
            payload[_to_camel(item.name)] = value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]):
        """Build a validated record from a camelCase or snake_case mapping."""
        if not isinstance(payload, dict):
            raise ValueError(f"{cls.__name__} payload must be an object")
        kwargs: dict[str, Any] = {}
        for item in fields(cls):
            camel = _to_camel(item.name)
            if camel in payload:
                kwargs[item.name] = payload[camel]
            elif item.name in payload:
                kwargs[item.name] = payload[item.name]
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise ValueError(f"Invalid {cls.__name__} record: {exc}") from exc


@dataclass(frozen=True)
class Budget(BaseEntity):
    """Spending budget for a category and period."""

    entity: ClassVar[str] = "budget"

    id: str
    name: str
    amount: Decimal
    category: str
    spent: Decimal = Decimal("0")
    period: str = "monthly"
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def __post_init__(self) -> None:
        self._validate_id()
        object.__setattr__(self, "name", _ensure_non_empty(self.name, "Name"))
        object.__setattr__(self, "category", _ensure_non_empty(self.category, "Category"))
        object.__setattr__(self, "amount", _ensure_amount(self.amount, "Amount"))
        object.__setattr__(self, "spent", _ensure_amount(self.spent, "Spent"))
        object.__setattr__(self, "period", _ensure_choice(self.period, BUDGET_PERIODS, "Period"))
        object.__setattr__(self, "created_at", _ensure_iso(self.created_at, "created_at"))
        object.__setattr__(self, "updated_at", _ensure_iso(self.updated_at, "updated_at"))


@dataclass(frozen=True)
class Expense(BaseEntity):
    """Single recorded expense."""

    entity: ClassVar[str] = "expense"

    id: str
    title: str
    amount: Decimal
    category: str
    date: str
    description: str | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def __post_init__(self) -> None:
        self._validate_id()
        object.__setattr__(self, "title", _ensure_non_empty(self.title, "Title"))
        object.__setattr__(self, "category", _ensure_non_empty(self.category, "Category"))
        object.__setattr__(self, "amount", _ensure_amount(self.amount, "Amount"))
        object.__setattr__(self, "date", _ensure_iso(self.date, "date"))
        object.__setattr__(self, "created_at", _ensure_iso(self.created_at, "created_at"))
        object.__setattr__(self, "updated_at", _ensure_iso(self.updated_at, "updated_at"))


@dataclass(frozen=True)
class SavingsGoal(BaseEntity):
    """Savings target with accumulated progress."""

    entity: ClassVar[str] = "savings"

    id: str
    title: str
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    target_date: str | None = None
    is_completed: bool | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def __post_init__(self) -> None:
        self._validate_id()
        object.__setattr__(self, "title", _ensure_non_empty(self.title, "Title"))
        object.__setattr__(
            self, "target_amount", _ensure_amount(self.target_amount, "Target amount")
        )
        object.__setattr__(
            self, "current_amount", _ensure_amount(self.current_amount, "Current amount")
        )
        object.__setattr__(
            self, "target_date", _ensure_iso(self.target_date, "target_date", required=False)
        )
        if self.is_completed is None:
            object.__setattr__(self, "is_completed", self.current_amount >= self.target_amount)
        object.__setattr__(self, "created_at", _ensure_iso(self.created_at, "created_at"))
        object.__setattr__(self, "updated_at", _ensure_iso(self.updated_at, "updated_at"))


@dataclass(frozen=True)
class Transaction(BaseEntity):
    """Account transaction imported or entered by the user."""

    entity: ClassVar[str] = "transaction"

    id: str
    amount: Decimal
    category: str
    date: str
    description: str | None = None
    kind: str = "expense"

    def __post_init__(self) -> None:
        self._validate_id()
        object.__setattr__(self, "amount", _ensure_amount(self.amount, "Amount"))
        object.__setattr__(self, "category", _ensure_non_empty(self.category, "Category"))
        object.__setattr__(self, "date", _ensure_iso(self.date, "date"))
        object.__setattr__(self, "kind", _ensure_choice(self.kind, TRANSACTION_KINDS, "Kind"))


ENTITY_MODELS: dict[str, type[BaseEntity]] = {
    "budget": Budget,
    "expense": Expense,
    "savings": SavingsGoal,
    "transaction": Transaction,
}


def ensure_unique_ids(items: list[BaseEntity], entity: str) -> None:
    """Reject collections that repeat an identifier."""
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise ValueError(f"Duplicate {entity} id: {item.id}")
        seen.add(item.id)


@dataclass(frozen=True)
class PendingSyncItem:
    """Queued mutation not yet confirmed by the remote service."""

    id: str
    entity: str
    type: str
    data: dict[str, Any] | None
    timestamp: int
    attempts: int = 0
    last_attempt: int | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _ensure_non_empty(self.id, "id"))
        _ensure_choice(self.entity, ENTITY_TYPES, "entity")
        _ensure_choice(self.type, OPERATION_TYPES, "type")
        if self.type != "delete" and not isinstance(self.data, dict):
            raise ValueError(f"{self.type} operations require a data payload")
        if self.data is not None and not isinstance(self.data, dict):
            raise ValueError("data must be an object")
        if self.attempts < 0:
            raise ValueError("attempts must not be negative")

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def record_id(self) -> str:
        """Identifier of the entity record this operation targets."""
        if self.data and self.data.get("id"):
            return str(self.data["id"])
        return self.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity": self.entity,
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
            "attempts": self.attempts,
            "lastAttempt": self.last_attempt,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PendingSyncItem":
        if not isinstance(payload, dict):
            raise ValueError("Pending sync item must be an object")
        try:
            return cls(
                id=payload["id"],
                entity=payload["entity"],
                type=payload["type"],
                data=payload.get("data"),
                timestamp=int(payload["timestamp"]),
                attempts=int(payload.get("attempts") or 0),
                last_attempt=payload.get("lastAttempt"),
                error=payload.get("error"),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid pending sync item: {exc}") from exc


@dataclass(frozen=True)
class SyncStatus:
    """Observable snapshot of sync progress and failures.

    Attributes:
        is_syncing: True only while a sync pass is in flight
        last_sync_attempt: Milliseconds timestamp of the last pass start
        last_successful_sync: Milliseconds timestamp of the last fully successful pass
        pending_count: Number of items in the pending queue
        failed_count: Number of queued items flagged as failed
        sync_progress: Fraction of the current pass completed, in [0, 1]
        error: Last recorded error message
    """

    is_syncing: bool = False
    last_sync_attempt: int | None = None
    last_successful_sync: int | None = None
    pending_count: int = 0
    failed_count: int = 0
    sync_progress: float = 0.0
    error: str | None = None

    def __post_init__(self) -> None:
        if self.pending_count < 0 or self.failed_count < 0:
            raise ValueError("Counts must not be negative")
        if not 0.0 <= float(self.sync_progress) <= 1.0:
            raise ValueError("sync_progress must be between 0 and 1")

    def to_dict(self) -> dict[str, Any]:
        return {_to_camel(item.name): getattr(self, item.name) for item in fields(self)}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SyncStatus":
        kwargs = {
            item.name: payload[_to_camel(item.name)]
            for item in fields(cls)
            if _to_camel(item.name) in payload
        }
        return cls(**kwargs)

    def evolve(self, **changes: Any) -> "SyncStatus":
        return replace(self, **changes)


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a sync pass."""

    successful: list[PendingSyncItem] = field(default_factory=list)
    failed: list[tuple[PendingSyncItem, str]] = field(default_factory=list)
    skipped: bool = False
    pulled: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.failed and not self.errors
