"""Remote data service contract and REST implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import logging
import re
from typing import Any

import requests

from buzo.exceptions import DuplicateError, NotFoundError, RemoteOperationError
from buzo.models import PendingSyncItem
from buzo.schema import REMOTE_TABLES, SERVER_MANAGED_FIELDS

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_column(name: str) -> str:
    """Map a camelCase payload key to its snake_case table column."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _to_columns(data: dict[str, Any], exclude: tuple[str, ...]) -> dict[str, Any]:
    return {_to_column(key): value for key, value in data.items() if key not in exclude}


class RemoteDataService(ABC):
    """Authoritative remote store for cached entities.

    Implementations must be idempotent per record id: replaying a create,
    update or delete that already took effect must not corrupt remote state.
    """

    @abstractmethod
    async def create(self, entity: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a record and return the stored representation."""

    @abstractmethod
    async def update(self, entity: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record and return the stored representation."""

    @abstractmethod
    async def delete(self, entity: str, record_id: str) -> None:
        """Delete a record."""

    @abstractmethod
    async def fetch_all(self, entity: str) -> list[dict[str, Any]]:
        """Return every remote record for the entity."""

    async def apply(self, item: PendingSyncItem) -> None:
        """Apply a queued operation."""
        if item.type == "create":
            await self.create(item.entity, dict(item.data or {}))
        elif item.type == "update":
            await self.update(item.entity, item.record_id, dict(item.data or {}))
        elif item.type == "delete":
            await self.delete(item.entity, item.record_id)
        else:
            raise RemoteOperationError(
                f"Unsupported operation: {item.type}", item.entity, item.record_id
            )


class RestRemoteService(RemoteDataService):
    """PostgREST-style HTTP client over a requests session."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "Prefer": "return=representation"}
        )
        if api_key:
            self.session.headers.update(
                {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
            )

    def _url(self, entity: str) -> str:
        try:
            table = REMOTE_TABLES[entity]
        except KeyError as exc:
            raise RemoteOperationError(f"Unknown entity: {entity}", entity) from exc
        return f"{self.base_url}/rest/v1/{table}"

    def _request(
        self,
        method: str,
        entity: str,
        record_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        params = {"id": f"eq.{record_id}"} if record_id is not None and method != "POST" else None
        try:
            response = self.session.request(
                method,
                self._url(entity),
                params=params,
                json=payload,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise RemoteOperationError(
                f"{method} {entity} failed: {exc}", entity, record_id
            ) from exc

        if response.status_code == 409:
            raise DuplicateError(
                f"Duplicate {entity}", {"entity": entity, "id": record_id}
            )
        if response.status_code == 404:
            raise NotFoundError(f"{entity} not found: {record_id}", entity, record_id, 404)
        if response.status_code >= 400:
            raise RemoteOperationError(
                f"{method} {entity} failed with HTTP {response.status_code}: {response.text}",
                entity,
                record_id,
                response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteOperationError(
                f"{method} {entity} returned invalid JSON", entity, record_id
            ) from exc

    @staticmethod
    def _first(payload: Any) -> dict[str, Any]:
        if isinstance(payload, list):
            return payload[0] if payload else {}
        return payload or {}

    async def create(self, entity: str, data: dict[str, Any]) -> dict[str, Any]:
        body = _to_columns(data, SERVER_MANAGED_FIELDS)
        logger.debug("POST %s %s", entity, body.get("id"))
        payload = await asyncio.to_thread(self._request, "POST", entity, body.get("id"), body)
        return self._first(payload)

    async def update(self, entity: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        body = _to_columns(data, ("id",))
        logger.debug("PATCH %s %s", entity, record_id)
        payload = await asyncio.to_thread(self._request, "PATCH", entity, record_id, body)
        return self._first(payload)

    async def delete(self, entity: str, record_id: str) -> None:
        logger.debug("DELETE %s %s", entity, record_id)
        await asyncio.to_thread(self._request, "DELETE", entity, record_id)

    async def fetch_all(self, entity: str) -> list[dict[str, Any]]:
        payload = await asyncio.to_thread(self._request, "GET", entity)
        if not isinstance(payload, list):
            raise RemoteOperationError(f"Unexpected {entity} listing payload", entity)
        return payload
