"""Connectivity probes and the network state monitor."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Awaitable, Callable

import requests

from buzo.storage import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 3


class ConnectivityProbe(ABC):
    """Reports whether the remote service is reachable."""

    @abstractmethod
    async def is_online(self) -> bool:
        """Return the current connectivity state."""


class StaticConnectivityProbe(ConnectivityProbe):
    """Probe with a settable state, for simulating offline mode."""

    def __init__(self, online: bool = True) -> None:
        self.online = online

    def set_online(self, online: bool) -> None:
        self.online = online

    async def is_online(self) -> bool:
        return self.online


class HttpConnectivityProbe(ConnectivityProbe):
    """Probe that issues a HEAD request against a reachability URL."""

    def __init__(self, url: str, timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds

    def _head(self) -> bool:
        try:
            response = requests.head(self.url, timeout=self.timeout_seconds, allow_redirects=True)
        except requests.RequestException as exc:
            logger.debug("Connectivity probe failed: %s", exc)
            return False
        return response.status_code < 500

    async def is_online(self) -> bool:
        return await asyncio.to_thread(self._head)


class NetworkMonitor:
    """Track connectivity transitions and react when the device reconnects."""

    def __init__(
        self,
        probe: ConnectivityProbe,
        store: LocalStore,
        on_reconnect: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self.probe = probe
        self.store = store
        self.on_reconnect = on_reconnect
        self.current: bool | None = None
        self._listeners: list[Callable[[bool], None]] = []

    def add_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Subscribe to connectivity changes; known state is delivered immediately."""
        self._listeners.append(listener)
        if self.current is not None:
            listener(self.current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def check(self) -> bool:
        """Probe once, persist the flag and fire change notifications."""
        online = await self.probe.is_online()
        await self.store.set_online(online)
        if online == self.current:
            return online
        previous = self.current
        self.current = online
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Network listener failed")
        if online and previous is False and self.on_reconnect is not None:
            logger.info("Network connection restored, triggering sync")
            await self.on_reconnect()
        return online

    async def watch(self, interval_seconds: float, stop_event: asyncio.Event) -> None:
        """Poll the probe until stop_event is set."""
        while not stop_event.is_set():
            await self.check()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue
