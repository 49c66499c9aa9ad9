# =============================================================================
# winshirt_core/offline/realtime.py
# Reload mirrored tables on Supabase change notifications
# =============================================================================
"""
RealtimeMirrorRefresher - coarse invalidate-and-reload.

Any insert/update/delete on a watched table triggers a full
``fetch_all(force_refresh=True)`` on the adapter owning that table. Events
arriving while a reload is running collapse into one follow-up reload.
"""

from __future__ import annotations
import asyncio
from typing import Any, Dict, Optional, Set

from winshirt_core.errors import error_boundary
from winshirt_core.logging import get_logger

logger = get_logger(__name__)

WATCHED_TABLES = ("lotteries", "products")


class RealtimeMirrorRefresher:
    """
    Usage:
        refresher = RealtimeMirrorRefresher(gateway, {"lotteries": lotteries, "products": products})
        await refresher.start()
        ...
        await refresher.stop()
    """

    def __init__(self, remote: Any, services: Dict[str, Any]):
        self.remote = remote
        self.services = {table: services[table] for table in WATCHED_TABLES if table in services}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running: Dict[str, asyncio.Task] = {}
        self._pending: Set[str] = set()
        self._started = False
        self.reload_count: Dict[str, int] = {table: 0 for table in self.services}

    @property
    def is_running(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Subscribe to change notifications for every watched table."""
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        for table in self.services:
            await self.remote.subscribe(table, self._make_callback(table))
        self._started = True
        logger.info(f"Realtime refresh started for {', '.join(self.services)}")

    async def stop(self) -> None:
        """Unsubscribe and wait for in-flight reloads."""
        if not self._started:
            return
        self._started = False
        await self.remote.unsubscribe_all()
        self._pending.clear()
        tasks = list(self._running.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Realtime refresh stopped")

    def _make_callback(self, table: str):
        def _on_change(payload: Dict[str, Any]) -> None:
            logger.debug(f"Change notification on {table}: {payload.get('eventType', payload.get('type'))}")
            # Channel callbacks may run outside the loop's thread
            self._loop.call_soon_threadsafe(self.invalidate, table)

        return _on_change

    def invalidate(self, table: str) -> None:
        """Schedule a reload of ``table`` (coalesced with any running one)."""
        if not self._started or table not in self.services:
            return
        task = self._running.get(table)
        if task is not None and not task.done():
            self._pending.add(table)
            return
        self._running[table] = self._loop.create_task(self._reload(table))

    async def _reload(self, table: str) -> None:
        try:
            while True:
                self._pending.discard(table)
                await self._reload_once(table)
                self.reload_count[table] += 1
                if table not in self._pending or not self._started:
                    break
        finally:
            self._running.pop(table, None)

    @error_boundary()
    async def _reload_once(self, table: str) -> None:
        result = await self.services[table].fetch_all(force_refresh=True)
        if not result:
            logger.warning(f"Realtime reload of {table} failed: {result.error}")
