# =============================================================================
# winshirt_core/offline/connection_manager.py
# Connectivity probe for the remote data service
# =============================================================================
"""
ConnectionManager - decides at call time whether Supabase is usable.

The probe is a minimal read (one ``id`` from the probe table). It is true
only when that read completes without error; any failure maps to offline.
There are no retries and no timeout knobs, a slow network simply delays
the answer.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

from winshirt_core.config import Settings
from winshirt_core.logging import get_logger

logger = get_logger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Connectivity probe with status-change callbacks.

    Usage:
        probe = ConnectionManager(gateway, settings)
        if await probe.is_connected():
            # remote path
        else:
            # local mirror path
    """

    def __init__(self, remote: Any, settings: Settings):
        self.remote = remote
        self.settings = settings
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._forced_offline = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Result of the last probe (no network call)."""
        return self._state.status == ConnectionStatus.ONLINE

    async def is_connected(self) -> bool:
        """Probe the backend now."""
        online, error = await self._probe()
        self._record(online, error)
        return online

    async def _probe(self) -> tuple:
        if self._forced_offline:
            return False, "Offline mode forced"
        if not self.settings.remote_configured:
            return False, "Supabase credentials not configured"

        try:
            await self.remote.select(self.settings.probe_table, columns="id", limit=1)
            return True, None
        except Exception as e:
            logger.warning(f"Connectivity probe failed: {e}")
            return False, str(e)

    def _record(self, online: bool, error: Optional[str]) -> None:
        old_status = self._state.status
        now = datetime.now()
        self._state.last_check = now

        if online:
            self._state.status = ConnectionStatus.ONLINE
            self._state.last_online = now
            self._state.consecutive_failures = 0
            self._state.error_message = None
        else:
            self._state.status = ConnectionStatus.OFFLINE
            self._state.consecutive_failures += 1
            self._state.error_message = error

        if old_status != self._state.status:
            logger.info(f"Connection status changed: {old_status.value} -> {self._state.status.value}")
            self._notify_callbacks()

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def force_offline(self, offline: bool = True) -> None:
        """Pin the offline path (user preference or tests)."""
        self._forced_offline = offline
        if offline:
            self._record(False, "Offline mode forced")
            logger.info("Forced offline mode")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "forced_offline": self._forced_offline,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
