# =============================================================================
# winshirt_core/offline/unified_data_service.py
# WinShirtDataService - one object wiring every data layer component
# =============================================================================
"""
WinShirtDataService builds the gateway, local mirror, connectivity probe,
every entity adapter, the sync manager, backup service, realtime refresher
and auth service from one Settings instance.

Usage:
------
from winshirt_core.offline import get_data_service

service = get_data_service()

lotteries = await service.lotteries.fetch_all()
await service.lotteries.add_participant(3, {"userId": 12, "name": "Ana"})

print(service.get_status())
"""

from __future__ import annotations
from typing import Any, Dict, Optional

from winshirt_core.auth import AuthService
from winshirt_core.config import Settings
from winshirt_core.data.client_service import ClientService
from winshirt_core.data.lottery_service import LotteryService
from winshirt_core.data.order_service import OrderService
from winshirt_core.data.product_service import ProductService
from winshirt_core.data.supabase_client import SupabaseGateway
from winshirt_core.data.visual_service import VisualCategoryService, VisualService
from winshirt_core.logging import get_logger, setup_logging
from winshirt_core.notifications import LoggingNotifier, Notifier
from .backup import BackupService
from .connection_manager import ConnectionManager
from .local_mirror import LocalMirror
from .realtime import RealtimeMirrorRefresher
from .sync_manager import SyncManager

logger = get_logger(__name__)


class WinShirtDataService:
    """
    Container for the data layer.

    Every collaborator is constructed here and injected; tests pass their
    own ``remote`` and ``mirror``.
    """

    def __init__(
        self,
        settings: Settings,
        remote: Optional[Any] = None,
        mirror: Optional[LocalMirror] = None,
        notifier: Optional[Notifier] = None,
        session: Optional[Any] = None,
    ):
        self.settings = settings
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.remote = remote if remote is not None else SupabaseGateway(settings)
        self.mirror = (mirror or LocalMirror(settings.local_db_path)).initialize()
        self.probe = ConnectionManager(self.remote, settings)

        adapter_args = (self.remote, self.mirror, self.probe)
        self.lotteries = LotteryService(*adapter_args, notifier=self.notifier)
        self.products = ProductService(
            *adapter_args, notifier=self.notifier, lottery_service=self.lotteries
        )
        self.orders = OrderService(*adapter_args, notifier=self.notifier)
        self.visuals = VisualService(*adapter_args, notifier=self.notifier)
        self.visual_categories = VisualCategoryService(*adapter_args, notifier=self.notifier)
        self.clients = ClientService(*adapter_args, notifier=self.notifier)

        self.sync = SyncManager(
            self.remote, self.mirror, self.probe, notifier=self.notifier, services=self.services
        )
        self.backup = BackupService(
            self.mirror,
            self.remote,
            self.probe,
            self.sync,
            backup_dir=settings.backup_dir,
            notifier=self.notifier,
        )
        self.realtime = RealtimeMirrorRefresher(self.remote, self.services)
        self.auth = AuthService(self.remote, notifier=self.notifier, session=session)

    @property
    def services(self) -> Dict[str, Any]:
        """Entity adapters keyed by their table."""
        return {
            service.table: service
            for service in (
                self.lotteries,
                self.products,
                self.orders,
                self.visuals,
                self.visual_categories,
                self.clients,
            )
        }

    @property
    def is_online(self) -> bool:
        """Result of the last probe."""
        return self.probe.is_online

    async def check_connection(self) -> bool:
        return await self.probe.is_connected()

    def force_offline(self, offline: bool = True) -> None:
        self.probe.force_offline(offline)

    def get_status(self) -> Dict[str, Any]:
        """Status information for UI display."""
        return {
            "connection": self.probe.get_status_display(),
            "remote_configured": self.settings.remote_configured,
            "local_db": str(self.mirror.db_path),
            "mirrored_tables": self.mirror.keys(),
            "realtime": self.realtime.is_running,
            "sync_history": {
                table: status.to_app() for table, status in self.mirror.sync_history().items()
            },
        }

    async def close(self) -> None:
        """Stop realtime refresh and release connections."""
        try:
            await self.realtime.stop()
            if hasattr(self.remote, "close"):
                await self.remote.close()
        finally:
            self.mirror.close()


# Process-wide instance for Streamlit pages
_data_service: Optional[WinShirtDataService] = None


def get_data_service(notifier: Optional[Notifier] = None) -> WinShirtDataService:
    """
    Get the global WinShirtDataService, built from Settings.load() on first use.

    Usage:
        from winshirt_core.offline import get_data_service
        from winshirt_core.notifications import StreamlitNotifier

        service = get_data_service(StreamlitNotifier())
    """
    global _data_service
    if _data_service is None:
        settings = Settings.load()
        setup_logging(level=settings.logging_level)
        _data_service = WinShirtDataService(settings, notifier=notifier)
        logger.info("WinShirt data service initialized")
    return _data_service


def reset_data_service() -> None:
    """Forget the global instance (the next call rebuilds it)."""
    global _data_service
    _data_service = None
