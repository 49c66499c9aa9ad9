# =============================================================================
# winshirt_core/offline/sync_manager.py
# Manual table synchronization between the local mirror and Supabase
# =============================================================================
"""
SyncManager - push/pull whole tables on demand (admin sync page).

Features:
- Push mirror rows to Supabase (upsert on id)
- Pull remote rows into the mirror
- Per-table SyncStatus bookkeeping
- Local vs remote row counts
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from winshirt_core.data.field_mapping import get_mapping
from winshirt_core.data.schemas import SyncStatus
from winshirt_core.data.supabase_client import KNOWN_TABLES
from winshirt_core.errors import OfflineError
from winshirt_core.notifications import Notifier
from winshirt_core.services import BaseService, ServiceResult

# Parents before children so foreign keys resolve on push
SYNC_ORDER = (
    "visual_categories",
    "visuals",
    "products",
    "lotteries",
    "lottery_participants",
    "lottery_winners",
    "clients",
    "orders",
    "order_items",
    "user_roles",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncManager(BaseService):
    """
    Table-level synchronization.

    Usage:
        manager = SyncManager(gateway, mirror, probe, services={"lotteries": lotteries})
        status = (await manager.push_table("products")).data
    """

    def __init__(
        self,
        remote: Any,
        mirror: Any,
        probe: Any,
        notifier: Optional[Notifier] = None,
        services: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(notifier)
        self.remote = remote
        self.mirror = mirror
        self.probe = probe
        self.services: Dict[str, Any] = services or {}

    def _app_only_fields(self, table: str) -> Iterable[str]:
        service = self.services.get(table)
        return service.app_only_fields if service is not None else ()

    def _record(self, table: str, status: SyncStatus) -> ServiceResult:
        self.mirror.set_sync_status(table, status)
        if status.success:
            return ServiceResult.ok(status)
        return ServiceResult(success=False, data=status, error=status.error, error_code="SYNC_001")

    # =========================================================================
    # PUSH / PULL
    # =========================================================================

    async def push_table(self, table: str) -> ServiceResult:
        """Upsert every mirrored row of ``table`` into Supabase."""
        if not await self.probe.is_connected():
            return self.fail(OfflineError(f"Cannot push {table} while offline", table=table))

        if not self.mirror.has(table):
            return self._record(table, SyncStatus(success=False, error=f"No local data found for {table}"))

        rows = self.mirror.read(table)
        if not rows:
            return self._record(
                table, SyncStatus(success=True, last_sync=_now(), local_count=0, remote_count=0)
            )

        mapping = get_mapping(table)
        excluded = set(self._app_only_fields(table))
        payload = [
            mapping.to_remote({k: v for k, v in row.items() if k not in excluded})
            for row in rows if isinstance(row, dict)
        ]
        try:
            with self.log_operation("Pushing", table=table, rows=len(payload)) as op:
                stored = await self.remote.upsert(table, payload, on_conflict="id")
                op.note(stored=len(stored))
        except Exception as e:
            self.logger.error(f"Error pushing {table} to Supabase: {e}")
            return self._record(
                table, SyncStatus(success=False, error=str(e), local_count=len(rows))
            )

        return self._record(
            table,
            SyncStatus(success=True, last_sync=_now(), local_count=len(rows), remote_count=len(stored)),
        )

    async def pull_table(self, table: str) -> ServiceResult:
        """Replace the mirror entry of ``table`` with the remote rows."""
        if not await self.probe.is_connected():
            return self.fail(OfflineError(f"Cannot pull {table} while offline", table=table))

        service = self.services.get(table)
        try:
            with self.log_operation(f"Pulling {table}"):
                if service is not None:
                    # Adapter assembles child rows and validates
                    result = await service.fetch_all(force_refresh=True)
                    if result.metadata.get("source") != "remote":
                        raise RuntimeError(result.metadata.get("error") or f"Could not read {table}")
                    rows = result.data
                else:
                    rows = get_mapping(table).rows_to_app(await self.remote.select(table))
                    self.mirror.write(table, rows)
        except Exception as e:
            self.logger.error(f"Error pulling {table} from Supabase: {e}")
            return self._record(table, SyncStatus(success=False, error=str(e)))

        return self._record(
            table,
            SyncStatus(success=True, last_sync=_now(), remote_count=len(rows), local_count=len(rows)),
        )

    async def sync_all(self, tables: Optional[List[str]] = None) -> ServiceResult:
        """Push every table; returns SyncStatus per table."""
        if not await self.probe.is_connected():
            return self.fail(OfflineError("Cannot synchronize while offline"))

        results: Dict[str, SyncStatus] = {}
        for table in tables or SYNC_ORDER:
            result = await self.push_table(table)
            results[table] = result.data

        failed = [table for table, status in results.items() if status is None or not status.success]
        if failed:
            self.notifier.warning(f"Synchronization finished with errors: {', '.join(failed)}")
        else:
            self.notifier.success("All tables synchronized")
        return ServiceResult(success=not failed, data=results, metadata={"failed": failed})

    # =========================================================================
    # BOOKKEEPING
    # =========================================================================

    def get_sync_status(self, table: str) -> Optional[SyncStatus]:
        return self.mirror.get_sync_status(table)

    def get_sync_history(self) -> Dict[str, SyncStatus]:
        return self.mirror.sync_history()

    def clear_sync_history(self) -> None:
        self.mirror.clear_sync_history()
        self.logger.info("Sync history cleared")

    def clear_local(self, table: Optional[str] = None) -> None:
        """Remove one table's mirror entry, or every known table's."""
        for name in [table] if table else KNOWN_TABLES:
            self.mirror.remove(name)
        self.logger.info(f"Cleared local data for {table or 'all tables'}")

    async def get_data_counts(self) -> Dict[str, Dict[str, Any]]:
        """Local and remote row counts per known table."""
        online = await self.probe.is_connected()
        counts: Dict[str, Dict[str, Any]] = {}
        for table in KNOWN_TABLES:
            local = self.mirror.count(table)
            remote: Optional[int] = None
            if online:
                try:
                    remote = await self.remote.count(table)
                except Exception as e:
                    self.logger.warning(f"Error counting {table}: {e}")
            counts[table] = {
                "local": local,
                "remote": remote,
                "synced": remote is not None and local == remote,
            }
        return counts

    async def check_required_tables(self) -> ServiceResult:
        """Known tables that cannot be read on the backend."""
        if not await self.probe.is_connected():
            return self.fail(OfflineError("Cannot check tables while offline"))

        missing = []
        for table in KNOWN_TABLES:
            try:
                await self.remote.select(table, columns="id", limit=1)
            except Exception as e:
                self.logger.warning(f"Table {table} is not available: {e}")
                missing.append(table)
        return ServiceResult.ok(missing, metadata={"all_present": not missing})
