# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import asyncio
import copy
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

from winshirt_core.config import Settings
from winshirt_core.errors import RemoteServiceError
from winshirt_core.offline.connection_manager import ConnectionManager
from winshirt_core.offline.local_mirror import LocalMirror


# =============================================================================
# REMOTE DATA SERVICE DOUBLE
# =============================================================================

class InMemoryRemote:
    """
    Async stand-in for SupabaseGateway backed by plain dicts.

    - ``offline = True`` makes every call raise RemoteServiceError
    - tables in ``failing`` raise on every call touching them
    - ``rpc_enabled = False`` simulates a missing ``increment`` function
    - every call yields to the event loop before touching data, so
      concurrent callers interleave like real network requests
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.offline = False
        self.failing: set = set()
        self.rpc_enabled = True
        self.calls: List[tuple] = []
        self.subscriptions: Dict[str, List[Callable]] = {}
        self.unsubscribed = False
        self.users: List[Dict[str, Any]] = []
        self.passwords: Dict[str, str] = {}
        self.session_user: Optional[Dict[str, Any]] = None

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    async def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        await asyncio.sleep(0)
        if self.offline:
            raise RemoteServiceError("Network unreachable", table=table, operation=operation)
        if table in self.failing:
            raise RemoteServiceError(f"{operation} on {table} failed", table=table, operation=operation)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def calls_to(self, table: str, operation: Optional[str] = None) -> List[tuple]:
        return [
            call for call in self.calls
            if call[1] == table and (operation is None or call[0] == operation)
        ]

    def data_calls(self, probe_table: str = "lotteries") -> List[tuple]:
        """Calls other than connectivity probes."""
        return [
            call for call in self.calls
            if not (call[0] == "probe" and call[1] == probe_table)
        ]

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        return all(row.get(column) == value for column, value in (filters or {}).items())

    def _next_id(self, table: str) -> int:
        ids = [row["id"] for row in self.rows(table) if isinstance(row.get("id"), int)]
        return max(ids, default=0) + 1

    # -------------------------------------------------------------------------
    # table operations
    # -------------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        is_probe = columns == "id" and limit == 1 and not filters
        await self._enter("probe" if is_probe else "select", table)

        rows = [row for row in self.rows(table) if self._matches(row, filters)]
        if order_by:
            rows = sorted(rows, key=lambda row: (row.get(order_by) is None, row.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [column.strip() for column in columns.split(",")]
            rows = [{column: row.get(column) for column in wanted} for row in rows]
        return copy.deepcopy(rows)

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("insert", table)
        stored = dict(row)
        stored.setdefault("id", self._next_id(table))
        self.rows(table).append(stored)
        return copy.deepcopy(stored)

    async def insert_many(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        await self._enter("insert", table)
        stored = []
        for row in rows:
            item = dict(row)
            item.setdefault("id", self._next_id(table))
            self.rows(table).append(item)
            stored.append(item)
        return copy.deepcopy(stored)

    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        await self._enter("update", table)
        updated = []
        for row in self.rows(table):
            if self._matches(row, filters):
                row.update(values)
                updated.append(row)
        return copy.deepcopy(updated)

    async def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        await self._enter("delete", table)
        removed = [row for row in self.rows(table) if self._matches(row, filters)]
        self.tables[table] = [row for row in self.rows(table) if not self._matches(row, filters)]
        return copy.deepcopy(removed)

    async def delete_all(self, table: str) -> None:
        await self._enter("delete", table)
        self.tables[table] = []

    async def upsert(
        self,
        table: str,
        rows: List[Dict[str, Any]],
        on_conflict: str = "id",
    ) -> List[Dict[str, Any]]:
        if not rows:
            return []
        await self._enter("upsert", table)
        stored = []
        for row in rows:
            existing = next(
                (
                    r for r in self.rows(table)
                    if row.get(on_conflict) is not None and r.get(on_conflict) == row.get(on_conflict)
                ),
                None,
            )
            if existing is None:
                existing = dict(row)
                if existing.get("id") is None:
                    existing["id"] = self._next_id(table)
                self.rows(table).append(existing)
            else:
                existing.update(row)
            stored.append(existing)
        return copy.deepcopy(stored)

    async def count(self, table: str) -> int:
        await self._enter("count", table)
        return len(self.rows(table))

    async def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        await self._enter("rpc", function)
        if function != "increment" or not self.rpc_enabled:
            raise RemoteServiceError(f"Could not find the function public.{function}", operation="rpc")

        for row in self.rows(params["table_name"]):
            if row.get("id") == params["row_id"]:
                field = params["field_name"]
                row[field] = (row.get(field) or 0) + params["num_increment"]
                return row[field]
        raise RemoteServiceError("Row not found", operation="rpc")

    # -------------------------------------------------------------------------
    # realtime
    # -------------------------------------------------------------------------

    async def subscribe(self, table: str, callback: Callable) -> None:
        await self._enter("subscribe", table)
        self.subscriptions.setdefault(table, []).append(callback)

    async def unsubscribe_all(self) -> None:
        self.subscriptions.clear()
        self.unsubscribed = True

    def emit(self, table: str, event_type: str = "UPDATE") -> None:
        """Deliver a change notification to every subscriber of ``table``."""
        for callback in list(self.subscriptions.get(table, [])):
            callback({"eventType": event_type, "table": table})

    # -------------------------------------------------------------------------
    # auth
    # -------------------------------------------------------------------------

    def _user_object(self, user: Dict[str, Any]) -> SimpleNamespace:
        return SimpleNamespace(
            id=user["id"], email=user["email"], user_metadata=dict(user["user_metadata"])
        )

    def add_user(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        user = {"id": f"user-{len(self.users) + 1}", "email": email, "user_metadata": metadata or {}}
        self.users.append(user)
        self.passwords[email] = password
        return user

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Any:
        await self._enter("sign_up", "auth")
        if email in self.passwords:
            raise RemoteServiceError("User already registered", operation="sign_up")
        user = self.add_user(email, password, metadata)
        return SimpleNamespace(user=self._user_object(user), session=None)

    async def sign_in_with_password(self, email: str, password: str) -> Any:
        await self._enter("sign_in", "auth")
        if self.passwords.get(email) != password:
            raise RemoteServiceError("Invalid login credentials", operation="sign_in")
        self.session_user = next(user for user in self.users if user["email"] == email)
        return SimpleNamespace(user=self._user_object(self.session_user), session=SimpleNamespace())

    async def resend_confirmation(self, email: str) -> Any:
        await self._enter("resend", "auth")
        return SimpleNamespace()

    async def sign_out(self) -> None:
        await self._enter("sign_out", "auth")
        self.session_user = None

    async def get_user(self) -> Any:
        await self._enter("get_user", "auth")
        return self._user_object(self.session_user) if self.session_user else None

    async def admin_list_users(self) -> List[Any]:
        await self._enter("list_users", "auth")
        return [self._user_object(user) for user in self.users]

    async def admin_update_user(self, user_id: str, attributes: Dict[str, Any]) -> Any:
        await self._enter("update_user", "auth")
        user = next(user for user in self.users if user["id"] == user_id)
        user["user_metadata"] = dict(attributes.get("user_metadata", user["user_metadata"]))
        return self._user_object(user)


class RecordingNotifier:
    """Notifier that keeps every message per level."""

    def __init__(self):
        self.messages: Dict[str, List[str]] = {"success": [], "error": [], "info": [], "warning": []}

    def success(self, message: str) -> None:
        self.messages["success"].append(message)

    def error(self, message: str) -> None:
        self.messages["error"].append(message)

    def info(self, message: str) -> None:
        self.messages["info"].append(message)

    def warning(self, message: str) -> None:
        self.messages["warning"].append(message)


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    """Settings with fake credentials and storage under tmp_path"""
    return Settings(
        supabase_url="https://winshirt-test.supabase.co",
        supabase_key="anon-test-key",
        local_db_path=tmp_path / "mirror.db",
        backup_dir=tmp_path / "backups",
    )


@pytest.fixture
def remote():
    return InMemoryRemote()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def mirror(settings):
    store = LocalMirror(settings.local_db_path).initialize()
    yield store
    store.close()


@pytest.fixture
def probe(remote, settings):
    return ConnectionManager(remote, settings)


@pytest.fixture
def offline(probe):
    """Pin the probe to offline"""
    probe.force_offline()
    return probe


# =============================================================================
# ADAPTER FIXTURES
# =============================================================================

@pytest.fixture
def lottery_service(remote, mirror, probe, notifier):
    from winshirt_core.data.lottery_service import LotteryService
    return LotteryService(remote, mirror, probe, notifier=notifier)


@pytest.fixture
def product_service(remote, mirror, probe, notifier, lottery_service):
    from winshirt_core.data.product_service import ProductService
    return ProductService(remote, mirror, probe, notifier=notifier, lottery_service=lottery_service)


@pytest.fixture
def order_service(remote, mirror, probe, notifier):
    from winshirt_core.data.order_service import OrderService
    return OrderService(remote, mirror, probe, notifier=notifier)


@pytest.fixture
def visual_service(remote, mirror, probe, notifier):
    from winshirt_core.data.visual_service import VisualService
    return VisualService(remote, mirror, probe, notifier=notifier)


@pytest.fixture
def category_service(remote, mirror, probe, notifier):
    from winshirt_core.data.visual_service import VisualCategoryService
    return VisualCategoryService(remote, mirror, probe, notifier=notifier)


@pytest.fixture
def client_service(remote, mirror, probe, notifier):
    from winshirt_core.data.client_service import ClientService
    return ClientService(remote, mirror, probe, notifier=notifier)


@pytest.fixture
def sync_manager(remote, mirror, probe, notifier, lottery_service, product_service, order_service):
    from winshirt_core.offline.sync_manager import SyncManager
    services = {
        service.table: service
        for service in (lottery_service, product_service, order_service)
    }
    return SyncManager(remote, mirror, probe, notifier=notifier, services=services)


@pytest.fixture
def backup_service(remote, mirror, probe, notifier, sync_manager, tmp_path):
    from winshirt_core.offline.backup import BackupService
    return BackupService(
        mirror, remote, probe, sync_manager, backup_dir=tmp_path / "backups", notifier=notifier
    )


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def remote_lottery_row():
    """A lottery row as stored in Supabase (snake_case)"""
    return {
        "id": 1,
        "title": "Summer Hoodie Draw",
        "description": "Win a limited hoodie",
        "value": 80.0,
        "target_participants": 3,
        "current_participants": 0,
        "status": "active",
        "image": "https://cdn.example.com/hoodie.png",
        "linked_products": [1],
        "draw_date": None,
        "end_date": None,
        "featured": False,
    }


@pytest.fixture
def remote_product_rows():
    """Two product rows as stored in Supabase (snake_case)"""
    return [
        {
            "id": 1,
            "name": "Classic Tee",
            "description": "Cotton tee",
            "price": 19.9,
            "image": "https://cdn.example.com/tee.png",
            "secondary_image": None,
            "sizes": ["S", "M", "L"],
            "colors": ["black", "white"],
            "type": "standard",
            "product_type": "tshirt",
            "sleeve_type": "short",
            "linked_lotteries": [1],
            "tickets": 1,
            "allow_customization": True,
            "print_areas": [
                {"id": 1, "name": "Front", "position": "front", "format": "a4",
                 "bounds": {"x": 10, "y": 20, "width": 210, "height": 297},
                 "allowCustomPosition": False},
            ],
        },
        {
            "id": 2,
            "name": "Premium Hoodie",
            "description": "",
            "price": 49.0,
            "image": "",
            "sizes": ["M"],
            "colors": ["grey"],
            "type": "premium",
            "linked_lotteries": [],
            "tickets": 3,
        },
    ]


@pytest.fixture
def order_payload():
    """An order in application naming, before totals"""
    return {
        "clientName": "Ana Martin",
        "clientEmail": "ana@example.com",
        "userId": 7,
        "items": [
            {"productId": 1, "productName": "Classic Tee", "quantity": 2, "price": 19.9},
            {"productId": 2, "productName": "Premium Hoodie", "quantity": 1, "price": 49.0},
        ],
        "shipping": {"address": "1 rue de la Paix", "city": "Paris", "postalCode": "75002",
                     "country": "FR", "cost": 5.5},
        "payment": {"method": "card", "status": "paid"},
    }
