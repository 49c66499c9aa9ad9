# =============================================================================
# winshirt_core/data/supabase_client.py
# Supabase gateway: table CRUD, realtime channels and auth
# =============================================================================
"""
The Remote Data Service boundary.

SupabaseGateway wraps a supabase ``AsyncClient``. It is constructed
explicitly from Settings and handed to every adapter, so tests can pass an
in-memory double with the same coroutine methods instead.

All underlying exceptions (PostgREST API errors, auth errors, transport
errors) are re-raised as RemoteServiceError.
"""

from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from supabase import AsyncClient, acreate_client

from winshirt_core.config import Settings
from winshirt_core.errors import OfflineError, RemoteServiceError
from winshirt_core.logging import get_logger

logger = get_logger(__name__)


# Every table the storefront mirrors locally
KNOWN_TABLES = (
    "lotteries",
    "lottery_participants",
    "lottery_winners",
    "products",
    "orders",
    "order_items",
    "clients",
    "visuals",
    "visual_categories",
    "user_roles",
)

# Supabase caps a single select at 1000 rows
PAGE_SIZE = 1000

ChangeCallback = Callable[[Dict[str, Any]], None]


class SupabaseGateway:
    """
    Async gateway to the hosted Supabase backend.

    Usage:
        gateway = SupabaseGateway(Settings.load())
        rows = await gateway.select("lotteries", filters={"status": "active"})
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[AsyncClient] = None
        self._admin_client: Optional[AsyncClient] = None
        self._client_lock = asyncio.Lock()
        self._channels: List[Any] = []

    @property
    def is_configured(self) -> bool:
        """Check if endpoint and key are configured."""
        return self.settings.remote_configured

    # =========================================================================
    # CLIENT LIFECYCLE
    # =========================================================================

    async def _get_client(self) -> AsyncClient:
        """Create the shared client on first use."""
        if not self.is_configured:
            raise OfflineError("Supabase credentials not configured")

        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    try:
                        self._client = await acreate_client(
                            self.settings.supabase_url,
                            self.settings.supabase_key,
                        )
                    except Exception as e:
                        raise RemoteServiceError(
                            f"Failed to initialize Supabase client: {e}",
                            operation="connect",
                        ) from e
        return self._client

    async def _get_admin_client(self) -> AsyncClient:
        """Client authenticated with the service role key (admin API)."""
        if not self.settings.supabase_service_key:
            raise OfflineError("Supabase service role key not configured")

        if self._admin_client is None:
            try:
                self._admin_client = await acreate_client(
                    self.settings.supabase_url,
                    self.settings.supabase_service_key,
                )
            except Exception as e:
                raise RemoteServiceError(
                    f"Failed to initialize Supabase admin client: {e}",
                    operation="connect",
                ) from e
        return self._admin_client

    async def close(self) -> None:
        """Drop realtime channels and forget the clients."""
        await self.unsubscribe_all()
        self._client = None
        self._admin_client = None

    async def _execute(
        self,
        table: str,
        operation: str,
        build: Callable[[AsyncClient], Any],
    ) -> Any:
        """Build a query against the client and execute it."""
        client = await self._get_client()
        try:
            return await build(client).execute()
        except Exception as e:
            logger.error(f"Supabase {operation} on {table} failed: {e}")
            raise RemoteServiceError(
                f"Supabase {operation} on {table} failed: {e}",
                table=table,
                operation=operation,
            ) from e

    # =========================================================================
    # TABLE OPERATIONS
    # =========================================================================

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch rows from a table.

        Without a limit, all rows are fetched page by page to get past the
        1000 row cap.
        """
        def build(offset: int, count: int):
            def _query(client: AsyncClient):
                query = _apply_filters(client.table(table).select(columns), filters)
                if order_by:
                    query = query.order(order_by, desc=descending)
                return query.range(offset, offset + count - 1)
            return _query

        if limit is not None:
            response = await self._execute(table, "select", build(0, limit))
            return list(response.data or [])

        all_rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            response = await self._execute(table, "select", build(offset, PAGE_SIZE))
            batch = response.data or []
            all_rows.extend(batch)
            # Fewer rows than a full page means we've reached the end
            if len(batch) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        return all_rows

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored (with backend id)."""
        response = await self._execute(
            table, "insert", lambda client: client.table(table).insert(row)
        )
        if not response.data:
            raise RemoteServiceError(
                f"Insert into {table} returned no row", table=table, operation="insert"
            )
        return response.data[0]

    async def insert_many(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Bulk insert."""
        if not rows:
            return []
        response = await self._execute(
            table, "insert", lambda client: client.table(table).insert(rows)
        )
        return list(response.data or [])

    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """Update rows matching all equality filters; empty list if none matched."""
        response = await self._execute(
            table,
            "update",
            lambda client: _apply_filters(client.table(table).update(values), filters),
        )
        return list(response.data or [])

    async def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Delete rows matching all equality filters."""
        if not filters:
            raise RemoteServiceError(
                "Refusing unfiltered delete, use delete_all", table=table, operation="delete"
            )
        response = await self._execute(
            table,
            "delete",
            lambda client: _apply_filters(client.table(table).delete(), filters),
        )
        return list(response.data or [])

    async def delete_all(self, table: str) -> None:
        """Delete every row of a table."""
        await self._execute(
            table, "delete", lambda client: client.table(table).delete().gt("id", 0)
        )

    async def upsert(
        self,
        table: str,
        rows: List[Dict[str, Any]],
        on_conflict: str = "id",
    ) -> List[Dict[str, Any]]:
        """Insert or update rows (must include the conflict column)."""
        if not rows:
            return []
        response = await self._execute(
            table,
            "upsert",
            lambda client: client.table(table).upsert(rows, on_conflict=on_conflict),
        )
        return list(response.data or [])

    async def count(self, table: str) -> int:
        """Exact row count of a table."""
        response = await self._execute(
            table,
            "count",
            lambda client: client.table(table).select("*", count="exact", head=True),
        )
        return int(response.count or 0)

    async def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """Call a Postgres function."""
        response = await self._execute(
            function, "rpc", lambda client: client.rpc(function, params)
        )
        return response.data

    # =========================================================================
    # REALTIME
    # =========================================================================

    async def subscribe(self, table: str, callback: ChangeCallback) -> None:
        """Call ``callback(payload)`` on every insert/update/delete of ``table``."""
        client = await self._get_client()
        try:
            channel = client.channel(f"winshirt-{table}-changes")
            channel.on_postgres_changes(
                event="*", schema="public", table=table, callback=callback
            )
            await channel.subscribe()
        except Exception as e:
            raise RemoteServiceError(
                f"Realtime subscription to {table} failed: {e}",
                table=table,
                operation="subscribe",
            ) from e
        self._channels.append(channel)
        logger.info(f"Subscribed to realtime changes on {table}")

    async def unsubscribe_all(self) -> None:
        """Remove every realtime channel opened by this gateway."""
        if self._client is None:
            self._channels.clear()
            return
        for channel in self._channels:
            try:
                await self._client.remove_channel(channel)
            except Exception as e:
                logger.warning(f"Error removing realtime channel: {e}")
        self._channels.clear()

    # =========================================================================
    # AUTH
    # =========================================================================

    async def _auth_call(
        self,
        operation: str,
        call: Callable[[AsyncClient], Awaitable[Any]],
        admin: bool = False,
    ) -> Any:
        client = await (self._get_admin_client() if admin else self._get_client())
        try:
            return await call(client)
        except Exception as e:
            logger.error(f"Supabase auth {operation} failed: {e}")
            raise RemoteServiceError(
                f"Authentication {operation} failed: {e}",
                operation=operation,
            ) from e

    async def sign_in_with_password(self, email: str, password: str) -> Any:
        return await self._auth_call(
            "sign_in",
            lambda client: client.auth.sign_in_with_password(
                {"email": email, "password": password}
            ),
        )

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._auth_call(
            "sign_up",
            lambda client: client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata or {}}}
            ),
        )

    async def resend_confirmation(self, email: str) -> Any:
        return await self._auth_call(
            "resend",
            lambda client: client.auth.resend({"type": "signup", "email": email}),
        )

    async def sign_out(self) -> None:
        await self._auth_call("sign_out", lambda client: client.auth.sign_out())

    async def get_user(self) -> Any:
        response = await self._auth_call("get_user", lambda client: client.auth.get_user())
        return response.user if response else None

    async def admin_list_users(self) -> List[Any]:
        return await self._auth_call(
            "list_users", lambda client: client.auth.admin.list_users(), admin=True
        )

    async def admin_update_user(self, user_id: str, attributes: Dict[str, Any]) -> Any:
        return await self._auth_call(
            "update_user",
            lambda client: client.auth.admin.update_user_by_id(user_id, attributes),
            admin=True,
        )


def _apply_filters(query: Any, filters: Optional[Dict[str, Any]]) -> Any:
    """Chain one ``eq`` per filter."""
    for column, value in (filters or {}).items():
        query = query.eq(column, value)
    return query
