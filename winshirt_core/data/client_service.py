# =============================================================================
# winshirt_core/data/client_service.py
# Customer records enriched with order and lottery activity
# =============================================================================

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, List

from .entity_service import EntitySyncService, Record
from .schemas import Client

ACTIVITY_FIELDS = ("orderCount", "totalSpent", "participatedLotteries", "wonLotteries")


class ClientService(EntitySyncService):
    """
    Client adapter.

    On remote reads every client gets ``orderCount``, ``totalSpent``,
    ``participatedLotteries`` and ``wonLotteries`` computed from the
    orders and lottery tables (matched on ``user_id``). These fields exist
    only in the application and survive updates.
    """

    table = "clients"
    model = Client
    entity_name = "client"
    required_fields = ("name", "email")
    app_only_fields = ACTIVITY_FIELDS

    async def _fetch_remote(self) -> List[Record]:
        clients = self.mapping.rows_to_app(
            await self.remote.select(self.table, order_by=self.order_by)
        )
        orders = await self._select_quietly("orders", "id,user_id,total")
        participations = await self._select_quietly("lottery_participants", "user_id,lottery_id")
        wins = await self._select_quietly("lottery_winners", "user_id,lottery_id")

        order_count: Dict[Any, int] = defaultdict(int)
        total_spent: Dict[Any, float] = defaultdict(float)
        for order in orders:
            order_count[order.get("user_id")] += 1
            total_spent[order.get("user_id")] += float(order.get("total") or 0)

        participated = _lottery_ids_by_user(participations)
        won = _lottery_ids_by_user(wins)

        for client in clients:
            client_id = client.get("id")
            client["orderCount"] = order_count.get(client_id, 0)
            client["totalSpent"] = round(total_spent.get(client_id, 0.0), 2)
            client["participatedLotteries"] = participated.get(client_id, [])
            client["wonLotteries"] = won.get(client_id, [])
        return clients

    async def _select_quietly(self, table: str, columns: str) -> List[Record]:
        """Activity tables are optional; a failed read just leaves the counters at zero."""
        try:
            return await self.remote.select(table, columns=columns)
        except Exception as e:
            self.logger.warning(f"Could not read {table} for client activity: {e}")
            return []


def _lottery_ids_by_user(rows: List[Record]) -> Dict[Any, List[Any]]:
    by_user: Dict[Any, List[Any]] = defaultdict(list)
    for row in rows:
        by_user[row.get("user_id")].append(row.get("lottery_id"))
    return by_user
