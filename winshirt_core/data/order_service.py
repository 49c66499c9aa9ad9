# =============================================================================
# winshirt_core/data/order_service.py
# Orders, line items and delivery tracking
# =============================================================================

from __future__ import annotations
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Union, get_args

from pydantic import ValidationError as SchemaValidationError

from winshirt_core.errors import OfflineError, ValidationError
from winshirt_core.services import ServiceResult
from .entity_service import EntitySyncService, Record
from .field_mapping import get_mapping
from .schemas import DeliveryHistoryEntry, DeliveryStatus, Order, OrderStatus

ITEMS_TABLE = "order_items"

ORDER_STATUSES = get_args(OrderStatus)
DELIVERY_STATUSES = get_args(DeliveryStatus)


class OrderService(EntitySyncService):
    """
    Order adapter.

    Line items live in the ``order_items`` table and are embedded under
    ``items`` on read. Totals are computed at creation:
    ``total = subtotal + shipping.cost``.
    """

    table = "orders"
    model = Order
    entity_name = "order"
    required_fields = ("clientName", "clientEmail")
    app_only_fields = ("items",)
    child_tables = ((ITEMS_TABLE, "order_id"),)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.item_mapping = get_mapping(ITEMS_TABLE)

    async def _fetch_remote(self) -> List[Record]:
        orders = self.mapping.rows_to_app(
            await self.remote.select(self.table, order_by=self.order_by)
        )
        items = self.item_mapping.rows_to_app(
            await self.remote.select(ITEMS_TABLE, order_by="id")
        )

        by_order: Dict[Any, List[Record]] = defaultdict(list)
        for item in items:
            by_order[item.get("orderId")].append(item)
        for order in orders:
            order["items"] = by_order.get(order.get("id"), [])

        self.mirror.write(ITEMS_TABLE, items)
        return orders

    @staticmethod
    def compute_totals(order: Record) -> Record:
        """Fill subtotal from line items when absent; total is subtotal plus shipping."""
        order = dict(order)
        if not order.get("subtotal"):
            order["subtotal"] = round(
                sum(
                    float(item.get("price") or 0) * int(item.get("quantity") or 1)
                    for item in order.get("items") or []
                ),
                2,
            )
        shipping_cost = float((order.get("shipping") or {}).get("cost") or 0)
        order["total"] = round(float(order["subtotal"]) + shipping_cost, 2)
        return order

    async def create(self, entity: Record) -> ServiceResult:
        return await super().create(self.compute_totals(entity))

    async def _after_remote_create(self, created: Record, record: Record) -> Record:
        items = [
            {k: v for k, v in item.items() if k != "id" and v is not None}
            for item in record.get("items") or []
        ]
        for item in items:
            item["orderId"] = created["id"]

        inserted = await self.remote.insert_many(ITEMS_TABLE, self.item_mapping.rows_to_remote(items))
        created["items"] = self.item_mapping.rows_to_app(inserted)
        for item in created["items"]:
            self.mirror.append(ITEMS_TABLE, item)
        return created

    def _create_local(self, record: Record) -> Record:
        created = super()._create_local(record)
        items = []
        for item in record.get("items") or []:
            item = {**item, "id": self.mirror.next_id(ITEMS_TABLE), "orderId": created["id"]}
            self.mirror.append(ITEMS_TABLE, item)
            items.append(item)
        created["items"] = items
        return created

    async def sync_to_remote(self) -> ServiceResult:
        """Upsert every mirrored order and its line items."""
        if not await self.probe.is_connected():
            return self.fail(OfflineError("Cannot synchronize orders while offline", table=self.table))

        orders = self.mirror.read(self.table)
        if not orders:
            self.notifier.warning("No local orders to synchronize")
            return ServiceResult.fail("No local orders to synchronize", error_code="SYNC_EMPTY")

        failed = []
        for order in orders:
            row = self.mapping.to_remote({k: v for k, v in order.items() if k != "items"})
            items = [{**item, "orderId": order.get("id")} for item in order.get("items") or []]
            try:
                await self.remote.upsert(self.table, [row])
                await self.remote.upsert(ITEMS_TABLE, self.item_mapping.rows_to_remote(items))
            except Exception as e:
                self.logger.error(f"Could not synchronize order {order.get('id')}: {e}")
                failed.append(order.get("id"))

        synced = len(orders) - len(failed)
        if failed:
            self.notifier.warning(f"{synced} orders synchronized, {len(failed)} failed")
        else:
            self.notifier.success(f"{synced} orders synchronized")
        return ServiceResult(success=not failed, data=synced, metadata={"failed": failed})

    # =========================================================================
    # STATUS AND DELIVERY
    # =========================================================================

    async def update_status(self, order_id: int, status: str) -> ServiceResult:
        if status not in ORDER_STATUSES:
            return self.fail(
                ValidationError(f"Unknown order status: {status}", field="status", entity=self.table)
            )
        return await self.patch(order_id, {"status": status}, success_message=f"Order marked {status}")

    async def add_delivery_event(self, order_id: int, entry: Dict[str, Any]) -> ServiceResult:
        """
        Append a tracking event to the order's delivery history.

        History is append-only; when the event carries a known delivery
        status it also becomes the order's current delivery status.
        """
        try:
            event = DeliveryHistoryEntry.model_validate(entry).to_app()
        except SchemaValidationError as e:
            return self.fail(
                ValidationError(f"Invalid delivery event: {e.errors()[0]['msg']}", entity=self.table)
            )

        found = await self.fetch_by_id(order_id)
        if not found:
            return found

        delivery = dict(found.data.get("delivery") or {})
        delivery["history"] = list(delivery.get("history") or []) + [event]
        delivery["lastUpdate"] = event["timestamp"]
        if event["status"] in DELIVERY_STATUSES:
            delivery["status"] = event["status"]

        return await self.patch(order_id, {"delivery": delivery}, success_message="Delivery updated")

    @staticmethod
    def delivery_history(order: Union[Record, Order]) -> List[DeliveryHistoryEntry]:
        """History entries, newest first."""
        if not isinstance(order, Order):
            order = Order.model_validate(order)
        if order.delivery is None:
            return []
        return sorted(order.delivery.history, key=lambda entry: _as_utc(entry.timestamp), reverse=True)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
