# =============================================================================
# winshirt_core/data/field_mapping.py
# Declarative remote <-> application field naming per table
# =============================================================================
"""
The backend uses snake_case columns; the application and the local mirror
use camelCase keys. Each table has one FieldMapping listing the remote
column and its application key. Adapters apply ``to_app`` on every remote
response and ``to_remote`` on every remote request, and nowhere else.

Columns whose name is the same on both sides (``id``, ``title``, ``price``)
are not listed. Keys that a mapping does not know pass through unchanged.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List


class FieldMapping:
    """
    Bidirectional field renaming for one table.

    Usage:
        mapping = MAPPINGS["lotteries"]
        app_row = mapping.to_app({"target_participants": 10})
        # {"targetParticipants": 10}
    """

    def __init__(self, table: str, remote_to_app: Dict[str, str]):
        self.table = table
        self.remote_to_app = dict(remote_to_app)
        self.app_to_remote = {app: remote for remote, app in self.remote_to_app.items()}
        if len(self.app_to_remote) != len(self.remote_to_app):
            raise ValueError(f"Field mapping for {table} is not one-to-one")

    def to_app(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Remote row -> application record."""
        return {self.remote_to_app.get(key, key): value for key, value in row.items()}

    def to_remote(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Application record -> remote row."""
        return {self.app_to_remote.get(key, key): value for key, value in record.items()}

    def rows_to_app(self, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self.to_app(row) for row in rows]

    def rows_to_remote(self, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self.to_remote(record) for record in records]

    def remote_column(self, app_key: str) -> str:
        """Remote column name for an application key (e.g. for filters)."""
        return self.app_to_remote.get(app_key, app_key)

    def __repr__(self) -> str:
        return f"FieldMapping({self.table!r}, {len(self.remote_to_app)} fields)"


TIMESTAMPS = {
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}

MAPPINGS: Dict[str, FieldMapping] = {
    "lotteries": FieldMapping("lotteries", {
        "target_participants": "targetParticipants",
        "current_participants": "currentParticipants",
        "linked_products": "linkedProducts",
        "draw_date": "drawDate",
        "end_date": "endDate",
        **TIMESTAMPS,
    }),
    "lottery_participants": FieldMapping("lottery_participants", {
        "lottery_id": "lotteryId",
        "user_id": "userId",
        "created_at": "createdAt",
    }),
    "lottery_winners": FieldMapping("lottery_winners", {
        "lottery_id": "lotteryId",
        "user_id": "userId",
        "drawn_at": "drawnAt",
        "created_at": "createdAt",
    }),
    "products": FieldMapping("products", {
        "secondary_image": "secondaryImage",
        "product_type": "productType",
        "sleeve_type": "sleeveType",
        "linked_lotteries": "linkedLotteries",
        "delivery_price": "deliveryPrice",
        "allow_customization": "allowCustomization",
        "default_visual_id": "defaultVisualId",
        "default_visual_settings": "defaultVisualSettings",
        "visual_category_id": "visualCategoryId",
        "print_areas": "printAreas",
        **TIMESTAMPS,
    }),
    # shipping/payment/delivery are JSON columns; their contents are stored
    # in application naming and are not renamed
    "orders": FieldMapping("orders", {
        "user_id": "userId",
        "client_name": "clientName",
        "client_email": "clientEmail",
        "shipping_info": "shipping",
        "payment_info": "payment",
        "delivery_info": "delivery",
        "order_date": "orderDate",
        "tracking_number": "trackingNumber",
        "invoice_url": "invoiceUrl",
        **TIMESTAMPS,
    }),
    "order_items": FieldMapping("order_items", {
        "order_id": "orderId",
        "product_id": "productId",
        "product_name": "productName",
        "product_image": "productImage",
        "visual_design": "visualDesign",
        "lotteries_entries": "lotteriesEntries",
        "created_at": "createdAt",
    }),
    "clients": FieldMapping("clients", {
        "postal_code": "postalCode",
        "created_at": "registrationDate",
        "updated_at": "lastLogin",
    }),
    "visuals": FieldMapping("visuals", {
        "image_url": "image",
        "category_id": "categoryId",
        "category_name": "categoryName",
        **TIMESTAMPS,
    }),
    "visual_categories": FieldMapping("visual_categories", dict(TIMESTAMPS)),
    "user_roles": FieldMapping("user_roles", {
        "user_id": "userId",
        "created_at": "createdAt",
    }),
}


def get_mapping(table: str) -> FieldMapping:
    """Mapping for a table; identity mapping for tables without one."""
    return MAPPINGS.get(table) or FieldMapping(table, {})
