# =============================================================================
# winshirt_core/data/schemas.py
# Record schemas for every mirrored table
# =============================================================================
"""
Pydantic record types for the storefront tables.

Attributes are snake_case; the application (camelCase) names are the
aliases, so ``record.to_app()`` gives exactly the row shape stored in the
local mirror. Unknown keys are kept as extras and pass through unchanged.

Rows coming from the backend are translated by the table's FieldMapping
and then validated with ``decode_rows``; rows that fail validation are
quarantined instead of flowing through untyped.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from winshirt_core.logging import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound="WinShirtRecord")

LotteryStatus = Literal["active", "completed", "relaunched", "cancelled"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled", "refunded"]
DeliveryStatus = Literal[
    "preparing",
    "ready_to_ship",
    "in_transit",
    "out_for_delivery",
    "delivered",
    "failed",
    "returned",
]
PrintPosition = Literal["front", "back"]
PrintFormat = Literal["pocket", "a4", "a3", "custom"]

# Fixed print formats (width, height) in pixels
FIXED_FORMAT_DIMENSIONS: Dict[str, Tuple[float, float]] = {
    "pocket": (100, 100),
    "a4": (210, 297),
    "a3": (297, 420),
}

PLACEHOLDER_IMAGE = "https://placehold.co/600x400?text=Image+Manquante"


class WinShirtRecord(BaseModel):
    """Base for every record: camelCase aliases, extras kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_app(self) -> Dict[str, Any]:
        """JSON-ready dict in application (camelCase) naming."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# LOTTERIES
# =============================================================================

class Participant(WinShirtRecord):
    id: Optional[int] = None
    lottery_id: Optional[int] = None
    user_id: Optional[Any] = None
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    created_at: Optional[str] = None


class Winner(Participant):
    drawn_at: Optional[datetime] = None


class Lottery(WinShirtRecord):
    id: Optional[int] = None
    title: str = ""
    description: str = ""
    value: float = 0
    target_participants: int = Field(default=10, ge=0)
    current_participants: int = Field(default=0, ge=0)
    status: LotteryStatus = "active"
    image: str = ""
    linked_products: List[int] = Field(default_factory=list)
    participants: List[Participant] = Field(default_factory=list)
    winner: Optional[Winner] = None
    draw_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    featured: bool = False

    @field_validator("description", "image", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("current_participants", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("linked_products", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _winner_requires_completed(self) -> Lottery:
        if self.winner is not None and self.status != "completed":
            raise ValueError("a winner can only be set on a completed lottery")
        return self


# =============================================================================
# PRODUCTS
# =============================================================================

class PrintBounds(WinShirtRecord):
    x: float = Field(default=0, ge=0)
    y: float = Field(default=0, ge=0)
    width: float = Field(default=0, ge=0)
    height: float = Field(default=0, ge=0)


class PrintArea(WinShirtRecord):
    id: int
    name: str
    position: PrintPosition
    format: PrintFormat = "custom"
    bounds: PrintBounds = Field(default_factory=PrintBounds)
    allow_custom_position: bool = False

    @model_validator(mode="after")
    def _fixed_format_dimensions(self) -> PrintArea:
        if self.format not in FIXED_FORMAT_DIMENSIONS:
            return self

        width, height = FIXED_FORMAT_DIMENSIONS[self.format]
        if self.bounds.width == 0 and self.bounds.height == 0:
            self.bounds.width = width
            self.bounds.height = height
        elif (self.bounds.width, self.bounds.height) != (width, height):
            raise ValueError(
                f"{self.format} print area must be {width:g}x{height:g}, "
                f"got {self.bounds.width:g}x{self.bounds.height:g}"
            )
        return self


class VisualSettings(WinShirtRecord):
    scale: Optional[float] = None
    position: Optional[Dict[str, float]] = None
    rotation: Optional[float] = None
    color: Optional[str] = None


class Product(WinShirtRecord):
    id: Optional[int] = None
    name: str
    description: str = ""
    price: float = Field(ge=0)
    image: str = ""
    secondary_image: str = ""
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    type: str = "standard"
    product_type: str = ""
    sleeve_type: str = ""
    linked_lotteries: List[int] = Field(default_factory=list)
    popularity: float = 0
    tickets: int = Field(default=1, ge=0)
    weight: Optional[float] = None
    delivery_price: Optional[float] = None
    allow_customization: bool = False
    default_visual_id: Optional[int] = None
    default_visual_settings: Optional[VisualSettings] = None
    visual_category_id: Optional[int] = None
    print_areas: List[PrintArea] = Field(default_factory=list)
    brand: Optional[str] = None
    fit: Optional[str] = None
    gender: Optional[str] = None
    material: Optional[str] = None

    @field_validator("description", "image", "secondary_image", "product_type", "sleeve_type", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("sizes", "colors", mode="before")
    @classmethod
    def _unique_strings(cls, value: Any) -> Any:
        # Sizes and colors are sets; keep first-seen order
        if value is None:
            return []
        return list(dict.fromkeys(value))

    @field_validator("linked_lotteries", "print_areas", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _unique_print_area_ids(self) -> Product:
        ids = [area.id for area in self.print_areas]
        if len(ids) != len(set(ids)):
            raise ValueError("print area ids must be unique within a product")
        return self


# =============================================================================
# ORDERS
# =============================================================================

class DeliveryHistoryEntry(WinShirtRecord):
    timestamp: datetime
    status: str
    description: str = ""
    location: Optional[str] = None


class DeliveryInfo(WinShirtRecord):
    status: DeliveryStatus = "preparing"
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    delivery_instructions: Optional[str] = None
    signature_required: bool = False
    last_update: Optional[datetime] = None
    history: List[DeliveryHistoryEntry] = Field(default_factory=list)


class ShippingInfo(WinShirtRecord):
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""
    method: Optional[str] = None
    cost: float = Field(default=0, ge=0)


class PaymentInfo(WinShirtRecord):
    method: str = ""
    status: str = "pending"
    transaction_id: Optional[str] = None
    date: Optional[datetime] = None
    amount: Optional[float] = None


class OrderItem(WinShirtRecord):
    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    product_name: str = ""
    product_image: str = ""
    quantity: int = Field(default=1, ge=1)
    price: float = Field(ge=0)
    size: Optional[str] = None
    color: Optional[str] = None
    customization: Optional[Dict[str, Any]] = None
    visual_design: Optional[Dict[str, Any]] = None
    lotteries_entries: List[int] = Field(default_factory=list)
    created_at: Optional[str] = None


class Order(WinShirtRecord):
    id: Optional[int] = None
    user_id: Optional[Any] = None
    client_name: str
    client_email: str
    status: OrderStatus = "pending"
    items: List[OrderItem] = Field(default_factory=list)
    shipping: Optional[ShippingInfo] = None
    payment: Optional[PaymentInfo] = None
    delivery: Optional[DeliveryInfo] = None
    subtotal: float = Field(default=0, ge=0)
    total: float = Field(default=0, ge=0)
    order_date: Optional[datetime] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    invoice_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def shipping_cost(self) -> float:
        return self.shipping.cost if self.shipping else 0.0


# =============================================================================
# VISUALS
# =============================================================================

class VisualCategory(WinShirtRecord):
    id: Optional[int] = None
    name: str
    description: str = ""
    slug: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Visual(WinShirtRecord):
    id: Optional[int] = None
    name: str
    description: str = ""
    image: str = PLACEHOLDER_IMAGE
    category_id: Optional[int] = None
    category_name: str = ""
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("description", "category_name", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("image", mode="before")
    @classmethod
    def _placeholder_image(cls, value: Any) -> Any:
        return value or PLACEHOLDER_IMAGE

    @field_validator("tags", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


# =============================================================================
# CLIENTS
# =============================================================================

class Client(WinShirtRecord):
    id: Optional[int] = None
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    registration_date: Optional[str] = None
    last_login: Optional[str] = None
    order_count: int = 0
    total_spent: float = 0
    participated_lotteries: List[int] = Field(default_factory=list)
    won_lotteries: List[int] = Field(default_factory=list)


# =============================================================================
# SYNC BOOKKEEPING
# =============================================================================

class SyncStatus(WinShirtRecord):
    success: bool
    last_sync: Optional[str] = None
    error: Optional[str] = None
    remote_count: Optional[int] = None
    local_count: Optional[int] = None


def decode_rows(
    model: Type[M],
    rows: List[Dict[str, Any]],
    table: str = "",
) -> Tuple[List[M], int]:
    """
    Validate application-named rows against a record type.

    Returns:
        (valid records, number of quarantined rows)
    """
    records: List[M] = []
    quarantined = 0
    for row in rows:
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            quarantined += 1
            logger.warning(
                f"Quarantined {table or model.__name__} row id={row.get('id')!r}: "
                f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}"
            )
    return records, quarantined
