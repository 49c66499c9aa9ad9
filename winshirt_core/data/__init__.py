# =============================================================================
# winshirt_core/data/__init__.py
# Remote gateway, record schemas and entity adapters
# =============================================================================

from .field_mapping import FieldMapping, MAPPINGS, get_mapping
from .supabase_client import KNOWN_TABLES, SupabaseGateway
from .entity_service import EntitySyncService
from .lottery_service import LotteryService
from .product_service import ProductService
from .order_service import OrderService
from .visual_service import VisualCategoryService, VisualService
from .client_service import ClientService

__all__ = [
    "FieldMapping",
    "MAPPINGS",
    "get_mapping",
    "KNOWN_TABLES",
    "SupabaseGateway",
    # Entity adapters
    "EntitySyncService",
    "LotteryService",
    "ProductService",
    "OrderService",
    "VisualService",
    "VisualCategoryService",
    "ClientService",
]
