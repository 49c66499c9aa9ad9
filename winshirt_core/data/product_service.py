# =============================================================================
# winshirt_core/data/product_service.py
# Products and their print areas
# =============================================================================

from __future__ import annotations
from typing import Any, Optional

from winshirt_core.errors import OfflineError
from winshirt_core.services import ServiceResult
from .entity_service import EntitySyncService
from .schemas import Product


class ProductService(EntitySyncService):
    """
    Product adapter.

    Validation (non-empty name, non-negative price, print areas) runs
    before any network call. ``sync_to_remote`` pushes the whole local
    catalogue with an upsert on id.
    """

    table = "products"
    model = Product
    entity_name = "product"
    required_fields = ("name",)

    def __init__(self, *args, lottery_service: Optional[Any] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.lottery_service = lottery_service

    async def sync_to_remote(self) -> ServiceResult:
        """Upsert every mirrored product into Supabase."""
        if not await self.probe.is_connected():
            return self.fail(OfflineError("Cannot synchronize products while offline", table=self.table))

        products = self.mirror.read(self.table)
        if not products:
            self.notifier.warning("No local products to synchronize")
            return ServiceResult.fail("No local products to synchronize", error_code="SYNC_EMPTY")

        rows = [
            self.mapping.to_remote({k: v for k, v in product.items() if k not in self.app_only_fields})
            for product in products
        ]
        try:
            with self.log_operation(f"Synchronizing {len(rows)} products"):
                await self.remote.upsert(self.table, rows, on_conflict="id")
        except Exception as e:
            return self.fail(e, user_message="Product synchronization failed")

        self.notifier.success(f"{len(rows)} products synchronized")
        return ServiceResult.ok(len(rows))

    async def fetch_linked_lotteries(self, product_id: int) -> ServiceResult:
        """Lotteries a purchase of this product gives tickets for."""
        found = await self.fetch_by_id(product_id)
        if not found:
            return found
        if self.lottery_service is None:
            return ServiceResult.ok([])

        linked = set(found.data.get("linkedLotteries") or [])
        lotteries = await self.lottery_service.fetch_all()
        return ServiceResult.ok(
            [lottery for lottery in lotteries.data or [] if lottery.get("id") in linked],
            metadata=lotteries.metadata,
        )
