# =============================================================================
# winshirt_core/data/visual_service.py
# Reusable visuals and their categories
# =============================================================================

from __future__ import annotations
import re
from dataclasses import replace
from typing import Any, List

from winshirt_core.errors import CategoryInUseError
from winshirt_core.services import ServiceResult
from .entity_service import EntitySyncService, Record
from .schemas import PLACEHOLDER_IMAGE, Visual, VisualCategory

CATEGORIES_TABLE = "visual_categories"


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class VisualService(EntitySyncService):
    """
    Visual adapter. The backend column ``image_url`` is the application
    ``image``; a placeholder is used when no image is given.
    """

    table = "visuals"
    model = Visual
    entity_name = "visual"
    required_fields = ("name",)

    def prepare(self, record: Record) -> Record:
        if not record.get("image"):
            record["image"] = PLACEHOLDER_IMAGE

        # Denormalized category name
        category_id = record.get("categoryId")
        if category_id is not None and not record.get("categoryName"):
            category = self.mirror.find(CATEGORIES_TABLE, category_id)
            if category:
                record["categoryName"] = category.get("name", "")
        return record

    async def fetch_by_category(self, category_id: int) -> ServiceResult:
        result = await self.fetch_all()
        return replace(result, data=[visual for visual in result.data or [] if visual.get("categoryId") == category_id])


class VisualCategoryService(EntitySyncService):
    """Visual categories; a category cannot be deleted while visuals use it."""

    table = CATEGORIES_TABLE
    model = VisualCategory
    entity_name = "visual category"
    required_fields = ("name",)

    def prepare(self, record: Record) -> Record:
        if record.get("name") and not record.get("slug"):
            record["slug"] = slugify(record["name"])
        return record

    async def _visual_ids_in_category(self, category_id: Any) -> List[Any]:
        if await self.probe.is_connected():
            rows = await self.remote.select(
                VisualService.table, columns="id", filters={"category_id": category_id}
            )
            return [row.get("id") for row in rows]

        return [
            visual.get("id") for visual in self.mirror.read(VisualService.table)
            if isinstance(visual, dict) and visual.get("categoryId") == category_id
        ]

    async def _check_delete(self, record_id: Any) -> None:
        visual_ids = await self._visual_ids_in_category(record_id)
        if visual_ids:
            raise CategoryInUseError(
                f"Category {record_id} is still used by {len(visual_ids)} visual(s)",
                category_id=record_id,
                visual_ids=visual_ids,
            )
