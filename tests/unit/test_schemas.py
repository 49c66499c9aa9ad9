# =============================================================================
# tests/unit/test_schemas.py
# Unit Tests for record schemas and the decode step
# =============================================================================

import pytest
from pydantic import ValidationError

from winshirt_core.data.schemas import (
    PLACEHOLDER_IMAGE,
    Lottery,
    Order,
    PrintArea,
    Product,
    SyncStatus,
    Visual,
    decode_rows,
)


class TestPrintAreas:
    """Test print area invariants"""

    @pytest.mark.parametrize("fmt,size", [("pocket", (100, 100)), ("a4", (210, 297)), ("a3", (297, 420))])
    def test_fixed_format_fills_dimensions(self, fmt, size):
        """A fixed format without dimensions gets the format's size"""
        area = PrintArea.model_validate({"id": 1, "name": "Front", "position": "front", "format": fmt})

        assert (area.bounds.width, area.bounds.height) == size

    def test_fixed_format_rejects_other_dimensions(self):
        with pytest.raises(ValidationError):
            PrintArea.model_validate({
                "id": 1, "name": "Front", "position": "front", "format": "a4",
                "bounds": {"x": 0, "y": 0, "width": 100, "height": 100},
            })

    def test_custom_format_keeps_dimensions(self):
        area = PrintArea.model_validate({
            "id": 1, "name": "Sleeve", "position": "back", "format": "custom",
            "bounds": {"x": 5, "y": 5, "width": 33, "height": 12},
        })

        assert area.bounds.width == 33

    def test_negative_bounds_rejected(self):
        with pytest.raises(ValidationError):
            PrintArea.model_validate({
                "id": 1, "name": "Front", "position": "front",
                "bounds": {"x": -1, "y": 0, "width": 10, "height": 10},
            })

    def test_unknown_position_rejected(self):
        with pytest.raises(ValidationError):
            PrintArea.model_validate({"id": 1, "name": "Side", "position": "left"})

    def test_product_print_area_ids_unique(self):
        """Two print areas of one product cannot share an id"""
        with pytest.raises(ValidationError):
            Product.model_validate({
                "name": "Tee", "price": 10,
                "printAreas": [
                    {"id": 1, "name": "Front", "position": "front"},
                    {"id": 1, "name": "Back", "position": "back"},
                ],
            })


class TestProductSchema:
    """Test product normalization"""

    def test_sizes_and_colors_are_sets(self):
        product = Product.model_validate(
            {"name": "Tee", "price": 10, "sizes": ["M", "L", "M"], "colors": ["red", "red"]}
        )

        assert product.sizes == ["M", "L"]
        assert product.colors == ["red"]

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            Product.model_validate({"name": "Tee", "price": -1})

    def test_to_app_uses_camel_case(self):
        app = Product.model_validate({"name": "Tee", "price": 10, "secondaryImage": None}).to_app()

        assert app["secondaryImage"] == ""
        assert "linkedLotteries" in app
        assert "secondary_image" not in app

    def test_extra_fields_kept(self):
        app = Product.model_validate({"name": "Tee", "price": 10, "season": "summer"}).to_app()

        assert app["season"] == "summer"


class TestLotterySchema:
    """Test lottery invariants"""

    def test_winner_requires_completed_status(self):
        with pytest.raises(ValidationError):
            Lottery.model_validate({"title": "Draw", "status": "active", "winner": {"name": "Ana"}})

    def test_completed_lottery_with_winner(self):
        lottery = Lottery.model_validate({"title": "Draw", "status": "completed", "winner": {"name": "Ana"}})

        assert lottery.winner.name == "Ana"

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            Lottery.model_validate({"title": "Draw", "status": "paused"})

    def test_null_columns_get_defaults(self):
        lottery = Lottery.model_validate({"title": "Draw", "currentParticipants": None, "image": None})

        assert lottery.current_participants == 0
        assert lottery.image == ""


class TestOtherSchemas:

    def test_order_shipping_cost(self):
        order = Order.model_validate({"clientName": "Ana", "clientEmail": "a@x.io", "shipping": {"cost": 4.5}})

        assert order.shipping_cost == 4.5

    def test_order_status_enum(self):
        with pytest.raises(ValidationError):
            Order.model_validate({"clientName": "Ana", "clientEmail": "a@x.io", "status": "lost"})

    def test_visual_placeholder_image(self):
        assert Visual.model_validate({"name": "Logo", "image": ""}).image == PLACEHOLDER_IMAGE

    def test_sync_status_round_trip(self):
        status = SyncStatus(success=True, last_sync="2024-05-01T10:00:00+00:00", local_count=3)

        assert SyncStatus.model_validate(status.to_app()) == status
        assert status.to_app()["lastSync"] == "2024-05-01T10:00:00+00:00"


class TestDecodeRows:
    """Rows failing validation are quarantined"""

    def test_quarantines_invalid_rows(self):
        rows = [
            {"id": 1, "title": "Ok"},
            {"id": 2, "title": "Bad", "status": "unknown"},
            {"id": 3, "title": "Also ok", "targetParticipants": 5},
        ]

        records, quarantined = decode_rows(Lottery, rows, "lotteries")

        assert quarantined == 1
        assert [record.id for record in records] == [1, 3]

    def test_empty_input(self):
        assert decode_rows(Lottery, []) == ([], 0)
