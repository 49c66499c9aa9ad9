# =============================================================================
# tests/integration/test_offline_sync_flow.py
# Integration Tests for offline work → reconnect → push, and backup → reset → restore
# =============================================================================

import pytest

from winshirt_core.offline import WinShirtDataService


@pytest.fixture
def data_service(settings, remote, notifier):
    service = WinShirtDataService(settings, remote=remote, notifier=notifier)
    yield service
    service.mirror.close()


class TestOfflineThenReconnect:
    """
    Tests the flow:
    1. Catalogue loaded while online
    2. Participation, product and order recorded offline
    3. Connection restored, local work pushed
    4. Fresh read from the backend matches what was recorded offline
    """

    @pytest.mark.asyncio
    async def test_offline_work_reaches_backend(self, data_service, remote, remote_lottery_row, order_payload):
        remote.tables["lotteries"] = [remote_lottery_row]
        assert (await data_service.lotteries.fetch_all()).metadata["source"] == "remote"

        data_service.force_offline()
        joined = await data_service.lotteries.add_participant(1, {"userId": 12, "name": "Ana"})
        product = await data_service.products.create({"name": "Oversized Tee", "price": 24.0})
        order = await data_service.orders.create(order_payload)

        assert joined.metadata["source"] == "local"
        assert product.metadata["source"] == "local"
        assert order.data["total"] == 94.3
        assert remote.data_calls() == [("select", "lotteries"), ("select", "lottery_participants"),
                                       ("select", "lottery_winners")]

        data_service.force_offline(False)
        pushed = await data_service.sync.sync_all(tables=["products", "lotteries", "lottery_participants"])
        orders_pushed = await data_service.orders.sync_to_remote()

        assert pushed.success
        assert orders_pushed.data == 1
        assert remote.tables["products"][0]["name"] == "Oversized Tee"
        assert remote.tables["lotteries"][0]["current_participants"] == 1
        assert "participants" not in remote.tables["lotteries"][0]
        assert remote.tables["lottery_participants"][0]["lottery_id"] == 1
        assert remote.tables["orders"][0]["client_name"] == "Ana Martin"
        assert [item["order_id"] for item in remote.tables["order_items"]] == [1, 1]

        lotteries = await data_service.lotteries.fetch_all(force_refresh=True)
        orders = await data_service.orders.fetch_all(force_refresh=True)

        assert lotteries.data[0]["participants"][0]["name"] == "Ana"
        assert lotteries.data[0]["currentParticipants"] == 1
        assert len(orders.data[0]["items"]) == 2

    @pytest.mark.asyncio
    async def test_second_sync_does_not_duplicate_items(self, data_service, remote, order_payload):
        data_service.force_offline()
        await data_service.orders.create(order_payload)
        data_service.force_offline(False)

        await data_service.orders.sync_to_remote()
        await data_service.orders.sync_to_remote()

        assert len(remote.tables["orders"]) == 1
        assert len(remote.tables["order_items"]) == 2

    @pytest.mark.asyncio
    async def test_backend_failure_serves_mirror(self, data_service, remote, remote_product_rows):
        remote.tables["products"] = remote_product_rows
        await data_service.products.fetch_all()

        remote.failing = {"products"}
        result = await data_service.products.fetch_all()

        assert result.success
        assert result.metadata["source"] == "local"
        assert [product["name"] for product in result.data] == ["Classic Tee", "Premium Hoodie"]


class TestBackupResetRestore:

    @pytest.mark.asyncio
    async def test_restore_after_reset(self, data_service, remote, remote_lottery_row, remote_product_rows):
        remote.tables["lotteries"] = [remote_lottery_row]
        remote.tables["products"] = remote_product_rows
        await data_service.lotteries.fetch_all()
        await data_service.products.fetch_all()
        path = (await data_service.backup.export_snapshot()).data

        cleared = await data_service.backup.clear_all_data()

        assert cleared.success
        assert remote.tables["products"] == []
        assert data_service.mirror.keys() == []

        restored = await data_service.backup.import_snapshot(path, push_to_remote=True)

        assert restored.metadata["pushed"] is True
        assert sorted(row["id"] for row in remote.tables["products"]) == [1, 2]
        assert remote.tables["products"][0]["print_areas"][0]["format"] == "a4"
        assert remote.tables["lotteries"][0]["target_participants"] == 3
        assert data_service.mirror.find("products", 2)["name"] == "Premium Hoodie"

    @pytest.mark.asyncio
    async def test_restore_offline_stays_local(self, data_service, remote):
        snapshot = {"products": [{"id": 5, "name": "Cap", "price": 9.0}]}

        data_service.force_offline()
        result = await data_service.backup.import_snapshot(snapshot, push_to_remote=True)

        assert result.metadata["pushed"] is False
        assert remote.calls == []
        assert (await data_service.products.fetch_by_id(5)).data["name"] == "Cap"
