# =============================================================================
# tests/unit/test_connection_manager.py
# Unit Tests for the connectivity probe
# =============================================================================

import pytest

from winshirt_core.config import Settings
from winshirt_core.offline.connection_manager import ConnectionManager, ConnectionStatus


class TestProbe:
    """Test the minimal-read probe"""

    @pytest.mark.asyncio
    async def test_online_when_probe_read_succeeds(self, probe, remote):
        assert await probe.is_connected()
        assert probe.status == ConnectionStatus.ONLINE
        assert remote.calls == [("probe", "lotteries")]

    @pytest.mark.asyncio
    async def test_offline_when_probe_read_fails(self, probe, remote):
        remote.offline = True

        assert not await probe.is_connected()
        assert probe.status == ConnectionStatus.OFFLINE
        assert "Network unreachable" in probe.state.error_message
        assert probe.state.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_no_network_call_without_credentials(self, remote, tmp_path):
        probe = ConnectionManager(remote, Settings(local_db_path=tmp_path / "m.db"))

        assert not await probe.is_connected()
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_forced_offline(self, probe, remote):
        probe.force_offline()

        assert not await probe.is_connected()
        assert remote.calls == []

        probe.force_offline(False)
        assert await probe.is_connected()

    @pytest.mark.asyncio
    async def test_recovery_resets_failures(self, probe, remote):
        remote.offline = True
        await probe.is_connected()
        await probe.is_connected()
        remote.offline = False

        assert await probe.is_connected()
        assert probe.state.consecutive_failures == 0
        assert probe.state.last_online is not None


class TestCallbacks:
    """Callbacks fire on status changes only"""

    @pytest.mark.asyncio
    async def test_callback_on_change(self, probe, remote):
        seen = []
        probe.register_callback(lambda state: seen.append(state.status))

        await probe.is_connected()
        await probe.is_connected()
        remote.offline = True
        await probe.is_connected()

        assert seen == [ConnectionStatus.ONLINE, ConnectionStatus.OFFLINE]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_probe(self, probe):
        def broken(state):
            raise RuntimeError("boom")

        probe.register_callback(broken)

        assert await probe.is_connected()

    @pytest.mark.asyncio
    async def test_unregister(self, probe):
        seen = []
        callback = lambda state: seen.append(state.status)
        probe.register_callback(callback)
        probe.unregister_callback(callback)

        await probe.is_connected()

        assert seen == []

    def test_status_display(self, probe):
        probe.force_offline()
        display = probe.get_status_display()

        assert display["status"] == "offline"
        assert display["forced_offline"] is True
        assert display["is_online"] is False
