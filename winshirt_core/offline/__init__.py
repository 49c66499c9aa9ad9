# =============================================================================
# winshirt_core/offline/__init__.py
# Local mirror, connectivity and sync for the WinShirt storefront
# =============================================================================
"""
Local-first data layer.

Every read returns something: remote rows when Supabase answers, the local
mirror otherwise. Writes go to Supabase when reachable and always land in
the mirror.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                     WinShirtDataService                          │
│           (lotteries, products, orders, visuals, clients)        │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────┐   ┌──────────────────┐   ┌────────────┐  │
│   │ ConnectionMgr    │   │   SyncManager    │   │  Backup    │  │
│   │ (probe)          │   │ (push / pull)    │   │ (snapshot) │  │
│   └──────────────────┘   └──────────────────┘   └────────────┘  │
│              │                    │                    │         │
│   ┌──────────┴──────┐      ┌──────┴──────┐                       │
│   ▼                 │      ▼             ▼                       │
│ ┌──────────┐        │  ┌──────────┐  ┌────────────────────┐     │
│ │ Supabase │◄───────┴─►│  SQLite  │◄─│ RealtimeRefresher  │     │
│ │ (remote) │           │ (mirror) │  │ (change reloads)   │     │
│ └──────────┘           └──────────┘  └────────────────────┘     │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from winshirt_core.offline import get_data_service

service = get_data_service()
result = await service.products.fetch_all()
print(result.metadata["source"])  # "remote" or "local"
"""

from winshirt_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from winshirt_core.offline.local_mirror import LocalMirror

from winshirt_core.offline.sync_manager import SYNC_ORDER, SyncManager

from winshirt_core.offline.backup import BackupService, snapshot_filename

from winshirt_core.offline.realtime import WATCHED_TABLES, RealtimeMirrorRefresher

from winshirt_core.offline.unified_data_service import (
    WinShirtDataService,
    get_data_service,
    reset_data_service,
)

__all__ = [
    # Connectivity
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Local mirror
    "LocalMirror",
    # Sync
    "SYNC_ORDER",
    "SyncManager",
    # Backup
    "BackupService",
    "snapshot_filename",
    # Realtime
    "WATCHED_TABLES",
    "RealtimeMirrorRefresher",
    # Container (main API)
    "WinShirtDataService",
    "get_data_service",
    "reset_data_service",
]
