# =============================================================================
# winshirt_core/offline/local_mirror.py
# Local SQLite mirror of every remote table
# =============================================================================
"""
LocalMirror - per-table JSON store used as offline cache and fallback.

Features:
- One serialized JSON array per table name (last writer wins)
- Settings bucket for sync bookkeeping
- Transaction support
- Thread-safe connections
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from winshirt_core.data.schemas import SyncStatus
from winshirt_core.logging import get_logger

logger = get_logger(__name__)

SYNC_STATUS_PREFIX = "sync_status_"
_LIKE_PREFIX = SYNC_STATUS_PREFIX.replace("_", "\\_") + "%"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class LocalMirror:
    """
    Flat key-value mirror keyed by table name.

    Values are JSON arrays of rows in application (camelCase) naming.
    The store itself does not enforce any row schema.
    """

    SCHEMA = {
        "mirror_entries": """
            CREATE TABLE IF NOT EXISTS mirror_entries (
                table_name TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    def __init__(self, db_path: Path):
        """
        Initialize the mirror.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> LocalMirror:
        """Create the schema if needed."""
        if self._initialized:
            return self

        with self.transaction() as conn:
            for table_name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified table: {table_name}")

        self._initialized = True
        logger.info(f"Local mirror initialized at: {self.db_path}")
        return self

    # =========================================================================
    # TABLE ENTRIES
    # =========================================================================

    def read(self, table: str) -> List[Dict[str, Any]]:
        """
        Parsed rows of a table.

        Returns [] when the entry is absent, malformed or not a list.
        """
        self.initialize()
        row = self._get_connection().execute(
            "SELECT payload FROM mirror_entries WHERE table_name = ?", (table,)
        ).fetchone()
        if row is None:
            return []

        try:
            rows = json.loads(row["payload"])
        except json.JSONDecodeError as e:
            logger.warning(f"Malformed mirror entry for {table}: {e}")
            return []

        if not isinstance(rows, list):
            logger.warning(f"Mirror entry for {table} is not a list, ignoring it")
            return []
        return rows

    def write(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Overwrite a table's entry."""
        self.initialize()
        payload = json.dumps(list(rows), default=_json_default)
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO mirror_entries (table_name, payload, updated_at)
                VALUES (?, ?, ?)
                """,
                (table, payload, datetime.now().isoformat()),
            )
        logger.debug(f"Mirrored {len(rows)} rows into {table}")

    def remove(self, table: str) -> None:
        self.initialize()
        with self.transaction() as conn:
            conn.execute("DELETE FROM mirror_entries WHERE table_name = ?", (table,))

    def keys(self) -> List[str]:
        self.initialize()
        rows = self._get_connection().execute(
            "SELECT table_name FROM mirror_entries ORDER BY table_name"
        ).fetchall()
        return [row["table_name"] for row in rows]

    def has(self, table: str) -> bool:
        return table in self.keys()

    # =========================================================================
    # ROW HELPERS
    # =========================================================================

    def next_id(self, table: str) -> int:
        """max(existing ids) + 1, or 1 when the table is empty."""
        ids = [
            row["id"] for row in self.read(table)
            if isinstance(row, dict) and isinstance(row.get("id"), (int, float))
            and not isinstance(row.get("id"), bool)
        ]
        return int(max(ids)) + 1 if ids else 1

    def append(self, table: str, row: Dict[str, Any]) -> None:
        rows = self.read(table)
        rows.append(row)
        self.write(table, rows)

    def replace(self, table: str, row: Dict[str, Any], key: str = "id") -> None:
        """Replace the row with the same key, or append it when missing."""
        rows = self.read(table)
        for index, existing in enumerate(rows):
            if isinstance(existing, dict) and existing.get(key) == row.get(key):
                rows[index] = row
                break
        else:
            rows.append(row)
        self.write(table, rows)

    def find(self, table: str, record_id: Any, key: str = "id") -> Optional[Dict[str, Any]]:
        for row in self.read(table):
            if isinstance(row, dict) and row.get(key) == record_id:
                return row
        return None

    def discard(self, table: str, record_id: Any, key: str = "id") -> bool:
        """Drop rows with the given key; True if any row was removed."""
        rows = self.read(table)
        kept = [row for row in rows if not (isinstance(row, dict) and row.get(key) == record_id)]
        if len(kept) == len(rows):
            return False
        self.write(table, kept)
        return True

    def count(self, table: str) -> int:
        return len(self.read(table))

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting."""
        self.initialize()
        result = self._get_connection().execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        if result is None:
            return default
        try:
            return json.loads(result["value"])
        except json.JSONDecodeError:
            return result["value"]

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        self.initialize()
        value_str = json.dumps(value, default=_json_default)
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                (key, value_str, datetime.now().isoformat()),
            )

    # =========================================================================
    # SYNC STATUS
    # =========================================================================

    def get_sync_status(self, table: str) -> Optional[SyncStatus]:
        raw = self.get_setting(SYNC_STATUS_PREFIX + table)
        if not isinstance(raw, dict):
            return None
        return SyncStatus.model_validate(raw)

    def set_sync_status(self, table: str, status: SyncStatus) -> None:
        self.set_setting(SYNC_STATUS_PREFIX + table, status.to_app())

    def sync_history(self) -> Dict[str, SyncStatus]:
        """Every recorded sync status, keyed by table."""
        self.initialize()
        rows = self._get_connection().execute(
            "SELECT key FROM app_settings WHERE key LIKE ? ESCAPE '\\'", (_LIKE_PREFIX,)
        ).fetchall()
        history = {}
        for row in rows:
            table = row["key"][len(SYNC_STATUS_PREFIX):]
            status = self.get_sync_status(table)
            if status is not None:
                history[table] = status
        return history

    def clear_sync_history(self) -> None:
        self.initialize()
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM app_settings WHERE key LIKE ? ESCAPE '\\'", (_LIKE_PREFIX,)
            )

    def close(self) -> None:
        """Close database connection."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None
