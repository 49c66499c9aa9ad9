# =============================================================================
# winshirt_core/offline/backup.py
# Snapshot export/import of the local mirror, full reset, table export
# =============================================================================
"""
A snapshot is a single JSON object keyed by table name; every known table
is present (an empty list when it has no mirror entry). Rows are stored in
application (camelCase) naming, the same shape as the mirror, and are
normalized through the table's field mapping again on import.
"""

from __future__ import annotations
import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from winshirt_core.data.field_mapping import get_mapping
from winshirt_core.data.supabase_client import KNOWN_TABLES
from winshirt_core.errors import SnapshotError, ValidationError
from winshirt_core.notifications import Notifier
from winshirt_core.services import BaseService, ServiceResult
from .sync_manager import SYNC_ORDER

SnapshotSource = Union[Path, str, bytes, Dict[str, Any]]

EXPORT_FORMATS = ("csv", "json")


def snapshot_filename(moment: Optional[datetime] = None) -> str:
    """``winshirt-backup-<ISO timestamp>.json`` with ':' and '.' replaced by '-'."""
    stamp = (moment or datetime.now(timezone.utc)).isoformat()
    return f"winshirt-backup-{stamp.replace(':', '-').replace('.', '-')}.json"


class BackupService(BaseService):
    """
    Backup/restore of the whole mirror.

    Usage:
        backup = BackupService(mirror, gateway, probe, sync_manager)
        path = (await backup.export_snapshot()).data
        await backup.import_snapshot(path, push_to_remote=True)
    """

    def __init__(
        self,
        mirror: Any,
        remote: Any,
        probe: Any,
        sync_manager: Any,
        backup_dir: Optional[Path] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(notifier)
        self.mirror = mirror
        self.remote = remote
        self.probe = probe
        self.sync_manager = sync_manager
        self.backup_dir = Path(backup_dir) if backup_dir else Path("backups")

    # =========================================================================
    # EXPORT
    # =========================================================================

    def snapshot(self) -> Dict[str, List[Any]]:
        return {table: self.mirror.read(table) for table in KNOWN_TABLES}

    def snapshot_bytes(self) -> bytes:
        """Snapshot payload, e.g. for ``st.download_button``."""
        return json.dumps(self.snapshot(), indent=2, ensure_ascii=False).encode("utf-8")

    async def export_snapshot(self, directory: Optional[Path] = None) -> ServiceResult:
        """Write the snapshot file; returns its path."""
        async def _export() -> Path:
            target_dir = Path(directory) if directory else self.backup_dir
            target_dir.mkdir(parents=True, exist_ok=True)
            path = target_dir / snapshot_filename()
            try:
                path.write_bytes(self.snapshot_bytes())
            except OSError as e:
                raise SnapshotError(f"Could not write backup: {e}", source=str(path)) from e
            self.notifier.success(f"Backup saved to {path.name}")
            return path

        return await self.safe_execute("Exporting snapshot", _export)

    # =========================================================================
    # IMPORT
    # =========================================================================

    def _load(self, source: SnapshotSource) -> Dict[str, Any]:
        if isinstance(source, dict):
            return source

        label = "upload"
        try:
            if isinstance(source, bytes):
                text = source.decode("utf-8")
            elif isinstance(source, str) and source.lstrip().startswith(("{", "[")):
                text = source
            else:
                label = str(source)
                text = Path(source).read_text(encoding="utf-8")
            payload = json.loads(text)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Could not read backup: {e}", source=label) from e

        if not isinstance(payload, dict):
            raise SnapshotError("Backup must be a JSON object keyed by table name", source=label)
        return payload

    async def import_snapshot(self, source: SnapshotSource, push_to_remote: bool = False) -> ServiceResult:
        """
        Overwrite every table present as a list in the snapshot.

        Values that are not lists are skipped. With ``push_to_remote`` (the
        user confirmed it) and the backend reachable, the restored tables
        are pushed afterwards.
        """
        try:
            payload = self._load(source)
        except SnapshotError as e:
            return self.fail(e)

        restored: List[str] = []
        skipped: List[str] = []
        for table, rows in payload.items():
            if not isinstance(rows, list):
                skipped.append(table)
                continue
            mapping = get_mapping(table)
            self.mirror.write(
                table,
                [mapping.to_app(row) if isinstance(row, dict) else row for row in rows],
            )
            restored.append(table)

        if skipped:
            self.logger.warning(f"Skipped non-list backup entries: {skipped}")
        self.notifier.success(f"{len(restored)} tables restored")

        metadata: Dict[str, Any] = {"restored": restored, "skipped": skipped, "pushed": False}
        if push_to_remote:
            if await self.probe.is_connected():
                ordered = [t for t in SYNC_ORDER if t in restored]
                ordered += [t for t in restored if t not in ordered]
                push = await self.sync_manager.sync_all(tables=ordered)
                metadata["pushed"] = push.success
                metadata["push_results"] = push.data
            else:
                self.notifier.info("Offline: restored data stays local until the next sync")

        return ServiceResult.ok(restored, metadata=metadata)

    # =========================================================================
    # RESET
    # =========================================================================

    async def clear_all_data(self) -> ServiceResult:
        """
        Delete every row of every known remote table (best-effort, children
        first), then clear every mirror entry.
        """
        failed: List[str] = []
        if await self.probe.is_connected():
            for table in reversed(SYNC_ORDER):
                try:
                    await self.remote.delete_all(table)
                except Exception as e:
                    self.logger.error(f"Could not clear remote table {table}: {e}")
                    failed.append(table)

        for table in KNOWN_TABLES:
            self.mirror.remove(table)

        if failed:
            self.notifier.warning(f"Local data cleared, remote tables not cleared: {', '.join(failed)}")
            return ServiceResult(
                success=False,
                data=False,
                error=f"Could not clear remote tables: {failed}",
                error_code="BACKUP_002",
                metadata={"failed": failed},
            )

        self.notifier.success("All data cleared")
        return ServiceResult.ok(True, metadata={"failed": []})

    # =========================================================================
    # TABLE EXPORT
    # =========================================================================

    def export_table(
        self,
        rows: List[Dict[str, Any]],
        fmt: str = "csv",
        filename: Optional[Path] = None,
    ) -> ServiceResult:
        """
        Export records as CSV (nested fields flattened with dots) or JSON.

        Returns the payload bytes; also writes ``filename`` when given.
        """
        if fmt not in EXPORT_FORMATS:
            return self.fail(ValidationError(f"Unsupported export format: {fmt}", field="fmt"))

        if fmt == "json":
            payload = json.dumps(rows, indent=2, ensure_ascii=False, default=str).encode("utf-8")
        else:
            buffer = io.StringIO()
            pd.json_normalize(rows).to_csv(buffer, index=False)
            payload = buffer.getvalue().encode("utf-8")

        if filename is not None:
            Path(filename).write_bytes(payload)
        return ServiceResult.ok(payload, metadata={"format": fmt, "rows": len(rows)})
