# =============================================================================
# winshirt_core/data/entity_service.py
# Shared remote/local sync adapter for one entity table
# =============================================================================
"""
EntitySyncService implements the read/write pattern every entity adapter
shares:

- reads go to Supabase when the probe says online, the result overwrites
  the local mirror entry; otherwise (or when the remote read fails) the
  mirror entry is returned as-is
- mutations are validated before any network call, run against Supabase
  when online and are always written back into the mirror
- offline creates get ``max(id) + 1`` from the mirror

Every operation returns a ServiceResult and pairs its outcome with a
notification. Nothing is retried automatically.
"""

from __future__ import annotations
import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import ValidationError as SchemaValidationError

from winshirt_core.errors import NotFoundError, RemoteServiceError, ValidationError, handle_error
from winshirt_core.notifications import Notifier
from winshirt_core.services import BaseService, ServiceResult
from .field_mapping import get_mapping
from .schemas import WinShirtRecord, decode_rows

Record = Dict[str, Any]


def _own_copy(result: ServiceResult) -> ServiceResult:
    """A copy of a shared read result that one caller may change freely."""
    data = result.data
    if isinstance(data, list):
        data = [dict(row) if isinstance(row, dict) else row for row in data]
    metadata = dict(result.metadata) if result.metadata is not None else None
    return replace(result, data=data, metadata=metadata)


class EntitySyncService(BaseService):
    """
    Base adapter; subclasses set the class attributes below and override
    the hooks they need.
    """

    table: str = ""
    model: Type[WinShirtRecord] = WinShirtRecord
    entity_name: str = "record"
    # Application keys that must be non-empty before any write
    required_fields: Tuple[str, ...] = ()
    # Application-only keys, never sent to the backend
    app_only_fields: Tuple[str, ...] = ()
    # (child table, remote foreign key column), deleted before the parent
    child_tables: Tuple[Tuple[str, str], ...] = ()
    order_by: Optional[str] = "id"

    def __init__(self, remote: Any, mirror: Any, probe: Any, notifier: Optional[Notifier] = None):
        super().__init__(notifier)
        self.remote = remote
        self.mirror = mirror
        self.probe = probe
        self.mapping = get_mapping(self.table)
        self._inflight: Optional[asyncio.Future] = None

    @property
    def label(self) -> str:
        return self.entity_name.capitalize()

    # =========================================================================
    # HOOKS
    # =========================================================================

    async def _fetch_remote(self) -> List[Record]:
        """Read and assemble every row of the table, in application naming."""
        rows = await self.remote.select(self.table, order_by=self.order_by)
        return self.mapping.rows_to_app(rows)

    def prepare(self, record: Record) -> Record:
        """Normalize an incoming record before validation."""
        return record

    async def _after_remote_create(self, created: Record, record: Record) -> Record:
        """Write dependent rows once the parent has its backend id."""
        return created

    def _create_local(self, record: Record) -> Record:
        """Offline create: the mirror assigns the next id."""
        return {**record, "id": self.mirror.next_id(self.table)}

    async def _check_delete(self, record_id: Any) -> None:
        """Raise to block a delete."""

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, record: Record) -> Record:
        """
        Check required fields and the record schema.

        Returns:
            The normalized record in application naming

        Raises:
            ValidationError: before any network call
        """
        for key in self.required_fields:
            value = record.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(
                    f"{self.label} {key} is required",
                    field=key,
                    entity=self.table,
                )

        try:
            model = self.model.model_validate(record)
        except SchemaValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise ValidationError(
                f"Invalid {self.entity_name}: {field}: {first['msg']}",
                field=field,
                entity=self.table,
            ) from e
        return model.to_app()

    def _to_remote_payload(self, record: Record, drop_none: bool = False) -> Record:
        payload = {
            key: value for key, value in record.items()
            if key != "id" and key not in self.app_only_fields
            and not (drop_none and value is None)
        }
        return self.mapping.to_remote(payload)

    def _normalize(self, record: Record) -> Record:
        """Re-validate a merged record; keep it as-is if the schema rejects it."""
        try:
            return self.model.model_validate(record).to_app()
        except SchemaValidationError as e:
            self.logger.warning(f"{self.label} {record.get('id')} does not match its schema: {e.error_count()} error(s)")
            return record

    # =========================================================================
    # READ
    # =========================================================================

    async def fetch_all(self, force_refresh: bool = False) -> ServiceResult:
        """
        All records of the table.

        Concurrent callers share one in-flight remote read unless
        ``force_refresh`` is set.

        Returns:
            ServiceResult with a list of records; ``metadata["source"]`` is
            ``"remote"`` or ``"local"``
        """
        if not force_refresh and self._inflight is not None and not self._inflight.done():
            return _own_copy(await self._inflight)

        task = asyncio.ensure_future(self._fetch_all())
        self._inflight = task
        try:
            return _own_copy(await task)
        finally:
            if self._inflight is task:
                self._inflight = None

    async def _fetch_all(self) -> ServiceResult:
        if not await self.probe.is_connected():
            return self._local_result()

        try:
            with self.log_operation("Fetching", table=self.table) as op:
                rows = await self._fetch_remote()
                op.note(rows=len(rows))
        except Exception as e:
            handle_error(
                e,
                notifier=self.notifier,
                user_message=f"Could not load {self.table} from the server, showing local data",
            )
            return self._local_result(error=str(e))

        records, quarantined = decode_rows(self.model, rows, self.table)
        data = [record.to_app() for record in records]
        self.mirror.write(self.table, data)
        return ServiceResult.ok(data, metadata={"source": "remote", "quarantined": quarantined})

    def _local_result(self, error: Optional[str] = None) -> ServiceResult:
        metadata = {"source": "local"}
        if error:
            metadata["error"] = error
        return ServiceResult.ok(self.mirror.read(self.table), metadata=metadata)

    async def fetch_by_id(self, record_id: Any) -> ServiceResult:
        """fetch_all() followed by a linear search."""
        result = await self.fetch_all()
        for record in result.data or []:
            if isinstance(record, dict) and record.get("id") == record_id:
                return ServiceResult.ok(record, metadata=result.metadata)

        return self.fail(
            NotFoundError(f"{self.label} {record_id} not found", table=self.table, record_id=record_id)
        )

    # =========================================================================
    # WRITE
    # =========================================================================

    async def create(self, entity: Record) -> ServiceResult:
        """Create a record; the backend (or the mirror when offline) assigns the id."""
        try:
            record = self.validate(self.prepare(dict(entity)))
        except ValidationError as e:
            return self.fail(e)
        record.pop("id", None)

        if await self.probe.is_connected():
            try:
                with self.log_operation(f"Creating {self.entity_name}"):
                    created = await self._create_remote(record)
            except Exception as e:
                return self.fail(e, user_message=f"Could not create {self.entity_name}")
            source = "remote"
        else:
            created = self._create_local(record)
            source = "local"

        self.mirror.append(self.table, created)
        self.notifier.success(f"{self.label} created")
        return ServiceResult.ok(created, metadata={"source": source})

    async def _create_remote(self, record: Record) -> Record:
        row = await self.remote.insert(self.table, self._to_remote_payload(record, drop_none=True))
        created = {**record, **self.mapping.to_app(row)}
        created = await self._after_remote_create(created, record)
        return self._normalize(created)

    async def update(self, entity: Record) -> ServiceResult:
        """Update a record by id and replace it in the mirror."""
        record_id = entity.get("id")
        if record_id is None:
            return self.fail(ValidationError(f"{self.label} id is required", field="id", entity=self.table))

        try:
            record = self.validate(self.prepare(dict(entity)))
        except ValidationError as e:
            return self.fail(e)

        if not await self.probe.is_connected():
            self.mirror.replace(self.table, record)
            self.notifier.success(f"{self.label} updated locally")
            return ServiceResult.ok(record, metadata={"source": "local"})

        previous = self.mirror.find(self.table, record_id) or {}
        try:
            with self.log_operation(f"Updating {self.entity_name} {record_id}"):
                rows = await self.remote.update(
                    self.table, self._to_remote_payload(record), {"id": record_id}
                )
            if not rows:
                raise NotFoundError(
                    f"{self.label} {record_id} not found on the server",
                    table=self.table,
                    record_id=record_id,
                )
        except Exception as e:
            return self.fail(e, user_message=f"Could not update {self.entity_name}")

        # Fields the backend does not return keep their pre-update local value
        updated = self._normalize({**previous, **self.mapping.to_app(rows[0])})
        self.mirror.replace(self.table, updated)
        self.notifier.success(f"{self.label} updated")
        return ServiceResult.ok(updated, metadata={"source": "remote"})

    async def patch(
        self,
        record_id: Any,
        changes: Record,
        success_message: Optional[str] = None,
    ) -> ServiceResult:
        """
        Update a few fields (application naming) of one record.

        Offline, the record must already be in the mirror.
        """
        local = self.mirror.find(self.table, record_id)

        if await self.probe.is_connected():
            try:
                rows = await self.remote.update(
                    self.table, self.mapping.to_remote(changes), {"id": record_id}
                )
                if not rows:
                    raise NotFoundError(
                        f"{self.label} {record_id} not found on the server",
                        table=self.table,
                        record_id=record_id,
                    )
            except Exception as e:
                return self.fail(e, user_message=f"Could not update {self.entity_name}")
            updated = {**(local or {}), **self.mapping.to_app(rows[0])}
            source = "remote"
        else:
            if local is None:
                return self.fail(
                    NotFoundError(f"{self.label} {record_id} not found", table=self.table, record_id=record_id)
                )
            updated = {**local, **changes}
            source = "local"

        self.mirror.replace(self.table, updated)
        self.notifier.success(success_message or f"{self.label} updated")
        return ServiceResult.ok(updated, metadata={"source": source})

    async def delete(self, record_id: Any) -> ServiceResult:
        """
        Delete a record and its dependent rows.

        The mirror entry is removed on every path; the result tells whether
        the parent delete succeeded.
        """
        try:
            await self._check_delete(record_id)
        except Exception as e:
            return self.fail(e)

        error: Optional[Exception] = None
        if await self.probe.is_connected():
            for child_table, foreign_key in self.child_tables:
                try:
                    await self.remote.delete(child_table, {foreign_key: record_id})
                except Exception as e:
                    self.logger.warning(
                        f"Could not delete {child_table} rows of {self.entity_name} {record_id}: {e}"
                    )
            try:
                with self.log_operation(f"Deleting {self.entity_name} {record_id}"):
                    await self.remote.delete(self.table, {"id": record_id})
            except RemoteServiceError as e:
                error = e

        self.mirror.discard(self.table, record_id)
        for child_table, foreign_key in self.child_tables:
            child_key = get_mapping(child_table).remote_to_app.get(foreign_key, foreign_key)
            self.mirror.discard(child_table, record_id, key=child_key)

        if error is not None:
            result = self.fail(error, user_message=f"Could not delete {self.entity_name} on the server")
            result.data = False
            return result

        self.notifier.success(f"{self.label} deleted")
        return ServiceResult.ok(True)
