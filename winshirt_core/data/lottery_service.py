# =============================================================================
# winshirt_core/data/lottery_service.py
# Lotteries, their participants and winners
# =============================================================================

from __future__ import annotations
import asyncio
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as SchemaValidationError

from winshirt_core.errors import (
    ConcurrencyError,
    LotteryNotReadyError,
    NotFoundError,
    RemoteServiceError,
    ValidationError,
)
from winshirt_core.services import ServiceResult
from .entity_service import EntitySyncService, Record
from .field_mapping import get_mapping
from .schemas import Lottery, Participant, Winner

PARTICIPANTS_TABLE = "lottery_participants"
WINNERS_TABLE = "lottery_winners"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class LotteryService(EntitySyncService):
    """
    Lottery adapter.

    Handles:
    - Lottery CRUD with participants and winner assembled per lottery
    - Participant registration with an atomic counter increment
    - Winner draw, featured flag and draw readiness

    Usage:
        service = LotteryService(gateway, mirror, probe)
        result = await service.add_participant(3, {"userId": 12, "name": "Ana"})
    """

    table = "lotteries"
    model = Lottery
    entity_name = "lottery"
    required_fields = ("title",)
    app_only_fields = ("participants", "winner")
    child_tables = ((PARTICIPANTS_TABLE, "lottery_id"), (WINNERS_TABLE, "lottery_id"))

    INCREMENT_RPC = "increment"
    MAX_CAS_ATTEMPTS = 5

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.participant_mapping = get_mapping(PARTICIPANTS_TABLE)
        self.winner_mapping = get_mapping(WINNERS_TABLE)
        self._rpc_available = True

    # =========================================================================
    # READ
    # =========================================================================

    async def _fetch_remote(self) -> List[Record]:
        rows = await self.remote.select(self.table, order_by=self.order_by)
        lotteries = self.mapping.rows_to_app(rows)

        # Fan out across lotteries, settle all
        outcomes = await asyncio.gather(
            *(self._load_children(lottery.get("id")) for lottery in lotteries),
            return_exceptions=True,
        )

        all_participants: List[Record] = []
        all_winners: List[Record] = []
        complete = True
        for lottery, outcome in zip(lotteries, outcomes):
            if isinstance(outcome, BaseException):
                complete = False
                self.logger.warning(
                    f"Could not load participants/winner of lottery {lottery.get('id')}: {outcome}"
                )
                lottery.setdefault("participants", [])
                continue

            participants, winners = outcome
            lottery["participants"] = participants
            if winners and lottery.get("status") == "completed":
                lottery["winner"] = winners[0]
            all_participants.extend(participants)
            all_winners.extend(winners)

        if complete:
            self.mirror.write(PARTICIPANTS_TABLE, all_participants)
            self.mirror.write(WINNERS_TABLE, all_winners)
        return lotteries

    async def _load_children(self, lottery_id: Any) -> Tuple[List[Record], List[Record]]:
        participants = await self.remote.select(
            PARTICIPANTS_TABLE, filters={"lottery_id": lottery_id}, order_by="id"
        )
        winners = await self.remote.select(
            WINNERS_TABLE, filters={"lottery_id": lottery_id}, order_by="id"
        )
        return (
            self.participant_mapping.rows_to_app(participants),
            self.winner_mapping.rows_to_app(winners),
        )

    async def fetch_active(self) -> ServiceResult:
        result = await self.fetch_all()
        return replace(result, data=[lottery for lottery in result.data or [] if lottery.get("status") == "active"])

    async def fetch_featured(self) -> ServiceResult:
        result = await self.fetch_all()
        return replace(result, data=[lottery for lottery in result.data or [] if lottery.get("featured")])

    # =========================================================================
    # PARTICIPANTS
    # =========================================================================

    async def add_participant(self, lottery_id: int, participant: Dict[str, Any]) -> ServiceResult:
        """
        Register a participant and increment ``currentParticipants`` by one.

        Online, the counter goes through the ``increment`` database function;
        when that is unavailable a compare-and-set update is retried until it
        wins or MAX_CAS_ATTEMPTS is reached. When the counter cannot be
        updated the inserted participant row is deleted again.
        """
        try:
            row = Participant.model_validate(participant).to_app()
        except SchemaValidationError as e:
            return self.fail(
                ValidationError(f"Invalid participant: {e.errors()[0]['msg']}", entity=PARTICIPANTS_TABLE)
            )
        row["lotteryId"] = lottery_id
        row.pop("id", None)

        if not await self.probe.is_connected():
            return self._add_participant_locally(lottery_id, row)

        payload = {k: v for k, v in row.items() if v is not None}
        try:
            with self.log_operation("Adding participant", lottery_id=lottery_id):
                inserted = await self.remote.insert(
                    PARTICIPANTS_TABLE, self.participant_mapping.to_remote(payload)
                )
        except Exception as e:
            return self.fail(e, user_message="Could not register participation")

        try:
            count = await self._increment_participants(lottery_id)
        except Exception as e:
            await self._discard_remote_participant(inserted)
            return self.fail(e, user_message="Could not register participation")

        created = {**row, **self.participant_mapping.to_app(inserted)}
        self.mirror.append(PARTICIPANTS_TABLE, created)
        self._mirror_participant(lottery_id, created, count)
        self.notifier.success("Participation registered")
        return ServiceResult.ok(created, metadata={"source": "remote", "current_participants": count})

    async def _discard_remote_participant(self, inserted: Record) -> None:
        participant_id = inserted.get("id")
        if participant_id is None:
            self.logger.error("Participant row has no id, it cannot be removed after the counter failure")
            return
        try:
            await self.remote.delete(PARTICIPANTS_TABLE, {"id": participant_id})
        except RemoteServiceError as e:
            self.logger.error(f"Participant {participant_id} is left uncounted on the server: {e}")
        else:
            self.logger.info(f"Removed participant {participant_id} after the counter failure")

    def _add_participant_locally(self, lottery_id: int, row: Record) -> ServiceResult:
        created = {
            **row,
            "id": self.mirror.next_id(PARTICIPANTS_TABLE),
            "createdAt": _utcnow().isoformat(),
        }
        self.mirror.append(PARTICIPANTS_TABLE, created)
        count = self._mirror_participant(lottery_id, created)
        self.notifier.success("Participation registered locally")
        return ServiceResult.ok(created, metadata={"source": "local", "current_participants": count})

    def _mirror_participant(
        self,
        lottery_id: int,
        participant: Record,
        count: Optional[int] = None,
    ) -> Optional[int]:
        """Attach a participant to the mirrored lottery and update its counter."""
        lotteries = self.mirror.read(self.table)
        for lottery in lotteries:
            if isinstance(lottery, dict) and lottery.get("id") == lottery_id:
                if count is None:
                    count = (lottery.get("currentParticipants") or 0) + 1
                lottery["currentParticipants"] = count
                lottery.setdefault("participants", []).append(participant)
                self.mirror.write(self.table, lotteries)
                return count

        self.logger.warning(f"Lottery {lottery_id} is not in the local mirror")
        return count

    async def _increment_participants(self, lottery_id: int) -> int:
        """Atomically add one to current_participants; returns the new value."""
        if self._rpc_available:
            try:
                data = await self.remote.rpc(
                    self.INCREMENT_RPC,
                    {
                        "row_id": lottery_id,
                        "num_increment": 1,
                        "field_name": "current_participants",
                        "table_name": self.table,
                    },
                )
            except RemoteServiceError as e:
                if _function_missing(e):
                    self._rpc_available = False
                    self.logger.info(f"Atomic increment unavailable, using compare-and-set: {e}")
                else:
                    self.logger.warning(f"Atomic increment failed, using compare-and-set for this call: {e}")
            else:
                return _rpc_value(data, "current_participants")

        return await self._compare_and_set_increment(lottery_id)

    async def _compare_and_set_increment(self, lottery_id: int) -> int:
        for attempt in range(1, self.MAX_CAS_ATTEMPTS + 1):
            rows = await self.remote.select(
                self.table,
                columns="id,current_participants",
                filters={"id": lottery_id},
                limit=1,
            )
            if not rows:
                raise NotFoundError(
                    f"Lottery {lottery_id} not found", table=self.table, record_id=lottery_id
                )

            seen = rows[0].get("current_participants") or 0
            updated = await self.remote.update(
                self.table,
                {"current_participants": seen + 1},
                {"id": lottery_id, "current_participants": seen},
            )
            if updated:
                return seen + 1
            self.logger.debug(f"Participant counter of lottery {lottery_id} changed, retry {attempt}")

        raise ConcurrencyError(
            f"Could not update participant count of lottery {lottery_id}",
            table=self.table,
            attempts=self.MAX_CAS_ATTEMPTS,
        )

    # =========================================================================
    # DRAW
    # =========================================================================

    @staticmethod
    def is_ready_for_draw(lottery: Union[Record, Lottery], now: Optional[datetime] = None) -> bool:
        """
        A lottery can be drawn while active once its participant target is
        met or its end date has passed.
        """
        if not isinstance(lottery, Lottery):
            try:
                lottery = Lottery.model_validate(lottery)
            except SchemaValidationError:
                return False

        if lottery.status != "active":
            return False
        if lottery.current_participants >= lottery.target_participants:
            return True
        if lottery.end_date is None:
            return False
        return _as_utc(lottery.end_date) < _as_utc(now or _utcnow())

    async def check_draw_readiness(self, lottery_id: int, now: Optional[datetime] = None) -> ServiceResult:
        result = await self.fetch_by_id(lottery_id)
        if not result:
            return result
        return ServiceResult.ok(self.is_ready_for_draw(result.data, now), metadata=result.metadata)

    async def select_winner(
        self,
        lottery_id: int,
        winner: Dict[str, Any],
        enforce_readiness: bool = True,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """
        Record the winner and mark the lottery completed.

        With ``enforce_readiness=False`` the draw is allowed whatever the
        participant count or end date (admin override).
        """
        found = await self.fetch_by_id(lottery_id)
        if not found:
            return found
        lottery = found.data

        if enforce_readiness and not self.is_ready_for_draw(lottery, now):
            return self.fail(
                LotteryNotReadyError(
                    f"Lottery {lottery_id} is not ready for the draw",
                    lottery_id=lottery_id,
                    status=lottery.get("status"),
                )
            )

        try:
            winner_row = Winner.model_validate(
                {**winner, "lotteryId": lottery_id, "drawnAt": now or _utcnow()}
            ).to_app()
        except SchemaValidationError as e:
            return self.fail(
                ValidationError(f"Invalid winner: {e.errors()[0]['msg']}", entity=WINNERS_TABLE)
            )
        winner_row.pop("id", None)

        if await self.probe.is_connected():
            try:
                with self.log_operation(f"Drawing winner of lottery {lottery_id}"):
                    payload = {k: v for k, v in winner_row.items() if v is not None}
                    inserted = await self.remote.insert(
                        WINNERS_TABLE, self.winner_mapping.to_remote(payload)
                    )
                    rows = await self.remote.update(
                        self.table, {"status": "completed"}, {"id": lottery_id}
                    )
                    if not rows:
                        raise NotFoundError(
                            f"Lottery {lottery_id} not found on the server",
                            table=self.table,
                            record_id=lottery_id,
                        )
            except Exception as e:
                return self.fail(e, user_message="Could not record the winner")
            winner_row = {**winner_row, **self.winner_mapping.to_app(inserted)}
            lottery = {**lottery, **self.mapping.to_app(rows[0])}
            source = "remote"
        else:
            winner_row["id"] = self.mirror.next_id(WINNERS_TABLE)
            source = "local"

        self.mirror.append(WINNERS_TABLE, winner_row)
        completed = {**lottery, "status": "completed", "winner": winner_row}
        self.mirror.replace(self.table, completed)
        self.notifier.success(f"Winner drawn: {winner_row.get('name') or winner_row.get('email') or 'participant'}")
        return ServiceResult.ok(completed, metadata={"source": source})

    # =========================================================================
    # FEATURED
    # =========================================================================

    async def toggle_featured(self, lottery_id: int, featured: bool) -> ServiceResult:
        return await self.patch(
            lottery_id,
            {"featured": featured},
            success_message="Lottery featured" if featured else "Lottery no longer featured",
        )


def _rpc_value(data: Any, field: str) -> int:
    """The increment function may return a scalar, a row or a list of rows."""
    if isinstance(data, list):
        if not data:
            raise RemoteServiceError("increment returned no value", operation="rpc")
        data = data[0]
    if isinstance(data, dict):
        data = data.get(field)
    if data is None:
        raise RemoteServiceError("increment returned no value", operation="rpc")
    return int(data)


_MISSING_FUNCTION = re.compile(r"PGRST202|could not find the function|function .+ does not exist", re.IGNORECASE)


def _function_missing(error: RemoteServiceError) -> bool:
    """True when the backend reports the function itself as absent."""
    return bool(_MISSING_FUNCTION.search(f"{error.message} {error.__cause__ or ''}"))
