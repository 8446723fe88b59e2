"""Assignment lifecycle: create for a shift, return, and replace an event's equipment."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Callable, Sequence

from shiftgear.domain.bus import EventBus
from shiftgear.domain.errors import (
    EquipmentConflict,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from shiftgear.domain.events import (
    AssignmentConflictDetected,
    AssignmentCreated,
    AssignmentReturned,
    AssignmentUpdated,
    EventEquipmentReplaced,
)
from shiftgear.domain.models import (
    AssignmentPage,
    AssignmentRecord,
    BatchResult,
    DraftShift,
    EquipmentItem,
    EquipmentStatus,
    EventDay,
    PageMeta,
    ShiftAssignmentResult,
    ShiftFailure,
    ShiftOutcome,
    SlotError,
)
from shiftgear.repos.memory import (
    AssignmentLedger,
    EquipmentRepository,
    EventRepository,
    StaffRepository,
)
from shiftgear.services.windows import shift_window, validate_window

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_EDITABLE_FIELDS = frozenset({"holder_id", "event_id", "window_start", "window_end", "note"})


def shift_ref_for(day: date, index: int) -> str:
    return f"{day.isoformat()}#{index}"


class AssignmentLifecycle:
    """Commits, closes and bulk-replaces assignment records.

    Every write goes through ``AssignmentLedger.insert_if_free`` so the
    availability rule is re-applied at commit time no matter what the caller
    saw when composing its draft.
    """

    def __init__(
        self,
        equipment_repo: EquipmentRepository,
        staff_repo: StaffRepository,
        event_repo: EventRepository,
        ledger: AssignmentLedger,
        bus: EventBus,
        zone: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.equipment_repo = equipment_repo
        self.staff_repo = staff_repo
        self.event_repo = event_repo
        self.ledger = ledger
        self.bus = bus
        self.zone = zone
        self.clock = clock

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def _check_holder(self, holder_id: str) -> None:
        member = await self.staff_repo.get(holder_id)
        if member is None or not member.is_active:
            raise ValidationError(f"Holder {holder_id} not found or inactive", field="holder_id")

    async def _check_event(self, event_id: str | None) -> None:
        if event_id is not None and await self.event_repo.get(event_id) is None:
            raise ValidationError(f"Event {event_id} not found", field="event_id")

    async def _resolve_equipment(self, equipment_ids: Sequence[str]) -> dict[str, EquipmentItem]:
        if len(set(equipment_ids)) != len(equipment_ids):
            raise ValidationError("Equipment ids must not repeat", field="equipment_ids")

        resolved: dict[str, EquipmentItem] = {}
        unknown: list[str] = []
        unschedulable: list[str] = []
        for equipment_id in equipment_ids:
            item = await self.equipment_repo.get(equipment_id)
            if item is None:
                unknown.append(equipment_id)
            elif not item.schedulable:
                unschedulable.append(item.name)
            else:
                resolved[equipment_id] = item

        if unknown:
            raise ValidationError(
                f"Equipment not found: {', '.join(unknown)}", field="equipment_ids"
            )
        if unschedulable:
            raise ValidationError(
                f"Equipment inactive or under maintenance: {', '.join(unschedulable)}",
                field="equipment_ids",
            )
        return resolved

    async def _sync_status(self, equipment_id: str) -> None:
        """``in_use`` while some unreturned record covers the current moment."""
        now = self.clock()
        active = await self.ledger.find(equipment_id=equipment_id, active_only=True)
        held = any(record.holds_at(now) for record in active)
        await self.equipment_repo.set_status(
            equipment_id, EquipmentStatus.IN_USE if held else EquipmentStatus.AVAILABLE
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_for_shift(
        self,
        holder_id: str,
        equipment_ids: Sequence[str],
        window_start: datetime,
        window_end: datetime | None = None,
        event_id: str | None = None,
        shift_ref: str | None = None,
        note: str | None = None,
    ) -> ShiftAssignmentResult:
        """Create one record per equipment id for a single shift.

        Validation problems abort the whole call. A conflict on one id is
        reported in ``errors`` and does not stop the other ids.
        """
        if not equipment_ids:
            raise ValidationError("At least one equipment id is required", field="equipment_ids")
        validate_window(window_start, window_end)
        await self._check_holder(holder_id)
        await self._check_event(event_id)
        items = await self._resolve_equipment(equipment_ids)

        outcomes = await asyncio.gather(
            *(
                self._commit_one(
                    AssignmentRecord(
                        equipment_id=equipment_id,
                        holder_id=holder_id,
                        event_id=event_id,
                        shift_ref=shift_ref,
                        window_start=window_start,
                        window_end=window_end,
                        note=note,
                    ),
                    items[equipment_id],
                )
                for equipment_id in equipment_ids
            )
        )

        result = ShiftAssignmentResult()
        for record, error in outcomes:
            if record is not None:
                result.created.append(record)
            if error is not None:
                result.errors.append(error)
        return result

    async def _commit_one(
        self, record: AssignmentRecord, item: EquipmentItem
    ) -> tuple[AssignmentRecord | None, SlotError | None]:
        try:
            stored = await self.ledger.insert_if_free(record)
        except EquipmentConflict as exc:
            message = await self._describe_conflict(item, exc)
            logger.warning(
                "equipment conflict at commit",
                extra={
                    "equipment_id": item.id,
                    "holder_id": record.holder_id,
                    "conflicting_assignment_id": exc.conflicting_assignment_id,
                },
            )
            self.bus.publish(
                AssignmentConflictDetected(
                    equipment_id=item.id,
                    holder_id=record.holder_id,
                    window_start=record.window_start,
                    window_end=record.window_end,
                    conflicting_assignment_id=exc.conflicting_assignment_id,
                )
            )
            return None, SlotError(
                equipment_id=item.id,
                kind="conflict",
                message=message,
                conflicting_assignment_id=exc.conflicting_assignment_id,
            )

        logger.info(
            "equipment assigned",
            extra={
                "assignment_id": stored.id,
                "equipment_id": stored.equipment_id,
                "holder_id": stored.holder_id,
                "event_id": stored.event_id,
            },
        )
        self.bus.publish(
            AssignmentCreated(
                assignment_id=stored.id,
                equipment_id=stored.equipment_id,
                holder_id=stored.holder_id,
                event_id=stored.event_id,
            )
        )
        await self._sync_status(stored.equipment_id)
        return stored, None

    async def _describe_conflict(self, item: EquipmentItem, exc: EquipmentConflict) -> str:
        clash = None
        if exc.conflicting_assignment_id is not None:
            clash = await self.ledger.get(exc.conflicting_assignment_id)
        if clash is None:
            return f'"{item.name}" is not available for the requested window'

        holder = await self.staff_repo.get(clash.holder_id)
        holder_name = holder.name if holder is not None else clash.holder_id
        start = clash.window_start.astimezone(self.zone)
        if clash.window_end is None:
            span = f"from {start:%d/%m %H:%M} (no end time)"
        else:
            end = clash.window_end.astimezone(self.zone)
            if start.date() == end.date():
                span = f"on {start:%d/%m} from {start:%H:%M} to {end:%H:%M}"
            else:
                span = f"from {start:%d/%m %H:%M} to {end:%d/%m %H:%M}"
        return f'"{item.name}" is assigned to {holder_name} {span}'

    # ------------------------------------------------------------------
    # Return / remove
    # ------------------------------------------------------------------

    async def return_one(
        self,
        assignment_id: str,
        note: str | None = None,
        returned_at: datetime | None = None,
    ) -> AssignmentRecord:
        """Close an active assignment. A second return is an error, not a no-op."""
        when = returned_at or self.clock()
        if when.tzinfo is None:
            raise ValidationError("returned_at must carry a timezone", field="returned_at")

        record = await self.ledger.mark_returned(assignment_id, when, note)
        if record is None:
            existing = await self.ledger.get(assignment_id)
            if existing is None:
                raise NotFoundError("Assignment not found", assignment_id)
            raise NotFoundError("Assignment has already been returned", assignment_id)

        logger.info(
            "equipment returned",
            extra={"assignment_id": record.id, "equipment_id": record.equipment_id},
        )
        self.bus.publish(
            AssignmentReturned(
                assignment_id=record.id,
                equipment_id=record.equipment_id,
                returned_at=when,
            )
        )
        await self._sync_status(record.equipment_id)
        return record

    async def release_event(self, event_id: str) -> list[AssignmentRecord]:
        """Return every active record linked to *event_id*."""
        active = await self.ledger.find(event_id=event_id, active_only=True)
        returned: list[AssignmentRecord] = []
        for record in active:
            try:
                returned.append(await self.return_one(record.id))
            except NotFoundError:
                # Closed by someone else between the read and the write.
                logger.info("assignment already closed", extra={"assignment_id": record.id})
        return returned

    async def delete(self, assignment_id: str) -> AssignmentRecord:
        """Administrative removal; the only path that physically drops a record."""
        removed = await self.ledger.delete(assignment_id)
        if removed is None:
            raise NotFoundError("Assignment not found", assignment_id)
        logger.warning(
            "assignment deleted",
            extra={"assignment_id": removed.id, "equipment_id": removed.equipment_id},
        )
        await self._sync_status(removed.equipment_id)
        return removed

    # ------------------------------------------------------------------
    # Read / edit
    # ------------------------------------------------------------------

    async def get(self, assignment_id: str) -> AssignmentRecord:
        record = await self.ledger.get(assignment_id)
        if record is None:
            raise NotFoundError("Assignment not found", assignment_id)
        return record

    async def list_assignments(
        self,
        equipment_id: str | None = None,
        holder_id: str | None = None,
        event_id: str | None = None,
        active_only: bool = False,
    ) -> list[AssignmentRecord]:
        return await self.ledger.find(
            equipment_id=equipment_id,
            holder_id=holder_id,
            event_id=event_id,
            active_only=active_only,
        )

    async def list_page(
        self,
        page: int = 1,
        limit: int = 10,
        equipment_id: str | None = None,
        holder_id: str | None = None,
        event_id: str | None = None,
        active_only: bool = False,
    ) -> AssignmentPage:
        """One page of matching records, most recent window first."""
        if page < 1:
            raise ValidationError("page must be at least 1", field="page")
        if not 1 <= limit <= 100:
            raise ValidationError("limit must be between 1 and 100", field="limit")

        records = await self.list_assignments(
            equipment_id=equipment_id,
            holder_id=holder_id,
            event_id=event_id,
            active_only=active_only,
        )
        offset = (page - 1) * limit
        return AssignmentPage(
            data=records[offset : offset + limit],
            meta=PageMeta(
                total=len(records),
                page=page,
                limit=limit,
                total_pages=math.ceil(len(records) / limit),
            ),
        )

    async def update(self, assignment_id: str, changes: dict[str, Any]) -> AssignmentRecord:
        """Apply a partial edit to one record.

        *changes* holds only the fields the caller sent; ``event_id``,
        ``window_end`` and ``note`` may be ``None`` to clear them. A new holder
        or event is validated like on create, and an edited window goes back
        through the ledger's overlap check.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be edited: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )
        for required in ("holder_id", "window_start"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} cannot be cleared", field=required)

        record = await self.get(assignment_id)
        if "holder_id" in changes:
            await self._check_holder(changes["holder_id"])
        await self._check_event(changes.get("event_id"))

        updated = record.model_copy(update=changes)
        if "window_start" in changes or "window_end" in changes:
            validate_window(updated.window_start, updated.window_end)

        try:
            stored = await self.ledger.update_if_free(updated)
        except EquipmentConflict as exc:
            item = await self.equipment_repo.get(record.equipment_id)
            message = (
                await self._describe_conflict(item, exc)
                if item is not None
                else exc.message
            )
            raise EquipmentConflict(
                equipment_id=exc.equipment_id,
                start=exc.start,
                end=exc.end,
                conflicting_assignment_id=exc.conflicting_assignment_id,
                message=message,
            ) from exc
        if stored is None:
            raise NotFoundError("Assignment not found", assignment_id)

        changed = sorted(changes)
        logger.info(
            "assignment updated",
            extra={"assignment_id": stored.id, "equipment_id": stored.equipment_id, "changed": changed},
        )
        self.bus.publish(
            AssignmentUpdated(
                assignment_id=stored.id, equipment_id=stored.equipment_id, changed=changed
            )
        )
        await self._sync_status(stored.equipment_id)
        return stored

    # ------------------------------------------------------------------
    # Replace for event
    # ------------------------------------------------------------------

    async def replace_all_for_event(self, event_id: str, days: Sequence[EventDay]) -> BatchResult:
        """Return the event's active equipment, then recreate it from *days*.

        This is close-all then create-many, not a diff: unchanged shifts are
        returned and recreated too. Shift creations run concurrently and a
        failing shift never undoes or blocks the others; nothing already
        committed is rolled back.
        """
        if await self.event_repo.get(event_id) is None:
            raise NotFoundError("Event not found", event_id)

        batch = BatchResult(returned=await self.release_event(event_id))

        jobs = [
            self._create_from_draft(event_id, day.date, index, shift)
            for day in days
            for index, shift in enumerate(day.shifts)
            if shift.equipment.ids()
        ]
        for outcome in await asyncio.gather(*jobs):
            if isinstance(outcome, ShiftFailure):
                batch.failed.append(outcome)
            else:
                batch.succeeded.append(outcome)

        logger.info(
            "event equipment replaced",
            extra={
                "event_id": event_id,
                "returned": len(batch.returned),
                "succeeded": len(batch.succeeded),
                "failed": len(batch.failed),
            },
        )
        self.bus.publish(
            EventEquipmentReplaced(
                event_id=event_id,
                returned_ids=[r.id for r in batch.returned],
                created_ids=[
                    r.id
                    for group in (*batch.succeeded, *batch.failed)
                    for r in group.created
                ],
                failed_shift_refs=[f.shift_ref for f in batch.failed],
            )
        )
        return batch

    async def _create_from_draft(
        self, event_id: str, day: date, index: int, shift: DraftShift
    ) -> ShiftOutcome | ShiftFailure:
        ref = shift_ref_for(day, index)
        try:
            start, end = shift_window(day, shift, self.zone)
            result = await self.create_for_shift(
                holder_id=shift.holder_id,
                equipment_ids=shift.equipment.ids(),
                window_start=start,
                window_end=end,
                event_id=event_id,
                shift_ref=ref,
                note=shift.note,
            )
        except SchedulingError as exc:
            logger.warning(
                "shift equipment not created",
                extra={"event_id": event_id, "shift_ref": ref, "reason": str(exc)},
            )
            return ShiftFailure(
                shift_ref=ref,
                holder_id=shift.holder_id,
                errors=[
                    SlotError(
                        equipment_id=equipment_id,
                        kind="validation",
                        message=str(exc),
                    )
                    for equipment_id in shift.equipment.ids()
                ],
            )

        if result.errors:
            logger.warning(
                "shift equipment partly created",
                extra={
                    "event_id": event_id,
                    "shift_ref": ref,
                    "failed_ids": [e.equipment_id for e in result.errors],
                },
            )
            return ShiftFailure(
                shift_ref=ref,
                holder_id=shift.holder_id,
                errors=result.errors,
                created=result.created,
            )
        return ShiftOutcome(shift_ref=ref, holder_id=shift.holder_id, created=result.created)
