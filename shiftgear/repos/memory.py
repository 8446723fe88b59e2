"""In-memory repositories for the equipment registry, staff, events and the ledger.

Every accessor is a coroutine so callers treat each access as an I/O boundary,
exactly as they would against a networked store.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime

from shiftgear.domain.errors import EquipmentConflict
from shiftgear.domain.models import (
    AssignmentRecord,
    EquipmentCategory,
    EquipmentItem,
    EquipmentStatus,
    Event,
    StaffMember,
    TimelineEntry,
)
from shiftgear.services.conflicts import find_conflicts

logger = logging.getLogger(__name__)


class EquipmentRepository:
    """Dict-backed catalog of physical items, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, EquipmentItem] = {}

    def add(self, item: EquipmentItem) -> EquipmentItem:
        self._store[item.id] = item
        return item

    async def get(self, equipment_id: str) -> EquipmentItem | None:
        return self._store.get(equipment_id)

    async def list_active(self, category: EquipmentCategory | None = None) -> list[EquipmentItem]:
        """Return schedulable items, optionally of one category, ordered by name then id."""
        items = [
            item
            for item in self._store.values()
            if item.schedulable and (category is None or item.category == category)
        ]
        return sorted(items, key=lambda item: (item.name, item.id))

    async def set_status(self, equipment_id: str, status: EquipmentStatus) -> EquipmentItem | None:
        """Record *status* on the item; items under maintenance keep that status."""
        item = self._store.get(equipment_id)
        if item is None or item.status == EquipmentStatus.MAINTENANCE or item.status == status:
            return item
        updated = item.model_copy(update={"status": status})
        self._store[equipment_id] = updated
        return updated


class StaffRepository:
    """Dict-backed directory of staff members who may hold equipment."""

    def __init__(self) -> None:
        self._store: dict[str, StaffMember] = {}

    def add(self, member: StaffMember) -> StaffMember:
        self._store[member.id] = member
        return member

    async def get(self, staff_id: str) -> StaffMember | None:
        return self._store.get(staff_id)


class EventRepository:
    """Dict-backed store for Event instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Event] = {}

    def add(self, event: Event) -> Event:
        self._store[event.id] = event
        return event

    async def get(self, event_id: str) -> Event | None:
        return self._store.get(event_id)


class AssignmentLedger:
    """Append-mostly store of assignment records.

    ``insert_if_free`` is the conditional write: the overlap check and the
    insert run under a lock keyed by equipment id, so two writers claiming the
    same item are serialized while writers on different items proceed in
    parallel.
    """

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self._store: dict[str, AssignmentRecord] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._latency = latency_seconds

    async def _round_trip(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)

    async def get(self, assignment_id: str) -> AssignmentRecord | None:
        await self._round_trip()
        return self._store.get(assignment_id)

    async def find(
        self,
        equipment_id: str | None = None,
        holder_id: str | None = None,
        event_id: str | None = None,
        active_only: bool = False,
        equipment_ids: set[str] | None = None,
    ) -> list[AssignmentRecord]:
        """Return matching records, most recent window first."""
        await self._round_trip()
        matches = [
            record
            for record in self._store.values()
            if (equipment_id is None or record.equipment_id == equipment_id)
            and (holder_id is None or record.holder_id == holder_id)
            and (event_id is None or record.event_id == event_id)
            and (equipment_ids is None or record.equipment_id in equipment_ids)
            and (not active_only or record.is_active)
        ]
        return sorted(matches, key=lambda r: (r.window_start, r.id), reverse=True)

    async def _ensure_free(self, record: AssignmentRecord) -> None:
        # Caller holds the lock for record.equipment_id.
        active = await self.find(equipment_id=record.equipment_id, active_only=True)
        others = [existing for existing in active if existing.id != record.id]
        clashes = find_conflicts(record.window_start, record.window_end, others)
        if clashes:
            logger.debug(
                "conditional write refused",
                extra={"equipment_id": record.equipment_id, "clash_id": clashes[0].id},
            )
            raise EquipmentConflict(
                equipment_id=record.equipment_id,
                start=record.window_start,
                end=record.window_end,
                conflicting_assignment_id=clashes[0].id,
            )

    async def insert_if_free(self, record: AssignmentRecord) -> AssignmentRecord:
        """Insert *record* unless an active record on the same item overlaps it."""
        async with self._locks[record.equipment_id]:
            await self._ensure_free(record)
            await self._round_trip()
            self._store[record.id] = record
            return record

    async def update_if_free(self, record: AssignmentRecord) -> AssignmentRecord | None:
        """Replace the stored copy of *record*, re-applying the overlap rule.

        Returns ``None`` when the record no longer exists. An active record is
        checked against every other active record on its item.
        """
        async with self._locks[record.equipment_id]:
            current = self._store.get(record.id)
            if current is None:
                return None
            if not current.is_active and record.is_active:
                # A return that landed first is never undone by an edit.
                record = record.model_copy(update={"returned_at": current.returned_at})
            if record.is_active:
                await self._ensure_free(record)
            await self._round_trip()
            self._store[record.id] = record
            return record

    async def mark_returned(
        self,
        assignment_id: str,
        returned_at: datetime,
        note: str | None = None,
    ) -> AssignmentRecord | None:
        """Close an active record; ``None`` when absent or already returned."""
        record = self._store.get(assignment_id)
        if record is None:
            return None
        async with self._locks[record.equipment_id]:
            await self._round_trip()
            current = self._store.get(assignment_id)
            if current is None or not current.is_active:
                return None
            current.returned_at = returned_at
            if note is not None:
                current.note = note
            return current

    async def delete(self, assignment_id: str) -> AssignmentRecord | None:
        record = self._store.get(assignment_id)
        if record is None:
            return None
        async with self._locks[record.equipment_id]:
            await self._round_trip()
            return self._store.pop(assignment_id, None)

    def all(self) -> list[AssignmentRecord]:
        return list(self._store.values())

    def clear(self) -> None:
        self._store.clear()
        self._locks.clear()


class TimelineRepository:
    """List-backed store of per-equipment timeline entries."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []

    def add(self, entry: TimelineEntry) -> None:
        self._entries.append(entry)

    def list_for_equipment(self, equipment_id: str) -> list[TimelineEntry]:
        return sorted(
            [e for e in self._entries if e.equipment_id == equipment_id],
            key=lambda e: e.timestamp,
        )
