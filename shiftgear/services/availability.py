"""Service answering which equipment of a category is free during a window."""

from __future__ import annotations

from datetime import datetime

from shiftgear.domain.errors import ValidationError
from shiftgear.domain.models import EquipmentCategory, EquipmentItem
from shiftgear.repos.memory import AssignmentLedger, EquipmentRepository
from shiftgear.services.conflicts import find_conflicts


def check_query_window(start: datetime, end: datetime | None) -> None:
    """Reject naive or reversed windows; ``start == end`` is a legal zero-length query."""
    if start.tzinfo is None or (end is not None and end.tzinfo is None):
        raise ValidationError("window timestamps must carry a timezone", field="window_start")
    if end is not None and end < start:
        raise ValidationError("window end must not be before window start", field="window_end")


async def available_equipment(
    category: EquipmentCategory,
    start: datetime,
    end: datetime | None,
    equipment_repo: EquipmentRepository,
    ledger: AssignmentLedger,
    ignore_event_id: str | None = None,
) -> list[EquipmentItem]:
    """Return the schedulable items of *category* with no overlapping active record.

    The result keeps the registry's listing order. Records linked to
    *ignore_event_id* are skipped, which lets an event being re-authored see
    the equipment it is about to hand back.

    This is a point-in-time snapshot; the authoritative check happens again
    inside the ledger's conditional write.
    """
    check_query_window(start, end)

    items = await equipment_repo.list_active(category)
    if not items:
        return []

    active = await ledger.find(active_only=True, equipment_ids={item.id for item in items})
    if ignore_event_id is not None:
        active = [record for record in active if record.event_id != ignore_event_id]

    taken = {record.equipment_id for record in find_conflicts(start, end, active)}
    return [item for item in items if item.id not in taken]


async def available_ids(
    category: EquipmentCategory,
    start: datetime,
    end: datetime | None,
    equipment_repo: EquipmentRepository,
    ledger: AssignmentLedger,
    ignore_event_id: str | None = None,
) -> list[str]:
    items = await available_equipment(
        category, start, end, equipment_repo, ledger, ignore_event_id=ignore_event_id
    )
    return [item.id for item in items]
