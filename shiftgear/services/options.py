"""Composing per-slot equipment options for a shift being authored."""

from __future__ import annotations

from datetime import date, tzinfo
from typing import Iterable, Sequence

from shiftgear.domain.models import (
    DraftShift,
    EquipmentCategory,
    EquipmentItem,
    EquipmentOption,
    OptionReason,
    SlotState,
    SlotStatus,
)
from shiftgear.repos.memory import AssignmentLedger, EquipmentRepository
from shiftgear.services.availability import available_ids
from shiftgear.services.conflicts import occupied_by_other_draft_shifts
from shiftgear.services.presets import ALL_SLOTS
from shiftgear.services.windows import shift_window


def option_reason(
    equipment_id: str,
    own_id: str | None,
    available: set[str],
    occupied: frozenset[str],
) -> OptionReason:
    # The shift's own pick always wins so editing never orphans it.
    if equipment_id == own_id:
        return OptionReason.OWN_SELECTION
    if equipment_id not in available:
        return OptionReason.IN_USE
    if equipment_id in occupied:
        return OptionReason.USED_IN_OTHER_SHIFT
    return OptionReason.FREE


_SELECTABLE = (OptionReason.OWN_SELECTION, OptionReason.FREE)


def is_selectable(
    equipment_id: str,
    own_id: str | None,
    available: set[str],
    occupied: frozenset[str],
) -> bool:
    """Own selection, or free in the ledger and not held by an overlapping draft."""
    return option_reason(equipment_id, own_id, available, occupied) in _SELECTABLE


def shift_options(
    category: EquipmentCategory,
    shift: DraftShift,
    items: Sequence[EquipmentItem],
    available: Iterable[str],
    occupied: frozenset[str],
    own_item: EquipmentItem | None = None,
) -> list[EquipmentOption]:
    """Option list for one slot of *shift*, in registry order.

    *own_item* is the currently selected item when it is missing from
    *items* (retired or sent to maintenance since it was picked); it is
    listed first so the selection stays visible.
    """
    available = set(available)
    own_id = shift.equipment.get(category)
    listed = list(items)
    if own_id and own_item is not None and all(item.id != own_id for item in listed):
        listed.insert(0, own_item)

    options = []
    for item in listed:
        reason = option_reason(item.id, own_id, available, occupied)
        options.append(
            EquipmentOption(
                equipment_id=item.id,
                name=item.name,
                serial_number=item.serial_number,
                selectable=reason in _SELECTABLE,
                reason=reason,
            )
        )
    return options


def slot_states(
    shift: DraftShift,
    available_by_category: dict[EquipmentCategory, set[str]],
    occupied: frozenset[str],
) -> list[SlotState]:
    """Report whether each filled slot still holds a usable item.

    A preset id that is already booked elsewhere comes back as
    ``unavailable`` here instead of failing the whole shift.
    """
    states = []
    for category in ALL_SLOTS:
        equipment_id = shift.equipment.get(category)
        if not equipment_id:
            continue
        if equipment_id in occupied:
            status = SlotStatus.USED_IN_OTHER_SHIFT
        elif equipment_id not in available_by_category.get(category, set()):
            status = SlotStatus.UNAVAILABLE
        else:
            status = SlotStatus.OK
        states.append(SlotState(category=category, equipment_id=equipment_id, status=status))
    return states


async def draft_options(
    day: date,
    shifts: Sequence[DraftShift],
    index: int,
    category: EquipmentCategory,
    zone: tzinfo,
    equipment_repo: EquipmentRepository,
    ledger: AssignmentLedger,
    ignore_event_id: str | None = None,
) -> list[EquipmentOption]:
    """Options for one slot of ``shifts[index]`` combining ledger and draft checks."""
    shift = shifts[index]
    start, end = shift_window(day, shift, zone)
    occupied = occupied_by_other_draft_shifts(shifts, index)
    items = await equipment_repo.list_active(category)
    free = await available_ids(
        category, start, end, equipment_repo, ledger, ignore_event_id=ignore_event_id
    )

    own_id = shift.equipment.get(category)
    own_item = await equipment_repo.get(own_id) if own_id else None
    return shift_options(category, shift, items, free, occupied, own_item=own_item)


async def draft_slot_states(
    day: date,
    shifts: Sequence[DraftShift],
    index: int,
    zone: tzinfo,
    equipment_repo: EquipmentRepository,
    ledger: AssignmentLedger,
    ignore_event_id: str | None = None,
) -> list[SlotState]:
    shift = shifts[index]
    start, end = shift_window(day, shift, zone)
    available_by_category = {}
    for category in ALL_SLOTS:
        if shift.equipment.get(category):
            free = await available_ids(
                category, start, end, equipment_repo, ledger, ignore_event_id=ignore_event_id
            )
            available_by_category[category] = set(free)
    return slot_states(shift, available_by_category, occupied_by_other_draft_shifts(shifts, index))
