"""Overlap tests shared by the ledger, the availability query and draft editing."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, time
from typing import Iterable, Sequence, TypeVar

from shiftgear.domain.models import AssignmentRecord, DraftShift

T = TypeVar("T", datetime, time)


def windows_overlap(start1: T, end1: T | None, start2: T, end2: T | None) -> bool:
    """Half-open overlap test: ``start1 < end2 and start2 < end1``.

    An ``end`` of ``None`` is open-ended and reaches past any start.
    Touching boundaries (``end1 == start2``) do not overlap, and a bounded
    zero-length window never overlaps anything.
    """
    if end1 is not None and end1 <= start1:
        return False
    if end2 is not None and end2 <= start2:
        return False
    return (end2 is None or start1 < end2) and (end1 is None or start2 < end1)


def find_conflicts(
    new_start: datetime,
    new_end: datetime | None,
    existing: Iterable[AssignmentRecord],
) -> list[AssignmentRecord]:
    """Return the active records in *existing* whose window overlaps the given one."""
    return [
        record
        for record in existing
        if record.is_active
        and windows_overlap(new_start, new_end, record.window_start, record.window_end)
    ]


def occupied_by_other_draft_shifts(shifts: Sequence[DraftShift], index: int) -> frozenset[str]:
    """Equipment ids held by any other draft shift whose times overlap shift *index*.

    Only direct pairwise overlap with the target counts; a shift that merely
    overlaps a neighbour of the target contributes nothing.
    """
    if not 0 <= index < len(shifts):
        raise IndexError(f"shift index {index} out of range for {len(shifts)} shifts")

    target = shifts[index]
    occupied: set[str] = set()
    for other_index, other in enumerate(shifts):
        if other_index == index:
            continue
        if windows_overlap(target.start_time, target.end_time, other.start_time, other.end_time):
            occupied.update(other.equipment.ids())
    return frozenset(occupied)


def find_double_bookings(
    records: Iterable[AssignmentRecord],
) -> list[tuple[AssignmentRecord, AssignmentRecord]]:
    """Return every pair of active records on one item whose windows overlap."""
    by_equipment: dict[str, list[AssignmentRecord]] = defaultdict(list)
    for record in records:
        if record.is_active:
            by_equipment[record.equipment_id].append(record)

    pairs: list[tuple[AssignmentRecord, AssignmentRecord]] = []
    for held in by_equipment.values():
        held.sort(key=lambda r: (r.window_start, r.id))
        for i, first in enumerate(held):
            for second in held[i + 1 :]:
                if windows_overlap(
                    first.window_start, first.window_end, second.window_start, second.window_end
                ):
                    pairs.append((first, second))
    return pairs
