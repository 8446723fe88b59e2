"""Domain events emitted by the assignment lifecycle."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AssignmentCreated(BaseModel):
    """Fired when an assignment record is committed to the ledger."""

    assignment_id: str
    equipment_id: str
    holder_id: str
    event_id: str | None = None


class AssignmentReturned(BaseModel):
    """Fired when an active assignment is closed."""

    assignment_id: str
    equipment_id: str
    returned_at: datetime


class AssignmentConflictDetected(BaseModel):
    """Fired when a commit is refused because the equipment is already held."""

    equipment_id: str
    holder_id: str
    window_start: datetime
    window_end: datetime | None = None
    conflicting_assignment_id: str | None = None


class EventEquipmentReplaced(BaseModel):
    """Fired after an event's equipment has been returned and recreated."""

    event_id: str
    returned_ids: list[str]
    created_ids: list[str]
    failed_shift_refs: list[str]


class AssignmentUpdated(BaseModel):
    """Fired when an existing record's holder, event, window or note is edited."""

    assignment_id: str
    equipment_id: str
    changed: list[str]
