"""Error types raised by the scheduling core."""

from __future__ import annotations

from datetime import datetime


class SchedulingError(RuntimeError):
    """Base error for equipment scheduling."""


class ValidationError(SchedulingError):
    """Raised when a holder, equipment id, event or window does not check out."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class EquipmentConflict(SchedulingError):
    """Raised when an equipment id is already held for an overlapping window."""

    def __init__(
        self,
        equipment_id: str,
        start: datetime,
        end: datetime | None,
        conflicting_assignment_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.equipment_id = equipment_id
        self.start = start
        self.end = end
        self.conflicting_assignment_id = conflicting_assignment_id
        self.message = message or f"Equipment {equipment_id} is not available for the requested window"
        super().__init__(self.message)


class NotFoundError(SchedulingError):
    """Raised when an assignment is absent or already returned."""

    def __init__(self, message: str, resource_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id
