"""Domain models for equipment scheduling."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EquipmentCategory(StrEnum):
    CAMERA = "camera"
    LENS = "lens"
    ADAPTER = "adapter"
    SD_CARD = "sd_card"


class EquipmentStatus(StrEnum):
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"


class ShiftType(StrEnum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class OptionReason(StrEnum):
    OWN_SELECTION = "own_selection"
    FREE = "free"
    IN_USE = "in_use"
    USED_IN_OTHER_SHIFT = "used_in_other_shift"


class SlotStatus(StrEnum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    USED_IN_OTHER_SHIFT = "used_in_other_shift"


class TimelineEntryType(StrEnum):
    ASSIGNED = "assigned"
    UPDATED = "updated"
    RETURNED = "returned"
    CONFLICT_REJECTED = "conflict_rejected"
    EVENT_REPLACED = "event_replaced"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class EquipmentItem(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    category: EquipmentCategory
    status: EquipmentStatus = EquipmentStatus.AVAILABLE
    serial_number: str | None = None
    is_active: bool = True

    @property
    def schedulable(self) -> bool:
        return self.is_active and self.status != EquipmentStatus.MAINTENANCE


class StaffMember(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    is_active: bool = True


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class AssignmentRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    equipment_id: str
    holder_id: str
    event_id: str | None = None
    shift_ref: str | None = None
    window_start: datetime
    # None means open-ended
    window_end: datetime | None = None
    note: str | None = None
    returned_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.returned_at is None

    def holds_at(self, moment: datetime) -> bool:
        """True while unreturned and *moment* falls inside the window."""
        return (
            self.is_active
            and self.window_start <= moment
            and (self.window_end is None or moment < self.window_end)
        )


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class AssignmentPage(BaseModel):
    data: list[AssignmentRecord] = Field(default_factory=list)
    meta: PageMeta


class SlotError(BaseModel):
    """Why one equipment id of a shift could not be committed."""

    equipment_id: str
    kind: str
    message: str
    conflicting_assignment_id: str | None = None


class ShiftAssignmentResult(BaseModel):
    created: list[AssignmentRecord] = Field(default_factory=list)
    errors: list[SlotError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ShiftOutcome(BaseModel):
    shift_ref: str
    holder_id: str
    created: list[AssignmentRecord] = Field(default_factory=list)


class ShiftFailure(BaseModel):
    shift_ref: str
    holder_id: str
    errors: list[SlotError] = Field(default_factory=list)
    # Records that did get committed before the failure, for caller-side compensation
    created: list[AssignmentRecord] = Field(default_factory=list)


class BatchResult(BaseModel):
    returned: list[AssignmentRecord] = Field(default_factory=list)
    succeeded: list[ShiftOutcome] = Field(default_factory=list)
    failed: list[ShiftFailure] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed)


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    equipment_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Drafts and events
# ---------------------------------------------------------------------------


class ShiftEquipment(BaseModel):
    model_config = ConfigDict(frozen=True)

    camera_id: str | None = None
    lens_id: str | None = None
    adapter_id: str | None = None
    sd_card_id: str | None = None

    def ids(self) -> list[str]:
        """Return the filled slots' ids in camera, lens, adapter, SD order."""
        return [
            value
            for value in (self.camera_id, self.lens_id, self.adapter_id, self.sd_card_id)
            if value
        ]

    def get(self, category: EquipmentCategory) -> str | None:
        return getattr(self, SLOT_FIELDS[category])


SLOT_FIELDS: dict[EquipmentCategory, str] = {
    EquipmentCategory.CAMERA: "camera_id",
    EquipmentCategory.LENS: "lens_id",
    EquipmentCategory.ADAPTER: "adapter_id",
    EquipmentCategory.SD_CARD: "sd_card_id",
}


class DraftShift(BaseModel):
    model_config = ConfigDict(frozen=True)

    holder_id: str
    start_time: time
    end_time: time
    shift_type: ShiftType | None = None
    note: str | None = None
    equipment: ShiftEquipment = Field(default_factory=ShiftEquipment)


class EventDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    note: str | None = None
    shifts: tuple[DraftShift, ...] = ()


class PresetProfile(BaseModel):
    """Event-level default camera/lens/adapter. SD cards are never preset."""

    model_config = ConfigDict(frozen=True)

    camera_id: str | None = None
    lens_id: str | None = None
    adapter_id: str | None = None


class ShiftTimes(BaseModel):
    morning_start: time | None = None
    morning_end: time | None = None
    afternoon_start: time | None = None
    afternoon_end: time | None = None


class Event(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    start_date: date
    end_date: date
    use_preset_equipment: bool = False
    preset: PresetProfile | None = None
    shift_times: ShiftTimes = Field(default_factory=ShiftTimes)
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> Event:
        if self.end_date < self.start_date:
            raise ValueError("end_date must be equal to or after start_date")
        return self


class EquipmentOption(BaseModel):
    equipment_id: str
    name: str
    serial_number: str | None = None
    selectable: bool
    reason: OptionReason


class SlotState(BaseModel):
    category: EquipmentCategory
    equipment_id: str
    status: SlotStatus


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class CreateAssignmentRequest(BaseModel):
    holder_id: str
    equipment_ids: list[str] = Field(min_length=1)
    event_id: str | None = None
    shift_ref: str | None = None
    window_start: datetime
    window_end: datetime | None = None
    note: str | None = None


class UpdateAssignmentRequest(BaseModel):
    """Partial edit of a record; only fields present in the payload change.

    ``event_id``, ``window_end`` and ``note`` may be sent as null to clear them.
    """

    holder_id: str | None = None
    event_id: str | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None
    note: str | None = None


class ReturnAssignmentRequest(BaseModel):
    note: str | None = None
    returned_at: datetime | None = None


class CreateEventRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    start_date: date
    end_date: date
    use_preset_equipment: bool = False
    preset: PresetProfile | None = None
    shift_times: ShiftTimes = Field(default_factory=ShiftTimes)


class EventDaysRequest(BaseModel):
    days: list[EventDay] = Field(default_factory=list)


class OccupiedRequest(BaseModel):
    shifts: list[DraftShift]
    index: int = Field(ge=0)


class SlotsRequest(BaseModel):
    date: date
    shifts: list[DraftShift]
    index: int = Field(ge=0)
    ignore_event_id: str | None = None


class OptionsRequest(SlotsRequest):
    category: EquipmentCategory


class PresetRequest(BaseModel):
    profile: PresetProfile | None = None
    shift_type: ShiftType | None = None
