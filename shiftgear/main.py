"""HTTP surface of the equipment scheduling service."""

from __future__ import annotations

from datetime import datetime

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.responses import JSONResponse

from shiftgear.core.config import settings
from shiftgear.core.logging_config import setup_logging
from shiftgear.domain.bus import EventBus
from shiftgear.domain.errors import (
    EquipmentConflict,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from shiftgear.domain.handlers import HandlerRegistry
from shiftgear.domain.models import (
    AssignmentPage,
    AssignmentRecord,
    BatchResult,
    CreateAssignmentRequest,
    CreateEventRequest,
    EquipmentCategory,
    EquipmentItem,
    EquipmentOption,
    Event,
    EventDaysRequest,
    OccupiedRequest,
    OptionsRequest,
    PresetRequest,
    ReturnAssignmentRequest,
    ShiftAssignmentResult,
    ShiftEquipment,
    SlotState,
    SlotsRequest,
    TimelineEntry,
    UpdateAssignmentRequest,
)
from shiftgear.repos.memory import (
    AssignmentLedger,
    EquipmentRepository,
    EventRepository,
    StaffRepository,
    TimelineRepository,
)
from shiftgear.services.assignments import AssignmentLifecycle
from shiftgear.services.availability import available_equipment
from shiftgear.services.conflicts import occupied_by_other_draft_shifts
from shiftgear.services.options import draft_options, draft_slot_states
from shiftgear.services.presets import apply_preset

setup_logging()

app = FastAPI(title=settings.app_name)

# ── Singletons (created at import time for simplicity) ────────────────
zone = settings.zone()
event_bus = EventBus()
equipment_repo = EquipmentRepository()
staff_repo = StaffRepository()
event_repo = EventRepository()
ledger = AssignmentLedger(latency_seconds=settings.ledger_latency_seconds)
timeline_repo = TimelineRepository()

handler_registry = HandlerRegistry(bus=event_bus, ledger=ledger, timeline_repo=timeline_repo)

lifecycle = AssignmentLifecycle(
    equipment_repo=equipment_repo,
    staff_repo=staff_repo,
    event_repo=event_repo,
    ledger=ledger,
    bus=event_bus,
    zone=zone,
)


def _localize(value: datetime | None) -> datetime | None:
    """Naive timestamps from clients are wall-clock times in the configured zone."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=zone)


def _http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail={"message": exc.message, "id": exc.resource_id})
    if isinstance(exc, EquipmentConflict):
        return HTTPException(
            status_code=409,
            detail={"message": exc.message, "equipment_id": exc.equipment_id},
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"message": exc.message, "field": exc.field})
    return HTTPException(status_code=400, detail={"message": str(exc)})


# ── Registry ──────────────────────────────────────────────────────────


@app.get("/equipment", response_model=list[EquipmentItem])
async def list_equipment(category: EquipmentCategory | None = None) -> list[EquipmentItem]:
    """Return schedulable equipment, optionally of one category."""
    return await equipment_repo.list_active(category)


@app.get("/equipment/available", response_model=list[EquipmentItem])
async def get_available_equipment(
    category: EquipmentCategory,
    start: datetime,
    end: datetime | None = None,
    ignore_event_id: str | None = None,
) -> list[EquipmentItem]:
    """Equipment of *category* with no active assignment overlapping [start, end)."""
    try:
        return await available_equipment(
            category,
            _localize(start),
            _localize(end),
            equipment_repo,
            ledger,
            ignore_event_id=ignore_event_id,
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.get("/equipment/{equipment_id}", response_model=EquipmentItem)
async def get_equipment(equipment_id: str) -> EquipmentItem:
    item = await equipment_repo.get(equipment_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Equipment not found")
    return item


@app.get("/equipment/{equipment_id}/timeline", response_model=list[TimelineEntry])
async def get_equipment_timeline(equipment_id: str) -> list[TimelineEntry]:
    if await equipment_repo.get(equipment_id) is None:
        raise HTTPException(status_code=404, detail="Equipment not found")
    return timeline_repo.list_for_equipment(equipment_id)


# ── Assignments ───────────────────────────────────────────────────────


@app.get("/assignments", response_model=AssignmentPage)
async def list_assignments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    equipment_id: str | None = None,
    holder_id: str | None = None,
    event_id: str | None = None,
    active_only: bool = False,
) -> AssignmentPage:
    """Paginated records, most recent window first, with total/page meta."""
    return await lifecycle.list_page(
        page=page,
        limit=limit,
        equipment_id=equipment_id,
        holder_id=holder_id,
        event_id=event_id,
        active_only=active_only,
    )


@app.get("/assignments/{assignment_id}", response_model=AssignmentRecord)
async def get_assignment(assignment_id: str) -> AssignmentRecord:
    try:
        return await lifecycle.get(assignment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.patch("/assignments/{assignment_id}", response_model=AssignmentRecord)
async def update_assignment(assignment_id: str, body: UpdateAssignmentRequest) -> AssignmentRecord:
    """Edit holder, event, window or note; only the fields sent are changed."""
    changes = body.model_dump(exclude_unset=True)
    for key in ("window_start", "window_end"):
        if key in changes:
            changes[key] = _localize(changes[key])
    try:
        return await lifecycle.update(assignment_id, changes)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.post(
    "/assignments",
    response_model=ShiftAssignmentResult,
    status_code=status.HTTP_201_CREATED,
)
async def create_assignments(body: CreateAssignmentRequest):
    """Assign several items to one holder for one window.

    201 when every item was assigned, 207 with the per-item breakdown when
    only some were, 409 when none could be assigned because of conflicts.
    """
    try:
        result = await lifecycle.create_for_shift(
            holder_id=body.holder_id,
            equipment_ids=body.equipment_ids,
            window_start=_localize(body.window_start),
            window_end=_localize(body.window_end),
            event_id=body.event_id,
            shift_ref=body.shift_ref,
            note=body.note,
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc

    if result.errors and not result.created:
        return JSONResponse(status_code=409, content=result.model_dump(mode="json"))
    if result.errors:
        return JSONResponse(status_code=207, content=result.model_dump(mode="json"))
    return result


@app.post("/assignments/{assignment_id}/return", response_model=AssignmentRecord)
async def return_assignment(
    assignment_id: str, body: ReturnAssignmentRequest | None = None
) -> AssignmentRecord:
    body = body or ReturnAssignmentRequest()
    try:
        return await lifecycle.return_one(
            assignment_id, note=body.note, returned_at=_localize(body.returned_at)
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.delete("/assignments/{assignment_id}", response_model=AssignmentRecord)
async def delete_assignment(assignment_id: str) -> AssignmentRecord:
    try:
        return await lifecycle.delete(assignment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


# ── Events ────────────────────────────────────────────────────────────


@app.post("/events", response_model=Event, status_code=status.HTTP_201_CREATED)
async def create_event(body: CreateEventRequest) -> Event:
    if body.end_date < body.start_date:
        raise HTTPException(status_code=422, detail="end_date must be equal to or after start_date")
    return event_repo.add(Event(**body.model_dump()))


@app.get("/events/{event_id}", response_model=Event)
async def get_event(event_id: str) -> Event:
    event = await event_repo.get(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@app.put("/events/{event_id}/days", response_model=BatchResult)
async def replace_event_days(event_id: str, body: EventDaysRequest):
    """Return the event's equipment and recreate it from the submitted days.

    200 when every shift's equipment was created, 207 otherwise; the body
    always names each failed shift and why.
    """
    try:
        batch = await lifecycle.replace_all_for_event(event_id, body.days)
    except SchedulingError as exc:
        raise _http_error(exc) from exc
    if batch.partial:
        return JSONResponse(status_code=207, content=batch.model_dump(mode="json"))
    return batch


@app.post("/events/{event_id}/release", response_model=list[AssignmentRecord])
async def release_event_equipment(event_id: str) -> list[AssignmentRecord]:
    if await event_repo.get(event_id) is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return await lifecycle.release_event(event_id)


# ── Drafts (no side effects) ──────────────────────────────────────────


def _check_index(shifts: list, index: int) -> None:
    if index >= len(shifts):
        raise HTTPException(status_code=422, detail=f"index {index} out of range")


@app.post("/drafts/occupied", response_model=list[str])
async def draft_occupied(body: OccupiedRequest) -> list[str]:
    """Equipment held by other draft shifts that overlap shift *index*."""
    _check_index(body.shifts, body.index)
    return sorted(occupied_by_other_draft_shifts(body.shifts, body.index))


@app.post("/drafts/options", response_model=list[EquipmentOption])
async def draft_slot_options(body: OptionsRequest) -> list[EquipmentOption]:
    _check_index(body.shifts, body.index)
    try:
        return await draft_options(
            body.date,
            body.shifts,
            body.index,
            body.category,
            zone,
            equipment_repo,
            ledger,
            ignore_event_id=body.ignore_event_id,
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.post("/drafts/slots", response_model=list[SlotState])
async def draft_slots(body: SlotsRequest) -> list[SlotState]:
    """Whether each filled slot of shift *index* still holds a usable item."""
    _check_index(body.shifts, body.index)
    try:
        return await draft_slot_states(
            body.date,
            body.shifts,
            body.index,
            zone,
            equipment_repo,
            ledger,
            ignore_event_id=body.ignore_event_id,
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.post("/drafts/preset", response_model=ShiftEquipment)
async def draft_preset(body: PresetRequest) -> ShiftEquipment:
    return apply_preset(body.profile, body.shift_type)
