"""Bus subscribers that keep per-equipment timelines."""

from __future__ import annotations

from shiftgear.domain.bus import EventBus
from shiftgear.domain.events import (
    AssignmentConflictDetected,
    AssignmentCreated,
    AssignmentReturned,
    AssignmentUpdated,
    EventEquipmentReplaced,
)
from shiftgear.domain.models import TimelineEntry, TimelineEntryType
from shiftgear.repos.memory import AssignmentLedger, TimelineRepository


class HandlerRegistry:
    """Keeps each item's timeline in step with the ledger."""

    def __init__(
        self,
        bus: EventBus,
        ledger: AssignmentLedger,
        timeline_repo: TimelineRepository,
    ) -> None:
        self.bus = bus
        self.ledger = ledger
        self.timeline_repo = timeline_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(AssignmentCreated, self.on_assignment_created)
        self.bus.subscribe(AssignmentUpdated, self.on_assignment_updated)
        self.bus.subscribe(AssignmentReturned, self.on_assignment_returned)
        self.bus.subscribe(AssignmentConflictDetected, self.on_conflict_detected)
        self.bus.subscribe(EventEquipmentReplaced, self.on_event_replaced)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_assignment_created(self, event: AssignmentCreated) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                equipment_id=event.equipment_id,
                type=TimelineEntryType.ASSIGNED,
                payload={
                    "assignment_id": event.assignment_id,
                    "holder_id": event.holder_id,
                    "event_id": event.event_id,
                },
            )
        )

    def on_assignment_updated(self, event: AssignmentUpdated) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                equipment_id=event.equipment_id,
                type=TimelineEntryType.UPDATED,
                payload={"assignment_id": event.assignment_id, "changed": event.changed},
            )
        )

    def on_assignment_returned(self, event: AssignmentReturned) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                equipment_id=event.equipment_id,
                type=TimelineEntryType.RETURNED,
                payload={
                    "assignment_id": event.assignment_id,
                    "returned_at": event.returned_at.isoformat(),
                },
            )
        )

    def on_conflict_detected(self, event: AssignmentConflictDetected) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                equipment_id=event.equipment_id,
                type=TimelineEntryType.CONFLICT_REJECTED,
                payload={
                    "holder_id": event.holder_id,
                    "window_start": event.window_start.isoformat(),
                    "window_end": event.window_end.isoformat() if event.window_end else None,
                    "conflicting_assignment_id": event.conflicting_assignment_id,
                },
            )
        )

    def on_event_replaced(self, event: EventEquipmentReplaced) -> None:
        # One entry per item touched by the replace, so each timeline shows it.
        touched: dict[str, list[str]] = {}
        for record in self.ledger.all():
            if record.id in event.returned_ids or record.id in event.created_ids:
                touched.setdefault(record.equipment_id, []).append(record.id)
        for equipment_id, assignment_ids in touched.items():
            self.timeline_repo.add(
                TimelineEntry(
                    equipment_id=equipment_id,
                    type=TimelineEntryType.EVENT_REPLACED,
                    payload={
                        "event_id": event.event_id,
                        "assignment_ids": sorted(assignment_ids),
                        "failed_shift_refs": event.failed_shift_refs,
                    },
                )
            )
