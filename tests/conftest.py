"""Shared fixtures: a fresh registry, ledger and lifecycle per test."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from shiftgear.domain.bus import EventBus
from shiftgear.domain.handlers import HandlerRegistry
from shiftgear.domain.models import (
    EquipmentCategory,
    EquipmentItem,
    EquipmentStatus,
    Event,
    StaffMember,
)
from shiftgear.repos.memory import (
    AssignmentLedger,
    EquipmentRepository,
    EventRepository,
    StaffRepository,
    TimelineRepository,
)
from shiftgear.services.assignments import AssignmentLifecycle

NOW = datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: int = 5) -> datetime:
    """A UTC timestamp on March *day* 2026."""
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


class Env:
    pass


def build_env(latency_seconds: float = 0.0) -> Env:
    e = Env()
    e.bus = EventBus()
    e.equipment_repo = EquipmentRepository()
    e.staff_repo = StaffRepository()
    e.event_repo = EventRepository()
    e.ledger = AssignmentLedger(latency_seconds=latency_seconds)
    e.timeline_repo = TimelineRepository()
    e.registry = HandlerRegistry(bus=e.bus, ledger=e.ledger, timeline_repo=e.timeline_repo)
    e.lifecycle = AssignmentLifecycle(
        equipment_repo=e.equipment_repo,
        staff_repo=e.staff_repo,
        event_repo=e.event_repo,
        ledger=e.ledger,
        bus=e.bus,
        zone=timezone.utc,
        clock=lambda: NOW,
    )

    def item(item_id: str, category: EquipmentCategory, **overrides) -> EquipmentItem:
        return e.equipment_repo.add(
            EquipmentItem(id=item_id, name=overrides.pop("name", item_id), category=category, **overrides)
        )

    item("cam-1", EquipmentCategory.CAMERA, name="Canon R6")
    item("cam-2", EquipmentCategory.CAMERA, name="Canon R5")
    item("cam-9", EquipmentCategory.CAMERA, name="Sony A7 IV")
    item("cam-old", EquipmentCategory.CAMERA, name="Canon 5D", is_active=False)
    item("cam-fix", EquipmentCategory.CAMERA, name="Nikon Z6", status=EquipmentStatus.MAINTENANCE)
    item("lens-2", EquipmentCategory.LENS, name="RF 24-70")
    item("lens-3", EquipmentCategory.LENS, name="RF 70-200")
    item("adp-1", EquipmentCategory.ADAPTER, name="EF-RF adapter")
    item("sd-1", EquipmentCategory.SD_CARD, name="SD 128GB #1")
    item("sd-2", EquipmentCategory.SD_CARD, name="SD 128GB #2")

    e.staff_repo.add(StaffMember(id="ana", name="Ana"))
    e.staff_repo.add(StaffMember(id="luis", name="Luis"))
    e.staff_repo.add(StaffMember(id="marta", name="Marta"))
    e.staff_repo.add(StaffMember(id="gone", name="Former staff", is_active=False))

    e.event_repo.add(
        Event(
            id="yearbook",
            name="Yearbook shoot",
            start_date=at(0).date(),
            end_date=at(0, day=7).date(),
        )
    )
    return e


@pytest.fixture()
def env() -> Env:
    """Fresh bus + repos + lifecycle for each test."""
    return build_env()
