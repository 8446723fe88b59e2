"""Preset equipment and default times for recurring shift types."""

from __future__ import annotations

from datetime import time

from shiftgear.core.config import Settings, settings as default_settings
from shiftgear.domain.models import (
    DraftShift,
    EquipmentCategory,
    EventDay,
    PresetProfile,
    ShiftEquipment,
    ShiftTimes,
    ShiftType,
)

ALL_SLOTS: tuple[EquipmentCategory, ...] = (
    EquipmentCategory.CAMERA,
    EquipmentCategory.LENS,
    EquipmentCategory.ADAPTER,
    EquipmentCategory.SD_CARD,
)


def apply_preset(profile: PresetProfile | None, shift_type: ShiftType | None) -> ShiftEquipment:
    """Seed a new shift's equipment from the event's preset profile.

    Only typed (recurring) shifts take the preset; the SD card is always left
    empty so it is chosen per shift. Availability is not consulted here.
    """
    if profile is None or shift_type is None:
        return ShiftEquipment()
    return ShiftEquipment(
        camera_id=profile.camera_id,
        lens_id=profile.lens_id,
        adapter_id=profile.adapter_id,
    )


def editable_slots(use_preset: bool) -> tuple[EquipmentCategory, ...]:
    """Slots a user may change on a shift; preset events lock all but the SD card."""
    if use_preset:
        return (EquipmentCategory.SD_CARD,)
    return ALL_SLOTS


def shift_times_for(
    shift_type: ShiftType | None,
    overrides: ShiftTimes | None = None,
    config: Settings = default_settings,
) -> tuple[time, time]:
    """Start and end times a new shift of *shift_type* begins with."""
    overrides = overrides or ShiftTimes()
    if shift_type == ShiftType.MORNING:
        return (
            overrides.morning_start or config.morning_start,
            overrides.morning_end or config.morning_end,
        )
    if shift_type == ShiftType.AFTERNOON:
        return (
            overrides.afternoon_start or config.afternoon_start,
            overrides.afternoon_end or config.afternoon_end,
        )
    return config.custom_shift_start, config.custom_shift_end


def new_draft_shift(
    holder_id: str,
    shift_type: ShiftType | None = None,
    profile: PresetProfile | None = None,
    times: ShiftTimes | None = None,
    config: Settings = default_settings,
) -> DraftShift:
    start, end = shift_times_for(shift_type, times, config)
    return DraftShift(
        holder_id=holder_id,
        start_time=start,
        end_time=end,
        shift_type=shift_type,
        equipment=apply_preset(profile, shift_type),
    )


def upsert_typed_shift(
    day: EventDay,
    shift_type: ShiftType,
    holder_id: str | None,
    profile: PresetProfile | None = None,
    times: ShiftTimes | None = None,
    config: Settings = default_settings,
) -> EventDay:
    """Set who works the *shift_type* shift of *day*.

    Clearing the holder drops the shift. Reassigning an existing shift changes
    only its holder, so edited times, note and equipment survive; only a
    brand-new shift is seeded from the defaults and the preset.
    """
    shifts = list(day.shifts)
    existing = next((i for i, s in enumerate(shifts) if s.shift_type == shift_type), None)

    if not holder_id:
        if existing is not None:
            del shifts[existing]
    elif existing is None:
        shifts.append(new_draft_shift(holder_id, shift_type, profile, times, config))
    else:
        shifts[existing] = shifts[existing].model_copy(update={"holder_id": holder_id})
    return day.model_copy(update={"shifts": tuple(shifts)})
