"""Turning day-relative shift times into absolute assignment windows."""

from __future__ import annotations

from datetime import date, datetime, tzinfo

from shiftgear.domain.errors import ValidationError
from shiftgear.domain.models import DraftShift


def validate_window(start: datetime, end: datetime | None) -> None:
    """Bounded commit windows must be non-empty; ``None`` is open-ended."""
    if start.tzinfo is None or (end is not None and end.tzinfo is None):
        raise ValidationError("window timestamps must carry a timezone", field="window_start")
    if end is not None and start >= end:
        raise ValidationError("window start must be before window end", field="window_end")


def shift_window(day: date, shift: DraftShift, zone: tzinfo) -> tuple[datetime, datetime]:
    """Anchor *shift*'s wall-clock times on *day* in *zone*.

    Shifts are same-day; an end at or before the start is rejected rather
    than rolled over to the next day.
    """
    start = datetime.combine(day, shift.start_time, tzinfo=zone)
    end = datetime.combine(day, shift.end_time, tzinfo=zone)
    if start >= end:
        raise ValidationError(
            f"shift on {day.isoformat()} ends at {shift.end_time:%H:%M}, "
            f"not after its start {shift.start_time:%H:%M}",
            field="end_time",
        )
    return start, end
