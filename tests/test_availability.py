"""Tests for the availability calculator."""

from __future__ import annotations

import random
from datetime import timedelta

import pytest

from shiftgear.domain.errors import EquipmentConflict, ValidationError
from shiftgear.domain.models import AssignmentRecord, EquipmentCategory
from shiftgear.services.availability import available_equipment, available_ids

from tests.conftest import at

CAMERA = EquipmentCategory.CAMERA


async def _hold(env, equipment_id: str, start, end, **overrides) -> AssignmentRecord:
    record = AssignmentRecord(
        equipment_id=equipment_id,
        holder_id=overrides.pop("holder_id", "ana"),
        window_start=start,
        window_end=end,
        **overrides,
    )
    return await env.ledger.insert_if_free(record)


async def _ids(env, start, end, category=CAMERA, **kwargs) -> list[str]:
    return await available_ids(category, start, end, env.equipment_repo, env.ledger, **kwargs)


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_registry_order_and_schedulable_only(env):
    """Inactive and maintenance cameras never show up; order is by name."""
    ids = await _ids(env, at(9), at(13))
    assert ids == ["cam-2", "cam-1", "cam-9"]


@pytest.mark.asyncio
async def test_overlapping_record_hides_item(env):
    """Booked 10:00-12:00, a 09:00-13:00 query hides cam-1 while the others stay."""
    await _hold(env, "cam-1", at(10), at(12))
    ids = await _ids(env, at(9), at(13))
    assert "cam-1" not in ids
    assert set(ids) == {"cam-2", "cam-9"}


@pytest.mark.asyncio
async def test_half_open_boundary(env):
    """cam-1 held [10:00, 12:00): excluded for [11:00, 13:00), included for [12:00, 14:00)."""
    await _hold(env, "cam-1", at(10), at(12))
    assert "cam-1" not in await _ids(env, at(11), at(13))
    assert "cam-1" in await _ids(env, at(12), at(14))


@pytest.mark.asyncio
async def test_adjacent_windows_are_free(env):
    await _hold(env, "cam-1", at(8), at(12))
    assert "cam-1" in await _ids(env, at(12), at(16))
    assert "cam-1" in await _ids(env, at(6), at(8))


@pytest.mark.asyncio
async def test_returned_record_frees_item(env):
    await _hold(env, "cam-1", at(10), at(12), returned_at=at(9))
    assert "cam-1" in await _ids(env, at(9), at(13))


@pytest.mark.asyncio
async def test_open_ended_record_blocks_everything_after_start(env):
    await _hold(env, "cam-1", at(10), None)
    assert "cam-1" not in await _ids(env, at(9, day=28), at(10, day=28))
    assert "cam-1" in await _ids(env, at(6), at(10))


@pytest.mark.asyncio
async def test_open_ended_query(env):
    await _hold(env, "cam-1", at(10, day=20), at(12, day=20))
    assert "cam-1" not in await _ids(env, at(9), None)


@pytest.mark.asyncio
async def test_category_is_respected(env):
    await _hold(env, "cam-1", at(10), at(12))
    ids = await _ids(env, at(9), at(13), category=EquipmentCategory.LENS)
    assert ids == ["lens-2", "lens-3"]


@pytest.mark.asyncio
async def test_zero_length_query_returns_everything(env):
    await _hold(env, "cam-1", at(10), at(12))
    assert await _ids(env, at(11), at(11)) == ["cam-2", "cam-1", "cam-9"]


@pytest.mark.asyncio
async def test_reversed_query_is_rejected(env):
    with pytest.raises(ValidationError) as err:
        await _ids(env, at(13), at(9))
    assert err.value.field == "window_end"


@pytest.mark.asyncio
async def test_naive_query_is_rejected(env):
    """Naive timestamps cannot be compared with the ledger's aware windows."""
    await _hold(env, "cam-1", at(10), at(12))
    with pytest.raises(ValidationError) as err:
        await _ids(env, at(9).replace(tzinfo=None), at(13).replace(tzinfo=None))
    assert err.value.field == "window_start"


@pytest.mark.asyncio
async def test_ignore_event_id_skips_that_events_records(env):
    await _hold(env, "cam-1", at(10), at(12), event_id="yearbook")
    await _hold(env, "cam-2", at(10), at(12), event_id="other")
    ids = await _ids(env, at(9), at(13), ignore_event_id="yearbook")
    assert "cam-1" in ids
    assert "cam-2" not in ids


@pytest.mark.asyncio
async def test_returns_full_items(env):
    items = await available_equipment(CAMERA, at(9), at(13), env.equipment_repo, env.ledger)
    assert [item.name for item in items] == ["Canon R5", "Canon R6", "Sony A7 IV"]


# ---------------------------------------------------------------------------
# Property: an item is listed iff no active record on it overlaps the query
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(20))
async def test_available_iff_no_overlapping_active_record(env, seed):
    rng = random.Random(seed)
    cameras = ["cam-1", "cam-2", "cam-9"]
    base = at(0)

    records = []
    for _ in range(rng.randrange(0, 8)):
        start = base + timedelta(hours=rng.randrange(0, 48))
        end = None if rng.random() < 0.15 else start + timedelta(hours=rng.randrange(1, 6))
        returned = at(0, day=1) if rng.random() < 0.3 else None
        try:
            records.append(
                await _hold(env, rng.choice(cameras), start, end, returned_at=returned)
            )
        except EquipmentConflict:
            # The ledger refuses overlaps; only accepted records count.
            continue

    q_start = base + timedelta(hours=rng.randrange(0, 48))
    q_end = q_start + timedelta(hours=rng.randrange(1, 8))
    ids = set(await _ids(env, q_start, q_end))

    for camera in cameras:
        blocked = any(
            r.equipment_id == camera
            and r.returned_at is None
            and r.window_start < q_end
            and (r.window_end is None or q_start < r.window_end)
            for r in records
        )
        assert (camera in ids) is not blocked
