from datetime import datetime, timedelta
from types import SimpleNamespace
import pytest

from geata_core.errors import MalformedInputError
from geata_core.evaluator import (
    Slot,
    is_schedule_active,
    is_slot_active,
    normalize_days,
    normalize_hhmm,
    weekday_of,
)


def _schedule(*slots):
    return SimpleNamespace(slots=list(slots))


def test_slot_bounds_are_inclusive():
    slot = Slot(start="09:00", end="17:00")
    assert is_slot_active(slot, datetime(2024, 1, 1, 9, 0))
    assert is_slot_active(slot, datetime(2024, 1, 1, 17, 0))
    assert not is_slot_active(slot, datetime(2024, 1, 1, 8, 59))
    assert not is_slot_active(slot, datetime(2024, 1, 1, 17, 1))


def test_seconds_within_end_minute_still_match():
    slot = Slot(start="09:00", end="17:00")
    assert is_slot_active(slot, datetime(2024, 1, 1, 17, 0, 59))


def test_weekday_restricted_slot_never_matches_other_days():
    slot = Slot(start="00:00", end="23:59", days_of_week=(1, 3, 5))
    tuesday = datetime(2024, 6, 11)
    for minutes in range(0, 24 * 60, 7):
        assert not is_slot_active(slot, tuesday + timedelta(minutes=minutes))
    assert is_slot_active(slot, datetime(2024, 6, 10, 12, 0))  # Monday


def test_weekday_numbering_starts_on_sunday():
    assert weekday_of(datetime(2024, 6, 9)) == 0  # Sunday
    assert weekday_of(datetime(2024, 6, 10)) == 1  # Monday
    assert weekday_of(datetime(2024, 6, 8)) == 6  # Saturday


def test_empty_schedule_denies_every_instant():
    empty = _schedule()
    start = datetime(2024, 1, 1)
    for hours in range(0, 24 * 7, 5):
        assert not is_schedule_active(empty, start + timedelta(hours=hours))


def test_schedule_is_active_when_any_slot_matches():
    sched = _schedule(
        Slot(start="06:00", end="07:00"),
        Slot(start="18:00", end="19:30", days_of_week=(6,)),
    )
    assert is_schedule_active(sched, datetime(2024, 6, 10, 6, 30))
    assert is_schedule_active(sched, datetime(2024, 6, 8, 19, 30))  # Saturday
    assert not is_schedule_active(sched, datetime(2024, 6, 10, 19, 0))


def test_normalize_hhmm_pads_and_rejects_garbage():
    assert normalize_hhmm("9:05") == "09:05"
    assert normalize_hhmm("23:59") == "23:59"
    for bad in ("24:00", "12:60", "noon", "", None, "1200"):
        with pytest.raises(MalformedInputError):
            normalize_hhmm(bad)


def test_normalize_days_dedupes_and_validates():
    assert normalize_days([5, 1, 1, 3]) == [1, 3, 5]
    assert normalize_days(None) == []
    with pytest.raises(MalformedInputError):
        normalize_days([7])
