"""
Slot generation and conflict filtering.

Everything here is a pure function of its arguments so the same inputs
always give the same slots. Times are handled as minutes since midnight.
"""
import datetime
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class BookedInterval:
    start_time: datetime.time
    duration_minutes: int
    appointment_id: Optional[int] = None

    @property
    def start(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end(self) -> int:
        return self.start + max(self.duration_minutes, 0)


def to_minutes(value: datetime.time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> datetime.time:
    return datetime.time(minutes // 60, minutes % 60)


def format_slot(value: datetime.time) -> str:
    return value.strftime("%H:%M")


def parse_slot(value: str) -> datetime.time:
    return datetime.datetime.strptime(value.strip()[:5], "%H:%M").time()


def generate_slots(start_time: datetime.time, end_time: datetime.time, interval_minutes: int) -> List[datetime.time]:
    """Start times from ``start_time`` (inclusive) up to but excluding ``end_time``."""
    if interval_minutes is None or interval_minutes <= 0:
        return []
    start, end = to_minutes(start_time), to_minutes(end_time)
    if start >= end:
        return []
    return [from_minutes(minute) for minute in range(start, end, interval_minutes)]


def overlaps(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    """Half-open intervals [a, a+da) and [b, b+db) share at least one minute."""
    return start_a < start_b + duration_b and start_b < start_a + duration_a


def find_conflicts(
    start_time: datetime.time,
    duration_minutes: int,
    booked: Iterable[BookedInterval],
    exclude_appointment_id: Optional[int] = None,
) -> List[BookedInterval]:
    start = to_minutes(start_time)
    return [
        interval for interval in booked
        if not (exclude_appointment_id is not None and interval.appointment_id == exclude_appointment_id)
        and overlaps(start, duration_minutes, interval.start, interval.duration_minutes)
    ]


def filter_available_slots(
    slots: Sequence[datetime.time],
    duration_minutes: int,
    booked: Iterable[BookedInterval],
    *,
    on_date: datetime.date,
    now: Optional[datetime.datetime] = None,
    exclude_appointment_id: Optional[int] = None,
    keep_time: Optional[datetime.time] = None,
    min_lead_minutes: int = 30,
) -> List[datetime.time]:
    """
    Drop slots that collide with a booked interval or fall too close to now.

    ``now`` must be a naive or local datetime on the clinic's clock. Slots on
    today's date at or before now + ``min_lead_minutes`` are removed.
    ``keep_time`` is the edited appointment's own time, which stays
    selectable whatever the filters say.
    """
    booked = [
        interval for interval in booked
        if exclude_appointment_id is None or interval.appointment_id != exclude_appointment_id
    ]

    cutoff = None
    if now is not None and now.date() == on_date:
        # seconds since midnight
        cutoff = now.hour * 3600 + now.minute * 60 + now.second + min_lead_minutes * 60

    available = []
    for slot in slots:
        start = to_minutes(slot)
        if cutoff is not None and start * 60 <= cutoff:
            continue
        if any(overlaps(start, duration_minutes, interval.start, interval.duration_minutes) for interval in booked):
            continue
        available.append(slot)

    if keep_time is not None and keep_time not in available:
        available.append(keep_time)
    return sorted(set(available))
