"""
Bookable times for a date: operating window -> candidate slots -> conflict filter.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from django.conf import settings
from django.db import DatabaseError, connection
from django.utils import timezone

from .slots import BookedInterval, filter_available_slots, format_slot, generate_slots
from .windows import OperatingWindow, load_operating_window

logger = logging.getLogger(__name__)

CONFLICT_DURATION_TOTAL = "total"
CONFLICT_DURATION_PRIMARY = "primary"

# First key of the two-key advisory lock taken per booking date.
DATE_LOCK_NAMESPACE = 4201


@dataclass(frozen=True)
class AvailableTimes:
    window: OperatingWindow
    slots: List = field(default_factory=list)

    def as_dict(self):
        return {
            "slots": [format_slot(slot) for slot in self.slots],
            "closed": self.window.closed,
            "source": self.window.source,
            "interval_minutes": self.window.interval_minutes,
        }


def duration_for(procedures: Sequence, mode: Optional[str] = None) -> int:
    """Minutes occupied by a booking of ``procedures`` (first one is the primary)."""
    if not procedures:
        return 0
    mode = mode or getattr(settings, "BOOKING_CONFLICT_DURATION", CONFLICT_DURATION_TOTAL)
    if mode == CONFLICT_DURATION_PRIMARY:
        return procedures[0].duration_minutes
    return sum(procedure.duration_minutes for procedure in procedures)


def booked_intervals(target_date, exclude_appointment_id=None, lock=False) -> List[BookedInterval]:
    """
    Slots already held on ``target_date``.

    With ``lock`` the rows are selected FOR UPDATE; call it inside a
    transaction.
    """
    from clinic.appointments.models import Appointment

    queryset = Appointment.objects.occupying().on_date(target_date)
    if exclude_appointment_id is not None:
        queryset = queryset.exclude(pk=exclude_appointment_id)
    if lock:
        queryset = queryset.select_for_update()
    rows = queryset.order_by("appointment_time").values_list("pk", "appointment_time", "duration_minutes")
    return [BookedInterval(start_time=t, duration_minutes=d, appointment_id=pk) for pk, t, d in rows]


def lock_date(target_date):
    """
    Serialize bookings of one date until the surrounding transaction ends.

    Row locks only cover appointments that already exist; this also covers
    a date with none yet. PostgreSQL only, other backends serialize writers.
    """
    if connection.vendor != "postgresql":
        return
    with connection.cursor() as cursor:
        cursor.execute("SELECT pg_advisory_xact_lock(%s, %s)", [DATE_LOCK_NAMESPACE, target_date.toordinal()])


def local_now():
    return timezone.localtime() if settings.USE_TZ else timezone.now()


def available_times(target_date, procedures: Sequence, *, exclude_appointment=None, now=None) -> AvailableTimes:
    """
    Bookable start times for ``procedures`` on ``target_date``.

    ``exclude_appointment`` is the appointment being edited: it never
    conflicts with itself and its current time stays selectable on its own
    date.
    """
    window = load_operating_window(target_date)
    candidates = generate_slots(window.start_time, window.end_time, window.interval_minutes)

    exclude_id = exclude_appointment.pk if exclude_appointment is not None else None
    keep_time = None
    if exclude_appointment is not None and exclude_appointment.appointment_date == target_date:
        keep_time = exclude_appointment.appointment_time

    try:
        booked = booked_intervals(target_date, exclude_appointment_id=exclude_id)
    except DatabaseError as e:
        logger.warning(f"Could not read appointments for {target_date}, offering unfiltered slots: {e}")
        booked = []

    slots = filter_available_slots(
        candidates,
        duration_for(procedures),
        booked,
        on_date=target_date,
        now=now or local_now(),
        exclude_appointment_id=exclude_id,
        keep_time=keep_time,
        min_lead_minutes=getattr(settings, "BOOKING_MIN_LEAD_MINUTES", 30),
    )
    logger.debug(f"{len(slots)}/{len(candidates)} slots bookable on {target_date}")
    return AvailableTimes(window=window, slots=slots)
