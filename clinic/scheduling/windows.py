"""
Operating window resolution.

Combines the default weekly hours with date-specific exceptions. Closures
and non-working weekdays do not block booking by default: the date is
flagged closed and a basic window is still offered.
"""
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from django.conf import settings as django_settings
from django.db import DatabaseError

logger = logging.getLogger(__name__)

SOURCE_SETTINGS = "settings"
SOURCE_EXCEPTION = "exception"
SOURCE_CLOSED_FALLBACK = "closed_fallback"
SOURCE_DAY_OFF_FALLBACK = "day_off_fallback"
SOURCE_DEFAULT_FALLBACK = "default_fallback"

# Offered on closed dates and days off when booking is still allowed.
BASIC_START = datetime.time(8, 0)
BASIC_END = datetime.time(17, 0)
BASIC_INTERVAL = 60

# Used when no schedule configuration can be read at all.
DEFAULT_START = datetime.time(8, 0)
DEFAULT_END = datetime.time(18, 0)
DEFAULT_INTERVAL = 30


@dataclass(frozen=True)
class OperatingWindow:
    start_time: datetime.time
    end_time: datetime.time
    interval_minutes: int
    closed: bool = False
    source: str = SOURCE_SETTINGS
    exception: Optional[Any] = None

    @property
    def is_fallback(self) -> bool:
        return self.source in (SOURCE_CLOSED_FALLBACK, SOURCE_DAY_OFF_FALLBACK, SOURCE_DEFAULT_FALLBACK)

    @property
    def is_empty(self) -> bool:
        return self.start_time >= self.end_time or self.interval_minutes <= 0


def default_window() -> OperatingWindow:
    return OperatingWindow(DEFAULT_START, DEFAULT_END, DEFAULT_INTERVAL, source=SOURCE_DEFAULT_FALLBACK)


def _basic_window(source, exception=None, allow=True) -> OperatingWindow:
    if not allow:
        return OperatingWindow(BASIC_START, BASIC_START, 0, closed=True, source=source, exception=exception)
    return OperatingWindow(BASIC_START, BASIC_END, BASIC_INTERVAL, closed=True, source=source, exception=exception)


def _exception_sort_key(exception):
    created = getattr(exception, "created_at", None)
    return (
        exception.date_start,
        created is None,
        created or datetime.datetime.min,
        getattr(exception, "pk", None) or 0,
    )


def has_custom_hours(exception) -> bool:
    return any(
        value is not None
        for value in (exception.custom_start_time, exception.custom_end_time, exception.custom_interval_minutes)
    )


def covering_exceptions(target_date, exceptions: Iterable[Any]):
    """Exceptions covering the date, earliest ``date_start`` first."""
    covering = [
        exc for exc in exceptions
        if exc.date_start <= target_date <= (exc.date_end or exc.date_start)
    ]
    return sorted(covering, key=_exception_sort_key)


def resolve_operating_window(
    target_date: datetime.date,
    schedule_settings,
    exceptions: Iterable[Any] = (),
    *,
    allow_booking_when_closed: bool = True,
) -> OperatingWindow:
    """
    Work out the effective hours for ``target_date``.

    ``schedule_settings`` may be None, in which case the hardcoded default
    window is returned. When several exceptions cover the date the earliest
    one (by ``date_start``) that sets custom hours supplies them; any closed
    exception closes the date. An exception that only records a reason
    leaves the weekly rules in place.
    """
    if schedule_settings is None:
        return default_window()

    covering = covering_exceptions(target_date, exceptions)

    closing = next((exc for exc in covering if exc.is_closed), None)
    if closing is not None:
        return _basic_window(SOURCE_CLOSED_FALLBACK, closing, allow_booking_when_closed)

    exc = next((exc for exc in covering if has_custom_hours(exc)), None)
    if exc is not None:
        return OperatingWindow(
            start_time=exc.custom_start_time or schedule_settings.start_time,
            end_time=exc.custom_end_time or schedule_settings.end_time,
            interval_minutes=exc.custom_interval_minutes or schedule_settings.interval_minutes,
            source=SOURCE_EXCEPTION,
            exception=exc,
        )

    if not schedule_settings.is_day_available(target_date):
        return _basic_window(SOURCE_DAY_OFF_FALLBACK, allow=allow_booking_when_closed)

    return OperatingWindow(
        start_time=schedule_settings.start_time,
        end_time=schedule_settings.end_time,
        interval_minutes=schedule_settings.interval_minutes,
    )


def load_operating_window(target_date, *, allow_booking_when_closed=None) -> OperatingWindow:
    """Fetch configuration once and resolve it; store failures degrade to the default window."""
    from .models import ScheduleException, ScheduleSettings

    if allow_booking_when_closed is None:
        allow_booking_when_closed = getattr(django_settings, "BOOKING_ALLOW_WHEN_CLOSED", True)

    try:
        schedule_settings = ScheduleSettings.get_active()
        exceptions = list(ScheduleException.objects.covering(target_date)) if schedule_settings else []
    except DatabaseError as e:
        logger.warning(f"Schedule configuration unavailable for {target_date}, using default window: {e}")
        return default_window()

    if schedule_settings is None:
        logger.warning(f"No active schedule settings, using default window for {target_date}")

    window = resolve_operating_window(
        target_date,
        schedule_settings,
        exceptions,
        allow_booking_when_closed=allow_booking_when_closed,
    )
    if window.closed:
        logger.info(f"{target_date} is closed ({window.source}); offering {window.start_time}-{window.end_time}")
    return window
