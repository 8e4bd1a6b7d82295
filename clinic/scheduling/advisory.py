import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.db import DatabaseError
from django.utils.translation import gettext as _

from .models import CityAvailability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Advisory:
    """Informational only; never used to block slots or bookings."""
    available: bool
    message: Optional[str] = None
    other_city: Optional[Any] = None

    def as_dict(self):
        return {
            "available": self.available,
            "message": self.message,
            "other_city": str(self.other_city) if self.other_city else None,
        }


def availability_advisory(target_date, city) -> Optional[Advisory]:
    """
    Warn when the provider is not confirmed in ``city`` on ``target_date``.

    Returns None when the lookup itself fails.
    """
    if target_date is None or city is None:
        return None
    try:
        windows = CityAvailability.objects.covering(target_date).select_related("city")
        if windows.filter(city=city).exists():
            return Advisory(available=True)
        elsewhere = windows.exclude(city=city).order_by("date_start", "pk").first()
    except DatabaseError as e:
        logger.error(f"City availability lookup failed for {city} on {target_date}: {e}")
        return None

    day = target_date.strftime("%d/%m/%Y")
    if elsewhere is not None:
        return Advisory(
            available=False,
            message=_("Atenção: em %(date)s o atendimento está confirmado em %(other)s, não em %(city)s.") % {
                "date": day, "other": elsewhere.city, "city": city,
            },
            other_city=elsewhere.city,
        )
    return Advisory(
        available=False,
        message=_("Atenção: não há atendimento confirmado em %(city)s para %(date)s.") % {"city": city, "date": day},
    )
