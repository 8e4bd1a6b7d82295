from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _


class BookingValidationError(ValidationError):
    """A required field is missing or invalid; nothing was written."""


class SlotConflictError(Exception):
    """The requested time overlaps an appointment that already holds the slot."""

    def __init__(self, appointment_date, appointment_time, conflicts=()):
        self.appointment_date = appointment_date
        self.appointment_time = appointment_time
        self.conflicts = list(conflicts)
        super().__init__(
            _("O horário %(time)s de %(date)s não está mais disponível. Escolha outro horário.") % {
                "time": appointment_time.strftime("%H:%M") if appointment_time else "",
                "date": appointment_date.strftime("%d/%m/%Y") if appointment_date else "",
            }
        )
