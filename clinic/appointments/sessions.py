from dataclasses import dataclass

from .models import Appointment


@dataclass(frozen=True)
class SessionAssignment:
    session_number: int
    total_sessions: int

    @property
    def is_package(self):
        return self.total_sessions > 1

    @property
    def is_first_session(self):
        return self.session_number == 1

    @property
    def label(self):
        return f"{self.session_number}/{self.total_sessions}" if self.is_package else ""


SINGLE_SESSION = SessionAssignment(1, 1)


def prior_sessions(client, procedure):
    """The client's non-canceled appointments for ``procedure``, oldest first."""
    return (
        Appointment.objects.active()
        .for_procedure(client, procedure)
        .order_by("appointment_date", "appointment_time", "created_at")
    )


def assign_session(client, procedure) -> SessionAssignment:
    """
    Session number for a new booking of ``procedure``.

    Numbers follow booking order: canceling an earlier session does not shift
    the ones booked after it.
    """
    if procedure.sessions_required <= 1:
        return SINGLE_SESSION
    count = prior_sessions(client, procedure).count()
    return SessionAssignment(session_number=count + 1, total_sessions=procedure.sessions_required)
