"""
Booking composer: validates a booking request, prices it, numbers the
session and writes the appointment with its procedure lines and selected
specifications in one transaction.

Slots are not reserved while the user is choosing. The conflict check is
repeated at submission under a per-date lock, and the store's unique
constraint on occupied slots is the last line for identical start times.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import partial
from typing import Any, FrozenSet, List, Optional, Sequence, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils.translation import gettext as _

from clinic.catalog.discounts import BookingQuote, quote_booking, to_decimal
from clinic.scheduling.services import booked_intervals, duration_for, lock_date
from clinic.scheduling.slots import find_conflicts

from .exceptions import BookingValidationError, SlotConflictError
from .models import Appointment, AppointmentProcedure, AppointmentSpecification
from .sessions import SINGLE_SESSION, assign_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingLine:
    procedure: Any
    specifications: Tuple[Any, ...] = ()
    custom_price: Optional[Decimal] = None


@dataclass
class BookingRequest:
    client: Any
    lines: List[BookingLine]
    appointment_date: Any
    appointment_time: Any
    city: Any
    professional: Any = None
    notes: str = ""
    created_by: Any = None

    @property
    def procedures(self):
        return [line.procedure for line in self.lines]


@dataclass(frozen=True)
class BookingSnapshot:
    """Comparable view of the fields an edit can change."""
    client_id: Any
    appointment_date: Any
    appointment_time: Any
    city_id: Any
    professional_id: Any
    notes: str
    lines: Tuple[Tuple[Any, Optional[Decimal], FrozenSet[Any]], ...] = field(default_factory=tuple)

    @classmethod
    def from_request(cls, request: BookingRequest):
        return cls(
            client_id=getattr(request.client, "pk", None),
            appointment_date=request.appointment_date,
            appointment_time=request.appointment_time,
            city_id=getattr(request.city, "pk", None),
            professional_id=getattr(request.professional, "pk", None),
            notes=(request.notes or "").strip(),
            lines=tuple(
                (
                    line.procedure.pk,
                    to_decimal(line.custom_price) if line.custom_price is not None else None,
                    frozenset(spec.pk for spec in line.specifications),
                )
                for line in request.lines
            ),
        )

    @classmethod
    def from_appointment(cls, appointment: Appointment):
        lines = appointment.lines.order_by("order_index").prefetch_related("specifications")
        return cls(
            client_id=appointment.client_id,
            appointment_date=appointment.appointment_date,
            appointment_time=appointment.appointment_time,
            city_id=appointment.city_id,
            professional_id=appointment.professional_id,
            notes=(appointment.notes or "").strip(),
            lines=tuple(
                (
                    line.procedure_id,
                    line.custom_price,
                    frozenset(spec.specification_id for spec in line.specifications.all()),
                )
                for line in lines
            ),
        )


def _notify_after_commit(appointment_id, action):
    from clinic.notifications.dispatch import notify_booking

    notify_booking(appointment_id, action=action)


def _discard_reminders(appointment_id):
    """Drop reminders timed for the old slot; the scheduler queues new ones."""
    from clinic.notifications.dispatch import discard_pending_reminders, revoke_tasks

    task_ids = discard_pending_reminders(appointment_id)
    if task_ids:
        transaction.on_commit(partial(revoke_tasks, task_ids))


class BookingComposer:
    def __init__(self, require_professional=None, discount_scope=None, conflict_duration=None):
        self.require_professional = (
            getattr(settings, "BOOKING_REQUIRE_PROFESSIONAL", False)
            if require_professional is None else require_professional
        )
        self.discount_scope = discount_scope or getattr(settings, "BOOKING_DISCOUNT_SCOPE", "procedure")
        self.conflict_duration = conflict_duration or getattr(settings, "BOOKING_CONFLICT_DURATION", "total")

    # ---------- validation ----------

    def validate(self, request: BookingRequest, original: Optional[BookingSnapshot] = None):
        """Raise BookingValidationError for the first rule the request breaks."""
        if not request.lines:
            raise BookingValidationError(_("Selecione pelo menos um procedimento."), code="no_procedures")

        if request.appointment_date is None:
            raise BookingValidationError(_("Informe a data do agendamento."), code="missing_date")
        if request.appointment_time is None:
            raise BookingValidationError(_("Informe o horário do agendamento."), code="missing_time")
        if request.city is None:
            raise BookingValidationError(_("Selecione a cidade."), code="missing_city")

        if self.require_professional and request.professional is None:
            raise BookingValidationError(_("Selecione o profissional."), code="missing_professional")

        for line in request.lines:
            procedure = line.procedure
            if procedure.requires_specifications and not line.specifications:
                raise BookingValidationError(
                    _("Selecione pelo menos uma especificação para %(procedure)s.") % {"procedure": procedure.name},
                    code="missing_specifications",
                )
            for spec in line.specifications:
                if spec.procedure_id != procedure.pk:
                    raise BookingValidationError(
                        _("A especificação %(spec)s não pertence a %(procedure)s.") % {
                            "spec": spec.name, "procedure": procedure.name,
                        },
                        code="invalid_specification",
                    )
            if line.custom_price is not None and to_decimal(line.custom_price) < 0:
                raise BookingValidationError(_("O preço personalizado não pode ser negativo."), code="invalid_price")

        if original is not None and BookingSnapshot.from_request(request) == original:
            raise BookingValidationError(_("Nenhuma alteração foi feita."), code="no_changes")

    # ---------- pricing & duration ----------

    def quote(self, request: BookingRequest) -> BookingQuote:
        return quote_booking(request.lines, scope=self.discount_scope)

    def duration_for(self, procedures: Sequence) -> int:
        return duration_for(procedures, self.conflict_duration)

    def session_for(self, request: BookingRequest):
        """Sessions are tracked for the first package procedure in the booking."""
        package = next((p for p in request.procedures if p.sessions_required > 1), None)
        if package is None:
            return SINGLE_SESSION
        return assign_session(request.client, package)

    def _check_slot(self, appointment_date, appointment_time, duration, exclude_id=None):
        lock_date(appointment_date)
        booked = booked_intervals(appointment_date, exclude_appointment_id=exclude_id, lock=True)
        conflicts = find_conflicts(appointment_time, duration, booked, exclude_appointment_id=exclude_id)
        if conflicts:
            logger.info(
                f"Slot conflict on {appointment_date} {appointment_time}: "
                f"{[c.appointment_id for c in conflicts]}"
            )
            raise SlotConflictError(appointment_date, appointment_time, conflicts)

    def _write_lines(self, appointment, request: BookingRequest, quote: BookingQuote):
        for index, (line, quoted) in enumerate(zip(request.lines, quote.lines)):
            row = AppointmentProcedure.objects.create(
                appointment=appointment,
                procedure=line.procedure,
                order_index=index,
                custom_price=line.custom_price,
                unit_price=quoted.price.unit_price,
                discount_percentage=quoted.discount.discount_percentage,
                discount_amount=quoted.discount.discount_amount,
                final_price=quoted.final_price,
            )
            AppointmentSpecification.objects.bulk_create([
                AppointmentSpecification(
                    appointment=appointment,
                    line=row,
                    specification=spec,
                    specification_name=spec.name,
                    specification_price=spec.price,
                )
                for spec in line.specifications
            ])

    @staticmethod
    def _apply_totals(appointment, quote: BookingQuote):
        appointment.original_total = quote.original_total
        appointment.discount_amount = quote.discount_amount
        appointment.total_price = quote.final_total

    # ---------- operations ----------

    def create(self, request: BookingRequest) -> Appointment:
        self.validate(request)
        quote = self.quote(request)
        duration = self.duration_for(request.procedures)

        try:
            with transaction.atomic():
                self._check_slot(request.appointment_date, request.appointment_time, duration)
                session = self.session_for(request)
                appointment = Appointment(
                    client=request.client,
                    professional=request.professional,
                    city=request.city,
                    appointment_date=request.appointment_date,
                    appointment_time=request.appointment_time,
                    duration_minutes=duration,
                    status=Appointment.STATUS_SCHEDULED,
                    session_number=session.session_number,
                    total_sessions=session.total_sessions,
                    notes=(request.notes or "").strip(),
                    created_by=request.created_by,
                )
                self._apply_totals(appointment, quote)
                appointment.save()
                self._write_lines(appointment, request, quote)
                transaction.on_commit(partial(_notify_after_commit, appointment.pk, "created"))
        except IntegrityError as e:
            logger.warning(f"Store rejected slot {request.appointment_date} {request.appointment_time}: {e}")
            raise SlotConflictError(request.appointment_date, request.appointment_time) from e

        logger.info(
            f"Appointment {appointment.pk} booked for client {request.client.pk} on "
            f"{appointment.appointment_date} {appointment.appointment_time:%H:%M} "
            f"(session {appointment.session_number}/{appointment.total_sessions}, total {appointment.total_price})"
        )
        return appointment

    def update(self, appointment: Appointment, request: BookingRequest) -> Appointment:
        """
        Edit an appointment in place.

        Session numbering is left as booked unless the appointment changes
        hands, in which case it is numbered against the new client's history.
        """
        self.validate(request, original=BookingSnapshot.from_appointment(appointment))
        quote = self.quote(request)
        duration = self.duration_for(request.procedures)
        moved = (
            request.appointment_date != appointment.appointment_date
            or request.appointment_time != appointment.appointment_time
            or duration != appointment.duration_minutes
        )
        reassigned = request.client.pk != appointment.client_id

        try:
            with transaction.atomic():
                appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)
                if moved and appointment.status in Appointment.OCCUPYING_STATUSES:
                    self._check_slot(request.appointment_date, request.appointment_time, duration, appointment.pk)

                if reassigned:
                    session = self.session_for(request)
                    appointment.client = request.client
                    appointment.session_number = session.session_number
                    appointment.total_sessions = session.total_sessions
                appointment.appointment_date = request.appointment_date
                appointment.appointment_time = request.appointment_time
                appointment.duration_minutes = duration
                appointment.city = request.city
                appointment.professional = request.professional
                appointment.notes = (request.notes or "").strip()
                self._apply_totals(appointment, quote)
                appointment.save()

                appointment.specifications.all().delete()
                appointment.lines.all().delete()
                self._write_lines(appointment, request, quote)
                if moved:
                    _discard_reminders(appointment.pk)
                transaction.on_commit(partial(_notify_after_commit, appointment.pk, "updated"))
        except IntegrityError as e:
            raise SlotConflictError(request.appointment_date, request.appointment_time) from e

        logger.info(f"Appointment {appointment.pk} updated")
        return appointment

    def change_status(self, appointment: Appointment, status: str) -> Appointment:
        if status not in dict(Appointment.STATUS_CHOICES):
            raise BookingValidationError(_("Status inválido: %(status)s") % {"status": status}, code="invalid_status")
        if status == appointment.status:
            return appointment

        reoccupies = (
            status in Appointment.OCCUPYING_STATUSES
            and appointment.status not in Appointment.OCCUPYING_STATUSES
        )
        try:
            with transaction.atomic():
                appointment = Appointment.objects.select_for_update().get(pk=appointment.pk)
                if reoccupies:
                    self._check_slot(
                        appointment.appointment_date, appointment.appointment_time,
                        appointment.duration_minutes, appointment.pk,
                    )
                old_status = appointment.status
                appointment.status = status
                appointment.save(update_fields=["status", "updated_at"])
        except IntegrityError as e:
            raise SlotConflictError(appointment.appointment_date, appointment.appointment_time) from e

        logger.info(f"Appointment {appointment.pk} status {old_status} -> {status}")
        return appointment

    def cancel(self, appointment: Appointment) -> Appointment:
        return self.change_status(appointment, Appointment.STATUS_CANCELED)
