import datetime

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class AppointmentQuerySet(models.QuerySet):
    def occupying(self):
        """Appointments that hold their slot."""
        return self.filter(status__in=Appointment.OCCUPYING_STATUSES)

    def active(self):
        return self.exclude(status=Appointment.STATUS_CANCELED)

    def on_date(self, day):
        return self.filter(appointment_date=day)

    def for_procedure(self, client, procedure):
        return self.filter(client=client, lines__procedure=procedure).distinct()


class Appointment(models.Model):
    STATUS_SCHEDULED = "scheduled"
    STATUS_CONFIRMED = "confirmed"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELED = "canceled"
    STATUS_UNSCHEDULED_PHOTO = "unscheduled_photo"

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, _("Agendado")),
        (STATUS_CONFIRMED, _("Confirmado")),
        (STATUS_COMPLETED, _("Realizado")),
        (STATUS_CANCELED, _("Cancelado")),
        (STATUS_UNSCHEDULED_PHOTO, _("Sem agendamento (foto)")),
    ]
    OCCUPYING_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_COMPLETED)

    client       = models.ForeignKey("clients.Client", on_delete=models.PROTECT, related_name="appointments")
    professional = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, null=True, blank=True, related_name="appointments"
    )
    city         = models.ForeignKey("scheduling.City", on_delete=models.PROTECT, related_name="appointments")
    appointment_date = models.DateField(_("Data"))
    appointment_time = models.TimeField(_("Horário"))
    duration_minutes = models.PositiveIntegerField(_("Duração (minutos)"), default=60)
    status       = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)

    # Fixed when the appointment is created, never renumbered afterwards.
    session_number = models.PositiveIntegerField(_("Sessão"), default=1)
    total_sessions = models.PositiveIntegerField(_("Total de sessões"), default=1)

    original_total  = models.DecimalField(max_digits=16, decimal_places=6, default=0)
    discount_amount = models.DecimalField(max_digits=16, decimal_places=6, default=0)
    total_price     = models.DecimalField(max_digits=16, decimal_places=6, default=0)

    notes      = models.TextField(_("Observações"), blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AppointmentQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["appointment_date", "appointment_time"]),
            models.Index(fields=["client", "appointment_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["appointment_date", "appointment_time"],
                condition=Q(status__in=("scheduled", "confirmed", "completed")),
                name="unique_occupied_slot",
            ),
        ]
        ordering = ["-appointment_date", "-appointment_time"]

    def __str__(self):
        return f"{self.client} – {self.appointment_date:%d/%m/%Y} {self.appointment_time:%H:%M}"

    @property
    def starts_at(self):
        naive = datetime.datetime.combine(self.appointment_date, self.appointment_time)
        return timezone.make_aware(naive) if settings.USE_TZ else naive

    @property
    def ends_at(self):
        return self.starts_at + datetime.timedelta(minutes=self.duration_minutes)

    @property
    def primary_line(self):
        return self.lines.order_by("order_index").first()

    @property
    def is_package(self):
        return self.total_sessions > 1

    @property
    def is_first_session(self):
        return self.session_number == 1

    @property
    def session_label(self):
        if not self.is_package:
            return ""
        return f"{self.session_number}/{self.total_sessions}"

    @property
    def package_display_name(self):
        line = self.primary_line
        name = line.procedure.name if line else ""
        if self.is_package and not self.is_first_session:
            return f"{name} - {_('Retorno')} - {self.session_label}"
        return name

    @property
    def counts_towards_revenue(self):
        """Only the first session of a package carries the package's value."""
        return not self.is_package or self.is_first_session


class AppointmentProcedure(models.Model):
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="lines")
    procedure   = models.ForeignKey("catalog.Procedure", on_delete=models.PROTECT, related_name="appointment_lines")
    order_index = models.PositiveIntegerField(default=0)
    custom_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    unit_price   = models.DecimalField(max_digits=16, decimal_places=6, default=0)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=16, decimal_places=6, default=0)
    final_price  = models.DecimalField(max_digits=16, decimal_places=6, default=0)

    class Meta:
        ordering = ["appointment", "order_index"]
        constraints = [
            models.UniqueConstraint(fields=["appointment", "order_index"], name="unique_line_order"),
        ]

    def __str__(self):
        return f"{self.appointment} #{self.order_index} {self.procedure}"


class AppointmentSpecification(models.Model):
    appointment   = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name="specifications")
    line          = models.ForeignKey(AppointmentProcedure, on_delete=models.CASCADE, related_name="specifications")
    specification = models.ForeignKey(
        "catalog.Specification", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    specification_name  = models.CharField(max_length=120)
    specification_price = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        ordering = ["line", "pk"]

    def __str__(self):
        return f"{self.line}: {self.specification_name}"
