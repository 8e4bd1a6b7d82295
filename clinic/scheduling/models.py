import datetime

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from . import windows

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def default_available_days():
    return {day: day not in ("saturday", "sunday") for day in WEEKDAYS}


class ScheduleSettings(models.Model):
    """Default weekly business hours. The active row applies to every date."""
    start_time = models.TimeField(_("Início"), default=datetime.time(8, 0))
    end_time = models.TimeField(_("Fim"), default=datetime.time(18, 0))
    interval_minutes = models.PositiveIntegerField(
        _("Intervalo (minutos)"), default=30, validators=[MinValueValidator(1)]
    )
    available_days = models.JSONField(_("Dias disponíveis"), default=default_available_days)
    is_active = models.BooleanField(_("Ativo"), default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Schedule settings")
        verbose_name_plural = _("Schedule settings")

    def __str__(self):
        return f"{self.start_time:%H:%M}-{self.end_time:%H:%M} / {self.interval_minutes}min"

    def is_day_available(self, day):
        return bool((self.available_days or {}).get(WEEKDAYS[day.weekday()], False))

    def clean(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError({"end_time": _("O horário final deve ser após o inicial.")})
        unknown = set(self.available_days or {}) - set(WEEKDAYS)
        if unknown:
            raise ValidationError({"available_days": _("Dias inválidos: %(days)s") % {"days": ", ".join(sorted(unknown))}})

    @classmethod
    def get_active(cls):
        return cls.objects.filter(is_active=True).order_by("-updated_at", "-pk").first()


class DateRangeQuerySet(models.QuerySet):
    def covering(self, day):
        """Rows whose inclusive range contains ``day``; a null date_end means a single day."""
        return self.filter(
            Q(date_start__lte=day, date_end__gte=day) | Q(date_start=day, date_end__isnull=True)
        )


class ScheduleException(models.Model):
    date_start = models.DateField(_("Data inicial"))
    date_end = models.DateField(_("Data final"), null=True, blank=True)
    is_closed = models.BooleanField(_("Fechado"), default=False)
    custom_start_time = models.TimeField(_("Início personalizado"), null=True, blank=True)
    custom_end_time = models.TimeField(_("Fim personalizado"), null=True, blank=True)
    custom_interval_minutes = models.PositiveIntegerField(
        _("Intervalo personalizado"), null=True, blank=True, validators=[MinValueValidator(1)]
    )
    reason = models.CharField(_("Motivo"), max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = DateRangeQuerySet.as_manager()

    class Meta:
        ordering = ["date_start", "created_at", "pk"]
        indexes = [models.Index(fields=["date_start", "date_end"])]

    def __str__(self):
        label = _("Fechado") if self.is_closed else self.reason or _("Horário especial")
        if self.date_end and self.date_end != self.date_start:
            return f"{self.date_start:%d/%m/%Y}-{self.date_end:%d/%m/%Y}: {label}"
        return f"{self.date_start:%d/%m/%Y}: {label}"

    @property
    def last_day(self):
        return self.date_end or self.date_start

    def covers(self, day):
        return self.date_start <= day <= self.last_day

    @property
    def has_custom_hours(self):
        return windows.has_custom_hours(self)

    def clean(self):
        if self.date_end and self.date_start and self.date_end < self.date_start:
            raise ValidationError({"date_end": _("A data final deve ser igual ou posterior à inicial.")})
        if self.custom_start_time and self.custom_end_time and self.custom_end_time <= self.custom_start_time:
            raise ValidationError({"custom_end_time": _("O horário final deve ser após o inicial.")})


class City(models.Model):
    name = models.CharField(_("Cidade"), max_length=120)
    state = models.CharField(_("Estado"), max_length=2, blank=True)
    is_active = models.BooleanField(_("Ativa"), default=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = _("Cities")

    def __str__(self):
        return f"{self.name}/{self.state}" if self.state else self.name


class CityAvailability(models.Model):
    """Dates on which the provider is confirmed to be attending in a city."""
    city = models.ForeignKey(City, on_delete=models.CASCADE, related_name="availabilities")
    date_start = models.DateField(_("Data inicial"))
    date_end = models.DateField(_("Data final"), null=True, blank=True)
    notes = models.CharField(_("Observações"), max_length=200, blank=True)

    objects = DateRangeQuerySet.as_manager()

    class Meta:
        ordering = ["date_start", "pk"]
        verbose_name_plural = _("City availability")

    def __str__(self):
        end = self.date_end or self.date_start
        return f"{self.city}: {self.date_start:%d/%m/%Y}-{end:%d/%m/%Y}"

    def clean(self):
        if self.date_end and self.date_start and self.date_end < self.date_start:
            raise ValidationError({"date_end": _("A data final deve ser igual ou posterior à inicial.")})
