from django.db import models
from django.utils.translation import gettext_lazy as _


class Client(models.Model):
    GENDER_CHOICES = [("female", _("Feminino")), ("male", _("Masculino")), ("other", _("Outro"))]

    full_name = models.CharField(_("Nome completo"), max_length=120)
    phone     = models.CharField(_("Celular"), max_length=32, db_index=True)
    email     = models.EmailField(_("Email"), blank=True)
    gender    = models.CharField(_("Gênero"), max_length=10, choices=GENDER_CHOICES, blank=True)
    birth_date = models.DateField(_("Data de nascimento"), null=True, blank=True)
    notes     = models.TextField(_("Observações"), blank=True)

    # Notification preferences
    receive_booking_sms    = models.BooleanField(_("Mensagem de agendamento"), default=True)
    receive_booking_email  = models.BooleanField(_("Email de agendamento"), default=True)
    receive_reminder_sms   = models.BooleanField(_("Mensagem de lembrete"), default=True)
    receive_reminder_email = models.BooleanField(_("Email de lembrete"), default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["full_name"]

    def __str__(self):
        return f"{self.full_name} ({self.phone})"
