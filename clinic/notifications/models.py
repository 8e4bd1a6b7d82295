from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class NotificationLog(models.Model):
    """Log all notifications sent"""
    CHANNEL_CHOICES = [
        ('sms', 'SMS'),
        ('whatsapp', 'WhatsApp'),
        ('email', 'Email'),
    ]

    STATUS_CHOICES = [
        ('pending', _('Pending')),
        ('sent', _('Sent')),
        ('failed', _('Failed')),
        ('delivered', _('Delivered')),
    ]

    client = models.ForeignKey(
        'clients.Client',
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    channel = models.CharField(_("Channel"), max_length=10, choices=CHANNEL_CHOICES)
    subject = models.CharField(_("Subject"), max_length=200, blank=True)
    message = models.TextField(_("Message"))

    status = models.CharField(
        _("Status"),
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending'
    )
    sent_at = models.DateTimeField(_("Sent At"), null=True, blank=True)

    appointment = models.ForeignKey(
        'appointments.Appointment',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications_sent'
    )

    external_id = models.CharField(
        _("External ID"),
        max_length=100,
        blank=True,
        help_text=_("Twilio Message SID")
    )
    error_message = models.TextField(_("Error Message"), blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Notification Log")
        verbose_name_plural = _("Notification Logs")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['client', '-created_at']),
            models.Index(fields=['status', '-created_at']),
            models.Index(fields=['appointment']),
        ]

    def __str__(self):
        return f"{self.channel} to {self.client} - {self.status}"

    def mark_failed(self, error_message):
        self.status = 'failed'
        self.error_message = error_message
        self.save(update_fields=['status', 'error_message'])


class ScheduledNotification(models.Model):
    """Track scheduled notifications (24h reminders)"""
    TYPE_CHOICES = [
        ('24h_reminder', _('24 Hour Reminder')),
    ]

    appointment = models.ForeignKey(
        'appointments.Appointment',
        on_delete=models.CASCADE,
        related_name='scheduled_notifications'
    )
    notification_type = models.CharField(_("Type"), max_length=30, choices=TYPE_CHOICES)
    send_sms = models.BooleanField(_("Send SMS"), default=True)
    send_email = models.BooleanField(_("Send Email"), default=True)

    scheduled_for = models.DateTimeField(_("Scheduled For"))
    sent = models.BooleanField(_("Sent"), default=False)
    sent_at = models.DateTimeField(_("Sent At"), null=True, blank=True)

    celery_task_id = models.CharField(
        _("Celery Task ID"),
        max_length=100,
        blank=True,
        help_text=_("ID of the scheduled Celery task")
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Scheduled Notification")
        verbose_name_plural = _("Scheduled Notifications")
        ordering = ['scheduled_for']
        indexes = [
            models.Index(fields=['scheduled_for', 'sent']),
        ]
        constraints = [
            models.UniqueConstraint(fields=['appointment', 'notification_type'], name='unique_scheduled_notification'),
        ]

    def __str__(self):
        return f"{self.notification_type} for {self.appointment} at {self.scheduled_for}"
