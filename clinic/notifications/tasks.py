import datetime
import logging
from datetime import timedelta

from celery import shared_task
from django.apps import apps
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def send_appointment_booked_notification_task(self, appointment_id, send_sms=True, send_email=True, action='created'):
    """
    Async task to send the client message and the staff alert for a new or
    edited appointment
    """
    from .services import notification_service
    Appointment = apps.get_model('appointments', 'Appointment')

    try:
        appointment = Appointment.objects.select_related('client', 'city', 'created_by').get(id=appointment_id)
    except Appointment.DoesNotExist:
        logger.error(f"Appointment {appointment_id} not found")
        return {'error': 'Appointment not found'}

    try:
        result = notification_service.send_appointment_booked_notification(
            appointment=appointment,
            send_sms=send_sms,
            send_email=send_email,
            action=action
        )
        result['staff'] = notification_service.send_staff_notification(appointment=appointment, action=action)
    except Exception as exc:
        logger.error(f"Error sending appointment {action} notification: {exc}")
        # Retry with exponential backoff
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))

    logger.info(f"Appointment {action} notification sent for appointment {appointment_id}")
    return result


@shared_task(bind=True, max_retries=3)
def send_appointment_reminder_task(self, appointment_id, send_sms=True, send_email=True, expected_start=None):
    """
    Async task to send appointment reminder notification

    ``expected_start`` is the start time the reminder was queued for; a
    reminder for an appointment that has since moved is skipped.
    """
    from .models import ScheduledNotification
    from .services import notification_service
    Appointment = apps.get_model('appointments', 'Appointment')

    try:
        appointment = Appointment.objects.select_related('client', 'city').get(id=appointment_id)
    except Appointment.DoesNotExist:
        logger.error(f"Appointment {appointment_id} not found")
        return {'error': 'Appointment not found'}

    if appointment.status not in Appointment.OCCUPYING_STATUSES:
        logger.info(f"Skipping reminder for {appointment.status} appointment {appointment_id}")
        return {'skipped': appointment.status}

    starts_at = appointment.starts_at
    queued_for = parse_datetime(expected_start) if expected_start else None
    record = ScheduledNotification.objects.filter(
        appointment=appointment,
        notification_type='24h_reminder',
        sent=False
    ).first()
    if (queued_for is not None and queued_for != starts_at) or (
        record is not None and record.scheduled_for < starts_at - timedelta(hours=24)
    ):
        logger.info(f"Skipping stale reminder for rescheduled appointment {appointment_id}")
        return {'skipped': 'rescheduled'}

    try:
        result = notification_service.send_appointment_reminder(
            appointment=appointment,
            send_sms=send_sms,
            send_email=send_email
        )
    except Exception as exc:
        logger.error(f"Error sending appointment reminder: {exc}")
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))

    ScheduledNotification.objects.filter(
        appointment=appointment,
        notification_type='24h_reminder',
        sent=False
    ).update(sent=True, sent_at=timezone.now())

    logger.info(f"Appointment reminder sent for appointment {appointment_id}")
    return result


@shared_task
def schedule_appointment_reminders():
    """
    Periodic task: queue a 24h reminder for every appointment starting in the
    next 24 hours that has none yet. Run hourly via Celery Beat.
    """
    from .models import ScheduledNotification
    Appointment = apps.get_model('appointments', 'Appointment')

    now = timezone.localtime()
    horizon = now + timedelta(hours=24)

    candidates = (
        Appointment.objects.occupying()
        .filter(appointment_date__gte=now.date(), appointment_date__lte=horizon.date())
        .exclude(scheduled_notifications__notification_type='24h_reminder')
    )

    scheduled_count = 0
    for appointment in candidates:
        starts_at = appointment.starts_at
        if not (now < starts_at <= horizon):
            continue

        send_time = max(starts_at - timedelta(hours=24), now)
        try:
            with transaction.atomic():
                record = ScheduledNotification.objects.create(
                    appointment=appointment,
                    notification_type='24h_reminder',
                    scheduled_for=send_time,
                )
        except IntegrityError:
            # queued by a concurrent run
            continue

        task = send_appointment_reminder_task.apply_async(
            args=[appointment.id],
            kwargs={
                'send_sms': record.send_sms,
                'send_email': record.send_email,
                'expected_start': starts_at.isoformat(),
            },
            eta=send_time
        )
        record.celery_task_id = task.id or ''
        record.save(update_fields=['celery_task_id'])
        scheduled_count += 1

    logger.info(f"Scheduled {scheduled_count} appointment reminders")
    return {'scheduled': scheduled_count}


@shared_task
def cleanup_old_notification_logs(days=90):
    """
    Clean up old notification logs
    Run this task daily via Celery Beat
    """
    from .models import NotificationLog

    cutoff_date = timezone.now() - datetime.timedelta(days=days)
    deleted_count, _ = NotificationLog.objects.filter(created_at__lt=cutoff_date).delete()

    logger.info(f"Deleted {deleted_count} old notification logs")
    return {'deleted': deleted_count}
