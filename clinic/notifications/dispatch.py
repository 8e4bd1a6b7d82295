"""
Entry points used by the booking engine once an appointment is committed.

Delivery is best effort: nothing raised here may reach the booking caller.
"""
import logging

from celery import current_app
from django.conf import settings

logger = logging.getLogger(__name__)

ACTION_CREATED = 'created'
ACTION_UPDATED = 'updated'


def notify_booking(appointment_id, action=ACTION_CREATED):
    """Queue the client message and the staff alert for a booking. Returns True when queued."""
    if not getattr(settings, 'NOTIFICATIONS_ENABLED', True):
        return False

    from .tasks import send_appointment_booked_notification_task

    try:
        send_appointment_booked_notification_task.delay(
            appointment_id=appointment_id,
            send_sms=getattr(settings, 'SEND_SMS_ON_BOOKING', True),
            send_email=getattr(settings, 'SEND_EMAIL_ON_BOOKING', True),
            action=action
        )
    except Exception:
        logger.exception(f"Could not queue {action} notification for appointment {appointment_id}")
        return False

    logger.info(f"Queued appointment {action} notification for appointment {appointment_id}")
    return True


def discard_pending_reminders(appointment_id):
    """Delete the appointment's unsent reminders and return their Celery task ids."""
    from .models import ScheduledNotification

    pending = ScheduledNotification.objects.filter(appointment_id=appointment_id, sent=False)
    task_ids = [task_id for task_id in pending.values_list('celery_task_id', flat=True) if task_id]
    deleted, _ = pending.delete()
    if deleted:
        logger.info(f"Discarded {deleted} pending reminders for appointment {appointment_id}")
    return task_ids


def revoke_tasks(task_ids):
    for task_id in task_ids:
        try:
            current_app.control.revoke(task_id)
        except Exception:
            # a stale reminder still skips itself when it runs
            logger.exception(f"Could not revoke task {task_id}")
