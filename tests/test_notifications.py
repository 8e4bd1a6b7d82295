import datetime
from unittest import mock

import pytest
from django.core import mail
from django.utils import timezone
from twilio.base.exceptions import TwilioRestException

from clinic.appointments.models import Appointment
from clinic.notifications import tasks
from clinic.notifications.dispatch import notify_booking
from clinic.notifications.models import NotificationLog, ScheduledNotification
from clinic.notifications.services import NotificationService, booking_context, booking_message

pytestmark = pytest.mark.django_db


@pytest.fixture
def twilio_settings(settings):
    settings.TWILIO_PHONE_NUMBER = "+15550001111"
    settings.TWILIO_WHATSAPP_NUMBER = ""
    settings.DEFAULT_FROM_EMAIL = "agenda@clinica.example"
    return settings


@pytest.fixture
def twilio():
    client = mock.Mock()
    client.messages.create.return_value = mock.Mock(sid="SM123")
    return client


@pytest.fixture
def booked(composer, make_request, laser, areas):
    return composer.create(make_request([laser], specifications=areas[:2], notes="Chegar 10 min antes"))


def test_phone_numbers_get_the_default_country_code():
    assert NotificationService.format_phone("(92) 99111-0001") == "+5592991110001"
    assert NotificationService.format_phone("+1 555 000 1111") == "+15550001111"


def test_booking_message_lists_areas_and_session(booked):
    message = booking_message(booking_context(booked))
    assert "Axilas, Buço" in message
    assert "Depilação a Laser (1/3)" in message
    assert "Chegar 10 min antes" in message
    assert booked.appointment_date.strftime("%d/%m/%Y") in message


def test_confirmation_goes_out_by_sms_and_email(twilio_settings, twilio, booked):
    results = NotificationService(twilio_client=twilio).send_appointment_booked_notification(booked)

    assert results["sms"]["success"]
    assert results["email"]["success"]
    twilio.messages.create.assert_called_once()
    assert twilio.messages.create.call_args.kwargs["to"] == "+5592991110001"
    assert len(mail.outbox) == 1
    assert "Confirmação de agendamento" in mail.outbox[0].subject

    sms_log = NotificationLog.objects.get(channel="sms")
    assert (sms_log.status, sms_log.external_id, sms_log.appointment) == ("sent", "SM123", booked)


def test_whatsapp_is_used_when_a_sender_is_configured(twilio_settings, twilio, booked):
    twilio_settings.TWILIO_WHATSAPP_NUMBER = "+15559998888"

    NotificationService(twilio_client=twilio).send_appointment_booked_notification(booked, send_email=False)

    kwargs = twilio.messages.create.call_args.kwargs
    assert kwargs["to"] == "whatsapp:+5592991110001"
    assert kwargs["from_"] == "whatsapp:+15559998888"
    assert NotificationLog.objects.get().channel == "whatsapp"


def test_twilio_failure_is_logged_not_raised(twilio_settings, twilio, booked):
    twilio.messages.create.side_effect = TwilioRestException(400, "/Messages", msg="invalid number")

    result = NotificationService(twilio_client=twilio).send_sms("92991110001", "oi", client_obj=booked.client)

    assert not result["success"]
    log = NotificationLog.objects.get(pk=result["log_id"])
    assert log.status == "failed"
    assert "invalid number" in log.error_message


def test_unconfigured_twilio_marks_message_failed(twilio_settings, booked):
    result = NotificationService().send_sms("92991110001", "oi", client_obj=booked.client)
    assert not result["success"]
    assert NotificationLog.objects.get().status == "failed"


def test_client_preferences_are_respected(twilio_settings, twilio, booked):
    client = booked.client
    client.receive_booking_sms = False
    client.receive_booking_email = False
    client.save()

    results = NotificationService(twilio_client=twilio).send_appointment_booked_notification(booked)

    assert results == {"sms": None, "email": None}
    twilio.messages.create.assert_not_called()
    assert not NotificationLog.objects.exists()


# ---------- dispatch ----------

def test_dispatch_is_off_when_notifications_disabled(settings):
    settings.NOTIFICATIONS_ENABLED = False
    with mock.patch.object(tasks.send_appointment_booked_notification_task, "delay") as delay:
        assert notify_booking(1) is False
    delay.assert_not_called()


def test_dispatch_queues_with_channel_settings(settings):
    settings.NOTIFICATIONS_ENABLED = True
    settings.SEND_SMS_ON_BOOKING = False
    settings.SEND_EMAIL_ON_BOOKING = True
    with mock.patch.object(tasks.send_appointment_booked_notification_task, "delay") as delay:
        assert notify_booking(42) is True
    delay.assert_called_once_with(appointment_id=42, send_sms=False, send_email=True, action="created")


def test_dispatch_failure_does_not_reach_the_caller(settings):
    settings.NOTIFICATIONS_ENABLED = True
    with mock.patch.object(
        tasks.send_appointment_booked_notification_task, "delay", side_effect=ConnectionError("broker down")
    ):
        assert notify_booking(42) is False


# ---------- tasks ----------

def test_booked_task_sends_through_the_service(booked):
    with mock.patch("clinic.notifications.services.notification_service") as service:
        service.send_appointment_booked_notification.return_value = {"sms": None, "email": None}
        result = tasks.send_appointment_booked_notification_task(appointment_id=booked.pk, send_sms=False)

    assert (result["sms"], result["email"]) == (None, None)
    service.send_appointment_booked_notification.assert_called_once_with(
        appointment=booked, send_sms=False, send_email=True, action="created"
    )
    service.send_staff_notification.assert_called_once_with(appointment=booked, action="created")


def test_booked_task_for_missing_appointment():
    assert tasks.send_appointment_booked_notification_task(appointment_id=999) == {"error": "Appointment not found"}


def test_reminder_skips_canceled_appointments(composer, booked):
    composer.cancel(booked)
    with mock.patch("clinic.notifications.services.notification_service") as service:
        result = tasks.send_appointment_reminder_task(appointment_id=booked.pk)
    assert result == {"skipped": Appointment.STATUS_CANCELED}
    service.send_appointment_reminder.assert_not_called()


def test_reminder_marks_scheduled_record_sent(booked):
    record = ScheduledNotification.objects.create(
        appointment=booked, notification_type="24h_reminder",
        scheduled_for=booked.starts_at - datetime.timedelta(hours=24),
    )
    with mock.patch("clinic.notifications.services.notification_service") as service:
        service.send_appointment_reminder.return_value = {"sms": None, "email": None}
        tasks.send_appointment_reminder_task(appointment_id=booked.pk)

    record.refresh_from_db()
    assert record.sent and record.sent_at is not None


def test_reminders_are_scheduled_once_for_the_next_day(composer, make_request, consult):
    soon = (timezone.localtime() + datetime.timedelta(hours=3)).replace(second=0, microsecond=0)
    appointment = composer.create(make_request([consult], at=soon.time(), on=soon.date()))
    composer.create(make_request([consult], at=soon.time(), on=soon.date() + datetime.timedelta(days=3)))

    with mock.patch.object(tasks.send_appointment_reminder_task, "apply_async") as apply_async:
        apply_async.return_value = mock.Mock(id="task-1")
        assert tasks.schedule_appointment_reminders() == {"scheduled": 1}
        assert tasks.schedule_appointment_reminders() == {"scheduled": 0}

    record = ScheduledNotification.objects.get()
    assert record.appointment == appointment
    assert record.celery_task_id == "task-1"
    apply_async.assert_called_once()


def test_old_logs_are_cleaned_up(booked):
    old = NotificationLog.objects.create(client=booked.client, channel="sms", message="antigo")
    recent = NotificationLog.objects.create(client=booked.client, channel="sms", message="novo")
    NotificationLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - datetime.timedelta(days=120))

    assert tasks.cleanup_old_notification_logs(days=90) == {"deleted": 1}
    assert list(NotificationLog.objects.all()) == [recent]


def test_reminder_for_a_moved_appointment_is_skipped(booked):
    queued_for = booked.starts_at - datetime.timedelta(days=2)
    with mock.patch("clinic.notifications.services.notification_service") as service:
        result = tasks.send_appointment_reminder_task(appointment_id=booked.pk, expected_start=queued_for.isoformat())
    assert result == {"skipped": "rescheduled"}
    service.send_appointment_reminder.assert_not_called()


def test_reminder_timed_for_an_earlier_slot_is_skipped(booked):
    ScheduledNotification.objects.create(
        appointment=booked, notification_type="24h_reminder",
        scheduled_for=booked.starts_at - datetime.timedelta(days=3),
    )
    with mock.patch("clinic.notifications.services.notification_service") as service:
        assert tasks.send_appointment_reminder_task(appointment_id=booked.pk) == {"skipped": "rescheduled"}
    service.send_appointment_reminder.assert_not_called()


def test_moved_appointment_gets_a_reminder_for_its_new_time(
    composer, make_request, consult, django_capture_on_commit_callbacks
):
    soon = (timezone.localtime() + datetime.timedelta(hours=3)).replace(second=0, microsecond=0)
    appointment = composer.create(make_request([consult], at=soon.time(), on=soon.date()))

    with mock.patch.object(tasks.send_appointment_reminder_task, "apply_async") as apply_async:
        apply_async.return_value = mock.Mock(id="task-1")
        tasks.schedule_appointment_reminders()

        later = soon + datetime.timedelta(hours=2)
        with mock.patch("clinic.notifications.dispatch.current_app") as celery_app:
            with django_capture_on_commit_callbacks(execute=True):
                composer.update(appointment, make_request([consult], at=later.time(), on=later.date()))
        celery_app.control.revoke.assert_called_once_with("task-1")

        apply_async.return_value = mock.Mock(id="task-2")
        assert tasks.schedule_appointment_reminders() == {"scheduled": 1}

    record = ScheduledNotification.objects.get()
    assert record.celery_task_id == "task-2"
    assert apply_async.call_args.kwargs["kwargs"]["expected_start"] == timezone.make_aware(
        datetime.datetime.combine(later.date(), later.time())
    ).isoformat()


# ---------- edits and staff alerts ----------

def test_edit_message_tells_the_client_it_changed(booked):
    message = booking_message(booking_context(booked), action="updated")
    assert "Agendamento Atualizado" in message
    assert "Agendamento Confirmado" not in message


def test_edit_is_sent_to_the_client(twilio_settings, twilio, booked):
    NotificationService(twilio_client=twilio).send_appointment_booked_notification(booked, action="updated")

    assert "Agendamento Atualizado" in twilio.messages.create.call_args.kwargs["body"]
    assert mail.outbox[0].subject.startswith("Alteração de agendamento")


def test_staff_are_alerted_by_phone_and_email(twilio_settings, twilio, booked):
    twilio_settings.CLINIC_OWNER_PHONE = "92990000000"
    twilio_settings.ADMINS = [("Gerência", "gerencia@clinica.example"), ("Recepção", "recepcao@clinica.example")]

    results = NotificationService(twilio_client=twilio).send_staff_notification(booked, action="updated")

    assert results["owner"]["success"]
    assert twilio.messages.create.call_args.kwargs["to"] == "+5592990000000"
    assert "Agendamento alterado" in twilio.messages.create.call_args.kwargs["body"]
    assert [len(m.to) for m in mail.outbox] == [1, 1]
    assert {m.to[0] for m in mail.outbox} == {"gerencia@clinica.example", "recepcao@clinica.example"}
    assert "Ana Souza" in mail.outbox[0].subject
    assert "Valor: R$ 90.00" in mail.outbox[0].body


def test_staff_alerts_can_be_switched_off(twilio_settings, twilio, booked):
    twilio_settings.NOTIFY_STAFF_ON_BOOKING = False
    twilio_settings.CLINIC_OWNER_PHONE = "92990000000"

    assert NotificationService(twilio_client=twilio).send_staff_notification(booked) == {"owner": None, "admins": []}
    twilio.messages.create.assert_not_called()


def test_dispatch_queues_edits(settings):
    settings.NOTIFICATIONS_ENABLED = True
    with mock.patch.object(tasks.send_appointment_booked_notification_task, "delay") as delay:
        assert notify_booking(42, action="updated") is True
    assert delay.call_args.kwargs["action"] == "updated"
