import logging
from typing import Any, Dict

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient

from clinic.catalog.discounts import money

from .dispatch import ACTION_UPDATED
from .models import NotificationLog

logger = logging.getLogger(__name__)


def booking_context(appointment) -> Dict[str, Any]:
    """Plain values describing a booking, shared by every message template."""
    lines = list(appointment.lines.select_related("procedure").prefetch_related("specifications"))
    procedures = []
    specifications = []
    for line in lines:
        name = line.procedure.name
        if appointment.is_package and line.procedure.sessions_required > 1:
            name = f"{name} ({appointment.session_label})"
        procedures.append(name)
        specifications.extend(spec.specification_name for spec in line.specifications.all())

    return {
        'client_name': appointment.client.full_name,
        'date': appointment.appointment_date.strftime('%d/%m/%Y'),
        'time': appointment.appointment_time.strftime('%H:%M'),
        'procedures': ", ".join(procedures),
        'specifications': ", ".join(specifications),
        'city': str(appointment.city),
        'notes': appointment.notes or "",
        'total': money(appointment.total_price),
        'address': getattr(settings, 'CLINIC_ADDRESS', ''),
    }


def booking_message(context: Dict[str, Any], action=None) -> str:
    if action == ACTION_UPDATED:
        title, lead = "✏️ *Agendamento Atualizado*", "Seu agendamento foi alterado:"
    else:
        title, lead = "🩺 *Agendamento Confirmado*", "Seu agendamento foi confirmado:"
    message = (
        f"{title}\n\n"
        f"Olá {context['client_name']}!\n\n"
        f"{lead}\n\n"
        f"📅 Data: {context['date']}\n"
        f"⏰ Horário: {context['time']}\n"
        f"💉 Procedimento: {context['procedures']}\n"
    )
    if context['specifications']:
        message += f"📋 Áreas: {context['specifications']}\n"
    message += f"📍 Cidade: {context['city']}\n"
    if context['address']:
        message += f"🗺️ Local: {context['address']}\n"
    if context['notes']:
        message += f"📝 Observações: {context['notes']}\n"
    message += "\nObrigado pela confiança! 🙏"
    return message


def reminder_message(context: Dict[str, Any]) -> str:
    return (
        f"⏰ Lembrete! {context['client_name']}, "
        f"você tem agendamento em {context['date']} às {context['time']}. "
        f"Procedimento: {context['procedures']}. Cidade: {context['city']}. Até breve!"
    )


def staff_message(context: Dict[str, Any], action=None) -> str:
    """Alert for the clinic owner and admins."""
    title = "Agendamento alterado" if action == ACTION_UPDATED else "Novo agendamento"
    message = (
        f"📢 *{title}*\n\n"
        f"Cliente: {context['client_name']}\n"
        f"Data: {context['date']} às {context['time']}\n"
        f"Procedimento: {context['procedures']}\n"
    )
    if context['specifications']:
        message += f"Áreas: {context['specifications']}\n"
    message += f"Cidade: {context['city']}\nValor: R$ {context['total']}\n"
    if context['notes']:
        message += f"Observações: {context['notes']}\n"
    return message


class NotificationService:
    """Service for sending SMS, WhatsApp and Email notifications"""

    def __init__(self, twilio_client=None):
        self.twilio_client = twilio_client
        if self.twilio_client is None and getattr(settings, 'TWILIO_ACCOUNT_SID', '') and getattr(settings, 'TWILIO_AUTH_TOKEN', ''):
            try:
                self.twilio_client = TwilioClient(
                    settings.TWILIO_ACCOUNT_SID,
                    settings.TWILIO_AUTH_TOKEN
                )
            except Exception as e:
                logger.error(f"Failed to initialize Twilio client: {e}")

    @staticmethod
    def format_phone(phone: str) -> str:
        phone = "".join(ch for ch in phone if ch.isdigit() or ch == '+')
        if not phone.startswith('+'):
            country = getattr(settings, 'DEFAULT_PHONE_COUNTRY_CODE', '+55')
            phone = f"{country}{phone.lstrip('0')}"
        return phone

    def _send_twilio(self, channel, phone, message, client_obj, appointment=None, sent_by=None) -> Dict[str, Any]:
        log = NotificationLog.objects.create(
            client=client_obj,
            channel=channel,
            message=message,
            status='pending',
            appointment=appointment,
            sent_by=sent_by
        )

        sender = settings.TWILIO_WHATSAPP_NUMBER if channel == 'whatsapp' else settings.TWILIO_PHONE_NUMBER
        if not self.twilio_client:
            error_msg = "Twilio client not configured"
            log.mark_failed(error_msg)
            logger.error(error_msg)
            return {'success': False, 'error': error_msg, 'log_id': log.id}
        if not sender:
            error_msg = f"No Twilio sender configured for {channel}"
            log.mark_failed(error_msg)
            logger.error(error_msg)
            return {'success': False, 'error': error_msg, 'log_id': log.id}

        to = self.format_phone(phone)
        if channel == 'whatsapp':
            to, sender = f"whatsapp:{to}", f"whatsapp:{sender}"

        try:
            message_obj = self.twilio_client.messages.create(body=message, from_=sender, to=to)
        except TwilioRestException as e:
            error_msg = f"Twilio error: {e.msg}"
            log.mark_failed(error_msg)
            logger.error(f"Failed to send {channel} to {to}: {error_msg}")
            return {'success': False, 'error': error_msg, 'log_id': log.id}
        except Exception as e:
            error_msg = f"Unexpected error: {str(e)}"
            log.mark_failed(error_msg)
            logger.error(f"Failed to send {channel} to {to}: {error_msg}")
            return {'success': False, 'error': error_msg, 'log_id': log.id}

        log.status = 'sent'
        log.sent_at = timezone.now()
        log.external_id = message_obj.sid
        log.save()
        logger.info(f"{channel} sent successfully to {to}. SID: {message_obj.sid}")
        return {'success': True, 'message_sid': message_obj.sid, 'log_id': log.id}

    def send_sms(self, phone: str, message: str, client_obj=None, appointment=None, sent_by=None) -> Dict[str, Any]:
        return self._send_twilio('sms', phone, message, client_obj, appointment, sent_by)

    def send_whatsapp(self, phone: str, message: str, client_obj=None, appointment=None, sent_by=None) -> Dict[str, Any]:
        return self._send_twilio('whatsapp', phone, message, client_obj, appointment, sent_by)

    def send_email(
        self,
        to_email: str,
        subject: str,
        message: str,
        client_obj=None,
        appointment=None,
        sent_by=None
    ) -> Dict[str, Any]:
        log = NotificationLog.objects.create(
            client=client_obj,
            channel='email',
            subject=subject,
            message=message,
            status='pending',
            appointment=appointment,
            sent_by=sent_by
        )

        try:
            send_mail(
                subject=subject,
                message=message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[to_email],
                fail_silently=False,
            )
        except Exception as e:
            error_msg = f"Email error: {str(e)}"
            log.mark_failed(error_msg)
            logger.error(f"Failed to send email to {to_email}: {error_msg}")
            return {'success': False, 'error': error_msg, 'log_id': log.id}

        log.status = 'sent'
        log.sent_at = timezone.now()
        log.save()
        logger.info(f"Email sent successfully to {to_email}")
        return {'success': True, 'log_id': log.id}

    def _phone_channel(self):
        return self.send_whatsapp if getattr(settings, 'TWILIO_WHATSAPP_NUMBER', '') else self.send_sms

    def send_appointment_booked_notification(self, appointment, send_sms=True, send_email=True, action=None):
        """Confirmation (or change notice) to the client, respecting their notification preferences."""
        client = appointment.client
        context = booking_context(appointment)
        message = booking_message(context, action)
        subject_prefix = "Alteração" if action == ACTION_UPDATED else "Confirmação"
        results = {'sms': None, 'email': None}

        if send_sms and client.phone and client.receive_booking_sms:
            results['sms'] = self._phone_channel()(
                phone=client.phone,
                message=message,
                client_obj=client,
                appointment=appointment,
                sent_by=appointment.created_by
            )
        elif send_sms and client.phone:
            logger.info(f"Skipping booking message for client {client.id} - client preference disabled")

        if send_email and client.email and client.receive_booking_email:
            results['email'] = self.send_email(
                to_email=client.email,
                subject=f"{subject_prefix} de agendamento - {context['date']} {context['time']}",
                message=message.replace('*', ''),
                client_obj=client,
                appointment=appointment,
                sent_by=appointment.created_by
            )
        elif send_email and client.email:
            logger.info(f"Skipping booking email for client {client.id} - client preference disabled")

        return results

    def send_staff_notification(self, appointment, action=None):
        """
        Alert the clinic owner (``CLINIC_OWNER_PHONE``) and every address in
        ``ADMINS`` about a new or edited appointment.
        """
        results = {'owner': None, 'admins': []}
        if not getattr(settings, 'NOTIFY_STAFF_ON_BOOKING', True):
            return results

        context = booking_context(appointment)
        message = staff_message(context, action)

        owner_phone = getattr(settings, 'CLINIC_OWNER_PHONE', '')
        if owner_phone:
            results['owner'] = self._phone_channel()(
                phone=owner_phone,
                message=message,
                client_obj=appointment.client,
                appointment=appointment,
                sent_by=appointment.created_by
            )

        subject = f"{'Agendamento alterado' if action == ACTION_UPDATED else 'Novo agendamento'}: {context['client_name']}"
        for _name, email in getattr(settings, 'ADMINS', []):
            results['admins'].append(self.send_email(
                to_email=email,
                subject=subject,
                message=message.replace('*', ''),
                client_obj=appointment.client,
                appointment=appointment,
                sent_by=appointment.created_by
            ))

        return results

    def send_appointment_reminder(self, appointment, send_sms=True, send_email=True):
        client = appointment.client
        context = booking_context(appointment)
        results = {'sms': None, 'email': None}

        if send_sms and client.phone and client.receive_reminder_sms:
            results['sms'] = self._phone_channel()(
                phone=client.phone,
                message=reminder_message(context),
                client_obj=client,
                appointment=appointment
            )

        if send_email and client.email and client.receive_reminder_email:
            results['email'] = self.send_email(
                to_email=client.email,
                subject=f"Lembrete de agendamento - {context['date']} {context['time']}",
                message=reminder_message(context),
                client_obj=client,
                appointment=appointment
            )

        return results


# Singleton instance
notification_service = NotificationService()
