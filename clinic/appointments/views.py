"""
JSON endpoints used by the booking screen.

Every response carries ``success``; failures add ``message`` and, for
rule violations, ``code``. Validation errors answer 400, slot conflicts
409 and unknown rows 404.
"""
import json

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from clinic.catalog.discounts import money, quote_booking
from clinic.scheduling.advisory import availability_advisory
from clinic.scheduling.services import available_times

from .booking import BookingComposer
from .exceptions import BookingValidationError, SlotConflictError
from .forms import AdvisoryForm, AvailableTimesForm, BookingForm, QuoteForm, StatusForm
from .models import Appointment

def _json_body(request):
    try:
        data = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _invalid_json():
    return JsonResponse({'success': False, 'message': 'Invalid JSON body'}, status=400)


def _form_errors(form):
    errors = form.all_errors if hasattr(form, 'all_errors') else form.errors.get_json_data()
    return JsonResponse({'success': False, 'message': 'Invalid data', 'errors': errors}, status=400)


def _validation_error(error):
    return JsonResponse({
        'success': False,
        'message': error.messages[0],
        'code': error.code,
    }, status=400)


def _conflict(error):
    return JsonResponse({
        'success': False,
        'message': str(error),
        'code': 'slot_conflict',
        'conflicts': [c.appointment_id for c in error.conflicts if c.appointment_id is not None],
    }, status=409)


def _not_found():
    return JsonResponse({'success': False, 'message': 'Appointment not found'}, status=404)


def appointment_payload(appointment):
    lines = appointment.lines.select_related('procedure').prefetch_related('specifications').order_by('order_index')
    return {
        'id': appointment.id,
        'client_id': appointment.client_id,
        'client_name': appointment.client.full_name,
        'city_id': appointment.city_id,
        'professional_id': appointment.professional_id,
        'date': appointment.appointment_date.isoformat(),
        'time': appointment.appointment_time.strftime('%H:%M'),
        'duration_minutes': appointment.duration_minutes,
        'status': appointment.status,
        'status_display': appointment.get_status_display(),
        'session_number': appointment.session_number,
        'total_sessions': appointment.total_sessions,
        'display_name': appointment.package_display_name,
        'original_total': money(appointment.original_total),
        'discount_amount': money(appointment.discount_amount),
        'total_price': money(appointment.total_price),
        'notes': appointment.notes,
        'lines': [
            {
                'procedure_id': line.procedure_id,
                'procedure': line.procedure.name,
                'custom_price': money(line.custom_price) if line.custom_price is not None else None,
                'discount_percentage': str(line.discount_percentage),
                'final_price': money(line.final_price),
                'specifications': [spec.specification_name for spec in line.specifications.all()],
            }
            for line in lines
        ],
    }


@login_required
@require_http_methods(["GET"])
def available_times_json(request):
    """
    Bookable start times for a date and a procedure selection.
    Adds the city advisory when ``city`` is given.
    """
    form = AvailableTimesForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)

    target_date = form.cleaned_data['date']
    result = available_times(
        target_date,
        form.cleaned_data['procedures'],
        exclude_appointment=form.cleaned_data['exclude'],
    )
    payload = {'success': True, 'date': target_date.isoformat(), **result.as_dict()}

    city = form.cleaned_data.get('city')
    if city is not None:
        advisory = availability_advisory(target_date, city)
        payload['advisory'] = advisory.as_dict() if advisory else None

    return JsonResponse(payload)


@login_required
@require_http_methods(["GET"])
def advisory_json(request):
    form = AdvisoryForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)

    advisory = availability_advisory(form.cleaned_data['date'], form.cleaned_data['city'])
    return JsonResponse({'success': True, 'advisory': advisory.as_dict() if advisory else None})


@login_required
@require_http_methods(["POST"])
def quote_json(request):
    """Price breakdown for the current selection, before anything is booked."""
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = QuoteForm(data)
    if not form.is_valid():
        return _form_errors(form)

    composer = BookingComposer()
    quote = quote_booking(form.to_lines(), scope=composer.discount_scope)
    return JsonResponse({'success': True, 'quote': quote.display()})


@login_required
@require_http_methods(["POST"])
def create_appointment_ajax(request):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = BookingForm(data)
    if not form.is_valid():
        return _form_errors(form)

    try:
        appointment = BookingComposer().create(form.to_request(created_by=request.user))
    except BookingValidationError as e:
        return _validation_error(e)
    except SlotConflictError as e:
        return _conflict(e)

    return JsonResponse({
        'success': True,
        'message': 'Appointment created successfully',
        'appointment': appointment_payload(appointment),
    }, status=201)


@login_required
@require_http_methods(["POST"])
def update_appointment_ajax(request, appointment_id):
    try:
        appointment = Appointment.objects.select_related('client').get(id=appointment_id)
    except Appointment.DoesNotExist:
        return _not_found()

    data = _json_body(request)
    if data is None:
        return _invalid_json()
    data.setdefault('client', appointment.client_id)

    form = BookingForm(data)
    if not form.is_valid():
        return _form_errors(form)

    try:
        appointment = BookingComposer().update(appointment, form.to_request())
    except BookingValidationError as e:
        return _validation_error(e)
    except SlotConflictError as e:
        return _conflict(e)

    return JsonResponse({
        'success': True,
        'message': 'Appointment updated successfully',
        'appointment': appointment_payload(appointment),
    })


@login_required
@require_http_methods(["POST"])
def change_status_ajax(request, appointment_id):
    try:
        appointment = Appointment.objects.get(id=appointment_id)
    except Appointment.DoesNotExist:
        return _not_found()

    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = StatusForm(data)
    if not form.is_valid():
        return _form_errors(form)

    try:
        appointment = BookingComposer().change_status(appointment, form.cleaned_data['status'])
    except BookingValidationError as e:
        return _validation_error(e)
    except SlotConflictError as e:
        return _conflict(e)

    return JsonResponse({
        'success': True,
        'message': 'Appointment status updated',
        'status': appointment.status,
        'status_display': appointment.get_status_display(),
    })
