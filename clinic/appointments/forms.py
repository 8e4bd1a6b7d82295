"""
Forms that turn the JSON bodies posted by the booking screen into a
BookingRequest. Only shapes and lookups are checked here; the booking
rules live in BookingComposer.validate.
"""
from django import forms
from django.contrib.auth import get_user_model
from django.utils.translation import gettext_lazy as _

from clinic.catalog.models import Procedure, Specification
from clinic.clients.models import Client
from clinic.scheduling.models import City

from .booking import BookingLine, BookingRequest
from .models import Appointment


class BookingLineForm(forms.Form):
    procedure = forms.ModelChoiceField(queryset=Procedure.objects.filter(is_active=True))
    specifications = forms.ModelMultipleChoiceField(
        queryset=Specification.objects.filter(is_active=True),
        required=False
    )
    custom_price = forms.DecimalField(max_digits=10, decimal_places=2, required=False)

    def to_line(self):
        data = self.cleaned_data
        specs = sorted(data.get('specifications') or [], key=lambda spec: (spec.display_order, spec.pk))
        return BookingLine(
            procedure=data['procedure'],
            specifications=tuple(specs),
            custom_price=data.get('custom_price'),
        )


class LinesFormMixin:
    """Binds the nested ``lines`` list to one BookingLineForm per entry."""

    def __init__(self, data=None, *args, **kwargs):
        data = dict(data or {})
        raw_lines = data.pop('lines', None) or []
        super().__init__(data, *args, **kwargs)
        if not isinstance(raw_lines, list):
            raw_lines = []
        self.line_forms = [BookingLineForm(line if isinstance(line, dict) else {}) for line in raw_lines]

    def is_valid(self):
        valid = super().is_valid()
        return all([valid] + [form.is_valid() for form in self.line_forms])

    @property
    def all_errors(self):
        errors = self.errors.get_json_data()
        for index, form in enumerate(self.line_forms):
            if form.errors:
                errors[f'lines.{index}'] = form.errors.get_json_data()
        return errors


class BookingForm(LinesFormMixin, forms.Form):
    client = forms.ModelChoiceField(queryset=Client.objects.all())
    # Presence of date, time and city is checked by the composer so the
    # messages follow its order.
    appointment_date = forms.DateField(required=False)
    appointment_time = forms.TimeField(required=False, input_formats=['%H:%M', '%H:%M:%S'])
    city = forms.ModelChoiceField(queryset=City.objects.filter(is_active=True), required=False)
    professional = forms.ModelChoiceField(queryset=get_user_model().objects.filter(is_active=True), required=False)
    notes = forms.CharField(required=False)

    def to_request(self, created_by=None):
        data = self.cleaned_data
        return BookingRequest(
            client=data['client'],
            lines=[form.to_line() for form in self.line_forms],
            appointment_date=data.get('appointment_date'),
            appointment_time=data.get('appointment_time'),
            city=data.get('city'),
            professional=data.get('professional'),
            notes=data.get('notes') or '',
            created_by=created_by,
        )


class QuoteForm(LinesFormMixin, forms.Form):
    """Pricing needs only the lines."""

    def is_valid(self):
        valid = super().is_valid()
        if valid and not self.line_forms:
            self.add_error(None, _("Selecione pelo menos um procedimento."))
            valid = False
        return valid

    def to_lines(self):
        return [form.to_line() for form in self.line_forms]


class AvailableTimesForm(forms.Form):
    date = forms.DateField()
    procedures = forms.CharField()
    exclude = forms.IntegerField(required=False)
    city = forms.ModelChoiceField(queryset=City.objects.all(), required=False)

    def clean_procedures(self):
        raw = self.cleaned_data['procedures']
        try:
            ids = [int(value) for value in raw.split(',') if value.strip()]
        except ValueError:
            raise forms.ValidationError(_("Lista de procedimentos inválida."))
        if not ids:
            raise forms.ValidationError(_("Selecione pelo menos um procedimento."))

        found = Procedure.objects.in_bulk(ids)
        missing = [pk for pk in ids if pk not in found]
        if missing:
            raise forms.ValidationError(_("Procedimento não encontrado: %(ids)s") % {
                'ids': ", ".join(str(pk) for pk in missing)
            })
        # Keep the caller's order: the first procedure is the primary one.
        return [found[pk] for pk in ids]

    def clean_exclude(self):
        pk = self.cleaned_data.get('exclude')
        if pk is None:
            return None
        try:
            return Appointment.objects.get(pk=pk)
        except Appointment.DoesNotExist:
            raise forms.ValidationError(_("Agendamento não encontrado."))


class AdvisoryForm(forms.Form):
    date = forms.DateField()
    city = forms.ModelChoiceField(queryset=City.objects.all())


class StatusForm(forms.Form):
    status = forms.CharField(max_length=20)
