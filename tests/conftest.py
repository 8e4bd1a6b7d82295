import datetime
from decimal import Decimal

import pytest

from clinic.appointments.booking import BookingComposer, BookingLine, BookingRequest
from clinic.catalog.models import DiscountConfig, Procedure, Specification
from clinic.clients.models import Client
from clinic.scheduling.models import City, ScheduleSettings

# A Monday well in the future so the same-day lead time never applies.
MONDAY = datetime.date(2030, 1, 7)


@pytest.fixture
def schedule(db):
    return ScheduleSettings.objects.create(
        start_time=datetime.time(8, 0),
        end_time=datetime.time(12, 0),
        interval_minutes=60,
    )


@pytest.fixture
def city(db):
    return City.objects.create(name="Tefé", state="AM")


@pytest.fixture
def other_city(db):
    return City.objects.create(name="Manaus", state="AM")


@pytest.fixture
def client_obj(db):
    return Client.objects.create(full_name="Ana Souza", phone="92991110001", email="ana@example.com")


@pytest.fixture
def consult(db):
    return Procedure.objects.create(name="Consulta", price=Decimal("100.00"), duration_minutes=60)


@pytest.fixture
def laser(db):
    procedure = Procedure.objects.create(
        name="Depilação a Laser",
        price=Decimal("100.00"),
        duration_minutes=60,
        sessions_required=3,
        requires_specifications=True,
    )
    DiscountConfig.objects.create(
        procedure=procedure, min_groups=2, max_groups=3, discount_percentage=Decimal("10")
    )
    return procedure


@pytest.fixture
def areas(laser):
    return [
        Specification.objects.create(procedure=laser, name="Axilas", price=Decimal("60.00"), display_order=0),
        Specification.objects.create(procedure=laser, name="Buço", price=Decimal("40.00"), display_order=1),
        Specification.objects.create(procedure=laser, name="Virilha", price=Decimal("80.00"), display_order=2),
    ]


@pytest.fixture
def composer():
    return BookingComposer(require_professional=False, discount_scope="procedure", conflict_duration="total")


@pytest.fixture
def make_request(client_obj, city):
    def build(procedures, at="09:00", on=MONDAY, specifications=(), custom_price=None, **kwargs):
        lines = [
            BookingLine(
                procedure=procedure,
                specifications=tuple(spec for spec in specifications if spec.procedure_id == procedure.pk),
                custom_price=custom_price,
            )
            for procedure in procedures
        ]
        kwargs.setdefault("client", client_obj)
        kwargs.setdefault("city", city)
        return BookingRequest(
            lines=lines,
            appointment_date=on,
            appointment_time=datetime.time.fromisoformat(at) if isinstance(at, str) else at,
            **kwargs,
        )
    return build


@pytest.fixture
def staff_user(django_user_model):
    return django_user_model.objects.create_user(username="recepcao", password="secret")
