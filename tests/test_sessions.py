import datetime

import pytest

from clinic.appointments.models import Appointment
from clinic.appointments.sessions import SINGLE_SESSION, assign_session
from clinic.clients.models import Client

from .conftest import MONDAY

pytestmark = pytest.mark.django_db


def book(composer, make_request, procedures, day_offset, specifications=(), **kwargs):
    request = make_request(
        procedures,
        on=MONDAY + datetime.timedelta(days=day_offset),
        specifications=specifications,
        **kwargs,
    )
    return composer.create(request)


def test_single_session_procedure_is_always_one_of_one(client_obj, consult):
    assert assign_session(client_obj, consult) == SINGLE_SESSION
    assert SINGLE_SESSION.label == ""


def test_second_booking_of_a_package_is_session_two(composer, make_request, client_obj, laser, areas):
    book(composer, make_request, [laser], 0, areas[:1])

    assignment = assign_session(client_obj, laser)

    assert (assignment.session_number, assignment.total_sessions) == (2, 3)
    assert assignment.label == "2/3"
    assert not assignment.is_first_session


def test_sessions_number_one_to_n_in_booking_order(composer, make_request, laser, areas):
    appointments = [book(composer, make_request, [laser], day, areas[:1]) for day in range(3)]
    assert [(a.session_number, a.total_sessions) for a in appointments] == [(1, 3), (2, 3), (3, 3)]


def test_booking_past_the_package_keeps_counting(composer, make_request, laser, areas):
    for day in range(3):
        book(composer, make_request, [laser], day, areas[:1])
    fourth = book(composer, make_request, [laser], 3, areas[:1])
    assert (fourth.session_number, fourth.total_sessions) == (4, 3)


def test_canceled_sessions_are_not_counted_or_renumbered(composer, make_request, client_obj, laser, areas):
    first = book(composer, make_request, [laser], 0, areas[:1])
    second = book(composer, make_request, [laser], 1, areas[:1])

    composer.cancel(first)
    second.refresh_from_db()

    assert second.session_number == 2
    assert assign_session(client_obj, laser).session_number == 2


def test_other_clients_do_not_share_a_package(composer, make_request, laser, areas):
    book(composer, make_request, [laser], 0, areas[:1])
    someone_else = Client.objects.create(full_name="Bruno Lima", phone="92991110002")

    assert assign_session(someone_else, laser).session_number == 1


def test_package_display_name_marks_returns(composer, make_request, laser, areas):
    first = book(composer, make_request, [laser], 0, areas[:1])
    second = book(composer, make_request, [laser], 1, areas[:1])

    assert first.package_display_name == "Depilação a Laser"
    assert second.package_display_name == "Depilação a Laser - Retorno - 2/3"
    assert first.counts_towards_revenue
    assert not second.counts_towards_revenue


def test_package_procedure_later_in_selection_is_tracked(composer, make_request, consult, laser, areas):
    appointment = book(composer, make_request, [consult, laser], 0, areas[:1])
    assert (appointment.session_number, appointment.total_sessions) == (1, 3)
    assert Appointment.objects.for_procedure(appointment.client, laser).count() == 1
