import json

import pytest
from django.urls import reverse

from clinic.appointments.models import Appointment
from clinic.scheduling.models import CityAvailability, ScheduleException

from .conftest import MONDAY

pytestmark = pytest.mark.django_db


@pytest.fixture
def api(client, staff_user):
    client.force_login(staff_user)
    return client


def post_json(api, url, payload):
    return api.post(url, data=json.dumps(payload), content_type="application/json")


@pytest.fixture
def booking_payload(client_obj, city, laser, areas):
    return {
        "client": client_obj.pk,
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "09:00",
        "city": city.pk,
        "notes": "",
        "lines": [{"procedure": laser.pk, "specifications": [areas[0].pk, areas[1].pk]}],
    }


def test_login_is_required(client):
    response = client.get(reverse("appointments:available-times"), {"date": MONDAY.isoformat(), "procedures": "1"})
    assert response.status_code == 302


def test_available_times_with_advisory(api, schedule, consult, city, other_city):
    CityAvailability.objects.create(city=other_city, date_start=MONDAY)

    response = api.get(reverse("appointments:available-times"), {
        "date": MONDAY.isoformat(), "procedures": str(consult.pk), "city": city.pk,
    })

    data = response.json()
    assert response.status_code == 200
    assert data["slots"] == ["08:00", "09:00", "10:00", "11:00"]
    assert data["source"] == "settings"
    assert data["closed"] is False
    assert data["advisory"]["available"] is False
    assert data["advisory"]["other_city"] == str(other_city)


def test_closed_date_reports_fallback(api, schedule, consult):
    ScheduleException.objects.create(date_start=MONDAY, is_closed=True)

    data = api.get(reverse("appointments:available-times"), {
        "date": MONDAY.isoformat(), "procedures": str(consult.pk),
    }).json()

    assert data["closed"] is True
    assert data["source"] == "closed_fallback"
    assert data["slots"][0] == "08:00" and data["slots"][-1] == "16:00"


def test_available_times_rejects_unknown_procedure(api, schedule):
    response = api.get(reverse("appointments:available-times"), {"date": MONDAY.isoformat(), "procedures": "999"})
    assert response.status_code == 400
    assert "procedures" in response.json()["errors"]


def test_quote(api, laser, areas):
    response = post_json(api, reverse("appointments:quote"), {
        "lines": [{"procedure": laser.pk, "specifications": [areas[0].pk, areas[1].pk]}],
    })
    quote = response.json()["quote"]
    assert (quote["original_total"], quote["discount_amount"], quote["final_total"]) == ("100.00", "10.00", "90.00")


def test_quote_without_lines(api):
    assert post_json(api, reverse("appointments:quote"), {"lines": []}).status_code == 400


def test_create_appointment(api, booking_payload, staff_user):
    response = post_json(api, reverse("appointments:appointment-create"), booking_payload)

    assert response.status_code == 201
    payload = response.json()["appointment"]
    assert payload["total_price"] == "90.00"
    assert payload["session_number"] == 1 and payload["total_sessions"] == 3
    assert payload["lines"][0]["specifications"] == ["Axilas", "Buço"]
    assert Appointment.objects.get().created_by == staff_user


def test_create_reports_rule_violation(api, booking_payload):
    booking_payload["lines"][0]["specifications"] = []
    response = post_json(api, reverse("appointments:appointment-create"), booking_payload)
    assert response.status_code == 400
    assert response.json()["code"] == "missing_specifications"


def test_create_without_date(api, booking_payload):
    booking_payload.pop("appointment_date")
    response = post_json(api, reverse("appointments:appointment-create"), booking_payload)
    assert response.json()["code"] == "missing_date"


def test_create_conflict_is_409(api, booking_payload):
    first = post_json(api, reverse("appointments:appointment-create"), booking_payload)
    booking_payload["appointment_time"] = "09:30"
    response = post_json(api, reverse("appointments:appointment-create"), booking_payload)

    assert response.status_code == 409
    assert response.json()["conflicts"] == [first.json()["appointment"]["id"]]


def test_invalid_json_body(api):
    response = api.post(reverse("appointments:appointment-create"), data="{", content_type="application/json")
    assert response.status_code == 400


def test_update_appointment(api, booking_payload, areas):
    created = post_json(api, reverse("appointments:appointment-create"), booking_payload).json()["appointment"]
    booking_payload.pop("client")
    booking_payload["lines"][0]["specifications"].append(areas[2].pk)

    response = post_json(api, reverse("appointments:appointment-update", args=[created["id"]]), booking_payload)

    assert response.status_code == 200
    assert response.json()["appointment"]["total_price"] == "162.00"


def test_update_without_changes(api, booking_payload):
    created = post_json(api, reverse("appointments:appointment-create"), booking_payload).json()["appointment"]
    response = post_json(api, reverse("appointments:appointment-update", args=[created["id"]]), booking_payload)
    assert response.status_code == 400
    assert response.json()["code"] == "no_changes"


def test_update_missing_appointment(api, booking_payload):
    response = post_json(api, reverse("appointments:appointment-update", args=[999]), booking_payload)
    assert response.status_code == 404


def test_change_status(api, booking_payload):
    created = post_json(api, reverse("appointments:appointment-create"), booking_payload).json()["appointment"]
    url = reverse("appointments:appointment-status", args=[created["id"]])

    assert post_json(api, url, {"status": "confirmed"}).json()["status"] == "confirmed"
    response = post_json(api, url, {"status": "no_show"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_status"


def test_advisory_endpoint(api, city):
    CityAvailability.objects.create(city=city, date_start=MONDAY)
    response = api.get(reverse("appointments:advisory"), {"date": MONDAY.isoformat(), "city": city.pk})
    assert response.json()["advisory"] == {"available": True, "message": None, "other_city": None}
