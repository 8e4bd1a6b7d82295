import datetime
from unittest import mock

import pytest
from django.db import DatabaseError

from clinic.scheduling.advisory import availability_advisory
from clinic.scheduling.models import CityAvailability

from .conftest import MONDAY

pytestmark = pytest.mark.django_db


def test_confirmed_city_is_available(city):
    CityAvailability.objects.create(
        city=city, date_start=MONDAY - datetime.timedelta(days=2), date_end=MONDAY + datetime.timedelta(days=2)
    )
    advisory = availability_advisory(MONDAY, city)
    assert advisory.available
    assert advisory.message is None


def test_single_day_availability_without_end_date(city):
    CityAvailability.objects.create(city=city, date_start=MONDAY)
    assert availability_advisory(MONDAY, city).available
    assert not availability_advisory(MONDAY + datetime.timedelta(days=1), city).available


def test_provider_elsewhere_names_the_other_city(city, other_city):
    CityAvailability.objects.create(city=other_city, date_start=MONDAY, date_end=MONDAY)

    advisory = availability_advisory(MONDAY, city)

    assert not advisory.available
    assert advisory.other_city == other_city
    assert "Manaus" in advisory.message
    assert advisory.as_dict()["other_city"] == str(other_city)


def test_no_availability_anywhere_gives_generic_warning(city):
    advisory = availability_advisory(MONDAY, city)
    assert not advisory.available
    assert advisory.other_city is None
    assert "07/01/2030" in advisory.message


def test_missing_input_has_no_advisory(city):
    assert availability_advisory(None, city) is None
    assert availability_advisory(MONDAY, None) is None


def test_lookup_failure_is_not_an_error(city):
    with mock.patch.object(CityAvailability.objects, "covering", side_effect=DatabaseError("down")):
        assert availability_advisory(MONDAY, city) is None


def test_advisory_never_affects_booking(composer, make_request, consult):
    # no availability recorded for the city at all
    assert composer.create(make_request([consult])).pk
