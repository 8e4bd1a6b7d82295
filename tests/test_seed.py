import pytest
from django.core.management import call_command

from clinic.catalog.models import DiscountConfig, Procedure
from clinic.clients.models import Client
from clinic.scheduling.models import City, ScheduleSettings

pytestmark = pytest.mark.django_db


def test_seed_is_repeatable():
    call_command("seed_clinic", "--with-users")
    call_command("seed_clinic")

    assert ScheduleSettings.objects.count() == 1
    assert City.objects.count() == 2
    assert Client.objects.count() == 3
    laser = Procedure.objects.get(name="Depilação a Laser")
    assert laser.is_package
    assert laser.specifications.count() == 5
    assert DiscountConfig.objects.filter(procedure=laser).count() == 3
