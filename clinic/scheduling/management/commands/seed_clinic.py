import os
import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from clinic.catalog.models import DiscountConfig, Procedure, ProcedureCategory, Specification
from clinic.clients.models import Client
from clinic.scheduling.models import City, CityAvailability, ScheduleSettings


class Command(BaseCommand):
    help = "Seed clinic demo data (schedule, cities, procedures, discount tiers, clients)."

    def add_arguments(self, parser):
        parser.add_argument("--with-users", action="store_true",
                            help="Create a demo admin user.")
        parser.add_argument("--availability-days", type=int, default=30,
                            help="Length of the provider's stay in the home city (default: 30).")

    @transaction.atomic
    def handle(self, *args, **opts):
        self.stdout.write(self.style.MIGRATE_HEADING("Seeding clinic demo data..."))

        if opts["with_users"]:
            self._seed_users()

        self._seed_schedule()
        self._seed_cities(days=opts["availability_days"])
        self._seed_catalog()
        self._seed_clients()

        self.stdout.write(self.style.SUCCESS("Done!"))

    # ---------- helpers ----------

    def _seed_users(self):
        User = get_user_model()
        username = os.getenv("SEED_ADMIN_USERNAME", "admin")
        password = os.getenv("SEED_ADMIN_PASSWORD", "Admin123!")

        admin, created = User.objects.get_or_create(
            username=username,
            defaults={"is_staff": True, "is_superuser": True},
        )
        if created:
            admin.set_password(password)
            admin.save()
        self.stdout.write(self.style.SUCCESS(f"Admin user ready: {username}"))

    def _seed_schedule(self):
        if ScheduleSettings.get_active() is None:
            ScheduleSettings.objects.create(
                start_time=datetime.time(8, 0),
                end_time=datetime.time(18, 0),
                interval_minutes=30,
            )
        self.stdout.write(self.style.SUCCESS("Schedule settings: 08:00-18:00, every 30 minutes, Mon-Fri."))

    def _seed_cities(self, days):
        tefe, _ = City.objects.get_or_create(name="Tefé", defaults={"state": "AM"})
        City.objects.get_or_create(name="Manaus", defaults={"state": "AM"})

        today = datetime.date.today()
        CityAvailability.objects.get_or_create(
            city=tefe,
            date_start=today,
            defaults={"date_end": today + datetime.timedelta(days=days)},
        )
        self.stdout.write(self.style.SUCCESS(f"Cities ready. Provider in Tefé for {days} days."))

    def _seed_catalog(self):
        laser, _ = ProcedureCategory.objects.get_or_create(name="Depilação a laser")
        aesthetics, _ = ProcedureCategory.objects.get_or_create(name="Estética")

        hair_removal, _ = Procedure.objects.get_or_create(
            category=laser, name="Depilação a Laser",
            defaults={
                "price": Decimal("0.00"), "duration_minutes": 30,
                "sessions_required": 10, "requires_specifications": True,
            },
        )
        areas = [
            ("Axilas", Decimal("120.00"), "any"),
            ("Buço", Decimal("80.00"), "female"),
            ("Virilha", Decimal("200.00"), "any"),
            ("Pernas completas", Decimal("400.00"), "any"),
            ("Barba", Decimal("250.00"), "male"),
        ]
        for order, (name, price, gender) in enumerate(areas):
            Specification.objects.get_or_create(
                procedure=hair_removal, name=name,
                defaults={"price": price, "gender": gender, "display_order": order},
            )

        tiers = [
            (2, 2, Decimal("10.00")),
            (3, 4, Decimal("15.00")),
            (5, None, Decimal("20.00")),
        ]
        for min_groups, max_groups, percentage in tiers:
            DiscountConfig.objects.get_or_create(
                procedure=hair_removal, min_groups=min_groups,
                defaults={"max_groups": max_groups, "discount_percentage": percentage},
            )

        Procedure.objects.get_or_create(
            category=aesthetics, name="Limpeza de Pele",
            defaults={"price": Decimal("150.00"), "duration_minutes": 60},
        )
        Procedure.objects.get_or_create(
            category=aesthetics, name="Avaliação",
            defaults={"price": Decimal("0.00"), "duration_minutes": 30},
        )
        self.stdout.write(self.style.SUCCESS("Procedures, areas and discount tiers created."))

    def _seed_clients(self):
        people = [
            ("Ana Souza", "92991110001", "ana@example.com", "female"),
            ("Bruno Lima", "92991110002", "", "male"),
            ("Carla Mendes", "92991110003", "carla@example.com", "female"),
        ]
        for full_name, phone, email, gender in people:
            Client.objects.get_or_create(
                phone=phone,
                defaults={"full_name": full_name, "email": email, "gender": gender},
            )
        self.stdout.write(self.style.SUCCESS(f"{len(people)} clients ready."))
