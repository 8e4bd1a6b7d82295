from django.contrib import admin

from .models import City, CityAvailability, ScheduleException, ScheduleSettings


@admin.register(ScheduleSettings)
class ScheduleSettingsAdmin(admin.ModelAdmin):
    list_display = ("start_time", "end_time", "interval_minutes", "is_active", "updated_at")
    list_filter = ("is_active",)


@admin.register(ScheduleException)
class ScheduleExceptionAdmin(admin.ModelAdmin):
    list_display = (
        "date_start", "date_end", "is_closed",
        "custom_start_time", "custom_end_time", "custom_interval_minutes", "reason",
    )
    list_filter = ("is_closed",)
    search_fields = ("reason",)
    date_hierarchy = "date_start"


class CityAvailabilityInline(admin.TabularInline):
    model = CityAvailability
    extra = 0


@admin.register(City)
class CityAdmin(admin.ModelAdmin):
    list_display = ("name", "state", "is_active")
    list_filter = ("is_active", "state")
    search_fields = ("name",)
    inlines = [CityAvailabilityInline]


@admin.register(CityAvailability)
class CityAvailabilityAdmin(admin.ModelAdmin):
    list_display = ("city", "date_start", "date_end", "notes")
    list_filter = ("city",)
    date_hierarchy = "date_start"
