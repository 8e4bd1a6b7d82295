from django.contrib import admin

from .models import Appointment, AppointmentProcedure, AppointmentSpecification


class AppointmentSpecificationInline(admin.TabularInline):
    model = AppointmentSpecification
    extra = 0
    fields = ("line", "specification", "specification_name", "specification_price")
    readonly_fields = ("specification_name", "specification_price")


class AppointmentProcedureInline(admin.TabularInline):
    model = AppointmentProcedure
    extra = 0
    fields = (
        "order_index", "procedure", "custom_price", "unit_price",
        "discount_percentage", "discount_amount", "final_price",
    )
    readonly_fields = ("unit_price", "discount_percentage", "discount_amount", "final_price")


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = (
        "appointment_date", "appointment_time", "client", "city",
        "professional", "status", "session_display", "total_price",
    )
    list_filter = ("status", "city", "professional", "appointment_date")
    search_fields = ("client__full_name", "client__phone", "lines__procedure__name")
    date_hierarchy = "appointment_date"
    readonly_fields = (
        "session_number", "total_sessions", "duration_minutes",
        "original_total", "discount_amount", "total_price",
        "created_by", "created_at", "updated_at",
    )
    inlines = [AppointmentProcedureInline, AppointmentSpecificationInline]

    @admin.display(description="Sessão")
    def session_display(self, obj):
        return obj.session_label or "-"
