from django.contrib import admin

from .models import DiscountConfig, Procedure, ProcedureCategory, Specification


class SpecificationInline(admin.TabularInline):
    model = Specification
    extra = 0


class DiscountConfigInline(admin.TabularInline):
    model = DiscountConfig
    extra = 0


@admin.register(Procedure)
class ProcedureAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "price", "duration_minutes", "sessions_required", "requires_specifications", "is_active")
    list_filter = ("category", "requires_specifications", "is_active")
    search_fields = ("name",)
    inlines = [SpecificationInline, DiscountConfigInline]


@admin.register(DiscountConfig)
class DiscountConfigAdmin(admin.ModelAdmin):
    list_display = ("procedure", "min_groups", "max_groups", "discount_percentage", "is_active")
    list_filter = ("is_active", "procedure")


admin.site.register(ProcedureCategory)
