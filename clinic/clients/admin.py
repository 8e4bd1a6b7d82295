from django.contrib import admin

from .models import Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ("full_name", "phone", "email", "gender")
    list_filter = ("gender",)
    search_fields = ("full_name", "phone", "email")
