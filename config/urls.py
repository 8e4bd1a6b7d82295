from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("appointments/", include("clinic.appointments.urls", namespace="appointments")),
]
