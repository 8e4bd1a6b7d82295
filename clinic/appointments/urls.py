from django.urls import path

from . import views

app_name = 'appointments'

urlpatterns = [
    path('api/available-times/', views.available_times_json, name='available-times'),
    path('api/advisory/', views.advisory_json, name='advisory'),
    path('api/quote/', views.quote_json, name='quote'),
    path('api/appointments/', views.create_appointment_ajax, name='appointment-create'),
    path('api/appointments/<int:appointment_id>/update/', views.update_appointment_ajax, name='appointment-update'),
    path('api/appointments/<int:appointment_id>/status/', views.change_status_ajax, name='appointment-status'),
]
