from django.contrib import admin
from .models import Appointment

@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("appointment_date", "doctor", "queue_number", "patient", "status", "created_by", "created_at")
    list_filter = ("appointment_date", "doctor", "status", "created_by")
    search_fields = ("patient__full_name", "patient__chart_no", "patient__phone", "doctor__name")
    readonly_fields = ("queue_number", "idempotency_key", "created_at")
