from django.contrib import admin
from .models import Doctor


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ("name", "department", "room", "user", "is_available", "last_queue_number", "current_ticket")
    list_filter = ("department", "is_available", "is_active")
    search_fields = ("name", "department")
    readonly_fields = ("last_queue_number", "current_ticket", "created_at")
