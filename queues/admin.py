from django.contrib import admin
from .models import VisitTicket

@admin.register(VisitTicket)
class VisitTicketAdmin(admin.ModelAdmin):
    list_display = ("doctor", "number", "patient", "status", "call_count", "called_at", "finished_at")
    list_filter = ("doctor", "status")
    search_fields = ("patient__full_name", "patient__chart_no", "patient__phone", "doctor__name")
    ordering = ("doctor", "number")
    # 狀態只能經過叫號流程改，後台不能直接動
    readonly_fields = ("number", "status", "appointment", "called_at", "finished_at", "call_count")
