from django.contrib import admin
from .models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "chart_no",
        "full_name",
        "gender_display",
        "age",
        "phone",
        "is_guest",
    )
    search_fields = ("chart_no", "full_name", "phone")
    list_filter = ("gender", "is_guest", "created_at")

    readonly_fields = (
        "chart_no",
        "created_at",
        "updated_at",
    )

    fieldsets = (
        ("基本資料", {
            "fields": (
                "chart_no",
                "full_name",
                "gender",
                "age",
                "is_guest",
            )
        }),
        ("聯絡 / 主訴", {
            "fields": (
                "phone",
                "problem",
            )
        }),
        ("其他", {
            "fields": (
                "created_at",
                "updated_at",
            )
        }),
    )

    def gender_display(self, obj):
        return obj.get_gender_display() or "-"
    gender_display.short_description = "性別"
