from django import forms

from doctors.models import Doctor
from .models import Appointment


class BookingForm(forms.Form):
    """掛號單的醫師 / 重送識別碼部分；病人資料由 PatientForm 驗證"""

    doctor = forms.ModelChoiceField(
        label="醫師",
        queryset=Doctor.objects.filter(is_active=True),
    )
    idempotency_key = forms.CharField(
        label="重送識別碼",
        max_length=64,
        required=False,
    )

    def clean_idempotency_key(self):
        return (self.cleaned_data.get("idempotency_key") or "").strip() or None


class AppointmentStatusForm(forms.Form):
    status = forms.ChoiceField(label="狀態", choices=Appointment.Status.choices)
