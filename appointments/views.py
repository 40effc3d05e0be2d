from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from common.utils import group_required, read_payload, request_caller
from doctors.services import get_doctor
from patients.services import get_patient
from queues import live
from queues import services as queue_services

from . import services as appointment_services
from .forms import AppointmentStatusForm, BookingForm


def _appointment_dict(appt):
    return {
        "id": appt.pk,
        "patient_id": appt.patient_id,
        "patient_name": appt.patient.full_name,
        "doctor_id": appt.doctor_id,
        "doctor_name": appt.doctor.name,
        "queue_number": appt.queue_number,
        "status": appt.status,
        "created_by": appt.created_by,
        "appointment_date": appt.appointment_date.isoformat(),
        "created_at": appt.created_at.isoformat(),
    }


def _form_errors(form):
    return ValidationError(
        [f"{field}: {msg}" for field, msgs in form.errors.items() for msg in msgs]
    )


@require_POST
def book(request):
    """
    掛號（病人自助 / 櫃台代掛共用）：
    body: doctor, full_name, phone, age, gender, problem, idempotency_key(選填)
    櫃台帳號掛的會記成 receptionist，其他都當病人自助。
    """
    data = read_payload(request)
    form = BookingForm(data)
    if not form.is_valid():
        raise _form_errors(form)

    result = appointment_services.book_appointment(
        data,
        form.cleaned_data["doctor"].pk,
        caller=request_caller(request),
        idempotency_key=form.cleaned_data["idempotency_key"],
    )
    return JsonResponse(result.as_dict(), status=201 if result.created else 200)


@require_GET
def patient_appointments(request):
    """?phone=0912345678 → 還在候診 / 看診中的掛號與前面人數"""
    phone = (request.GET.get("phone") or "").strip()
    if not phone:
        raise ValidationError("請輸入電話")
    statuses = live.patient_statuses(phone)
    return JsonResponse({"appointments": [s.as_dict() for s in statuses]})


@require_GET
@group_required("RECEPTION", "DOCTOR")
def patient_history(request, patient_id):
    patient = get_patient(patient_id)
    appointments = appointment_services.history_for_patient(patient.pk)
    return JsonResponse({
        "patient": {"id": patient.pk, "chart_no": patient.chart_no, "full_name": patient.full_name},
        "appointments": [_appointment_dict(a) for a in appointments],
    })


@require_GET
@login_required
def appointment_detail(request, pk):
    appt = appointment_services.get_appointment(pk)
    return JsonResponse(_appointment_dict(appt))


@require_POST
@group_required("RECEPTION", "DOCTOR")
def appointment_update_status(request, pk):
    """將某一筆掛號的狀態改成 waiting / in-progress / completed / cancelled"""
    form = AppointmentStatusForm(read_payload(request))
    if not form.is_valid():
        raise _form_errors(form)

    appointment_services.update_status(
        pk, form.cleaned_data["status"], caller=request_caller(request)
    )
    return JsonResponse(_appointment_dict(appointment_services.get_appointment(pk)))


@require_POST
@group_required("RECEPTION", "DOCTOR")
def appointment_complete(request, pk):
    queue_services.complete(pk, caller=request_caller(request))
    return JsonResponse(_appointment_dict(appointment_services.get_appointment(pk)))


@require_GET
@group_required("RECEPTION", "DOCTOR")
def doctor_today_appointments(request, doctor_id):
    """醫師今日門診列表，照號碼排"""
    doctor = get_doctor(doctor_id)
    today = timezone.localdate()
    appointments = appointment_services.appointments_for_doctor(doctor.pk, today)
    return JsonResponse({
        "doctor_id": doctor.pk,
        "date": today.isoformat(),
        "appointments": [_appointment_dict(a) for a in appointments],
    })
