from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from common.utils import group_required, parse_bool, read_payload, request_caller
from queues import live

from . import services as doctor_services


@require_GET
def doctor_list(request):
    """掛號頁的醫師清單；?available=1 只列開放掛號的"""
    available_only = parse_bool(request.GET.get("available"))
    doctors = live.list_doctors(available_only=available_only)
    return JsonResponse({"doctors": [d.as_dict() for d in doctors]})


@require_POST
@group_required("DOCTOR", "RECEPTION")
def set_availability(request, doctor_id):
    data = read_payload(request)
    if "available" not in data:
        raise ValidationError("請指定 available")
    doctor = doctor_services.set_doctor_availability(
        doctor_id, parse_bool(data["available"]), caller=request_caller(request)
    )
    return JsonResponse({"doctor_id": doctor.pk, "is_available": doctor.is_available})
