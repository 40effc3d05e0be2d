from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from common.utils import group_required, read_payload, request_caller

from . import live
from . import services as queue_services


def _ticket_dict(ticket):
    if ticket is None:
        return None
    return {
        "id": ticket.pk,
        "doctor_id": ticket.doctor_id,
        "appointment_id": ticket.appointment_id,
        "number": ticket.number,
        "status": ticket.status,
        "call_count": ticket.call_count,
        "called_at": ticket.called_at.isoformat() if ticket.called_at else None,
        "finished_at": ticket.finished_at.isoformat() if ticket.finished_at else None,
    }


@require_GET
@group_required("DOCTOR", "RECEPTION")
def queue_state(request, doctor_id):
    snap = live.snapshot(doctor_id)
    return JsonResponse(snap.as_dict())


# =============================
# ▶ 叫下一位
# =============================
@require_POST
@group_required("DOCTOR", "RECEPTION")
def call_next(request, doctor_id):
    ticket = queue_services.advance(doctor_id, caller=request_caller(request))
    return JsonResponse({
        "ticket": _ticket_dict(ticket),
        "current_number": ticket.number if ticket else 0,
    })


# =============================
# 🔄 重叫一次（同一個號碼再叫一次）
# =============================
@require_POST
@group_required("DOCTOR", "RECEPTION")
def repeat(request, doctor_id):
    ticket = queue_services.repeat_call(doctor_id, caller=request_caller(request))
    return JsonResponse({"ticket": _ticket_dict(ticket)})


# =============================
# ⏭ 過號（不會自動叫下一號）
# =============================
@require_POST
@group_required("DOCTOR", "RECEPTION")
def skip_ticket(request, ticket_id):
    ticket = queue_services.skip(ticket_id, caller=request_caller(request))
    return JsonResponse({"ticket": _ticket_dict(ticket)})


@require_POST
@group_required("DOCTOR", "RECEPTION")
def ticket_status(request, ticket_id):
    status = read_payload(request).get("status")
    ticket = queue_services.set_status(ticket_id, status, caller=request_caller(request))
    return JsonResponse({"ticket": _ticket_dict(ticket)})


@require_GET
def board(request):
    """
    候診區大螢幕：全部開診醫師的目前號碼與候診人數，
    帶 ?doctor=<id> 就只回那一位（不含病人姓名）。
    """
    doctor_id = request.GET.get("doctor")
    if doctor_id:
        snap = live.snapshot(_int_param(doctor_id, "doctor"))
        return JsonResponse(snap.as_dict(include_entries=False))

    doctors = live.list_doctors()
    return JsonResponse({"doctors": [d.as_dict() for d in doctors]})


@require_GET
def api_current_number(request):
    """
    給 Arduino 看板輪詢用：
    {"doctor_id": 1, "current": {"number": 15}, "next": {"number": 16}}
    沒有號碼時是 null。
    """
    doctor_id = request.GET.get("doctor_id") or request.GET.get("doctor")
    if not doctor_id:
        raise ValidationError("請指定 doctor_id")
    snap = live.snapshot(_int_param(doctor_id, "doctor_id"))

    current = {"number": snap.current_number} if snap.current_number else None
    nxt = {"number": snap.next_number} if snap.next_number else None
    return JsonResponse({
        "doctor_id": snap.doctor_id,
        "current": current,
        "next": nxt,
        "waiting_count": snap.waiting_count,
    })


def _int_param(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} 格式不正確：{value}")
