"""
叫號狀態機。

所有會改到某位醫師號碼牌狀態的操作，第一步都先鎖那位醫師
（select_for_update），同一位醫師的叫號 / 過號 / 完成因此一個一個來；
不同醫師之間互不影響。

號碼牌：waiting -> current -> completed / skipped
掛號單跟著同步：current 時 in-progress，completed 時 completed，skipped 時 cancelled
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db.models import F
from django.utils import timezone

from appointments.models import Appointment
from common.context import SYSTEM
from common.errors import InvalidStateError, NotFoundError
from common.retry import run_atomic
from doctors.models import Doctor
from doctors.services import get_doctor

from .models import VisitTicket

logger = logging.getLogger(__name__)

Status = VisitTicket.Status


# ──────────────────────
# 查詢
# ──────────────────────
def get_ticket(ticket_id) -> VisitTicket:
    try:
        return VisitTicket.objects.select_related("patient", "appointment").get(pk=ticket_id)
    except VisitTicket.DoesNotExist:
        raise NotFoundError(f"找不到號碼牌 {ticket_id}", ticket_id=ticket_id)


def tickets_for_doctor(doctor_id, statuses=None):
    """某位醫師的號碼牌，一律照 number 由小到大"""
    get_doctor(doctor_id)
    qs = (
        VisitTicket.objects
        .filter(doctor_id=doctor_id)
        .select_related("patient", "appointment")
        .order_by("number")
    )
    if statuses:
        qs = qs.filter(status__in=statuses)
    return list(qs)


def current_ticket(doctor_id) -> Optional[VisitTicket]:
    return (
        VisitTicket.objects
        .filter(doctor_id=doctor_id, status=Status.CURRENT)
        .select_related("patient", "appointment")
        .first()
    )


def current_number(doctor_id) -> int:
    """目前叫到幾號，沒有人在看診就是 0"""
    number = (
        VisitTicket.objects
        .filter(doctor_id=doctor_id, status=Status.CURRENT)
        .values_list("number", flat=True)
        .first()
    )
    return number or 0


def waiting_before(doctor_id, number) -> int:
    """號碼比 number 小、還在候診的人數"""
    return VisitTicket.objects.filter(
        doctor_id=doctor_id, status=Status.WAITING, number__lt=number
    ).count()


# ──────────────────────
# 交易內使用的小工具（呼叫前必須已經鎖住醫師）
# ──────────────────────
def lock_doctor(doctor_id) -> Doctor:
    try:
        return Doctor.objects.select_for_update().get(pk=doctor_id)
    except Doctor.DoesNotExist:
        raise NotFoundError(f"找不到醫師 {doctor_id}", doctor_id=doctor_id)


def _lock_ticket(ticket_id) -> VisitTicket:
    """先找出是哪位醫師，鎖醫師，再重新讀一次號碼牌（狀態可能剛被別人改過）"""
    doctor_id = (
        VisitTicket.objects
        .filter(pk=ticket_id)
        .values_list("doctor_id", flat=True)
        .first()
    )
    if doctor_id is None:
        raise NotFoundError(f"找不到號碼牌 {ticket_id}", ticket_id=ticket_id)
    lock_doctor(doctor_id)
    return VisitTicket.objects.select_for_update().get(pk=ticket_id)


def _sync_appointment(ticket, status):
    appt = Appointment.objects.select_for_update().get(pk=ticket.appointment_id)
    if appt.status == status:
        return appt
    if not appt.can_transition_to(status):
        raise InvalidStateError(
            f"掛號單 {appt.pk} 目前是 {appt.status}，不能改成 {status}",
            appointment_id=appt.pk,
            status=appt.status,
        )
    appt.status = status
    appt.save(update_fields=["status"])
    return appt


def _set_doctor_current(doctor_id, ticket):
    Doctor.objects.filter(pk=doctor_id).update(
        current_ticket=ticket.pk if ticket is not None else None
    )


def _require_transition(ticket, status):
    if not ticket.can_transition_to(status):
        raise InvalidStateError(
            f"{ticket.number} 號目前是 {ticket.status}，不能改成 {status}",
            ticket_id=ticket.pk,
            status=ticket.status,
        )


def finish_ticket(ticket):
    """current -> completed，掛號單一起改 completed"""
    _require_transition(ticket, Status.COMPLETED)
    ticket.mark_finished()
    _sync_appointment(ticket, Appointment.Status.COMPLETED)
    _set_doctor_current(ticket.doctor_id, None)


def skip_ticket(ticket, appointment_status=Appointment.Status.CANCELLED):
    """waiting / current -> skipped；原本是 current 的話醫師就沒有人在看診了"""
    _require_transition(ticket, Status.SKIPPED)
    was_current = ticket.status == Status.CURRENT
    ticket.mark_skipped()
    _sync_appointment(ticket, appointment_status)
    if was_current:
        _set_doctor_current(ticket.doctor_id, None)


def promote_ticket(ticket):
    """waiting -> current；呼叫前要確定這位醫師沒有別的 current"""
    _require_transition(ticket, Status.CURRENT)
    ticket.mark_called()
    _sync_appointment(ticket, Appointment.Status.IN_PROGRESS)
    _set_doctor_current(ticket.doctor_id, ticket)


def claim_current(ticket):
    """同 promote_ticket，但這位醫師已經有別張 current 就丟 InvalidStateError"""
    other = (
        VisitTicket.objects
        .filter(doctor_id=ticket.doctor_id, status=Status.CURRENT)
        .exclude(pk=ticket.pk)
        .first()
    )
    if other:
        raise InvalidStateError(
            f"{other.number} 號還在看診中，請先完成或過號",
            ticket_id=ticket.pk,
            current_ticket_id=other.pk,
        )
    promote_ticket(ticket)


# ──────────────────────
# 叫下一號
# ──────────────────────
def _advance(doctor_id, caller):
    doctor = lock_doctor(doctor_id)

    tickets = (
        VisitTicket.objects
        .select_for_update()
        .filter(doctor=doctor)
        .order_by("number")
    )

    # 1. 現在 current 的號碼先當作看完
    retired = tickets.filter(status=Status.CURRENT).first()
    if retired:
        finish_ticket(retired)

    # 2. 找號碼最小的 waiting
    next_ticket = tickets.filter(status=Status.WAITING).first()
    if next_ticket is None:
        logger.info(
            "doctor %s: advance by %s, retired=%s, nobody waiting",
            doctor_id, caller, retired.number if retired else None,
        )
        return None

    promote_ticket(next_ticket)
    logger.info(
        "doctor %s: advance by %s, retired=%s, now serving #%d",
        doctor_id, caller, retired.number if retired else None, next_ticket.number,
    )
    return next_ticket


def advance(doctor_id, caller=SYSTEM) -> Optional[VisitTicket]:
    """
    叫下一號：把 current 改成 completed，再把最小號的 waiting 改成 current。
    整段在同一個交易裡，外面看不到「兩張 current」或「號碼跳過」的中間狀態。
    沒有人候診時回傳 None。
    """
    return run_atomic(_advance, doctor_id, caller, label="advance")


# ──────────────────────
# 過號 / 完成 / 重叫
# ──────────────────────
def _skip(ticket_id, caller):
    ticket = _lock_ticket(ticket_id)
    skip_ticket(ticket)
    logger.info("doctor %s: #%d skipped by %s", ticket.doctor_id, ticket.number, caller)
    return ticket


def skip(ticket_id, caller=SYSTEM) -> VisitTicket:
    """
    過號。只改這一張，不會自動叫下一號，要叫下一位請再呼叫 advance。
    """
    return run_atomic(_skip, ticket_id, caller, label="skip")


def _complete(appointment_id, caller):
    doctor_id = (
        Appointment.objects
        .filter(pk=appointment_id)
        .values_list("doctor_id", flat=True)
        .first()
    )
    if doctor_id is None:
        raise NotFoundError(f"找不到掛號單 {appointment_id}", appointment_id=appointment_id)
    lock_doctor(doctor_id)

    ticket = VisitTicket.objects.select_for_update().filter(appointment_id=appointment_id).first()
    if ticket is None:
        raise NotFoundError(
            f"掛號單 {appointment_id} 沒有對應的號碼牌", appointment_id=appointment_id
        )
    finish_ticket(ticket)
    logger.info("doctor %s: #%d completed by %s", doctor_id, ticket.number, caller)
    return ticket


def complete(appointment_id, caller=SYSTEM) -> VisitTicket:
    """從掛號單那一側結束看診：找出對應的號碼牌，current -> completed"""
    return run_atomic(_complete, appointment_id, caller, label="complete")


def _set_status(ticket_id, status, caller):
    ticket = _lock_ticket(ticket_id)
    if status == ticket.status:
        return ticket

    if status == Status.COMPLETED:
        finish_ticket(ticket)
    elif status == Status.SKIPPED:
        skip_ticket(ticket)
    elif status == Status.CURRENT:
        claim_current(ticket)
    else:
        _require_transition(ticket, status)

    logger.info(
        "doctor %s: #%d set to %s by %s", ticket.doctor_id, ticket.number, status, caller
    )
    return ticket


def set_status(ticket_id, status, caller=SYSTEM) -> VisitTicket:
    """櫃台叫號畫面的單筆狀態修改，一樣照狀態機檢查"""
    try:
        status = Status(status)
    except ValueError:
        raise InvalidStateError(f"不合法的狀態值：{status}", status=status)
    return run_atomic(_set_status, ticket_id, status, caller, label="set_status")


def _repeat_call(doctor_id, caller):
    lock_doctor(doctor_id)
    ticket = (
        VisitTicket.objects
        .select_for_update()
        .filter(doctor_id=doctor_id, status=Status.CURRENT)
        .first()
    )
    if ticket is None:
        raise InvalidStateError("目前沒有正在叫的號碼", doctor_id=doctor_id)

    ticket.call_count = F("call_count") + 1
    ticket.called_at = timezone.now()
    ticket.save(update_fields=["call_count", "called_at"])
    ticket.refresh_from_db(fields=["call_count"])
    logger.info("doctor %s: #%d called again by %s", doctor_id, ticket.number, caller)
    return ticket


def repeat_call(doctor_id, caller=SYSTEM) -> VisitTicket:
    """同一個號碼再叫一次（看板重新顯示），狀態不變"""
    return run_atomic(_repeat_call, doctor_id, caller, label="repeat_call")
