"""
掛號單。

掛號 = 取號 + 建 Appointment + 建 VisitTicket，三件事同一個交易，
任何一步失敗整筆 rollback（號碼也不會被用掉）。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from django.utils import timezone

from common.context import ROLE_RECEPTIONIST, SYSTEM
from common.errors import (
    DoctorUnavailableError,
    InvalidStateError,
    NotFoundError,
    TicketAllocationFailed,
)
from common.retry import run_atomic
from patients.forms import normalize_phone
from patients.models import Patient
from patients.services import clean_patient_info, save_patient_info
from queues import services as queue_services
from queues.allocator import next_ticket
from queues.models import VisitTicket
from queues.waits import estimate_wait

from .models import Appointment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingResult:
    appointment_id: int
    ticket_id: int
    patient_id: int
    doctor_id: int
    queue_number: int
    estimated_wait: str
    created: bool = True

    def as_dict(self):
        return {
            "appointment_id": self.appointment_id,
            "ticket_id": self.ticket_id,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "queue_number": self.queue_number,
            "estimated_wait": self.estimated_wait,
            "created": self.created,
        }


def get_appointment(appointment_id) -> Appointment:
    try:
        return Appointment.objects.select_related("patient", "doctor").get(pk=appointment_id)
    except Appointment.DoesNotExist:
        raise NotFoundError(f"找不到掛號單 {appointment_id}", appointment_id=appointment_id)


def _created_by(caller):
    if caller.role == ROLE_RECEPTIONIST:
        return Appointment.CREATED_BY_RECEPTIONIST
    return Appointment.CREATED_BY_PATIENT


def _result(appt, ticket, created):
    # 預估等候只算前面還在候診的人（看完、過號的不算）
    ahead = queue_services.waiting_before(appt.doctor_id, appt.queue_number)
    return BookingResult(
        appointment_id=appt.pk,
        ticket_id=ticket.pk,
        patient_id=appt.patient_id,
        doctor_id=appt.doctor_id,
        queue_number=appt.queue_number,
        estimated_wait=estimate_wait(ahead),
        created=created,
    )


def _replayed(idempotency_key, patient_id, doctor_id):
    """同一個 idempotency_key 已經掛過號就回傳那一筆"""
    appt = (
        Appointment.objects
        .filter(idempotency_key=idempotency_key)
        .select_related("ticket")
        .first()
    )
    if appt is None:
        return None
    if appt.doctor_id != int(doctor_id) or (patient_id is not None and appt.patient_id != patient_id):
        raise InvalidStateError(
            "同一個 idempotency_key 已經用在另一筆掛號",
            idempotency_key=idempotency_key,
        )
    return appt


def _book(patient, doctor_id, created_by, idempotency_key, caller):
    if idempotency_key:
        existing = _replayed(idempotency_key, patient.pk, doctor_id)
        if existing is not None:
            logger.info(
                "doctor %s: booking %s replayed (#%d)",
                doctor_id, idempotency_key, existing.queue_number,
            )
            return existing, existing.ticket, False

    doctor = queue_services.lock_doctor(doctor_id)
    if not doctor.is_active or not doctor.is_available:
        raise DoctorUnavailableError(f"{doctor.name} 目前不開放掛號", doctor_id=doctor.pk)

    number = next_ticket(doctor.pk)

    appt = Appointment.objects.create(
        patient=patient,
        doctor=doctor,
        queue_number=number,
        status=Appointment.Status.WAITING,
        created_by=created_by,
        appointment_date=timezone.localdate(),
        idempotency_key=idempotency_key or None,
    )
    ticket = VisitTicket.objects.create(
        appointment=appt,
        patient=patient,
        doctor=doctor,
        number=number,
        status=VisitTicket.Status.WAITING,
    )
    logger.info(
        "doctor %s: booked #%d for patient %s by %s",
        doctor.pk, number, patient.chart_no, caller,
    )
    return appt, ticket, True


def book(patient_id, doctor_id, caller=SYSTEM, idempotency_key=None) -> BookingResult:
    """已經有病人資料時直接掛號"""

    def unit():
        try:
            patient = Patient.objects.get(pk=patient_id)
        except Patient.DoesNotExist:
            raise NotFoundError(f"找不到病人 {patient_id}", patient_id=patient_id)
        return _book(patient, doctor_id, _created_by(caller), idempotency_key, caller)

    appt, ticket, created = run_atomic(
        unit, conflict_error=TicketAllocationFailed, label="book"
    )
    return _result(appt, ticket, created)


def book_appointment(patient_info, doctor_id, caller=SYSTEM, idempotency_key=None) -> BookingResult:
    """
    病人自助 / 櫃台代掛：依電話建立或更新病人，再掛號。
    病人資料跟掛號同一個交易，掛號失敗的話病人資料也不會被改。
    """
    info = clean_patient_info(patient_info)
    is_guest = not caller.is_staff_role

    def unit():
        if idempotency_key:
            existing = _replayed(idempotency_key, None, doctor_id)
            if existing is not None:
                if existing.patient.phone != info["phone"]:
                    raise InvalidStateError(
                        "同一個 idempotency_key 已經用在另一筆掛號",
                        idempotency_key=idempotency_key,
                    )
                return existing, existing.ticket, False
        patient = save_patient_info(info, is_guest)
        return _book(patient, doctor_id, _created_by(caller), idempotency_key, caller)

    appt, ticket, created = run_atomic(
        unit, conflict_error=TicketAllocationFailed, label="book_appointment"
    )
    return _result(appt, ticket, created)


# ──────────────────────
# 狀態修改
# ──────────────────────
def _update_status(appointment_id, status, caller):
    doctor_id = (
        Appointment.objects
        .filter(pk=appointment_id)
        .values_list("doctor_id", flat=True)
        .first()
    )
    if doctor_id is None:
        raise NotFoundError(f"找不到掛號單 {appointment_id}", appointment_id=appointment_id)
    queue_services.lock_doctor(doctor_id)

    appt = Appointment.objects.select_for_update().get(pk=appointment_id)
    if appt.status == status:
        return appt
    if not appt.can_transition_to(status):
        raise InvalidStateError(
            f"掛號單 {appt.pk} 目前是 {appt.status}，不能改成 {status}",
            appointment_id=appt.pk,
            status=appt.status,
        )

    ticket = VisitTicket.objects.select_for_update().filter(appointment=appt).first()

    if status == Appointment.Status.COMPLETED:
        if ticket is None:
            raise NotFoundError(
                f"掛號單 {appt.pk} 沒有對應的號碼牌", appointment_id=appt.pk
            )
        queue_services.finish_ticket(ticket)
    elif status == Appointment.Status.IN_PROGRESS:
        # 開始看診 = 號碼牌變 current，一位醫師同時只能有一張
        if ticket is None:
            raise NotFoundError(
                f"掛號單 {appt.pk} 沒有對應的號碼牌", appointment_id=appt.pk
            )
        queue_services.claim_current(ticket)
    elif status == Appointment.Status.CANCELLED and ticket is not None and not ticket.is_terminal:
        # 取消掛號：號碼牌改成過號，不再留在候診名單
        queue_services.skip_ticket(ticket, appointment_status=Appointment.Status.CANCELLED)
    else:
        appt.status = status
        appt.save(update_fields=["status"])

    logger.info("appointment %s: %s by %s", appt.pk, status, caller)
    appt.refresh_from_db()
    return appt


def update_status(appointment_id, status, caller=SYSTEM) -> Appointment:
    """
    改掛號單狀態。
    completed 走跟 complete() 一樣的路（號碼牌一起結束），
    in-progress 會把號碼牌叫成 current（已經有人在看診就不行），
    cancelled 會把還沒結束的號碼牌改成 skipped。
    """
    try:
        status = Appointment.Status(status)
    except ValueError:
        raise InvalidStateError(f"不合法的狀態值：{status}", status=status)
    return run_atomic(_update_status, appointment_id, status, caller, label="update_status")


def complete_appointment(appointment_id, caller=SYSTEM):
    return queue_services.complete(appointment_id, caller=caller)


# ──────────────────────
# 查詢
# ──────────────────────
def active_for_patient(phone) -> list:
    """這支電話還沒結束的掛號（候診 / 看診中），新的在前"""
    return list(
        Appointment.objects
        .filter(
            patient__phone=normalize_phone(phone),
            status__in=Appointment.ACTIVE_STATUSES,
        )
        .select_related("doctor", "patient")
        .order_by("-created_at", "-id")
    )


def appointments_for_doctor(doctor_id, date=None) -> list:
    """醫師某一天的掛號，照號碼排"""
    date = date or timezone.localdate()
    return list(
        Appointment.objects
        .filter(doctor_id=doctor_id, appointment_date=date)
        .select_related("patient", "doctor")
        .order_by("queue_number")
    )


def history_for_patient(patient_id) -> list:
    """病人所有掛號紀錄（含已結束），新的在前"""
    return list(
        Appointment.objects
        .filter(patient_id=patient_id)
        .select_related("doctor")
        .order_by("-created_at", "-id")
    )
