"""
即時看板。

從號碼牌算出畫面要的東西（目前號碼、候診人數、預估等候），
號碼牌 / 掛號單 / 醫師一有變動（交易 commit 之後）就推給訂閱的人：
病人查詢頁、櫃台、醫師面板、掛號頁的醫師清單、候診區大螢幕。

推播是 at-least-once：同一個狀態不會重複推，但訂閱端要能接受
「先收到舊的、再收到新的」；最後收到的一定是最新狀態。
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver
from django.utils import timezone

from appointments.models import Appointment
from appointments.services import active_for_patient, appointments_for_doctor
from doctors.models import Doctor
from doctors.services import active_doctors, available_doctors, get_doctor
from patients.forms import normalize_phone

from .models import VisitTicket
from .services import current_number
from .waits import estimate_wait, people_ahead

logger = logging.getLogger(__name__)

Status = VisitTicket.Status


# ──────────────────────
# 畫面用的資料
# ──────────────────────
@dataclass(frozen=True)
class TicketView:
    id: int
    number: int
    status: str
    patient_name: str
    appointment_id: int
    created_at: datetime

    def as_dict(self):
        return {
            "id": self.id,
            "number": self.number,
            "status": self.status,
            "patient_name": self.patient_name,
            "appointment_id": self.appointment_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class QueueSnapshot:
    doctor_id: int
    current_number: int
    waiting_count: int
    estimated_wait: str
    is_available: bool
    next_number: Optional[int] = None
    entries: tuple = ()

    def as_dict(self, include_entries=True):
        data = {
            "doctor_id": self.doctor_id,
            "current_number": self.current_number,
            "next_number": self.next_number,
            "waiting_count": self.waiting_count,
            "estimated_wait": self.estimated_wait,
            "is_available": self.is_available,
        }
        if include_entries:
            data["entries"] = [e.as_dict() for e in self.entries]
        return data


@dataclass(frozen=True)
class PatientQueueStatus:
    appointment_id: int
    doctor_id: int
    doctor_name: str
    queue_number: int
    status: str
    current_number: int
    people_ahead: int
    estimated_wait: str

    def as_dict(self):
        return {
            "appointment_id": self.appointment_id,
            "doctor_id": self.doctor_id,
            "doctor_name": self.doctor_name,
            "queue_number": self.queue_number,
            "status": self.status,
            "current_number": self.current_number,
            "people_ahead": self.people_ahead,
            "estimated_wait": self.estimated_wait,
        }


@dataclass(frozen=True)
class DoctorSummary:
    doctor_id: int
    name: str
    department: str
    room: str
    is_available: bool
    current_number: int
    waiting_count: int
    estimated_wait: str

    def as_dict(self):
        return {
            "doctor_id": self.doctor_id,
            "name": self.name,
            "department": self.department,
            "room": self.room,
            "is_available": self.is_available,
            "current_number": self.current_number,
            "waiting_count": self.waiting_count,
            "estimated_wait": self.estimated_wait,
        }


@dataclass(frozen=True)
class AppointmentView:
    id: int
    queue_number: int
    status: str
    patient_id: int
    patient_name: str
    created_by: str
    appointment_date: date

    def as_dict(self):
        return {
            "id": self.id,
            "queue_number": self.queue_number,
            "status": self.status,
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "created_by": self.created_by,
            "appointment_date": self.appointment_date.isoformat(),
        }


def snapshot(doctor_id, bands=None) -> QueueSnapshot:
    """
    一次查出這位醫師全部號碼牌再算，目前號碼跟候診人數一定是同一個時間點的。
    """
    doctor = get_doctor(doctor_id)
    tickets = list(
        VisitTicket.objects
        .filter(doctor_id=doctor.pk)
        .select_related("patient")
        .order_by("number")
    )

    current = 0
    waiting = []
    for t in tickets:
        if t.status == Status.CURRENT:
            current = t.number
        elif t.status == Status.WAITING:
            waiting.append(t.number)

    entries = tuple(
        TicketView(
            id=t.pk,
            number=t.number,
            status=t.status,
            patient_name=t.patient.full_name,
            appointment_id=t.appointment_id,
            created_at=t.created_at,
        )
        for t in tickets
    )
    return QueueSnapshot(
        doctor_id=doctor.pk,
        current_number=current,
        waiting_count=len(waiting),
        estimated_wait=estimate_wait(len(waiting), bands),
        is_available=doctor.is_available,
        next_number=waiting[0] if waiting else None,
        entries=entries,
    )


def current_number_view(doctor_id) -> int:
    get_doctor(doctor_id)
    return current_number(doctor_id)


def patient_statuses(phone, bands=None) -> list:
    """
    某支電話目前還沒結束的掛號（新的在前）。
    people_ahead 是跟目前號碼的差；預估等候只算前面真的還在候診的人。
    """
    appointments = active_for_patient(phone)

    doctor_ids = {a.doctor_id for a in appointments}
    currents = {}
    waiting = {}
    rows = (
        VisitTicket.objects
        .filter(doctor_id__in=doctor_ids, status__in=[Status.WAITING, Status.CURRENT])
        .values_list("doctor_id", "status", "number")
    )
    for doctor_id, status, number in rows:
        if status == Status.CURRENT:
            currents[doctor_id] = number
        else:
            waiting.setdefault(doctor_id, []).append(number)

    result = []
    for appt in appointments:
        current = currents.get(appt.doctor_id, 0)
        waiting_before = sum(1 for n in waiting.get(appt.doctor_id, ()) if n < appt.queue_number)
        result.append(
            PatientQueueStatus(
                appointment_id=appt.pk,
                doctor_id=appt.doctor_id,
                doctor_name=appt.doctor.name,
                queue_number=appt.queue_number,
                status=appt.status,
                current_number=current,
                people_ahead=people_ahead(appt.queue_number, current),
                estimated_wait=estimate_wait(waiting_before, bands),
            )
        )
    return result


def list_doctors(available_only=False, bands=None) -> list:
    """掛號頁 / 大螢幕用的醫師清單，附上目前號碼與候診人數"""
    doctors = available_doctors() if available_only else active_doctors()

    counts = {}
    currents = {}
    rows = (
        VisitTicket.objects
        .filter(doctor__in=doctors, status__in=[Status.WAITING, Status.CURRENT])
        .values_list("doctor_id", "status", "number")
    )
    for doctor_id, status, number in rows:
        if status == Status.CURRENT:
            currents[doctor_id] = number
        else:
            counts[doctor_id] = counts.get(doctor_id, 0) + 1

    return [
        DoctorSummary(
            doctor_id=d.pk,
            name=d.name,
            department=d.department,
            room=d.room,
            is_available=d.is_available,
            current_number=currents.get(d.pk, 0),
            waiting_count=counts.get(d.pk, 0),
            estimated_wait=estimate_wait(counts.get(d.pk, 0), bands),
        )
        for d in doctors
    ]


def doctor_appointments(doctor_id, day=None) -> tuple:
    """醫師面板：某一天（預設今天）的掛號，照號碼排"""
    get_doctor(doctor_id)
    return tuple(
        AppointmentView(
            id=a.pk,
            queue_number=a.queue_number,
            status=a.status,
            patient_id=a.patient_id,
            patient_name=a.patient.full_name,
            created_by=a.created_by,
            appointment_date=a.appointment_date,
        )
        for a in appointments_for_doctor(doctor_id, day or timezone.localdate())
    )


# ──────────────────────
# 訂閱 / 推播
# ──────────────────────
_UNSET = object()


class _Subscription:
    def __init__(self, topic, callback, project):
        self.topic = topic
        self.callback = callback
        self.project = project
        self.last = _UNSET

    def deliver(self):
        value = self.project()
        if value == self.last:
            return
        self.last = value
        self.callback(value)


class QueueHub:
    """
    訂閱表。topic 是：
      ("queue", doctor_id) / ("current", doctor_id) / ("appointments", doctor_id, day)
      ("patient", phone) / ("doctors", available_only)

    publish 會在 commit 之後、由做寫入的那個執行緒呼叫；同一時間只有一個
    publish 在算，所以後算的一定是比較新的狀態。
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subs = {}

    def subscribe(self, topic, callback: Callable, project: Callable) -> Callable[[], None]:
        sub = _Subscription(topic, callback, project)
        with self._lock:
            # 訂閱當下先推一次目前狀態
            sub.deliver()
            self._subs.setdefault(topic, []).append(sub)

        def unsubscribe():
            with self._lock:
                subs = self._subs.get(topic, [])
                if sub in subs:
                    subs.remove(sub)
                if not subs:
                    self._subs.pop(topic, None)

        return unsubscribe

    def subscriber_count(self, topic=None):
        with self._lock:
            if topic is not None:
                return len(self._subs.get(topic, []))
            return sum(len(v) for v in self._subs.values())

    def publish_doctor(self, doctor_id):
        with self._lock:
            targets = []
            for topic, subs in self._subs.items():
                kind = topic[0]
                if kind in ("queue", "current", "appointments") and topic[1] == doctor_id:
                    targets += subs
                elif kind in ("patient", "doctors"):
                    # 病人的「前面幾人」、醫師清單的候診人數也可能跟著變
                    targets += subs
            for sub in targets:
                self._deliver(sub)

    def _deliver(self, sub):
        try:
            sub.deliver()
        except Exception:
            logger.exception("queue subscriber %s failed", sub.topic)

    def clear(self):
        with self._lock:
            self._subs.clear()


hub = QueueHub()


def subscribe_queue(doctor_id, on_update, bands=None):
    get_doctor(doctor_id)
    return hub.subscribe(("queue", int(doctor_id)), on_update, lambda: snapshot(doctor_id, bands))


def subscribe_current_number(doctor_id, on_update):
    get_doctor(doctor_id)
    return hub.subscribe(("current", int(doctor_id)), on_update, lambda: current_number_view(doctor_id))


def subscribe_patient_status(phone, on_update, bands=None):
    phone = normalize_phone(phone)
    return hub.subscribe(("patient", phone), on_update, lambda: patient_statuses(phone, bands))


def subscribe_doctors(on_update, available_only=False, bands=None):
    """掛號頁的醫師清單；醫師上線 / 離線或候診人數變了就推"""
    available_only = bool(available_only)
    return hub.subscribe(
        ("doctors", available_only), on_update, lambda: list_doctors(available_only, bands)
    )


def subscribe_doctor_appointments(doctor_id, on_update, day=None):
    """醫師面板的今日掛號；day 沒給就跟著當天日期走"""
    get_doctor(doctor_id)
    return hub.subscribe(
        ("appointments", int(doctor_id), day), on_update, lambda: doctor_appointments(doctor_id, day)
    )


@receiver(post_save, sender=VisitTicket, dispatch_uid="queues.live.ticket_saved")
@receiver(post_delete, sender=VisitTicket, dispatch_uid="queues.live.ticket_deleted")
@receiver(post_save, sender=Appointment, dispatch_uid="queues.live.appointment_saved")
@receiver(post_save, sender=Doctor, dispatch_uid="queues.live.doctor_saved")
def queue_changed(sender, instance, **kwargs):
    doctor_id = instance.pk if sender is Doctor else instance.doctor_id
    transaction.on_commit(lambda: hub.publish_doctor(doctor_id))
