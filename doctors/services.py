from __future__ import annotations

import logging

from common.context import SYSTEM
from common.errors import NotFoundError

from .models import Doctor

logger = logging.getLogger(__name__)


def get_doctor(doctor_id) -> Doctor:
    try:
        return Doctor.objects.get(pk=doctor_id)
    except Doctor.DoesNotExist:
        raise NotFoundError(f"找不到醫師 {doctor_id}", doctor_id=doctor_id)


def set_doctor_availability(doctor_id, available, caller=SYSTEM) -> Doctor:
    """
    醫師上線 / 離線。只影響之後的新掛號，已經在候診的人照常叫號。
    單一欄位的寫入，不需要交易。
    """
    doctor = get_doctor(doctor_id)
    available = bool(available)
    if doctor.is_available != available:
        doctor.is_available = available
        doctor.save(update_fields=["is_available"])
        logger.info("doctor %s: availability -> %s by %s", doctor.pk, available, caller)
    return doctor


def active_doctors():
    return list(Doctor.objects.filter(is_active=True).order_by("id"))


def available_doctors():
    """開放掛號中的醫師（掛號頁只列這些）"""
    return list(Doctor.objects.filter(is_active=True, is_available=True).order_by("id"))
