from __future__ import annotations

import logging

from django.core.exceptions import ValidationError

from common.errors import NotFoundError
from common.retry import run_atomic

from .forms import PatientForm
from .models import Patient

logger = logging.getLogger(__name__)


def clean_patient_info(data) -> dict:
    """用 PatientForm 驗證掛號資料，失敗丟 ValidationError"""
    form = PatientForm(data)
    if not form.is_valid():
        raise ValidationError(
            [f"{field}: {msg}" for field, msgs in form.errors.items() for msg in msgs]
        )
    return form.cleaned_data


def save_patient_info(info, is_guest=True):
    """info 必須是 clean_patient_info 驗過的資料；要在交易裡呼叫"""
    patient, created = Patient.objects.update_or_create(
        phone=info["phone"],
        defaults={
            "full_name": info["full_name"],
            "age": info.get("age"),
            "gender": info.get("gender") or "",
            "problem": info.get("problem") or "",
        },
        create_defaults={
            "full_name": info["full_name"],
            "age": info.get("age"),
            "gender": info.get("gender") or "",
            "problem": info.get("problem") or "",
            "is_guest": is_guest,
        },
    )
    if created:
        logger.info("patient %s created (phone=%s)", patient.chart_no, patient.phone)
    else:
        logger.info("patient %s updated (phone=%s)", patient.chart_no, patient.phone)
    return patient


def upsert_patient(info, is_guest=True) -> Patient:
    """
    依電話建立或更新病人。
    同一支電話再來掛號時，覆寫姓名 / 年齡 / 性別 / 主訴，不會多一筆。
    """
    info = clean_patient_info(info)
    return run_atomic(save_patient_info, info, is_guest, label="upsert_patient")


def get_patient(patient_id) -> Patient:
    try:
        return Patient.objects.get(pk=patient_id)
    except Patient.DoesNotExist:
        raise NotFoundError(f"找不到病人 {patient_id}", patient_id=patient_id)
