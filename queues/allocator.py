"""
取號。

號碼存在 Doctor.last_queue_number，用 UPDATE ... SET n = n + 1 在交易內遞增，
再讀回來。先寫後讀，同一位醫師的取號一定排隊，不會有兩個人拿到同一號。

不要改回「先查 Max(number) 再 +1」：兩次來回之間別人也可以查到同一個 Max。
"""
from __future__ import annotations

import logging

from django.db.models import F

from common.errors import NotFoundError, TicketAllocationFailed
from common.retry import run_atomic
from doctors.models import Doctor

logger = logging.getLogger(__name__)


def _allocate(doctor_id) -> int:
    updated = Doctor.objects.filter(pk=doctor_id).update(
        last_queue_number=F("last_queue_number") + 1
    )
    if not updated:
        raise NotFoundError(f"找不到醫師 {doctor_id}", doctor_id=doctor_id)

    number = (
        Doctor.objects
        .filter(pk=doctor_id)
        .values_list("last_queue_number", flat=True)
        .get()
    )
    logger.debug("doctor %s: issued ticket #%d", doctor_id, number)
    return number


def next_ticket(doctor_id) -> int:
    """
    發給 doctor_id 下一個號碼。

    在別人的交易裡呼叫時（例如掛號），號碼跟著那個交易一起 commit / rollback；
    單獨呼叫時自己開交易，衝突重試用完丟 TicketAllocationFailed。
    """
    return run_atomic(
        _allocate,
        doctor_id,
        conflict_error=TicketAllocationFailed,
        label="next_ticket",
    )
