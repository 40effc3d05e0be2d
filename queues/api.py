"""
給各個畫面（病人、櫃台、醫師、大螢幕）呼叫的入口。

同步版本直接呼叫；a 開頭的是 async 版本，在 thread pool 裡跑同步核心，
每個呼叫各自用自己的資料庫連線，互相之間靠交易保證一致。
"""
from __future__ import annotations

import asyncio

from asgiref.sync import sync_to_async

from appointments import services as appointment_services
from common.context import SYSTEM
from doctors import services as doctor_services

from . import live
from . import services as queue_services


def book_appointment(patient_info, doctor_id, caller=SYSTEM, idempotency_key=None):
    return appointment_services.book_appointment(
        patient_info, doctor_id, caller=caller, idempotency_key=idempotency_key
    )


def advance_queue(doctor_id, caller=SYSTEM):
    return queue_services.advance(doctor_id, caller=caller)


def skip_entry(ticket_id, caller=SYSTEM):
    return queue_services.skip(ticket_id, caller=caller)


def complete_appointment(appointment_id, caller=SYSTEM):
    return queue_services.complete(appointment_id, caller=caller)


def set_doctor_availability(doctor_id, available, caller=SYSTEM):
    return doctor_services.set_doctor_availability(doctor_id, available, caller=caller)


subscribe_queue = live.subscribe_queue
subscribe_current_number = live.subscribe_current_number
subscribe_patient_status = live.subscribe_patient_status
subscribe_doctors = live.subscribe_doctors
subscribe_doctor_appointments = live.subscribe_doctor_appointments


def _async(func):
    return sync_to_async(func, thread_sensitive=False)


abook_appointment = _async(book_appointment)
aadvance_queue = _async(advance_queue)
askip_entry = _async(skip_entry)
acomplete_appointment = _async(complete_appointment)
aset_doctor_availability = _async(set_doctor_availability)
asnapshot = _async(live.snapshot)
alist_doctors = _async(live.list_doctors)
adoctor_appointments = _async(live.doctor_appointments)


async def astream(subscribe, *args, **kwargs):
    """
    把訂閱變成 async iterator，參數照原本 subscribe_* 給，callback 由這裡接：

        async with contextlib.aclosing(astream(subscribe_queue, doctor_id)) as updates:
            async for snap in updates:
                ...

        astream(subscribe_doctors, available_only=True)

    推播是在 commit 的那個執行緒發生的，這裡用 call_soon_threadsafe 丟回 event loop。
    generator 被 aclose()（或 task 被取消）時才會取消訂閱；只 break 的話要等
    generator 被回收，所以請用 contextlib.aclosing 包起來。
    """
    loop = asyncio.get_running_loop()
    updates = asyncio.Queue()

    def push(value):
        loop.call_soon_threadsafe(updates.put_nowait, value)

    unsubscribe = await sync_to_async(subscribe, thread_sensitive=False)(
        *args, on_update=push, **kwargs
    )
    try:
        while True:
            yield await updates.get()
    finally:
        unsubscribe()
