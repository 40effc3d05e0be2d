"""
交易重試工具。

叫號、掛號、取號這三種操作一定要在單一交易裡完成；
搶輸了（鎖衝突、唯一鍵衝突）就整筆 rollback，退避一下再重來。
"""
from __future__ import annotations

import logging
import random
import time

from django.conf import settings
from django.db import (
    DatabaseError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    connection,
    transaction,
)

from .errors import ConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_RETRY = {
    "ATTEMPTS": 5,
    "BASE_DELAY": 0.02,
    "MAX_DELAY": 0.5,
}

# PostgreSQL: serialization_failure / deadlock_detected / lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}
CONFLICT_MARKERS = ("locked", "deadlock", "could not serialize", "lock timeout")


def retry_policy():
    policy = dict(DEFAULT_RETRY)
    policy.update(getattr(settings, "CLINICQUEUE_RETRY", {}) or {})
    return policy


def backoff_delay(attempt, base_delay, max_delay):
    """第 attempt 次失敗後要睡多久（指數退避 + jitter）"""
    delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
    return delay * random.uniform(0.5, 1.5)


def classify_db_error(exc):
    """
    把 Django 的資料庫例外轉成叫號核心的例外。
    回傳 ConflictError / StoreUnavailableError 的實例，認不得就回 None。
    """
    if isinstance(exc, IntegrityError):
        return ConflictError(f"寫入衝突：{exc}")

    if isinstance(exc, OperationalError):
        cause = exc.__cause__
        sqlstate = getattr(cause, "pgcode", None) or getattr(cause, "sqlstate", None)
        message = str(exc).lower()
        if sqlstate in CONFLICT_SQLSTATES or any(m in message for m in CONFLICT_MARKERS):
            return ConflictError(f"交易衝突：{exc}")
        return StoreUnavailableError(f"資料庫無法使用：{exc}")

    if isinstance(exc, InterfaceError):
        return StoreUnavailableError(f"資料庫連線中斷：{exc}")

    if isinstance(exc, DatabaseError):
        return StoreUnavailableError(f"資料庫錯誤：{exc}")

    return None


def run_atomic(func, *args, conflict_error=ConflictError, label=None, **kwargs):
    """
    在 transaction.atomic() 裡執行 func，遇到衝突就重試。

    - 已經在別人的交易裡（巢狀呼叫）：只開 savepoint，錯誤直接往外丟，
      由最外層那一個 run_atomic 負責整筆重來。
    - 最外層：ConflictError 最多重試 ATTEMPTS 次，用完丟 conflict_error；
      其他錯誤（NotFound / InvalidState / 資料庫掛掉）一律不重試。
    """
    label = label or getattr(func, "__name__", "atomic")

    if connection.in_atomic_block:
        try:
            with transaction.atomic():
                return func(*args, **kwargs)
        except DatabaseError as exc:
            mapped = classify_db_error(exc)
            if mapped is None:
                raise
            raise mapped from exc

    policy = retry_policy()
    attempts = max(1, int(policy["ATTEMPTS"]))
    last_error = None

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return func(*args, **kwargs)
        except ConflictError as exc:
            last_error = exc
        except DatabaseError as exc:
            mapped = classify_db_error(exc)
            if not isinstance(mapped, ConflictError):
                if mapped is None:
                    raise
                logger.error("%s: store unavailable: %s", label, exc)
                raise mapped from exc
            last_error = mapped

        if attempt < attempts:
            delay = backoff_delay(attempt, policy["BASE_DELAY"], policy["MAX_DELAY"])
            logger.info(
                "%s: conflict on attempt %d/%d (%s), retrying in %.3fs",
                label, attempt, attempts, last_error, delay,
            )
            time.sleep(delay)

    logger.warning("%s: giving up after %d attempts: %s", label, attempts, last_error)
    raise conflict_error(
        f"{label} 重試 {attempts} 次仍然衝突",
        attempts=attempts,
    ) from last_error
