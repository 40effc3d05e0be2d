from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


ROLE_PATIENT = "patient"
ROLE_RECEPTIONIST = "receptionist"
ROLE_DOCTOR = "doctor"
ROLE_SYSTEM = "system"

# 權限群組 → 角色
GROUP_ROLES = {
    "DOCTOR": ROLE_DOCTOR,
    "RECEPTION": ROLE_RECEPTIONIST,
    "PATIENT": ROLE_PATIENT,
}


@dataclass(frozen=True)
class Caller:
    """
    呼叫叫號核心的人是誰。

    核心不去讀 request / session，需要知道身分的地方（created_by、log）
    一律由外層明確傳進來。
    """

    role: str = ROLE_SYSTEM
    user_id: Optional[int] = None

    def __str__(self):
        if self.user_id is None:
            return self.role
        return f"{self.role}#{self.user_id}"

    @property
    def is_staff_role(self) -> bool:
        return self.role in (ROLE_DOCTOR, ROLE_RECEPTIONIST)


SYSTEM = Caller()


def caller_from_user(user) -> Caller:
    """從 Django user 的群組推出角色，沒登入就當病人自助掛號"""
    if user is None or not user.is_authenticated:
        return Caller(role=ROLE_PATIENT)

    names = set(user.groups.values_list("name", flat=True))
    # 醫師 > 櫃台 > 病人
    for group_name in ("DOCTOR", "RECEPTION", "PATIENT"):
        if group_name in names:
            return Caller(role=GROUP_ROLES[group_name], user_id=user.pk)
    return Caller(role=ROLE_PATIENT, user_id=user.pk)
