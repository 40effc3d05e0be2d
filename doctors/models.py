from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone


class Doctor(models.Model):
    name = models.CharField("姓名", max_length=50)
    department = models.CharField("科別", max_length=50, blank=True)
    room = models.CharField("診間", max_length=20, blank=True)
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, verbose_name="使用者帳號"
    )
    is_active = models.BooleanField("啟用", default=True)

    # 開放掛號與否（醫師自己切換上線 / 離線）
    is_available = models.BooleanField("開放掛號", default=True)

    # 取號計數器：只會往上加，由 queues.allocator 在交易內遞增
    last_queue_number = models.PositiveIntegerField("最後發出號碼", default=0, editable=False)

    # 目前看診中的號碼牌，跟 VisitTicket.status == current 同一個交易更新
    current_ticket = models.ForeignKey(
        "queues.VisitTicket",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
        verbose_name="目前看診號碼",
    )

    created_at = models.DateTimeField("建立時間", default=timezone.now)

    def __str__(self):
        return f"{self.name} / {self.department}"

    class Meta:
        verbose_name = "醫師"
        verbose_name_plural = "醫師"
        ordering = ["id"]
