import re

from django.db import models


class Patient(models.Model):
    GENDER_MALE = "male"
    GENDER_FEMALE = "female"
    GENDER_OTHER = "other"
    GENDER_CHOICES = [
        (GENDER_MALE, "男"),
        (GENDER_FEMALE, "女"),
        (GENDER_OTHER, "其他 / 不透露"),
    ]

    # ─── 基本資料 ───
    full_name = models.CharField("姓名", max_length=50)
    # 電話是訪客 / 現場掛號的識別鍵，同一支電話只會有一筆病人
    phone = models.CharField("電話", max_length=20, unique=True)
    age = models.PositiveIntegerField("年齡", null=True, blank=True)
    gender = models.CharField("性別", max_length=6, choices=GENDER_CHOICES, blank=True)
    problem = models.TextField("主訴", blank=True)
    is_guest = models.BooleanField("訪客", default=True)

    # ─── 系統欄位 ───
    chart_no = models.CharField(
        "病歷號",
        max_length=20,
        unique=True,
        blank=True,
        editable=False,
    )
    created_at = models.DateTimeField("建立時間", auto_now_add=True)
    updated_at = models.DateTimeField("最後更新時間", auto_now=True)

    class Meta:
        verbose_name = "病人"
        verbose_name_plural = "病人"
        ordering = ["chart_no"]

    def __str__(self):
        return f"{self.chart_no} {self.full_name}"

    def save(self, *args, **kwargs):
        # 只在「沒有病歷號」的情況下自動產生
        if not self.chart_no:
            self.chart_no = self._generate_chart_no()
        super().save(*args, **kwargs)

    @staticmethod
    def _generate_chart_no():
        """
        找出目前最大尾碼 → +1 → P001, P002, P003...
        兩個交易同時算到同一號時，unique 會擋下來，由外層交易重試。
        """
        last = Patient.objects.order_by("-id").first()
        if not last or not last.chart_no:
            num = 1
        else:
            m = re.search(r"(\d+)$", last.chart_no or "")
            if m:
                num = int(m.group(1)) + 1
            else:
                num = (last.id or 0) + 1
        return f"P{num:03d}"
