from django.db import models
from django.db.models import Q
from django.utils import timezone
from patients.models import Patient
from doctors.models import Doctor
from appointments.models import Appointment


class VisitTicket(models.Model):
    class Status(models.TextChoices):
        WAITING = "waiting", "候診"
        CURRENT = "current", "看診中"
        COMPLETED = "completed", "完成"
        SKIPPED = "skipped", "過號"

    # 號碼牌狀態機：waiting -> current -> completed / skipped
    # skipped 不會回到 waiting
    TRANSITIONS = {
        Status.WAITING: {Status.CURRENT, Status.SKIPPED},
        Status.CURRENT: {Status.COMPLETED, Status.SKIPPED},
        Status.COMPLETED: set(),
        Status.SKIPPED: set(),
    }
    TERMINAL_STATUSES = (Status.COMPLETED, Status.SKIPPED)

    appointment = models.OneToOneField(
        Appointment,
        on_delete=models.PROTECT,
        related_name="ticket",
    )
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE)
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name="tickets")

    number = models.PositiveIntegerField("號碼", editable=False)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.WAITING,
    )

    created_at = models.DateTimeField(default=timezone.now)
    called_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    call_count = models.PositiveIntegerField(default=0)  # 被叫了幾次

    class Meta:
        # 叫號順序只看 number，created_at 只拿來當次排序
        ordering = ["doctor", "number", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["doctor", "number"],
                name="ticket_unique_number_per_doctor",
            ),
            # 同一位醫師同時最多一張 current
            models.UniqueConstraint(
                fields=["doctor"],
                condition=Q(status="current"),
                name="ticket_single_current_per_doctor",
            ),
            models.CheckConstraint(
                condition=Q(number__gte=1),
                name="ticket_number_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["doctor", "status", "number"]),
        ]

    def __str__(self):
        return f"{self.doctor} #{self.number} {self.patient} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def can_transition_to(self, status):
        return status in self.TRANSITIONS[self.Status(self.status)]

    # ➤ 叫號
    def mark_called(self):
        """狀態改成 CURRENT，呼叫次數 +1，第一次叫才記 called_at"""
        self.status = self.Status.CURRENT
        self.call_count += 1
        if not self.called_at:
            self.called_at = timezone.now()
        self.save(update_fields=["status", "call_count", "called_at"])

    # ➤ 看診完成
    def mark_finished(self):
        self.status = self.Status.COMPLETED
        if not self.finished_at:
            self.finished_at = timezone.now()
        self.save(update_fields=["status", "finished_at"])

    # ➤ 過號 / 未到
    def mark_skipped(self):
        self.status = self.Status.SKIPPED
        if not self.finished_at:
            self.finished_at = timezone.now()
        self.save(update_fields=["status", "finished_at"])
