from django.db import models
from django.utils import timezone

from doctors.models import Doctor
from patients.models import Patient


class Appointment(models.Model):
    class Status(models.TextChoices):
        WAITING = "waiting", "候診"
        IN_PROGRESS = "in-progress", "看診中"
        COMPLETED = "completed", "已完成"
        CANCELLED = "cancelled", "已取消"

    # 狀態可以往哪裡走；completed / cancelled 是終點
    # completed 只能從 in-progress 來
    TRANSITIONS = {
        Status.WAITING: {Status.IN_PROGRESS, Status.CANCELLED},
        Status.IN_PROGRESS: {Status.COMPLETED, Status.CANCELLED},
        Status.COMPLETED: set(),
        Status.CANCELLED: set(),
    }
    ACTIVE_STATUSES = (Status.WAITING, Status.IN_PROGRESS)

    CREATED_BY_PATIENT = "patient"
    CREATED_BY_RECEPTIONIST = "receptionist"
    CREATED_BY_CHOICES = [
        (CREATED_BY_PATIENT, "病人自助"),
        (CREATED_BY_RECEPTIONIST, "櫃台"),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name="appointments")
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name="appointments")

    # 跟 VisitTicket.number 同一個交易寫入，之後不再改
    queue_number = models.PositiveIntegerField("號碼", editable=False)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.WAITING)
    created_by = models.CharField(max_length=20, choices=CREATED_BY_CHOICES, default=CREATED_BY_PATIENT)
    appointment_date = models.DateField("看診日期", default=timezone.localdate)

    # 前端重送同一張掛號單時，用這個認出是同一筆
    idempotency_key = models.CharField(max_length=64, unique=True, null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["doctor", "queue_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["doctor", "queue_number"],
                name="appointment_unique_queue_number_per_doctor",
            ),
        ]

    def __str__(self):
        return f"{self.appointment_date} {self.doctor} #{self.queue_number} {self.patient}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def can_transition_to(self, status):
        return status in self.TRANSITIONS[self.Status(self.status)]
