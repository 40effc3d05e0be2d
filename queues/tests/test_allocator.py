import pytest
from django.db import transaction

from common.errors import NotFoundError
from doctors.models import Doctor
from queues.allocator import next_ticket


@pytest.mark.django_db
class TestNextTicket:
    def test_starts_at_one_and_counts_up(self, doctor):
        assert [next_ticket(doctor.pk) for _ in range(3)] == [1, 2, 3]
        doctor.refresh_from_db()
        assert doctor.last_queue_number == 3

    def test_counters_are_per_doctor(self, doctor, other_doctor):
        assert next_ticket(doctor.pk) == 1
        assert next_ticket(doctor.pk) == 2
        assert next_ticket(other_doctor.pk) == 1

    def test_unknown_doctor(self):
        with pytest.raises(NotFoundError):
            next_ticket(999)

    def test_number_is_released_when_outer_transaction_rolls_back(self, doctor):
        with pytest.raises(RuntimeError):
            with transaction.atomic():
                assert next_ticket(doctor.pk) == 1
                raise RuntimeError("booking failed")

        assert next_ticket(doctor.pk) == 1


@pytest.mark.django_db(transaction=True)
def test_concurrent_allocation_gives_distinct_numbers(concurrently):
    doctor = Doctor.objects.create(name="王大同")

    numbers, errors = concurrently(next_ticket, [(doctor.pk,)] * 12)

    assert errors == []
    assert sorted(numbers) == list(range(1, 13))
    doctor.refresh_from_db()
    assert doctor.last_queue_number == 12
