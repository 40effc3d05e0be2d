from unittest import mock

import pytest
from django.db import DatabaseError, IntegrityError, InterfaceError, OperationalError
from django.db.models import F

from common import retry
from common.errors import ConflictError, InvalidStateError, StoreUnavailableError, TicketAllocationFailed
from doctors.models import Doctor


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__(pgcode)
        self.pgcode = pgcode


def _operational(message, pgcode=None):
    exc = OperationalError(message)
    if pgcode:
        exc.__cause__ = _PgError(pgcode)
    return exc


class TestClassify:
    @pytest.mark.parametrize(
        "exc",
        [
            IntegrityError("UNIQUE constraint failed"),
            _operational("database is locked"),
            _operational("deadlock detected", pgcode="40P01"),
            _operational("could not serialize access", pgcode="40001"),
            _operational("lock wait", pgcode="55P03"),
        ],
    )
    def test_conflicts(self, exc):
        assert isinstance(retry.classify_db_error(exc), ConflictError)

    @pytest.mark.parametrize(
        "exc",
        [
            _operational("could not connect to server"),
            InterfaceError("connection already closed"),
            DatabaseError("disk I/O error"),
        ],
    )
    def test_store_unavailable(self, exc):
        assert isinstance(retry.classify_db_error(exc), StoreUnavailableError)

    def test_other_exceptions_are_left_alone(self):
        assert retry.classify_db_error(ValueError("x")) is None


def test_backoff_is_capped():
    for attempt in range(1, 10):
        delay = retry.backoff_delay(attempt, 0.02, 0.5)
        assert 0 < delay <= 0.75


def test_retry_policy_from_settings(settings):
    settings.CLINICQUEUE_RETRY = {"ATTEMPTS": 9}
    policy = retry.retry_policy()
    assert policy["ATTEMPTS"] == 9
    assert policy["BASE_DELAY"] == retry.DEFAULT_RETRY["BASE_DELAY"]


@pytest.mark.django_db(transaction=True)
class TestRunAtomic:
    def test_returns_result(self):
        assert retry.run_atomic(lambda a, b: a + b, 1, b=2) == 3

    def test_retries_conflicts_then_succeeds(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("database is locked")
            return "ok"

        assert retry.run_atomic(flaky) == "ok"
        assert len(calls) == 3

    def test_gives_up_with_given_error(self, settings):
        settings.CLINICQUEUE_RETRY = {"ATTEMPTS": 3, "BASE_DELAY": 0, "MAX_DELAY": 0}
        func = mock.Mock(side_effect=IntegrityError("dup"))

        with pytest.raises(TicketAllocationFailed) as excinfo:
            retry.run_atomic(func, conflict_error=TicketAllocationFailed, label="book")

        assert func.call_count == 3
        assert excinfo.value.details == {"attempts": 3}

    def test_failed_attempt_is_rolled_back(self):
        doctor = Doctor.objects.create(name="王大同")
        calls = []

        def bump():
            Doctor.objects.filter(pk=doctor.pk).update(last_queue_number=F("last_queue_number") + 5)
            calls.append(1)
            if len(calls) == 1:
                raise ConflictError("lost the race")

        retry.run_atomic(bump)

        doctor.refresh_from_db()
        assert doctor.last_queue_number == 5

    def test_domain_errors_are_not_retried(self):
        func = mock.Mock(side_effect=InvalidStateError("nope"))
        with pytest.raises(InvalidStateError):
            retry.run_atomic(func)
        assert func.call_count == 1

    def test_store_failure_is_not_retried(self):
        func = mock.Mock(side_effect=OperationalError("unable to open database file"))
        with pytest.raises(StoreUnavailableError):
            retry.run_atomic(func)
        assert func.call_count == 1


@pytest.mark.django_db
def test_nested_call_raises_mapped_error_without_retry():
    func = mock.Mock(side_effect=IntegrityError("dup"))
    with pytest.raises(ConflictError):
        retry.run_atomic(func)
    assert func.call_count == 1
