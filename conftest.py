import threading

import pytest
from django.db import connection


@pytest.fixture(autouse=True)
def fast_retry(settings):
    settings.CLINICQUEUE_RETRY = {"ATTEMPTS": 5, "BASE_DELAY": 0.001, "MAX_DELAY": 0.01}


@pytest.fixture(autouse=True)
def clean_hub():
    from queues.live import hub

    hub.clear()
    yield
    hub.clear()


@pytest.fixture
def doctor(db):
    from doctors.models import Doctor

    return Doctor.objects.create(name="陳志明", department="家醫科", room="101")


@pytest.fixture
def other_doctor(db):
    from doctors.models import Doctor

    return Doctor.objects.create(name="林怡君", department="心臟內科", room="102")


@pytest.fixture
def patient_info():
    def make(phone="0912345678", full_name="王小明", **extra):
        data = {"full_name": full_name, "phone": phone, "age": 30, "gender": "male", "problem": "咳嗽"}
        data.update(extra)
        return data

    return make


@pytest.fixture
def groups(db):
    from django.contrib.auth.models import Group

    from common.context import GROUP_ROLES

    return {name: Group.objects.get_or_create(name=name)[0] for name in GROUP_ROLES}


@pytest.fixture
def make_user(groups):
    from django.contrib.auth.models import User

    def make(username, group=None):
        user = User.objects.create_user(username=username, password="pw")
        if group:
            user.groups.add(groups[group])
        return user

    return make


@pytest.fixture
def reception_client(client, make_user):
    client.force_login(make_user("frontdesk", "RECEPTION"))
    return client


@pytest.fixture
def doctor_client(client, make_user):
    client.force_login(make_user("dr.chen", "DOCTOR"))
    return client


def run_concurrently(func, arg_list):
    """每組參數開一個執行緒，全部到齊才一起開始；回傳 (results, errors)"""
    barrier = threading.Barrier(len(arg_list))
    results = [None] * len(arg_list)
    errors = []

    def worker(index, args):
        try:
            barrier.wait()
            results[index] = func(*args)
        except Exception as exc:
            errors.append(exc)
        finally:
            connection.close()

    threads = [
        threading.Thread(target=worker, args=(i, args))
        for i, args in enumerate(arg_list)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


@pytest.fixture
def concurrently():
    return run_concurrently
