import pytest
from django.contrib.auth.models import User
from django.core.management import call_command

from common.errors import NotFoundError
from doctors import services
from doctors.management.commands.seed_doctors import DEMO_DOCTORS
from doctors.models import Doctor


@pytest.mark.django_db
class TestServices:
    def test_availability(self, doctor, other_doctor):
        services.set_doctor_availability(doctor.pk, False)
        doctor.refresh_from_db()
        assert doctor.is_available is False
        assert services.available_doctors() == [other_doctor]

        services.set_doctor_availability(doctor.pk, True)
        assert len(services.available_doctors()) == 2

    def test_inactive_doctor_is_not_available(self, doctor):
        doctor.is_active = False
        doctor.save()
        assert services.available_doctors() == []

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFoundError):
            services.set_doctor_availability(404, True)


@pytest.mark.django_db
class TestViews:
    def test_doctor_list(self, client, doctor, other_doctor):
        services.set_doctor_availability(other_doctor.pk, False)

        everyone = client.get("/doctors/").json()["doctors"]
        available = client.get("/doctors/", {"available": "1"}).json()["doctors"]

        assert [d["doctor_id"] for d in everyone] == [doctor.pk, other_doctor.pk]
        assert [d["doctor_id"] for d in available] == [doctor.pk]

    def test_doctor_goes_offline(self, doctor_client, doctor):
        resp = doctor_client.post(
            f"/doctors/{doctor.pk}/availability/",
            {"available": False},
            content_type="application/json",
        )
        assert resp.json() == {"doctor_id": doctor.pk, "is_available": False}

    def test_missing_flag(self, doctor_client, doctor):
        resp = doctor_client.post(
            f"/doctors/{doctor.pk}/availability/", {}, content_type="application/json"
        )
        assert resp.status_code == 400

    def test_anonymous(self, client, doctor):
        assert client.post(f"/doctors/{doctor.pk}/availability/", {"available": "0"}).status_code == 302


@pytest.mark.django_db
class TestSeedDoctors:
    def test_creates_doctors_and_accounts(self):
        call_command("seed_doctors", "--password", "secret")

        assert Doctor.objects.count() == len(DEMO_DOCTORS)
        user = User.objects.get(username="dr.chen")
        assert user.check_password("secret")
        assert user.groups.filter(name="DOCTOR").exists()
        assert Doctor.objects.get(user=user).name == "陳志明"

    def test_is_idempotent(self):
        call_command("seed_doctors")
        call_command("seed_doctors")
        assert Doctor.objects.count() == len(DEMO_DOCTORS)

    def test_without_accounts(self):
        call_command("seed_doctors", "--no-users")
        assert not User.objects.exists()
        assert Doctor.objects.filter(user__isnull=True).count() == len(DEMO_DOCTORS)
