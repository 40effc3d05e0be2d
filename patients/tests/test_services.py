import pytest
from django.core.exceptions import ValidationError

from common.errors import NotFoundError
from patients import services
from patients.forms import PatientForm, normalize_phone
from patients.models import Patient


def test_normalize_phone():
    assert normalize_phone(" 0912-345 678 ") == "0912345678"
    assert normalize_phone(None) == ""


@pytest.mark.django_db
class TestPatientForm:
    def test_cleans_fields(self, patient_info):
        form = PatientForm(patient_info(full_name="  王小明 ", phone="0912-345-678", problem=" 發燒 "))
        assert form.is_valid(), form.errors
        assert form.cleaned_data["full_name"] == "王小明"
        assert form.cleaned_data["phone"] == "0912345678"
        assert form.cleaned_data["problem"] == "發燒"

    @pytest.mark.parametrize(
        "field, value",
        [("full_name", "   "), ("phone", "12-34"), ("phone", "call me"), ("age", 200)],
    )
    def test_rejects(self, patient_info, field, value):
        form = PatientForm(patient_info(**{field: value}))
        assert not form.is_valid()
        assert field in form.errors

    def test_existing_phone_is_not_a_form_error(self, patient_info):
        services.upsert_patient(patient_info())
        assert PatientForm(patient_info()).is_valid()


@pytest.mark.django_db
class TestUpsert:
    def test_creates_guest(self, patient_info):
        patient = services.upsert_patient(patient_info())
        assert patient.is_guest is True
        assert patient.chart_no == "P001"
        assert patient.phone == "0912345678"

    def test_same_phone_updates(self, patient_info):
        first = services.upsert_patient(patient_info(full_name="王小明", problem="咳嗽"))
        second = services.upsert_patient(patient_info(full_name="王曉明", problem="頭痛", age=None))

        assert second.pk == first.pk
        assert Patient.objects.count() == 1
        second.refresh_from_db()
        assert second.full_name == "王曉明"
        assert second.problem == "頭痛"
        assert second.age is None
        assert second.chart_no == "P001"

    def test_guest_flag_is_kept_on_update(self, patient_info):
        services.upsert_patient(patient_info(), is_guest=False)
        patient = services.upsert_patient(patient_info(), is_guest=True)
        assert patient.is_guest is False

    def test_chart_numbers_increase(self, patient_info):
        chart_nos = [
            services.upsert_patient(patient_info(phone=f"09100000{i:02d}")).chart_no
            for i in range(3)
        ]
        assert chart_nos == ["P001", "P002", "P003"]

    def test_invalid_info(self, patient_info):
        with pytest.raises(ValidationError):
            services.upsert_patient(patient_info(phone=""))

    def test_lookup(self, patient_info):
        patient = services.upsert_patient(patient_info())
        assert services.get_patient(patient.pk) == patient
        with pytest.raises(NotFoundError):
            services.get_patient(patient.pk + 1)
