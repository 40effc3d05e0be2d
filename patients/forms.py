import re

from django import forms
from .models import Patient


def normalize_phone(phone):
    return re.sub(r"[\s\-]", "", phone or "")


class PatientForm(forms.ModelForm):
    """
    掛號時填的病人資料（病人自助 / 櫃台代填共用）。
    phone 的唯一性交給 upsert 處理，這裡只檢查格式。
    """

    class Meta:
        model = Patient

        fields = [
            "full_name",
            "phone",
            "age",
            "gender",
            "problem",
        ]

        widgets = {
            "problem": forms.Textarea(
                attrs={
                    "rows": 3,
                    "class": "form-control",
                    "placeholder": "例如：發燒、咳嗽三天",
                }
            ),
        }

    def validate_unique(self):
        # 回診病人會用同一支電話，不在表單層擋
        pass

    def clean_full_name(self):
        name = (self.cleaned_data.get("full_name") or "").strip()
        if not name:
            raise forms.ValidationError("請輸入姓名")
        return name

    def clean_phone(self):
        phone = normalize_phone(self.cleaned_data.get("phone"))
        if not re.fullmatch(r"\+?\d{6,15}", phone):
            raise forms.ValidationError("電話格式不正確")
        return phone

    def clean_age(self):
        age = self.cleaned_data.get("age")
        if age is not None and age > 150:
            raise forms.ValidationError("年齡不合理")
        return age

    def clean_problem(self):
        return (self.cleaned_data.get("problem") or "").strip()
