import json

from django.contrib.auth.decorators import user_passes_test
from django.core.exceptions import ValidationError

from .context import caller_from_user


def group_required(*group_names):
    """
    只讓指定群組的使用者進來，例如 @group_required("DOCTOR", "RECEPTION")。
    superuser 一律放行。
    """

    def check(u):
        if not u.is_authenticated:
            return False
        if u.is_superuser:
            return True
        return u.groups.filter(name__in=group_names).exists()

    def decorator(view_func):
        return user_passes_test(check)(view_func)

    return decorator


def request_caller(request):
    return caller_from_user(getattr(request, "user", None))


def read_payload(request):
    """JSON body 或一般表單都吃，回傳 dict"""
    content_type = request.content_type or ""
    if content_type.startswith("application/json"):
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except ValueError:
            raise ValidationError("JSON 格式錯誤")
        if not isinstance(data, dict):
            raise ValidationError("JSON 內容必須是物件")
        return data
    return request.POST.dict()


def parse_bool(value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValidationError(f"無法辨識的布林值：{value}")
