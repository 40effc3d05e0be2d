"""
預估等候時間。

只看「前面還有幾個人在候診」，人數越多區間只會一樣或更長。
區間可以在 settings.CLINICQUEUE_WAIT_BANDS 改，也可以每次呼叫時傳 bands。
"""
from django.conf import settings

# (人數上限, 顯示文字)，None 代表以上全部
DEFAULT_WAIT_BANDS = (
    (0, "ready"),
    (2, "10-20 min"),
    (4, "20-35 min"),
    (None, "35-50 min"),
)


def wait_bands(bands=None):
    bands = bands or getattr(settings, "CLINICQUEUE_WAIT_BANDS", None) or DEFAULT_WAIT_BANDS
    previous = -1
    for upper, _label in bands:
        if upper is None:
            continue
        if upper <= previous:
            raise ValueError("CLINICQUEUE_WAIT_BANDS 的人數上限必須遞增")
        previous = upper
    if bands[-1][0] is not None:
        raise ValueError("CLINICQUEUE_WAIT_BANDS 最後一段必須是 None（以上全部）")
    return bands


def estimate_wait(count, bands=None) -> str:
    count = max(0, int(count))
    for upper, label in wait_bands(bands):
        if upper is None or count <= upper:
            return label
    raise AssertionError("unreachable")


def people_ahead(my_number, current) -> int:
    return max(0, my_number - current)
