import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse

from .errors import QueueError

logger = logging.getLogger(__name__)


class QueueErrorMiddleware:
    """
    把叫號核心丟出來的例外轉成 JSON 回應，給前端畫面判斷要不要顯示「重試」。
    其他例外照 Django 原本的流程處理。
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, QueueError):
            if exception.status_code >= 500:
                logger.error("%s %s: %s", request.method, request.path, exception)
            else:
                logger.info("%s %s: %s", request.method, request.path, exception)
            return JsonResponse(exception.as_dict(), status=exception.status_code)

        if isinstance(exception, ValidationError):
            return JsonResponse(
                {"error": "validation_error", "message": exception.messages},
                status=400,
            )

        return None
