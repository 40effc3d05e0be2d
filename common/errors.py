"""
叫號核心共用的例外類別。

NotFoundError / InvalidStateError 直接丟給呼叫端，不重試；
ConflictError 由 run_atomic 在最外層交易重試，用完次數才往外丟；
StoreUnavailableError 代表資料庫連不上，由畫面端決定要不要再試。
"""


class QueueError(Exception):
    """所有叫號核心錯誤的共同父類別"""

    status_code = 400
    code = "queue_error"

    def __init__(self, message="", **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self):
        data = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class NotFoundError(QueueError):
    status_code = 404
    code = "not_found"


class ConflictError(QueueError):
    status_code = 409
    code = "conflict"


class TicketAllocationFailed(ConflictError):
    code = "ticket_allocation_failed"


class InvalidStateError(QueueError):
    status_code = 409
    code = "invalid_state"


class DoctorUnavailableError(InvalidStateError):
    code = "doctor_unavailable"


class StoreUnavailableError(QueueError):
    status_code = 503
    code = "store_unavailable"
