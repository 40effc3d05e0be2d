from django.urls import path
from . import views

app_name = "queues"

urlpatterns = [
    # 某位醫師的完整叫號列表（櫃台 / 醫師面板）
    path("doctor/<int:doctor_id>/", views.queue_state, name="queue_state"),

    # 叫號操作
    path("doctor/<int:doctor_id>/next/", views.call_next, name="call_next"),
    path("doctor/<int:doctor_id>/repeat/", views.repeat, name="repeat"),
    path("ticket/<int:ticket_id>/skip/", views.skip_ticket, name="skip_ticket"),
    path("ticket/<int:ticket_id>/status/", views.ticket_status, name="ticket_status"),

    # 大廳叫號看板
    path("board/", views.board, name="board"),
    path(
        "api/current_number/",
        views.api_current_number,
        name="api_current_number",
    ),
]
