from django.urls import path
from . import views

app_name = "appointments"

urlpatterns = [
    path("book/", views.book, name="book"),
    # 病人用電話查自己還在候診的掛號
    path("mine/", views.patient_appointments, name="patient_appointments"),
    path("history/<int:patient_id>/", views.patient_history, name="patient_history"),
    path("detail/<int:pk>/", views.appointment_detail, name="appointment_detail"),
    path("detail/<int:pk>/status/", views.appointment_update_status, name="update_status"),
    path("detail/<int:pk>/complete/", views.appointment_complete, name="complete"),
    path("doctor/<int:doctor_id>/today/", views.doctor_today_appointments, name="doctor_today"),
]
