from django.urls import path
from . import views

app_name = "doctors"

urlpatterns = [
    path("", views.doctor_list, name="doctor_list"),
    path("<int:doctor_id>/availability/", views.set_availability, name="set_availability"),
]
