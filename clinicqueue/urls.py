from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path("admin/", admin.site.urls),

    # 各 app
    path("queues/", include("queues.urls")),
    path("appointments/", include("appointments.urls")),
    path("doctors/", include("doctors.urls")),
]
