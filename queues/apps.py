from django.apps import AppConfig


class QueuesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "queues"
    verbose_name = "叫號"

    def ready(self):
        # 掛上 post_save 的推播 receiver
        from . import live  # noqa: F401
