from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from doctors.models import Doctor

DEMO_DOCTORS = [
    # (帳號, 姓名, 科別, 診間)
    ("dr.chen", "陳志明", "家醫科", "101"),
    ("dr.lin", "林怡君", "心臟內科", "102"),
    ("dr.wang", "王大同", "皮膚科", "103"),
    ("dr.huang", "黃美玲", "骨科", "104"),
    ("dr.lee", "李建宏", "小兒科", "105"),
]


class Command(BaseCommand):
    help = "Create demo doctors (and their login accounts in the DOCTOR group)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="changeme", help="新帳號的預設密碼")
        parser.add_argument("--no-users", action="store_true", help="只建醫師資料，不建登入帳號")

    def handle(self, *args, **options):
        User = get_user_model()
        group, _ = Group.objects.get_or_create(name="DOCTOR")

        for username, name, department, room in DEMO_DOCTORS:
            user = None
            if not options["no_users"]:
                user, user_created = User.objects.get_or_create(username=username)
                if user_created:
                    user.set_password(options["password"])
                    user.save()
                user.groups.add(group)

            doctor, created = Doctor.objects.get_or_create(
                name=name,
                defaults={"department": department, "room": room, "user": user},
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f"Created doctor: {doctor}"))
            else:
                self.stdout.write(f"Doctor already exists: {doctor}")

        self.stdout.write(self.style.SUCCESS("Demo doctors ready."))
