from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError

from common.context import GROUP_ROLES


class Command(BaseCommand):
    help = "Create the auth groups used by the queue screens (DOCTOR / RECEPTION / PATIENT)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--assign",
            action="append",
            default=[],
            metavar="USERNAME:GROUP",
            help="把既有帳號加進群組，可重複使用，例如 --assign frontdesk:RECEPTION",
        )

    def handle(self, *args, **options):
        groups = {}
        for name in GROUP_ROLES:
            group, created = Group.objects.get_or_create(name=name)
            groups[name] = group
            if created:
                self.stdout.write(self.style.SUCCESS(f"Created group: {name}"))
            else:
                self.stdout.write(f"Group already exists: {name}")

        User = get_user_model()
        for item in options["assign"]:
            username, _, group_name = item.partition(":")
            group_name = group_name.strip().upper()
            if group_name not in groups:
                raise CommandError(f"Unknown group: {group_name}")
            try:
                user = User.objects.get(username=username.strip())
            except User.DoesNotExist:
                raise CommandError(f"User not found: {username}")
            user.groups.add(groups[group_name])
            self.stdout.write(f"{user.username} -> {group_name}")

        self.stdout.write(self.style.SUCCESS("All groups initialized."))
