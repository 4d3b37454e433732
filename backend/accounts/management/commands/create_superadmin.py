import os

from django.conf import settings
from django.core.management.base import BaseCommand

from accounts.models import User

TRUTHY = ("1", "true", "yes", "y", "on")


class Command(BaseCommand):
    help = (
        "Create or update a SUPER_ADMIN user. Uses environment variables "
        "SUPERADMIN_USERNAME, SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD."
    )

    def add_arguments(self, parser):
        parser.add_argument("--username", default=None)
        parser.add_argument("--email", default=None)

    def handle(self, *args, **options):
        allow = str(os.environ.get("ALLOW_SUPERADMIN_BOOTSTRAP", "")).strip().lower() in TRUTHY
        if not settings.DEBUG and not allow:
            self.stdout.write(
                self.style.WARNING(
                    "Refusing to create a super admin outside DEBUG. "
                    "Set ALLOW_SUPERADMIN_BOOTSTRAP=1 to override."
                )
            )
            return

        username = (
            options.get("username")
            or os.environ.get("SUPERADMIN_USERNAME", "superadmin").strip()
            or "superadmin"
        )
        email = (
            options.get("email")
            or os.environ.get("SUPERADMIN_EMAIL", "superadmin@example.com").strip()
            or "superadmin@example.com"
        )
        password = os.environ.get("SUPERADMIN_PASSWORD", "superadmin1")

        user = User.objects.filter(username=username).first()
        created = user is None
        if user is None:
            user = User(username=username, email=email)
        else:
            user.email = email or user.email

        user.role = User.SUPER_ADMIN
        user.client = None
        user.is_staff = True
        user.is_superuser = True
        user.set_password(password)
        user.save()

        action = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{action} super admin: {username}"))
