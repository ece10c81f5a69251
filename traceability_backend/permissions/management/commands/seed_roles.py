# permissions/management/commands/seed_roles.py

from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from permissions.roles import (
    ROLE_ADMIN,
    ROLE_COMPLIANCE,
    ROLE_DISPATCH,
    ROLE_PRODUCTION,
    ROLE_VIEWER,
    STAFF_ROLES,
)


@dataclass(frozen=True)
class SeedUserSpec:
    label: str
    role: str
    username: str
    email: str


SEED_USERS = [
    SeedUserSpec("Admin", ROLE_ADMIN, "admin", "admin@example.com"),
    SeedUserSpec("Compliance", ROLE_COMPLIANCE, "compliance", "compliance@example.com"),
    SeedUserSpec("Production", ROLE_PRODUCTION, "production", "production@example.com"),
    SeedUserSpec("Dispatch", ROLE_DISPATCH, "dispatch", "dispatch@example.com"),
    SeedUserSpec("Viewer", ROLE_VIEWER, "viewer", "viewer@example.com"),
]


class Command(BaseCommand):
    help = "Create one auth Group per staff role and (optionally) a demo user per role."

    def add_arguments(self, parser):
        parser.add_argument(
            "--with-users",
            action="store_true",
            help="Also create one demo user per role.",
        )
        parser.add_argument(
            "--password",
            type=str,
            default="Pass1234!",
            help="Password for seeded users (default: Pass1234!)",
        )
        parser.add_argument(
            "--force-password",
            action="store_true",
            help="If set, resets password for existing seeded users too.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        password = options.get("password") or ""
        force_password = bool(options.get("force_password"))

        groups = {}
        for role in sorted(STAFF_ROLES):
            group, created = Group.objects.get_or_create(name=role)
            groups[role] = group
            self.stdout.write(f"{'created' if created else 'exists '}: group {role}")

        if not options.get("with_users"):
            self.stdout.write(self.style.SUCCESS("Role groups ready."))
            return

        if not password or len(password) < 6:
            raise CommandError("--password must be provided and at least 6 characters.")

        User = get_user_model()
        created_count = 0

        for spec in SEED_USERS:
            is_admin = spec.role == ROLE_ADMIN
            user, created = User.objects.get_or_create(
                username=spec.username,
                defaults={"email": spec.email, "is_staff": True, "is_superuser": is_admin},
            )

            if created or force_password:
                user.set_password(password)
                user.save(update_fields=["password"])

            user.groups.add(groups[spec.role])

            if created:
                created_count += 1
                self.stdout.write(f"created: {spec.label} ({spec.role})")
            else:
                self.stdout.write(f"exists:  {spec.label} ({spec.role})")

        self.stdout.write(self.style.SUCCESS(f"Created users: {created_count}"))
