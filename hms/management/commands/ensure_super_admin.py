# hms/management/commands/ensure_super_admin.py
import os

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from hms.models import User, UserRole
from hms.roles import Role
from hms.services.passwords import generate_temp_password, record_history, validate_password


class Command(BaseCommand):
    help = "Ensure the platform super administrator exists (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument('--email', default=os.getenv('SUPER_ADMIN_EMAIL', 'superadmin@medicare.local'))
        parser.add_argument('--username', default=os.getenv('SUPER_ADMIN_USERNAME', 'superadmin'))
        parser.add_argument('--password', default=os.getenv('SUPER_ADMIN_PASSWORD'),
                            help="Initial password; a random one is generated and printed when omitted.")

    def handle(self, *args, **opts):
        password = opts['password']
        generated = not password
        if generated:
            password = generate_temp_password()
        check = validate_password(password)
        if not check.is_valid:
            raise CommandError('; '.join(check.errors))

        with transaction.atomic():
            user = User.objects.filter(username=opts['username']).first()
            if user is None:
                user = User.objects.create_user(
                    username=opts['username'],
                    email=opts['email'],
                    password=password,
                    first_name='Super',
                    last_name='Admin',
                    must_change_password=generated,
                )
                record_history(user)
                created = True
            else:
                if user.tenant_id:
                    raise CommandError(f"user {user.username} belongs to hospital {user.tenant_id}")
                created = False
            UserRole.objects.get_or_create(user=user, role=Role.SUPER_ADMIN)

        if created:
            self.stdout.write(self.style.SUCCESS(f"created: {user.username} ({Role.SUPER_ADMIN})"))
            if generated:
                self.stdout.write(f"temporary password: {password}")
        else:
            self.stdout.write(self.style.SUCCESS(f"ok: {user.username} already exists"))
