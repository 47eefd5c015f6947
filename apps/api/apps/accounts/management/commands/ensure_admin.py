"""
Create or refresh the bootstrap admin account.

Usage:
    python manage.py ensure_admin
    python manage.py ensure_admin --email admin@uni.edu --password s3cret

Defaults come from ADMIN_EMAIL / ADMIN_PASSWORD in the environment.
"""
import os

from django.core.management.base import BaseCommand, CommandError

from apps.accounts.models import RoleChoices, User


class Command(BaseCommand):
    help = 'Create the admin account if missing, or restore its admin role and password'

    def add_arguments(self, parser):
        parser.add_argument('--email', default=os.environ.get('ADMIN_EMAIL', 'admin@thesis-archive.local'))
        parser.add_argument('--password', default=os.environ.get('ADMIN_PASSWORD'))
        parser.add_argument('--first-name', default='System')
        parser.add_argument('--last-name', default='Administrator')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        password = options['password']
        if not password:
            raise CommandError('A password is required (--password or ADMIN_PASSWORD).')

        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            User.objects.create_superuser(
                email=email,
                password=password,
                first_name=options['first_name'],
                last_name=options['last_name'],
            )
            self.stdout.write(self.style.SUCCESS(f'Created admin "{email}"'))
            return

        user.set_password(password)
        user.role = RoleChoices.ADMIN
        user.is_staff = True
        user.is_superuser = True
        user.is_active = True
        user.save()
        self.stdout.write(self.style.WARNING(f'Admin "{email}" already existed; role and password refreshed'))
