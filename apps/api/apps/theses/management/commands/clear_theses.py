"""
Delete every thesis (with its documents and status history).

Users, departments and courses are left untouched.

Usage:
    python manage.py clear_theses --yes
"""
from django.core.management.base import BaseCommand, CommandError

from apps.theses.models import Thesis
from apps.theses.services import delete_thesis


class Command(BaseCommand):
    help = 'Delete all theses and their stored documents'

    def add_arguments(self, parser):
        parser.add_argument('--yes', action='store_true', help='Confirm the deletion')

    def handle(self, *args, **options):
        if not options['yes']:
            raise CommandError('This deletes every thesis. Re-run with --yes to confirm.')

        total = Thesis.objects.count()
        self.stdout.write(self.style.NOTICE(f'Deleting {total} theses...'))

        documents = 0
        # Materialized first: rows are deleted while looping
        for thesis in list(Thesis.objects.prefetch_related('documents')):
            result = delete_thesis(None, thesis)
            documents += result['documents_removed']

        self.stdout.write(self.style.SUCCESS(f'Deleted theses: {total}, documents: {documents}'))
