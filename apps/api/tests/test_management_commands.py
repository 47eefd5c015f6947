"""
Tests for the maintenance management commands.
"""
from io import StringIO

import pytest
from django.core.management import CommandError, call_command
from django.db import connection

from apps.academics.models import Department
from apps.accounts.models import RoleChoices, User
from apps.theses.models import Thesis, ThesisDocument
from apps.theses.management.commands.repair_duplicate_indexes import find_redundant_indexes

from .conftest import client_for


def run(command, *args, **options):
    out = StringIO()
    call_command(command, *args, stdout=out, stderr=StringIO(), **options)
    return out.getvalue()


@pytest.mark.django_db
class TestEnsureAdmin:

    def test_creates_admin(self):
        output = run('ensure_admin', email='Root@Uni.Test', password='s3cret-pass')

        user = User.objects.get(email='root@uni.test')
        assert 'Created admin' in output
        assert user.role == RoleChoices.ADMIN
        assert user.is_staff
        assert user.check_password('s3cret-pass')

    def test_refreshes_existing_account(self, student):
        student.is_active = False
        student.save()

        output = run('ensure_admin', email=student.email, password='new-pass-123')

        student.refresh_from_db()
        assert 'already existed' in output
        assert student.role == RoleChoices.ADMIN
        assert student.is_active
        assert student.check_password('new-pass-123')

    def test_password_is_required(self, monkeypatch):
        monkeypatch.delenv('ADMIN_PASSWORD', raising=False)
        with pytest.raises(CommandError):
            call_command('ensure_admin', email='root@uni.test', password='', stdout=StringIO())


@pytest.mark.django_db
class TestClearTheses:

    def test_requires_confirmation(self, student, make_thesis):
        make_thesis(student)

        with pytest.raises(CommandError):
            call_command('clear_theses', stdout=StringIO())

        assert Thesis.objects.count() == 1

    def test_deletes_theses_and_documents(self, student, classmate, department, make_thesis,
                                          upload_pdf, django_capture_on_commit_callbacks):
        thesis = make_thesis(student)
        make_thesis(classmate)
        upload_pdf(client_for(student), thesis.pk)
        stored = ThesisDocument.objects.get(thesis=thesis).file
        storage, name = stored.storage, stored.name

        with django_capture_on_commit_callbacks(execute=True):
            output = run('clear_theses', yes=True)

        assert 'Deleted theses: 2, documents: 1' in output
        assert Thesis.objects.count() == 0
        assert ThesisDocument.objects.count() == 0
        assert not storage.exists(name)
        assert User.objects.filter(pk=student.pk).exists()
        assert Department.objects.filter(pk=department.pk).exists()


@pytest.mark.django_db
class TestRepairDuplicateIndexes:

    @pytest.fixture
    def duplicate_phone_indexes(self):
        with connection.cursor() as cursor:
            cursor.execute('CREATE INDEX dup_phone_a ON users (phone)')
            cursor.execute('CREATE INDEX dup_phone_b ON users (phone)')

    def _index_names(self):
        with connection.cursor() as cursor:
            return set(connection.introspection.get_constraints(cursor, 'users'))

    def test_finds_later_duplicate(self, duplicate_phone_indexes):
        with connection.cursor() as cursor:
            redundant = find_redundant_indexes(cursor, 'users')

        assert ('dup_phone_a', 'dup_phone_b', ('phone',)) in redundant

    def test_dry_run_drops_nothing(self, duplicate_phone_indexes):
        output = run('repair_duplicate_indexes', dry_run=True, tables=['users'])

        assert 'Would drop users.dup_phone_b' in output
        assert 'Dry run complete, nothing dropped' in output
        assert {'dup_phone_a', 'dup_phone_b'} <= self._index_names()

    def test_drops_duplicate_and_keeps_first(self, duplicate_phone_indexes):
        output = run('repair_duplicate_indexes', tables=['users'])

        names = self._index_names()
        assert 'Dropped users.dup_phone_b' in output
        assert 'dup_phone_a' in names
        assert 'dup_phone_b' not in names

    def test_unknown_table_is_skipped(self):
        output = run('repair_duplicate_indexes', tables=['no_such_table'])
        assert 'does not exist, skipped' in output
