"""
Drop redundant indexes on the users and departments tables.

Databases that were synced repeatedly outside of migrations can end up with
several plain indexes over the same column list. For each column list the
first index is kept (unique constraints win over plain indexes) and the
other plain indexes are dropped. Primary keys and unique constraints are
never dropped.

Usage:
    python manage.py repair_duplicate_indexes --dry-run
    python manage.py repair_duplicate_indexes --table users
"""
from django.core.management.base import BaseCommand
from django.db import DatabaseError, connection

DEFAULT_TABLES = ('users', 'departments')


def find_redundant_indexes(cursor, table):
    """
    Return ``[(kept_name, dropped_name, columns), ...]`` for ``table``.
    """
    constraints = connection.introspection.get_constraints(cursor, table)

    groups = {}
    for name, info in constraints.items():
        if info.get('primary_key') or not info.get('columns'):
            continue
        if not (info.get('index') or info.get('unique')):
            continue
        groups.setdefault(tuple(info['columns']), []).append((name, info))

    redundant = []
    for columns, entries in sorted(groups.items()):
        if len(entries) < 2:
            continue
        entries.sort(key=lambda entry: (not entry[1].get('unique'), entry[0]))
        kept = entries[0][0]
        for name, info in entries[1:]:
            if info.get('unique'):
                continue
            redundant.append((kept, name, columns))
    return redundant


def drop_index_sql(table, name):
    quote = connection.ops.quote_name
    if connection.vendor == 'mysql':
        return f'DROP INDEX {quote(name)} ON {quote(table)}'
    return f'DROP INDEX {quote(name)}'


class Command(BaseCommand):
    help = 'Find and drop duplicate indexes on the users and departments tables'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Only report what would be dropped')
        parser.add_argument(
            '--table',
            action='append',
            dest='tables',
            help='Table to inspect (repeatable); defaults to users and departments',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        tables = options['tables'] or DEFAULT_TABLES
        dropped = 0

        with connection.cursor() as cursor:
            existing = set(connection.introspection.table_names(cursor))
            for table in tables:
                if table not in existing:
                    self.stdout.write(self.style.WARNING(f'Table "{table}" does not exist, skipped'))
                    continue

                redundant = find_redundant_indexes(cursor, table)
                if not redundant:
                    self.stdout.write(f'{table}: no duplicate indexes')
                    continue

                for kept, name, columns in redundant:
                    label = f'{table}.{name} ({", ".join(columns)}; duplicate of {kept})'
                    if dry_run:
                        self.stdout.write(f'Would drop {label}')
                        continue
                    try:
                        cursor.execute(drop_index_sql(table, name))
                    except DatabaseError as exc:
                        self.stderr.write(self.style.ERROR(f'Could not drop {label}: {exc}'))
                        continue
                    dropped += 1
                    self.stdout.write(f'Dropped {label}')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run complete, nothing dropped'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Dropped indexes: {dropped}'))
