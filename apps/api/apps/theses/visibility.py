"""
Visibility filter: which theses an identity may see.

Rules, first match wins:
1. admin: every thesis
2. adviser: every thesis of the adviser's department
3. student/faculty, own theses (creator or co-author): every status
4. anyone, including anonymous callers: the public archive
   (status=Published AND is_public)
5. student/faculty, anything else: only what rule 4 allows

Listing scopes select which query is being asked:
- ``archive``: rule 4 for everybody
- ``mine``: rule 3 (creator or co-author), for any role
- ``managed``: the caller's full view, rules 1-5 combined

Anonymous callers always get the archive. A scope that matches nothing
yields an empty queryset, never an error.
"""
from django.db.models import Q

from apps.theses.models import Thesis, ThesisStatus

SCOPE_ARCHIVE = 'archive'
SCOPE_MINE = 'mine'
SCOPE_MANAGED = 'managed'
SCOPES = (SCOPE_ARCHIVE, SCOPE_MINE, SCOPE_MANAGED)


def public_archive_q():
    return Q(status=ThesisStatus.PUBLISHED, is_public=True)


def authored_by_q(user_id):
    return Q(creator_id=user_id) | Q(co_authors__id=user_id)


def visibility_q(identity, scope=SCOPE_MANAGED):
    """
    Predicate for ``identity`` under ``scope``.

    Returns None when no restriction applies (admin, managed scope).
    """
    if identity is None or scope == SCOPE_ARCHIVE:
        return public_archive_q()

    if scope == SCOPE_MINE:
        return authored_by_q(identity.user_id)

    if identity.is_admin:
        return None

    if identity.is_adviser:
        if identity.department_id is None:
            return public_archive_q()
        return Q(department_id=identity.department_id) | public_archive_q()

    return authored_by_q(identity.user_id) | public_archive_q()


def visible_theses(identity, scope=SCOPE_ARCHIVE, queryset=None):
    """
    Theses visible to ``identity`` under ``scope``.

    Raises:
        ValueError: unknown scope
    """
    if scope not in SCOPES:
        raise ValueError(f'Unknown visibility scope: {scope!r}')

    if queryset is None:
        queryset = Thesis.objects.all()

    predicate = visibility_q(identity, scope)
    if predicate is None:
        return queryset

    # Co-author joins can duplicate rows; filter through a pk subquery instead of distinct()
    matching = Thesis.objects.filter(predicate).values('pk')
    return queryset.filter(pk__in=matching)


def can_view(identity, thesis):
    """Whether ``identity`` may see ``thesis`` under its full (managed) view."""
    if thesis.in_public_archive:
        return True
    if identity is None:
        return False
    if identity.is_admin:
        return True
    if identity.is_adviser:
        return identity.department_id is not None and str(thesis.department_id) == identity.department_id
    return thesis.is_author(identity.user_id)
