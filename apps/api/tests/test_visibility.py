"""
Tests for the thesis visibility filter.

Precedence: admin > department adviser > own theses > public archive.
"""
import pytest

from apps.theses.models import ThesisStatus
from apps.theses.visibility import (
    SCOPE_ARCHIVE,
    SCOPE_MANAGED,
    SCOPE_MINE,
    can_view,
    visible_theses,
)


@pytest.fixture
def catalogue(make_thesis, make_user, student, classmate, other_department, other_course):
    """One thesis per interesting case, keyed by name."""
    outsider = make_user('student', other_department, other_course)
    return {
        'own_draft': make_thesis(student),
        'co_authored_review': make_thesis(classmate, status=ThesisStatus.UNDER_REVIEW, co_authors=[student]),
        'classmate_draft': make_thesis(classmate),
        'published': make_thesis(classmate, status=ThesisStatus.PUBLISHED, is_public=True),
        'published_hidden': make_thesis(classmate, status=ThesisStatus.PUBLISHED, is_public=False),
        'other_department_review': make_thesis(
            outsider, status=ThesisStatus.UNDER_REVIEW, department=other_department, program=other_course
        ),
    }


def names(queryset, catalogue):
    ids = set(queryset.values_list('pk', flat=True))
    return {name for name, thesis in catalogue.items() if thesis.pk in ids}


@pytest.mark.django_db
class TestVisibleTheses:

    def test_anonymous_sees_archive_only(self, catalogue):
        for scope in (SCOPE_ARCHIVE, SCOPE_MINE, SCOPE_MANAGED):
            assert names(visible_theses(None, scope), catalogue) == {'published'}

    def test_admin_managed_sees_everything(self, catalogue, admin_user, identity_of):
        assert names(visible_theses(identity_of(admin_user), SCOPE_MANAGED), catalogue) == set(catalogue)

    def test_adviser_managed_sees_department_and_archive(self, catalogue, adviser, foreign_adviser, identity_of):
        assert names(visible_theses(identity_of(adviser), SCOPE_MANAGED), catalogue) == {
            'own_draft', 'co_authored_review', 'classmate_draft', 'published', 'published_hidden',
        }
        assert names(visible_theses(identity_of(foreign_adviser), SCOPE_MANAGED), catalogue) == {
            'published', 'other_department_review',
        }

    def test_student_managed_sees_own_and_archive(self, catalogue, student, identity_of):
        assert names(visible_theses(identity_of(student), SCOPE_MANAGED), catalogue) == {
            'own_draft', 'co_authored_review', 'published',
        }

    def test_mine_scope(self, catalogue, student, identity_of):
        assert names(visible_theses(identity_of(student), SCOPE_MINE), catalogue) == {
            'own_draft', 'co_authored_review',
        }

    def test_archive_scope_ignores_role(self, catalogue, admin_user, identity_of):
        assert names(visible_theses(identity_of(admin_user), SCOPE_ARCHIVE), catalogue) == {'published'}

    def test_no_duplicates_with_many_co_authors(self, make_thesis, student, classmate, make_user, department, course):
        third = make_user('student', department, course)
        make_thesis(student, status=ThesisStatus.PUBLISHED, is_public=True, co_authors=[classmate, third])

        assert visible_theses(None, SCOPE_ARCHIVE).count() == 1

    def test_unknown_scope(self, student, identity_of):
        with pytest.raises(ValueError):
            visible_theses(identity_of(student), 'everything')


@pytest.mark.django_db
class TestCanView:

    def test_matches_managed_scope(self, catalogue, student, adviser, admin_user, identity_of):
        for user in (student, adviser, admin_user):
            identity = identity_of(user)
            expected = names(visible_theses(identity, SCOPE_MANAGED), catalogue)
            actual = {name for name, thesis in catalogue.items() if can_view(identity, thesis)}
            assert actual == expected

    def test_anonymous(self, catalogue):
        assert {name for name, thesis in catalogue.items() if can_view(None, thesis)} == {'published'}

    def test_inactive_user_has_no_identity(self, student, identity_of):
        student.is_active = False
        assert identity_of(student) is None
