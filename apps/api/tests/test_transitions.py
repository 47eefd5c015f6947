"""
Tests for the thesis transition engine.

Rules tested:
- Draft -> Under Review (creator, needs a primary document)
- Under Review -> Approved/Rejected (adviser of the department, or admin)
- Under Review/Approved -> Published (admin only)
- invalid edges and wrong actors leave the thesis untouched
- admin reset is recorded as a correction and clears publication
- a second review of the same thesis loses with InvalidTransition
"""
import threading

import pytest
from django.db import connection, connections

from apps.core.exceptions import Forbidden, InvalidTransition, MissingDocument, NotFound, ThesisLocked
from apps.theses import documents, transitions
from apps.theses.models import Thesis, ThesisStatus, ThesisStatusChange, TransitionAction

from .conftest import make_pdf


@pytest.fixture
def draft_with_document(make_thesis, student, identity_of):
    thesis = make_thesis(student)
    documents.bind_primary_document(identity_of(student), thesis.pk, make_pdf(), actor=student)
    return Thesis.objects.get(pk=thesis.pk)


@pytest.fixture
def under_review(make_thesis, student):
    return make_thesis(student, status=ThesisStatus.UNDER_REVIEW)


@pytest.mark.django_db
class TestSubmit:

    def test_submit_without_document_is_refused(self, make_thesis, student, identity_of):
        thesis = make_thesis(student)

        with pytest.raises(MissingDocument):
            transitions.apply_transition(identity_of(student), thesis.pk, TransitionAction.SUBMIT, actor=student)

        thesis.refresh_from_db()
        assert thesis.status == ThesisStatus.DRAFT
        assert thesis.submitted_at is None
        assert not ThesisStatusChange.objects.filter(thesis=thesis).exists()

    def test_creator_submits_draft(self, draft_with_document, student, identity_of):
        thesis = transitions.apply_transition(
            identity_of(student), draft_with_document.pk, TransitionAction.SUBMIT, actor=student
        )

        assert thesis.status == ThesisStatus.UNDER_REVIEW
        assert thesis.submitted_at is not None
        change = ThesisStatusChange.objects.get(thesis=thesis)
        assert change.from_status == ThesisStatus.DRAFT
        assert change.to_status == ThesisStatus.UNDER_REVIEW
        assert change.actor == student
        assert change.is_correction is False

    def test_co_author_cannot_submit(self, make_thesis, student, classmate, identity_of):
        thesis = make_thesis(student, co_authors=[classmate])
        documents.bind_primary_document(identity_of(student), thesis.pk, make_pdf(), actor=student)

        with pytest.raises(Forbidden):
            transitions.apply_transition(identity_of(classmate), thesis.pk, TransitionAction.SUBMIT, actor=classmate)

        thesis.refresh_from_db()
        assert thesis.status == ThesisStatus.DRAFT

    def test_resubmission_keeps_first_submitted_at(self, draft_with_document, student, admin_user, identity_of):
        thesis = transitions.apply_transition(
            identity_of(student), draft_with_document.pk, TransitionAction.SUBMIT, actor=student
        )
        submitted_at = thesis.submitted_at

        # Correction back to Draft, then submit again
        transitions.reset_status(identity_of(admin_user), thesis.pk, ThesisStatus.DRAFT, actor=admin_user)
        thesis = transitions.apply_transition(identity_of(student), thesis.pk, TransitionAction.SUBMIT, actor=student)

        assert thesis.status == ThesisStatus.UNDER_REVIEW
        assert thesis.submitted_at == submitted_at

    def test_unknown_thesis(self, student, identity_of):
        with pytest.raises(NotFound):
            transitions.apply_transition(
                identity_of(student), '00000000-0000-0000-0000-000000000000', TransitionAction.SUBMIT, actor=student
            )


@pytest.mark.django_db
class TestReview:

    def test_department_adviser_approves(self, under_review, adviser, identity_of):
        thesis = transitions.apply_transition(
            identity_of(adviser), under_review.pk, TransitionAction.APPROVE,
            actor=adviser, comments='Solid work', score=92,
        )

        assert thesis.status == ThesisStatus.APPROVED
        assert thesis.reviewer == adviser
        assert thesis.review_score == 92
        assert thesis.review_comments == 'Solid work'
        assert thesis.reviewed_at is not None
        assert thesis.is_public is False

    def test_department_adviser_rejects(self, under_review, adviser, identity_of):
        thesis = transitions.apply_transition(
            identity_of(adviser), under_review.pk, TransitionAction.REJECT, actor=adviser, comments='Needs work'
        )
        assert thesis.status == ThesisStatus.REJECTED

    def test_admin_approves(self, under_review, admin_user, identity_of):
        thesis = transitions.apply_transition(identity_of(admin_user), under_review.pk, TransitionAction.APPROVE, actor=admin_user)
        assert thesis.status == ThesisStatus.APPROVED

    def test_adviser_of_other_department_is_forbidden(self, under_review, foreign_adviser, identity_of):
        with pytest.raises(Forbidden):
            transitions.apply_transition(
                identity_of(foreign_adviser), under_review.pk, TransitionAction.APPROVE, actor=foreign_adviser
            )

        under_review.refresh_from_db()
        assert under_review.status == ThesisStatus.UNDER_REVIEW
        assert under_review.reviewer is None

    @pytest.mark.parametrize('role_fixture', ['student', 'faculty'])
    def test_authors_cannot_review(self, request, under_review, identity_of, role_fixture):
        user = request.getfixturevalue(role_fixture)
        with pytest.raises(Forbidden):
            transitions.apply_transition(identity_of(user), under_review.pk, TransitionAction.APPROVE, actor=user)

    def test_rejected_is_terminal_for_workflow(self, make_thesis, student, adviser, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.REJECTED)
        for action in (TransitionAction.SUBMIT, TransitionAction.APPROVE, TransitionAction.PUBLISH):
            user = student if action == TransitionAction.SUBMIT else adviser
            with pytest.raises(InvalidTransition):
                transitions.apply_transition(identity_of(user), thesis.pk, action, actor=user)
        thesis.refresh_from_db()
        assert thesis.status == ThesisStatus.REJECTED

    def test_second_review_loses(self, under_review, adviser, admin_user, identity_of):
        """
        Concurrent approve/reject: whichever runs second sees the new status.

        Runs the calls one after the other; correctness under real
        concurrency relies on lock_thesis (select_for_update) serialising
        them, which test_parallel_reviews_serialise covers on PostgreSQL.
        """
        transitions.apply_transition(identity_of(adviser), under_review.pk, TransitionAction.APPROVE, actor=adviser)

        with pytest.raises(InvalidTransition):
            transitions.apply_transition(identity_of(admin_user), under_review.pk, TransitionAction.REJECT, actor=admin_user)

        under_review.refresh_from_db()
        assert under_review.status == ThesisStatus.APPROVED
        assert ThesisStatusChange.objects.filter(thesis=under_review).count() == 1

    @pytest.mark.skipif(connection.vendor != 'postgresql', reason='row locks need PostgreSQL')
    @pytest.mark.django_db(transaction=True)
    def test_parallel_reviews_serialise(self, make_thesis, student, adviser, admin_user, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.UNDER_REVIEW)
        reviewers = [
            (identity_of(adviser), adviser, TransitionAction.APPROVE),
            (identity_of(admin_user), admin_user, TransitionAction.REJECT),
        ]
        barrier = threading.Barrier(len(reviewers))
        outcomes = []

        def review(identity, user, action):
            barrier.wait()
            try:
                transitions.apply_transition(identity, thesis.pk, action, actor=user)
                outcomes.append('won')
            except InvalidTransition:
                outcomes.append('lost')
            finally:
                connections.close_all()

        threads = [threading.Thread(target=review, args=args) for args in reviewers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ['lost', 'won']
        assert ThesisStatusChange.objects.filter(thesis=thesis).count() == 1


@pytest.mark.django_db
class TestPublish:

    def test_admin_publishes_approved(self, make_thesis, student, admin_user, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.APPROVED)
        thesis = transitions.apply_transition(identity_of(admin_user), thesis.pk, TransitionAction.PUBLISH, actor=admin_user)

        assert thesis.status == ThesisStatus.PUBLISHED
        assert thesis.is_public is True
        assert thesis.published_at is not None

    def test_admin_publishes_directly_from_review(self, under_review, admin_user, identity_of):
        thesis = transitions.apply_transition(identity_of(admin_user), under_review.pk, TransitionAction.PUBLISH, actor=admin_user)

        assert thesis.status == ThesisStatus.PUBLISHED
        assert thesis.is_public is True
        assert thesis.published_at is not None

    def test_adviser_cannot_publish(self, make_thesis, student, adviser, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.APPROVED)
        with pytest.raises(Forbidden):
            transitions.apply_transition(identity_of(adviser), thesis.pk, TransitionAction.PUBLISH, actor=adviser)

        thesis.refresh_from_db()
        assert thesis.status == ThesisStatus.APPROVED
        assert thesis.is_public is False

    def test_draft_cannot_be_published(self, make_thesis, student, admin_user, identity_of):
        thesis = make_thesis(student)
        with pytest.raises(InvalidTransition):
            transitions.apply_transition(identity_of(admin_user), thesis.pk, TransitionAction.PUBLISH, actor=admin_user)

        thesis.refresh_from_db()
        assert thesis.status == ThesisStatus.DRAFT
        assert thesis.published_at is None

    def test_invalid_edge_wins_over_wrong_actor(self, make_thesis, student, identity_of):
        thesis = make_thesis(student)
        with pytest.raises(InvalidTransition):
            transitions.apply_transition(identity_of(student), thesis.pk, TransitionAction.PUBLISH, actor=student)


@pytest.mark.django_db
class TestReset:

    def test_reset_published_to_draft(self, make_thesis, student, admin_user, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.APPROVED)
        transitions.apply_transition(identity_of(admin_user), thesis.pk, TransitionAction.PUBLISH, actor=admin_user)

        thesis = transitions.reset_status(
            identity_of(admin_user), thesis.pk, 'Draft', actor=admin_user, comment='Wrong file published'
        )

        assert thesis.status == ThesisStatus.DRAFT
        assert thesis.is_public is False
        assert thesis.published_at is None
        change = ThesisStatusChange.objects.filter(thesis=thesis).order_by('-created_at').first()
        assert change.action == TransitionAction.RESET
        assert change.is_correction is True
        assert change.from_status == ThesisStatus.PUBLISHED
        assert change.comment == 'Wrong file published'

    def test_reset_rejected_to_under_review(self, make_thesis, student, admin_user, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.REJECTED)
        thesis = transitions.reset_status(identity_of(admin_user), thesis.pk, 'under_review', actor=admin_user)
        assert thesis.status == ThesisStatus.UNDER_REVIEW

    def test_non_admin_cannot_reset(self, make_thesis, student, adviser, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.REJECTED)
        with pytest.raises(Forbidden):
            transitions.reset_status(identity_of(adviser), thesis.pk, ThesisStatus.UNDER_REVIEW, actor=adviser)

    def test_draft_cannot_be_reset(self, make_thesis, student, admin_user, identity_of):
        thesis = make_thesis(student)
        with pytest.raises(InvalidTransition):
            transitions.reset_status(identity_of(admin_user), thesis.pk, ThesisStatus.UNDER_REVIEW, actor=admin_user)


@pytest.mark.django_db
class TestMetadataGuard:

    def test_creator_edits_draft(self, make_thesis, student, identity_of):
        transitions.assert_metadata_editable(identity_of(student), make_thesis(student))

    def test_creator_locked_after_submission(self, under_review, student, identity_of):
        with pytest.raises(ThesisLocked):
            transitions.assert_metadata_editable(identity_of(student), under_review)

    def test_admin_edits_any_status(self, make_thesis, student, admin_user, identity_of):
        for status in ThesisStatus:
            transitions.assert_metadata_editable(identity_of(admin_user), make_thesis(student, status=status))

    def test_co_author_cannot_edit(self, make_thesis, student, classmate, identity_of):
        thesis = make_thesis(student, co_authors=[classmate])
        with pytest.raises(Forbidden):
            transitions.assert_metadata_editable(identity_of(classmate), thesis)
