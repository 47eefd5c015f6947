"""
Thesis transition engine.

Validates and applies status changes. Every transition runs in one
transaction holding a row lock on the thesis, so two concurrent requests
(e.g. approve and reject) are serialized: the second one sees the new status
and fails with InvalidTransition.

Workflow edges (Thesis._ALLOWED_TRANSITIONS):
    Draft        --submit-->  Under Review   creator; needs a primary document
    Under Review --approve--> Approved       adviser of the department, or admin
    Under Review --reject-->  Rejected       adviser of the department, or admin
    Under Review --publish--> Published      admin only (shortcut)
    Approved     --publish--> Published      admin only

Admin corrections (reset) move any non-Draft thesis back to Draft or
Under Review and are recorded with is_correction=True.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.core.exceptions import (
    Forbidden,
    InvalidTransition,
    MissingDocument,
    NotFound,
    ThesisLocked,
)
from apps.core.observability.events import log_thesis_transition
from apps.core.observability.metrics import metrics
from apps.theses.models import (
    Thesis,
    ThesisStatus,
    ThesisStatusChange,
    TransitionAction,
    normalize_status,
)


def lock_thesis(thesis_id):
    """
    Fetch a thesis with a row lock. Must be called inside transaction.atomic().

    Raises:
        NotFound: no thesis with this id
    """
    try:
        return Thesis.objects.select_for_update().get(pk=thesis_id)
    except (Thesis.DoesNotExist, DjangoValidationError):
        raise NotFound('Thesis not found.')


def _authorize(identity, thesis, action):
    """Raise Forbidden unless ``identity`` may perform ``action`` on ``thesis``."""
    if action == TransitionAction.SUBMIT:
        if identity.user_id != str(thesis.creator_id):
            raise Forbidden('Only the creator can submit this thesis.')
        return

    if action in (TransitionAction.APPROVE, TransitionAction.REJECT):
        if identity.is_admin:
            return
        if identity.is_adviser and identity.department_id == str(thesis.department_id):
            return
        raise Forbidden('Only an adviser of the thesis department or an admin can review this thesis.')

    if action == TransitionAction.PUBLISH:
        if not identity.is_admin:
            raise Forbidden('Only an admin can publish a thesis.')
        return

    raise Forbidden('Unknown action.')


def _refuse(thesis, action, identity, exc, result):
    metrics.thesis_transitions_total.labels(action=str(action), result=result).inc()
    log_thesis_transition(
        thesis,
        from_status=thesis.status,
        to_status=None,
        action=str(action),
        result='blocked',
        reason=result,
        actor_role=identity.role,
    )
    raise exc


def apply_transition(identity, thesis_id, action, actor=None, comments='', score=None):
    """
    Apply a workflow action to a thesis.

    Args:
        identity: resolved Identity of the caller
        thesis_id: thesis primary key
        action: TransitionAction value (submit|approve|reject|publish)
        actor: User instance recorded as actor/reviewer
        comments: review comments (approve/reject) or free comment
        score: review score 0-100 (approve/reject)

    Returns:
        The updated Thesis

    Raises:
        NotFound, InvalidTransition, Forbidden, MissingDocument
    """
    if action == TransitionAction.RESET or action not in TransitionAction.values:
        raise InvalidTransition(f'Unknown workflow action: {action}')
    action = TransitionAction(action)

    with transaction.atomic():
        thesis = lock_thesis(thesis_id)
        from_status = normalize_status(thesis.status)

        target = thesis.target_for(action)
        if target is None:
            _refuse(
                thesis, action, identity,
                InvalidTransition(f'Cannot {action.value} a thesis with status "{from_status.value}".'),
                'invalid',
            )

        try:
            _authorize(identity, thesis, action)
        except Forbidden as exc:
            _refuse(thesis, action, identity, exc, 'forbidden')

        if action == TransitionAction.SUBMIT and thesis.primary_document_id is None:
            _refuse(thesis, action, identity, MissingDocument(), 'missing_document')

        now = timezone.now()
        thesis.status = target

        if action == TransitionAction.SUBMIT and thesis.submitted_at is None:
            thesis.submitted_at = now

        if action in (TransitionAction.APPROVE, TransitionAction.REJECT):
            thesis.reviewer = actor
            thesis.reviewed_at = now
            thesis.review_comments = comments or ''
            thesis.review_score = score

        if action == TransitionAction.PUBLISH:
            thesis.is_public = True
            thesis.published_at = now
            if thesis.submitted_at is None:
                thesis.submitted_at = now
            if from_status == ThesisStatus.UNDER_REVIEW:
                thesis.reviewer = actor
                thesis.reviewed_at = now
                if comments:
                    thesis.review_comments = comments

        thesis.save()

        ThesisStatusChange.objects.create(
            thesis=thesis,
            action=action,
            from_status=from_status,
            to_status=target,
            actor=actor,
            comment=comments or '',
        )

    metrics.thesis_transitions_total.labels(action=action.value, result='success').inc()
    log_thesis_transition(
        thesis,
        from_status=from_status.value,
        to_status=target.value,
        action=action.value,
        actor=actor,
    )
    return thesis


def transition_to_status(identity, thesis_id, requested_status, actor=None, comments='', score=None):
    """
    Apply the workflow action that leads to ``requested_status``.

    Used by PATCH {status}. Only workflow edges are reachable this way;
    admin corrections go through reset_status().

    Raises:
        ValidationError: unknown status value
        InvalidTransition: no edge from the current status
    """
    try:
        target = normalize_status(requested_status)
    except ValueError:
        raise ValidationError({'status': f'Unknown status: {requested_status}'})

    try:
        current = Thesis.objects.only('status').get(pk=thesis_id)
    except (Thesis.DoesNotExist, DjangoValidationError):
        raise NotFound('Thesis not found.')

    action = current.target_action(target)
    if action is None:
        raise InvalidTransition(
            f'Cannot change status from "{normalize_status(current.status).value}" to "{target.value}".'
        )
    return apply_transition(identity, thesis_id, action, actor=actor, comments=comments, score=score)


def reset_status(identity, thesis_id, requested_status, actor=None, comment=''):
    """
    Admin correction: move a non-Draft thesis back to Draft or Under Review.

    Clears publication (is_public, published_at). Recorded as a correction.

    Raises:
        Forbidden: caller is not admin
        ValidationError: target is not Draft/Under Review
        InvalidTransition: thesis is already a draft, or already in the target status
    """
    if not identity.is_admin:
        raise Forbidden('Only an admin can reset a thesis status.')

    try:
        target = normalize_status(requested_status)
    except ValueError:
        raise ValidationError({'status': f'Unknown status: {requested_status}'})
    if target not in Thesis._RESET_TARGETS:
        raise ValidationError({'status': 'A thesis can only be reset to Draft or Under Review.'})

    with transaction.atomic():
        thesis = lock_thesis(thesis_id)
        from_status = normalize_status(thesis.status)

        if from_status == ThesisStatus.DRAFT:
            raise InvalidTransition('A draft thesis has nothing to reset.')
        if from_status == target:
            raise InvalidTransition(f'Thesis is already "{target.value}".')

        thesis.status = target
        thesis.is_public = False
        thesis.published_at = None
        thesis.save()

        ThesisStatusChange.objects.create(
            thesis=thesis,
            action=TransitionAction.RESET,
            from_status=from_status,
            to_status=target,
            actor=actor,
            comment=comment or '',
            is_correction=True,
        )

    metrics.thesis_transitions_total.labels(action=TransitionAction.RESET.value, result='success').inc()
    log_thesis_transition(
        thesis,
        from_status=from_status.value,
        to_status=target.value,
        action=TransitionAction.RESET.value,
        actor=actor,
        is_correction=True,
    )
    return thesis


def assert_metadata_editable(identity, thesis):
    """
    Creator may edit metadata only while Draft; admin may edit at any status.

    Raises:
        Forbidden: caller is neither the creator nor an admin
        ThesisLocked: creator editing after submission
    """
    if identity.is_admin:
        return
    if identity.user_id != str(thesis.creator_id):
        raise Forbidden('Only the creator can edit this thesis.')
    if normalize_status(thesis.status) != ThesisStatus.DRAFT:
        raise ThesisLocked()
