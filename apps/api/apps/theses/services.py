"""
Thesis services: creation, metadata updates, deletion and bulk publication.

Status changes never happen here; see apps.theses.transitions.
"""
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from apps.accounts.models import RoleChoices, User
from apps.core.exceptions import Forbidden
from apps.core.models import AuditActionChoices, log_action
from apps.core.observability.events import log_domain_event
from apps.core.observability.metrics import metrics
from apps.theses.models import Thesis, ThesisStatus, ThesisStatusChange, TransitionAction
from apps.theses.transitions import assert_metadata_editable, lock_thesis

logger = logging.getLogger(__name__)

ADVISER_ROLES = (RoleChoices.ADVISER, RoleChoices.FACULTY)


def _resolve_co_authors(creator, co_author_ids):
    """
    Co-authors must be active users other than the creator, sharing the
    creator's department and, when the creator is enrolled, the same course.
    Compared with the creator, never with the requested thesis department.
    """
    ids = {str(pk) for pk in co_author_ids or []}
    if not ids:
        return []
    if str(creator.pk) in ids:
        raise ValidationError({'co_authors': 'The creator cannot be listed as a co-author.'})

    users = list(User.objects.filter(pk__in=ids, is_active=True))
    if len(users) != len(ids):
        raise ValidationError({'co_authors': 'One or more co-authors do not exist or are inactive.'})

    for user in users:
        if user.department_id != creator.department_id:
            raise ValidationError({'co_authors': f'{user.full_name} is not in the same department as the creator.'})
        if creator.course_id and user.course_id != creator.course_id:
            raise ValidationError({'co_authors': f'{user.full_name} is not enrolled in the same course as the creator.'})
    return users


def _resolve_adviser(adviser_id, department):
    if adviser_id is None:
        return None
    try:
        adviser = User.objects.get(pk=adviser_id, is_active=True)
    except User.DoesNotExist:
        raise ValidationError({'adviser': 'Adviser does not exist or is inactive.'})
    if adviser.role not in ADVISER_ROLES:
        raise ValidationError({'adviser': 'Adviser must be a faculty member or an adviser.'})
    if adviser.department_id != department.pk:
        raise ValidationError({'adviser': f'Adviser is not in department {department.code}.'})
    return adviser


@transaction.atomic
def create_thesis(identity, creator, data, request=None):
    """
    Create a Draft thesis owned by ``creator``.

    Args:
        identity: resolved Identity (student or faculty)
        creator: User creating the thesis
        data: validated ThesisCreateSerializer data (department/program resolved)

    Raises:
        Forbidden: caller is not a student/faculty member
        ValidationError: cross-field rules (program vs department, co-authors, adviser)
    """
    if not identity.is_author_role:
        raise Forbidden('Only students and faculty can create theses.')

    department = data['department']
    program = data['program']
    if program.department_id != department.pk:
        raise ValidationError({'program': f'Course {program.code} does not belong to department {department.code}.'})

    co_authors = _resolve_co_authors(creator, data.get('co_authors'))
    adviser = _resolve_adviser(data.get('adviser'), department)

    thesis = Thesis.objects.create(
        title=data['title'],
        abstract=data['abstract'],
        keywords=data.get('keywords', []),
        creator=creator,
        adviser=adviser,
        adviser_name=adviser.full_name if adviser else data.get('adviser_name', ''),
        department=department,
        program=program,
        academic_year=data['academic_year'],
        semester=data['semester'],
        category=data['category'],
        status=ThesisStatus.DRAFT,
        is_public=False,
    )
    if co_authors:
        thesis.co_authors.set(co_authors)

    metrics.thesis_created_total.labels(category=thesis.category).inc()
    log_domain_event(
        'thesis_created',
        entity_type='Thesis',
        entity_id=str(thesis.pk),
        department=department.code,
        category=thesis.category,
        co_author_count=len(co_authors),
    )
    return thesis


METADATA_FIELDS = (
    'title', 'abstract', 'keywords', 'academic_year', 'semester', 'category',
    'adviser_name',
)


@transaction.atomic
def update_metadata(identity, thesis_id, data, actor=None, request=None):
    """
    Apply a metadata subset to a thesis.

    Creator: only while Draft. Admin: at any status, and may also change
    is_public on a published thesis.

    Raises:
        Forbidden, ThesisLocked
    """
    thesis = lock_thesis(thesis_id)
    assert_metadata_editable(identity, thesis)

    changed = {}
    for field in METADATA_FIELDS:
        if field in data and getattr(thesis, field) != data[field]:
            changed[field] = {'before': str(getattr(thesis, field)), 'after': str(data[field])}
            setattr(thesis, field, data[field])

    if 'adviser' in data:
        adviser = _resolve_adviser(data['adviser'], thesis.department)
        if adviser != thesis.adviser:
            changed['adviser'] = {
                'before': str(thesis.adviser_id) if thesis.adviser_id else None,
                'after': str(adviser.pk) if adviser else None,
            }
            thesis.adviser = adviser
            if adviser is not None:
                thesis.adviser_name = adviser.full_name

    if 'is_public' in data:
        if not identity.is_admin:
            raise Forbidden('Only an admin can change archive visibility.')
        if data['is_public'] and thesis.status != ThesisStatus.PUBLISHED:
            raise ValidationError({'is_public': 'Only published theses can be made public.'})
        if thesis.is_public != data['is_public']:
            changed['is_public'] = {'before': thesis.is_public, 'after': data['is_public']}
            thesis.is_public = data['is_public']

    if changed:
        thesis.save()
        if identity.is_admin and actor is not None and actor.pk != thesis.creator_id:
            log_action(
                actor,
                AuditActionChoices.UPDATE,
                'Thesis',
                thesis.pk,
                description=f'Edited thesis "{thesis.title}"',
                metadata={'changed_fields': changed},
                request=request,
            )
    return thesis


def delete_thesis(actor, thesis, request=None):
    """
    Delete a thesis and its document bindings. Stored files are removed
    once the transaction commits.
    """
    storage_keys = [
        (document.file.storage, document.file.name)
        for document in thesis.documents.all()
        if document.file.name
    ]
    thesis_id = str(thesis.pk)
    title = thesis.title

    with transaction.atomic():
        Thesis.objects.filter(pk=thesis.pk).update(primary_document=None)
        thesis.delete()

        def _remove_files():
            for storage, name in storage_keys:
                storage.delete(name)

        transaction.on_commit(_remove_files)

        log_action(
            actor,
            AuditActionChoices.DELETE,
            'Thesis',
            thesis_id,
            description=f'Deleted thesis "{title}"',
            metadata={'documents_removed': len(storage_keys)},
            request=request,
        )

    log_domain_event('thesis_deleted', entity_type='Thesis', entity_id=thesis_id, documents_removed=len(storage_keys))
    return {'deleted': thesis_id, 'documents_removed': len(storage_keys)}


BULK_PUBLISH = 'publish'
BULK_UNPUBLISH = 'unpublish'


@transaction.atomic
def bulk_publication(identity, actor, operation, ids, request=None):
    """
    Admin bulk operation over theses.

    - publish: Approved theses become Published and public (the normal
      publish edge, recorded per thesis)
    - unpublish: Published theses are hidden from the archive (is_public=False);
      status stays Published

    Theses not eligible for the operation are skipped and reported.
    """
    if not identity.is_admin:
        raise Forbidden('Only an admin can run bulk thesis operations.')

    theses = list(Thesis.objects.select_for_update().filter(pk__in=ids))
    now = timezone.now()
    updated, skipped = [], []

    for thesis in theses:
        if operation == BULK_PUBLISH:
            if thesis.status != ThesisStatus.APPROVED:
                skipped.append(str(thesis.pk))
                continue
            from_status = thesis.status
            thesis.status = ThesisStatus.PUBLISHED
            thesis.is_public = True
            thesis.published_at = now
            thesis.save()
            ThesisStatusChange.objects.create(
                thesis=thesis,
                action=TransitionAction.PUBLISH,
                from_status=from_status,
                to_status=ThesisStatus.PUBLISHED,
                actor=actor,
                comment='Bulk publish',
            )
            metrics.thesis_transitions_total.labels(action=TransitionAction.PUBLISH.value, result='success').inc()
        elif operation == BULK_UNPUBLISH:
            if not thesis.in_public_archive:
                skipped.append(str(thesis.pk))
                continue
            thesis.is_public = False
            thesis.save(update_fields=['is_public', 'updated_at'])
        else:
            raise ValidationError({'operation': f'Unknown operation: {operation}'})
        updated.append(str(thesis.pk))

    missing = sorted({str(pk) for pk in ids} - {str(thesis.pk) for thesis in theses})

    log_action(
        actor,
        AuditActionChoices.BULK,
        'Thesis',
        description=f'Bulk {operation} of {len(updated)} theses',
        metadata={'operation': operation, 'updated': updated, 'skipped': skipped, 'missing': missing},
        request=request,
    )
    logger.info(
        'Bulk thesis operation',
        extra={'event': 'thesis_bulk_operation', 'operation': operation, 'updated': len(updated), 'skipped': len(skipped)}
    )
    return {'updated': len(updated), 'skipped': skipped, 'not_found': missing}
