"""
Account services: user deletion policy, bulk administration and avatars.
"""
import logging
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from PIL import Image, UnidentifiedImageError

from apps.accounts.models import User
from apps.core.exceptions import Conflict, Forbidden, PayloadTooLarge, UnsupportedMedia
from apps.core.models import AuditActionChoices, log_action

logger = logging.getLogger(__name__)

DELETE_POLICY_CASCADE = 'cascade'
DELETE_POLICY_DETACH_ADVISER = 'detach_adviser'

AVATAR_FORMATS = {'JPEG': 'jpg', 'PNG': 'png', 'GIF': 'gif', 'WEBP': 'webp'}


def _delete_policy():
    policy = getattr(settings, 'USER_DELETE_POLICY', DELETE_POLICY_DETACH_ADVISER)
    if policy not in (DELETE_POLICY_CASCADE, DELETE_POLICY_DETACH_ADVISER):
        raise ValueError(f'Unknown USER_DELETE_POLICY: {policy!r}')
    return policy


@transaction.atomic
def delete_user(actor, user, request=None):
    """
    Delete ``user`` on behalf of admin ``actor`` according to USER_DELETE_POLICY.

    - Theses the user advises always survive: the adviser reference is
      cleared and the display name is kept.
    - 'cascade': theses the user created are deleted (with their documents)
      and the user is removed from the co-authors of the remaining ones.
    - 'detach_adviser': deletion is refused while the user created or
      co-authors theses.

    Raises:
        Forbidden: actor tries to delete their own account
        Conflict: policy refuses the deletion
    """
    from apps.theses.models import Thesis
    from apps.theses.services import delete_thesis

    if actor.pk == user.pk:
        raise Forbidden('You cannot delete your own account.')

    policy = _delete_policy()
    created = Thesis.objects.filter(creator=user)
    co_authored = Thesis.objects.filter(co_authors=user).exclude(creator=user)

    if policy == DELETE_POLICY_DETACH_ADVISER and (created.exists() or co_authored.exists()):
        raise Conflict(
            'User has authored theses. Delete or reassign them first, '
            'or enable the cascade deletion policy.'
        )

    detached = 0
    for thesis in Thesis.objects.filter(adviser=user).select_for_update():
        if not thesis.adviser_name:
            thesis.adviser_name = user.full_name
        thesis.adviser = None
        thesis.save(update_fields=['adviser', 'adviser_name', 'updated_at'])
        detached += 1

    removed_theses = 0
    if policy == DELETE_POLICY_CASCADE:
        for thesis in list(created):
            delete_thesis(actor, thesis, request=request)
            removed_theses += 1
        co_authorships = Thesis.co_authors.through.objects.filter(user=user)
        co_authorships_removed = co_authorships.count()
        co_authorships.delete()
    else:
        co_authorships_removed = 0

    user_id = str(user.pk)
    email = user.email
    if user.avatar:
        default_storage.delete(user.avatar)
    user.delete()

    log_action(
        actor,
        AuditActionChoices.DELETE,
        'User',
        user_id,
        description=f'Deleted user {email}',
        metadata={
            'policy': policy,
            'theses_deleted': removed_theses,
            'adviser_references_detached': detached,
            'co_authorships_removed': co_authorships_removed,
        },
        request=request,
    )
    logger.info(
        'User deleted',
        extra={
            'event': 'user_deleted',
            'target_user_id': user_id,
            'policy': policy,
            'theses_deleted': removed_theses,
            'adviser_references_detached': detached,
        }
    )
    return {
        'theses_deleted': removed_theses,
        'adviser_references_detached': detached,
        'co_authorships_removed': co_authorships_removed,
    }


@transaction.atomic
def bulk_user_operation(actor, operation, ids, request=None):
    """
    Activate, deactivate or delete several users at once.

    The acting admin is always skipped. Deletions go through delete_user so
    the deletion policy applies per user; users the policy refuses are
    reported under ``skipped``.
    """
    users = User.objects.filter(pk__in=ids).exclude(pk=actor.pk)
    affected = []
    skipped = []

    if operation in ('activate', 'deactivate'):
        is_active = operation == 'activate'
        affected = [str(pk) for pk in users.values_list('pk', flat=True)]
        users.update(is_active=is_active)
    elif operation == 'delete':
        for user in list(users):
            try:
                with transaction.atomic():
                    delete_user(actor, user, request=request)
                affected.append(str(user.pk))
            except Conflict as e:
                skipped.append({'id': str(user.pk), 'reason': str(e.detail)})
    else:
        raise ValueError(f'Unknown bulk operation: {operation}')

    log_action(
        actor,
        AuditActionChoices.BULK,
        'User',
        description=f'Bulk {operation} of {len(affected)} users',
        metadata={'operation': operation, 'ids': affected, 'skipped': skipped},
        request=request,
    )
    return {'operation': operation, 'affected': len(affected), 'skipped': skipped}


def store_avatar(user, upload):
    """
    Validate an avatar image with Pillow and store it.

    Raises:
        PayloadTooLarge: file exceeds AVATAR_MAX_SIZE
        UnsupportedMedia: not a JPEG/PNG/GIF/WEBP image
    """
    max_size = getattr(settings, 'AVATAR_MAX_SIZE', 2 * 1024 * 1024)
    if upload.size > max_size:
        raise PayloadTooLarge(f'Avatar exceeds maximum size of {max_size // (1024 * 1024)}MB.')

    try:
        image = Image.open(upload)
        image.verify()
        image_format = image.format
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise UnsupportedMedia(getattr(upload, 'content_type', ''), detail='Avatar must be an image file.')

    extension = AVATAR_FORMATS.get(image_format)
    if extension is None:
        raise UnsupportedMedia(getattr(upload, 'content_type', ''), detail='Avatar must be a JPEG, PNG, GIF or WEBP image.')

    upload.seek(0)
    key = default_storage.save(f'avatars/{user.pk}/{uuid.uuid4().hex}.{extension}', upload)

    previous = user.avatar
    user.avatar = key
    user.save(update_fields=['avatar', 'updated_at'])
    if previous:
        default_storage.delete(previous)

    logger.info('Avatar updated', extra={'event': 'avatar_updated', 'target_user_id': str(user.pk)})
    return key
