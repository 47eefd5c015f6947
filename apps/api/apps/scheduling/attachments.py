"""
Calendar event attachments.

Uploads are validated as a batch before anything is written: one rejected
file refuses the whole request. Stored objects are removed again if the
rows cannot be saved.
"""
import logging

from django.conf import settings
from django.db import transaction

from apps.core.exceptions import Forbidden, PayloadTooLarge, UnsupportedMedia
from apps.core.observability.events import log_domain_event
from apps.core.observability.metrics import metrics
from apps.scheduling.models import EventAttachment

logger = logging.getLogger(__name__)


def _content_type(upload):
    return (upload.content_type or '').split(';')[0].strip().lower()


def validate_event_attachment(upload):
    """
    Raises:
        PayloadTooLarge: file exceeds THESIS_MAX_DOCUMENT_SIZE
        UnsupportedMedia: type not in EVENT_ATTACHMENT_TYPES
    """
    limit = getattr(settings, 'THESIS_MAX_DOCUMENT_SIZE', 10 * 1024 * 1024)
    if upload.size > limit:
        raise PayloadTooLarge(f'File exceeds the {limit // (1024 * 1024)} MiB limit.')

    allowed_types = getattr(settings, 'EVENT_ATTACHMENT_TYPES', [])
    content_type = _content_type(upload)
    if content_type not in allowed_types:
        raise UnsupportedMedia(content_type, detail=f'File type "{content_type}" is not accepted.')


def assert_can_attach(identity, event):
    if identity.is_admin:
        return
    if str(event.organizer_id) != identity.user_id:
        raise Forbidden('Only the organizer or an admin can upload attachments for this event.')


def add_event_attachments(identity, event, uploads, actor=None):
    """
    Store ``uploads`` and attach them to ``event``.

    Returns:
        List of the new EventAttachment rows, in upload order
    """
    assert_can_attach(identity, event)

    for upload in uploads:
        try:
            validate_event_attachment(upload)
        except (PayloadTooLarge, UnsupportedMedia) as exc:
            metrics.event_attachment_uploads_total.labels(result=exc.default_code).inc()
            raise

    stored = []
    try:
        for upload in uploads:
            attachment = EventAttachment(
                event=event,
                original_name=upload.name[:255],
                content_type=_content_type(upload),
                size_bytes=upload.size,
                uploaded_by=actor,
            )
            attachment.file.save(upload.name, upload, save=False)
            stored.append(attachment)

        with transaction.atomic():
            for attachment in stored:
                attachment.save()
    except Exception:
        for attachment in stored:
            if attachment.file.name:
                attachment.file.storage.delete(attachment.file.name)
        raise

    metrics.event_attachment_uploads_total.labels(result='success').inc(len(stored))
    log_domain_event(
        'event_attachments_added',
        entity_type='CalendarEvent',
        entity_id=str(event.pk),
        count=len(stored),
        size_bytes=sum(a.size_bytes for a in stored),
    )
    return stored


def stored_attachment_keys(event):
    """Storage names of every attachment of ``event``, for cleanup after deletion."""
    return [
        (attachment.file.storage, attachment.file.name)
        for attachment in event.attachments.all()
        if attachment.file.name
    ]
