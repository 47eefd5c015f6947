"""
Document binding: attach uploaded files to a thesis and stream them back.

A file is bound only after it has been fully received and validated:
    1. size check (PayloadTooLarge) before anything is read
    2. type check: declared content type AND the PDF signature (UnsupportedMedia)
    3. write to storage
    4. bind inside a transaction holding the thesis row lock
If step 4 fails the stored object is removed again.

Binding is independent from the metadata lifecycle: the creator may bind
while the thesis is a draft, an admin at any status.
"""
import hashlib
import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F
from django.http import FileResponse

from apps.core.exceptions import (
    Conflict,
    Forbidden,
    NotFound,
    PayloadTooLarge,
    ThesisLocked,
    UnsupportedMedia,
)
from apps.core.observability.events import log_document_event
from apps.core.observability.metrics import metrics
from apps.theses.models import (
    DocumentKind,
    Thesis,
    ThesisDocument,
    ThesisStatus,
    normalize_status,
)
from apps.theses.transitions import lock_thesis

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b'%PDF-'


# ============================================================================
# Validation
# ============================================================================

def _max_document_size():
    return getattr(settings, 'THESIS_MAX_DOCUMENT_SIZE', 10 * 1024 * 1024)


def _read_head(upload, length):
    upload.seek(0)
    head = upload.read(length)
    upload.seek(0)
    return head


def validate_primary_document(upload):
    """
    Primary documents must be PDF and at most THESIS_MAX_DOCUMENT_SIZE bytes.

    Raises:
        PayloadTooLarge: file exceeds the limit
        UnsupportedMedia: not a PDF (by declared type or by content)
    """
    limit = _max_document_size()
    if upload.size > limit:
        raise PayloadTooLarge(f'Document exceeds the {limit // (1024 * 1024)} MiB limit.')

    allowed_types = getattr(settings, 'THESIS_ALLOWED_DOCUMENT_TYPES', ['application/pdf'])
    content_type = (upload.content_type or '').split(';')[0].strip().lower()
    if content_type not in allowed_types:
        raise UnsupportedMedia(content_type, detail='Only PDF documents are accepted.')

    if _read_head(upload, len(PDF_SIGNATURE)) != PDF_SIGNATURE:
        raise UnsupportedMedia(content_type, detail='File content is not a PDF document.')


def validate_supplementary_file(upload):
    """
    Supplementary files: same size limit, a wider set of office/image formats.

    Raises:
        PayloadTooLarge, UnsupportedMedia
    """
    limit = _max_document_size()
    if upload.size > limit:
        raise PayloadTooLarge(f'File exceeds the {limit // (1024 * 1024)} MiB limit.')

    allowed_types = getattr(settings, 'THESIS_SUPPLEMENTARY_TYPES', [])
    content_type = (upload.content_type or '').split(';')[0].strip().lower()
    if content_type not in allowed_types:
        raise UnsupportedMedia(content_type, detail=f'File type "{content_type}" is not accepted.')


def _digest(upload):
    sha256 = hashlib.sha256()
    upload.seek(0)
    for chunk in upload.chunks():
        sha256.update(chunk)
    upload.seek(0)
    return sha256.hexdigest()


def assert_can_bind(identity, thesis):
    """
    Raises:
        Forbidden: caller is neither the creator nor an admin
        ThesisLocked: creator binding after submission
    """
    if identity.is_admin:
        return
    if identity.user_id != str(thesis.creator_id):
        raise Forbidden('Only the creator can upload documents for this thesis.')
    if normalize_status(thesis.status) != ThesisStatus.DRAFT:
        raise ThesisLocked('Documents can only be changed while the thesis is a draft.')


# ============================================================================
# Binding
# ============================================================================

def _store(thesis, kind, upload, actor):
    """Write the upload to storage; returns an unsaved ThesisDocument."""
    document = ThesisDocument(
        thesis=thesis,
        kind=kind,
        original_name=upload.name[:255],
        content_type=(upload.content_type or '').split(';')[0].strip().lower(),
        size_bytes=upload.size,
        sha256=_digest(upload),
        uploaded_by=actor,
    )
    document.file.save(upload.name, upload, save=False)
    return document


def _discard(document):
    if document.file.name:
        document.file.storage.delete(document.file.name)


def bind_primary_document(identity, thesis_id, upload, actor=None):
    """
    Validate and bind ``upload`` as the primary document of a thesis.

    The previous primary document stays stored with is_current=False.

    Returns:
        The new ThesisDocument
    """
    try:
        thesis = Thesis.objects.get(pk=thesis_id)
    except (Thesis.DoesNotExist, DjangoValidationError):
        raise NotFound('Thesis not found.')
    assert_can_bind(identity, thesis)

    try:
        validate_primary_document(upload)
    except (PayloadTooLarge, UnsupportedMedia) as exc:
        metrics.document_uploads_total.labels(kind=DocumentKind.PRIMARY, result=exc.default_code).inc()
        log_document_event('document_rejected', thesis, result='rejected', kind=DocumentKind.PRIMARY, reason=exc.default_code)
        raise

    document = _store(thesis, DocumentKind.PRIMARY, upload, actor)
    try:
        with transaction.atomic():
            thesis = lock_thesis(thesis_id)
            # Status may have moved while the file was being written
            assert_can_bind(identity, thesis)

            ThesisDocument.objects.filter(
                thesis=thesis, kind=DocumentKind.PRIMARY, is_current=True
            ).update(is_current=False)
            document.thesis = thesis
            document.save()

            thesis.primary_document = document
            thesis.save(update_fields=['primary_document', 'updated_at'])
    except Exception:
        _discard(document)
        raise

    metrics.document_uploads_total.labels(kind=DocumentKind.PRIMARY, result='success').inc()
    metrics.document_upload_bytes.observe(document.size_bytes)
    log_document_event('document_bound', thesis, document, kind=DocumentKind.PRIMARY, size_bytes=document.size_bytes)
    return document


def add_supplementary_file(identity, thesis_id, upload, actor=None):
    """
    Attach a supplementary file (at most THESIS_SUPPLEMENTARY_MAX_FILES per thesis).

    Raises:
        Conflict: the thesis already has the maximum number of files
    """
    try:
        thesis = Thesis.objects.get(pk=thesis_id)
    except (Thesis.DoesNotExist, DjangoValidationError):
        raise NotFound('Thesis not found.')
    assert_can_bind(identity, thesis)

    try:
        validate_supplementary_file(upload)
    except (PayloadTooLarge, UnsupportedMedia) as exc:
        metrics.document_uploads_total.labels(kind=DocumentKind.SUPPLEMENTARY, result=exc.default_code).inc()
        raise

    max_files = getattr(settings, 'THESIS_SUPPLEMENTARY_MAX_FILES', 5)
    document = _store(thesis, DocumentKind.SUPPLEMENTARY, upload, actor)
    try:
        with transaction.atomic():
            thesis = lock_thesis(thesis_id)
            assert_can_bind(identity, thesis)
            existing = ThesisDocument.objects.filter(thesis=thesis, kind=DocumentKind.SUPPLEMENTARY).count()
            if existing >= max_files:
                raise Conflict(f'A thesis can have at most {max_files} supplementary files.')
            document.thesis = thesis
            document.save()
    except Exception:
        _discard(document)
        raise

    metrics.document_uploads_total.labels(kind=DocumentKind.SUPPLEMENTARY, result='success').inc()
    metrics.document_upload_bytes.observe(document.size_bytes)
    log_document_event('document_bound', thesis, document, kind=DocumentKind.SUPPLEMENTARY, size_bytes=document.size_bytes)
    return document


# ============================================================================
# Streaming
# ============================================================================

def stream_primary_document(thesis):
    """
    FileResponse for the current primary document.

    download_count is incremented only once the stored file has been opened;
    a missing binding or a missing object never counts.

    Raises:
        NotFound: no primary document, or the stored object is gone
    """
    document = thesis.primary_document
    if document is None:
        raise NotFound('This thesis has no document.')

    try:
        handle = document.file.open('rb')
    except (FileNotFoundError, OSError):
        logger.error(
            'Stored document missing',
            extra={'event': 'document_missing', 'thesis_id': str(thesis.pk), 'document_id': str(document.pk)}
        )
        log_document_event('document_downloaded', thesis, document, result='failure', reason='missing_object')
        raise NotFound('Document file not found.')

    Thesis.objects.filter(pk=thesis.pk).update(download_count=F('download_count') + 1)
    metrics.document_downloads_total.inc()
    log_document_event('document_downloaded', thesis, document)

    return FileResponse(
        handle,
        content_type=document.content_type or 'application/pdf',
        as_attachment=False,
        filename=document.original_name,
    )
