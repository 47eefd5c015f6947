"""
Theses models: thesis, thesis_document, thesis_status_change
"""
import os
import re
import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


# ============================================================================
# Enums
# ============================================================================

class ThesisStatus(models.TextChoices):
    """
    Closed set of thesis statuses.

    Stored values are the display strings used by the archive since its
    first release; legacy spellings are mapped by normalize_status().
    """
    DRAFT = 'Draft', 'Draft'
    UNDER_REVIEW = 'Under Review', 'Under Review'
    APPROVED = 'Approved', 'Approved'
    REJECTED = 'Rejected', 'Rejected'
    PUBLISHED = 'Published', 'Published'


_STATUS_ALIASES = {
    re.sub(r'[^a-z]', '', status.value.lower()): status
    for status in ThesisStatus
}


def normalize_status(value):
    """
    Map any legacy spelling ('published', 'under_review', 'UnderReview',
    'Under Review') to a ThesisStatus member.

    Raises:
        ValueError: value is not a known status
    """
    if isinstance(value, ThesisStatus):
        return value
    key = re.sub(r'[^a-z]', '', str(value or '').lower())
    try:
        return _STATUS_ALIASES[key]
    except KeyError:
        raise ValueError(f'Unknown thesis status: {value!r}')


class SemesterChoices(models.TextChoices):
    FIRST = '1st Semester', '1st Semester'
    SECOND = '2nd Semester', '2nd Semester'
    SUMMER = 'Summer', 'Summer'


class CategoryChoices(models.TextChoices):
    UNDERGRADUATE = 'Undergraduate', 'Undergraduate'
    GRADUATE = 'Graduate', 'Graduate'
    DOCTORAL = 'Doctoral', 'Doctoral'
    RESEARCH_PAPER = 'Research Paper', 'Research Paper'


class DocumentKind(models.TextChoices):
    PRIMARY = 'primary', 'Primary'
    SUPPLEMENTARY = 'supplementary', 'Supplementary'


class TransitionAction(models.TextChoices):
    SUBMIT = 'submit', 'Submit'
    APPROVE = 'approve', 'Approve'
    REJECT = 'reject', 'Reject'
    PUBLISH = 'publish', 'Publish'
    RESET = 'reset', 'Reset (correction)'


# ============================================================================
# Thesis
# ============================================================================

class Thesis(models.Model):
    """
    A thesis record.

    BUSINESS RULES:
    - exactly one creator, never changed after creation
    - co-authors never include the creator
    - status only moves along _ALLOWED_TRANSITIONS (see apps.theses.transitions)
    - the public archive is status=Published AND is_public=True
    - view_count/download_count only increase
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=200)
    abstract = models.TextField(help_text='Up to 2000 characters')
    keywords = models.JSONField(default=list, blank=True, help_text='Ordered list of keywords')

    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_theses'
    )
    co_authors = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name='coauthored_theses'
    )
    adviser = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='advised_theses'
    )
    adviser_name = models.CharField(
        max_length=150,
        blank=True,
        help_text='Adviser display name; kept for legacy records without a user reference'
    )

    department = models.ForeignKey(
        'academics.Department',
        on_delete=models.PROTECT,
        related_name='theses'
    )
    program = models.ForeignKey(
        'academics.Course',
        on_delete=models.PROTECT,
        related_name='theses'
    )
    academic_year = models.CharField(max_length=9, help_text='e.g. 2024-2025')
    semester = models.CharField(max_length=20, choices=SemesterChoices.choices)
    category = models.CharField(max_length=20, choices=CategoryChoices.choices)

    status = models.CharField(
        max_length=20,
        choices=ThesisStatus.choices,
        default=ThesisStatus.DRAFT
    )
    is_public = models.BooleanField(default=False)

    primary_document = models.ForeignKey(
        'ThesisDocument',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='+',
        help_text='Current primary PDF'
    )

    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='reviewed_theses'
    )
    review_comments = models.TextField(blank=True)
    review_score = models.PositiveSmallIntegerField(
        blank=True,
        null=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    reviewed_at = models.DateTimeField(blank=True, null=True)

    view_count = models.PositiveIntegerField(default=0)
    download_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    submitted_at = models.DateTimeField(blank=True, null=True)
    published_at = models.DateTimeField(blank=True, null=True)

    # action -> target status, per current status
    _ALLOWED_TRANSITIONS = {
        ThesisStatus.DRAFT: {
            TransitionAction.SUBMIT: ThesisStatus.UNDER_REVIEW,
        },
        ThesisStatus.UNDER_REVIEW: {
            TransitionAction.APPROVE: ThesisStatus.APPROVED,
            TransitionAction.REJECT: ThesisStatus.REJECTED,
            TransitionAction.PUBLISH: ThesisStatus.PUBLISHED,  # admin shortcut
        },
        ThesisStatus.APPROVED: {
            TransitionAction.PUBLISH: ThesisStatus.PUBLISHED,
        },
        ThesisStatus.REJECTED: {},
        ThesisStatus.PUBLISHED: {},
    }

    # Targets an admin correction may reset to
    _RESET_TARGETS = (ThesisStatus.DRAFT, ThesisStatus.UNDER_REVIEW)

    class Meta:
        db_table = 'theses'
        verbose_name = 'Thesis'
        verbose_name_plural = 'Theses'
        indexes = [
            models.Index(fields=['status', 'is_public'], name='idx_thesis_archive'),
            models.Index(fields=['department', 'status'], name='idx_thesis_department'),
            models.Index(fields=['published_at'], name='idx_thesis_published_at'),
            models.Index(fields=['submitted_at'], name='idx_thesis_submitted_at'),
            models.Index(fields=['academic_year'], name='idx_thesis_academic_year'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} [{self.status}]"

    @property
    def in_public_archive(self):
        return self.status == ThesisStatus.PUBLISHED and self.is_public

    @property
    def adviser_display(self):
        if self.adviser_id:
            return self.adviser.full_name
        return self.adviser_name or None

    def target_for(self, action):
        """Status reached by ``action`` from the current status, or None."""
        status = normalize_status(self.status)
        return self._ALLOWED_TRANSITIONS.get(status, {}).get(action)

    def target_action(self, target_status):
        """Workflow action leading from the current status to ``target_status``, or None."""
        status = normalize_status(self.status)
        for action, target in self._ALLOWED_TRANSITIONS.get(status, {}).items():
            if target == target_status:
                return action
        return None

    def is_author(self, user_id):
        """Creator or co-author."""
        if str(self.creator_id) == str(user_id):
            return True
        return self.co_authors.filter(pk=user_id).exists()


# ============================================================================
# Documents
# ============================================================================

def thesis_document_path(instance, filename):
    extension = os.path.splitext(filename)[1].lower() or '.bin'
    return f'theses/{instance.thesis_id}/{instance.kind}/{uuid.uuid4().hex}{extension}'


class ThesisDocument(models.Model):
    """
    A file bound to a thesis.

    Replaced primary documents stay in storage with is_current=False so the
    history of submitted files is kept.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    thesis = models.ForeignKey(
        Thesis,
        on_delete=models.CASCADE,
        related_name='documents'
    )
    kind = models.CharField(max_length=15, choices=DocumentKind.choices)
    file = models.FileField(upload_to=thesis_document_path, max_length=255)
    original_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=100)
    size_bytes = models.PositiveIntegerField()
    sha256 = models.CharField(max_length=64, help_text='Hex digest of the stored bytes')
    is_current = models.BooleanField(default=True)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='uploaded_thesis_documents'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'thesis_documents'
        verbose_name = 'Thesis Document'
        verbose_name_plural = 'Thesis Documents'
        indexes = [
            models.Index(fields=['thesis', 'kind'], name='idx_thesis_document_kind'),
        ]
        ordering = ['created_at']

    def __str__(self):
        return f"{self.original_name} ({self.kind})"


# ============================================================================
# Status history
# ============================================================================

class ThesisStatusChange(models.Model):
    """
    One row per applied transition. Admin resets are flagged as corrections.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    thesis = models.ForeignKey(
        Thesis,
        on_delete=models.CASCADE,
        related_name='status_changes'
    )
    action = models.CharField(max_length=10, choices=TransitionAction.choices)
    from_status = models.CharField(max_length=20, choices=ThesisStatus.choices)
    to_status = models.CharField(max_length=20, choices=ThesisStatus.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='thesis_status_changes'
    )
    comment = models.TextField(blank=True)
    is_correction = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'thesis_status_changes'
        verbose_name = 'Thesis Status Change'
        verbose_name_plural = 'Thesis Status Changes'
        indexes = [
            models.Index(fields=['thesis', 'created_at'], name='idx_status_change_thesis'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.from_status} -> {self.to_status} ({self.action})"
