"""
Core models: audit_log
"""
import uuid

from django.conf import settings
from django.db import models


class AuditActionChoices(models.TextChoices):
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'
    LOGIN = 'login', 'Login'
    BULK = 'bulk', 'Bulk Operation'
    UPLOAD = 'upload', 'Upload'


class AuditStatusChoices(models.TextChoices):
    SUCCESS = 'success', 'Success'
    FAILED = 'failed', 'Failed'


class AuditLog(models.Model):
    """
    Audit trail for administrative and account actions.

    Thesis status changes are recorded separately in ThesisStatusChange;
    this table covers users, departments, courses, deletions and bulk operations.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='audit_logs',
        help_text='User who performed the action (null for system actions)'
    )
    action = models.CharField(max_length=10, choices=AuditActionChoices.choices)
    resource_type = models.CharField(
        max_length=50,
        help_text='Model name of the affected resource (User, Department, Thesis, ...)'
    )
    resource_id = models.CharField(max_length=64, blank=True)
    description = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=10,
        choices=AuditStatusChoices.choices,
        default=AuditStatusChoices.SUCCESS
    )
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(
        default=dict,
        help_text='Changed fields, before/after values, bulk operation details'
    )

    class Meta:
        db_table = 'audit_log'
        verbose_name = 'Audit Log'
        verbose_name_plural = 'Audit Logs'
        indexes = [
            models.Index(fields=['created_at'], name='idx_audit_created_at'),
            models.Index(fields=['actor_user'], name='idx_audit_actor'),
            models.Index(fields=['resource_type', 'resource_id'], name='idx_audit_resource'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        actor = self.actor_user.email if self.actor_user else 'system'
        return f"{self.action} on {self.resource_type}[{self.resource_id[:8]}] by {actor}"


def client_ip(request):
    """Client IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_action(
    actor,
    action,
    resource_type,
    resource_id='',
    description='',
    metadata=None,
    request=None,
    status=AuditStatusChoices.SUCCESS,
):
    """
    Create an audit log entry.

    Args:
        actor: User instance or None for system actions
        action: AuditActionChoices value
        resource_type: model name of the affected resource
        resource_id: primary key of the affected resource
        description: short human-readable summary
        metadata: dict of extra details (changed fields, counts, ...)
        request: Django/DRF request, to capture IP and user agent

    Returns:
        AuditLog instance
    """
    ip_address = None
    user_agent = ''
    if request is not None:
        ip_address = client_ip(request)
        user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]

    if actor is not None and not getattr(actor, 'is_authenticated', False):
        actor = None

    return AuditLog.objects.create(
        actor_user=actor,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id else '',
        description=description[:255],
        status=status,
        ip_address=ip_address,
        user_agent=user_agent,
        metadata=metadata or {},
    )
