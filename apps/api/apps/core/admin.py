from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'action', 'resource_type', 'resource_id', 'actor_user', 'status']
    list_filter = ['action', 'resource_type', 'status', 'created_at']
    search_fields = ['actor_user__email', 'resource_id', 'description']
    readonly_fields = [
        'id', 'created_at', 'actor_user', 'action', 'resource_type', 'resource_id',
        'description', 'status', 'ip_address', 'user_agent', 'metadata',
    ]
