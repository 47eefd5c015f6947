from django.contrib import admin

from .models import Thesis, ThesisDocument, ThesisStatusChange


class ThesisDocumentInline(admin.TabularInline):
    model = ThesisDocument
    extra = 0
    fields = ['kind', 'original_name', 'content_type', 'size_bytes', 'is_current', 'created_at']
    readonly_fields = fields
    can_delete = False


class ThesisStatusChangeInline(admin.TabularInline):
    model = ThesisStatusChange
    extra = 0
    fields = ['action', 'from_status', 'to_status', 'actor', 'is_correction', 'created_at']
    readonly_fields = fields
    can_delete = False


@admin.register(Thesis)
class ThesisAdmin(admin.ModelAdmin):
    list_display = ['title', 'creator', 'department', 'status', 'is_public', 'view_count', 'download_count', 'created_at']
    list_filter = ['status', 'is_public', 'category', 'department']
    search_fields = ['title', 'abstract', 'creator__email', 'adviser_name']
    # Status only changes through the API workflow
    readonly_fields = [
        'id', 'status', 'primary_document', 'view_count', 'download_count',
        'created_at', 'updated_at', 'submitted_at', 'published_at', 'reviewed_at',
    ]
    raw_id_fields = ['creator', 'adviser', 'reviewer']
    filter_horizontal = ['co_authors']
    inlines = [ThesisDocumentInline, ThesisStatusChangeInline]


@admin.register(ThesisStatusChange)
class ThesisStatusChangeAdmin(admin.ModelAdmin):
    list_display = ['thesis', 'action', 'from_status', 'to_status', 'actor', 'is_correction', 'created_at']
    list_filter = ['action', 'is_correction']
    readonly_fields = [field.name for field in ThesisStatusChange._meta.fields]

    def has_add_permission(self, request):
        return False
