from django.contrib import admin

from .models import CalendarEvent, EventAttachment, EventAttendee


class EventAttendeeInline(admin.TabularInline):
    model = EventAttendee
    extra = 0
    raw_id_fields = ['user']


class EventAttachmentInline(admin.TabularInline):
    model = EventAttachment
    extra = 0
    readonly_fields = ['original_name', 'content_type', 'size_bytes', 'uploaded_by', 'created_at']
    exclude = ['file']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(CalendarEvent)
class CalendarEventAdmin(admin.ModelAdmin):
    list_display = ['title', 'event_type', 'department', 'start_date', 'start_time', 'status', 'organizer']
    list_filter = ['event_type', 'status', 'priority', 'department']
    search_fields = ['title', 'description', 'location']
    readonly_fields = ['id', 'created_at', 'updated_at']
    raw_id_fields = ['organizer', 'thesis']
    inlines = [EventAttendeeInline, EventAttachmentInline]
