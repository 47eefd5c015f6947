"""
Scheduling serializers.
"""
from django.conf import settings
from rest_framework import serializers

from apps.academics.models import Department
from apps.accounts.models import User
from apps.accounts.serializers import DepartmentRefSerializer, UserSummarySerializer
from apps.scheduling.models import (
    AttendeeResponseChoices,
    CalendarEvent,
    EventAttachment,
    EventAttendee,
)
from apps.theses.models import Thesis


class EventAttendeeSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = EventAttendee
        fields = ['user', 'response', 'responded_at']
        read_only_fields = fields


class EventAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = EventAttachment
        fields = ['id', 'original_name', 'content_type', 'size_bytes', 'created_at']
        read_only_fields = fields


class EventAttachmentUploadSerializer(serializers.Serializer):
    files = serializers.ListField(child=serializers.FileField(), allow_empty=False)

    def validate_files(self, value):
        limit = getattr(settings, 'EVENT_ATTACHMENTS_PER_REQUEST', 3)
        if len(value) > limit:
            raise serializers.ValidationError(f'At most {limit} files can be uploaded at once.')
        return value


class CalendarEventSerializer(serializers.ModelSerializer):
    """
    Read and write representation of a calendar event.

    department is given by code; attendees as a list of user ids.
    """
    department = serializers.SlugRelatedField(slug_field='code', queryset=Department.objects.all())
    department_detail = DepartmentRefSerializer(source='department', read_only=True)
    organizer = UserSummarySerializer(read_only=True)
    thesis = serializers.PrimaryKeyRelatedField(queryset=Thesis.objects.all(), required=False, allow_null=True)
    attendee_ids = serializers.ListField(
        child=serializers.UUIDField(), write_only=True, required=False
    )
    attendees = EventAttendeeSerializer(source='attendee_entries', many=True, read_only=True)
    attachments = EventAttachmentSerializer(many=True, read_only=True)
    duration = serializers.CharField(source='duration_display', read_only=True)

    class Meta:
        model = CalendarEvent
        fields = [
            'id',
            'title',
            'description',
            'start_date',
            'end_date',
            'start_time',
            'end_time',
            'is_all_day',
            'duration',
            'location',
            'event_type',
            'priority',
            'status',
            'department',
            'department_detail',
            'organizer',
            'thesis',
            'attendee_ids',
            'attendees',
            'attachments',
            'notes',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'organizer', 'duration', 'attendees', 'attachments', 'created_at', 'updated_at']

    def to_internal_value(self, data):
        if hasattr(data, 'copy') and isinstance(data.get('department'), str):
            data = data.copy()
            data['department'] = data['department'].strip().upper()
        return super().to_internal_value(data)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Event title is required.')
        return value

    def validate_attendee_ids(self, value):
        ids = list(dict.fromkeys(str(pk) for pk in value))
        found = User.objects.filter(pk__in=ids, is_active=True).count()
        if found != len(ids):
            raise serializers.ValidationError('Some attendees are invalid or inactive.')
        return ids

    def validate(self, attrs):
        instance = self.instance
        start_date = attrs.get('start_date', getattr(instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(instance, 'end_date', None))
        start_time = attrs.get('start_time', getattr(instance, 'start_time', None))
        end_time = attrs.get('end_time', getattr(instance, 'end_time', None))
        is_all_day = attrs.get('is_all_day', getattr(instance, 'is_all_day', False))

        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date cannot be before the start date.'})
        if (
            not is_all_day
            and start_date == end_date
            and start_time is not None
            and end_time is not None
            and end_time <= start_time
        ):
            raise serializers.ValidationError({'end_time': 'End time must be after the start time.'})
        return attrs

    def _sync_attendees(self, event, attendee_ids):
        EventAttendee.objects.filter(event=event).exclude(user_id__in=attendee_ids).delete()
        existing = set(
            str(pk) for pk in EventAttendee.objects.filter(event=event).values_list('user_id', flat=True)
        )
        EventAttendee.objects.bulk_create([
            EventAttendee(event=event, user_id=pk, response=AttendeeResponseChoices.PENDING)
            for pk in attendee_ids
            if pk not in existing
        ])

    def create(self, validated_data):
        attendee_ids = validated_data.pop('attendee_ids', [])
        event = CalendarEvent.objects.create(**validated_data)
        self._sync_attendees(event, attendee_ids)
        return event

    def update(self, instance, validated_data):
        attendee_ids = validated_data.pop('attendee_ids', None)
        event = super().update(instance, validated_data)
        if attendee_ids is not None:
            self._sync_attendees(event, attendee_ids)
        return event


class EventResponseSerializer(serializers.Serializer):
    response = serializers.ChoiceField(
        choices=[AttendeeResponseChoices.ACCEPTED, AttendeeResponseChoices.DECLINED]
    )
