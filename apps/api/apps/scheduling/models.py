"""
Scheduling models: calendar_event, event_attendee, event_attachment
"""
import os
import uuid

from django.conf import settings
from django.db import models


class EventTypeChoices(models.TextChoices):
    THESIS_DEFENSE = 'Thesis Defense', 'Thesis Defense'
    SUBMISSION_DEADLINE = 'Submission Deadline', 'Submission Deadline'
    REVIEW_MEETING = 'Review Meeting', 'Review Meeting'
    WORKSHOP = 'Workshop', 'Workshop'
    CONFERENCE = 'Conference', 'Conference'
    OTHER = 'Other', 'Other'


class EventPriorityChoices(models.TextChoices):
    LOW = 'Low', 'Low'
    MEDIUM = 'Medium', 'Medium'
    HIGH = 'High', 'High'
    CRITICAL = 'Critical', 'Critical'


class EventStatusChoices(models.TextChoices):
    SCHEDULED = 'Scheduled', 'Scheduled'
    IN_PROGRESS = 'In Progress', 'In Progress'
    COMPLETED = 'Completed', 'Completed'
    CANCELLED = 'Cancelled', 'Cancelled'
    POSTPONED = 'Postponed', 'Postponed'


class AttendeeResponseChoices(models.TextChoices):
    PENDING = 'Pending', 'Pending'
    ACCEPTED = 'Accepted', 'Accepted'
    DECLINED = 'Declined', 'Declined'


# Statuses still shown as upcoming
ACTIVE_EVENT_STATUSES = (EventStatusChoices.SCHEDULED, EventStatusChoices.IN_PROGRESS)


class CalendarEvent(models.Model):
    """
    A departmental calendar event (defense, deadline, review meeting, ...).

    BUSINESS RULES:
    - end_date >= start_date
    - on a single day, end_time > start_time unless the event is all-day
    - only the organizer or an admin may change or delete the event
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True)
    start_date = models.DateField()
    end_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_all_day = models.BooleanField(default=False)
    location = models.CharField(max_length=100, blank=True)

    event_type = models.CharField(max_length=25, choices=EventTypeChoices.choices)
    priority = models.CharField(
        max_length=10,
        choices=EventPriorityChoices.choices,
        default=EventPriorityChoices.MEDIUM
    )
    status = models.CharField(
        max_length=15,
        choices=EventStatusChoices.choices,
        default=EventStatusChoices.SCHEDULED
    )

    department = models.ForeignKey(
        'academics.Department',
        on_delete=models.PROTECT,
        related_name='events'
    )
    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='organized_events'
    )
    thesis = models.ForeignKey(
        'theses.Thesis',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='events',
        help_text='Thesis this event is about (e.g. its defense)'
    )
    attendees = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='EventAttendee',
        related_name='attended_events',
        blank=True
    )
    notes = models.CharField(max_length=1000, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'calendar_events'
        verbose_name = 'Calendar Event'
        verbose_name_plural = 'Calendar Events'
        indexes = [
            models.Index(fields=['start_date', 'end_date'], name='idx_event_dates'),
            models.Index(fields=['department', 'start_date'], name='idx_event_department'),
            models.Index(fields=['event_type'], name='idx_event_type'),
            models.Index(fields=['status'], name='idx_event_status'),
        ]
        ordering = ['start_date', 'start_time']

    def __str__(self):
        return f"{self.title} ({self.start_date})"

    @property
    def duration_display(self):
        if self.is_all_day:
            days = (self.end_date - self.start_date).days + 1
            return f'{days} day(s)'
        minutes = (self.end_time.hour * 60 + self.end_time.minute) - (self.start_time.hour * 60 + self.start_time.minute)
        days = (self.end_date - self.start_date).days
        minutes += days * 24 * 60
        return f'{minutes // 60}h {minutes % 60}m'


class EventAttendee(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(
        CalendarEvent,
        on_delete=models.CASCADE,
        related_name='attendee_entries'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='event_invitations'
    )
    response = models.CharField(
        max_length=10,
        choices=AttendeeResponseChoices.choices,
        default=AttendeeResponseChoices.PENDING
    )
    responded_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'event_attendees'
        verbose_name = 'Event Attendee'
        verbose_name_plural = 'Event Attendees'
        constraints = [
            models.UniqueConstraint(fields=['event', 'user'], name='uniq_event_attendee'),
        ]

    def __str__(self):
        return f"{self.user} -> {self.event} ({self.response})"


def event_attachment_path(instance, filename):
    extension = os.path.splitext(filename)[1].lower() or '.bin'
    return f'calendar/{instance.event_id}/attachments/{uuid.uuid4().hex}{extension}'


class EventAttachment(models.Model):
    """A file attached to a calendar event by its organizer or an admin."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(
        CalendarEvent,
        on_delete=models.CASCADE,
        related_name='attachments'
    )
    file = models.FileField(upload_to=event_attachment_path, max_length=255)
    original_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=100)
    size_bytes = models.PositiveIntegerField()
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='uploaded_event_attachments'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'event_attachments'
        verbose_name = 'Event Attachment'
        verbose_name_plural = 'Event Attachments'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.original_name} ({self.event_id})"
