"""
Calendar API views.
"""
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, MultiPartParser

from apps.accounts.identity import require_identity
from apps.accounts.permissions import CanOrganizeEvents
from apps.core.exceptions import Forbidden, NotFound
from apps.core.responses import created_response, success_response
from apps.scheduling import attachments as event_attachments
from apps.scheduling.models import (
    ACTIVE_EVENT_STATUSES,
    CalendarEvent,
    EventAttendee,
    EventTypeChoices,
)
from apps.scheduling.serializers import (
    CalendarEventSerializer,
    EventAttachmentSerializer,
    EventAttachmentUploadSerializer,
    EventResponseSerializer,
)

logger = logging.getLogger(__name__)


def visible_events(identity, queryset=None):
    """
    Admin: every event. Others: events of their department, events they
    were invited to and events they organise.
    """
    if queryset is None:
        queryset = CalendarEvent.objects.all()
    if identity.is_admin:
        return queryset

    predicate = Q(organizer_id=identity.user_id) | Q(attendee_entries__user_id=identity.user_id)
    if identity.department_id:
        predicate |= Q(department_id=identity.department_id)
    return queryset.filter(pk__in=CalendarEvent.objects.filter(predicate).values('pk'))


def _parse_date(value, name):
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({name: 'Date must be in YYYY-MM-DD format.'})
    return parsed


class CalendarEventViewSet(viewsets.ModelViewSet):
    """
    ViewSet for calendar events.

    Endpoints:
    - GET /api/v1/calendar/ - Events visible to the caller
    - GET /api/v1/calendar/upcoming/ - Next scheduled events
    - GET /api/v1/calendar/{id}/ - Event detail
    - POST /api/v1/calendar/ - Create (Faculty, Adviser, Admin)
    - PATCH /api/v1/calendar/{id}/ - Update (organizer or Admin)
    - DELETE /api/v1/calendar/{id}/ - Delete (organizer or Admin)
    - POST /api/v1/calendar/{id}/respond/ - Accept/decline an invitation (attendees)
    - POST /api/v1/calendar/{id}/attachments/ - Upload files (organizer or Admin)

    Query parameters for list:
    - ?start_date=YYYY-MM-DD - events starting on/after
    - ?end_date=YYYY-MM-DD - events ending on/before
    - ?department=<code>
    - ?event_type=Thesis Defense|Submission Deadline|...
    """
    serializer_class = CalendarEventSerializer

    def get_permissions(self):
        if self.action == 'create':
            return [CanOrganizeEvents()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        identity = require_identity(self.request)
        queryset = CalendarEvent.objects.select_related(
            'department', 'organizer'
        ).prefetch_related('attendee_entries__user', 'attachments')
        queryset = visible_events(identity, queryset)

        if self.action != 'list':
            return queryset

        params = self.request.query_params
        start_date = params.get('start_date')
        if start_date:
            queryset = queryset.filter(start_date__gte=_parse_date(start_date, 'start_date'))

        end_date = params.get('end_date')
        if end_date:
            queryset = queryset.filter(end_date__lte=_parse_date(end_date, 'end_date'))

        department = params.get('department')
        if department:
            queryset = queryset.filter(department__code__iexact=department)

        event_type = params.get('event_type')
        if event_type:
            if event_type not in EventTypeChoices.values:
                raise ValidationError({'event_type': f'Unknown event type: {event_type}'})
            queryset = queryset.filter(event_type=event_type)

        return queryset.order_by('start_date', 'start_time')

    def _assert_can_manage(self, event):
        identity = require_identity(self.request)
        if not identity.is_admin and str(event.organizer_id) != identity.user_id:
            raise Forbidden('Only the organizer or an admin can change this event.')

    def retrieve(self, request, *args, **kwargs):
        return success_response(self.get_serializer(self.get_object()).data)

    @transaction.atomic
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = serializer.save(organizer=request.user)
        event = CalendarEvent.objects.prefetch_related('attendee_entries__user').get(pk=event.pk)
        logger.info(
            'Calendar event created',
            extra={'event': 'calendar_event_created', 'event_id': str(event.pk), 'event_type': event.event_type}
        )
        return created_response(self.get_serializer(event).data, message='Event created successfully')

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        event = self.get_object()
        self._assert_can_manage(event)
        serializer = self.get_serializer(event, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        event = serializer.save()
        event = self.get_queryset().get(pk=event.pk)
        return success_response(self.get_serializer(event).data, message='Event updated successfully')

    def destroy(self, request, *args, **kwargs):
        event = self.get_object()
        self._assert_can_manage(event)
        storage_keys = event_attachments.stored_attachment_keys(event)
        with transaction.atomic():
            event.delete()

            def _remove_files():
                for storage, name in storage_keys:
                    storage.delete(name)

            transaction.on_commit(_remove_files)
        return success_response(None, message='Event deleted successfully')

    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        identity = require_identity(request)
        try:
            limit = min(max(int(request.query_params.get('limit', 10)), 1), 50)
        except ValueError:
            raise ValidationError({'limit': 'Must be an integer.'})

        queryset = self.get_queryset().filter(
            start_date__gte=timezone.localdate(),
            status__in=ACTIVE_EVENT_STATUSES,
        )
        department = request.query_params.get('department')
        if department and identity.is_admin:
            queryset = queryset.filter(department__code__iexact=department)

        events = queryset.order_by('start_date', 'start_time')[:limit]
        return success_response(self.get_serializer(events, many=True).data)

    @action(detail=True, methods=['post', 'put'])
    def respond(self, request, pk=None):
        identity = require_identity(request)
        event = self.get_object()
        serializer = EventResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        invitation = EventAttendee.objects.filter(event=event, user_id=identity.user_id).first()
        if invitation is None:
            raise Forbidden('You are not invited to this event.')

        invitation.response = serializer.validated_data['response']
        invitation.responded_at = timezone.now()
        invitation.save(update_fields=['response', 'responded_at'])
        event = self.get_queryset().get(pk=event.pk)
        return success_response(
            self.get_serializer(event).data,
            message=f'Invitation {invitation.response.lower()}',
        )

    @action(detail=True, methods=['post'], parser_classes=[MultiPartParser, FormParser])
    def attachments(self, request, pk=None):
        identity = require_identity(request)
        event = self.get_object()
        event_attachments.assert_can_attach(identity, event)
        serializer = EventAttachmentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        added = event_attachments.add_event_attachments(
            identity, event, serializer.validated_data['files'], actor=request.user
        )
        return created_response(
            EventAttachmentSerializer(added, many=True).data,
            message='Attachments uploaded successfully',
        )
