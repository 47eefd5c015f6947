"""
Calendar API tests.
"""
from datetime import date, time, timedelta

import pytest
from django.utils import timezone

from apps.scheduling.models import (
    AttendeeResponseChoices,
    CalendarEvent,
    EventAttachment,
    EventAttendee,
    EventStatusChoices,
)

from .conftest import make_pdf

CALENDAR_URL = '/api/v1/calendar/'


@pytest.fixture
def make_event(db, department):
    def _make(organizer, days_ahead=7, attendees=(), **fields):
        start = timezone.localdate() + timedelta(days=days_ahead)
        defaults = {
            'title': 'Thesis defense',
            'start_date': start,
            'end_date': start,
            'start_time': time(9, 0),
            'end_time': time(11, 0),
            'event_type': 'Thesis Defense',
            'department': department,
        }
        defaults.update(fields)
        event = CalendarEvent.objects.create(organizer=organizer, **defaults)
        for user in attendees:
            EventAttendee.objects.create(event=event, user=user)
        return event
    return _make


def event_payload(**overrides):
    start = (timezone.localdate() + timedelta(days=3)).isoformat()
    payload = {
        'title': 'Proposal defense',
        'start_date': start,
        'end_date': start,
        'start_time': '13:00',
        'end_time': '15:00',
        'event_type': 'Thesis Defense',
        'department': 'cs',
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestEventCreate:

    def test_adviser_creates_event_with_attendees(self, adviser_client, adviser, student):
        response = adviser_client.post(
            CALENDAR_URL, event_payload(attendee_ids=[str(student.pk)]), format='json'
        )

        assert response.status_code == 201
        data = response.json()['data']
        assert data['organizer']['id'] == str(adviser.pk)
        assert data['department_detail']['code'] == 'CS'
        assert [a['user']['id'] for a in data['attendees']] == [str(student.pk)]
        assert data['attendees'][0]['response'] == AttendeeResponseChoices.PENDING

    def test_student_cannot_create(self, student_client):
        assert student_client.post(CALENDAR_URL, event_payload(), format='json').status_code == 403

    def test_end_before_start_is_422(self, faculty_client):
        start = timezone.localdate() + timedelta(days=3)
        payload = event_payload(end_date=(start - timedelta(days=1)).isoformat())
        response = faculty_client.post(CALENDAR_URL, payload, format='json')
        assert response.status_code == 422
        assert 'end_date' in response.json()['errors']

    def test_same_day_end_time_before_start_is_422(self, faculty_client):
        response = faculty_client.post(CALENDAR_URL, event_payload(end_time='12:00'), format='json')
        assert response.status_code == 422

    def test_all_day_ignores_times(self, faculty_client):
        response = faculty_client.post(
            CALENDAR_URL, event_payload(is_all_day=True, start_time='00:00', end_time='00:00'), format='json'
        )
        assert response.status_code == 201

    def test_unknown_attendee_is_422(self, faculty_client):
        response = faculty_client.post(
            CALENDAR_URL, event_payload(attendee_ids=['00000000-0000-0000-0000-000000000000']), format='json'
        )
        assert response.status_code == 422


@pytest.mark.django_db
class TestEventVisibility:

    def test_department_members_see_event(self, student_client, foreign_adviser_client, admin_client, make_event, adviser):
        event = make_event(adviser)

        assert student_client.get(f'{CALENDAR_URL}{event.pk}/').status_code == 200
        assert admin_client.get(f'{CALENDAR_URL}{event.pk}/').status_code == 200
        assert foreign_adviser_client.get(f'{CALENDAR_URL}{event.pk}/').status_code == 404

    def test_invited_outsider_sees_event(self, foreign_adviser_client, foreign_adviser, make_event, adviser):
        event = make_event(adviser, attendees=[foreign_adviser])
        response = foreign_adviser_client.get(CALENDAR_URL)
        assert [e['id'] for e in response.json()['data']] == [str(event.pk)]

    def test_list_date_filters(self, student_client, make_event, adviser):
        soon = make_event(adviser, days_ahead=2)
        make_event(adviser, days_ahead=30)

        cutoff = (timezone.localdate() + timedelta(days=10)).isoformat()
        response = student_client.get(CALENDAR_URL, {'end_date': cutoff})

        assert [e['id'] for e in response.json()['data']] == [str(soon.pk)]

    def test_bad_date_filter_is_422(self, student_client):
        assert student_client.get(CALENDAR_URL, {'start_date': '31/12/2024'}).status_code == 422

    def test_anonymous_is_401(self, api_client):
        assert api_client.get(CALENDAR_URL).status_code == 401

    def test_upcoming_skips_past_and_cancelled(self, student_client, make_event, adviser):
        upcoming = make_event(adviser, days_ahead=1)
        make_event(adviser, days_ahead=-3)
        make_event(adviser, days_ahead=2, status=EventStatusChoices.CANCELLED)

        response = student_client.get(f'{CALENDAR_URL}upcoming/', {'limit': 5})

        assert [e['id'] for e in response.json()['data']] == [str(upcoming.pk)]


@pytest.mark.django_db
class TestEventManagement:

    def test_organizer_updates_event(self, adviser_client, make_event, adviser):
        event = make_event(adviser)

        response = adviser_client.patch(f'{CALENDAR_URL}{event.pk}/', {'location': 'Room 301'}, format='json')

        assert response.status_code == 200
        assert response.json()['data']['location'] == 'Room 301'

    def test_other_member_cannot_update(self, faculty_client, make_event, adviser):
        event = make_event(adviser)
        response = faculty_client.patch(f'{CALENDAR_URL}{event.pk}/', {'location': 'Elsewhere'}, format='json')
        assert response.status_code == 403

    def test_admin_deletes_event(self, admin_client, make_event, adviser):
        event = make_event(adviser)
        assert admin_client.delete(f'{CALENDAR_URL}{event.pk}/').status_code == 200
        assert not CalendarEvent.objects.filter(pk=event.pk).exists()

    def test_attendee_list_is_replaced(self, adviser_client, make_event, adviser, student, classmate):
        event = make_event(adviser, attendees=[student])

        response = adviser_client.patch(
            f'{CALENDAR_URL}{event.pk}/', {'attendee_ids': [str(classmate.pk)]}, format='json'
        )

        assert [a['user']['id'] for a in response.json()['data']['attendees']] == [str(classmate.pk)]


@pytest.mark.django_db
class TestEventResponse:

    def test_attendee_accepts(self, student_client, make_event, adviser, student):
        event = make_event(adviser, attendees=[student])

        response = student_client.post(f'{CALENDAR_URL}{event.pk}/respond/', {'response': 'Accepted'}, format='json')

        assert response.status_code == 200
        invitation = EventAttendee.objects.get(event=event, user=student)
        assert invitation.response == AttendeeResponseChoices.ACCEPTED
        assert invitation.responded_at is not None

    def test_non_invitee_is_forbidden(self, classmate_client, make_event, adviser, student):
        event = make_event(adviser, attendees=[student])
        response = classmate_client.post(f'{CALENDAR_URL}{event.pk}/respond/', {'response': 'Declined'}, format='json')
        assert response.status_code == 403

    def test_pending_is_not_a_response(self, student_client, make_event, adviser, student):
        event = make_event(adviser, attendees=[student])
        response = student_client.post(f'{CALENDAR_URL}{event.pk}/respond/', {'response': 'Pending'}, format='json')
        assert response.status_code == 422


@pytest.mark.django_db
class TestEventAttachments:

    def attachments_url(self, event):
        return f'{CALENDAR_URL}{event.pk}/attachments/'

    def test_organizer_uploads_files(self, adviser_client, make_event, adviser):
        event = make_event(adviser)

        response = adviser_client.post(
            self.attachments_url(event),
            {'files': [make_pdf('agenda.pdf'), make_pdf('notes.txt', b'room 301', 'text/plain')]},
            format='multipart',
        )

        assert response.status_code == 201
        data = response.json()['data']
        assert [a['original_name'] for a in data] == ['agenda.pdf', 'notes.txt']
        assert EventAttachment.objects.filter(event=event, uploaded_by=adviser).count() == 2

        detail = adviser_client.get(f'{CALENDAR_URL}{event.pk}/').json()['data']
        assert len(detail['attachments']) == 2

    def test_admin_uploads_for_any_event(self, admin_client, make_event, adviser):
        event = make_event(adviser)
        response = admin_client.post(self.attachments_url(event), {'files': [make_pdf()]}, format='multipart')
        assert response.status_code == 201

    def test_other_member_is_forbidden(self, faculty_client, make_event, adviser):
        event = make_event(adviser)

        response = faculty_client.post(self.attachments_url(event), {'files': [make_pdf()]}, format='multipart')

        assert response.status_code == 403
        assert not EventAttachment.objects.exists()

    def test_event_outside_department_is_404(self, foreign_adviser_client, make_event, adviser):
        event = make_event(adviser)
        response = foreign_adviser_client.post(self.attachments_url(event), {'files': [make_pdf()]}, format='multipart')
        assert response.status_code == 404

    def test_missing_files_is_422(self, adviser_client, make_event, adviser):
        event = make_event(adviser)
        response = adviser_client.post(self.attachments_url(event), {}, format='multipart')
        assert response.status_code == 422

    def test_too_many_files_is_422(self, adviser_client, make_event, adviser):
        event = make_event(adviser)
        files = [make_pdf(f'part-{n}.pdf') for n in range(4)]

        response = adviser_client.post(self.attachments_url(event), {'files': files}, format='multipart')

        assert response.status_code == 422
        assert not EventAttachment.objects.exists()

    def test_unsupported_type_refuses_whole_batch(self, adviser_client, make_event, adviser):
        event = make_event(adviser)
        files = [make_pdf(), make_pdf('tool.exe', b'MZ', 'application/x-msdownload')]

        response = adviser_client.post(self.attachments_url(event), {'files': files}, format='multipart')

        assert response.status_code == 415
        assert not EventAttachment.objects.exists()

    def test_oversized_file_is_413(self, settings, adviser_client, make_event, adviser):
        settings.THESIS_MAX_DOCUMENT_SIZE = 16
        event = make_event(adviser)

        response = adviser_client.post(self.attachments_url(event), {'files': [make_pdf()]}, format='multipart')

        assert response.status_code == 413

    def test_event_deletion_removes_stored_files(self, adviser_client, make_event, adviser,
                                                 django_capture_on_commit_callbacks):
        event = make_event(adviser)
        adviser_client.post(self.attachments_url(event), {'files': [make_pdf()]}, format='multipart')
        stored = EventAttachment.objects.get(event=event).file
        storage, name = stored.storage, stored.name
        assert storage.exists(name)

        with django_capture_on_commit_callbacks(execute=True):
            response = adviser_client.delete(f'{CALENDAR_URL}{event.pk}/')

        assert response.status_code == 200
        assert not storage.exists(name)


@pytest.mark.django_db
class TestEventModel:

    def test_duration_display(self, make_event, adviser):
        event = make_event(adviser, start_date=date(2025, 3, 1), end_date=date(2025, 3, 1))
        assert event.duration_display == '2h 0m'
