"""
Tests for the observability layer and the API envelope.

Validates correlation ids, log redaction, health probes, metrics and the
error envelope produced by the exception handler.
"""
import json
import logging
from unittest.mock import Mock

import pytest
from rest_framework.exceptions import NotFound as DRFNotFound
from rest_framework.exceptions import ValidationError

from apps.core.exceptions import Forbidden, InvalidTransition, envelope_exception_handler
from apps.core.observability.correlation import (
    RequestCorrelationMiddleware,
    clear_request_context,
    get_request_id,
)
from apps.core.observability.logging import (
    CorrelationFilter,
    SanitizedJSONFormatter,
    sanitize_dict,
)
from apps.core.observability.metrics import metrics
from apps.theses import transitions
from apps.theses.models import ThesisStatus


@pytest.fixture(autouse=True)
def _clean_context():
    clear_request_context()
    yield
    clear_request_context()


class TestRequestCorrelation:

    def test_generates_request_id_if_missing(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={}, path='/api/v1/theses/', method='GET')
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id
        assert get_request_id() == request.request_id

    def test_propagates_existing_request_id(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={'HTTP_X_REQUEST_ID': 'req-123'}, path='/api/v1/theses/', method='GET')
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id == 'req-123'

    @pytest.mark.django_db
    def test_header_round_trip(self, client):
        response = client.get('/healthz', HTTP_X_REQUEST_ID='trace-42')
        assert response['X-Request-ID'] == 'trace-42'


class TestSanitization:

    def test_sanitize_dict_redacts_credentials_and_contact_data(self):
        data = {
            'thesis_id': 'abc',
            'password': 'hunter2',
            'email': 'someone@uni.test',
            'nested': {'token': 'jwt', 'status': 'Draft'},
            'items': [{'student_id': '2024-0001'}],
        }

        sanitized = sanitize_dict(data)

        assert sanitized['thesis_id'] == 'abc'
        assert sanitized['password'] == '[REDACTED]'
        assert sanitized['email'] == '[REDACTED]'
        assert sanitized['nested'] == {'token': '[REDACTED]', 'status': 'Draft'}
        assert sanitized['items'] == [{'student_id': '[REDACTED]'}]
        assert data['password'] == 'hunter2'

    def test_non_dict_is_returned_unchanged(self):
        assert sanitize_dict('plain') == 'plain'

    def test_json_formatter_redacts_extra_fields(self):
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 1, 'Login', None, None)
        record.event = 'login_failed'
        record.email = 'someone@uni.test'
        CorrelationFilter().filter(record)

        payload = json.loads(SanitizedJSONFormatter().format(record))

        assert payload['message'] == 'Login'
        assert payload['event'] == 'login_failed'
        assert payload['email'] == '[REDACTED]'
        assert payload['request_id'] == '-'


class TestErrorEnvelope:

    def test_domain_conflict(self):
        response = envelope_exception_handler(InvalidTransition(), {})

        assert response.status_code == 409
        assert response.data == {
            'success': False,
            'message': InvalidTransition.default_detail,
            'code': 'invalid_transition',
        }

    def test_validation_error_is_422(self):
        response = envelope_exception_handler(ValidationError({'title': ['This field is required.']}), {})

        assert response.status_code == 422
        assert response.data['code'] == 'validation_error'
        assert response.data['message'] == 'title: This field is required.'
        assert response.data['errors'] == {'title': ['This field is required.']}

    def test_not_found(self):
        response = envelope_exception_handler(DRFNotFound(), {})
        assert response.status_code == 404
        assert response.data['success'] is False

    def test_unhandled_error_is_generic_500(self):
        before = metrics.exceptions_total.labels(exception_type='RuntimeError')._value.get()

        response = envelope_exception_handler(RuntimeError('database password is xyz'), {})

        assert response.status_code == 500
        assert response.data == {
            'success': False,
            'message': 'An unexpected error occurred.',
            'code': 'server_error',
        }
        assert metrics.exceptions_total.labels(exception_type='RuntimeError')._value.get() == before + 1


@pytest.mark.django_db
class TestProbes:

    def test_healthz(self, client):
        response = client.get('/healthz')

        assert response.status_code == 200
        assert response.json()['status'] == 'ok'
        assert response.json()['service'] == 'thesis-archive'

    def test_readyz(self, client):
        response = client.get('/readyz')

        assert response.status_code == 200
        assert response.json()['checks'] == {'database': True}

    def test_metrics_exposes_thesis_counters(self, client):
        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'thesis_transitions_total' in response.content


@pytest.mark.django_db
class TestTransitionMetrics:

    def test_refused_transition_is_counted(self, make_thesis, student, adviser, identity_of):
        thesis = make_thesis(student, status=ThesisStatus.APPROVED)
        counter = metrics.thesis_transitions_total.labels(action='publish', result='forbidden')
        before = counter._value.get()

        with pytest.raises(Forbidden):
            transitions.apply_transition(identity_of(adviser), thesis.pk, 'publish', actor=adviser)

        assert counter._value.get() == before + 1
