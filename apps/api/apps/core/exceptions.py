"""
Domain errors and the API error envelope.

Every error leaves the API as ``{success: false, message, code, errors?}``.
"""
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.observability.correlation import bind_user
from apps.core.observability.metrics import metrics

logger = logging.getLogger(__name__)


class Unauthenticated(exceptions.APIException):
    """Always 401, also on views that declare no authenticators."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication credentials were not provided or are invalid.'
    default_code = 'unauthenticated'


class Forbidden(exceptions.PermissionDenied):
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class NotFound(exceptions.NotFound):
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


class InvalidTransition(Conflict):
    default_detail = 'This status change is not allowed.'
    default_code = 'invalid_transition'


class ThesisLocked(Conflict):
    default_detail = 'Thesis can only be edited while it is a draft.'
    default_code = 'thesis_locked'


class MissingDocument(Conflict):
    default_detail = 'A primary document must be uploaded before submitting.'
    default_code = 'missing_document'


class PayloadTooLarge(exceptions.APIException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = 'Uploaded file is too large.'
    default_code = 'payload_too_large'


class UnsupportedMedia(exceptions.UnsupportedMediaType):
    default_code = 'unsupported_media'

    def __init__(self, media_type='', detail=None, code=None):
        super().__init__(media_type, detail=detail, code=code)


def _message_from(detail):
    """First human-readable message out of a DRF error detail structure."""
    if isinstance(detail, list):
        return _message_from(detail[0]) if detail else ''
    if isinstance(detail, dict):
        if 'detail' in detail:
            return _message_from(detail['detail'])
        for key, value in detail.items():
            message = _message_from(value)
            if key == 'non_field_errors':
                return message
            return f'{key}: {message}'
        return ''
    return str(detail)


def envelope_exception_handler(exc, context):
    """
    DRF exception handler producing the error envelope.

    - DRF validation errors become 422 with field errors under ``errors``
    - Django's Http404/PermissionDenied map to 404/403 (DRF default behaviour)
    - Anything unhandled is logged and rendered as a generic 500
    """
    request = context.get('request')
    if request is not None:
        bind_user(getattr(request, 'user', None))

    if isinstance(exc, Http404):
        exc = NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = Forbidden()

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.error(
            'Unhandled error in API view',
            exc_info=exc,
            extra={
                'event': 'api_unhandled_exception',
                'exception_type': exc.__class__.__name__,
                'view': view.__class__.__name__ if view is not None else None,
            }
        )
        metrics.exceptions_total.labels(exception_type=exc.__class__.__name__).inc()
        return Response(
            {
                'success': False,
                'message': 'An unexpected error occurred.',
                'code': 'server_error',
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    payload = {
        'success': False,
        'message': _message_from(response.data),
    }

    if isinstance(exc, exceptions.ValidationError):
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        payload['code'] = 'validation_error'
        payload['errors'] = response.data
    else:
        codes = exc.get_codes() if isinstance(exc, exceptions.APIException) else None
        payload['code'] = codes if isinstance(codes, str) else getattr(exc, 'default_code', 'error')

    response.data = payload
    return response
