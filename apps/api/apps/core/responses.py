"""
Success envelope helpers: ``{success: true, data, message?}``.
"""
from rest_framework import status as http_status
from rest_framework.response import Response


def success_response(data=None, message=None, status=http_status.HTTP_200_OK, **extra):
    payload = {'success': True, 'data': data}
    if message:
        payload['message'] = message
    payload.update(extra)
    return Response(payload, status=status)


def created_response(data=None, message=None):
    return success_response(data, message=message, status=http_status.HTTP_201_CREATED)
