"""
Authentication endpoints: register, login, current user, profile, password.
"""
import logging

from django.contrib.auth.models import update_last_login
from django.db import transaction
from django.db.models import Prefetch, Q
from rest_framework import permissions
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from apps.academics.models import Course, Department
from apps.accounts.models import User
from apps.accounts.serializers import (
    LoginSerializer,
    PasswordChangeSerializer,
    ProfileUpdateSerializer,
    RegisterDepartmentSerializer,
    RegisterSerializer,
    UserDetailSerializer,
)
from apps.core.exceptions import Unauthenticated
from apps.core.models import AuditActionChoices, AuditStatusChoices, log_action
from apps.core.observability.correlation import bind_user
from apps.core.responses import created_response, success_response

logger = logging.getLogger(__name__)


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


def _token_pair(user):
    refresh = RefreshToken.for_user(user)
    return {'token': str(refresh.access_token), 'refresh': str(refresh)}


class RegisterView(APIView):
    """
    POST /api/v1/auth/register

    Roles: student, faculty or adviser. Admin accounts are never self-registered.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @transaction.atomic
    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        log_action(user, AuditActionChoices.CREATE, 'User', user.pk, description='Self-registration', request=request)
        logger.info(
            'User registered',
            extra={'event': 'user_registered', 'target_user_id': str(user.pk), 'role': user.role}
        )

        return created_response(
            {'user': UserDetailSerializer(user).data, **_token_pair(user)},
            message='User registered successfully',
        )


class LoginView(APIView):
    """
    POST /api/v1/auth/login

    Accepts an email address or a student id plus password. Inactive
    accounts are refused with 401 like bad credentials.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    throttle_classes = [LoginRateThrottle]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identifier = serializer.validated_data['identifier'].strip()
        password = serializer.validated_data['password']

        user = User.objects.filter(
            Q(email__iexact=identifier) | Q(student_id=identifier)
        ).select_related('department', 'course').first()

        if user is None or not user.check_password(password):
            logger.warning('Login failed', extra={'event': 'login_failed', 'reason': 'invalid_credentials'})
            raise Unauthenticated('Invalid credentials.')

        if not user.is_active:
            log_action(
                user, AuditActionChoices.LOGIN, 'User', user.pk,
                description='Login refused: account deactivated',
                status=AuditStatusChoices.FAILED, request=request,
            )
            raise Unauthenticated('Account is deactivated. Please contact an administrator.')

        update_last_login(None, user)
        bind_user(user)
        log_action(user, AuditActionChoices.LOGIN, 'User', user.pk, description='Login', request=request)

        return success_response(
            {'user': UserDetailSerializer(user).data, **_token_pair(user)},
            message='Login successful',
        )


class MeView(APIView):
    """GET /api/v1/auth/me"""

    def get(self, request):
        return success_response(UserDetailSerializer(request.user).data)


class ProfileView(APIView):
    """PATCH /api/v1/auth/profile - name and phone only."""

    def patch(self, request):
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return success_response(UserDetailSerializer(user).data, message='Profile updated successfully')

    put = patch


class ChangePasswordView(APIView):
    """POST /api/v1/auth/change-password"""

    @transaction.atomic
    def post(self, request):
        serializer = PasswordChangeSerializer(data=request.data, context={'user': request.user})
        serializer.is_valid(raise_exception=True)
        serializer.save()

        log_action(
            request.user, AuditActionChoices.UPDATE, 'User', request.user.pk,
            description='Password changed', request=request,
        )
        return success_response(None, message='Password changed successfully')

    put = post


class RegisterDataView(APIView):
    """
    GET /api/v1/auth/register-data

    Active departments with their active courses, for the sign-up form.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request):
        departments = Department.objects.filter(is_active=True).prefetch_related(
            Prefetch('courses', queryset=Course.objects.order_by('name'))
        )
        return success_response(RegisterDepartmentSerializer(departments, many=True).data)
