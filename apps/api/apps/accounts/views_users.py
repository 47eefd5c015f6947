"""
User Administration ViewSet.
"""
from django.db import models, transaction
from rest_framework import mixins, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser

from apps.academics.models import Department
from apps.accounts.identity import require_identity
from apps.accounts.models import RoleChoices, User
from apps.accounts.permissions import IsAdmin, IsSelfOrAdmin
from apps.accounts.serializers import (
    AdminUserUpdateSerializer,
    AvatarUploadSerializer,
    BulkUserOperationSerializer,
    ProfileUpdateSerializer,
    UserDetailSerializer,
    UserListSerializer,
)
from apps.accounts.services import bulk_user_operation, delete_user, store_avatar
from apps.core.exceptions import NotFound
from apps.core.models import AuditActionChoices, log_action
from apps.core.responses import success_response


class UserViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for user endpoints.

    Endpoints:
    - GET /api/v1/users/ - List users (Admin)
    - GET /api/v1/users/{id}/ - User detail (self or Admin)
    - PATCH /api/v1/users/{id}/ - Update user (self: name/phone; Admin: everything)
    - DELETE /api/v1/users/{id}/ - Delete user (Admin, never self)
    - GET /api/v1/users/{id}/stats/ - Thesis statistics (self or Admin)
    - POST /api/v1/users/{id}/avatar/ - Upload avatar (self or Admin)
    - GET /api/v1/users/faculty/ - Active faculty and advisers
    - GET /api/v1/users/by-department/{code}/ - Active users of a department
    - POST /api/v1/users/bulk/ - Bulk activate/deactivate/delete (Admin)

    Query parameters for list:
    - ?search=term - Search by name, email or student id
    - ?role=student|faculty|adviser|admin
    - ?department=<code>
    - ?is_active=true|false
    """
    queryset = User.objects.select_related('department', 'course')

    def get_permissions(self):
        if self.action in ('list', 'destroy', 'bulk'):
            return [IsAdmin()]
        if self.action in ('retrieve', 'partial_update', 'update', 'stats', 'avatar'):
            return [permissions.IsAuthenticated(), IsSelfOrAdmin()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != 'list':
            return queryset

        params = self.request.query_params
        search = params.get('search')
        if search:
            queryset = queryset.filter(
                models.Q(first_name__icontains=search) |
                models.Q(last_name__icontains=search) |
                models.Q(email__icontains=search) |
                models.Q(student_id__icontains=search)
            )

        role = params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        department = params.get('department')
        if department:
            queryset = queryset.filter(department__code__iexact=department)

        is_active = params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')

        return queryset.order_by('-created_at')

    def get_serializer_class(self):
        if self.action == 'list':
            return UserListSerializer
        return UserDetailSerializer

    def retrieve(self, request, *args, **kwargs):
        return success_response(UserDetailSerializer(self.get_object()).data)

    @transaction.atomic
    def partial_update(self, request, *args, **kwargs):
        identity = require_identity(request)
        instance = self.get_object()

        serializer_class = AdminUserUpdateSerializer if identity.is_admin else ProfileUpdateSerializer
        serializer = serializer_class(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        before = {key: str(getattr(instance, key)) for key in serializer.validated_data}
        user = serializer.save()
        after = {key: str(getattr(user, key)) for key in serializer.validated_data}

        changed_fields = {
            key: {'before': before[key], 'after': after[key]}
            for key in before
            if before[key] != after[key]
        }
        log_action(
            request.user,
            AuditActionChoices.UPDATE,
            'User',
            user.pk,
            description=f'Updated user {user.email}',
            metadata={'changed_fields': changed_fields},
            request=request,
        )
        return success_response(UserDetailSerializer(user).data, message='User updated successfully')

    def update(self, request, *args, **kwargs):
        return self.partial_update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        result = delete_user(request.user, user, request=request)
        return success_response(result, message='User deleted successfully')

    @action(detail=True, methods=['get'])
    def stats(self, request, pk=None):
        """Thesis totals for a user (created or co-authored)."""
        from apps.theses.models import Thesis, ThesisStatus

        user = self.get_object()
        authored = Thesis.objects.filter(
            models.Q(creator=user) | models.Q(co_authors=user)
        ).values('pk')
        theses = Thesis.objects.filter(pk__in=authored)

        by_status = {value: 0 for value in ThesisStatus.values}
        for row in theses.order_by().values('status').annotate(total=models.Count('id')):
            by_status[row['status']] = row['total']

        totals = theses.aggregate(
            views=models.Sum('view_count'),
            downloads=models.Sum('download_count'),
        )
        data = {
            'total_theses': sum(by_status.values()),
            'by_status': by_status,
            'total_views': totals['views'] or 0,
            'total_downloads': totals['downloads'] or 0,
        }
        if user.role == RoleChoices.ADVISER:
            data['advised_theses'] = Thesis.objects.filter(adviser=user).count()
        return success_response(data)

    @action(detail=True, methods=['post'], parser_classes=[MultiPartParser, FormParser])
    def avatar(self, request, pk=None):
        user = self.get_object()
        serializer = AvatarUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        key = store_avatar(user, serializer.validated_data['avatar'])
        return success_response({'avatar': key}, message='Avatar uploaded successfully')

    @action(detail=False, methods=['get'])
    def faculty(self, request):
        """Active faculty and advisers, e.g. for choosing a thesis adviser."""
        queryset = User.objects.filter(
            role__in=[RoleChoices.FACULTY, RoleChoices.ADVISER],
            is_active=True,
        ).select_related('department', 'course')

        department = request.query_params.get('department')
        if department:
            queryset = queryset.filter(department__code__iexact=department)

        queryset = queryset.order_by('first_name', 'last_name')
        return success_response(UserListSerializer(queryset, many=True).data)

    @action(detail=False, methods=['get'], url_path=r'by-department/(?P<code>[^/.]+)')
    def by_department(self, request, code=None):
        if not Department.objects.filter(code__iexact=code).exists():
            raise NotFound('Department not found.')

        queryset = User.objects.filter(
            department__code__iexact=code,
            is_active=True,
        ).select_related('department', 'course')

        role = request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        queryset = queryset.order_by('first_name', 'last_name')
        return success_response(UserListSerializer(queryset, many=True).data)

    @action(detail=False, methods=['post'])
    def bulk(self, request):
        serializer = BulkUserOperationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = bulk_user_operation(
            request.user,
            serializer.validated_data['operation'],
            serializer.validated_data['ids'],
            request=request,
        )
        return success_response(result, message='Bulk operation completed')
