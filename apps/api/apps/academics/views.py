"""
Academics views: departments and courses.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models, transaction
from rest_framework import viewsets
from rest_framework.decorators import action

from apps.academics.models import Course, Department
from apps.academics.serializers import CourseSerializer, DepartmentSerializer
from apps.accounts.identity import identity_from_request
from apps.accounts.permissions import CourseWritePermission, DepartmentPermission
from apps.core.exceptions import Conflict
from apps.core.models import AuditActionChoices, log_action
from apps.core.responses import created_response, success_response


class AuditedModelViewSet(viewsets.ModelViewSet):
    """ModelViewSet answering in the success envelope and auditing writes."""
    resource_type = None

    def _is_admin(self):
        identity = identity_from_request(self.request)
        return identity is not None and identity.is_admin

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_object())
        return success_response(serializer.data)

    @transaction.atomic
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = serializer.save()
        log_action(
            request.user, AuditActionChoices.CREATE, self.resource_type, instance.pk,
            description=f'Created {self.resource_type.lower()} {instance}', request=request,
        )
        return created_response(serializer.data, message=f'{self.resource_type} created successfully')

    @transaction.atomic
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        instance = serializer.save()
        log_action(
            request.user, AuditActionChoices.UPDATE, self.resource_type, instance.pk,
            description=f'Updated {self.resource_type.lower()} {instance}',
            metadata={'fields': sorted(serializer.validated_data)},
            request=request,
        )
        return success_response(serializer.data, message=f'{self.resource_type} updated successfully')

    @transaction.atomic
    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        if instance.is_referenced():
            raise Conflict(
                f'{self.resource_type} is still in use by users or theses and cannot be deleted. '
                'Deactivate it instead.'
            )
        pk = instance.pk
        label = str(instance)
        instance.delete()
        log_action(
            request.user, AuditActionChoices.DELETE, self.resource_type, pk,
            description=f'Deleted {self.resource_type.lower()} {label}', request=request,
        )
        return success_response(None, message=f'{self.resource_type} deleted successfully')


class DepartmentViewSet(AuditedModelViewSet):
    """
    Endpoints:
    - GET /api/v1/departments/ - List (non-admin: active only)
    - GET /api/v1/departments/{id}/ - Detail with statistics
    - POST /api/v1/departments/ - Create (Admin)
    - PATCH /api/v1/departments/{id}/ - Update (Admin)
    - DELETE /api/v1/departments/{id}/ - Delete (Admin, refused while referenced)
    - GET /api/v1/departments/{id}/courses/ - Courses of the department
    """
    serializer_class = DepartmentSerializer
    permission_classes = [DepartmentPermission]
    resource_type = 'Department'

    def get_queryset(self):
        queryset = Department.objects.select_related('head')
        if not self._is_admin():
            queryset = queryset.filter(is_active=True)

        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                models.Q(name__icontains=search) | models.Q(code__icontains=search)
            )
        return queryset.order_by('name')

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['include_statistics'] = self.action in ('retrieve', 'list')
        return context

    @action(detail=True, methods=['get'])
    def courses(self, request, pk=None):
        department = self.get_object()
        queryset = department.courses.all()
        if not self._is_admin():
            queryset = queryset.filter(is_active=True)
        return success_response(CourseSerializer(queryset.order_by('name'), many=True).data)


class CourseViewSet(AuditedModelViewSet):
    """
    Endpoints:
    - GET /api/v1/courses/ - List (non-admin: active only)
    - GET /api/v1/courses/{id}/
    - POST/PATCH/DELETE /api/v1/courses/... - Admin or Faculty

    Query parameters:
    - ?department=<department code or id>
    - ?level=Undergraduate|Graduate|Doctoral
    - ?search=term
    """
    serializer_class = CourseSerializer
    permission_classes = [CourseWritePermission]
    resource_type = 'Course'

    def get_queryset(self):
        queryset = Course.objects.select_related('department')
        if not self._is_admin():
            queryset = queryset.filter(is_active=True)

        params = self.request.query_params
        department = params.get('department')
        if department:
            lookup = models.Q(department__code__iexact=department)
            try:
                lookup |= models.Q(department_id=Department._meta.pk.to_python(department))
            except DjangoValidationError:
                # not a UUID, code lookup only
                pass
            queryset = queryset.filter(lookup)

        level = params.get('level')
        if level:
            queryset = queryset.filter(level=level)

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                models.Q(name__icontains=search) |
                models.Q(code__icontains=search) |
                models.Q(description__icontains=search)
            )
        return queryset.order_by('name')
