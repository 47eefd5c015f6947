"""
Thesis API views.

Every detail request, read or write, first passes apps.theses.visibility
(invisible theses answer 404). Status changes then go through
apps.theses.transitions and files through apps.theses.documents; this
module only translates HTTP to those calls.
"""
from django.db.models import F, Q
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, MultiPartParser

from apps.accounts.identity import identity_from_request, require_identity
from apps.accounts.permissions import CanAuthorThesis, IsAdmin
from apps.core.exceptions import Forbidden, NotFound
from apps.core.responses import created_response, success_response
from apps.theses import documents, services, transitions
from apps.theses.models import Thesis, ThesisStatus, TransitionAction, normalize_status
from apps.theses.serializers import (
    BulkThesisOperationSerializer,
    DocumentUploadSerializer,
    ResetStatusSerializer,
    ThesisCreateSerializer,
    ThesisDetailSerializer,
    ThesisDocumentSerializer,
    ThesisListSerializer,
    ThesisStatusChangeSerializer,
    ThesisUpdateSerializer,
    TransitionSerializer,
)
from apps.theses.visibility import SCOPE_ARCHIVE, SCOPE_MINE, SCOPES, can_view, visible_theses

SORT_FIELDS = ('title', 'published_at', 'download_count', 'view_count', 'created_at')


class ThesisViewSet(viewsets.GenericViewSet):
    """
    ViewSet for thesis endpoints.

    Endpoints:
    - GET /api/v1/theses/ - List (?scope=archive|mine|managed, default archive)
    - POST /api/v1/theses/ - Create a draft (Student, Faculty)
    - GET /api/v1/theses/{id}/ - Detail (visibility-checked, counts a view)
    - PATCH /api/v1/theses/{id}/ - Metadata subset, or {status} routed to the workflow
    - DELETE /api/v1/theses/{id}/ - Delete with documents (Admin)
    - POST /api/v1/theses/{id}/submit/ - Draft -> Under Review (creator)
    - POST /api/v1/theses/{id}/approve/ - Under Review -> Approved (department adviser, Admin)
    - POST /api/v1/theses/{id}/reject/ - Under Review -> Rejected (department adviser, Admin)
    - POST /api/v1/theses/{id}/publish/ - Approved/Under Review -> Published (Admin)
    - POST /api/v1/theses/{id}/reset-status/ - Correction back to Draft/Under Review (Admin)
    - POST /api/v1/theses/{id}/document/ - Upload primary PDF
    - POST /api/v1/theses/{id}/supplementary/ - Upload a supplementary file
    - GET /api/v1/theses/{id}/download/ - Stream primary PDF (counts a download)
    - GET /api/v1/theses/{id}/history/ - Status changes
    - GET /api/v1/theses/mine/ - Created or co-authored theses
    - GET /api/v1/theses/pending/ - Under Review queue (Adviser: own department, Admin: all)
    - POST /api/v1/theses/bulk/ - Bulk publish/unpublish (Admin)

    Query parameters for list:
    - ?search=term - title, abstract, author or adviser name
    - ?department=<code>, ?program=<code>, ?academic_year=2024-2025
    - ?category=..., ?status=...
    - ?sort_by=title|published_at|download_count|view_count|created_at
    - ?sort_order=asc|desc
    - ?page=N&limit=M
    """
    queryset = Thesis.objects.select_related(
        'creator', 'adviser', 'reviewer', 'department', 'program', 'primary_document'
    )

    def get_permissions(self):
        if self.action in ('list', 'retrieve', 'download', 'history'):
            return [permissions.AllowAny()]
        if self.action == 'create':
            return [CanAuthorThesis()]
        if self.action in ('destroy', 'bulk'):
            return [IsAdmin()]
        return [permissions.IsAuthenticated()]

    def get_serializer_class(self):
        if self.action in ('list', 'mine', 'pending'):
            return ThesisListSerializer
        if self.action == 'create':
            return ThesisCreateSerializer
        if self.action == 'partial_update':
            return ThesisUpdateSerializer
        return ThesisDetailSerializer

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_visible(self, pk):
        """Thesis ``pk`` if the caller may see it; invisible theses are reported as missing."""
        thesis = self.get_object()
        if not can_view(identity_from_request(self.request), thesis):
            raise NotFound('Thesis not found.')
        return thesis

    def _detail(self, thesis):
        thesis = self.get_queryset().prefetch_related('co_authors').get(pk=thesis.pk)
        return ThesisDetailSerializer(thesis).data

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        serializer = ThesisListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def _apply_filters(self, queryset):
        params = self.request.query_params

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) |
                Q(abstract__icontains=search) |
                Q(adviser_name__icontains=search) |
                Q(creator__first_name__icontains=search) |
                Q(creator__last_name__icontains=search)
            )

        department = params.get('department')
        if department:
            queryset = queryset.filter(department__code__iexact=department)

        program = params.get('program')
        if program:
            queryset = queryset.filter(program__code__iexact=program)

        academic_year = params.get('academic_year')
        if academic_year:
            queryset = queryset.filter(academic_year=academic_year)

        category = params.get('category')
        if category:
            queryset = queryset.filter(category=category)

        status = params.get('status')
        if status:
            try:
                queryset = queryset.filter(status=normalize_status(status))
            except ValueError:
                raise ValidationError({'status': f'Unknown status: {status}'})

        return queryset

    def _apply_sort(self, queryset):
        params = self.request.query_params
        sort_by = params.get('sort_by', 'created_at')
        if sort_by not in SORT_FIELDS:
            raise ValidationError({'sort_by': f'Must be one of: {", ".join(SORT_FIELDS)}'})
        sort_order = params.get('sort_order', 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationError({'sort_order': 'Must be asc or desc.'})

        field = F(sort_by)
        ordering = field.asc(nulls_last=True) if sort_order == 'asc' else field.desc(nulls_last=True)
        return queryset.order_by(ordering, '-created_at')

    def _transition(self, request, pk, transition_action):
        identity = require_identity(request)
        self._get_visible(pk)
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        thesis = transitions.apply_transition(
            identity,
            pk,
            transition_action,
            actor=request.user,
            comments=serializer.validated_data.get('comments', ''),
            score=serializer.validated_data.get('score'),
        )
        return success_response(
            self._detail(thesis),
            message=f'Thesis status changed to {thesis.status}',
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def list(self, request):
        identity = identity_from_request(request)
        scope = request.query_params.get('scope', SCOPE_ARCHIVE)
        if scope not in SCOPES:
            raise ValidationError({'scope': f'Must be one of: {", ".join(SCOPES)}'})
        if identity is None:
            scope = SCOPE_ARCHIVE

        queryset = visible_theses(identity, scope, queryset=self.get_queryset())
        queryset = self._apply_sort(self._apply_filters(queryset))
        return self._paginated(queryset)

    def create(self, request):
        identity = require_identity(request)
        serializer = ThesisCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        thesis = services.create_thesis(identity, request.user, serializer.validated_data, request=request)
        return created_response(self._detail(thesis), message='Thesis created successfully')

    def retrieve(self, request, pk=None):
        thesis = self._get_visible(pk)
        Thesis.objects.filter(pk=thesis.pk).update(view_count=F('view_count') + 1)
        return success_response(self._detail(thesis))

    def partial_update(self, request, pk=None):
        identity = require_identity(request)
        self._get_visible(pk)
        serializer = ThesisUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if 'status' in data:
            thesis = transitions.transition_to_status(
                identity,
                pk,
                data['status'],
                actor=request.user,
                comments=data.get('comments', ''),
                score=data.get('score'),
            )
            return success_response(self._detail(thesis), message=f'Thesis status changed to {thesis.status}')

        thesis = services.update_metadata(identity, pk, data, actor=request.user, request=request)
        return success_response(self._detail(thesis), message='Thesis updated successfully')

    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    def destroy(self, request, pk=None):
        thesis = self.get_object()
        result = services.delete_thesis(request.user, thesis, request=request)
        return success_response(result, message='Thesis deleted successfully')

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        return self._transition(request, pk, TransitionAction.SUBMIT)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return self._transition(request, pk, TransitionAction.APPROVE)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return self._transition(request, pk, TransitionAction.REJECT)

    @action(detail=True, methods=['post'])
    def publish(self, request, pk=None):
        return self._transition(request, pk, TransitionAction.PUBLISH)

    @action(detail=True, methods=['post'], url_path='reset-status')
    def reset_status(self, request, pk=None):
        identity = require_identity(request)
        if not identity.is_admin:
            raise Forbidden('Only an admin can reset a thesis status.')
        serializer = ResetStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        thesis = transitions.reset_status(
            identity,
            pk,
            serializer.validated_data['status'],
            actor=request.user,
            comment=serializer.validated_data.get('comment', ''),
        )
        return success_response(self._detail(thesis), message=f'Thesis status reset to {thesis.status}')

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        thesis = self._get_visible(pk)
        changes = thesis.status_changes.select_related('actor').order_by('created_at')
        return success_response(ThesisStatusChangeSerializer(changes, many=True).data)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @action(detail=True, methods=['post'], parser_classes=[MultiPartParser, FormParser])
    def document(self, request, pk=None):
        identity = require_identity(request)
        self._get_visible(pk)
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = documents.bind_primary_document(
            identity, pk, serializer.validated_data['file'], actor=request.user
        )
        return created_response(ThesisDocumentSerializer(document).data, message='Document uploaded successfully')

    @action(detail=True, methods=['post'], parser_classes=[MultiPartParser, FormParser])
    def supplementary(self, request, pk=None):
        identity = require_identity(request)
        self._get_visible(pk)
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = documents.add_supplementary_file(
            identity, pk, serializer.validated_data['file'], actor=request.user
        )
        return created_response(ThesisDocumentSerializer(document).data, message='File uploaded successfully')

    @action(detail=True, methods=['get'])
    def download(self, request, pk=None):
        thesis = self._get_visible(pk)
        return documents.stream_primary_document(thesis)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @action(detail=False, methods=['get'])
    def mine(self, request):
        identity = require_identity(request)
        queryset = visible_theses(identity, SCOPE_MINE, queryset=self.get_queryset())
        queryset = self._apply_sort(self._apply_filters(queryset))
        return self._paginated(queryset)

    @action(detail=False, methods=['get'])
    def pending(self, request):
        identity = require_identity(request)
        queryset = self.get_queryset().filter(status=ThesisStatus.UNDER_REVIEW)
        if identity.is_adviser:
            queryset = queryset.filter(department_id=identity.department_id)
        elif not identity.is_admin:
            raise Forbidden('Only advisers and admins can see the review queue.')
        return self._paginated(queryset.order_by(F('submitted_at').asc(nulls_last=True)))

    @action(detail=False, methods=['post'])
    def bulk(self, request):
        identity = require_identity(request)
        serializer = BulkThesisOperationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.bulk_publication(
            identity,
            request.user,
            serializer.validated_data['operation'],
            serializer.validated_data['ids'],
            request=request,
        )
        return success_response(result, message='Bulk operation completed')
