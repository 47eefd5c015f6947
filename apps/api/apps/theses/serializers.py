"""
Theses serializers.
"""
import re

from rest_framework import serializers

from apps.academics.models import Course, Department
from apps.accounts.serializers import CourseRefSerializer, DepartmentRefSerializer, UserSummarySerializer
from apps.theses.models import (
    CategoryChoices,
    SemesterChoices,
    Thesis,
    ThesisDocument,
    ThesisStatus,
    ThesisStatusChange,
    normalize_status,
)

ACADEMIC_YEAR_RE = re.compile(r'^(\d{4})-(\d{4})$')
MAX_ABSTRACT_LENGTH = 2000
MAX_KEYWORDS = 20


class ThesisDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = ThesisDocument
        fields = [
            'id',
            'kind',
            'original_name',
            'content_type',
            'size_bytes',
            'sha256',
            'is_current',
            'created_at',
        ]
        read_only_fields = fields


class ThesisListSerializer(serializers.ModelSerializer):
    """
    Used for:
    - GET /api/v1/theses/ (all scopes), /mine/, /pending/
    """
    creator = UserSummarySerializer(read_only=True)
    department = DepartmentRefSerializer(read_only=True)
    program = CourseRefSerializer(read_only=True)
    adviser = serializers.SerializerMethodField()
    has_document = serializers.SerializerMethodField()

    class Meta:
        model = Thesis
        fields = [
            'id',
            'title',
            'abstract',
            'keywords',
            'creator',
            'adviser',
            'department',
            'program',
            'academic_year',
            'semester',
            'category',
            'status',
            'is_public',
            'has_document',
            'view_count',
            'download_count',
            'created_at',
            'submitted_at',
            'published_at',
        ]
        read_only_fields = fields

    def get_adviser(self, obj):
        return obj.adviser_display

    def get_has_document(self, obj):
        return obj.primary_document_id is not None


class ThesisDetailSerializer(ThesisListSerializer):
    co_authors = UserSummarySerializer(many=True, read_only=True)
    adviser_user = UserSummarySerializer(source='adviser', read_only=True)
    reviewer = UserSummarySerializer(read_only=True)
    primary_document = ThesisDocumentSerializer(read_only=True)
    supplementary_files = serializers.SerializerMethodField()

    class Meta(ThesisListSerializer.Meta):
        fields = ThesisListSerializer.Meta.fields + [
            'co_authors',
            'adviser_user',
            'primary_document',
            'supplementary_files',
            'reviewer',
            'review_comments',
            'review_score',
            'reviewed_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_supplementary_files(self, obj):
        files = obj.documents.filter(kind='supplementary').order_by('created_at')
        return ThesisDocumentSerializer(files, many=True).data


def _validate_academic_year(value):
    match = ACADEMIC_YEAR_RE.match(value or '')
    if not match or int(match.group(2)) != int(match.group(1)) + 1:
        raise serializers.ValidationError('Academic year must look like 2024-2025.')
    return value


def _clean_keywords(value):
    keywords = []
    for keyword in value:
        keyword = keyword.strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    if len(keywords) > MAX_KEYWORDS:
        raise serializers.ValidationError(f'At most {MAX_KEYWORDS} keywords are allowed.')
    return keywords


class ThesisCreateSerializer(serializers.Serializer):
    """
    POST /api/v1/theses/

    department and program are given by code.
    """
    title = serializers.CharField(max_length=200)
    abstract = serializers.CharField(max_length=MAX_ABSTRACT_LENGTH)
    keywords = serializers.ListField(child=serializers.CharField(max_length=50), required=False, default=list)
    department = serializers.SlugRelatedField(slug_field='code', queryset=Department.objects.filter(is_active=True))
    program = serializers.SlugRelatedField(slug_field='code', queryset=Course.objects.filter(is_active=True))
    academic_year = serializers.CharField(max_length=9)
    semester = serializers.ChoiceField(choices=SemesterChoices.choices)
    category = serializers.ChoiceField(choices=CategoryChoices.choices)
    co_authors = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    adviser = serializers.UUIDField(required=False, allow_null=True)
    adviser_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def to_internal_value(self, data):
        # Codes are stored upper-case
        if hasattr(data, 'copy'):
            data = data.copy()
            for key in ('department', 'program'):
                if isinstance(data.get(key), str):
                    data[key] = data[key].strip().upper()
        return super().to_internal_value(data)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Title cannot be blank.')
        return value

    def validate_academic_year(self, value):
        return _validate_academic_year(value)

    def validate_keywords(self, value):
        return _clean_keywords(value)


class ThesisUpdateSerializer(serializers.Serializer):
    """
    PATCH /api/v1/theses/{id}/

    Either a metadata subset or {status} (optionally with comments/score),
    never both.
    """
    title = serializers.CharField(max_length=200, required=False)
    abstract = serializers.CharField(max_length=MAX_ABSTRACT_LENGTH, required=False)
    keywords = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    academic_year = serializers.CharField(max_length=9, required=False)
    semester = serializers.ChoiceField(choices=SemesterChoices.choices, required=False)
    category = serializers.ChoiceField(choices=CategoryChoices.choices, required=False)
    adviser = serializers.UUIDField(required=False, allow_null=True)
    adviser_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    is_public = serializers.BooleanField(required=False)

    status = serializers.CharField(required=False)
    comments = serializers.CharField(required=False, allow_blank=True)
    score = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=100)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Title cannot be blank.')
        return value

    def validate_academic_year(self, value):
        return _validate_academic_year(value)

    def validate_keywords(self, value):
        return _clean_keywords(value)

    def validate_status(self, value):
        try:
            return normalize_status(value)
        except ValueError:
            raise serializers.ValidationError(f'Unknown status: {value}')

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update.')
        if 'status' in attrs:
            metadata = set(attrs) - {'status', 'comments', 'score'}
            if metadata:
                raise serializers.ValidationError(
                    'Status changes cannot be combined with metadata edits: ' + ', '.join(sorted(metadata))
                )
        return attrs


class TransitionSerializer(serializers.Serializer):
    """Body of submit/approve/reject/publish."""
    comments = serializers.CharField(required=False, allow_blank=True, default='')
    score = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=100)


class ResetStatusSerializer(serializers.Serializer):
    status = serializers.CharField()
    comment = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_status(self, value):
        try:
            status = normalize_status(value)
        except ValueError:
            raise serializers.ValidationError(f'Unknown status: {value}')
        if status not in (ThesisStatus.DRAFT, ThesisStatus.UNDER_REVIEW):
            raise serializers.ValidationError('A thesis can only be reset to Draft or Under Review.')
        return status


class DocumentUploadSerializer(serializers.Serializer):
    file = serializers.FileField()


class ThesisStatusChangeSerializer(serializers.ModelSerializer):
    actor = UserSummarySerializer(read_only=True)

    class Meta:
        model = ThesisStatusChange
        fields = ['id', 'action', 'from_status', 'to_status', 'actor', 'comment', 'is_correction', 'created_at']
        read_only_fields = fields


class BulkThesisOperationSerializer(serializers.Serializer):
    operation = serializers.ChoiceField(choices=['publish', 'unpublish'])
    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1, max_length=100)
