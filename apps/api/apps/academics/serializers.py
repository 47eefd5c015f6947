"""
Academics serializers: departments and courses.

Duplicate codes/names surface as 409 Conflict rather than field errors.
"""
from rest_framework import serializers

from apps.academics.models import Course, CourseLevelChoices, Department
from apps.core.exceptions import Conflict


class DepartmentSerializer(serializers.ModelSerializer):
    name = serializers.CharField(max_length=100)
    code = serializers.CharField(max_length=10)
    head_name = serializers.SerializerMethodField()
    statistics = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = [
            'id',
            'name',
            'code',
            'description',
            'head',
            'head_name',
            'contact_email',
            'contact_phone',
            'is_active',
            'statistics',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'head_name', 'statistics', 'created_at', 'updated_at']

    def get_head_name(self, obj):
        return obj.head.full_name if obj.head_id else None

    def get_statistics(self, obj):
        if not self.context.get('include_statistics'):
            return None
        return obj.statistics()

    def _check_unique(self, field, value):
        queryset = Department.objects.filter(**{f'{field}__iexact': value})
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise Conflict(f'A department with this {field} already exists.')

    def validate_name(self, value):
        value = value.strip()
        self._check_unique('name', value)
        return value

    def validate_code(self, value):
        value = value.strip().upper()
        self._check_unique('code', value)
        return value


class CourseSerializer(serializers.ModelSerializer):
    code = serializers.CharField(max_length=20)
    level = serializers.ChoiceField(choices=CourseLevelChoices.choices, required=False)
    department_code = serializers.CharField(source='department.code', read_only=True)
    department_name = serializers.CharField(source='department.name', read_only=True)

    class Meta:
        model = Course
        fields = [
            'id',
            'code',
            'name',
            'description',
            'department',
            'department_code',
            'department_name',
            'level',
            'duration',
            'credits',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'department_code', 'department_name', 'created_at', 'updated_at']

    def validate_code(self, value):
        value = value.strip().upper()
        queryset = Course.objects.filter(code__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise Conflict('A course with this code already exists.')
        return value

    def validate_duration(self, value):
        if value is not None and not 1 <= value <= 10:
            raise serializers.ValidationError('Duration must be between 1 and 10 years.')
        return value
