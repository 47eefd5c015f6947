"""
Accounts serializers: registration, login, profile and user administration.
"""
from django.db.models import Q
from rest_framework import serializers

from apps.academics.models import Course, Department
from apps.accounts.models import SELF_REGISTER_ROLES, RoleChoices, User
from apps.core.exceptions import Conflict


class DepartmentRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ['id', 'name', 'code']
        read_only_fields = fields


class CourseRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ['id', 'name', 'code', 'level']
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in theses, events and lists."""
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'full_name', 'email', 'role']
        read_only_fields = fields


class UserListSerializer(serializers.ModelSerializer):
    """
    Used for:
    - GET /api/v1/users/ - List users (Admin)
    - GET /api/v1/users/faculty/, /api/v1/users/by-department/{code}/
    """
    full_name = serializers.CharField(read_only=True)
    department = DepartmentRefSerializer(read_only=True)
    course = CourseRefSerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'first_name',
            'last_name',
            'full_name',
            'role',
            'department',
            'course',
            'student_id',
            'is_active',
            'created_at',
        ]
        read_only_fields = fields


class UserDetailSerializer(UserListSerializer):
    """
    Used for:
    - GET /api/v1/auth/me
    - GET /api/v1/users/{id}/
    """

    class Meta(UserListSerializer.Meta):
        fields = UserListSerializer.Meta.fields + [
            'phone',
            'avatar',
            'last_login',
            'updated_at',
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """
    Self-registration.

    Department and course are given by code; the course must belong to the
    department. Duplicate email or student id is a conflict, not a field error.
    """
    first_name = serializers.CharField(max_length=50)
    last_name = serializers.CharField(max_length=50)
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(write_only=True, min_length=6)
    role = serializers.ChoiceField(choices=[(r.value, r.label) for r in SELF_REGISTER_ROLES])
    department = serializers.CharField()
    course = serializers.CharField()
    student_id = serializers.CharField(max_length=20, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)

    def validate_email(self, value):
        return value.strip().lower()

    def validate_department(self, value):
        try:
            return Department.objects.get(code__iexact=value.strip(), is_active=True)
        except Department.DoesNotExist:
            raise serializers.ValidationError('Unknown department.')

    def validate_course(self, value):
        try:
            return Course.objects.get(code__iexact=value.strip(), is_active=True)
        except Course.DoesNotExist:
            raise serializers.ValidationError('Unknown course.')

    def validate(self, attrs):
        if attrs['course'].department_id != attrs['department'].id:
            raise serializers.ValidationError({'course': 'Course does not belong to the selected department.'})

        student_id = (attrs.get('student_id') or '').strip() or None
        attrs['student_id'] = student_id

        lookup = Q(email__iexact=attrs['email'])
        if student_id:
            lookup |= Q(student_id=student_id)
        if User.objects.filter(lookup).exists():
            raise Conflict('User already exists with this email or student ID.')
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    """``identifier`` is an email address or a student id."""
    identifier = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def to_internal_value(self, data):
        # Older clients send the identifier in the "email" field
        if hasattr(data, 'get') and 'identifier' not in data and data.get('email'):
            data = {'identifier': data.get('email'), 'password': data.get('password')}
        return super().to_internal_value(data)


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Fields a user may change on their own account.

    Used for:
    - PATCH /api/v1/auth/profile
    - PATCH /api/v1/users/{id}/ (self)
    """

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'phone']


class AdminUserUpdateSerializer(serializers.ModelSerializer):
    """
    Admin edits of any account.

    Used for:
    - PATCH /api/v1/users/{id}/ (Admin)
    """
    email = serializers.EmailField(max_length=255, required=False)
    student_id = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    department = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), required=False, allow_null=True
    )
    course = serializers.PrimaryKeyRelatedField(
        queryset=Course.objects.all(), required=False, allow_null=True
    )

    class Meta:
        model = User
        fields = [
            'first_name',
            'last_name',
            'email',
            'phone',
            'role',
            'department',
            'course',
            'student_id',
            'is_active',
        ]

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exclude(pk=self.instance.pk).exists():
            raise Conflict('A user with this email already exists.')
        return value

    def validate_student_id(self, value):
        value = (value or '').strip() or None
        if value and User.objects.filter(student_id=value).exclude(pk=self.instance.pk).exists():
            raise Conflict('A user with this student ID already exists.')
        return value

    def validate(self, attrs):
        department = attrs.get('department', self.instance.department)
        course = attrs.get('course', self.instance.course)
        if course is not None and department is not None and course.department_id != department.id:
            raise serializers.ValidationError({'course': 'Course does not belong to the selected department.'})
        if attrs.get('role') == RoleChoices.ADMIN:
            attrs['is_staff'] = True
        return attrs


class PasswordChangeSerializer(serializers.Serializer):
    """
    Used for:
    - POST /api/v1/auth/change-password
    """
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_current_password(self, value):
        user = self.context['user']
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def save(self):
        user = self.context['user']
        user.set_password(self.validated_data['new_password'])
        user.save(update_fields=['password', 'updated_at'])
        return user


class BulkUserOperationSerializer(serializers.Serializer):
    operation = serializers.ChoiceField(choices=['activate', 'deactivate', 'delete'])
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=200)


class AvatarUploadSerializer(serializers.Serializer):
    avatar = serializers.FileField()


class RegisterCourseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ['id', 'code', 'name', 'level']
        read_only_fields = fields


class RegisterDepartmentSerializer(serializers.ModelSerializer):
    """Departments with their active courses, for the registration form."""
    courses = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = ['id', 'code', 'name', 'courses']
        read_only_fields = fields

    def get_courses(self, obj):
        courses = [c for c in obj.courses.all() if c.is_active]
        return RegisterCourseSerializer(courses, many=True).data
