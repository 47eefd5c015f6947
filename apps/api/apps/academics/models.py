"""
Academics models: department, course
"""
import uuid

from django.conf import settings
from django.db import models


class CourseLevelChoices(models.TextChoices):
    UNDERGRADUATE = 'Undergraduate', 'Undergraduate'
    GRADUATE = 'Graduate', 'Graduate'
    DOCTORAL = 'Doctoral', 'Doctoral'


class Department(models.Model):
    """
    Academic department. Owns courses; users and theses belong to one.

    BUSINESS RULES:
    - name and code are unique (code stored upper-case)
    - cannot be deleted while users, courses or theses reference it
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    code = models.CharField(max_length=10, unique=True)
    description = models.CharField(max_length=500, blank=True)
    head = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='headed_departments',
        help_text='Department head (faculty or adviser)'
    )
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=30, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'departments'
        verbose_name = 'Department'
        verbose_name_plural = 'Departments'
        indexes = [
            models.Index(fields=['is_active'], name='idx_department_active'),
        ]
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def statistics(self):
        """Active students, active faculty/advisers and published theses."""
        from apps.accounts.models import RoleChoices
        from apps.theses.models import ThesisStatus

        members = self.members.filter(is_active=True)
        return {
            'total_students': members.filter(role=RoleChoices.STUDENT).count(),
            'total_faculty': members.filter(
                role__in=[RoleChoices.FACULTY, RoleChoices.ADVISER]
            ).count(),
            'total_theses': self.theses.filter(status=ThesisStatus.PUBLISHED).count(),
        }

    def is_referenced(self):
        """True while users, courses or theses still point at this department."""
        return (
            self.members.exists()
            or self.courses.exists()
            or self.theses.exists()
        )


class Course(models.Model):
    """
    Degree program offered by a department (a thesis "program").
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name='courses'
    )
    level = models.CharField(
        max_length=20,
        choices=CourseLevelChoices.choices,
        default=CourseLevelChoices.UNDERGRADUATE
    )
    duration = models.PositiveSmallIntegerField(
        blank=True,
        null=True,
        help_text='Duration in years'
    )
    credits = models.PositiveIntegerField(
        blank=True,
        null=True,
        help_text='Total credits required'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'courses'
        verbose_name = 'Course'
        verbose_name_plural = 'Courses'
        indexes = [
            models.Index(fields=['department'], name='idx_course_department'),
            models.Index(fields=['level'], name='idx_course_level'),
            models.Index(fields=['is_active'], name='idx_course_active'),
        ]
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def is_referenced(self):
        return self.students.exists() or self.theses.exists()
