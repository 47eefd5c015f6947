"""
Accounts models: users
"""
import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models


class RoleChoices(models.TextChoices):
    """Exactly one role per user."""
    STUDENT = 'student', 'Student'
    FACULTY = 'faculty', 'Faculty'
    ADVISER = 'adviser', 'Adviser'
    ADMIN = 'admin', 'Admin'


# Roles a visitor may pick on the registration form
SELF_REGISTER_ROLES = (RoleChoices.STUDENT, RoleChoices.FACULTY, RoleChoices.ADVISER)


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', RoleChoices.ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Archive user.

    BUSINESS RULES:
    - email is unique and used to log in (students may also log in with student_id)
    - students belong to a department and a course; faculty and advisers to a department
    - inactive users cannot authenticate
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, max_length=255)
    first_name = models.CharField(max_length=50, help_text='First name of the user')
    last_name = models.CharField(max_length=50, help_text='Last name of the user')
    role = models.CharField(
        max_length=10,
        choices=RoleChoices.choices,
        default=RoleChoices.STUDENT
    )
    department = models.ForeignKey(
        'academics.Department',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='members'
    )
    course = models.ForeignKey(
        'academics.Course',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='students'
    )
    student_id = models.CharField(
        max_length=20,
        unique=True,
        blank=True,
        null=True,
        help_text='Institutional student number (students only)'
    )
    phone = models.CharField(max_length=30, blank=True)
    avatar = models.CharField(
        max_length=255,
        blank=True,
        help_text='Storage key of the uploaded avatar image'
    )
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)  # Required for Django admin access
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['role'], name='idx_user_role'),
            models.Index(fields=['is_active'], name='idx_user_active'),
            models.Index(fields=['department'], name='idx_user_department'),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email

    @property
    def is_admin(self):
        return self.role == RoleChoices.ADMIN
