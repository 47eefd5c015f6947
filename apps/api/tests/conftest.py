"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Departments and courses
- Users and authenticated API clients by role
- Thesis factory and PDF upload helpers
"""
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient

from apps.academics.models import Course, Department
from apps.accounts.identity import resolve_identity
from apps.accounts.models import RoleChoices, User
from apps.theses.models import Thesis, ThesisStatus


PDF_BYTES = (
    b'%PDF-1.4\n1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n'
    b'2 0 obj\n<< /Type /Pages /Kids [] /Count 0 >>\nendobj\n'
    b'trailer\n<< /Root 1 0 R >>\n%%EOF\n'
)


def make_pdf(name='thesis.pdf', content=PDF_BYTES, content_type='application/pdf'):
    """In-memory upload; call again for every request, uploads are consumed."""
    return SimpleUploadedFile(name, content, content_type=content_type)


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Academics
# ============================================================================

@pytest.fixture
def department(db):
    return Department.objects.create(name='Computer Science', code='CS')


@pytest.fixture
def other_department(db):
    return Department.objects.create(name='Mathematics', code='MATH')


@pytest.fixture
def course(department):
    return Course.objects.create(code='BSCS', name='BS Computer Science', department=department)


@pytest.fixture
def other_course(other_department):
    return Course.objects.create(code='BSMATH', name='BS Mathematics', department=other_department)


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def make_user(db):
    """Factory: make_user(role, department=None, course=None, **fields)."""
    counter = {'n': 0}

    def _make(role=RoleChoices.STUDENT, department=None, course=None, **fields):
        counter['n'] += 1
        defaults = {
            'email': f'{role}{counter["n"]}@uni.test',
            'first_name': role.capitalize() if isinstance(role, str) else 'User',
            'last_name': f'Number{counter["n"]}',
            'role': role,
            'department': department,
            'course': course,
        }
        defaults.update(fields)
        password = defaults.pop('password', 'testpass123')
        return User.objects.create_user(password=password, **defaults)

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(RoleChoices.ADMIN, email='admin@uni.test', is_staff=True)


@pytest.fixture
def student(make_user, department, course):
    return make_user(RoleChoices.STUDENT, department, course, email='student@uni.test', student_id='2024-0001')


@pytest.fixture
def classmate(make_user, department, course):
    return make_user(RoleChoices.STUDENT, department, course, email='classmate@uni.test', student_id='2024-0002')


@pytest.fixture
def faculty(make_user, department):
    return make_user(RoleChoices.FACULTY, department, email='faculty@uni.test')


@pytest.fixture
def adviser(make_user, department):
    return make_user(RoleChoices.ADVISER, department, email='adviser@uni.test')


@pytest.fixture
def foreign_adviser(make_user, other_department):
    """Adviser of a different department."""
    return make_user(RoleChoices.ADVISER, other_department, email='adviser.math@uni.test')


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def student_client(student):
    return client_for(student)


@pytest.fixture
def classmate_client(classmate):
    return client_for(classmate)


@pytest.fixture
def faculty_client(faculty):
    return client_for(faculty)


@pytest.fixture
def adviser_client(adviser):
    return client_for(adviser)


@pytest.fixture
def foreign_adviser_client(foreign_adviser):
    return client_for(foreign_adviser)


@pytest.fixture
def identity_of():
    """identity_of(user) -> Identity"""
    return resolve_identity


# ============================================================================
# Theses
# ============================================================================

@pytest.fixture
def make_thesis(db, department, course):
    """
    Factory: make_thesis(creator, status=Draft, is_public=False, **fields).

    Rows are written directly; use the API or the engine to exercise transitions.
    """
    counter = {'n': 0}

    def _make(creator, status=ThesisStatus.DRAFT, is_public=False, co_authors=(), **fields):
        counter['n'] += 1
        defaults = {
            'title': f'Thesis {counter["n"]}',
            'abstract': 'An abstract.',
            'keywords': ['testing'],
            'department': department,
            'program': course,
            'academic_year': '2024-2025',
            'semester': '1st Semester',
            'category': 'Undergraduate',
        }
        defaults.update(fields)
        thesis = Thesis.objects.create(creator=creator, status=status, is_public=is_public, **defaults)
        if co_authors:
            thesis.co_authors.set(co_authors)
        return thesis

    return _make


@pytest.fixture
def thesis_payload(department, course):
    return {
        'title': 'Graph Neural Networks for Course Scheduling',
        'abstract': 'We study scheduling with graph neural networks.',
        'department': department.code,
        'program': course.code,
        'academic_year': '2024-2025',
        'semester': '1st Semester',
        'category': 'Undergraduate',
        'keywords': ['gnn', 'scheduling'],
    }


@pytest.fixture
def upload_pdf():
    """upload_pdf(client, thesis_id) -> response of the primary document upload."""

    def _upload(client, thesis_id, upload=None):
        return client.post(
            f'/api/v1/theses/{thesis_id}/document/',
            {'file': upload or make_pdf()},
            format='multipart',
        )

    return _upload
