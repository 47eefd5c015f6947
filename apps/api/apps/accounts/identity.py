"""
Identity & role resolution.

DRF's JWTAuthentication turns the bearer token into ``request.user``; this
module reduces that user to the small, immutable identity the visibility
filter and transition engine reason about. The identity is always passed
explicitly; there is no process-wide fallback user.
"""
from dataclasses import dataclass
from typing import Optional

from apps.accounts.models import RoleChoices
from apps.core.exceptions import Unauthenticated


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str
    department_id: Optional[str] = None
    department_code: Optional[str] = None
    course_code: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == RoleChoices.ADMIN

    @property
    def is_adviser(self) -> bool:
        return self.role == RoleChoices.ADVISER

    @property
    def is_author_role(self) -> bool:
        """Students and faculty author theses."""
        return self.role in (RoleChoices.STUDENT, RoleChoices.FACULTY)


def resolve_identity(user) -> Optional[Identity]:
    """
    Identity for an authenticated, active user; None for anonymous callers.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    if not user.is_active:
        return None

    department = user.department if user.department_id else None
    course = user.course if user.course_id else None
    return Identity(
        user_id=str(user.pk),
        role=user.role,
        department_id=str(user.department_id) if user.department_id else None,
        department_code=department.code if department else None,
        course_code=course.code if course else None,
    )


def identity_from_request(request) -> Optional[Identity]:
    """Resolve once per request and cache on the request object."""
    if not hasattr(request, '_thesis_identity'):
        request._thesis_identity = resolve_identity(getattr(request, 'user', None))
    return request._thesis_identity


def require_identity(request) -> Identity:
    identity = identity_from_request(request)
    if identity is None:
        raise Unauthenticated()
    return identity
