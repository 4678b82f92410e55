"""School registration and verification."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any, Callable
from uuid import UUID

from eportal.errors import ConflictError, NotFoundError, ServiceError

NIL_UUID = UUID(int=0)
DEFAULT_ADMIN_ROLE = "Executive Administrator"


def generate_school_initial(name: str) -> str:
    """Abbreviate a school name and append four random hex digits."""
    words = name.split()
    if len(words) > 1:
        initial = "".join(word[0] for word in words).upper()
    elif len(name) >= 3:
        initial = name[:3].upper()
    else:
        initial = name.upper()
    return initial + secrets.token_hex(2).upper()


def _lookup(fetch: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a lookup, treating any failure as "not found"."""
    try:
        return fetch(*args, **kwargs)
    except Exception:
        return None


def _exists(row: Any) -> bool:
    return row is not None and row.school_id != NIL_UUID


@dataclass
class RegisterSchoolRequest:
    school_name: str
    admin_first_name: str
    admin_last_name: str
    admin_email: str
    subdomain: str = ""
    address: str = ""
    phone_number: str = ""
    email: str = ""
    admin_role_name: str = DEFAULT_ADMIN_ROLE


@dataclass
class RegisterSchoolResponse:
    school: Any
    admin_user: Any
    role_name: str


class SchoolService:
    """Registers new schools with their first administrator."""

    def __init__(self, queries: Any, redis: Any = None) -> None:
        self.queries = queries
        self.redis = redis

    def register_school(self, request: RegisterSchoolRequest) -> RegisterSchoolResponse:
        q = self.queries
        role_name = request.admin_role_name or DEFAULT_ADMIN_ROLE
        subdomain = request.subdomain or None

        existing = _lookup(q.get_school_by_name_or_subdomain,
                           school_name=request.school_name, subdomain=subdomain)
        if _exists(existing):
            raise ConflictError("school with this name or subdomain already exists")

        initial = generate_school_initial(request.school_name)
        while _exists(_lookup(q.get_school_by_initial, initial)):
            initial = generate_school_initial(request.school_name)

        try:
            school = q.create_school(
                school_name=request.school_name,
                subdomain=subdomain,
                status="pending",
                school_initial=initial,
                address=request.address or None,
                phone_number=request.phone_number or None,
                email=request.email or None,
            )
        except Exception as exc:
            raise ServiceError(f"failed to create school: {exc}") from exc

        try:
            role = q.get_role_by_name(role_name)
        except Exception as exc:
            raise NotFoundError(f"role '{role_name}' not found: {exc}") from exc
        if role is None:
            raise NotFoundError(f"role '{role_name}' not found")

        try:
            admin = q.create_user(
                school_id=school.school_id,
                role_id=role.role_id,
                first_name=request.admin_first_name,
                last_name=request.admin_last_name,
                email=request.admin_email,
                firebase_uid=None,
                is_active=True,
            )
        except Exception as exc:
            raise ServiceError(f"failed to create admin user: {exc}") from exc

        _lookup(q.create_school_setting, school.school_id)

        return RegisterSchoolResponse(school=school, admin_user=admin, role_name=role.role_name)

    def verify_school(self, school_id: UUID, status: str) -> Any:
        """Set a school's status after checking it exists."""
        if self.queries.get_school_with_admin(school_id) is None:
            raise NotFoundError("school not found")
        return self.queries.update_school_status(school_id=school_id, status=status)