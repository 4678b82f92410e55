"""Adding users to a school and creating their role profiles."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterator
from uuid import UUID

from eportal.errors import ConflictError, InvalidInputError, NotFoundError, ServiceError

NIL_UUID = UUID(int=0)


@contextmanager
def _transaction(db: Any, queries: Any) -> Iterator[Any]:
    """Yield transaction-bound queries; commit on success, roll back on error."""
    qtx = queries.with_tx(db)
    try:
        yield qtx
    except BaseException:
        db.rollback()
        raise
    db.commit()


def _lookup(fetch: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    try:
        return fetch(*args, **kwargs)
    except Exception:
        return None


@dataclass
class AddUserParams:
    school_id: UUID
    email: str
    first_name: str
    last_name: str
    role_name: str


@dataclass
class CreateStudentProfileParams:
    user_id: UUID
    school_id: UUID
    enrollment_number: str
    admission_date: date
    current_grade_level: str = ""
    current_class_id: UUID | None = None


@dataclass
class CreateParentProfileParams:
    user_id: UUID
    school_id: UUID
    home_address: str = ""
    occupation: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""


class UserService:
    """School user management."""

    def __init__(self, queries: Any, db: Any) -> None:
        self.queries = queries
        self.db = db

    def add_user(self, params: AddUserParams) -> Any:
        with _transaction(self.db, self.queries) as q:
            try:
                role = q.get_role_by_name(params.role_name)
            except Exception as exc:
                raise InvalidInputError(f"invalid role specified: {exc}") from exc
            if role is None:
                raise InvalidInputError("invalid role specified")
            if not role.is_school_role:
                raise InvalidInputError(
                    f"cannot add parent company role ({params.role_name}) via this endpoint")

            existing = _lookup(q.get_user_by_email, email=params.email,
                               school_id=params.school_id)
            if existing is not None and existing.user_id != NIL_UUID:
                raise ConflictError("user with this email already exists")

            try:
                return q.create_user(
                    school_id=params.school_id,
                    role_id=role.role_id,
                    first_name=params.first_name,
                    last_name=params.last_name,
                    email=params.email,
                    firebase_uid=None,
                    is_active=True,
                )
            except Exception as exc:
                raise ServiceError(f"failed to create database user: {exc}") from exc

    def _require_role(self, user_id: UUID, school_id: UUID, role_name: str) -> None:
        q = self.queries
        try:
            user = q.get_user(user_id=user_id, school_id=school_id)
        except Exception as exc:
            raise NotFoundError(f"user not found: {exc}") from exc
        if user is None:
            raise NotFoundError("user not found")
        role = _lookup(q.get_role_by_name, role_name)
        if role is None or user.role_id != role.role_id:
            raise InvalidInputError(f"user must have the {role_name} role")

    def create_student_profile(self, params: CreateStudentProfileParams) -> Any:
        self._require_role(params.user_id, params.school_id, "Student")
        q = self.queries
        if _lookup(q.get_student_profile_by_user_id, user_id=params.user_id,
                   school_id=params.school_id) is not None:
            raise ConflictError("student profile already exists")
        return q.create_student_profile(
            user_id=params.user_id,
            school_id=params.school_id,
            enrollment_number=params.enrollment_number,
            current_grade_level=params.current_grade_level or None,
            admission_date=params.admission_date,
            current_class_id=params.current_class_id,
        )

    def create_parent_profile(self, params: CreateParentProfileParams) -> Any:
        self._require_role(params.user_id, params.school_id, "Parent")
        q = self.queries
        if _lookup(q.get_parent_profile_by_user_id, user_id=params.user_id,
                   school_id=params.school_id) is not None:
            raise ConflictError("parent profile already exists")
        return q.create_parent_profile(
            user_id=params.user_id,
            school_id=params.school_id,
            home_address=params.home_address or None,
            occupation=params.occupation or None,
            emergency_contact_name=params.emergency_contact_name or None,
            emergency_contact_phone=params.emergency_contact_phone or None,
        )