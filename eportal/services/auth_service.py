"""Registration of local user records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from eportal.errors import InvalidInputError, NotFoundError, ServiceError


@dataclass
class RegisterUserRequest:
    email: str
    first_name: str
    last_name: str
    role_name: str
    school_id: str = ""


class AuthService:
    """Creates users; passwords and sessions live with the identity provider."""

    def __init__(self, queries: Any) -> None:
        self.queries = queries

    def register_user(self, request: RegisterUserRequest) -> Any:
        q = self.queries
        try:
            role = q.get_role_by_name(request.role_name)
        except Exception as exc:
            raise InvalidInputError(f"invalid role specified: {exc}") from exc
        if role is None:
            raise InvalidInputError("invalid role specified")

        school_id: UUID | None = None
        if role.is_school_role:
            if not request.school_id:
                raise InvalidInputError("school ID is required for school roles")
            try:
                sid = UUID(request.school_id)
            except ValueError as exc:
                raise InvalidInputError(f"invalid school ID format: {exc}") from exc
            try:
                school = q.get_school(sid)
            except Exception as exc:
                raise NotFoundError(f"school not found: {exc}") from exc
            if school is None:
                raise NotFoundError("school not found")
            school_id = sid

        try:
            return q.create_user(
                firebase_uid=None,
                email=request.email,
                first_name=request.first_name,
                last_name=request.last_name,
                role_id=role.role_id,
                school_id=school_id,
                is_active=True,
            )
        except Exception as exc:
            raise ServiceError(f"failed to create user: {exc}") from exc