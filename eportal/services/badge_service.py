"""Badges and awarding them to students."""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from eportal.errors import NotFoundError


class BadgeService:
    """Badge records of a school and the students holding them."""

    def __init__(self, queries: Any, db: Any = None) -> None:
        self.queries = queries
        self.db = db

    def create_badge(self, params: Mapping[str, Any]) -> Any:
        return self.queries.create_badge(**params)

    def get_badges_by_school(self, school_id: UUID) -> list[Any]:
        return list(self.queries.get_badges_by_school(school_id))

    def get_badge_by_id(self, badge_id: UUID, school_id: UUID) -> Any:
        badge = self.queries.get_badge_by_id(badge_id=badge_id, school_id=school_id)
        if badge is None:
            raise NotFoundError("badge not found")
        return badge

    def update_badge(self, params: Mapping[str, Any]) -> Any:
        return self.queries.update_badge(**params)

    def delete_badge(self, badge_id: UUID, school_id: UUID) -> None:
        self.queries.delete_badge(badge_id=badge_id, school_id=school_id)

    def award_badge(self, params: Mapping[str, Any]) -> Any:
        return self.queries.award_badge(**params)

    def revoke_badge(self, params: Mapping[str, Any]) -> None:
        self.queries.revoke_badge(**params)

    def get_student_badges(self, student_id: UUID, school_id: UUID) -> list[Any]:
        return list(self.queries.get_student_badges(student_id=student_id, school_id=school_id))