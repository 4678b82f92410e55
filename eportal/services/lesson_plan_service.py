"""Teachers' lesson plans."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from eportal.errors import NotFoundError, PermissionDeniedError

TEACHER_ROLE = "Teacher"


@dataclass
class CreateLessonPlanParams:
    school_id: UUID
    teacher_id: UUID
    title: str
    class_id: UUID | None = None
    content: str = ""
    date_covered: date | None = None


@dataclass
class UpdateLessonPlanParams:
    """Changes to a lesson plan; empty strings and None leave a field as it is."""

    lesson_plan_id: UUID
    school_id: UUID
    teacher_id: UUID
    role_name: str
    title: str = ""
    content: str = ""
    class_id: UUID | None = None
    date_covered: date | None = None


class LessonPlanService:
    """Lesson plans; teachers may only change their own."""

    def __init__(self, queries: Any, db: Any = None) -> None:
        self.queries = queries
        self.db = db

    def _existing(self, lesson_plan_id: UUID, school_id: UUID) -> Any:
        try:
            plan = self.queries.get_lesson_plan_by_id(
                lesson_plan_id=lesson_plan_id, school_id=school_id)
        except Exception as exc:
            raise NotFoundError(f"lesson plan not found: {exc}") from exc
        if plan is None:
            raise NotFoundError("lesson plan not found")
        return plan

    def create_lesson_plan(self, params: CreateLessonPlanParams) -> Any:
        return self.queries.create_lesson_plan(
            school_id=params.school_id,
            teacher_id=params.teacher_id,
            class_id=params.class_id,
            title=params.title,
            content=params.content or None,
            date_covered=params.date_covered,
        )

    def update_lesson_plan(self, params: UpdateLessonPlanParams) -> Any:
        existing = self._existing(params.lesson_plan_id, params.school_id)
        if params.role_name == TEACHER_ROLE and existing.teacher_id != params.teacher_id:
            raise PermissionDeniedError("not authorized to update this lesson plan")

        return self.queries.update_lesson_plan(
            lesson_plan_id=params.lesson_plan_id,
            school_id=params.school_id,
            teacher_id=existing.teacher_id,
            title=params.title or existing.title,
            content=params.content or existing.content,
            class_id=existing.class_id if params.class_id is None else params.class_id,
            date_covered=(existing.date_covered if params.date_covered is None
                          else params.date_covered),
        )

    def delete_lesson_plan(self, lesson_plan_id: UUID, school_id: UUID, teacher_id: UUID,
                           role_name: str) -> None:
        existing = self._existing(lesson_plan_id, school_id)
        if role_name == TEACHER_ROLE and existing.teacher_id != teacher_id:
            raise PermissionDeniedError("not authorized to delete this lesson plan")
        self.queries.delete_lesson_plan(
            lesson_plan_id=lesson_plan_id,
            school_id=school_id,
            teacher_id=existing.teacher_id,
        )