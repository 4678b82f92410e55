"""Courses and short-course enrollment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from eportal.errors import ConflictError, InvalidInputError, NotFoundError


@dataclass
class CreateCourseParams:
    school_id: UUID
    course_code: str
    course_name: str
    description: str = ""
    is_short_course: bool = False
    price: str = ""
    is_graded_independently: bool = False


class CourseService:
    """Creates courses and manages short-course enrollments."""

    def __init__(self, queries: Any, db: Any) -> None:
        self.queries = queries
        self.db = db

    def create_course(self, params: CreateCourseParams) -> Any:
        return self.queries.create_course(
            school_id=params.school_id,
            course_code=params.course_code,
            course_name=params.course_name,
            description=params.description or None,
            is_short_course=params.is_short_course,
            price=params.price or None,
            is_graded_independently=params.is_graded_independently,
        )

    def enroll_short_course(self, course_id: UUID, student_id: UUID, school_id: UUID) -> Any:
        q = self.queries
        try:
            course = q.get_course_by_id(course_id=course_id, school_id=school_id)
        except Exception as exc:
            raise NotFoundError(f"course not found: {exc}") from exc
        if course is None:
            raise NotFoundError("course not found")
        if not course.is_short_course:
            raise InvalidInputError("course is not a short course")

        try:
            existing = q.check_short_course_enrollment(student_id=student_id, course_id=course_id)
        except Exception:
            existing = None
        if existing is not None:
            raise ConflictError("student is already enrolled")

        return q.enroll_short_course(
            student_id=student_id,
            course_id=course_id,
            school_id=school_id,
            status="Enrolled",
        )

    def unenroll_short_course(self, course_id: UUID, student_id: UUID, school_id: UUID) -> None:
        self.queries.unenroll_short_course(
            student_id=student_id, course_id=course_id, school_id=school_id)