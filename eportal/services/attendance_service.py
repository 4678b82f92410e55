"""Marking class attendance."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any
from uuid import UUID

from eportal.errors import NotFoundError, PermissionDeniedError, ServiceError


@dataclass
class StudentAttendance:
    student_id: UUID
    status: str
    notes: str = ""


@dataclass
class MarkAttendanceParams:
    school_id: UUID
    class_id: UUID
    teacher_id: UUID
    attendance_date: date
    students_attendance: list[StudentAttendance] = field(default_factory=list)


class AttendanceService:
    """Records one attendance entry per student and day, updating existing ones."""

    def __init__(self, queries: Any) -> None:
        self.queries = queries

    def _existing(self, params: MarkAttendanceParams, student_id: UUID) -> Any:
        try:
            return self.queries.get_attendance_record_by_unique(
                school_id=params.school_id,
                student_id=student_id,
                class_id=params.class_id,
                attendance_date=params.attendance_date,
            )
        except Exception:
            return None

    def mark_attendance(self, params: MarkAttendanceParams) -> list[Any]:
        q = self.queries
        academic_class = q.get_class_by_id(class_id=params.class_id, school_id=params.school_id)
        if academic_class is None:
            raise NotFoundError("class not found")
        if academic_class.teacher_id != params.teacher_id:
            raise PermissionDeniedError("not authorized to mark attendance for this class")

        results = []
        for entry in params.students_attendance:
            existing = self._existing(params, entry.student_id)
            notes = entry.notes or None
            try:
                if existing is not None:
                    record = q.update_attendance_record(
                        attendance_id=existing.attendance_id,
                        status=entry.status,
                        notes=notes,
                        school_id=params.school_id,
                    )
                else:
                    record = q.create_attendance_record(
                        school_id=params.school_id,
                        student_id=entry.student_id,
                        class_id=params.class_id,
                        attendance_date=params.attendance_date,
                        status=entry.status,
                        notes=notes,
                    )
            except Exception as exc:
                raise ServiceError(
                    f"failed to mark attendance for student {entry.student_id}: {exc}"
                ) from exc
            results.append(record)
        return results