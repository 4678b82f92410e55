"""Class membership management."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator
from uuid import UUID

from eportal.errors import NotFoundError

logger = logging.getLogger(__name__)


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


@dataclass(frozen=True)
class BulkEnrollResult:
    newly_enrolled_count: int = 0
    already_enrolled_count: int = 0


class ClassService:
    """Enrolls students into classes."""

    def __init__(self, queries: Any, db: Any) -> None:
        self.queries = queries
        self.db = db

    def bulk_enroll_students(self, class_id: UUID, school_id: UUID,
                             student_ids: Iterable[UUID]) -> BulkEnrollResult:
        """Enroll each known student of the school; unknown students are skipped."""
        newly = already = 0
        with _transaction(self.db, self.queries) as q:
            try:
                found = q.get_class_by_id(class_id=class_id, school_id=school_id)
            except Exception as exc:
                raise NotFoundError(f"class not found: {exc}") from exc
            if found is None:
                raise NotFoundError("class not found")

            for student_id in student_ids:
                if self._enrolled(q, student_id, class_id):
                    already += 1
                    continue
                if not self._student_exists(q, student_id, school_id):
                    continue
                try:
                    q.create_enrollment(
                        school_id=school_id,
                        student_id=student_id,
                        class_id=class_id,
                        enrollment_date=datetime.now(),
                        status="Enrolled",
                    )
                except Exception as exc:
                    logger.warning("could not enroll %s: %s", student_id, exc)
                    continue
                newly += 1
        return BulkEnrollResult(newly_enrolled_count=newly, already_enrolled_count=already)

    @staticmethod
    def _enrolled(q: Any, student_id: UUID, class_id: UUID) -> bool:
        try:
            row = q.get_enrollment_by_student_and_class(student_id=student_id, class_id=class_id)
        except Exception:
            return False
        return row is not None

    @staticmethod
    def _student_exists(q: Any, student_id: UUID, school_id: UUID) -> bool:
        try:
            row = q.get_user(user_id=student_id, school_id=school_id)
        except Exception:
            return False
        return row is not None