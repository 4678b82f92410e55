"""Generating timetables and storing their entries."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator
from uuid import UUID

from eportal.errors import NotFoundError, ServiceError
from eportal.scheduler import Config, Scheduler


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


class TimetableService:
    """Runs the scheduler for a timetable and replaces its entries with the result."""

    def __init__(self, queries: Any, db: Any, scheduler: Any = None) -> None:
        self.queries = queries
        self.db = db
        self.scheduler = scheduler if scheduler is not None else Scheduler(queries, Config(), None)

    def generate_and_save_timetable(self, timetable_id: UUID, school_id: UUID) -> float:
        """Generate a timetable, store its entries and return the schedule's fitness."""
        try:
            timetable = self.queries.get_timetable_by_id(
                timetable_id=timetable_id, school_id=school_id)
        except Exception as exc:
            raise NotFoundError(f"could not find timetable: {exc}") from exc
        if timetable is None:
            raise NotFoundError("could not find timetable")

        try:
            result = self.scheduler.generate(
                school_id, timetable.academic_year, timetable.semester or "")
        except Exception as exc:
            raise ServiceError(f"scheduling failed: {exc}") from exc

        with _transaction(self.db, self.queries) as q:
            try:
                q.delete_timetable_entries_by_timetable(timetable_id)
            except Exception as exc:
                raise ServiceError(f"could not clear old entries: {exc}") from exc

            for gene in result.genes:
                try:
                    q.create_timetable_entry(
                        timetable_id=timetable_id,
                        class_id=gene.class_id,
                        subject_id=gene.subject_id,
                        teacher_id=gene.teacher_id,
                        room_id=gene.room_id,
                        day_of_week=int(gene.day_of_week),
                        start_time=gene.start_time,
                        end_time=gene.end_time,
                    )
                except Exception as exc:
                    raise ServiceError(f"could not save timetable entry: {exc}") from exc
        return result.fitness