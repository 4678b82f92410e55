"""Meetings and their attendees."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator
from uuid import UUID

from eportal.errors import NotFoundError, ServiceError


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


@dataclass
class CreateMeetingParams:
    school_id: UUID
    title: str
    meeting_date: datetime
    meeting_type: str
    organizer_id: UUID
    agenda: str = ""
    duration_minutes: int = 0
    location: str = ""
    attendee_ids: list[UUID] = field(default_factory=list)


@dataclass
class UpdateMeetingParams:
    """Changes to a meeting; empty strings and None leave a field as it is."""

    meeting_id: UUID
    school_id: UUID
    title: str = ""
    agenda: str = ""
    meeting_date: datetime | None = None
    duration_minutes: int | None = None
    location: str = ""
    meeting_type: str = ""
    organizer_id: UUID | None = None


class MeetingService:
    """Creates meetings with attendees atomically and updates them."""

    def __init__(self, queries: Any, db: Any) -> None:
        self.queries = queries
        self.db = db

    def create_meeting(self, params: CreateMeetingParams) -> Any:
        with _transaction(self.db, self.queries) as q:
            try:
                meeting = q.create_meeting(
                    school_id=params.school_id,
                    title=params.title,
                    agenda=params.agenda or None,
                    meeting_date=params.meeting_date,
                    duration_minutes=(params.duration_minutes
                                      if params.duration_minutes > 0 else None),
                    location=params.location or None,
                    meeting_type=params.meeting_type,
                    organizer_id=params.organizer_id,
                )
            except Exception as exc:
                raise ServiceError(f"could not create meeting: {exc}") from exc

            for attendee_id in params.attendee_ids:
                try:
                    q.add_meeting_attendee(meeting_id=meeting.meeting_id,
                                           user_id=attendee_id, school_id=params.school_id)
                except Exception as exc:
                    raise ServiceError(f"could not add attendee {attendee_id}: {exc}") from exc
        return meeting

    def update_meeting(self, params: UpdateMeetingParams) -> Any:
        try:
            existing = self.queries.get_meeting_by_id(
                meeting_id=params.meeting_id, school_id=params.school_id)
        except Exception as exc:
            raise NotFoundError(f"meeting not found: {exc}") from exc
        if existing is None:
            raise NotFoundError("meeting not found")

        return self.queries.update_meeting(
            meeting_id=params.meeting_id,
            school_id=params.school_id,
            title=params.title or existing.title,
            agenda=params.agenda or existing.agenda,
            meeting_date=(existing.meeting_date if params.meeting_date is None
                          else params.meeting_date),
            duration_minutes=(existing.duration_minutes if params.duration_minutes is None
                              else params.duration_minutes),
            location=params.location or existing.location,
            meeting_type=params.meeting_type or existing.meeting_type,
            organizer_id=(existing.organizer_id if params.organizer_id is None
                          else params.organizer_id),
        )