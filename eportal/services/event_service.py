"""School events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from eportal.errors import NotFoundError


@dataclass
class CreateEventParams:
    school_id: UUID
    title: str
    event_date: datetime
    event_type: str
    organizer_id: UUID
    description: str = ""
    end_date: datetime | None = None
    location: str = ""
    is_public: bool = False


@dataclass
class UpdateEventParams:
    """Changes to an event; empty strings and None leave a field as it is."""

    event_id: UUID
    school_id: UUID
    title: str = ""
    description: str = ""
    event_date: datetime | None = None
    end_date: datetime | None = None
    location: str = ""
    event_type: str = ""
    organizer_id: UUID | None = None
    is_public: bool | None = None


class EventService:
    """Creates events and applies partial updates to them."""

    def __init__(self, queries: Any, db: Any = None) -> None:
        self.queries = queries
        self.db = db

    def create_event(self, params: CreateEventParams) -> Any:
        return self.queries.create_event(
            school_id=params.school_id,
            title=params.title,
            description=params.description or None,
            event_date=params.event_date,
            end_date=params.end_date,
            location=params.location or None,
            event_type=params.event_type,
            organizer_id=params.organizer_id,
            is_public=params.is_public,
        )

    def update_event(self, params: UpdateEventParams) -> Any:
        try:
            existing = self.queries.get_event_by_id(
                event_id=params.event_id, school_id=params.school_id)
        except Exception as exc:
            raise NotFoundError(f"event not found: {exc}") from exc
        if existing is None:
            raise NotFoundError("event not found")

        fields: dict[str, Any] = {
            "title": params.title or existing.title,
            "description": params.description or existing.description,
            "event_date": existing.event_date if params.event_date is None else params.event_date,
            "end_date": existing.end_date if params.end_date is None else params.end_date,
            "location": params.location or existing.location,
            "event_type": params.event_type or existing.event_type,
            "organizer_id": (existing.organizer_id if params.organizer_id is None
                             else params.organizer_id),
            "is_public": existing.is_public if params.is_public is None else params.is_public,
        }
        return self.queries.update_event(
            event_id=params.event_id, school_id=params.school_id, **fields)