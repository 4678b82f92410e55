"""Posting assignments to a class and notifying its students."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from eportal.errors import NotFoundError, PermissionDeniedError
from eportal.tasks import TYPE_ASSIGNMENT_NOTIFICATION, AssignmentNotificationPayload

logger = logging.getLogger(__name__)

_NO_DUE_DATE = "0001-01-01"


@dataclass
class CreateAssignmentParams:
    school_id: UUID
    class_id: UUID
    teacher_id: UUID
    title: str
    max_score: str
    assignment_type: str
    description: str = ""
    due_date: datetime | date | None = None
    file_url: str = ""


class AssignmentService:
    """Creates assignments and queues the student notification task."""

    def __init__(self, queries: Any, queue: Any) -> None:
        self.queries = queries
        self.queue = queue

    def create_assignment(self, params: CreateAssignmentParams) -> Any:
        academic_class = self.queries.get_class_by_id(
            class_id=params.class_id, school_id=params.school_id)
        if academic_class is None:
            raise NotFoundError("class not found")
        if academic_class.teacher_id != params.teacher_id:
            raise PermissionDeniedError("not authorized to post assignments to this class")

        assignment = self.queries.create_assignment(
            school_id=params.school_id,
            class_id=params.class_id,
            teacher_id=params.teacher_id,
            title=params.title,
            description=params.description or None,
            due_date=params.due_date,
            max_score=params.max_score,
            assignment_type=params.assignment_type,
            file_url=params.file_url or None,
        )

        due = params.due_date.strftime("%Y-%m-%d") if params.due_date else _NO_DUE_DATE
        payload = AssignmentNotificationPayload(
            school_id=params.school_id,
            class_id=params.class_id,
            teacher_id=params.teacher_id,
            title=assignment.title,
            due_date=due,
            assignment_id=assignment.assignment_id,
        )
        try:
            self.queue.enqueue(TYPE_ASSIGNMENT_NOTIFICATION, payload.to_json())
        except Exception as exc:  # the assignment exists; a lost notification is not fatal
            logger.error("could not enqueue notification task: %s", exc)

        return assignment