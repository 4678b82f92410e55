"""Quiz submissions with their answers."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator
from uuid import UUID

from eportal.errors import ServiceError


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
class QuizAnswerRequest:
    question_id: UUID
    student_answer_text: str = ""
    selected_option_id: UUID | None = None


@dataclass
class QuizSubmissionRequest:
    quiz_id: UUID
    student_id: UUID
    answers: list[QuizAnswerRequest] = field(default_factory=list)


class QuizService:
    """Stores a completed quiz and every answer in one transaction."""

    def __init__(self, queries: Any, db: Any) -> None:
        self.queries = queries
        self.db = db

    def submit_quiz(self, request: QuizSubmissionRequest) -> Any:
        with _transaction(self.db, self.queries) as q:
            try:
                submission = q.create_quiz_submission(
                    quiz_id=request.quiz_id,
                    student_id=request.student_id,
                    status="completed",
                )
            except Exception as exc:
                raise ServiceError(f"could not create submission: {exc}") from exc

            for answer in request.answers:
                try:
                    q.create_quiz_answer(
                        quiz_submission_id=submission.submission_id,
                        question_id=answer.question_id,
                        student_answer_text=answer.student_answer_text or None,
                        selected_option_id=answer.selected_option_id,
                    )
                except Exception as exc:
                    raise ServiceError(
                        f"could not create answer for question {answer.question_id}: {exc}"
                    ) from exc
        return submission