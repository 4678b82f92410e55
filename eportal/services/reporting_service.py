"""Student transcripts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from eportal.errors import NotFoundError


@dataclass
class CreateTranscriptParams:
    school_id: UUID
    student_id: UUID
    academic_year: str
    issued_by_user_id: UUID
    transcript_data: str
    cumulative_gpa: str = ""


@dataclass
class UpdateTranscriptParams:
    """Changes to a transcript; empty strings leave a field as it is."""

    transcript_id: UUID
    school_id: UUID
    academic_year: str = ""
    cumulative_gpa: str = ""
    transcript_data: str = ""


class ReportingService:
    """Issues and revises transcripts; transcript data is raw JSON text."""

    def __init__(self, queries: Any) -> None:
        self.queries = queries

    def create_transcript(self, params: CreateTranscriptParams) -> Any:
        return self.queries.create_transcript(
            school_id=params.school_id,
            student_id=params.student_id,
            academic_year=params.academic_year,
            cumulative_gpa=params.cumulative_gpa or None,
            transcript_data=params.transcript_data,
            issued_by_user_id=params.issued_by_user_id,
        )

    def update_transcript(self, params: UpdateTranscriptParams) -> Any:
        try:
            existing = self.queries.get_transcript_by_id(
                transcript_id=params.transcript_id, school_id=params.school_id)
        except Exception as exc:
            raise NotFoundError(f"transcript not found: {exc}") from exc
        if existing is None:
            raise NotFoundError("transcript not found")

        return self.queries.update_transcript(
            transcript_id=params.transcript_id,
            school_id=params.school_id,
            academic_year=params.academic_year or existing.academic_year,
            cumulative_gpa=params.cumulative_gpa or existing.cumulative_gpa,
            transcript_data=params.transcript_data or existing.transcript_data,
        )