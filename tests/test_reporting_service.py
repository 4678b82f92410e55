from types import SimpleNamespace
from uuid import uuid4

import pytest

from eportal.errors import NotFoundError
from eportal.services.reporting_service import (
    CreateTranscriptParams,
    ReportingService,
    UpdateTranscriptParams,
)


class FakeQueries:
    def __init__(self, existing=None, fail_lookup=False):
        self.existing = existing
        self.fail_lookup = fail_lookup
        self.updated = None

    def create_transcript(self, **kwargs):
        return SimpleNamespace(**kwargs)

    def get_transcript_by_id(self, transcript_id, school_id):
        if self.fail_lookup:
            raise LookupError("no rows")
        return self.existing

    def update_transcript(self, **kwargs):
        self.updated = kwargs
        return SimpleNamespace(**kwargs)


def test_create_transcript_passes_raw_json_and_empty_gpa_as_none():
    issuer = uuid4()
    data = '{"terms": []}'
    transcript = ReportingService(FakeQueries()).create_transcript(CreateTranscriptParams(
        school_id=uuid4(), student_id=uuid4(), academic_year="2023/2024",
        issued_by_user_id=issuer, transcript_data=data))
    assert transcript.transcript_data == data
    assert transcript.cumulative_gpa is None
    assert transcript.issued_by_user_id == issuer
    assert transcript.academic_year == "2023/2024"


def test_update_transcript_keeps_unset_fields():
    existing = SimpleNamespace(academic_year="2023/2024", cumulative_gpa="3.50",
                               transcript_data='{"terms": [1]}')
    q = FakeQueries(existing)
    updated = ReportingService(q).update_transcript(UpdateTranscriptParams(
        transcript_id=uuid4(), school_id=uuid4(), cumulative_gpa="3.75"))
    assert updated.cumulative_gpa == "3.75"
    assert updated.academic_year == existing.academic_year
    assert updated.transcript_data == existing.transcript_data


def test_update_transcript_replaces_data():
    existing = SimpleNamespace(academic_year="2023/2024", cumulative_gpa=None,
                               transcript_data="{}")
    new_data = '{"terms": [2]}'
    updated = ReportingService(FakeQueries(existing)).update_transcript(UpdateTranscriptParams(
        transcript_id=uuid4(), school_id=uuid4(), transcript_data=new_data,
        academic_year="2024/2025"))
    assert updated.transcript_data == new_data
    assert updated.academic_year == "2024/2025"
    assert updated.cumulative_gpa is None


@pytest.mark.parametrize("queries", [FakeQueries(None), FakeQueries(fail_lookup=True)])
def test_update_missing_transcript_raises_not_found(queries):
    with pytest.raises(NotFoundError, match="transcript not found"):
        ReportingService(queries).update_transcript(
            UpdateTranscriptParams(transcript_id=uuid4(), school_id=uuid4()))
    assert queries.updated is None