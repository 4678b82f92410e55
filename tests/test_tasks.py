import json
from types import SimpleNamespace
from uuid import uuid4

import pytest

from eportal.tasks import (
    AssignmentNotificationPayload,
    AuditLogPayload,
    CalculateRiskScoresPayload,
    RiskLevel,
    SkipRetry,
    TaskHandler,
    risk_level,
    risk_score,
)


class FakeQueries:
    def __init__(self, students=(), metrics=(), fail_for=None):
        self.students = list(students)
        self.metrics = list(metrics)
        self.fail_for = fail_for
        self.notifications = []
        self.recipients = []
        self.audit_logs = []
        self.risk_scores = []

    def get_enrollments_by_class(self, class_id):
        return self.students

    def create_notification(self, **kwargs):
        self.notifications.append(kwargs)
        return SimpleNamespace(notification_id="n1")

    def create_notification_recipient(self, notification_id, recipient_id):
        if recipient_id == self.fail_for:
            raise RuntimeError("boom")
        self.recipients.append((notification_id, recipient_id))

    def create_audit_log(self, **kwargs):
        self.audit_logs.append(kwargs)

    def calculate_student_metrics(self, school_id):
        return self.metrics

    def upsert_student_risk_score(self, **kwargs):
        if kwargs["student_id"] == self.fail_for:
            raise RuntimeError("boom")
        self.risk_scores.append(kwargs)


def test_risk_score_extremes():
    assert risk_score("100", "100") == 0
    assert risk_score("0", "0") == 100


def test_risk_score_unparseable_counts_as_zero():
    assert risk_score("abc", "") == risk_score("0", "0")


def test_grade_above_max_adds_no_risk():
    assert risk_score("100", "150") == risk_score("100", "100")


def test_risk_score_monotonic_in_attendance():
    scores = [risk_score(str(a), "80") for a in range(0, 101, 10)]
    assert scores == sorted(scores, reverse=True)


def test_risk_level_boundaries():
    assert risk_level(70) is RiskLevel.HIGH
    assert risk_level(69) is RiskLevel.MEDIUM
    assert risk_level(40) is RiskLevel.MEDIUM
    assert risk_level(39) is RiskLevel.LOW


def test_assignment_payload_round_trip():
    p = AssignmentNotificationPayload(uuid4(), uuid4(), uuid4(), "Essay", "2024-05-01", uuid4())
    assert AssignmentNotificationPayload.from_json(p.to_json()) == p
    assert set(json.loads(p.to_json())) == {
        "SchoolID", "ClassID", "TeacherID", "Title", "DueDate", "AssignmentID"}


def test_audit_payload_round_trip_with_null_school():
    p = AuditLogPayload(None, uuid4(), "POST /api/x", '{"a": 1}', "127.0.0.1", "agent")
    back = AuditLogPayload.from_json(p.to_json())
    assert back == p
    assert json.loads(p.to_json())["SchoolID"] is None


def test_risk_payload_round_trip():
    p = CalculateRiskScoresPayload(uuid4())
    assert CalculateRiskScoresPayload.from_json(p.to_json()) == p


def test_assignment_notification_creates_recipients():
    s1, s2, s3 = uuid4(), uuid4(), uuid4()
    queries = FakeQueries(students=[s1, s2, s3], fail_for=s2)
    p = AssignmentNotificationPayload(uuid4(), uuid4(), uuid4(), "Essay", "2024-05-01", uuid4())
    TaskHandler(queries).handle_assignment_notification(p.to_json())
    note = queries.notifications[0]
    assert note["title"] == "New Assignment: Essay"
    assert note["message"] == "Essay: due on 2024-05-01"
    assert note["link_url"] == f"/assignments/{p.assignment_id}"
    assert note["sender_id"] == p.teacher_id
    assert queries.recipients == [("n1", s1), ("n1", s3)]


def test_bad_assignment_payload_skips_retry():
    queries = FakeQueries(students=[uuid4()])
    with pytest.raises(SkipRetry):
        TaskHandler(queries).handle_assignment_notification(b"not json")
    assert queries.notifications == []
    assert queries.recipients == []


def test_bad_audit_payload_skips_retry():
    queries = FakeQueries()
    with pytest.raises(SkipRetry):
        TaskHandler(queries).handle_audit_log(b"not json")
    assert queries.audit_logs == []


def test_bad_risk_payload_skips_retry():
    metrics = [SimpleNamespace(user_id=uuid4(), attendance_rate="50", average_grade="50")]
    queries = FakeQueries(metrics=metrics)
    with pytest.raises(SkipRetry):
        TaskHandler(queries).handle_calculate_risk_scores(b"not json")
    assert queries.risk_scores == []


def test_invalid_uuid_skips_retry():
    with pytest.raises(SkipRetry):
        TaskHandler(FakeQueries()).handle_calculate_risk_scores(b'{"SchoolID": "nope"}')


def test_audit_log_is_written():
    queries = FakeQueries()
    p = AuditLogPayload(uuid4(), uuid4(), "DELETE /api/rooms/1", None, "10.0.0.1", "curl")
    TaskHandler(queries).handle_audit_log(p.to_json())
    log = queries.audit_logs[0]
    assert log["entity_type"] == "Unknown"
    assert log["action"] == p.action
    assert log["school_id"] == p.school_id
    assert log["new_value"] is None and log["old_value"] is None


def test_calculate_risk_scores_upserts_each_student():
    good, bad = uuid4(), uuid4()
    metrics = [
        SimpleNamespace(user_id=good, attendance_rate="0", average_grade="0"),
        SimpleNamespace(user_id=bad, attendance_rate="100", average_grade="100"),
    ]
    queries = FakeQueries(metrics=metrics, fail_for=bad)
    school = uuid4()
    TaskHandler(queries).handle_calculate_risk_scores(
        CalculateRiskScoresPayload(school).to_json())
    assert len(queries.risk_scores) == 1
    row = queries.risk_scores[0]
    assert row["student_id"] == good
    assert row["school_id"] == school
    assert row["risk_score"] == risk_score("0", "0")
    assert row["risk_level"] is RiskLevel.HIGH