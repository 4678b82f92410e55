"""Background task payloads and handlers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

TYPE_ASSIGNMENT_NOTIFICATION = "notification:assignment"
TYPE_AUDIT_LOG = "audit:log"
TYPE_CALCULATE_RISK_SCORES = "ews:calculate_risk"
NOTIFICATION_TYPE_ANNOUNCEMENT = "ANNOUNCEMENT"

NIL_UUID = UUID(int=0)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SkipRetry(Exception):
    """The task cannot succeed on retry, e.g. its payload is malformed."""


def _decode(data: bytes | str) -> dict[str, Any]:
    obj = json.loads(data)
    if not isinstance(obj, dict):
        raise ValueError("payload must be a JSON object")
    return obj


def _uuid(value: Any) -> UUID:
    if value is None:
        return NIL_UUID
    if not isinstance(value, str):
        raise ValueError(f"invalid UUID: {value!r}")
    return UUID(value)


def _optional_uuid(value: Any) -> UUID | None:
    return None if value is None else _uuid(value)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _encode(obj: dict[str, Any]) -> bytes:
    return json.dumps(obj).encode()


@dataclass
class AssignmentNotificationPayload:
    school_id: UUID
    class_id: UUID
    teacher_id: UUID
    title: str
    due_date: str
    assignment_id: UUID

    def to_json(self) -> bytes:
        return _encode({
            "SchoolID": str(self.school_id),
            "ClassID": str(self.class_id),
            "TeacherID": str(self.teacher_id),
            "Title": self.title,
            "DueDate": self.due_date,
            "AssignmentID": str(self.assignment_id),
        })

    @classmethod
    def from_json(cls, data: bytes | str) -> AssignmentNotificationPayload:
        obj = _decode(data)
        return cls(
            school_id=_uuid(obj.get("SchoolID")),
            class_id=_uuid(obj.get("ClassID")),
            teacher_id=_uuid(obj.get("TeacherID")),
            title=_text(obj.get("Title")),
            due_date=_text(obj.get("DueDate")),
            assignment_id=_uuid(obj.get("AssignmentID")),
        )


@dataclass
class AuditLogPayload:
    school_id: UUID | None
    user_id: UUID
    action: str
    new_value: str | None
    ip_address: str
    user_agent: str

    def to_json(self) -> bytes:
        return _encode({
            "SchoolID": None if self.school_id is None else str(self.school_id),
            "UserID": str(self.user_id),
            "Action": self.action,
            "NewValue": None if self.new_value is None else json.loads(self.new_value),
            "IpAddress": self.ip_address,
            "UserAgent": self.user_agent,
        })

    @classmethod
    def from_json(cls, data: bytes | str) -> AuditLogPayload:
        obj = _decode(data)
        raw = obj.get("NewValue")
        return cls(
            school_id=_optional_uuid(obj.get("SchoolID")),
            user_id=_uuid(obj.get("UserID")),
            action=_text(obj.get("Action")),
            new_value=None if raw is None else json.dumps(raw),
            ip_address=_text(obj.get("IpAddress")),
            user_agent=_text(obj.get("UserAgent")),
        )


@dataclass
class CalculateRiskScoresPayload:
    school_id: UUID

    def to_json(self) -> bytes:
        return _encode({"SchoolID": str(self.school_id)})

    @classmethod
    def from_json(cls, data: bytes | str) -> CalculateRiskScoresPayload:
        return cls(school_id=_uuid(_decode(data).get("SchoolID")))


def _as_float(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def risk_score(attendance_rate: Any, average_grade: Any) -> int:
    """Risk score: attendance weighs 60%, grades 40%, capped at 100."""
    attendance_risk = (100.0 - _as_float(attendance_rate)) * 0.6
    grade_risk = max((100.0 - _as_float(average_grade)) * 0.4, 0.0)
    return min(int(attendance_risk + grade_risk), 100)


def risk_level(score: int) -> RiskLevel:
    if score >= 70:
        return RiskLevel.HIGH
    if score >= 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _load(cls: Any, payload: bytes | str) -> Any:
    try:
        return cls.from_json(payload)
    except (ValueError, TypeError) as exc:
        raise SkipRetry(f"json.Unmarshal failed: {exc}") from exc


class TaskHandler:
    """Runs queued background tasks against the data store."""

    def __init__(self, queries: Any) -> None:
        self.queries = queries

    def handle_assignment_notification(self, payload: bytes | str) -> None:
        p: AssignmentNotificationPayload = _load(AssignmentNotificationPayload, payload)
        logger.info("Processing assignment notification for class %s", p.class_id)

        students = self.queries.get_enrollments_by_class(p.class_id)
        notification = self.queries.create_notification(
            school_id=p.school_id,
            sender_id=p.teacher_id,
            notification_type=NOTIFICATION_TYPE_ANNOUNCEMENT,
            title="New Assignment: " + p.title,
            message=f"{p.title}: due on {p.due_date}",
            link_url=f"/assignments/{p.assignment_id}",
        )
        for student_id in students:
            try:
                self.queries.create_notification_recipient(
                    notification_id=notification.notification_id,
                    recipient_id=student_id,
                )
            except Exception as exc:  # one failed recipient must not stop the rest
                logger.warning("could not notify %s: %s", student_id, exc)

    def handle_audit_log(self, payload: bytes | str) -> None:
        p: AuditLogPayload = _load(AuditLogPayload, payload)
        self.queries.create_audit_log(
            school_id=p.school_id,
            user_id=p.user_id,
            action=p.action,
            entity_type="Unknown",
            entity_id=None,
            old_value=None,
            new_value=p.new_value,
            ip_address=p.ip_address,
            user_agent=p.user_agent,
        )

    def handle_calculate_risk_scores(self, payload: bytes | str) -> None:
        p: CalculateRiskScoresPayload = _load(CalculateRiskScoresPayload, payload)
        logger.info("Calculating risk scores for school %s", p.school_id)

        for metric in self.queries.calculate_student_metrics(p.school_id):
            score = risk_score(metric.attendance_rate, metric.average_grade)
            try:
                self.queries.upsert_student_risk_score(
                    school_id=p.school_id,
                    student_id=metric.user_id,
                    attendance_rate=metric.attendance_rate,
                    average_grade=metric.average_grade,
                    risk_score=score,
                    risk_level=risk_level(score),
                )
            except Exception as exc:  # keep scoring the remaining students
                logger.error("Failed to upsert risk score for student %s: %s",
                             metric.user_id, exc)