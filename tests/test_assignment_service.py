from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest

from eportal.errors import NotFoundError, PermissionDeniedError
from eportal.services.assignment_service import AssignmentService, CreateAssignmentParams
from eportal.tasks import TYPE_ASSIGNMENT_NOTIFICATION, AssignmentNotificationPayload


class FakeQueries:
    def __init__(self, academic_class):
        self.academic_class = academic_class
        self.created = []

    def get_class_by_id(self, class_id, school_id):
        return self.academic_class

    def create_assignment(self, **kwargs):
        self.created.append(kwargs)
        return SimpleNamespace(assignment_id=uuid4(), title=kwargs["title"])


class FakeQueue:
    def __init__(self, fail=False):
        self.fail = fail
        self.tasks = []

    def enqueue(self, task_type, data):
        if self.fail:
            raise ConnectionError("queue down")
        self.tasks.append((task_type, data))


def make_params(teacher_id, **extra):
    return CreateAssignmentParams(
        school_id=uuid4(), class_id=uuid4(), teacher_id=teacher_id,
        title="Essay", max_score="100", assignment_type="Homework", **extra)


def test_creates_assignment_and_queues_notification():
    teacher = uuid4()
    queries = FakeQueries(SimpleNamespace(teacher_id=teacher))
    queue = FakeQueue()
    params = make_params(teacher, due_date=datetime(2024, 5, 1, 9, 30))

    assignment = AssignmentService(queries, queue).create_assignment(params)

    assert queries.created[0]["description"] is None
    assert queries.created[0]["file_url"] is None
    assert len(queue.tasks) == 1
    task_type, data = queue.tasks[0]
    assert task_type == TYPE_ASSIGNMENT_NOTIFICATION
    payload = AssignmentNotificationPayload.from_json(data)
    assert payload.assignment_id == assignment.assignment_id
    assert payload.class_id == params.class_id
    assert payload.title == "Essay"
    assert payload.due_date == "2024-05-01"


def test_missing_due_date_uses_zero_date():
    teacher = uuid4()
    queue = FakeQueue()
    AssignmentService(FakeQueries(SimpleNamespace(teacher_id=teacher)), queue) \
        .create_assignment(make_params(teacher))
    payload = AssignmentNotificationPayload.from_json(queue.tasks[0][1])
    assert payload.due_date == "0001-01-01"


def test_optional_text_fields_are_passed_when_given():
    teacher = uuid4()
    queries = FakeQueries(SimpleNamespace(teacher_id=teacher))
    AssignmentService(queries, FakeQueue()).create_assignment(
        make_params(teacher, description="Read ch. 1", file_url="/files/a.pdf"))
    assert queries.created[0]["description"] == "Read ch. 1"
    assert queries.created[0]["file_url"] == "/files/a.pdf"


def test_other_teacher_is_refused():
    queries = FakeQueries(SimpleNamespace(teacher_id=uuid4()))
    with pytest.raises(PermissionDeniedError):
        AssignmentService(queries, FakeQueue()).create_assignment(make_params(uuid4()))
    assert queries.created == []


def test_missing_class_raises_not_found():
    with pytest.raises(NotFoundError):
        AssignmentService(FakeQueries(None), FakeQueue()).create_assignment(make_params(uuid4()))


def test_queue_failure_does_not_fail_creation():
    teacher = uuid4()
    queries = FakeQueries(SimpleNamespace(teacher_id=teacher))
    assignment = AssignmentService(queries, FakeQueue(fail=True)).create_assignment(
        make_params(teacher))
    assert assignment.title == "Essay"
    assert len(queries.created) == 1