# eportal

Domain logic for a multi-tenant school portal backend. It covers timetable
generation, background task handlers, bearer-token authentication and the
business rules of schools, users, classes, courses, finance and more.

The package does not depend on any particular storage. Every service takes a
`queries` object and calls named methods on it, for example
`get_class_by_id(class_id=..., school_id=...)` or `create_user(...)`. Services
that need atomic writes also take a `db` object. They call
`queries.with_tx(db)` to get transaction-bound queries, then call
`db.commit()` on success or `db.rollback()` on error.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Modules

### `eportal.scheduler`

A genetic-algorithm timetable generator.

- `Scheduler(queries=None, config=None, rng=None)`:
  - `generate(school_id, academic_year, semester)` loads the data through
    `fetch_input_data` and returns the best `Chromosome`.
  - `evolve(data)` runs the algorithm on an `InputData` you have built
    yourself.
- The building blocks are also public: `random_chromosome`,
  `calculate_fitness`, `select_parent` (tournament of 5), `crossover`
  (single point) and `mutate`.
- `Config` holds population size, generations, mutation and crossover rates,
  school-day hours and the maximum run of consecutive classes. Zero values
  fall back to the defaults: 100, 500, 0.05, 0.8, 8, 17 and 3.
- `calculate_fitness` returns a score from 0 to 1.
  - Each hard conflict costs 100 of 2000 points. Hard conflicts are teacher,
    room or class overlaps, a class larger than its room, and a teacher
    outside their availability.
  - Each soft conflict costs 10. Soft conflicts are too many consecutive
    classes, and a teacher busy through both lunch hours (12–14).
- Data classes: `Gene`, `Chromosome`, `Config`, `ClassInfo`, `SubjectInfo`,
  `RoomInfo`, `TeacherAvailability`, `InputData`.

```python
from eportal.scheduler import Scheduler, Config

scheduler = Scheduler(queries, Config(population_size=50))
best = scheduler.generate(school_id, "2024/2025", "Term 1")
print(best.fitness, len(best.genes))
```

`evolve` raises `ValueError` when the data has no classes or no rooms.

### `eportal.tasks`

- Payloads with `to_json()` and `from_json()`:
  - `AssignmentNotificationPayload`
  - `AuditLogPayload`
  - `CalculateRiskScoresPayload`
- Task type names:
  - `TYPE_ASSIGNMENT_NOTIFICATION`
  - `TYPE_AUDIT_LOG`
  - `TYPE_CALCULATE_RISK_SCORES`
- `TaskHandler(queries)` has `handle_assignment_notification`,
  `handle_audit_log` and `handle_calculate_risk_scores`. Each takes a JSON
  payload as `bytes` or `str`. A malformed payload raises `SkipRetry`.
- `risk_score(attendance_rate, average_grade)` weights attendance at 60% and
  grades at 40%, capped at 100.
- `risk_level(score)` returns a `RiskLevel`: `HIGH` from 70, `MEDIUM` from
  40, `LOW` below 40.

```python
from eportal.tasks import risk_score, risk_level

score = risk_score(attendance_rate=80.0, average_grade=50.0)
level = risk_level(score)
```

### `eportal.jwk`

`parse_jwk_public_key(raw_key, kty)` builds a `cryptography` public key from
an OKP (Ed25519), RSA or EC (P-256, P-384, P-521) JWK. The JWK may be given
as a mapping or as JSON text. Bad input raises `JWKError`.

### `eportal.auth`

- `JWKSCache(url, ttl=10 minutes, fetch=None)` fetches a JWKS document. By
  default it uses `urllib`. `get_key(kid)` returns the matching key. When
  the key id is unknown it falls back to any key in the set.
- `Authenticator(jwks, queries).authenticate(authorization_header)` verifies
  a `Bearer` token and looks the user up with
  `queries.get_user_by_email_only(email)`. It returns a `UserContext`. On
  failure it raises `AuthError`, whose `status_code` is 401 or 500.
- `authorize(role_name, allowed_roles)` raises `AuthError` with status 403
  when the role is missing or not allowed.
- `is_admin(role_name)` checks a role name against `ADMIN_ROLES`.
- `tenant_school_id(headers)` reads `X-Tenant-ID`, and falls back to
  `X-School-ID`.
- `rls_settings(user)` returns the `app.current_school_id` and
  `app.current_role` session values.
- `apply_rls(connection, user)` sets those values on a DB-API connection.

### `eportal.errors`

- `AppError(status_code, message, error_code, internal)` is an error that
  carries an HTTP status.
- `error_response(...)` logs the error and returns an `ErrorResponse` with
  `to_dict()` and `to_json()`. Responses with status 5xx include a stack
  trace unless `production=True`. When `production` is not given, it is
  true if the `NODE_ENV` environment variable is `production`.
- Helpers that fill in the status and error code: `validation_error`,
  `unauthorized_error`, `forbidden_error`, `not_found_error`,
  `internal_error`.
- `as_app_error(err)` finds an `AppError` in an exception's cause chain.
- Services raise `ServiceError` subclasses, each with its own HTTP status:
  - `NotFoundError` (404)
  - `PermissionDeniedError` (403)
  - `ConflictError` (409)
  - `InvalidInputError` (400)

  `to_app_error()` turns one of them into an `AppError`.

### `eportal.request_hooks`

- `build_audit_payload` and `enqueue_audit` describe POST, PUT, PATCH and
  DELETE requests of an authenticated user. `enqueue_audit` calls
  `queue.enqueue(TYPE_AUDIT_LOG, data)` and logs failures instead of raising
  them.
- `log_request(...)` logs one finished request and returns the logged fields.
- `ResponseCache(store, ttl).get_or_render(method, key, render)` caches GET
  response bodies in a Redis-like store, using `get(key)` and
  `set(key, body, ex=ttl)`. Empty bodies are not cached.

### `eportal.services`

| Module | Class | Operations |
| --- | --- | --- |
| `auth_service` | `AuthService` | `register_user` |
| `school_service` | `SchoolService` | `register_school`, `verify_school`; `generate_school_initial` |
| `user_service` | `UserService` | `add_user`, `create_student_profile`, `create_parent_profile` |
| `assignment_service` | `AssignmentService` | `create_assignment` (queues a notification task) |
| `attendance_service` | `AttendanceService` | `mark_attendance` |
| `class_service` | `ClassService` | `bulk_enroll_students` |
| `course_service` | `CourseService` | `create_course`, `enroll_short_course`, `unenroll_short_course` |
| `badge_service` | `BadgeService` | create, list, get, update, delete, award, revoke, student badges |
| `finance_service` | `FinanceService` | `process_payment` |
| `quiz_service` | `QuizService` | `submit_quiz` |
| `event_service` | `EventService` | `create_event`, `update_event` |
| `lesson_plan_service` | `LessonPlanService` | create, update, delete (teachers only their own) |
| `meeting_service` | `MeetingService` | `create_meeting`, `update_meeting` |
| `reporting_service` | `ReportingService` | `create_transcript`, `update_transcript` |
| `timetable_service` | `TimetableService` | `generate_and_save_timetable` |

In the update operations, empty strings and `None` leave a field unchanged.

## What the package does not do

The package has no HTTP server, routes or middleware stack. It has no
database schema or `queries` implementation. It has no task queue or worker
process that dispatches to `TaskHandler`. It also has no command-line entry
point. You supply those pieces and call the package's functions from them.

## Running the tests

```
pytest
```