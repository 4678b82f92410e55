"""Per-request hooks: audit logging, access logging and response caching."""

from __future__ import annotations

import logging
from typing import Any, Callable

from eportal.auth import UserContext
from eportal.tasks import TYPE_AUDIT_LOG, AuditLogPayload

logger = logging.getLogger(__name__)

MODIFYING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_UNKNOWN = "N/A"


def _body_text(body: bytes | bytearray | str | None) -> str:
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    return body


def build_audit_payload(user: UserContext | None, method: str, path: str,
                        remote_addr: str, user_agent: str,
                        body: bytes | str | None) -> AuditLogPayload | None:
    """Describe a data-modifying request for the audit log; None if nothing to log."""
    if user is None or method not in MODIFYING_METHODS:
        return None
    text = _body_text(body)
    return AuditLogPayload(
        school_id=user.school_id,
        user_id=user.user_id,
        action=f"{method} {path}",
        new_value=text or None,
        ip_address=remote_addr,
        user_agent=user_agent,
    )


def enqueue_audit(queue: Any, user: UserContext | None, method: str, path: str,
                  remote_addr: str, user_agent: str,
                  body: bytes | str | None) -> AuditLogPayload | None:
    """Queue an audit-log task for the request; failures are logged, not raised."""
    payload = build_audit_payload(user, method, path, remote_addr, user_agent, body)
    if payload is None:
        return None
    try:
        data = payload.to_json()
    except ValueError as exc:
        logger.error("could not encode audit payload: %s", exc)
        return payload
    try:
        queue.enqueue(TYPE_AUDIT_LOG, data)
    except Exception as exc:  # auditing must never break the request
        logger.error("could not enqueue audit task: %s", exc)
    return payload


def log_request(method: str, url: str, remote_addr: str, status: int, duration: Any,
                user_agent: str, user: UserContext | None) -> dict[str, Any]:
    """Log one finished HTTP request and return the fields that were logged."""
    fields: dict[str, Any] = {
        "method": method,
        "url": url,
        "ip": remote_addr,
        "status": int(status),
        "duration": str(duration),
        "user_agent": user_agent,
        "user_id": _UNKNOWN if user is None else str(user.user_id),
        "role": _UNKNOWN if user is None else user.role_name,
    }
    logger.info("HTTP Request %s", " ".join(f"{k}={v}" for k, v in fields.items()))
    return fields


class ResponseCache:
    """Caches GET response bodies in a key-value store such as Redis."""

    def __init__(self, store: Any, ttl: Any) -> None:
        self.store = store
        self.ttl = ttl

    def get_or_render(self, method: str, key: str, render: Callable[[], bytes]) -> bytes:
        """Return the cached body for key, or render it and cache a non-empty result."""
        if method != "GET":
            return render()

        try:
            cached = self.store.get(key)
        except Exception as exc:
            logger.error("Redis cache error: %s", exc)
            cached = None

        if cached is not None:
            logger.info("Cache hit url=%s", key)
            return cached.encode() if isinstance(cached, str) else bytes(cached)

        logger.info("Cache miss url=%s", key)
        body = render()
        if body:
            try:
                self.store.set(key, body, ex=self.ttl)
            except Exception as exc:
                logger.error("Failed to cache response: %s", exc)
        return body