"""Request authentication, role checks, tenant headers and row-level security."""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.request
from dataclasses import dataclass
from datetime import timedelta
from http import HTTPStatus
from typing import Any, Callable, Iterable, Mapping
from uuid import UUID

import jwt
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from eportal.jwk import JWKError, PublicKey, parse_jwk_public_key

logger = logging.getLogger(__name__)

DEFAULT_JWKS_TTL = timedelta(minutes=10)

ADMIN_ROLES = frozenset({
    "Developer",
    "DB Manager",
    "Executive Administrator",
    "Academic Administrator",
    "Finance Administrator",
    "IT Administrator",
})

_RLS_SQL = ("SELECT set_config('app.current_school_id', %s, false), "
            "set_config('app.current_role', %s, false)")


class AuthError(Exception):
    """A request was refused; carries the HTTP status to answer with."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.message = message


@dataclass(frozen=True)
class UserContext:
    """The authenticated user of a request."""

    user_id: UUID
    school_id: UUID | None
    role_id: UUID
    role_name: str
    email: str


def _http_get(url: str) -> bytes:
    with urllib.request.urlopen(url, timeout=10) as response:
        return response.read()


class JWKSCache:
    """Public keys from a JWKS endpoint, refreshed after a time-to-live."""

    def __init__(self, url: str, ttl: timedelta | float = DEFAULT_JWKS_TTL,
                 fetch: Callable[[str], bytes] | None = None) -> None:
        self.url = url
        self.ttl = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        self._fetch = fetch or _http_get
        self._keys: dict[str, PublicKey] = {}
        self._fetched_at: float | None = None
        self._lock = threading.Lock()

    def _fresh(self) -> bool:
        return (self._fetched_at is not None
                and time.monotonic() - self._fetched_at < self.ttl.total_seconds())

    def get_key(self, kid: str) -> PublicKey:
        """Return the key with this id, or any key when the id is unknown."""
        with self._lock:
            if kid in self._keys and self._fresh():
                return self._keys[kid]
            return self._refresh(kid)

    def _refresh(self, kid: str) -> PublicKey:
        try:
            body = self._fetch(self.url)
        except OSError as exc:
            raise JWKError(f"failed to fetch JWKS: {exc}") from exc

        try:
            document = json.loads(body)
        except ValueError as exc:
            raise JWKError(f"failed to parse JWKS: {exc}") from exc
        raw_keys = document.get("keys") if isinstance(document, dict) else None
        if raw_keys is None and isinstance(document, dict):
            raw_keys = []
        if not isinstance(raw_keys, list):
            raise JWKError("failed to parse JWKS: 'keys' must be a list")

        keys: dict[str, PublicKey] = {}
        for raw in raw_keys:
            if not isinstance(raw, dict):
                continue
            key_id, kty = raw.get("kid") or "", raw.get("kty") or ""
            if not isinstance(key_id, str) or not isinstance(kty, str):
                continue
            try:
                keys[key_id] = parse_jwk_public_key(raw, kty)
            except JWKError as exc:
                logger.warning("failed to parse JWK kid=%s: %s", key_id, exc)

        self._keys = keys
        self._fetched_at = time.monotonic()

        if kid in keys:
            return keys[kid]
        for key in keys.values():
            return key
        raise JWKError(f"no matching key found for kid: {kid}")


def _algorithms_for(key: Any) -> list[str]:
    if isinstance(key, ed25519.Ed25519PublicKey):
        return ["EdDSA"]
    if isinstance(key, rsa.RSAPublicKey):
        return ["RS256", "RS384", "RS512", "PS256", "PS384", "PS512"]
    if isinstance(key, ec.EllipticCurvePublicKey):
        return ["ES256", "ES384", "ES512"]
    raise JWKError(f"unsupported key object: {type(key).__name__}")


def _claim(claims: Mapping[str, Any], name: str) -> str:
    value = claims.get(name)
    return value if isinstance(value, str) else ""


class Authenticator:
    """Verifies bearer tokens and loads the matching user."""

    def __init__(self, jwks: JWKSCache, queries: Any) -> None:
        self.jwks = jwks
        self.queries = queries

    def _verify(self, token: str) -> Any:
        try:
            header = jwt.get_unverified_header(token)
            kid = header.get("kid")
            key = self.jwks.get_key(kid if isinstance(kid, str) else "")
            return jwt.decode(token, key, algorithms=_algorithms_for(key),
                              options={"verify_aud": False})
        except (jwt.PyJWTError, JWKError, TypeError, ValueError) as exc:
            logger.info("token rejected: %s", exc)
            raise AuthError(HTTPStatus.UNAUTHORIZED, "Unauthorized: Invalid token") from exc

    def authenticate(self, authorization: str | None) -> UserContext:
        """Turn an Authorization header value into the request's user."""
        prefix = "Bearer "
        if not authorization or not authorization.startswith(prefix):
            raise AuthError(HTTPStatus.UNAUTHORIZED, "Unauthorized: No token provided")

        claims = self._verify(authorization[len(prefix):])
        if not isinstance(claims, Mapping):
            raise AuthError(HTTPStatus.UNAUTHORIZED, "Unauthorized: Invalid claims")

        if not _claim(claims, "sub"):
            raise AuthError(HTTPStatus.UNAUTHORIZED, "Unauthorized: No user ID in token")
        email = _claim(claims, "email")
        role_name = _claim(claims, "role")

        try:
            row = self.queries.get_user_by_email_only(email)
        except LookupError:
            row = None
        except Exception as exc:
            logger.error("user lookup failed: %s", exc)
            raise AuthError(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error") from exc
        if row is None:
            raise AuthError(HTTPStatus.UNAUTHORIZED, "Unauthorized: User not found in database")

        return UserContext(
            user_id=row.user_id,
            school_id=row.school_id,
            role_id=row.role_id,
            role_name=role_name or row.role_name,
            email=row.email,
        )


def authorize(role_name: str | None, allowed_roles: Iterable[str]) -> str:
    """Return the role if it is allowed; otherwise refuse with 403."""
    if role_name is None:
        raise AuthError(HTTPStatus.FORBIDDEN, "Forbidden: User role not found")
    if role_name not in set(allowed_roles):
        raise AuthError(HTTPStatus.FORBIDDEN, "Forbidden: Insufficient permissions")
    return role_name


def is_admin(role_name: str) -> bool:
    return role_name in ADMIN_ROLES


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    return next((value for key, value in headers.items() if key.lower() == wanted), "")


def tenant_school_id(headers: Mapping[str, str]) -> UUID | None:
    """School id from X-Tenant-ID, or X-School-ID when the former is absent."""
    value = _header(headers, "X-Tenant-ID") or _header(headers, "X-School-ID")
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


def rls_settings(user: UserContext) -> dict[str, str]:
    """Session variables that row-level security policies read."""
    return {
        "app.current_school_id": "" if user.school_id is None else str(user.school_id),
        "app.current_role": user.role_name,
    }


def apply_rls(connection: Any, user: UserContext | None) -> dict[str, str]:
    """Set the RLS session variables on a DB-API connection."""
    if user is None:
        return {}
    settings = rls_settings(user)
    try:
        cursor = connection.cursor()
        try:
            cursor.execute(_RLS_SQL, (settings["app.current_school_id"],
                                      settings["app.current_role"]))
        finally:
            close = getattr(cursor, "close", None)
            if close is not None:
                close()
    except Exception as exc:
        raise AuthError(HTTPStatus.INTERNAL_SERVER_ERROR,
                        "Internal Server Error: Could not set RLS context") from exc
    return settings