import base64
import json
import time
from http import HTTPStatus
from types import SimpleNamespace
from uuid import uuid4

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from eportal.auth import (
    Authenticator,
    AuthError,
    JWKSCache,
    UserContext,
    apply_rls,
    authorize,
    is_admin,
    rls_settings,
    tenant_school_id,
)
from eportal.jwk import JWKError


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _raw(public_key) -> bytes:
    return public_key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


def _jwk(private_key, kid):
    return {"kty": "OKP", "crv": "Ed25519", "kid": kid, "x": _b64(_raw(private_key.public_key()))}


@pytest.fixture(scope="module")
def signing_key():
    return ed25519.Ed25519PrivateKey.generate()


class Fetcher:
    def __init__(self, keys):
        self.body = json.dumps({"keys": keys}).encode()
        self.calls = 0

    def __call__(self, url):
        self.calls += 1
        return self.body


class FakeQueries:
    def __init__(self, rows=None, error=None):
        self.rows = rows or {}
        self.error = error

    def get_user_by_email_only(self, email):
        if self.error is not None:
            raise self.error
        return self.rows.get(email)


EMAIL = "teacher@example.com"


@pytest.fixture
def row():
    return SimpleNamespace(user_id=uuid4(), school_id=uuid4(), role_id=uuid4(),
                           role_name="Teacher", email=EMAIL)


def _authenticator(signing_key, queries):
    cache = JWKSCache("http://localhost/jwks", fetch=Fetcher([_jwk(signing_key, "main")]))
    return Authenticator(cache, queries)


def _token(key, claims, kid="main"):
    return jwt.encode(claims, key, algorithm="EdDSA", headers={"kid": kid})


def test_authenticate_valid_token(signing_key, row):
    auth = _authenticator(signing_key, FakeQueries({EMAIL: row}))
    token = _token(signing_key, {"sub": "user-1", "email": EMAIL, "role": "Developer"})
    user = auth.authenticate("Bearer " + token)
    assert user == UserContext(row.user_id, row.school_id, row.role_id, "Developer", EMAIL)


def test_role_falls_back_to_database(signing_key, row):
    auth = _authenticator(signing_key, FakeQueries({EMAIL: row}))
    token = _token(signing_key, {"sub": "user-1", "email": EMAIL})
    assert auth.authenticate("Bearer " + token).role_name == row.role_name


def test_unknown_kid_uses_available_key(signing_key, row):
    auth = _authenticator(signing_key, FakeQueries({EMAIL: row}))
    token = _token(signing_key, {"sub": "user-1", "email": EMAIL}, kid="other")
    assert auth.authenticate("Bearer " + token).user_id == row.user_id


@pytest.mark.parametrize("header", [None, "", "Basic token", "bearer token"])
def test_missing_bearer(signing_key, header):
    auth = _authenticator(signing_key, FakeQueries())
    with pytest.raises(AuthError, match="Unauthorized: No token provided") as info:
        auth.authenticate(header)
    assert info.value.status_code == HTTPStatus.UNAUTHORIZED


def test_token_from_other_key_is_invalid(signing_key, row):
    auth = _authenticator(signing_key, FakeQueries({EMAIL: row}))
    other = ed25519.Ed25519PrivateKey.generate()
    token = _token(other, {"sub": "user-1", "email": EMAIL})
    with pytest.raises(AuthError, match="Unauthorized: Invalid token"):
        auth.authenticate("Bearer " + token)


def test_expired_token_is_invalid(signing_key, row):
    auth = _authenticator(signing_key, FakeQueries({EMAIL: row}))
    token = _token(signing_key, {"sub": "user-1", "email": EMAIL, "exp": int(time.time()) - 60})
    with pytest.raises(AuthError, match="Unauthorized: Invalid token"):
        auth.authenticate("Bearer " + token)


def test_garbage_token_is_invalid(signing_key):
    auth = _authenticator(signing_key, FakeQueries())
    with pytest.raises(AuthError, match="Unauthorized: Invalid token"):
        auth.authenticate("Bearer token")


def test_missing_subject(signing_key, row):
    auth = _authenticator(signing_key, FakeQueries({EMAIL: row}))
    token = _token(signing_key, {"email": EMAIL})
    with pytest.raises(AuthError, match="Unauthorized: No user ID in token"):
        auth.authenticate("Bearer " + token)


def test_user_not_in_database(signing_key):
    auth = _authenticator(signing_key, FakeQueries())
    token = _token(signing_key, {"sub": "user-1", "email": EMAIL})
    with pytest.raises(AuthError, match="Unauthorized: User not found in database") as info:
        auth.authenticate("Bearer " + token)
    assert info.value.status_code == HTTPStatus.UNAUTHORIZED


def test_database_failure(signing_key):
    auth = _authenticator(signing_key, FakeQueries(error=RuntimeError("down")))
    token = _token(signing_key, {"sub": "user-1", "email": EMAIL})
    with pytest.raises(AuthError, match="Internal Server Error") as info:
        auth.authenticate("Bearer " + token)
    assert info.value.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_cache_reuses_fresh_keys(signing_key):
    fetcher = Fetcher([_jwk(signing_key, "main")])
    cache = JWKSCache("http://localhost/jwks", fetch=fetcher)
    first = cache.get_key("main")
    second = cache.get_key("main")
    assert _raw(first) == _raw(second) == _raw(signing_key.public_key())
    assert fetcher.calls == 1


def test_cache_refetches_after_ttl(signing_key):
    fetcher = Fetcher([_jwk(signing_key, "main")])
    cache = JWKSCache("http://localhost/jwks", ttl=0, fetch=fetcher)
    cache.get_key("main")
    cache.get_key("main")
    assert fetcher.calls == 2


def test_cache_refetches_for_unknown_kid(signing_key):
    fetcher = Fetcher([_jwk(signing_key, "main")])
    cache = JWKSCache("http://localhost/jwks", fetch=fetcher)
    cache.get_key("main")
    cache.get_key("missing")
    assert fetcher.calls == 2


def test_cache_skips_unparseable_keys(signing_key):
    fetcher = Fetcher([{"kty": "oct", "kid": "bad"}, _jwk(signing_key, "good")])
    cache = JWKSCache("http://localhost/jwks", fetch=fetcher)
    assert _raw(cache.get_key("bad")) == _raw(signing_key.public_key())


def test_cache_without_keys():
    cache = JWKSCache("http://localhost/jwks", fetch=Fetcher([]))
    with pytest.raises(JWKError, match="no matching key found for kid: main"):
        cache.get_key("main")


def test_cache_fetch_failure():
    def fail(url):
        raise OSError("connection refused")

    cache = JWKSCache("http://localhost/jwks", fetch=fail)
    with pytest.raises(JWKError, match="failed to fetch JWKS"):
        cache.get_key("main")


def test_authorize_allows_listed_role():
    assert authorize("Parent", ["Parent"]) == "Parent"


def test_authorize_rejects_other_role():
    with pytest.raises(AuthError, match="Forbidden: Insufficient permissions") as info:
        authorize("Student", ["Executive Administrator", "Developer"])
    assert info.value.status_code == HTTPStatus.FORBIDDEN


def test_authorize_without_role():
    with pytest.raises(AuthError, match="Forbidden: User role not found"):
        authorize(None, ["Parent"])


@pytest.mark.parametrize("role", [
    "Developer", "DB Manager", "Executive Administrator",
    "Academic Administrator", "Finance Administrator", "IT Administrator",
])
def test_admin_roles(role):
    assert is_admin(role) is True


@pytest.mark.parametrize("role", ["Teacher", "Parent", "Student", ""])
def test_non_admin_roles(role):
    assert is_admin(role) is False


def test_tenant_header():
    school = uuid4()
    assert tenant_school_id({"X-Tenant-ID": str(school)}) == school


def test_school_header_fallback_is_case_insensitive():
    school = uuid4()
    assert tenant_school_id({"x-school-id": str(school)}) == school


def test_invalid_tenant_header():
    assert tenant_school_id({"X-Tenant-ID": "not-a-uuid"}) is None


def test_invalid_tenant_does_not_fall_back():
    assert tenant_school_id({"X-Tenant-ID": "not-a-uuid", "X-School-ID": str(uuid4())}) is None


def test_no_tenant_headers():
    assert tenant_school_id({}) is None


def _user(school_id):
    return UserContext(uuid4(), school_id, uuid4(), "Teacher", EMAIL)


def test_rls_settings():
    school = uuid4()
    assert rls_settings(_user(school)) == {"app.current_school_id": str(school),
                                           "app.current_role": "Teacher"}
    assert rls_settings(_user(None))["app.current_school_id"] == ""


class RecordingConnection:
    def __init__(self, error=None):
        self.error = error
        self.executed = []

    def cursor(self):
        conn = self

        class Cursor:
            def execute(self, sql, params):
                if conn.error is not None:
                    raise conn.error
                conn.executed.append((sql, params))

            def close(self):
                pass

        return Cursor()


def test_apply_rls_passes_parameters():
    school = uuid4()
    conn = RecordingConnection()
    settings = apply_rls(conn, _user(school))
    assert settings["app.current_school_id"] == str(school)
    assert [params for _, params in conn.executed] == [(str(school), "Teacher")]


def test_apply_rls_without_user():
    conn = RecordingConnection()
    assert apply_rls(conn, None) == {}
    assert conn.executed == []


def test_apply_rls_failure():
    conn = RecordingConnection(error=RuntimeError("closed"))
    with pytest.raises(AuthError, match="Could not set RLS context") as info:
        apply_rls(conn, _user(uuid4()))
    assert info.value.status_code == HTTPStatus.INTERNAL_SERVER_ERROR