"""Public keys from JSON Web Key documents."""

from __future__ import annotations

import base64
import json
import re
from typing import Any, Callable, Mapping, Union

from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

PublicKey = Union[ed25519.Ed25519PublicKey, rsa.RSAPublicKey, ec.EllipticCurvePublicKey]

ED25519_KEY_SIZE = 32

_B64URL = re.compile(r"[A-Za-z0-9_-]*")
_CURVES = {
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "P-521": ec.SECP521R1,
}


class JWKError(ValueError):
    """A JSON Web Key or key set could not be read."""


def _load(raw_key: Mapping[str, Any] | str | bytes) -> dict[str, Any]:
    if isinstance(raw_key, Mapping):
        return dict(raw_key)
    try:
        obj = json.loads(raw_key)
    except (TypeError, ValueError) as exc:
        raise JWKError(f"invalid JWK JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise JWKError("JWK must be a JSON object")
    return obj


def _field(obj: Mapping[str, Any], name: str) -> str:
    value = obj.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise JWKError(f"JWK field {name!r} must be a string")
    return value


def _b64url_decode(value: str, name: str) -> bytes:
    """Decode unpadded base64url, as JWKs require."""
    if not _B64URL.fullmatch(value) or len(value) % 4 == 1:
        raise JWKError(f"failed to decode {name}: illegal base64 data")
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _b64url_int(value: str, name: str) -> int:
    return int.from_bytes(_b64url_decode(value, name), "big")


def _parse_okp(key: Mapping[str, Any]) -> ed25519.Ed25519PublicKey:
    crv = _field(key, "crv")
    if crv != "Ed25519":
        raise JWKError(f"unsupported OKP curve: {crv}")
    x = _b64url_decode(_field(key, "x"), "x")
    if len(x) != ED25519_KEY_SIZE:
        raise JWKError(f"invalid Ed25519 public key length: {len(x)}")
    return ed25519.Ed25519PublicKey.from_public_bytes(x)


def _parse_rsa(key: Mapping[str, Any]) -> rsa.RSAPublicKey:
    n = _b64url_int(_field(key, "n"), "n")
    e = _b64url_int(_field(key, "e"), "e")
    try:
        return rsa.RSAPublicNumbers(e, n).public_key()
    except ValueError as exc:
        raise JWKError(f"invalid RSA key: {exc}") from exc


def _parse_ec(key: Mapping[str, Any]) -> ec.EllipticCurvePublicKey:
    crv = _field(key, "crv")
    curve = _CURVES.get(crv)
    if curve is None:
        raise JWKError(f"unsupported EC curve: {crv}")
    x = _b64url_int(_field(key, "x"), "x")
    y = _b64url_int(_field(key, "y"), "y")
    try:
        return ec.EllipticCurvePublicNumbers(x, y, curve()).public_key()
    except ValueError as exc:
        raise JWKError(f"invalid EC key: {exc}") from exc


_PARSERS: dict[str, Callable[[Mapping[str, Any]], PublicKey]] = {
    "OKP": _parse_okp,
    "RSA": _parse_rsa,
    "EC": _parse_ec,
}


def parse_jwk_public_key(raw_key: Mapping[str, Any] | str | bytes, kty: str) -> PublicKey:
    """Build a public key from one JWK of type OKP, RSA or EC."""
    parser = _PARSERS.get(kty)
    if parser is None:
        raise JWKError(f"unsupported key type: {kty}")
    return parser(_load(raw_key))