"""Tests for bearer token extraction and the identity verifiers."""

from __future__ import annotations

import base64
import json
import time

import httpx
import pytest
from jose import jwt

from app.exceptions import AuthenticationError
from app.middleware.auth import (
    Identity,
    JWKSIdentityVerifier,
    RemoteIdentityVerifier,
    extract_bearer_token,
)

SECRET = "test-signing-secret-with-enough-length"
KID = "test-key"
JWKS_URL = "https://id.example.test/.well-known/jwks.json"


# ---------------------------------------------------------------------------
# extract_bearer_token
# ---------------------------------------------------------------------------


def test_extracts_bearer_token():
    assert extract_bearer_token("Bearer abc.def") == "abc.def"
    assert extract_bearer_token("bearer   abc ") == "abc"


@pytest.mark.parametrize("header", [None, "", "Bearer", "Basic abc", "Bearer   "])
def test_rejects_missing_or_malformed_header(header):
    with pytest.raises(AuthenticationError):
        extract_bearer_token(header)


def test_missing_header_message():
    with pytest.raises(AuthenticationError, match="No token provided"):
        extract_bearer_token(None)


# ---------------------------------------------------------------------------
# RemoteIdentityVerifier
# ---------------------------------------------------------------------------


def _remote(handler) -> RemoteIdentityVerifier:
    return RemoteIdentityVerifier("http://auth.test/", transport=httpx.MockTransport(handler))


async def test_remote_verifier_returns_identity():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"success": True, "userId": "u1", "username": "alice"})

    identity = await _remote(handler).verify("tok")

    assert identity == Identity(user_id="u1", username="alice")
    assert seen == {"url": "http://auth.test/api/auth/verify", "auth": "Bearer tok"}


async def test_remote_verifier_falls_back_to_user_id_as_username():
    def handler(request):
        return httpx.Response(200, json={"success": True, "userId": "u1"})

    identity = await _remote(handler).verify("tok")

    assert identity.username == "u1"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"success": False}),
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"success": False, "userId": "u1"}),
        httpx.Response(200, json={"success": True}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_remote_verifier_rejects_bad_responses(response):
    with pytest.raises(AuthenticationError):
        await _remote(lambda request: response).verify("tok")


async def test_remote_verifier_unreachable_service_is_authentication_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AuthenticationError):
        await _remote(handler).verify("tok")


# ---------------------------------------------------------------------------
# JWKSIdentityVerifier
# ---------------------------------------------------------------------------


def _oct_jwk(kid: str = KID) -> dict:
    k = base64.urlsafe_b64encode(SECRET.encode()).rstrip(b"=").decode()
    return {"kty": "oct", "kid": kid, "alg": "HS256", "k": k}


def _token(claims: dict, kid: str = KID) -> str:
    payload = {"exp": int(time.time()) + 300, "aud": "authenticated", **claims}
    return jwt.encode(payload, SECRET, algorithm="HS256", headers={"kid": kid})


class JWKSServer:
    """MockTransport handler serving one JWKS document and counting fetches"""

    def __init__(self, keys):
        self.keys = keys
        self.fetches = 0
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.fetches += 1
        if self.fail:
            return httpx.Response(503)
        return httpx.Response(200, content=json.dumps({"keys": self.keys}))


def _jwks_verifier(server: JWKSServer, **kwargs) -> JWKSIdentityVerifier:
    kwargs.setdefault("audience", "authenticated")
    return JWKSIdentityVerifier(JWKS_URL, transport=httpx.MockTransport(server), **kwargs)


async def test_jwks_verifier_returns_identity_from_claims():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]))

    identity = await verifier.verify(_token({"sub": "u1", "email": "a@example.test"}))

    assert identity == Identity(user_id="u1", username="a@example.test")


async def test_jwks_verifier_prefers_username_claim():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]))

    identity = await verifier.verify(_token({"sub": "u1", "username": "alice", "email": "a@x"}))

    assert identity.username == "alice"


async def test_jwks_is_cached_between_verifications():
    server = JWKSServer([_oct_jwk()])
    verifier = _jwks_verifier(server)

    await verifier.verify(_token({"sub": "u1"}))
    await verifier.verify(_token({"sub": "u2"}))

    assert server.fetches == 1


async def test_stale_jwks_is_used_when_refetch_fails():
    server = JWKSServer([_oct_jwk()])
    verifier = _jwks_verifier(server)
    await verifier.verify(_token({"sub": "u1"}))

    server.fail = True
    verifier._jwks_cache_time = 0

    identity = await verifier.verify(_token({"sub": "u1"}))
    assert identity.user_id == "u1"
    assert server.fetches == 2


async def test_unreachable_jwks_without_cache_is_authentication_failure():
    server = JWKSServer([_oct_jwk()])
    server.fail = True

    with pytest.raises(AuthenticationError):
        await _jwks_verifier(server).verify(_token({"sub": "u1"}))


async def test_jwks_verifier_rejects_unknown_kid():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk("other")]))

    with pytest.raises(AuthenticationError, match="key not found"):
        await verifier.verify(_token({"sub": "u1"}))


async def test_jwks_verifier_rejects_expired_token():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]))
    token = _token({"sub": "u1", "exp": int(time.time()) - 60})

    with pytest.raises(AuthenticationError, match="expired"):
        await verifier.verify(token)


async def test_jwks_verifier_rejects_wrong_audience():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]))

    with pytest.raises(AuthenticationError):
        await verifier.verify(_token({"sub": "u1", "aud": "someone-else"}))


async def test_jwks_verifier_checks_issuer_when_configured():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]), issuer="https://id.example.test")

    with pytest.raises(AuthenticationError):
        await verifier.verify(_token({"sub": "u1", "iss": "https://evil.test"}))

    identity = await verifier.verify(_token({"sub": "u1", "iss": "https://id.example.test"}))
    assert identity.user_id == "u1"


async def test_jwks_verifier_rejects_token_without_subject():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]))

    with pytest.raises(AuthenticationError):
        await verifier.verify(_token({"email": "a@example.test"}))


async def test_jwks_verifier_rejects_garbage():
    verifier = _jwks_verifier(JWKSServer([_oct_jwk()]))

    with pytest.raises(AuthenticationError):
        await verifier.verify("not-a-jwt")
