"""
Caller authentication

Every todo and rank endpoint needs a verified caller identity. Verification is
behind the IdentityVerifier interface:

- RemoteIdentityVerifier exchanges the bearer token with the auth service
  (POST {AUTH_SERVICE_URL}/api/auth/verify) once per request.
- JWKSIdentityVerifier verifies the JWT locally against the identity
  provider's published public keys.

An unreachable identity service is reported as an authentication failure.
"""
import time
import logging
from functools import lru_cache
from typing import Optional, Protocol

import httpx
from fastapi import Depends, Header
from jose import jwt, jwk
from pydantic import BaseModel

from app import config
from app.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

JWKS_CACHE_DURATION = 60 * 60  # 1 hour in seconds


class Identity(BaseModel):
    """Verified caller"""
    user_id: str
    username: str


class IdentityVerifier(Protocol):
    async def verify(self, token: str) -> Identity:
        """Return the identity behind token or raise AuthenticationError"""
        ...


class RemoteIdentityVerifier:
    """Verifies bearer tokens by asking the auth service"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.verify_url = f"{base_url.rstrip('/')}/api/auth/verify"
        self.timeout = timeout
        self._transport = transport

    async def verify(self, token: str) -> Identity:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.verify_url,
                    json={},
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.warning(f"Auth service unreachable at {self.verify_url}: {e}")
            raise AuthenticationError()

        if response.status_code >= 400:
            logger.warning(f"Auth service rejected token (status {response.status_code})")
            raise AuthenticationError("Invalid token")

        try:
            data = response.json()
        except ValueError:
            logger.warning("Auth service returned a non-JSON body")
            raise AuthenticationError()

        if not data.get("success") or not data.get("userId"):
            raise AuthenticationError("Invalid token")

        user_id = str(data["userId"])
        return Identity(user_id=user_id, username=str(data.get("username") or user_id))


class JWKSIdentityVerifier:
    """
    Verifies JWTs locally with python-jose against a cached JWKS document.

    The JWKS is refetched at most once per JWKS_CACHE_DURATION; when a refetch
    fails the stale copy is reused.
    """

    def __init__(
        self,
        jwks_url: str,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.audience = audience
        self._transport = transport
        self._jwks_cache: Optional[dict] = None
        self._jwks_cache_time: float = 0

    async def get_jwks(self) -> dict:
        """
        Fetch and cache JWKS
        Returns cached JWKS if available and not expired
        """
        now = time.time()

        if self._jwks_cache and (now - self._jwks_cache_time) < JWKS_CACHE_DURATION:
            return self._jwks_cache

        logger.info(f"Fetching JWKS from: {self.jwks_url}")
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(self.jwks_url, timeout=10.0)
                response.raise_for_status()
                self._jwks_cache = response.json()
                self._jwks_cache_time = now
                logger.info(f"JWKS cached with {len(self._jwks_cache.get('keys', []))} keys")
                return self._jwks_cache
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch JWKS: {e}")
            if self._jwks_cache:
                logger.warning("Using expired JWKS cache due to fetch failure")
                return self._jwks_cache
            raise AuthenticationError()

    async def verify(self, token: str) -> Identity:
        jwks = await self.get_jwks()

        try:
            unverified_header = jwt.get_unverified_header(token)
        except jwt.JWTError:
            raise AuthenticationError("Invalid token")

        kid = unverified_header.get("kid")
        if not kid:
            raise AuthenticationError("Invalid token: missing key ID")

        key_data = None
        for jwk_key in jwks.get("keys", []):
            if jwk_key.get("kid") == kid:
                key_data = jwk_key
                break

        if not key_data:
            logger.warning(f"No matching key found for kid: {kid}")
            raise AuthenticationError("Invalid token: key not found")

        algorithm = key_data.get("alg") or unverified_header.get("alg", "RS256")

        try:
            key = jwk.construct(key_data, algorithm)
            payload = jwt.decode(
                token,
                key,
                algorithms=[algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.JWTClaimsError as e:
            logger.warning(f"JWT claims validation failed: {e}")
            raise AuthenticationError("Invalid token claims")
        except jwt.JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise AuthenticationError("Invalid token")

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid token: missing user ID")

        username = payload.get("username") or payload.get("email") or user_id
        return Identity(user_id=str(user_id), username=str(username))


@lru_cache(maxsize=1)
def get_identity_verifier() -> IdentityVerifier:
    """Process-wide verifier selected by AUTH_MODE"""
    if config.AUTH_MODE == "jwks":
        if not config.JWKS_URL:
            raise ValueError("JWKS_URL must be set when AUTH_MODE=jwks")
        return JWKSIdentityVerifier(
            config.JWKS_URL,
            issuer=config.JWT_ISSUER,
            audience=config.JWT_AUDIENCE,
        )
    if config.AUTH_MODE != "remote":
        raise ValueError(f"Unsupported AUTH_MODE: {config.AUTH_MODE}")
    return RemoteIdentityVerifier(config.AUTH_SERVICE_URL, timeout=config.AUTH_TIMEOUT_SECONDS)


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("No token provided")
    try:
        scheme, token = authorization.split(" ", 1)
    except ValueError:
        raise AuthenticationError("Invalid authorization header format. Expected 'Bearer <token>'")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authorization scheme. Expected 'Bearer'")
    return token.strip()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    """
    FastAPI dependency to verify the bearer token in the Authorization header
    Returns the authenticated caller
    """
    token = extract_bearer_token(authorization)
    identity = await verifier.verify(token)
    logger.debug(f"Authenticated user: {identity.user_id}")
    return identity
