# app/deps/auth.py
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

import jwt  # type: ignore
from fastapi import Header

from app.config import require_auth_key, settings
from app.core.errors import Unauthenticated
from app.core.logging import logger

__all__ = ["Identity", "extract_identity_from_token", "get_current_identity"]


class Identity:
    """Caller identity as asserted by the identity provider's token."""
    def __init__(self, external_id: str, email: Optional[str] = None, name: Optional[str] = None):
        self.external_id = external_id
        self.email = email
        self.name = name


@lru_cache(maxsize=4)
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url)


def _signing_key(token: str) -> Any:
    secret = require_auth_key()
    if secret:
        return secret
    return _jwks_client(settings.AUTH_JWKS_URL).get_signing_key_from_jwt(token).key


def _name_from_claims(payload: Dict[str, Any]) -> Optional[str]:
    name = payload.get("name")
    if name:
        return str(name)
    parts = [payload.get("given_name") or payload.get("first_name"), payload.get("family_name") or payload.get("last_name")]
    joined = " ".join(str(p) for p in parts if p).strip()
    return joined or None


def extract_identity_from_token(authorization: Optional[str]) -> Optional[Identity]:
    """
    Verify a ``Bearer <jwt>`` header value.
    Returns Identity if valid, None if missing/invalid.
    """
    if not authorization or not str(authorization).startswith("Bearer "):
        return None

    token_only = str(authorization).split(" ", 1)[1].strip()
    if not token_only:
        return None

    # Misconfiguration is a server error, so resolve the key outside the try
    try:
        key = _signing_key(token_only)
    except (jwt.PyJWKClientError, jwt.InvalidTokenError) as e:
        logger.info("auth_signing_key_unresolved", error=str(e))
        return None

    try:
        payload = jwt.decode(
            token_only,
            key,
            algorithms=settings.AUTH_JWT_ALGORITHMS,
            audience=settings.AUTH_JWT_AUDIENCE,
            issuer=settings.AUTH_JWT_ISSUER,
            options={"verify_aud": settings.AUTH_JWT_AUDIENCE is not None},
        )  # type: ignore[arg-type]
    except jwt.ExpiredSignatureError:
        logger.info("auth_token_expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug("auth_token_invalid", error=str(e))
        return None

    # 'sub' is the identity provider's user id
    sub = payload.get("sub") if isinstance(payload, dict) else None
    if not sub or not str(sub).strip():
        logger.debug("auth_sub_missing")
        return None

    return Identity(
        external_id=str(sub).strip(),
        email=payload.get("email"),
        name=_name_from_claims(payload),
    )


async def get_current_identity(authorization: Optional[str] = Header(None)) -> Identity:
    """
    Required auth dependency - raises Unauthenticated (401) if the caller has no valid token.
    """
    identity = extract_identity_from_token(authorization)

    if not identity:
        raise Unauthenticated("Unauthorized")

    return identity
