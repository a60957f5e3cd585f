"""
Auth dependencies for protected FastAPI routes.

A missing or malformed Authorization header is a 401; a token that is
present but cannot be verified (bad signature, expired, wrong type) is a 403.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Header, HTTPException, status

from . import security

ACCESS_DENIED = "Access denied. No token provided."
INVALID_TOKEN = "Invalid or expired token."

logger = logging.getLogger(__name__)


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ACCESS_DENIED,
        )

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ACCESS_DENIED,
        )

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ACCESS_DENIED,
        )
    return token


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def get_token_claims(access_token: str = Depends(get_bearer_token)) -> dict:
    try:
        return security.decode_access_token(access_token)
    except security.TokenExpiredError as exc:
        logger.info("token_rejected reason=expired")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=INVALID_TOKEN,
        ) from exc
    except security.AuthSecurityError as exc:
        logger.info("token_rejected reason=invalid error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=INVALID_TOKEN,
        ) from exc
