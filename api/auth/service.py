"""
Auth business logic.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from . import repository, schemas, security

logger = logging.getLogger(__name__)


def _to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=int(user_row["id"]),
        name=user_row.get("name"),
        email=str(user_row["email"]),
    )


async def login(payload: schemas.LoginRequest) -> schemas.LoginResponse:
    user_row = await repository.get_user_by_email(payload.email)
    if user_row is None:
        logger.info("login_failed reason=unknown_email")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    is_valid = security.verify_password(payload.password, str(user_row.get("password") or ""))
    if not is_valid:
        logger.info("login_failed reason=bad_password user_id=%s", user_row["id"])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    token = security.build_access_token(
        user_id=int(user_row["id"]),
        email=str(user_row["email"]),
    )
    logger.info("login_ok user_id=%s", user_row["id"])
    return schemas.LoginResponse(token=token, user=_to_user_response(user_row))


async def me(claims: dict) -> schemas.UserResponse:
    user_row = await repository.get_user_by_id(int(claims["sub"]))
    if user_row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return _to_user_response(user_row)


async def create_user(*, name: str, email: str, password: str) -> schemas.UserResponse:
    password_hash = security.hash_password(password)
    user_row = await repository.upsert_user(name=name, email=email, password_hash=password_hash)
    logger.info("user_saved user_id=%s", user_row["id"])
    return _to_user_response(user_row)
