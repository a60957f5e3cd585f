"""
User login endpoints. Mounted under both /auth and /user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from . import dependencies, schemas, service

router = APIRouter()


@router.post("/login", response_model=schemas.LoginResponse)
async def login(request: schemas.LoginRequest) -> schemas.LoginResponse:
    return await service.login(request)


@router.get("/me", response_model=schemas.UserResponse)
async def me(claims: dict = Depends(dependencies.get_token_claims)) -> schemas.UserResponse:
    return await service.me(claims)
