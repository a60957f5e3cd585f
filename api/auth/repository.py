"""
User persistence helpers.
"""

from __future__ import annotations

from core import db


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def get_user_by_email(email: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, name, email, password, created_at
        FROM users
        WHERE lower(email) = lower($1)
        """,
        normalize_email(email),
    )


async def get_user_by_id(user_id: int) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, name, email, password, created_at
        FROM users
        WHERE id = $1
        """,
        user_id,
    )


async def upsert_user(*, name: str, email: str, password_hash: str) -> dict:
    """
    Insert a user, or reset name and password when the email already exists.
    """
    row = await db.fetch_one(
        """
        INSERT INTO users (name, email, password)
        VALUES ($1, $2, $3)
        ON CONFLICT (email) DO UPDATE
        SET name = EXCLUDED.name,
            password = EXCLUDED.password
        RETURNING id, name, email, created_at
        """,
        name,
        normalize_email(email),
        password_hash,
    )
    if row is None:
        raise RuntimeError("Failed to upsert user.")
    return row
