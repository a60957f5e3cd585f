"""
Work persistence (raw SQL).

Tables: works, categories, large_images, small_images.
Child rows have no ON DELETE CASCADE; deletes go children first, then the
work, inside one transaction. Every write that touches more than one row runs
in `db.transaction()` so a failure leaves nothing half-written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import asyncpg

from core import db

IMAGE_TABLES = {
    "large": "large_images",
    "small": "small_images",
}

WORK_COLUMNS = "id, image, intro_image, client, tags, description, sort_order, created_at, updated_at"


class WorkNotFoundError(LookupError):
    def __init__(self, work_id: int) -> None:
        super().__init__(f"Work {work_id} not found.")
        self.work_id = work_id


class GalleryFullError(ValueError):
    pass


@dataclass(frozen=True)
class GalleryChanges:
    """
    Incremental edit of one image gallery.

    - reordered: (src, order) for rows that stay
    - added: (src, order or None) for freshly stored uploads
    - deleted: filenames whose rows should go away
    """

    kind: str
    reordered: list[tuple[str, int]] = field(default_factory=list)
    added: list[tuple[str, int | None]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


def _image_table(kind: str) -> str:
    try:
        return IMAGE_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown image gallery '{kind}'.") from None


async def list_works(*, ordered: bool = True) -> list[dict[str, Any]]:
    order_clause = "sort_order, id" if ordered else "id"
    return await db.fetch_all(
        f"""
        SELECT {WORK_COLUMNS}
        FROM works
        ORDER BY {order_clause}
        """
    )


async def get_work(work_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {WORK_COLUMNS}
        FROM works
        WHERE id = $1
        """,
        work_id,
    )


async def list_categories(work_ids: list[int]) -> list[dict[str, Any]]:
    if not work_ids:
        return []
    return await db.fetch_all(
        """
        SELECT work_id, category_name
        FROM categories
        WHERE work_id = ANY($1::int[])
        ORDER BY work_id, id
        """,
        work_ids,
    )


async def list_images(kind: str, work_ids: list[int]) -> list[dict[str, Any]]:
    if not work_ids:
        return []
    table = _image_table(kind)
    return await db.fetch_all(
        f"""
        SELECT work_id, src, sort_order
        FROM {table}
        WHERE work_id = ANY($1::int[])
        ORDER BY work_id, sort_order ASC NULLS LAST, id
        """,
        work_ids,
    )


async def _next_work_order(conn: asyncpg.Connection) -> int:
    value = await conn.fetchval("SELECT COALESCE(MAX(sort_order), -1) + 1 FROM works")
    return int(value or 0)


async def _next_image_order(conn: asyncpg.Connection, table: str, work_id: int) -> int:
    value = await conn.fetchval(
        f"SELECT COALESCE(MAX(sort_order), -1) + 1 FROM {table} WHERE work_id = $1",
        work_id,
    )
    return int(value or 0)


async def _insert_categories(conn: asyncpg.Connection, work_id: int, categories: list[str]) -> None:
    if not categories:
        return
    await conn.executemany(
        "INSERT INTO categories (work_id, category_name) VALUES ($1, $2)",
        [(work_id, name) for name in categories],
    )


async def _insert_images(
    conn: asyncpg.Connection,
    table: str,
    work_id: int,
    images: list[tuple[str, int | None]],
) -> None:
    if not images:
        return
    await conn.executemany(
        f"INSERT INTO {table} (work_id, src, sort_order) VALUES ($1, $2, $3)",
        [(work_id, src, order) for (src, order) in images],
    )


async def create_work(
    *,
    image: str | None,
    intro_image: str | None,
    client: str,
    tags: str,
    description: str,
    order: int | None,
    categories: list[str],
    large_images: list[str],
    small_images: list[str],
) -> int:
    """
    Insert a work and all of its child rows in a single transaction.

    Gallery images keep their upload position as sort order.
    Returns the new work id.
    """
    async with db.transaction() as conn:
        if order is None:
            order = await _next_work_order(conn)

        row = await conn.fetchrow(
            """
            INSERT INTO works (image, intro_image, client, tags, description, sort_order)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
            """,
            image,
            intro_image,
            client,
            tags,
            description,
            order,
        )
        if row is None or "id" not in row:
            raise RuntimeError("Failed to insert work.")

        work_id = int(row["id"])

        await _insert_categories(conn, work_id, categories)
        await _insert_images(conn, IMAGE_TABLES["large"], work_id, [(src, i) for i, src in enumerate(large_images)])
        await _insert_images(conn, IMAGE_TABLES["small"], work_id, [(src, i) for i, src in enumerate(small_images)])

        return work_id


async def _apply_gallery_changes(
    conn: asyncpg.Connection,
    work_id: int,
    changes: GalleryChanges,
    *,
    max_images: int,
) -> list[str]:
    """
    Apply deletes, reorders and inserts for one gallery.
    Returns filenames of rows that were actually deleted.
    """
    table = _image_table(changes.kind)
    removed: list[str] = []

    if changes.deleted:
        rows = await conn.fetch(
            f"""
            DELETE FROM {table}
            WHERE work_id = $1
              AND src = ANY($2::text[])
            RETURNING src
            """,
            work_id,
            list(changes.deleted),
        )
        removed = [str(r["src"]) for r in rows]

    if changes.reordered:
        await conn.executemany(
            f"UPDATE {table} SET sort_order = $3 WHERE work_id = $1 AND src = $2",
            [(work_id, src, order) for (src, order) in changes.reordered],
        )

    if changes.added:
        next_order = await _next_image_order(conn, table, work_id)
        records: list[tuple[str, int | None]] = []
        for src, order in changes.added:
            if order is None:
                order = next_order
                next_order += 1
            records.append((src, order))
        await _insert_images(conn, table, work_id, records)

    count = await conn.fetchval(f"SELECT count(*) FROM {table} WHERE work_id = $1", work_id)
    if int(count or 0) > max_images:
        raise GalleryFullError(f"A work can have at most {max_images} {changes.kind} images.")

    return removed


async def update_work(
    work_id: int,
    *,
    client: str | None,
    tags: str | None,
    description: str | None,
    image: str | None,
    intro_image: str | None,
    categories: list[str] | None,
    galleries: list[GalleryChanges],
    gallery_limits: dict[str, int],
) -> list[str] | None:
    """
    Merge changes into a work in a single transaction.

    None arguments keep the stored value. `categories`, when given, replaces
    every category row. Returns the filenames that are no longer referenced
    (replaced main/intro image, deleted gallery images), or None when the work
    does not exist.
    """
    async with db.transaction() as conn:
        current = await conn.fetchrow(
            """
            SELECT id, image, intro_image
            FROM works
            WHERE id = $1
            FOR UPDATE
            """,
            work_id,
        )
        if current is None:
            return None

        await conn.execute(
            """
            UPDATE works
            SET client = COALESCE($2, client),
                tags = COALESCE($3, tags),
                description = COALESCE($4, description),
                image = COALESCE($5, image),
                intro_image = COALESCE($6, intro_image),
                updated_at = now()
            WHERE id = $1
            """,
            work_id,
            client,
            tags,
            description,
            image,
            intro_image,
        )

        if categories is not None:
            await conn.execute("DELETE FROM categories WHERE work_id = $1", work_id)
            await _insert_categories(conn, work_id, categories)

        unreferenced: list[str] = []
        if image and current["image"] and current["image"] != image:
            unreferenced.append(str(current["image"]))
        if intro_image and current["intro_image"] and current["intro_image"] != intro_image:
            unreferenced.append(str(current["intro_image"]))

        for changes in galleries:
            unreferenced.extend(
                await _apply_gallery_changes(
                    conn,
                    work_id,
                    changes,
                    max_images=gallery_limits[changes.kind],
                )
            )

        return unreferenced


async def delete_work(work_id: int) -> list[str] | None:
    """
    Delete a work and its children. Returns every filename the work referenced
    (main, intro, gallery images), or None when the work does not exist.
    """
    async with db.transaction() as conn:
        work = await conn.fetchrow(
            """
            SELECT id, image, intro_image
            FROM works
            WHERE id = $1
            FOR UPDATE
            """,
            work_id,
        )
        if work is None:
            return None

        large = await conn.fetch("SELECT src FROM large_images WHERE work_id = $1", work_id)
        small = await conn.fetch("SELECT src FROM small_images WHERE work_id = $1", work_id)

        await conn.execute("DELETE FROM categories WHERE work_id = $1", work_id)
        await conn.execute("DELETE FROM large_images WHERE work_id = $1", work_id)
        await conn.execute("DELETE FROM small_images WHERE work_id = $1", work_id)
        await conn.execute("DELETE FROM works WHERE id = $1", work_id)

    filenames = [work["image"], work["intro_image"]]
    filenames.extend(r["src"] for r in large)
    filenames.extend(r["src"] for r in small)
    return [str(name) for name in filenames if name]


async def reorder_works(items: list[tuple[int, int]]) -> None:
    """
    Set sort_order for each (work_id, order) pair. All or nothing.
    """
    async with db.transaction() as conn:
        for work_id, order in items:
            row = await conn.fetchrow(
                """
                UPDATE works
                SET sort_order = $2,
                    updated_at = now()
                WHERE id = $1
                RETURNING id
                """,
                work_id,
                order,
            )
            if row is None:
                raise WorkNotFoundError(work_id)
