"""
Work business logic.

Orchestrates image files on disk and rows in Postgres:
- uploads are written first, then rows are written in one transaction
- if the transaction fails, the freshly written files are removed again
- files that rows no longer reference are removed only after commit
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from fastapi import HTTPException, UploadFile
from pydantic import TypeAdapter, ValidationError

from . import repository, schemas, storage

MAX_LARGE_IMAGES = 2
MAX_SMALL_IMAGES = 8

GALLERY_LIMITS = {
    "large": MAX_LARGE_IMAGES,
    "small": MAX_SMALL_IMAGES,
}

_image_orders = TypeAdapter(list[schemas.ImageOrder])

logger = logging.getLogger(__name__)


def _to_work_response(
    row: dict[str, Any],
    *,
    categories: list[str],
    large_images: list[str],
    small_images: list[str],
) -> schemas.WorkResponse:
    return schemas.WorkResponse(
        id=int(row["id"]),
        image=row.get("image"),
        intro_image=row.get("intro_image"),
        client=row.get("client"),
        tags=row.get("tags"),
        description=row.get("description"),
        order=int(row.get("sort_order") or 0),
        categories=categories,
        large_images=large_images,
        small_images=small_images,
    )


async def _assemble(rows: list[dict[str, Any]]) -> list[schemas.WorkResponse]:
    """
    Attach categories and both galleries to each work row.
    """
    if not rows:
        return []

    work_ids = [int(r["id"]) for r in rows]
    category_rows = await repository.list_categories(work_ids)
    large_rows = await repository.list_images("large", work_ids)
    small_rows = await repository.list_images("small", work_ids)

    categories: dict[int, list[str]] = defaultdict(list)
    for r in category_rows:
        categories[int(r["work_id"])].append(str(r["category_name"]))

    large: dict[int, list[str]] = defaultdict(list)
    for r in large_rows:
        large[int(r["work_id"])].append(str(r["src"]))

    small: dict[int, list[str]] = defaultdict(list)
    for r in small_rows:
        small[int(r["work_id"])].append(str(r["src"]))

    return [
        _to_work_response(
            row,
            categories=categories[work_id],
            large_images=large[work_id],
            small_images=small[work_id],
        )
        for work_id, row in zip(work_ids, rows)
    ]


async def list_works(*, ordered: bool = True) -> list[schemas.WorkResponse]:
    rows = await repository.list_works(ordered=ordered)
    return await _assemble(rows)


async def get_work(work_id: int) -> schemas.WorkResponse:
    row = await repository.get_work(work_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Work not found")
    works = await _assemble([row])
    return works[0]


def _check_gallery_size(kind: str, count: int) -> None:
    limit = GALLERY_LIMITS[kind]
    if count > limit:
        raise HTTPException(
            status_code=400,
            detail=f"A work can have at most {limit} {kind} images.",
        )


def parse_image_orders(raw: str | None, *, field_name: str) -> list[tuple[str, int]]:
    """
    Parse a JSON form field like '[{"src": "a.png", "order": 0}, ...]'.
    """
    if raw is None or not raw.strip():
        return []
    try:
        items = _image_orders.validate_json(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {field_name}: expected a JSON list of {{src, order}} objects.",
        ) from exc
    return [(item.src, item.order) for item in items]


def _pair_orders(
    filenames: list[str],
    orders: list[int],
    *,
    field_name: str,
) -> list[tuple[str, int | None]]:
    if len(orders) > len(filenames):
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} has more entries than uploaded images.",
        )
    padded: list[int | None] = list(orders) + [None] * (len(filenames) - len(orders))
    return list(zip(filenames, padded))


def clean_categories(categories: list[str] | None, *, clear: bool = False) -> list[str] | None:
    """
    Blank entries are dropped. None means "leave the stored categories alone";
    an empty list replaces them with none. A form that only sends blank values
    (categories="") therefore clears them, as does clear=True.
    """
    if clear:
        return []
    if categories is None:
        return None
    return [name.strip() for name in categories if name and name.strip()]


async def _store(file: UploadFile | None, saved: list[str]) -> str | None:
    """
    Write one optional upload and remember its name for cleanup.
    """
    if not storage.has_file(file):
        return None
    filename = await storage.save_upload(file)
    saved.append(filename)
    return filename


async def _store_all(files: list[UploadFile], saved: list[str]) -> list[str]:
    names: list[str] = []
    for file in files:
        name = await _store(file, saved)
        if name is not None:
            names.append(name)
    return names


async def create_work(
    *,
    client: str,
    tags: str,
    description: str,
    categories: list[str],
    order: int | None,
    image: UploadFile | None,
    intro_image: UploadFile | None,
    large_images: list[UploadFile],
    small_images: list[UploadFile],
) -> int:
    categories = clean_categories(categories) or []
    large_images = [f for f in large_images if storage.has_file(f)]
    small_images = [f for f in small_images if storage.has_file(f)]
    _check_gallery_size("large", len(large_images))
    _check_gallery_size("small", len(small_images))

    saved: list[str] = []
    try:
        image_name = await _store(image, saved)
        intro_image_name = await _store(intro_image, saved)
        large_names = await _store_all(large_images, saved)
        small_names = await _store_all(small_images, saved)

        work_id = await repository.create_work(
            image=image_name,
            intro_image=intro_image_name,
            client=client,
            tags=tags,
            description=description,
            order=order,
            categories=categories,
            large_images=large_names,
            small_images=small_names,
        )
    except Exception:
        storage.delete_files(saved)
        raise

    logger.info(
        "work_created work_id=%s categories=%s large_images=%s small_images=%s",
        work_id,
        len(categories),
        len(large_names),
        len(small_names),
    )
    return work_id


async def update_work(
    work_id: int,
    *,
    client: str | None,
    tags: str | None,
    description: str | None,
    categories: list[str] | None,
    clear_categories: bool = False,
    image: UploadFile | None,
    intro_image: UploadFile | None,
    existing_large_images: str | None,
    existing_small_images: str | None,
    large_images: list[UploadFile],
    small_images: list[UploadFile],
    large_image_orders: list[int],
    small_image_orders: list[int],
    deleted_large_images: list[str],
    deleted_small_images: list[str],
) -> None:
    """
    Incremental merge: keep what is not mentioned, reorder what is listed as
    existing, add new uploads, drop what is listed as deleted.
    """
    categories = clean_categories(categories, clear=clear_categories)
    reordered_large = parse_image_orders(existing_large_images, field_name="existingLargeImages")
    reordered_small = parse_image_orders(existing_small_images, field_name="existingSmallImages")
    large_images = [f for f in large_images if storage.has_file(f)]
    small_images = [f for f in small_images if storage.has_file(f)]
    _check_gallery_size("large", len(large_images))
    _check_gallery_size("small", len(small_images))

    saved: list[str] = []
    try:
        image_name = await _store(image, saved)
        intro_image_name = await _store(intro_image, saved)
        large_added = _pair_orders(
            await _store_all(large_images, saved),
            large_image_orders,
            field_name="largeImageOrders",
        )
        small_added = _pair_orders(
            await _store_all(small_images, saved),
            small_image_orders,
            field_name="smallImageOrders",
        )

        galleries = [
            repository.GalleryChanges(
                kind="large",
                reordered=reordered_large,
                added=large_added,
                deleted=list(deleted_large_images),
            ),
            repository.GalleryChanges(
                kind="small",
                reordered=reordered_small,
                added=small_added,
                deleted=list(deleted_small_images),
            ),
        ]

        try:
            unreferenced = await repository.update_work(
                work_id,
                client=client,
                tags=tags,
                description=description,
                image=image_name,
                intro_image=intro_image_name,
                categories=categories,
                galleries=galleries,
                gallery_limits=GALLERY_LIMITS,
            )
        except repository.GalleryFullError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        if unreferenced is None:
            raise HTTPException(status_code=404, detail="Work not found")
    except Exception:
        storage.delete_files(saved)
        raise

    removed = storage.delete_files(unreferenced)
    logger.info(
        "work_updated work_id=%s new_files=%s removed_files=%s",
        work_id,
        len(saved),
        removed,
    )


async def delete_work(work_id: int) -> None:
    filenames = await repository.delete_work(work_id)
    if filenames is None:
        raise HTTPException(status_code=404, detail="Work not found")

    removed = storage.delete_files(filenames)
    logger.info("work_deleted work_id=%s removed_files=%s", work_id, removed)


async def reorder_works(items: list[schemas.ReorderItem]) -> None:
    if not items:
        raise HTTPException(status_code=400, detail="Reorder list is empty.")

    try:
        await repository.reorder_works([(item.id, item.order) for item in items])
    except repository.WorkNotFoundError as exc:
        logger.info("work_reorder_rolled_back missing_work_id=%s", exc.work_id)
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    logger.info("works_reordered count=%s", len(items))
