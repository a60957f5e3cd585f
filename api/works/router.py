"""
Work API endpoints. Mounted under /work.

Reads are public; every mutating route needs a bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter()


@router.post("/create", response_model=schemas.WorkCreatedResponse)
async def create_work(
    client: str = Form(""),
    tags: str = Form(""),
    description: str = Form(""),
    categories: list[str] = Form(default=[]),
    order: int | None = Form(default=None),
    image: UploadFile | None = File(default=None),
    intro_image: UploadFile | None = File(default=None, alias="introImage"),
    large_images: list[UploadFile] = File(default=[], alias="largeImages"),
    small_images: list[UploadFile] = File(default=[], alias="smallImages"),
    _: dict = Depends(auth_dependencies.get_token_claims),
) -> schemas.WorkCreatedResponse:
    work_id = await service.create_work(
        client=client,
        tags=tags,
        description=description,
        categories=categories,
        order=order,
        image=image,
        intro_image=intro_image,
        large_images=large_images,
        small_images=small_images,
    )
    return schemas.WorkCreatedResponse(work_id=work_id)


@router.get("/get/all", response_model=list[schemas.WorkResponse])
async def list_works(
    ordered: bool = Query(default=True),
) -> list[schemas.WorkResponse]:
    return await service.list_works(ordered=ordered)


@router.get("/get/{work_id}", response_model=schemas.WorkResponse)
async def get_work(work_id: int) -> schemas.WorkResponse:
    return await service.get_work(work_id)


@router.put("/edit/{work_id}", response_model=schemas.MessageResponse)
@router.put("/update/{work_id}", response_model=schemas.MessageResponse)
async def update_work(
    work_id: int,
    client: str | None = Form(default=None),
    tags: str | None = Form(default=None),
    description: str | None = Form(default=None),
    categories: list[str] | None = Form(default=None),
    clear_categories: bool = Form(default=False, alias="clearCategories"),
    image: UploadFile | None = File(default=None),
    intro_image: UploadFile | None = File(default=None, alias="introImage"),
    existing_large_images: str | None = Form(default=None, alias="existingLargeImages"),
    existing_small_images: str | None = Form(default=None, alias="existingSmallImages"),
    large_images: list[UploadFile] = File(default=[], alias="largeImages"),
    small_images: list[UploadFile] = File(default=[], alias="smallImages"),
    large_image_orders: list[int] = Form(default=[], alias="largeImageOrders"),
    small_image_orders: list[int] = Form(default=[], alias="smallImageOrders"),
    deleted_large_images: list[str] = Form(default=[], alias="deletedLargeImages"),
    deleted_small_images: list[str] = Form(default=[], alias="deletedSmallImages"),
    _: dict = Depends(auth_dependencies.get_token_claims),
) -> schemas.MessageResponse:
    await service.update_work(
        work_id,
        client=client,
        tags=tags,
        description=description,
        categories=categories,
        clear_categories=clear_categories,
        image=image,
        intro_image=intro_image,
        existing_large_images=existing_large_images,
        existing_small_images=existing_small_images,
        large_images=large_images,
        small_images=small_images,
        large_image_orders=large_image_orders,
        small_image_orders=small_image_orders,
        deleted_large_images=deleted_large_images,
        deleted_small_images=deleted_small_images,
    )
    return schemas.MessageResponse(message="Work updated successfully")


@router.put("/reorder", response_model=schemas.MessageResponse)
async def reorder_works(
    items: list[schemas.ReorderItem],
    _: dict = Depends(auth_dependencies.get_token_claims),
) -> schemas.MessageResponse:
    await service.reorder_works(items)
    return schemas.MessageResponse(message="Works reordered successfully")


@router.delete("/delete/{work_id}", response_model=schemas.MessageResponse)
async def delete_work(
    work_id: int,
    _: dict = Depends(auth_dependencies.get_token_claims),
) -> schemas.MessageResponse:
    await service.delete_work(work_id)
    return schemas.MessageResponse(message="Work deleted successfully")
