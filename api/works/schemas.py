"""
Pydantic schemas for work endpoints.

JSON keys follow the frontend's camelCase (introImage, largeImages, ...).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ReorderItem(BaseModel):
    id: int
    order: int


class ImageOrder(BaseModel):
    """
    A gallery image that is kept on update, with its new position.
    """

    src: str = Field(..., min_length=1, max_length=255)
    order: int


class WorkResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    image: str | None = None
    intro_image: str | None = Field(default=None, alias="introImage")
    client: str | None = None
    tags: str | None = None
    description: str | None = None
    order: int = 0
    categories: list[str] = Field(default_factory=list)
    large_images: list[str] = Field(default_factory=list, alias="largeImages")
    small_images: list[str] = Field(default_factory=list, alias="smallImages")


class WorkCreatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Work added successfully"
    work_id: int = Field(..., alias="workId")


class MessageResponse(BaseModel):
    message: str
