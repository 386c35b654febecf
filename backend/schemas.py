"""
Pydantic schemas for the founders API.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class FounderResponse(BaseModel):
    id: int
    name: str
    about: str
    description: str
    # Serialized as image_url; imageUrl is accepted on input.
    image_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("image_url", "imageUrl")
    )


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
