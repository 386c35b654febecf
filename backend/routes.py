"""
HTTP routes for the founders API.

Handlers are plain ``def`` functions so FastAPI runs them on its threadpool;
the record and blob stores do blocking I/O.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from backend.db import FounderFields, FounderRecord
from backend.dependencies import get_lifecycle_service
from backend.lifecycle import FounderLifecycleService, ImageUpload
from backend.schemas import ErrorResponse, FounderResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _to_upload(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    # An empty file input still arrives as a part with no filename.
    if image is None or not image.filename:
        return None
    return ImageUpload(
        data=image.file.read(),
        filename=image.filename,
        content_type=image.content_type,
    )


def _to_response(record: FounderRecord) -> FounderResponse:
    return FounderResponse(**record.as_dict())


@router.get("/founders", response_model=list[FounderResponse], responses=_ERRORS)
def list_founders(
    service: FounderLifecycleService = Depends(get_lifecycle_service),
):
    return [_to_response(record) for record in service.list_founders()]


@router.get(
    "/founders/{founder_id}", response_model=FounderResponse, responses=_ERRORS
)
def get_founder(
    founder_id: int,
    service: FounderLifecycleService = Depends(get_lifecycle_service),
):
    return _to_response(service.get_founder(founder_id))


@router.post("/founders", response_model=FounderResponse, responses=_ERRORS)
def create_founder(
    # Missing fields default to "" so they surface as 400, not 422.
    name: str = Form(""),
    about: str = Form(""),
    description: str = Form(""),
    image: Optional[UploadFile] = File(None),
    service: FounderLifecycleService = Depends(get_lifecycle_service),
):
    record = service.create_founder(
        FounderFields(name=name, about=about, description=description),
        _to_upload(image),
    )
    return _to_response(record)


@router.put(
    "/founders/{founder_id}", response_model=MessageResponse, responses=_ERRORS
)
def update_founder(
    founder_id: int,
    name: str = Form(""),
    about: str = Form(""),
    description: str = Form(""),
    image: Optional[UploadFile] = File(None),
    service: FounderLifecycleService = Depends(get_lifecycle_service),
):
    service.update_founder(
        founder_id,
        FounderFields(name=name, about=about, description=description),
        _to_upload(image),
    )
    return MessageResponse(message="Founder updated successfully")


@router.delete(
    "/founders/{founder_id}", response_model=MessageResponse, responses=_ERRORS
)
def delete_founder(
    founder_id: int,
    service: FounderLifecycleService = Depends(get_lifecycle_service),
):
    service.delete_founder(founder_id)
    return MessageResponse(message="Founder deleted successfully")
