"""Upload and per-image endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, File, Form, Request, Response, UploadFile, status

from home_scan.api.models import RelateRequest, RemovalResponse, UploadResponse
from home_scan.domain.errors import ValidationFailedError
from home_scan.domain.sessions import Image

if TYPE_CHECKING:
    from home_scan.containers import AppContainer

router = APIRouter(tags=["images"])


@router.post(
    "/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED
)
async def upload_image(
    request: Request,
    file: UploadFile | None = File(default=None),
    session_id: str | None = Form(default=None, alias="sessionId"),
    parent_image_id: str | None = Form(default=None, alias="parentImageId"),
) -> UploadResponse:
    """Store an uploaded photo as a pending image."""
    if not session_id:
        raise ValidationFailedError("Session ID is required")
    if file is None:
        raise ValidationFailedError("No file provided")
    container: AppContainer = request.app.state.container
    result = await container.image_service.upload(
        session_id,
        filename=file.filename or "upload",
        content_type=file.content_type,
        data=await file.read(),
        parent_image_id=parent_image_id,
    )
    return UploadResponse(
        image_id=result.image_id,
        thumbnail_url=result.thumbnail_url,
        original_url=result.original_url,
    )


@router.get("/images/{session_id}/{image_id}")
async def get_original(session_id: str, image_id: str, request: Request) -> Response:
    """Return the processed original JPEG."""
    container: AppContainer = request.app.state.container
    data = await container.image_service.read_original(session_id, image_id)
    return _jpeg(data)


@router.get("/images/{session_id}/{image_id}/thumbnail")
async def get_thumbnail(session_id: str, image_id: str, request: Request) -> Response:
    """Return the thumbnail JPEG."""
    container: AppContainer = request.app.state.container
    data = await container.image_service.read_thumbnail(session_id, image_id)
    return _jpeg(data)


@router.post("/images/{session_id}/{image_id}/relate", response_model=Image)
async def relate_image(
    session_id: str, image_id: str, body: RelateRequest, request: Request
) -> Image:
    """Make the image a related close-up of another primary image."""
    container: AppContainer = request.app.state.container
    return container.image_service.relate(
        session_id, image_id, body.parent_image_id or ""
    )


@router.post("/images/{session_id}/{image_id}/analyze", response_model=Image)
async def analyze_single_image(
    session_id: str, image_id: str, request: Request
) -> Image:
    """Run and store a language model analysis of one image."""
    container: AppContainer = request.app.state.container
    return await container.coordinator.analyze_image(session_id, image_id)


@router.delete("/images/{session_id}/{image_id}", response_model=RemovalResponse)
async def delete_image(
    session_id: str, image_id: str, request: Request
) -> RemovalResponse:
    """Delete an image together with its related images."""
    container: AppContainer = request.app.state.container
    result = await container.image_service.remove(session_id, image_id)
    return RemovalResponse(
        removed_image_ids=result.removed_image_ids,
        remaining_images=result.remaining_images,
    )


def _jpeg(data: bytes) -> Response:
    return Response(
        content=data,
        media_type="image/jpeg",
        headers={"Cache-Control": "private, max-age=3600"},
    )
