"""Video router: upload, listing and range streaming."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.metrics import STREAM_RESPONSES_TOTAL
from app.modules.auth.jwt import get_current_user_id
from app.modules.video.schemas import UploadResponse, VideoDetail, VideoSummary
from app.modules.video.service import (
    CatalogError,
    DispatchError,
    InvalidUploadError,
    StorageError,
    VideoNotFoundError,
    VideoService,
)
from app.modules.video.streaming import RangeNotSatisfiableError, build_stream_response

router = APIRouter(prefix="/videos", tags=["videos"])

NOT_FOUND_DETAIL = "Video not found"


def get_video_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> VideoService:
    context = request.app.state.context
    return VideoService(
        db,
        storage=context.storage,
        dispatcher=context.dispatcher,
        max_upload_size=context.settings.MAX_UPLOAD_SIZE,
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)


@router.get("", response_model=list[VideoSummary])
async def list_videos(
    owner_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
) -> list[VideoSummary]:
    """List the caller's videos, newest first."""
    try:
        videos = await service.list_videos(owner_id)
    except CatalogError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return [VideoSummary.from_video(v) for v in videos]


@router.post("/upload", response_model=UploadResponse)
async def upload_video(
    title: Optional[str] = Form(None),
    video: Optional[UploadFile] = File(None),
    owner_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
) -> UploadResponse:
    """Accept a multipart upload and schedule transcoding.

    Responds as soon as the file is stored; transcoding continues in the
    background and the video stays ``processing`` until it finishes.
    """
    try:
        created = await service.upload(
            owner_id=owner_id,
            title=title,
            fileobj=video.file if video is not None else None,
            filename=video.filename if video is not None else None,
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (StorageError, CatalogError, DispatchError) as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    finally:
        if video is not None:
            await video.close()

    return UploadResponse(
        message="Video uploaded, processing started",
        video_id=created.id,
        status=created.status,
    )


@router.get("/stream/{video_id}/{quality}")
async def stream_video(
    video_id: str,
    quality: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    owner_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
) -> StreamingResponse:
    """Stream a rendition, honouring a single ``Range`` request."""
    try:
        path = await service.resolve_rendition(video_id, owner_id, quality)
        response = build_stream_response(path, range_header)
    except (VideoNotFoundError, FileNotFoundError):
        STREAM_RESPONSES_TOTAL.labels(status_code="404").inc()
        raise _not_found()
    except RangeNotSatisfiableError as e:
        STREAM_RESPONSES_TOTAL.labels(status_code="416").inc()
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail=e.reason,
            headers={"Content-Range": e.content_range},
        )
    except CatalogError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    STREAM_RESPONSES_TOTAL.labels(status_code=str(response.status_code)).inc()
    return response


@router.get("/{video_id}", response_model=VideoDetail)
async def get_video(
    video_id: str,
    owner_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
) -> VideoDetail:
    """Get one of the caller's videos."""
    try:
        video = await service.get_video(video_id, owner_id)
    except VideoNotFoundError:
        raise _not_found()
    except CatalogError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return VideoDetail.from_video(video)
