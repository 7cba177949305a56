"""Pydantic schemas for video API."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.modules.video.models import Video


class VideoSummary(BaseModel):
    """Catalog entry as listed to its owner."""

    video_id: uuid.UUID
    title: str
    status: str

    @classmethod
    def from_video(cls, video: Video) -> "VideoSummary":
        return cls(video_id=video.id, title=video.title, status=video.status)


class VideoDetail(VideoSummary):
    """Single video with the qualities that can currently be streamed."""

    qualities: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_video(cls, video: Video) -> "VideoDetail":
        qualities = ["original"]
        if video.is_ready():
            qualities.extend(sorted(video.variant_paths or {}))
        return cls(
            video_id=video.id,
            title=video.title,
            status=video.status,
            qualities=qualities,
            created_at=video.created_at,
            processed_at=video.processed_at,
        )


class UploadResponse(BaseModel):
    """Returned as soon as the upload is stored and transcoding is scheduled."""

    message: str
    video_id: uuid.UUID
    status: str

