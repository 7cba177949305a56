"""Video service: upload intake, owner-scoped catalog reads, rendition lookup."""

import asyncio
import logging
import os
import uuid
from typing import BinaryIO, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_correlation_id, log_error, log_info, log_warning
from app.core.metrics import UPLOAD_BYTES_TOTAL, UPLOADS_TOTAL
from app.core.storage import LocalStorage
from app.modules.transcoding.dispatch import TranscodeDispatcher
from app.modules.transcoding.orchestrator import TranscodeRequest
from app.modules.video.models import Video, VideoStatus
from app.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)


class VideoServiceError(Exception):
    """Base exception for video service errors."""

    pass


class VideoNotFoundError(VideoServiceError):
    """Video is absent, owned by someone else, or not servable."""

    pass


class InvalidUploadError(VideoServiceError):
    """Upload request is missing data or was rejected."""

    pass


class CatalogError(VideoServiceError):
    """Catalog could not be written."""

    pass


class StorageError(VideoServiceError):
    """Uploaded file could not be persisted."""

    pass


class DispatchError(VideoServiceError):
    """Transcoding could not be scheduled."""

    pass


def parse_video_id(value: str | uuid.UUID) -> uuid.UUID:
    """Parse a client-supplied video ID; malformed IDs are simply not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        raise VideoNotFoundError("Video not found")


class VideoService:
    """Service for video upload and playback lookups."""

    def __init__(
        self,
        session: AsyncSession,
        storage: LocalStorage,
        dispatcher: TranscodeDispatcher,
        max_upload_size: Optional[int] = None,
        video_repo: Optional[VideoRepository] = None,
    ):
        self.session = session
        self.storage = storage
        self.dispatcher = dispatcher
        self.max_upload_size = max_upload_size
        self.video_repo = video_repo or VideoRepository(session)

    async def upload(
        self,
        owner_id: uuid.UUID,
        title: Optional[str],
        fileobj: Optional[BinaryIO],
        filename: Optional[str],
    ) -> Video:
        """Store an upload, create its catalog row and schedule transcoding.

        Returns as soon as the orchestration is submitted; the returned video
        is still ``processing``.

        Args:
            owner_id: Uploading user
            title: Video title
            fileobj: Uploaded file contents
            filename: Client-side filename

        Returns:
            Video: Created video

        Raises:
            InvalidUploadError: Missing title/file, empty or oversized file
            StorageError: File could not be written
            CatalogError: Row could not be created
            DispatchError: Transcoding could not be scheduled
        """
        title = (title or "").strip()
        if not title or fileobj is None or not filename:
            UPLOADS_TOTAL.labels(outcome="rejected").inc()
            raise InvalidUploadError("Title and video file are required")

        stored = await asyncio.to_thread(
            self.storage.save_upload, fileobj, filename, self.max_upload_size
        )
        if not stored.success:
            if stored.rejected:
                UPLOADS_TOTAL.labels(outcome="rejected").inc()
                raise InvalidUploadError(stored.error_message or "Upload rejected")
            UPLOADS_TOTAL.labels(outcome="error").inc()
            log_error(logger, "Failed to store upload", key=stored.key, error=stored.error_message)
            raise StorageError("Could not store uploaded file")

        if stored.file_size == 0:
            self.storage.delete(stored.path)
            UPLOADS_TOTAL.labels(outcome="rejected").inc()
            raise InvalidUploadError("Uploaded file is empty")

        try:
            video = await self.video_repo.create(
                owner_id=owner_id,
                title=title,
                raw_path=stored.path,
                raw_size=stored.file_size,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.storage.delete(stored.path)
            UPLOADS_TOTAL.labels(outcome="error").inc()
            log_error(logger, "Failed to create video", exception=e, owner_id=str(owner_id))
            raise CatalogError("Could not save video") from e

        UPLOADS_TOTAL.labels(outcome="accepted").inc()
        UPLOAD_BYTES_TOTAL.inc(stored.file_size)
        log_info(
            logger,
            "Video uploaded",
            video_id=str(video.id),
            owner_id=str(owner_id),
            size=stored.file_size,
        )

        request = TranscodeRequest(
            video_id=video.id,
            owner_id=owner_id,
            raw_path=stored.path,
            correlation_id=get_correlation_id(),
        )
        try:
            self.dispatcher.submit(request)
        except Exception as e:
            log_error(logger, "Failed to schedule transcoding", exception=e, video_id=str(video.id))
            await self._mark_unschedulable(video)
            raise DispatchError("Could not schedule transcoding") from e

        return video

    async def _mark_unschedulable(self, video: Video) -> None:
        """Fail a video whose orchestration never started."""
        try:
            await self.video_repo.finalize_status(
                video.id,
                video.owner_id,
                VideoStatus.FAILED,
                {},
                "Transcoding could not be scheduled",
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            log_warning(logger, "Could not mark video failed", video_id=str(video.id), error=str(e))

    async def list_videos(self, owner_id: uuid.UUID) -> list[Video]:
        """Videos owned by ``owner_id``, newest first."""
        try:
            return await self.video_repo.list_by_owner(owner_id)
        except SQLAlchemyError as e:
            log_error(logger, "Failed to list videos", exception=e, owner_id=str(owner_id))
            raise CatalogError("Could not read videos") from e

    async def get_video(self, video_id: str | uuid.UUID, owner_id: uuid.UUID) -> Video:
        """Owner-scoped lookup.

        Raises:
            VideoNotFoundError: If absent, malformed, or owned by someone else
        """
        vid = parse_video_id(video_id)
        try:
            video = await self.video_repo.get_owned(vid, owner_id)
        except SQLAlchemyError as e:
            log_error(logger, "Failed to read video", exception=e, video_id=str(vid))
            raise CatalogError("Could not read video") from e

        if video is None:
            raise VideoNotFoundError("Video not found")
        return video

    async def resolve_rendition(
        self,
        video_id: str | uuid.UUID,
        owner_id: uuid.UUID,
        quality: str,
    ) -> str:
        """Filesystem path of a streamable rendition.

        Raises:
            VideoNotFoundError: If the video or the rendition cannot be served
        """
        video = await self.get_video(video_id, owner_id)

        path = video.rendition_path(quality)
        if not path or not os.path.isfile(path):
            raise VideoNotFoundError("Video not found")
        return path
