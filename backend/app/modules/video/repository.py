"""Video catalog repository.

Every lookup is scoped by ``(video_id, owner_id)``. Status writes are single
conditional UPDATE statements guarded on ``status = 'processing'`` so terminal
states are never overwritten.
"""

import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from app.modules.video.models import Video, VideoStatus

if TYPE_CHECKING:
    from app.core.database import Database


class VideoRepository:
    """Repository for Video CRUD operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        owner_id: uuid.UUID,
        title: str,
        raw_path: str,
        raw_size: Optional[int] = None,
    ) -> Video:
        """Create a video in the ``processing`` state.

        Args:
            owner_id: Owning user UUID
            title: Video title
            raw_path: Location of the stored upload
            raw_size: Size of the upload in bytes

        Returns:
            Video: Created video instance
        """
        video = Video(
            owner_id=owner_id,
            title=title,
            raw_path=raw_path,
            raw_size=raw_size,
            status=VideoStatus.PROCESSING.value,
            variant_paths={},
        )
        self.session.add(video)
        await self.session.flush()
        return video

    async def get_owned(
        self, video_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Optional[Video]:
        """Get a video only if ``owner_id`` owns it.

        Returns:
            Optional[Video]: Video if found and owned, None otherwise
        """
        result = await self.session.execute(
            select(Video).where(Video.id == video_id, Video.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def list_by_owner(
        self,
        owner_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Video]:
        """Get videos owned by a user, newest first."""
        result = await self.session.execute(
            select(Video)
            .where(Video.owner_id == owner_id)
            .order_by(Video.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def finalize_status(
        self,
        video_id: uuid.UUID,
        owner_id: uuid.UUID,
        status: VideoStatus,
        variant_paths: dict[str, str],
        error_message: Optional[str] = None,
    ) -> bool:
        """Atomically move a ``processing`` video to a terminal status.

        Returns:
            bool: True if exactly one row changed
        """
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")

        result = await self.session.execute(
            update(Video)
            .where(
                Video.id == video_id,
                Video.owner_id == owner_id,
                Video.status == VideoStatus.PROCESSING.value,
            )
            .values(
                status=status.value,
                variant_paths=dict(variant_paths),
                error_message=error_message,
                processed_at=func.now(),
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SqlVideoCatalog:
    """Catalog adapter for the orchestrator; one short transaction per write."""

    def __init__(self, database: "Database"):
        self.database = database

    async def finalize(
        self,
        video_id: uuid.UUID,
        owner_id: uuid.UUID,
        status: VideoStatus,
        variant_paths: dict[str, str],
        error_message: Optional[str] = None,
    ) -> bool:
        async with self.database.session() as session:
            applied = await VideoRepository(session).finalize_status(
                video_id, owner_id, status, variant_paths, error_message
            )
            await session.commit()
            return applied
