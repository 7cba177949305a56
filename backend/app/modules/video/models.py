"""Video catalog model.

A ``Video`` row records ownership, lifecycle status, and where the raw upload
and its transcoded renditions live on disk.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.core.database import Base


class VideoStatus(str, Enum):
    """Lifecycle status of an uploaded video.

    ``processing`` is the only non-terminal state; it moves once to either
    ``ready`` or ``failed``.
    """

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not VideoStatus.PROCESSING


# Quality names that address the raw upload instead of a rendition.
ORIGINAL_QUALITY_ALIASES = frozenset({"original", "raw"})


class Video(Base):
    """Uploaded video and its renditions."""

    __tablename__ = "videos"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VideoStatus.PROCESSING.value, index=True
    )

    raw_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    raw_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    # profile name -> rendition path, written together with the terminal status
    variant_paths: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def is_ready(self) -> bool:
        return self.status == VideoStatus.READY.value

    def rendition_path(self, quality: str) -> Optional[str]:
        """Path for ``quality``, or None when it is not servable.

        The original upload is always addressable; named renditions only once
        the video is ``ready``.
        """
        if quality in ORIGINAL_QUALITY_ALIASES:
            return self.raw_path
        if not self.is_ready():
            return None
        return (self.variant_paths or {}).get(quality)

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, title={self.title}, status={self.status})>"
