"""Application context.

Everything that used to be process-global (database pool, storage root,
quality profiles, transcode executor) is built here from ``Settings`` and
handed to components explicitly. The web app opens one context in its
lifespan; each Celery task opens its own.
"""

from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings
from app.core.database import Database
from app.core.storage import LocalStorage
from app.modules.transcoding.dispatch import (
    CeleryTranscodeDispatcher,
    InProcessTranscodeDispatcher,
    TranscodeDispatcher,
)
from app.modules.transcoding.ffmpeg import FFmpegTranscoder, TranscodeEngine
from app.modules.transcoding.orchestrator import TranscodeOrchestrator, VideoCatalog
from app.modules.transcoding.profiles import QualityProfile, parse_quality_profiles
from app.modules.video.repository import SqlVideoCatalog


@dataclass
class AppContext:
    """Explicitly constructed dependencies shared by request handlers."""

    settings: Settings
    database: Database
    storage: LocalStorage
    profiles: tuple[QualityProfile, ...]
    engine: TranscodeEngine
    dispatcher: Optional[TranscodeDispatcher] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        engine: Optional[TranscodeEngine] = None,
        database: Optional[Database] = None,
    ) -> "AppContext":
        context = cls(
            settings=settings,
            database=database or Database(
                settings.DATABASE_URL,
                pool_size=settings.DATABASE_POOL_SIZE,
                echo=settings.DATABASE_ECHO,
            ),
            storage=LocalStorage(settings.CONTENT_ROOT),
            profiles=parse_quality_profiles(settings.TRANSCODE_PROFILES),
            engine=engine or FFmpegTranscoder(settings.FFMPEG_PATH),
        )
        if settings.TRANSCODE_EXECUTOR == "celery":
            context.dispatcher = CeleryTranscodeDispatcher()
        else:
            context.dispatcher = InProcessTranscodeDispatcher(context.build_orchestrator())
        return context

    def build_orchestrator(self, catalog: Optional[VideoCatalog] = None) -> TranscodeOrchestrator:
        return TranscodeOrchestrator(
            engine=self.engine,
            catalog=catalog or SqlVideoCatalog(self.database),
            storage=self.storage,
            profiles=self.profiles,
            output_extension=self.settings.TRANSCODE_OUTPUT_EXTENSION,
            task_timeout=self.settings.TRANSCODE_TASK_TIMEOUT_SECONDS,
        )

    async def startup(self) -> None:
        self.storage.ensure_root()
        self.database.connect()

    async def shutdown(self) -> None:
        # Running orchestrations still need the database for their final write.
        if self.dispatcher is not None:
            await self.dispatcher.shutdown()
        await self.database.dispose()
