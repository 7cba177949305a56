"""Executors that run transcode orchestrations outside the request lifecycle."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from app.core.logging import log_error, log_info
from app.modules.transcoding.orchestrator import (
    OrchestrationResult,
    TranscodeOrchestrator,
    TranscodeRequest,
)

logger = logging.getLogger(__name__)


class TranscodeDispatcher(ABC):
    """Accepts transcode work and runs it independently of the caller."""

    @abstractmethod
    def submit(self, request: TranscodeRequest) -> None:
        """Schedule one orchestration run. Must not block."""

    async def shutdown(self) -> None:
        """Release resources; called once at application shutdown."""


class InProcessTranscodeDispatcher(TranscodeDispatcher):
    """Runs orchestrations as asyncio tasks on the server's event loop.

    Running tasks are tracked until they finish, and ``shutdown`` waits for
    them: a started orchestration always reaches its catalog write.
    """

    def __init__(self, orchestrator: TranscodeOrchestrator):
        self.orchestrator = orchestrator
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, request: TranscodeRequest) -> None:
        task = asyncio.get_running_loop().create_task(
            self._execute(request),
            name=f"transcode-{request.video_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log_info(logger, "Transcode submitted", video_id=str(request.video_id), executor="inprocess")

    async def _execute(self, request: TranscodeRequest) -> Optional[OrchestrationResult]:
        try:
            return await self.orchestrator.run(request)
        except Exception as e:
            log_error(
                logger,
                "Transcode orchestration aborted",
                exception=e,
                video_id=str(request.video_id),
            )
            return None

    async def join(self) -> None:
        """Wait until every submitted orchestration has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def shutdown(self) -> None:
        if self._tasks:
            log_info(logger, "Waiting for running transcodes", pending=len(self._tasks))
        await self.join()


class CeleryTranscodeDispatcher(TranscodeDispatcher):
    """Enqueues orchestrations on the Celery broker."""

    def submit(self, request: TranscodeRequest) -> None:
        from app.modules.transcoding.tasks import transcode_video_task

        async_result = transcode_video_task.delay(request.to_payload())
        log_info(
            logger,
            "Transcode submitted",
            video_id=str(request.video_id),
            executor="celery",
            task_id=async_result.id,
        )
