"""Celery tasks for transcoding.

A worker process opens its own application context per task, so no database
engine or configuration is shared with the web process.
"""

import asyncio
import logging
from typing import Any

from celery import Task

from app.core.celery_app import celery_app
from app.core.config import get_settings
from app.core.logging import log_error, log_info
from app.modules.transcoding.orchestrator import TranscodeRequest
from app.modules.video.models import VideoStatus
from app.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)


class TranscodeTask(Task):
    """Base task for transcoding operations. Failed transcodes are not retried."""

    abstract = True
    max_retries = 0

    def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        payload = args[0] if args else kwargs.get("payload", {})
        log_error(
            logger,
            "Transcode task failed",
            exception=exc,
            task_id=task_id,
            video_id=payload.get("video_id"),
        )


@celery_app.task(bind=True, base=TranscodeTask, name="transcoding.transcode_video")
def transcode_video_task(self: TranscodeTask, payload: dict) -> dict:
    """Run the orchestrator for one uploaded video.

    Args:
        payload: ``TranscodeRequest.to_payload()``

    Returns:
        dict: Orchestration summary
    """
    return asyncio.run(_transcode_video_async(TranscodeRequest.from_payload(payload)))


async def _transcode_video_async(request: TranscodeRequest) -> dict:
    """Async implementation of the transcode task."""
    from app.core.context import AppContext

    context = AppContext.from_settings(get_settings())
    await context.startup()
    try:
        async with context.database.session() as session:
            video = await VideoRepository(session).get_owned(request.video_id, request.owner_id)

        # acks_late can redeliver a task whose orchestration already finished.
        if video is None or video.status != VideoStatus.PROCESSING.value:
            log_info(
                logger,
                "Skipping transcode for video not in processing state",
                video_id=str(request.video_id),
                status=video.status if video else None,
            )
            return {"success": False, "skipped": True, "video_id": str(request.video_id)}

        result = await context.build_orchestrator().run(request)
        return {
            "success": result.status == VideoStatus.READY,
            "skipped": False,
            "video_id": str(request.video_id),
            "status": result.status.value,
            "applied": result.applied,
            "failed_profiles": result.failed_profiles,
        }
    finally:
        await context.shutdown()
