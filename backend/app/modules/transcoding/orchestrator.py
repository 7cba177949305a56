"""Transcode orchestration: one task per quality profile, one catalog write.

The orchestrator starts every profile's transcode concurrently, waits for all
of them to reach a terminal outcome, and only then writes the aggregate status
to the catalog. A single failed profile makes the whole video ``failed``;
renditions that did succeed are left on disk.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

from app.core.logging import log_error, log_info, log_warning, set_correlation_id
from app.core.metrics import (
    ORCHESTRATIONS_IN_PROGRESS,
    ORCHESTRATIONS_TOTAL,
    TRANSCODE_TASK_DURATION_SECONDS,
    TRANSCODE_TASKS_TOTAL,
)
from app.core.storage import LocalStorage
from app.modules.transcoding.ffmpeg import (
    FFmpegConfig,
    TranscodeEngine,
    TranscodeTaskError,
)
from app.modules.transcoding.profiles import QualityProfile
from app.modules.video.models import VideoStatus

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_CHARS = 4000


class VideoCatalog(Protocol):
    """The catalog operations the orchestrator needs."""

    async def finalize(
        self,
        video_id: uuid.UUID,
        owner_id: uuid.UUID,
        status: VideoStatus,
        variant_paths: dict[str, str],
        error_message: Optional[str] = None,
    ) -> bool:
        """Move a ``processing`` video to a terminal status.

        Returns False when the row was not in ``processing`` (already final,
        absent, or owned by someone else).
        """
        ...


@dataclass(frozen=True)
class TranscodeRequest:
    """Unit of work submitted after a successful upload."""

    video_id: uuid.UUID
    owner_id: uuid.UUID
    raw_path: str
    correlation_id: Optional[str] = None

    def to_payload(self) -> dict:
        """JSON-safe form for task queues."""
        return {
            "video_id": str(self.video_id),
            "owner_id": str(self.owner_id),
            "raw_path": self.raw_path,
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "TranscodeRequest":
        return cls(
            video_id=uuid.UUID(payload["video_id"]),
            owner_id=uuid.UUID(payload["owner_id"]),
            raw_path=payload["raw_path"],
            correlation_id=payload.get("correlation_id"),
        )


@dataclass
class ProfileOutcome:
    """Terminal outcome of one profile's transcode task."""

    profile: str
    output_path: str
    success: bool
    error_message: Optional[str] = None
    duration_seconds: float = 0.0


@dataclass
class OrchestrationResult:
    """Aggregate outcome of one orchestration run."""

    video_id: uuid.UUID
    owner_id: uuid.UUID
    status: VideoStatus
    outcomes: list[ProfileOutcome] = field(default_factory=list)
    applied: bool = False
    error_message: Optional[str] = None

    @property
    def variant_paths(self) -> dict[str, str]:
        return {o.profile: o.output_path for o in self.outcomes if o.success}

    @property
    def failed_profiles(self) -> list[str]:
        return [o.profile for o in self.outcomes if not o.success]


def aggregate_status(outcomes: list[ProfileOutcome]) -> VideoStatus:
    """``ready`` only when there is at least one outcome and all succeeded."""
    if outcomes and all(o.success for o in outcomes):
        return VideoStatus.READY
    return VideoStatus.FAILED


def summarize_failures(outcomes: list[ProfileOutcome]) -> Optional[str]:
    failures = [f"{o.profile}: {o.error_message}" for o in outcomes if not o.success]
    if not failures:
        return None
    return "; ".join(failures)[:MAX_ERROR_MESSAGE_CHARS]


class TranscodeOrchestrator:
    """Fans a raw upload out to every quality profile and fans the results in."""

    def __init__(
        self,
        engine: TranscodeEngine,
        catalog: VideoCatalog,
        storage: LocalStorage,
        profiles: tuple[QualityProfile, ...],
        output_extension: str = "mp4",
        task_timeout: Optional[float] = None,
    ):
        if not profiles:
            raise ValueError("At least one quality profile is required")
        self.engine = engine
        self.catalog = catalog
        self.storage = storage
        self.profiles = tuple(profiles)
        self.output_extension = output_extension
        self.task_timeout = task_timeout

    async def run(self, request: TranscodeRequest) -> OrchestrationResult:
        """Transcode every profile and commit the aggregate status once.

        Transcode failures never escape; they become ``failed``. Only a
        catalog failure at the final write propagates.
        """
        if request.correlation_id:
            set_correlation_id(request.correlation_id)

        ORCHESTRATIONS_IN_PROGRESS.inc()
        try:
            return await self._run(request)
        finally:
            ORCHESTRATIONS_IN_PROGRESS.dec()

    async def _run(self, request: TranscodeRequest) -> OrchestrationResult:
        log_info(
            logger,
            "Transcode orchestration started",
            video_id=str(request.video_id),
            profiles=[p.name for p in self.profiles],
        )

        output_dir = self.storage.variant_dir(request.video_id)
        try:
            await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            log_error(
                logger,
                "Could not create rendition directory",
                exception=e,
                video_id=str(request.video_id),
                output_dir=str(output_dir),
            )
            outcomes = [
                ProfileOutcome(
                    profile=p.name,
                    output_path="",
                    success=False,
                    error_message=f"Output directory unavailable: {e}",
                )
                for p in self.profiles
            ]
            return await self._finalize(request, outcomes)

        results = await asyncio.gather(
            *(self._run_profile(request, profile) for profile in self.profiles),
            return_exceptions=True,
        )

        outcomes: list[ProfileOutcome] = []
        for profile, result in zip(self.profiles, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log_error(
                    logger,
                    "Transcode task crashed",
                    exception=result,
                    video_id=str(request.video_id),
                    profile=profile.name,
                )
                TRANSCODE_TASKS_TOTAL.labels(profile=profile.name, outcome="error").inc()
                outcomes.append(
                    ProfileOutcome(
                        profile=profile.name,
                        output_path=str(self._output_path(request, profile)),
                        success=False,
                        error_message=str(result) or type(result).__name__,
                    )
                )
            else:
                outcomes.append(result)

        return await self._finalize(request, outcomes)

    def _output_path(self, request: TranscodeRequest, profile: QualityProfile):
        return self.storage.variant_path(request.video_id, profile.name, self.output_extension)

    async def _run_profile(
        self,
        request: TranscodeRequest,
        profile: QualityProfile,
    ) -> ProfileOutcome:
        output_path = str(self._output_path(request, profile))
        config = FFmpegConfig.for_profile(request.raw_path, output_path, profile)
        started = time.monotonic()

        result = await self.engine.transcode(config, timeout=self.task_timeout)
        elapsed = time.monotonic() - started
        TRANSCODE_TASK_DURATION_SECONDS.labels(profile=profile.name).observe(elapsed)

        if result.success:
            TRANSCODE_TASKS_TOTAL.labels(profile=profile.name, outcome="success").inc()
            log_info(
                logger,
                "Rendition transcoded",
                video_id=str(request.video_id),
                profile=profile.name,
                output_path=output_path,
                file_size=result.file_size,
                duration_seconds=round(elapsed, 3),
            )
            return ProfileOutcome(
                profile=profile.name,
                output_path=output_path,
                success=True,
                duration_seconds=elapsed,
            )

        error = TranscodeTaskError(profile.name, result.error_message or "transcode failed")
        TRANSCODE_TASKS_TOTAL.labels(
            profile=profile.name,
            outcome="timeout" if result.timed_out else "failure",
        ).inc()
        log_error(
            logger,
            "Rendition transcode failed",
            exception=error,
            video_id=str(request.video_id),
            profile=profile.name,
            timed_out=result.timed_out,
        )
        return ProfileOutcome(
            profile=profile.name,
            output_path=output_path,
            success=False,
            error_message=result.error_message or "transcode failed",
            duration_seconds=elapsed,
        )

    async def _finalize(
        self,
        request: TranscodeRequest,
        outcomes: list[ProfileOutcome],
    ) -> OrchestrationResult:
        status = aggregate_status(outcomes)
        result = OrchestrationResult(
            video_id=request.video_id,
            owner_id=request.owner_id,
            status=status,
            outcomes=outcomes,
            error_message=summarize_failures(outcomes),
        )

        result.applied = await self.catalog.finalize(
            request.video_id,
            request.owner_id,
            status,
            result.variant_paths,
            result.error_message,
        )
        ORCHESTRATIONS_TOTAL.labels(status=status.value).inc()

        if result.applied:
            log_info(
                logger,
                "Transcode orchestration finished",
                video_id=str(request.video_id),
                status=status.value,
                failed_profiles=result.failed_profiles,
            )
        else:
            log_warning(
                logger,
                "Video was not in processing state; status left unchanged",
                video_id=str(request.video_id),
                computed_status=status.value,
            )
        return result
