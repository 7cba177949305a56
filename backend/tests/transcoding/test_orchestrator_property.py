"""Property-based tests for transcode fan-out/fan-in.

Every orchestration runs one task per quality profile, waits for all of them
and writes the aggregate status exactly once: ``ready`` only when every
rendition succeeded, ``failed`` otherwise.
"""

import asyncio
import tempfile
import uuid
from pathlib import Path
from typing import Optional

import pytest
from hypothesis import given, settings, strategies as st

from app.core.logging import get_correlation_id
from app.core.storage import LocalStorage
from app.modules.transcoding.ffmpeg import FFmpegConfig, TranscodeOutput
from app.modules.transcoding.orchestrator import (
    ProfileOutcome,
    TranscodeOrchestrator,
    TranscodeRequest,
    aggregate_status,
)
from app.modules.transcoding.profiles import DEFAULT_QUALITY_PROFILES
from app.modules.video.models import VideoStatus

from conftest import FakeEngine, InMemoryCatalog

HEIGHTS = [p.target_height for p in DEFAULT_QUALITY_PROFILES]


def make_orchestrator(storage, engine, catalog, profiles=DEFAULT_QUALITY_PROFILES, timeout=None):
    return TranscodeOrchestrator(
        engine=engine,
        catalog=catalog,
        storage=storage,
        profiles=profiles,
        output_extension="mp4",
        task_timeout=timeout,
    )


async def start_video(catalog: InMemoryCatalog, owner_id: Optional[uuid.UUID] = None) -> TranscodeRequest:
    owner_id = owner_id or uuid.uuid4()
    video = await catalog.add_processing(owner_id)
    return TranscodeRequest(video_id=video.id, owner_id=owner_id, raw_path=video.raw_path)


class TestFanInAggregation:
    """Aggregate status is a pure function of the per-profile outcomes."""

    @given(
        failing=st.sets(st.sampled_from(HEIGHTS)),
        mode=st.sampled_from(["fail", "timeout", "raise"]),
    )
    @settings(max_examples=60, deadline=None)
    def test_ready_iff_every_profile_succeeded(self, failing: set[int], mode: str) -> None:
        """For any set of failing profiles the video is ready iff the set is empty,
        and the catalog is written exactly once."""

        async def scenario():
            with tempfile.TemporaryDirectory() as root:
                storage = LocalStorage(root)
                catalog = InMemoryCatalog()
                engine = FakeEngine({h: mode for h in failing})
                request = await start_video(catalog)

                result = await make_orchestrator(storage, engine, catalog).run(request)
                return result, catalog, request

        result, catalog, request = asyncio.run(scenario())

        expected = VideoStatus.FAILED if failing else VideoStatus.READY
        assert result.status == expected
        assert result.applied is True
        assert catalog.calls == [(request.video_id, expected)]
        assert catalog.status_of(request.video_id) == expected.value
        assert len(result.outcomes) == len(DEFAULT_QUALITY_PROFILES)

        failed_names = {p.name for p in DEFAULT_QUALITY_PROFILES if p.target_height in failing}
        assert set(result.failed_profiles) == failed_names

    def test_empty_outcomes_never_ready(self) -> None:
        assert aggregate_status([]) == VideoStatus.FAILED

    def test_single_failure_fails_aggregate(self) -> None:
        outcomes = [
            ProfileOutcome("1080p", "/a", True),
            ProfileOutcome("720p", "/b", False, "boom"),
        ]
        assert aggregate_status(outcomes) == VideoStatus.FAILED


class TestOrchestratorRun:
    @pytest.mark.asyncio
    async def test_all_profiles_ready_records_every_rendition(self, storage) -> None:
        catalog = InMemoryCatalog()
        engine = FakeEngine()
        request = await start_video(catalog)

        result = await make_orchestrator(storage, engine, catalog).run(request)

        assert result.status == VideoStatus.READY
        video = catalog.repository.videos[request.video_id]
        expected_dir = Path(storage.base_path) / str(request.video_id)
        assert video.variant_paths == {
            p.name: str(expected_dir / f"{p.name}.mp4") for p in DEFAULT_QUALITY_PROFILES
        }
        for path in video.variant_paths.values():
            assert Path(path).is_file()
        assert video.error_message is None

    @pytest.mark.asyncio
    async def test_engine_receives_profile_parameters(self, storage) -> None:
        catalog = InMemoryCatalog()
        engine = FakeEngine()
        request = await start_video(catalog)

        await make_orchestrator(storage, engine, catalog).run(request)

        seen = {(c.target_height, c.bitrate, c.input_path) for c in engine.configs}
        assert seen == {
            (p.target_height, p.ffmpeg_bitrate, request.raw_path) for p in DEFAULT_QUALITY_PROFILES
        }

    @pytest.mark.asyncio
    async def test_two_of_three_is_failed_with_partial_outputs_kept(self, storage) -> None:
        catalog = InMemoryCatalog()
        engine = FakeEngine({480: "fail"})
        request = await start_video(catalog)

        result = await make_orchestrator(storage, engine, catalog).run(request)

        assert result.status == VideoStatus.FAILED
        assert result.failed_profiles == ["480p"]
        video = catalog.repository.videos[request.video_id]
        assert set(video.variant_paths) == {"1080p", "720p"}
        assert "480p" in video.error_message
        assert (Path(storage.base_path) / str(request.video_id) / "1080p.mp4").is_file()

    @pytest.mark.asyncio
    async def test_engine_exception_becomes_failed_status(self, storage) -> None:
        catalog = InMemoryCatalog()
        request = await start_video(catalog)

        result = await make_orchestrator(storage, FakeEngine({720: "raise"}), catalog).run(request)

        assert result.status == VideoStatus.FAILED
        assert "engine crashed" in result.error_message

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, storage) -> None:
        catalog = InMemoryCatalog()
        request = await start_video(catalog)

        result = await make_orchestrator(
            storage, FakeEngine({1080: "timeout"}), catalog, timeout=0.5
        ).run(request)

        assert result.status == VideoStatus.FAILED
        assert result.failed_profiles == ["1080p"]

    @pytest.mark.asyncio
    async def test_unwritable_output_directory_fails_video(self, tmp_path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_bytes(b"")
        catalog = InMemoryCatalog()
        engine = FakeEngine()
        request = await start_video(catalog)

        result = await make_orchestrator(LocalStorage(blocker), engine, catalog).run(request)

        assert result.status == VideoStatus.FAILED
        assert engine.configs == []
        assert catalog.status_of(request.video_id) == "failed"

    def test_requires_profiles(self, storage) -> None:
        with pytest.raises(ValueError):
            make_orchestrator(storage, FakeEngine(), InMemoryCatalog(), profiles=())


class TestTerminalStates:
    """Terminal states are never overwritten by a later completion."""

    @pytest.mark.asyncio
    async def test_second_run_does_not_change_status(self, storage) -> None:
        catalog = InMemoryCatalog()
        request = await start_video(catalog)

        first = await make_orchestrator(storage, FakeEngine({720: "fail"}), catalog).run(request)
        second = await make_orchestrator(storage, FakeEngine(), catalog).run(request)

        assert first.applied is True
        assert second.applied is False
        assert second.status == VideoStatus.READY
        assert catalog.status_of(request.video_id) == "failed"
        assert len(catalog.calls) == 2

    @pytest.mark.asyncio
    async def test_foreign_owner_cannot_finalize(self, storage) -> None:
        catalog = InMemoryCatalog()
        request = await start_video(catalog)
        forged = TranscodeRequest(request.video_id, uuid.uuid4(), request.raw_path)

        result = await make_orchestrator(storage, FakeEngine(), catalog).run(forged)

        assert result.applied is False
        assert catalog.status_of(request.video_id) == "processing"


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_profiles_run_concurrently(self, storage) -> None:
        """Every profile task is in flight at the same time."""
        started = 0
        all_started = asyncio.Event()
        total = len(DEFAULT_QUALITY_PROFILES)

        class BarrierEngine:
            async def transcode(self, config: FFmpegConfig, timeout=None) -> TranscodeOutput:
                nonlocal started
                started += 1
                if started == total:
                    all_started.set()
                await asyncio.wait_for(all_started.wait(), timeout=2)
                Path(config.output_path).write_bytes(b"x")
                return TranscodeOutput(success=True, output_path=config.output_path, file_size=1)

        catalog = InMemoryCatalog()
        request = await start_video(catalog)

        result = await make_orchestrator(storage, BarrierEngine(), catalog).run(request)

        assert result.status == VideoStatus.READY

    @pytest.mark.asyncio
    async def test_concurrent_videos_finish_independently(self, storage) -> None:
        owner_id = uuid.uuid4()
        catalog = InMemoryCatalog()
        good = await start_video(catalog, owner_id)
        bad = await start_video(catalog, owner_id)

        ok_run = make_orchestrator(storage, FakeEngine(delay=0.01), catalog).run(good)
        failing_run = make_orchestrator(storage, FakeEngine({720: "fail"}), catalog).run(bad)
        await asyncio.gather(ok_run, failing_run)

        assert catalog.status_of(good.video_id) == "ready"
        assert catalog.status_of(bad.video_id) == "failed"
        assert Path(storage.variant_dir(good.video_id)) != Path(storage.variant_dir(bad.video_id))

    @pytest.mark.asyncio
    async def test_correlation_id_reaches_transcode_tasks(self, storage) -> None:
        seen: list[str] = []

        class CapturingEngine(FakeEngine):
            async def transcode(self, config, timeout=None):
                seen.append(get_correlation_id())
                return await super().transcode(config, timeout)

        catalog = InMemoryCatalog()
        started = await start_video(catalog)
        request = TranscodeRequest(
            started.video_id, started.owner_id, started.raw_path, correlation_id="req-1234"
        )

        await make_orchestrator(storage, CapturingEngine(), catalog).run(request)

        assert seen == ["req-1234"] * len(DEFAULT_QUALITY_PROFILES)
