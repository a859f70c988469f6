"""
Capture orchestrator.

Owns the polling timer and fans out one capture attempt per stream on
every tick.
"""

import asyncio
import math
from typing import Optional

from ..state.models import CapturedFrame, CaptureStage, StreamStats
from ..storage.retention import RetentionManager
from ..utils.config import StreamConfig
from ..utils.exceptions import PipelineError, TransportError
from ..utils.logger import get_logger
from .frame_extractor import FrameExtractor
from .segment_fetcher import SegmentFetcher


logger = get_logger(__name__)


class CaptureOrchestrator:
    """
    Periodic frame capture for all configured streams.

    Each stream has at most one attempt in flight: when a tick fires
    while the previous attempt for a stream is still running, the new one
    is skipped. Attempts are bounded by `attempt_timeout`.

    Usage:
        orchestrator = CaptureOrchestrator(config)
        await orchestrator.run()      # until stop()
    """

    def __init__(
        self,
        config: StreamConfig,
        fetcher: Optional[SegmentFetcher] = None,
        extractor: Optional[FrameExtractor] = None,
        retention: Optional[RetentionManager] = None,
        status_every: int = 0
    ):
        """
        Initialize orchestrator.

        Args:
            config: Capture settings
            fetcher: Segment fetcher (created from config if omitted)
            extractor: Frame extractor (created from config if omitted)
            retention: Retention manager (created from config if omitted)
            status_every: Log per-stream stats every N ticks, 0 disables
        """
        self.config = config
        self.fetcher = fetcher or SegmentFetcher(config)
        self.extractor = extractor or FrameExtractor(config)
        self.retention = retention or RetentionManager(config)
        self.status_every = status_every

        self._tasks: dict[str, asyncio.Task] = {}
        self._stats = {stream_id: StreamStats(stream_id) for stream_id in config.camera_ids}
        self._ticks = 0
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def stats(self) -> dict[str, StreamStats]:
        return self._stats

    @property
    def tick_count(self) -> int:
        return self._ticks

    @property
    def in_flight(self) -> list[str]:
        """Streams whose capture attempt is still running."""
        return [stream_id for stream_id, task in self._tasks.items() if not task.done()]

    async def capture(self, stream_id: str) -> Optional[CapturedFrame]:
        """
        Run one capture attempt for a stream.

        Errors are logged with stream and stage and never propagate.

        Returns:
            The captured frame, or None if the attempt failed
        """
        stats = self._stats.setdefault(stream_id, StreamStats(stream_id))
        stats.mark_started()
        stage = CaptureStage.RESOLVE

        try:
            stats.mark_stage(stage)
            segment_uri = await self.fetcher.resolve_latest_segment(stream_id)

            stage = CaptureStage.FETCH
            stats.mark_stage(stage)
            async with self.fetcher.open_segment(stream_id, segment_uri) as chunks:
                stage = CaptureStage.EXTRACT
                stats.mark_stage(stage)
                jpeg = await self.extractor.extract_frame(chunks)

            stage = CaptureStage.PERSIST
            stats.mark_stage(stage)
            frame = self.extractor.persist_frame(stream_id, jpeg)

            if self.config.clean_up:
                stage = CaptureStage.CLEANUP
                stats.mark_stage(stage)
                self.retention.enforce_retention(stream_id, protected_path=frame.path)

        except PipelineError as e:
            # Body read errors surface while FFmpeg consumes the stream
            if stage == CaptureStage.EXTRACT and isinstance(e, TransportError):
                stage = CaptureStage.FETCH
                stats.mark_stage(stage)
            logger.error(f"[{stream_id}] {stage.value} failed: {e}")
            stats.mark_failed(f"{stage.value}: {e}")
            return None
        except Exception as e:
            logger.exception(f"[{stream_id}] Unexpected error during {stage.value}: {e}")
            stats.mark_failed(f"{stage.value}: {e!r}")
            return None

        stats.mark_succeeded(frame)
        logger.info(f"[{stream_id}] Captured {frame.path.name} ({frame.size} bytes)")
        return frame

    async def _run_attempt(self, stream_id: str) -> Optional[CapturedFrame]:
        """Capture with the per-attempt deadline applied."""
        try:
            return await asyncio.wait_for(
                self.capture(stream_id),
                timeout=self.config.attempt_timeout or None
            )
        except asyncio.TimeoutError:
            stats = self._stats[stream_id]
            stage = stats.last_stage.value if stats.last_stage else 'attempt'
            logger.error(
                f"[{stream_id}] Capture timed out after {self.config.attempt_timeout}s during {stage}"
            )
            stats.mark_failed(f"{stage}: timed out")
            return None

    def tick(self) -> list[asyncio.Task]:
        """
        Launch one capture attempt per configured stream.

        Must be called from a running event loop. Does not wait for the
        attempts.

        Returns:
            Tasks launched on this tick
        """
        self._ticks += 1
        launched = []

        for stream_id in self.config.camera_ids:
            previous = self._tasks.get(stream_id)
            if previous is not None and not previous.done():
                logger.warning(f"[{stream_id}] Previous capture still running, skipping this cycle")
                self._stats[stream_id].mark_skipped()
                continue

            task = asyncio.create_task(
                self._run_attempt(stream_id),
                name=f"capture-{stream_id}"
            )
            self._tasks[stream_id] = task
            launched.append(task)

        if self.status_every and self._ticks % self.status_every == 0:
            self.log_status()

        return launched

    async def run_once(self) -> dict[str, Optional[CapturedFrame]]:
        """
        Run a single capture cycle and wait for it.

        Returns:
            Frame (or None) per stream launched this cycle
        """
        tasks = self.tick()
        launched = {
            stream_id: task for stream_id, task in self._tasks.items() if task in tasks
        }
        results = await asyncio.gather(*launched.values())
        return dict(zip(launched, results))

    async def run(self) -> None:
        """
        Tick every poll_interval seconds until stop() is called.

        The first tick fires one full interval after start. Ticks are
        scheduled on a fixed grid so slow ticks do not drift the timer;
        missed ticks are dropped rather than fired in a burst.
        """
        loop = asyncio.get_running_loop()
        interval = self.config.poll_interval

        self._stop_event = asyncio.Event()
        self._running = True
        next_tick = loop.time() + interval

        logger.info(
            f"Capturing {len(self.config.camera_ids)} streams every {interval}s "
            f"into {self.config.output_dir}"
        )

        try:
            while self._running:
                delay = max(0.0, next_tick - loop.time())
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

                self.tick()

                next_tick += interval
                now = loop.time()
                if next_tick <= now:
                    missed = math.floor((now - next_tick) / interval) + 1
                    logger.warning(f"Timer fell behind, dropping {missed} ticks")
                    next_tick += missed * interval
        finally:
            self._running = False
            await self.shutdown()

    def stop(self) -> None:
        """Ask run() to return after the current tick."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def shutdown(self) -> None:
        """Cancel in-flight attempts and close the HTTP session."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info(f"Cancelling {len(pending)} in-flight captures")
            await asyncio.gather(*pending, return_exceptions=True)

        await self.fetcher.close()
        self.log_status()

    def log_status(self) -> None:
        """Log one summary line per stream."""
        for stats in self._stats.values():
            s = stats.to_dict()
            logger.info(
                f"[{s['stream_id']}] attempts={s['attempts']} ok={s['successes']} "
                f"failed={s['failures']} skipped={s['skipped']} "
                f"last_frame={s['last_frame']} last_error={s['last_error']}"
            )
