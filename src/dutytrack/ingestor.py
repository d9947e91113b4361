"""Sample ingestion: gating raw fixes and persisting accepted samples."""

import asyncio
import math
from collections import defaultdict
from typing import Dict, List, Optional

import structlog

from .config import Settings, settings as default_settings
from .errors import (
    PositionPermissionDenied,
    PositionTimeout,
    SourceUnavailable,
    StorageUnavailable,
)
from .geo import distance_meters
from .interfaces import CancelHandle, PositionSource, SampleStore
from .logging import bind_subject
from .metrics import fixes_accepted, fixes_suppressed, position_errors
from .models import (
    ActivityType,
    FixTrigger,
    IngestOutcome,
    IngestResult,
    PositionSample,
    RawFix,
    SuppressionReason,
    WatchOptions,
)

logger = structlog.get_logger(__name__)


class SampleIngestor:
    """Filters raw fixes per subject and forwards accepted ones to storage.

    Holds one cursor (the last *accepted* sample) per subject. Fixes for a
    single subject are serialized through a per-subject lock; different
    subjects never contend.
    """

    def __init__(
        self, sample_store: SampleStore, settings: Optional[Settings] = None
    ) -> None:
        self.sample_store = sample_store
        self.settings = settings or default_settings
        self._cursors: Dict[str, PositionSample] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: Dict[str, asyncio.Task] = {}

    def last_accepted(self, subject_id: str) -> Optional[PositionSample]:
        return self._cursors.get(subject_id)

    def classify_activity(self, speed: Optional[float]) -> ActivityType:
        """Movement class from reported speed in m/s."""
        if speed is None or not math.isfinite(speed):
            return ActivityType.STILL
        if speed < self.settings.walking_speed_mps:
            return ActivityType.STILL
        if speed < self.settings.vehicle_speed_mps:
            return ActivityType.WALKING
        return ActivityType.VEHICLE

    def is_reliable(self, accuracy: Optional[float]) -> bool:
        if accuracy is None or not math.isfinite(accuracy):
            return False
        return accuracy <= self.settings.accuracy_ceiling_meters

    async def accept(
        self,
        subject_id: str,
        fix: RawFix,
        trigger: FixTrigger = FixTrigger.WATCH,
    ) -> IngestResult:
        """Offer a raw fix; persist it unless a gate suppresses it.

        Raises:
            StorageUnavailable: the sample store rejected the append. The
                cursor is left untouched.
        """
        async with self._locks[subject_id]:
            pending = self._pending.get(subject_id)
            if pending is not None and not pending.done():
                # a cancelled caller left a commit running; let it land first
                await asyncio.wait({pending})

            cursor = self._cursors.get(subject_id)
            suppressed = self._gate(cursor, fix, trigger)
            if suppressed is not None:
                fixes_suppressed.labels(reason=suppressed.reason.value).inc()
                logger.debug(
                    "Suppressed fix",
                    subject_id=subject_id,
                    trigger=trigger.value,
                    reason=suppressed.reason.value,
                    distance_meters=suppressed.distance_meters,
                )
                return suppressed

            sample = PositionSample(
                subject_id=subject_id,
                timestamp=fix.timestamp,
                latitude=fix.latitude,
                longitude=fix.longitude,
                accuracy=fix.accuracy,
                speed=fix.speed,
                activity_type=self.classify_activity(fix.speed),
                reliable=self.is_reliable(fix.accuracy),
                trigger=trigger,
            )

            task = asyncio.ensure_future(self._commit(sample))
            task.add_done_callback(self._log_commit_failure)
            self._pending[subject_id] = task
            await asyncio.shield(task)

        distance = distance_meters(cursor, fix) if cursor is not None else None
        fixes_accepted.labels(activity_type=sample.activity_type.value).inc()
        logger.info(
            "Accepted fix",
            subject_id=subject_id,
            trigger=trigger.value,
            activity_type=sample.activity_type.value,
            reliable=sample.reliable,
            latitude=sample.latitude,
            longitude=sample.longitude,
        )
        return IngestResult(
            outcome=IngestOutcome.ACCEPTED, sample=sample, distance_meters=distance
        )

    def _gate(
        self, cursor: Optional[PositionSample], fix: RawFix, trigger: FixTrigger
    ) -> Optional[IngestResult]:
        """Return a suppression result, or None if the fix passes."""
        if cursor is None:
            return None

        elapsed = (fix.timestamp - cursor.timestamp).total_seconds()
        if trigger == FixTrigger.HEARTBEAT:
            return None
        if elapsed >= self.settings.heartbeat_interval_seconds:
            return None

        distance = distance_meters(cursor, fix)
        if trigger == FixTrigger.WATCH and elapsed < self.settings.watch_throttle_seconds:
            return IngestResult(
                outcome=IngestOutcome.SUPPRESSED,
                reason=SuppressionReason.THROTTLED,
                distance_meters=distance,
            )
        if distance < self.settings.min_distance_meters:
            return IngestResult(
                outcome=IngestOutcome.SUPPRESSED,
                reason=SuppressionReason.TOO_CLOSE,
                distance_meters=distance,
            )
        return None

    async def _commit(self, sample: PositionSample) -> None:
        """Persist the sample, then move the cursor. Runs shielded."""
        try:
            await self.sample_store.append(sample)
        except StorageUnavailable:
            raise
        except Exception as e:
            raise StorageUnavailable(
                f"Failed to store sample for subject {sample.subject_id}: {e}"
            ) from e

        cursor = self._cursors.get(sample.subject_id)
        if cursor is None or sample.timestamp >= cursor.timestamp:
            self._cursors[sample.subject_id] = sample

    @staticmethod
    def _log_commit_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to store sample", error=str(exc))

    async def drain(self, subject_id: Optional[str] = None) -> None:
        """Wait for in-flight commits (for one subject or all) to finish."""
        if subject_id is not None:
            tasks = [self._pending[subject_id]] if subject_id in self._pending else []
        else:
            tasks = list(self._pending.values())
        tasks = [t for t in tasks if not t.done()]
        if tasks:
            await asyncio.wait(tasks)

    async def track(self, subject_id: str, source: PositionSource) -> "TrackingSession":
        """Start continuous acquisition for a subject."""
        session = TrackingSession(self, subject_id, source, self.settings)
        await session.start()
        return session


class TrackingSession:
    """Continuous position acquisition for one subject.

    Combines an initial fix, a watch subscription (movement-triggered fixes,
    queued and ingested in arrival order) and a heartbeat that requests a
    fix every heartbeat interval. Call ``stop()`` to cancel at any time.
    """

    def __init__(
        self,
        ingestor: SampleIngestor,
        subject_id: str,
        source: PositionSource,
        settings: Settings,
    ) -> None:
        self.ingestor = ingestor
        self.subject_id = subject_id
        self.source = source
        self.settings = settings
        self._queue: asyncio.Queue[RawFix] = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []
        self._cancel_watch: Optional[CancelHandle] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        # fixes queued before a previous stop() are stale
        self._queue = asyncio.Queue()

        try:
            await self.acquire(FixTrigger.INITIAL)
        except Exception as e:
            position_errors.labels(kind=type(e).__name__).inc()
            logger.exception("Initial fix failed", subject_id=self.subject_id)

        options = WatchOptions(
            enable_high_accuracy=self.settings.watch_high_accuracy,
            maximum_age_seconds=self.settings.watch_maximum_age_seconds,
            timeout_seconds=self.settings.position_timeout_seconds,
        )
        try:
            self._cancel_watch = self.source.watch(self._on_watch_fix, options)
        except SourceUnavailable as e:
            # heartbeat still guarantees periodic fixes
            position_errors.labels(kind=type(e).__name__).inc()
            logger.warning(
                "Position watch unavailable", subject_id=self.subject_id, error=str(e)
            )

        self._tasks = [
            asyncio.create_task(self._drain_watch_queue()),
            asyncio.create_task(self._heartbeat_loop()),
        ]
        logger.info("Tracking started", subject_id=self.subject_id)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        if self._cancel_watch is not None:
            self._cancel_watch()
            self._cancel_watch = None

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self.ingestor.drain(self.subject_id)
        logger.info("Tracking stopped", subject_id=self.subject_id)

    async def __aenter__(self) -> "TrackingSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def _on_watch_fix(self, fix: RawFix) -> None:
        if not self._running:
            return
        self._queue.put_nowait(fix)

    async def _drain_watch_queue(self) -> None:
        with bind_subject(self.subject_id, trigger=FixTrigger.WATCH.value):
            while True:
                fix = await self._queue.get()
                try:
                    await self.ingestor.accept(self.subject_id, fix, FixTrigger.WATCH)
                except StorageUnavailable as e:
                    logger.warning("Dropped watch fix", error=str(e))
                except Exception as e:
                    position_errors.labels(kind=type(e).__name__).inc()
                    logger.exception("Unexpected error ingesting watch fix")
                finally:
                    self._queue.task_done()

    async def _heartbeat_loop(self) -> None:
        with bind_subject(self.subject_id, trigger=FixTrigger.HEARTBEAT.value):
            while True:
                await asyncio.sleep(self.settings.heartbeat_interval_seconds)
                try:
                    await self.acquire(FixTrigger.HEARTBEAT)
                except Exception as e:
                    # the next tick retries; only cancellation ends the loop
                    position_errors.labels(kind=type(e).__name__).inc()
                    logger.exception("Heartbeat fix failed")

    async def acquire(self, trigger: FixTrigger) -> Optional[IngestResult]:
        """Take one fix from the source and ingest it.

        Known source failures are logged and skipped; the next tick retries.
        Anything else propagates to the caller.
        """
        timeout = self.settings.position_timeout_seconds
        with bind_subject(self.subject_id):
            try:
                fix = await asyncio.wait_for(
                    self.source.get_current_fix(timeout), timeout=timeout
                )
            except (PositionTimeout, asyncio.TimeoutError):
                position_errors.labels(kind="PositionTimeout").inc()
                logger.info(
                    "Position fix timed out",
                    trigger=trigger.value,
                    timeout_seconds=timeout,
                )
                return None
            except PositionPermissionDenied as e:
                position_errors.labels(kind="PositionPermissionDenied").inc()
                logger.error("Position permission denied", error=str(e))
                return None
            except SourceUnavailable as e:
                position_errors.labels(kind="SourceUnavailable").inc()
                logger.warning(
                    "Position source unavailable, retrying next tick", error=str(e)
                )
                return None

            try:
                return await self.ingestor.accept(self.subject_id, fix, trigger)
            except StorageUnavailable as e:
                logger.warning("Dropped fix", trigger=trigger.value, error=str(e))
                return None
