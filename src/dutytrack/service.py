"""Public entry points of the field-activity engine."""

from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

import structlog

from .config import Settings, settings as default_settings
from .errors import DataRetrievalError
from .export import samples_csv, timeline_csv
from .ingestor import SampleIngestor, TrackingSession
from .interfaces import CheckpointRegistry, EventStore, PositionSource, SampleStore
from .logging import bind_subject
from .metrics import reconstruction_duration, retrieval_errors
from .models import (
    Checkpoint,
    DailyTimeline,
    DutyEvent,
    FixTrigger,
    GeoPoint,
    IngestResult,
    PositionSample,
    RawFix,
    StopCluster,
    VerificationVerdict,
)
from .stops import StopDetector
from .timeline import TimelineReconstructor, summarize
from .verifier import GeofenceVerifier

logger = structlog.get_logger(__name__)


class FieldActivityService:
    """Wires the ingestor, detectors and verifier to the collaborator stores.

    Read paths fetch samples and events once per call and are pure functions
    of stored state.
    """

    def __init__(
        self,
        sample_store: SampleStore,
        event_store: EventStore,
        checkpoint_registry: CheckpointRegistry,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.sample_store = sample_store
        self.event_store = event_store
        self.checkpoint_registry = checkpoint_registry

        self.ingestor = SampleIngestor(sample_store, self.settings)
        self.stop_detector = StopDetector(self.settings)
        self.verifier = GeofenceVerifier(checkpoint_registry, self.settings)

    def day_window(self, day: date) -> Tuple[datetime, datetime]:
        """Local-day bounds ``[00:00, next 00:00)`` in the configured timezone."""
        start = datetime.combine(day, time.min, tzinfo=self.settings.tzinfo)
        return start, start + timedelta(days=1)

    # Write path

    async def ingest_fix(
        self,
        subject_id: str,
        fix: RawFix,
        trigger: FixTrigger = FixTrigger.WATCH,
    ) -> IngestResult:
        return await self.ingestor.accept(subject_id, fix, trigger)

    async def track(self, subject_id: str, source: PositionSource) -> TrackingSession:
        return await self.ingestor.track(subject_id, source)

    # Read paths

    async def get_daily_timeline(self, subject_id: str, day: date) -> DailyTimeline:
        with bind_subject(subject_id, day=day.isoformat()):
            return await self._build_daily_timeline(subject_id, day)

    async def _build_daily_timeline(self, subject_id: str, day: date) -> DailyTimeline:
        start, end = self.day_window(day)
        events = await self._query_events(subject_id, start, end)
        samples = await self._query_samples(subject_id, start, end)
        locations = await self._active_locations()

        with reconstruction_duration.time():
            stops = self.stop_detector.detect_stops(samples)
            intervals = TimelineReconstructor(locations).reconstruct(
                subject_id, events, samples, stops
            )
            totals = summarize(intervals)

        logger.info(
            "Reconstructed timeline",
            events=len(events),
            samples=len(samples),
            intervals=len(intervals),
            work_minutes=round(totals.work_minutes, 2),
            travel_km=round(totals.travel_km, 3),
        )
        return DailyTimeline(
            subject_id=subject_id, day=day, intervals=intervals, totals=totals
        )

    async def get_stops(self, subject_id: str, day: date) -> List[StopCluster]:
        start, end = self.day_window(day)
        with bind_subject(subject_id, day=day.isoformat()):
            samples = await self._query_samples(subject_id, start, end)
            return self.stop_detector.detect_stops(samples)

    async def get_location_history(
        self, subject_id: str, day: date
    ) -> List[PositionSample]:
        start, end = self.day_window(day)
        samples = await self._query_samples(subject_id, start, end)
        return sorted(samples, key=lambda s: s.timestamp)

    async def verify_checkpoint(
        self, position: GeoPoint, checkpoint_id: str
    ) -> VerificationVerdict:
        return await self.verifier.verify(position, checkpoint_id)

    # Exports

    async def export_daily_timeline(self, subject_id: str, day: date) -> str:
        return timeline_csv(await self.get_daily_timeline(subject_id, day))

    async def export_location_history(self, subject_id: str, day: date) -> str:
        return samples_csv(await self.get_location_history(subject_id, day))

    # Store access

    async def _query_samples(
        self, subject_id: str, start: datetime, end: datetime
    ) -> List[PositionSample]:
        try:
            return list(await self.sample_store.query(subject_id, start, end))
        except Exception as e:
            retrieval_errors.labels(store="sample").inc()
            logger.error(
                "Failed to query samples", subject_id=subject_id, error=str(e)
            )
            raise DataRetrievalError("sample", subject_id, str(e)) from e

    async def _query_events(
        self, subject_id: str, start: datetime, end: datetime
    ) -> List[DutyEvent]:
        try:
            return list(await self.event_store.query(subject_id, start, end))
        except Exception as e:
            retrieval_errors.labels(store="event").inc()
            logger.error("Failed to query events", subject_id=subject_id, error=str(e))
            raise DataRetrievalError("event", subject_id, str(e)) from e

    async def _active_locations(self) -> List[Checkpoint]:
        """Known locations for resolving check-ins; optional enrichment."""
        try:
            return list(await self.checkpoint_registry.list_active())
        except Exception as e:
            retrieval_errors.labels(store="checkpoint").inc()
            logger.warning(
                "Could not load locations, check-ins stay unresolved", error=str(e)
            )
            return []
