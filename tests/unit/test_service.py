"""Unit tests for the service facade."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest

from dutytrack.config import Settings
from dutytrack.errors import DataRetrievalError
from dutytrack.memory import InMemoryCheckpointRegistry, InMemoryEventStore, InMemorySampleStore
from dutytrack.models import GeoPoint, IntervalType, VerificationStatus
from dutytrack.service import FieldActivityService
from tests.test_helpers import (
    ORIGIN_LAT,
    ORIGIN_LON,
    SUBJECT_ID,
    FakePositionSource,
    at,
    check_in,
    check_out,
    make_fix,
    make_sample,
)

DAY = date(2024, 6, 3)


@pytest.fixture()
def busy_day(sample_store, event_store):
    """A subject with two work sessions and a drive between them."""
    for event in (
        check_in(at(9), latitude=ORIGIN_LAT, longitude=ORIGIN_LON),
        check_out(at(12)),
        check_in(at(13), location_id="site-9"),
        check_out(at(17)),
    ):
        event_store.add(event)
    for sample in (
        make_sample(at(9), 0),
        make_sample(at(9, 10), 5),
        make_sample(at(12), 10),
        make_sample(at(12, 30), 2000),
        make_sample(at(13), 4000),
        make_sample(at(13, 30), 4010),
    ):
        sample_store._samples[sample.subject_id].append(sample)
    return sample_store, event_store


class TestDailyTimeline:
    """Test daily timeline assembly."""

    @pytest.mark.asyncio()
    async def test_busy_day(self, service, busy_day):
        timeline = await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert timeline.subject_id == SUBJECT_ID
        assert timeline.day == DAY
        assert [i.type for i in timeline.intervals] == [
            IntervalType.WORK,
            IntervalType.TRAVEL,
            IntervalType.WORK,
        ]
        assert timeline.intervals[0].location_id == "cp-gate"
        assert timeline.intervals[2].location_id == "site-9"
        assert timeline.intervals[1].distance_km == pytest.approx(3.99, rel=1e-3)
        assert timeline.totals.work_minutes == 420.0
        assert timeline.totals.travel_minutes == 60.0

    @pytest.mark.asyncio()
    async def test_timeline_is_idempotent(self, service, busy_day):
        first = await service.get_daily_timeline(SUBJECT_ID, DAY)
        second = await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert first == second

    @pytest.mark.asyncio()
    async def test_empty_day(self, service):
        timeline = await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert timeline.intervals == []
        assert timeline.totals.work_minutes == 0.0

    @pytest.mark.asyncio()
    async def test_events_outside_day_are_excluded(self, service, event_store):
        event_store.add(check_in(datetime(2024, 6, 2, 23, 0, tzinfo=UTC)))
        event_store.add(check_in(at(9)))
        event_store.add(check_out(at(10)))

        timeline = await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert len(timeline.intervals) == 1
        assert timeline.totals.work_minutes == 60.0

    @pytest.mark.asyncio()
    async def test_sample_store_failure_raises(self, event_store, registry, settings):
        failing = AsyncMock()
        failing.query = AsyncMock(side_effect=ConnectionError("db down"))
        service = FieldActivityService(failing, event_store, registry, settings)

        with pytest.raises(DataRetrievalError) as exc_info:
            await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert exc_info.value.store == "sample"
        assert exc_info.value.subject_id == SUBJECT_ID

    @pytest.mark.asyncio()
    async def test_event_store_failure_raises(self, sample_store, registry, settings):
        failing = AsyncMock()
        failing.query = AsyncMock(side_effect=ConnectionError("db down"))
        service = FieldActivityService(sample_store, failing, registry, settings)

        with pytest.raises(DataRetrievalError) as exc_info:
            await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert exc_info.value.store == "event"

    @pytest.mark.asyncio()
    async def test_location_failure_degrades_to_unresolved(
        self, sample_store, event_store, settings
    ):
        registry = AsyncMock()
        registry.list_active = AsyncMock(side_effect=ConnectionError("timeout"))
        event_store.add(check_in(at(9), latitude=ORIGIN_LAT, longitude=ORIGIN_LON))
        event_store.add(check_out(at(10)))
        service = FieldActivityService(sample_store, event_store, registry, settings)

        timeline = await service.get_daily_timeline(SUBJECT_ID, DAY)

        assert timeline.intervals[0].location_id is None


class TestDayWindow:
    """Test local-day boundaries."""

    def test_utc_window(self, service):
        start, end = service.day_window(DAY)

        assert start == datetime(2024, 6, 3, tzinfo=UTC)
        assert end == datetime(2024, 6, 4, tzinfo=UTC)

    @pytest.mark.asyncio()
    async def test_window_follows_configured_timezone(self):
        events = InMemoryEventStore(
            [
                # 23:30 local on June 3rd in Kolkata (UTC+05:30)
                check_in(datetime(2024, 6, 3, 18, 0, tzinfo=UTC)),
                check_out(datetime(2024, 6, 3, 18, 20, tzinfo=UTC)),
            ]
        )
        service = FieldActivityService(
            InMemorySampleStore(),
            events,
            InMemoryCheckpointRegistry(),
            Settings(_env_file=None, timezone="Asia/Kolkata"),
        )

        today = await service.get_daily_timeline(SUBJECT_ID, DAY)
        tomorrow = await service.get_daily_timeline(SUBJECT_ID, date(2024, 6, 4))

        assert len(today.intervals) == 1
        assert tomorrow.intervals == []


class TestStopsAndHistory:
    """Test stop and location history queries."""

    @pytest.mark.asyncio()
    async def test_get_stops(self, service, busy_day):
        stops = await service.get_stops(SUBJECT_ID, DAY)

        assert [(s.start_time, s.end_time) for s in stops] == [
            (at(9), at(12)),
            (at(13), at(13, 30)),
        ]

    @pytest.mark.asyncio()
    async def test_location_history_is_sorted(self, service, sample_store):
        sample_store._samples[SUBJECT_ID].extend(
            [make_sample(at(11)), make_sample(at(8)), make_sample(at(10))]
        )

        history = await service.get_location_history(SUBJECT_ID, DAY)

        assert [s.timestamp for s in history] == [at(8), at(10), at(11)]


class TestIngestAndVerify:
    """Test write path and verification pass-through."""

    @pytest.mark.asyncio()
    async def test_ingested_fixes_appear_in_history(self, service):
        await service.ingest_fix(SUBJECT_ID, make_fix(at(9)))
        await service.ingest_fix(SUBJECT_ID, make_fix(at(9, 0, 5), 10))
        await service.ingest_fix(SUBJECT_ID, make_fix(at(9, 1), 300))

        history = await service.get_location_history(SUBJECT_ID, DAY)

        assert [s.timestamp for s in history] == [at(9), at(9, 1)]

    @pytest.mark.asyncio()
    async def test_track_uses_shared_ingestor(self, service, sample_store):
        source = FakePositionSource([make_fix(at(9))])

        session = await service.track(SUBJECT_ID, source)
        await session.stop()

        assert service.ingestor.last_accepted(SUBJECT_ID) is not None
        assert len(sample_store.all(SUBJECT_ID)) == 1

    @pytest.mark.asyncio()
    async def test_verify_checkpoint(self, service):
        verdict = await service.verify_checkpoint(
            GeoPoint(latitude=ORIGIN_LAT, longitude=ORIGIN_LON), "cp-gate"
        )

        assert verdict.status == VerificationStatus.VERIFIED


class TestExports:
    """Test CSV exports through the service."""

    @pytest.mark.asyncio()
    async def test_export_daily_timeline(self, service, busy_day):
        lines = (await service.export_daily_timeline(SUBJECT_ID, DAY)).splitlines()

        assert lines[0] == "type,start,end,duration_minutes,distance_km,location_id"
        assert len(lines) == 4
        assert lines[2].startswith("travel,")

    @pytest.mark.asyncio()
    async def test_export_location_history(self, service, busy_day):
        lines = (await service.export_location_history(SUBJECT_ID, DAY)).splitlines()

        assert lines[0] == "Timestamp,Latitude,Longitude,Accuracy (m),Speed (m/s),Activity"
        assert len(lines) == 7
