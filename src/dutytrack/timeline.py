"""Work/travel timeline reconstruction from duty events and samples."""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

import structlog

from .geo import is_within_geofence, path_distance_meters
from .models import (
    Checkpoint,
    DutyEvent,
    DutyEventKind,
    GeoPoint,
    IntervalType,
    PositionSample,
    StopCluster,
    TimelineInterval,
    TimelineTotals,
)

logger = structlog.get_logger(__name__)


def _minutes(start: datetime, end: datetime) -> float:
    return max(0.0, (end - start).total_seconds() / 60.0)


class TimelineReconstructor:
    """Turns a subject's check-in/check-out stream into labeled intervals.

    Anomalies never raise:

    - a CheckOut with no open CheckIn is ignored;
    - a CheckIn while one is already open closes the first as an
      unterminated (in progress) work interval with no travel gap;
    - a CheckIn still open at the end of the stream is reported in progress.
    """

    def __init__(self, locations: Optional[Iterable[Checkpoint]] = None) -> None:
        self.locations = [loc for loc in locations or () if loc.is_active]

    def reconstruct(
        self,
        subject_id: str,
        events: Sequence[DutyEvent],
        samples: Sequence[PositionSample] = (),
        stops: Optional[Sequence[StopCluster]] = None,
    ) -> List[TimelineInterval]:
        ordered_events = sorted(events, key=lambda e: e.timestamp)
        ordered_samples = sorted(samples, key=lambda s: s.timestamp)

        intervals: List[TimelineInterval] = []
        open_check_in: Optional[DutyEvent] = None
        last_check_out: Optional[DutyEvent] = None

        for event in ordered_events:
            if event.kind == DutyEventKind.CHECK_IN:
                if open_check_in is not None:
                    logger.info(
                        "Unterminated session",
                        subject_id=subject_id,
                        started_at=open_check_in.timestamp.isoformat(),
                        next_check_in=event.timestamp.isoformat(),
                    )
                    intervals.append(self._work(subject_id, open_check_in, None))
                elif last_check_out is not None:
                    intervals.append(
                        self._travel(
                            subject_id,
                            last_check_out.timestamp,
                            event.timestamp,
                            ordered_samples,
                            stops,
                        )
                    )
                open_check_in = event
                last_check_out = None

            elif event.kind == DutyEventKind.CHECK_OUT:
                if open_check_in is None:
                    logger.debug(
                        "Ignoring dangling check-out",
                        subject_id=subject_id,
                        timestamp=event.timestamp.isoformat(),
                    )
                    continue
                intervals.append(self._work(subject_id, open_check_in, event))
                open_check_in = None
                last_check_out = event

        if open_check_in is not None:
            intervals.append(self._work(subject_id, open_check_in, None))

        return intervals

    def _work(
        self,
        subject_id: str,
        check_in: DutyEvent,
        check_out: Optional[DutyEvent],
    ) -> TimelineInterval:
        end_time = check_out.timestamp if check_out is not None else None
        return TimelineInterval(
            subject_id=subject_id,
            type=IntervalType.WORK,
            start_time=check_in.timestamp,
            end_time=end_time,
            duration_minutes=(
                _minutes(check_in.timestamp, end_time) if end_time is not None else 0.0
            ),
            location_id=self.resolve_location(check_in),
        )

    def _travel(
        self,
        subject_id: str,
        start: datetime,
        end: datetime,
        samples: Sequence[PositionSample],
        stops: Optional[Sequence[StopCluster]],
    ) -> TimelineInterval:
        in_gap = [s for s in samples if start <= s.timestamp <= end]
        distance_km = path_distance_meters(in_gap) / 1000.0
        stop_count = 0
        if stops:
            stop_count = sum(
                1 for stop in stops if stop.start_time >= start and stop.end_time <= end
            )
        return TimelineInterval(
            subject_id=subject_id,
            type=IntervalType.TRAVEL,
            start_time=start,
            end_time=end,
            duration_minutes=_minutes(start, end),
            distance_km=distance_km,
            stop_count=stop_count,
        )

    def resolve_location(self, check_in: DutyEvent) -> Optional[str]:
        """Location id of a check-in, falling back to a geofence match."""
        if check_in.location_id:
            return check_in.location_id
        if not check_in.has_position or not self.locations:
            return None
        try:
            point = GeoPoint(latitude=check_in.latitude, longitude=check_in.longitude)
        except ValueError:
            return None
        for location in self.locations:
            if is_within_geofence(point, location, location.radius_meters):
                return location.id
        return None


def summarize(intervals: Iterable[TimelineInterval]) -> TimelineTotals:
    """Aggregate totals; in-progress work contributes nothing."""
    totals = TimelineTotals()
    for interval in intervals:
        if interval.type == IntervalType.WORK:
            if interval.in_progress:
                totals.in_progress_sessions += 1
            else:
                totals.work_minutes += interval.duration_minutes
                totals.work_sessions += 1
        else:
            totals.travel_minutes += interval.duration_minutes
            totals.travel_km += interval.distance_km or 0.0
    return totals
