"""Stop detection over a day of position samples."""

from typing import List, Optional, Sequence

import structlog

from .config import Settings, settings as default_settings
from .geo import distance_meters, has_valid_coordinates
from .metrics import stops_detected
from .models import PositionSample, StopCluster

logger = structlog.get_logger(__name__)


class StopDetector:
    """Partitions a subject's samples into stationary clusters.

    A cluster stays open while each sample lies within the movement threshold
    of the previous one; it is emitted when it has lasted at least the minimum
    dwell. The open cluster at the end of the day is always evaluated.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings

    @property
    def movement_threshold_meters(self) -> float:
        return self.settings.stop_movement_threshold_meters

    @property
    def min_stop_seconds(self) -> float:
        return self.settings.min_stop_minutes * 60.0

    def detect_stops(self, samples: Sequence[PositionSample]) -> List[StopCluster]:
        """Detect stops in one subject's samples (any order)."""
        valid = []
        for sample in samples:
            if has_valid_coordinates(sample):
                valid.append(sample)
            else:
                logger.warning(
                    "Skipping malformed sample",
                    subject_id=sample.subject_id,
                    timestamp=sample.timestamp.isoformat(),
                    latitude=sample.latitude,
                    longitude=sample.longitude,
                )

        if len(valid) < 2:
            return []

        ordered = sorted(valid, key=lambda s: s.timestamp)
        stops: List[StopCluster] = []

        cluster_start = ordered[0]
        cursor = ordered[0]
        cluster_size = 1

        for sample in ordered[1:]:
            # exactly at the threshold is jitter, not movement
            if distance_meters(cursor, sample) > self.movement_threshold_meters:
                stop = self._close_cluster(cluster_start, cursor, cluster_size)
                if stop is not None:
                    stops.append(stop)
                cluster_start = sample
                cluster_size = 0
            cursor = sample
            cluster_size += 1

        stop = self._close_cluster(cluster_start, cursor, cluster_size)
        if stop is not None:
            stops.append(stop)

        if stops:
            stops_detected.inc(len(stops))
        logger.debug(
            "Detected stops",
            subject_id=ordered[0].subject_id,
            samples=len(ordered),
            stops=len(stops),
        )
        return stops

    def _close_cluster(
        self, start: PositionSample, end: PositionSample, size: int
    ) -> Optional[StopCluster]:
        dwell_seconds = (end.timestamp - start.timestamp).total_seconds()
        if dwell_seconds < self.min_stop_seconds or dwell_seconds <= 0:
            return None
        return StopCluster(
            subject_id=start.subject_id,
            start_time=start.timestamp,
            end_time=end.timestamp,
            latitude=start.latitude,
            longitude=start.longitude,
            duration_minutes=dwell_seconds / 60.0,
            sample_count=size,
        )


def detect_stops(
    samples: Sequence[PositionSample], settings: Optional[Settings] = None
) -> List[StopCluster]:
    """Module-level shortcut for StopDetector(settings).detect_stops(samples)."""
    return StopDetector(settings).detect_stops(samples)
