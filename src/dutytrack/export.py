"""Tabular exports of daily timelines and location history."""

import csv
import io
from typing import Any, Dict, Iterable, List, TextIO

from .models import DailyTimeline, IntervalType, PositionSample

# Column order and units are relied on by reporting tools.
TIMELINE_COLUMNS = [
    "type",
    "start",
    "end",
    "duration_minutes",
    "distance_km",
    "location_id",
]

LOCATION_HISTORY_COLUMNS = [
    "Timestamp",
    "Latitude",
    "Longitude",
    "Accuracy (m)",
    "Speed (m/s)",
    "Activity",
]

IN_PROGRESS = "in progress"


def timeline_rows(timeline: DailyTimeline) -> List[Dict[str, Any]]:
    """Flatten a timeline into export rows."""
    rows = []
    for interval in timeline.intervals:
        is_travel = interval.type == IntervalType.TRAVEL
        rows.append(
            {
                "type": interval.type.value,
                "start": interval.start_time.isoformat(),
                "end": interval.end_time.isoformat() if interval.end_time else IN_PROGRESS,
                "duration_minutes": f"{interval.duration_minutes:.2f}",
                "distance_km": f"{interval.distance_km or 0.0:.2f}" if is_travel else "",
                "location_id": interval.location_id or "",
            }
        )
    return rows


def write_timeline_csv(timeline: DailyTimeline, fp: TextIO) -> None:
    writer = csv.DictWriter(fp, fieldnames=TIMELINE_COLUMNS)
    writer.writeheader()
    writer.writerows(timeline_rows(timeline))


def timeline_csv(timeline: DailyTimeline) -> str:
    buffer = io.StringIO()
    write_timeline_csv(timeline, buffer)
    return buffer.getvalue()


def write_samples_csv(samples: Iterable[PositionSample], fp: TextIO) -> None:
    """Location history export, one row per stored sample."""
    writer = csv.writer(fp)
    writer.writerow(LOCATION_HISTORY_COLUMNS)
    for sample in samples:
        writer.writerow(
            [
                sample.timestamp.isoformat(),
                sample.latitude,
                sample.longitude,
                "" if sample.accuracy is None else sample.accuracy,
                "" if sample.speed is None else sample.speed,
                sample.activity_type.value,
            ]
        )


def samples_csv(samples: Iterable[PositionSample]) -> str:
    buffer = io.StringIO()
    write_samples_csv(samples, buffer)
    return buffer.getvalue()
