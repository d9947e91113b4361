"""Unit tests for CSV exports."""

import csv
import io
from datetime import date

from dutytrack.export import (
    LOCATION_HISTORY_COLUMNS,
    TIMELINE_COLUMNS,
    samples_csv,
    timeline_csv,
)
from dutytrack.models import (
    ActivityType,
    DailyTimeline,
    IntervalType,
    TimelineInterval,
)
from tests.test_helpers import SUBJECT_ID, at, make_sample


def parse(content: str):
    return list(csv.reader(io.StringIO(content)))


class TestTimelineCsv:
    """Test the timeline export."""

    def test_header_order(self):
        timeline = DailyTimeline(subject_id=SUBJECT_ID, day=date(2024, 6, 3))

        rows = parse(timeline_csv(timeline))

        assert rows == [TIMELINE_COLUMNS]
        assert TIMELINE_COLUMNS == [
            "type",
            "start",
            "end",
            "duration_minutes",
            "distance_km",
            "location_id",
        ]

    def test_rows(self):
        timeline = DailyTimeline(
            subject_id=SUBJECT_ID,
            day=date(2024, 6, 3),
            intervals=[
                TimelineInterval(
                    subject_id=SUBJECT_ID,
                    type=IntervalType.WORK,
                    start_time=at(9),
                    end_time=at(13),
                    duration_minutes=240.0,
                    location_id="loc-office",
                ),
                TimelineInterval(
                    subject_id=SUBJECT_ID,
                    type=IntervalType.TRAVEL,
                    start_time=at(13),
                    end_time=at(14),
                    duration_minutes=60.0,
                    distance_km=12.3456,
                ),
                TimelineInterval(
                    subject_id=SUBJECT_ID,
                    type=IntervalType.WORK,
                    start_time=at(14),
                ),
            ],
        )

        rows = parse(timeline_csv(timeline))

        assert rows[1] == [
            "work",
            at(9).isoformat(),
            at(13).isoformat(),
            "240.00",
            "",
            "loc-office",
        ]
        assert rows[2] == ["travel", at(13).isoformat(), at(14).isoformat(), "60.00", "12.35", ""]
        assert rows[3] == ["work", at(14).isoformat(), "in progress", "0.00", "", ""]

    def test_lines_per_interval(self):
        timeline = DailyTimeline(
            subject_id=SUBJECT_ID,
            day=date(2024, 6, 3),
            intervals=[
                TimelineInterval(subject_id=SUBJECT_ID, type=IntervalType.WORK, start_time=at(9))
            ],
        )

        assert len(timeline_csv(timeline).splitlines()) == 2


class TestSamplesCsv:
    """Test the location history export."""

    def test_columns_and_values(self):
        samples = [
            make_sample(at(9), speed=1.5, activity_type=ActivityType.WALKING),
            make_sample(at(9, 5), accuracy=None, speed=None),
        ]

        rows = parse(samples_csv(samples))

        assert rows[0] == LOCATION_HISTORY_COLUMNS
        assert rows[0] == [
            "Timestamp",
            "Latitude",
            "Longitude",
            "Accuracy (m)",
            "Speed (m/s)",
            "Activity",
        ]
        assert rows[1][0] == at(9).isoformat()
        assert float(rows[1][1]) == samples[0].latitude
        assert rows[1][3:] == ["10.0", "1.5", "walking"]
        assert rows[2][3:] == ["", "", "still"]

    def test_empty_history_has_header_only(self):
        assert samples_csv([]).splitlines() == [",".join(LOCATION_HISTORY_COLUMNS)]
