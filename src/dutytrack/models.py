"""Data models for position samples, duty events, timelines and checkpoints."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """A validated WGS-84 coordinate."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    longitude: float = Field(ge=-180.0, le=180.0, description="Longitude in decimal degrees")


class FixTrigger(str, Enum):
    """Path a raw fix arrived by."""

    INITIAL = "initial"
    WATCH = "watch"
    HEARTBEAT = "heartbeat"


class ActivityType(str, Enum):
    """Instantaneous movement classification derived from speed."""

    STILL = "still"
    WALKING = "walking"
    VEHICLE = "vehicle"


class RawFix(BaseModel):
    """One reading from the position source, prior to filtering."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the fix was taken",
    )
    latitude: float = Field(ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    longitude: float = Field(ge=-180.0, le=180.0, description="Longitude in decimal degrees")
    accuracy: Optional[float] = Field(
        default=None, description="Horizontal accuracy in meters, None or inf if unknown"
    )
    speed: Optional[float] = Field(default=None, description="Speed in m/s")
    heading: Optional[float] = Field(default=None, description="Heading in degrees")
    altitude: Optional[float] = Field(default=None, description="Altitude in meters")


class PositionSample(BaseModel):
    """An accepted GPS fix for one subject.

    Coordinates are range-checked when a fix is accepted; samples read back
    from a store are taken as-is and consumers skip malformed ones.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    timestamp: AwareDatetime
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    speed: Optional[float] = None
    activity_type: ActivityType = ActivityType.STILL
    reliable: bool = True
    trigger: FixTrigger = FixTrigger.WATCH


class DutyEventKind(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class DutyEvent(BaseModel):
    """A check-in or check-out record."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    timestamp: AwareDatetime
    kind: DutyEventKind
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_id: Optional[str] = Field(
        default=None, description="Registered named location the event was logged at"
    )

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class StopCluster(BaseModel):
    """A stationary period inside a day of samples."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    start_time: AwareDatetime
    end_time: AwareDatetime
    latitude: float = Field(description="Latitude of the first sample in the cluster")
    longitude: float = Field(description="Longitude of the first sample in the cluster")
    duration_minutes: float
    sample_count: int = Field(default=0, description="Samples inside the cluster")


class IntervalType(str, Enum):
    WORK = "work"
    TRAVEL = "travel"


class TimelineInterval(BaseModel):
    """A labeled span of a reconstructed duty day."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    type: IntervalType
    start_time: AwareDatetime
    end_time: Optional[AwareDatetime] = Field(
        default=None, description="None while the session is still in progress"
    )
    duration_minutes: float = 0.0
    distance_km: Optional[float] = Field(default=None, description="Travel intervals only")
    location_id: Optional[str] = Field(
        default=None, description="Work intervals only, None when unresolved"
    )
    stop_count: int = Field(default=0, description="Stops detected inside a travel gap")

    @property
    def in_progress(self) -> bool:
        return self.end_time is None


class TimelineTotals(BaseModel):
    """Aggregates over a day's intervals."""

    work_minutes: float = 0.0
    travel_minutes: float = 0.0
    travel_km: float = 0.0
    work_sessions: int = 0
    in_progress_sessions: int = 0


class DailyTimeline(BaseModel):
    """Reconstructed timeline for one subject and one local day."""

    subject_id: str
    day: date
    intervals: List[TimelineInterval] = Field(default_factory=list)
    totals: TimelineTotals = Field(default_factory=TimelineTotals)


class CheckpointStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Checkpoint(BaseModel):
    """A registered circular geofence."""

    model_config = ConfigDict(frozen=True)

    id: str
    site_id: Optional[str] = None
    name: str
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    radius_meters: float = Field(gt=0, description="Geofence radius in meters")
    status: CheckpointStatus = CheckpointStatus.ACTIVE
    questions: List[str] = Field(
        default_factory=list, description="Verification questions asked after a scan"
    )

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)

    @property
    def is_active(self) -> bool:
        return self.status == CheckpointStatus.ACTIVE


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    OUT_OF_RANGE = "out_of_range"
    CHECKPOINT_NOT_FOUND = "checkpoint_not_found"
    CHECKPOINT_INACTIVE = "checkpoint_inactive"


class VerificationVerdict(BaseModel):
    """Outcome of checking a reported position against a checkpoint."""

    status: VerificationStatus
    checkpoint_id: str
    distance_meters: Optional[float] = Field(
        default=None, description="Measured distance to the checkpoint center"
    )
    radius_meters: Optional[float] = None
    questions: List[str] = Field(default_factory=list)

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @property
    def message(self) -> str:
        """User-facing guidance for the verdict."""
        if self.status == VerificationStatus.VERIFIED:
            return "Location verified."
        if self.status == VerificationStatus.OUT_OF_RANGE:
            return (
                f"Location mismatch. You are {round(self.distance_meters or 0)}m away. "
                f"Allowed: {round(self.radius_meters or 0)}m."
            )
        if self.status == VerificationStatus.CHECKPOINT_INACTIVE:
            return "This checkpoint is inactive."
        return "Invalid or unknown checkpoint."


class IngestOutcome(str, Enum):
    ACCEPTED = "accepted"
    SUPPRESSED = "suppressed"


class SuppressionReason(str, Enum):
    THROTTLED = "throttled"
    TOO_CLOSE = "too_close"


class IngestResult(BaseModel):
    """Result of offering a raw fix to the ingestor."""

    outcome: IngestOutcome
    sample: Optional[PositionSample] = None
    reason: Optional[SuppressionReason] = None
    distance_meters: Optional[float] = Field(
        default=None, description="Distance from the last accepted sample"
    )

    @property
    def accepted(self) -> bool:
        return self.outcome == IngestOutcome.ACCEPTED


class WatchOptions(BaseModel):
    """Options handed to a position source watch subscription."""

    enable_high_accuracy: bool = True
    maximum_age_seconds: float = 30.0
    timeout_seconds: Optional[float] = None
