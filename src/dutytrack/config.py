"""
Configuration for the field-activity engine
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with DUTYTRACK_ prefix"""

    model_config = SettingsConfigDict(
        env_prefix="DUTYTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Service identification
    service_name: str = Field(
        default="dutytrack", description="Name of the service for logging"
    )
    environment: str = Field(
        default="development", description="Deployment environment"
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json", description="Log format: json or console"
    )

    # Day boundaries for daily timelines
    timezone: str = Field(
        default="UTC", description="IANA timezone used to cut daily windows"
    )

    # Sample ingestion
    min_distance_meters: float = Field(
        default=50.0, gt=0, description="Movement fixes closer than this are suppressed"
    )
    heartbeat_interval_seconds: float = Field(
        default=300.0, gt=0, description="Guaranteed fix interval while stationary"
    )
    watch_throttle_seconds: float = Field(
        default=30.0, ge=0, description="At most one movement fix per window"
    )
    position_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for a single position fix attempt"
    )
    accuracy_ceiling_meters: float = Field(
        default=50.0, gt=0, description="Samples less accurate than this are unreliable"
    )
    walking_speed_mps: float = Field(
        default=1.0, ge=0, description="Speed at which a subject counts as walking"
    )
    vehicle_speed_mps: float = Field(
        default=5.0, ge=0, description="Speed at which a subject counts as in a vehicle"
    )
    watch_high_accuracy: bool = Field(
        default=True, description="Request high accuracy fixes from the watch"
    )
    watch_maximum_age_seconds: float = Field(
        default=30.0, ge=0, description="Maximum age of a cached fix the watch accepts"
    )

    # Stop detection
    stop_movement_threshold_meters: float = Field(
        default=100.0, gt=0, description="Distance that ends a stationary cluster"
    )
    min_stop_minutes: float = Field(
        default=5.0, ge=0, description="Minimum dwell for a stop"
    )

    # Geofence verification
    geofence_tolerance_meters: float = Field(
        default=0.0, ge=0, description="Extra distance allowed beyond a checkpoint radius"
    )

    # Metrics configuration
    metrics_enabled: bool = Field(
        default=True, description="Expose Prometheus metrics endpoint"
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names unknown to this system"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v!r}") from exc
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


settings = Settings()
