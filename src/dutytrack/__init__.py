"""
dutytrack - field-activity timeline and geofence engine
"""

__version__ = "0.1.0"

from dutytrack.config import Settings
from dutytrack.geo import distance_meters, is_within_geofence
from dutytrack.ingestor import SampleIngestor, TrackingSession
from dutytrack.service import FieldActivityService
from dutytrack.stops import StopDetector
from dutytrack.timeline import TimelineReconstructor, summarize
from dutytrack.verifier import GeofenceVerifier

__all__ = [
    "FieldActivityService",
    "GeofenceVerifier",
    "SampleIngestor",
    "Settings",
    "StopDetector",
    "TimelineReconstructor",
    "TrackingSession",
    "distance_meters",
    "is_within_geofence",
    "summarize",
]
