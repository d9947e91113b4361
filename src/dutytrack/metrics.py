"""Prometheus metrics for the field-activity engine"""
from prometheus_client import Counter, Histogram

# Counters
fixes_accepted = Counter(
    'dutytrack_fixes_accepted_total',
    'Raw fixes accepted and persisted as samples',
    ['activity_type']
)

fixes_suppressed = Counter(
    'dutytrack_fixes_suppressed_total',
    'Raw fixes suppressed by the ingestion gates',
    ['reason']
)

position_errors = Counter(
    'dutytrack_position_errors_total',
    'Failed attempts to acquire a position fix',
    ['kind']
)

retrieval_errors = Counter(
    'dutytrack_retrieval_errors_total',
    'Failed reads from a collaborator store',
    ['store']
)

stops_detected = Counter(
    'dutytrack_stops_detected_total',
    'Stop clusters emitted by the stop detector'
)

verifications = Counter(
    'dutytrack_checkpoint_verifications_total',
    'Checkpoint verifications by verdict',
    ['status']
)

# Histograms
reconstruction_duration = Histogram(
    'dutytrack_timeline_reconstruction_seconds',
    'Time spent building a daily timeline'
)
