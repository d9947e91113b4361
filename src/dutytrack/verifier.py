"""Geofence verification for patrol scans and check-in/out actions"""
from typing import Optional

import structlog

from .config import Settings, settings as default_settings
from .errors import DataRetrievalError
from .geo import distance_meters
from .interfaces import CheckpointRegistry
from .metrics import retrieval_errors, verifications
from .models import (
    CheckpointStatus,
    GeoPoint,
    VerificationStatus,
    VerificationVerdict,
)

logger = structlog.get_logger(__name__)


class GeofenceVerifier:
    """Checks a reported position against a registered checkpoint.

    Has no side effects beyond logging and metrics, so it is safe to call
    speculatively and repeatedly.
    """

    def __init__(
        self, registry: CheckpointRegistry, settings: Optional[Settings] = None
    ):
        self.registry = registry
        self.settings = settings or default_settings

    async def verify(
        self, position: GeoPoint, checkpoint_id: str
    ) -> VerificationVerdict:
        """Verify a position against a checkpoint"""
        try:
            checkpoint = await self.registry.get_by_id(checkpoint_id)
        except Exception as e:
            retrieval_errors.labels(store="checkpoint").inc()
            logger.error(
                "Failed to load checkpoint",
                checkpoint_id=checkpoint_id,
                error=str(e),
            )
            raise DataRetrievalError("checkpoint", detail=str(e)) from e

        if checkpoint is None:
            verdict = VerificationVerdict(
                status=VerificationStatus.CHECKPOINT_NOT_FOUND,
                checkpoint_id=checkpoint_id,
            )
        elif checkpoint.status != CheckpointStatus.ACTIVE:
            verdict = VerificationVerdict(
                status=VerificationStatus.CHECKPOINT_INACTIVE,
                checkpoint_id=checkpoint_id,
                radius_meters=checkpoint.radius_meters,
            )
        else:
            distance = distance_meters(position, checkpoint)
            allowed = checkpoint.radius_meters + self.settings.geofence_tolerance_meters

            if distance > allowed:
                verdict = VerificationVerdict(
                    status=VerificationStatus.OUT_OF_RANGE,
                    checkpoint_id=checkpoint_id,
                    distance_meters=round(distance, 2),
                    radius_meters=checkpoint.radius_meters,
                )
            else:
                verdict = VerificationVerdict(
                    status=VerificationStatus.VERIFIED,
                    checkpoint_id=checkpoint_id,
                    distance_meters=round(distance, 2),
                    radius_meters=checkpoint.radius_meters,
                    questions=list(checkpoint.questions),
                )

        verifications.labels(status=verdict.status.value).inc()
        logger.info(
            "Checkpoint verification",
            checkpoint_id=checkpoint_id,
            status=verdict.status.value,
            distance_meters=verdict.distance_meters,
            radius_meters=verdict.radius_meters,
        )
        return verdict
