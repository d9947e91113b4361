"""REST endpoints exposing timelines, stops, exports and checkpoint verification."""

import re
from datetime import date
from typing import Dict, List
from urllib.parse import quote

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .errors import DataRetrievalError, StorageUnavailable
from .logging import setup_logging
from .models import (
    DailyTimeline,
    FixTrigger,
    GeoPoint,
    IngestResult,
    RawFix,
    StopCluster,
    VerificationVerdict,
)
from .service import FieldActivityService

logger = structlog.get_logger(__name__)

CSV_MEDIA_TYPE = "text/csv"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and an RFC 5987 UTF-8 name."""
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


def _unavailable(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": str(e), "retryable": True},
    )


def create_router(service: FieldActivityService) -> APIRouter:
    """
    Create a router bound to a service instance

    Args:
        service: Engine facade answering every route

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["field-activity"])

    @router.post(
        "/subjects/{subject_id}/fixes",
        response_model=IngestResult,
        status_code=status.HTTP_201_CREATED,
    )
    async def ingest_fix(
        subject_id: str, fix: RawFix, trigger: FixTrigger = FixTrigger.WATCH
    ) -> IngestResult:
        """Offer a raw fix to the ingestor."""
        try:
            return await service.ingest_fix(subject_id, fix, trigger)
        except StorageUnavailable as e:
            logger.error("Failed to ingest fix", subject_id=subject_id, error=str(e))
            raise _unavailable(e) from e

    @router.get("/subjects/{subject_id}/timeline/{day}", response_model=DailyTimeline)
    async def get_timeline(subject_id: str, day: date) -> DailyTimeline:
        try:
            return await service.get_daily_timeline(subject_id, day)
        except DataRetrievalError as e:
            raise _unavailable(e) from e

    @router.get("/subjects/{subject_id}/timeline/{day}/export")
    async def export_timeline(subject_id: str, day: date) -> Response:
        try:
            content = await service.export_daily_timeline(subject_id, day)
        except DataRetrievalError as e:
            raise _unavailable(e) from e
        return Response(
            content=content,
            media_type=CSV_MEDIA_TYPE,
            headers={
                "Content-Disposition": content_disposition(f"{subject_id}_timeline_{day}.csv")
            },
        )

    @router.get("/subjects/{subject_id}/stops/{day}", response_model=List[StopCluster])
    async def get_stops(subject_id: str, day: date) -> List[StopCluster]:
        try:
            return await service.get_stops(subject_id, day)
        except DataRetrievalError as e:
            raise _unavailable(e) from e

    @router.get("/subjects/{subject_id}/locations/{day}/export")
    async def export_locations(subject_id: str, day: date) -> Response:
        try:
            content = await service.export_location_history(subject_id, day)
        except DataRetrievalError as e:
            raise _unavailable(e) from e
        return Response(
            content=content,
            media_type=CSV_MEDIA_TYPE,
            headers={
                "Content-Disposition": content_disposition(
                    f"{subject_id}_location_history_{day}.csv"
                )
            },
        )

    @router.post(
        "/checkpoints/{checkpoint_id}/verify", response_model=VerificationVerdict
    )
    async def verify_checkpoint(
        checkpoint_id: str, position: GeoPoint
    ) -> VerificationVerdict:
        """Every verdict is a 200; callers branch on ``status``."""
        try:
            return await service.verify_checkpoint(position, checkpoint_id)
        except DataRetrievalError as e:
            raise _unavailable(e) from e

    return router


def create_app(service: FieldActivityService) -> FastAPI:
    """Build an application around a service instance."""
    setup_logging(settings=service.settings)
    app = FastAPI(title="dutytrack", description="Field-activity timeline engine")
    app.include_router(create_router(service))

    @app.get("/healthz", tags=["health"])
    async def liveness() -> Dict[str, str]:
        return {"status": "ok"}

    if service.settings.metrics_enabled:

        @app.get("/metrics", tags=["health"])
        async def metrics() -> Response:
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
