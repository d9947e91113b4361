"""In-memory collaborator stores for local development and tests."""

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from .models import Checkpoint, DutyEvent, PositionSample

logger = structlog.get_logger(__name__)


class InMemorySampleStore:
    """Sample store keeping every appended sample per subject."""

    def __init__(self, samples: Optional[Iterable[PositionSample]] = None) -> None:
        self._samples: Dict[str, List[PositionSample]] = defaultdict(list)
        self._lock = asyncio.Lock()
        for sample in samples or ():
            self._samples[sample.subject_id].append(sample)

    async def append(self, sample: PositionSample) -> None:
        async with self._lock:
            self._samples[sample.subject_id].append(sample)
        logger.debug(
            "Stored sample",
            subject_id=sample.subject_id,
            timestamp=sample.timestamp.isoformat(),
        )

    async def query(
        self, subject_id: str, start: datetime, end: datetime
    ) -> List[PositionSample]:
        samples = [
            s for s in self._samples.get(subject_id, []) if start <= s.timestamp < end
        ]
        return sorted(samples, key=lambda s: s.timestamp)

    def all(self, subject_id: str) -> List[PositionSample]:
        """Every stored sample for a subject, in append order."""
        return list(self._samples.get(subject_id, []))


class InMemoryEventStore:
    """Duty event store backed by a list."""

    def __init__(self, events: Optional[Iterable[DutyEvent]] = None) -> None:
        self._events: List[DutyEvent] = list(events or ())

    def add(self, event: DutyEvent) -> None:
        self._events.append(event)

    async def query(
        self, subject_id: str, start: datetime, end: datetime
    ) -> List[DutyEvent]:
        events = [
            e
            for e in self._events
            if e.subject_id == subject_id and start <= e.timestamp < end
        ]
        return sorted(events, key=lambda e: e.timestamp)


class InMemoryCheckpointRegistry:
    """Checkpoint registry keyed by checkpoint id."""

    def __init__(self, checkpoints: Optional[Iterable[Checkpoint]] = None) -> None:
        self._checkpoints: Dict[str, Checkpoint] = {
            cp.id: cp for cp in checkpoints or ()
        }

    def register(self, checkpoint: Checkpoint) -> None:
        self._checkpoints[checkpoint.id] = checkpoint

    async def get_by_id(self, checkpoint_id: str) -> Optional[Checkpoint]:
        return self._checkpoints.get(checkpoint_id)

    async def list_active(self) -> List[Checkpoint]:
        return [cp for cp in self._checkpoints.values() if cp.is_active]
