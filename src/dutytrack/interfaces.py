"""Collaborator protocols consumed by the engine.

Stores answer half-open time ranges ``[start, end)``. The engine sorts
whatever it receives, so implementations need not guarantee ordering.
"""

from datetime import datetime
from typing import Callable, List, Optional, Protocol

from .models import Checkpoint, DutyEvent, PositionSample, RawFix, WatchOptions

CancelHandle = Callable[[], None]
FixCallback = Callable[[RawFix], None]


class SampleStore(Protocol):
    """Location-sample store."""

    async def append(self, sample: PositionSample) -> None: ...

    async def query(
        self, subject_id: str, start: datetime, end: datetime
    ) -> List[PositionSample]: ...


class EventStore(Protocol):
    """Duty event store."""

    async def query(
        self, subject_id: str, start: datetime, end: datetime
    ) -> List[DutyEvent]: ...


class CheckpointRegistry(Protocol):
    """Read-only view of registered checkpoints."""

    async def get_by_id(self, checkpoint_id: str) -> Optional[Checkpoint]: ...

    async def list_active(self) -> List[Checkpoint]: ...


class PositionSource(Protocol):
    """Raw device position source.

    ``get_current_fix`` raises PositionTimeout, SourceUnavailable or
    PositionPermissionDenied. ``watch`` delivers fixes to ``callback`` until
    the returned handle is called.
    """

    async def get_current_fix(self, timeout_seconds: float) -> RawFix: ...

    def watch(self, callback: FixCallback, options: WatchOptions) -> CancelHandle: ...
