"""Global test configuration and fixtures."""

import pytest

from dutytrack.config import Settings
from dutytrack.memory import (
    InMemoryCheckpointRegistry,
    InMemoryEventStore,
    InMemorySampleStore,
)
from dutytrack.models import Checkpoint, CheckpointStatus
from dutytrack.service import FieldActivityService
from tests.test_helpers import ORIGIN_LAT, ORIGIN_LON, north_of


@pytest.fixture()
def settings():
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture()
def sample_store():
    return InMemorySampleStore()


@pytest.fixture()
def event_store():
    return InMemoryEventStore()


@pytest.fixture()
def gate_checkpoint():
    return Checkpoint(
        id="cp-gate",
        site_id="site-1",
        name="Main Gate",
        latitude=ORIGIN_LAT,
        longitude=ORIGIN_LON,
        radius_meters=50.0,
        questions=["Is the gate locked?", "Are the lights on?"],
    )


@pytest.fixture()
def store_room_checkpoint():
    return Checkpoint(
        id="cp-store",
        site_id="site-1",
        name="Store Room",
        latitude=north_of(2000),
        longitude=ORIGIN_LON,
        radius_meters=100.0,
        status=CheckpointStatus.INACTIVE,
    )


@pytest.fixture()
def registry(gate_checkpoint, store_room_checkpoint):
    return InMemoryCheckpointRegistry([gate_checkpoint, store_room_checkpoint])


@pytest.fixture()
def service(sample_store, event_store, registry, settings):
    return FieldActivityService(sample_store, event_store, registry, settings)
