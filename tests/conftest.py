"""
Pytest Configuration and Fixtures for the Progression Engine Tests
==================================================================

Purpose
-------
Centralized fixtures for the progression test suite: a fixed clock, the
in-memory record store, service instances wired the way the service
container wires them, domain value factories, and a PostgreSQL
testcontainer for the integration tests.

Architecture Notes
------------------
- Unit tests run against `InMemoryRecordStore` and a mocked event bus
- Integration tests use testcontainers (real PostgreSQL via asyncpg)
- Every service gets the same fixed clock so "now" is deterministic
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Dict, Generator, Optional

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from src.core.config.config import Config
from src.core.logging.logger import get_logger
from src.domain.models.activity import ActivityRecord
from src.domain.models.enums import ActivityKind, StatKind
from src.domain.models.profile import UserProfile
from src.domain.models.settings import ProgressionSettings
from src.modules.backup.service import BackupService
from src.modules.decay.service import DecayService
from src.modules.history.service import ActivityHistoryService
from src.modules.lifecycle.service import LifecycleService
from src.modules.maintenance.integrity_service import DataIntegrityService
from src.modules.maintenance.migration_service import ActivityMigrationService
from src.modules.maintenance.reset_service import DataResetService
from src.modules.profile.service import ProfileService
from src.modules.progression.memory_store import InMemoryRecordStore
from src.modules.progression.service import ProgressionService
from src.modules.shared.balance import BalanceConfig

logger = get_logger(__name__)

# Monday 2026-10-12, mid-day so day boundaries stay clear of test offsets
FIXED_NOW = datetime(2026, 10, 12, 12, 0, tzinfo=timezone.utc)
PROFILE_ID = "profile-1"

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Run with the testing environment (NullPool, DEBUG logs)."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"
    Config.load()


# ============================================================================
# CLOCK / CONFIG FIXTURES
# ============================================================================


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now) -> Callable[[], datetime]:
    """Clock returning the fixed test time."""
    return lambda: now


@pytest.fixture
def balance() -> BalanceConfig:
    return BalanceConfig()


@pytest.fixture
def test_logger() -> logging.Logger:
    return get_logger("tests.services")


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that assert on published events
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


def published_events(mock_bus) -> list[str]:
    """Event names published on a mocked bus, in order."""
    return [call.args[0] for call in mock_bus.publish.await_args_list]


def published_payload(mock_bus, event_name: str) -> Optional[dict]:
    for call in mock_bus.publish.await_args_list:
        if call.args[0] == event_name:
            return call.args[1]
    return None


# ============================================================================
# DOMAIN FACTORIES
# ============================================================================


@pytest.fixture
def make_profile(now) -> Callable[..., UserProfile]:
    """
    Factory for profiles.

    Usage:
        profile = make_profile(level=3, current_exp=100.0)
    """

    def _make(
        profile_id: str = PROFILE_ID,
        *,
        stats: Optional[Dict[StatKind, float]] = None,
        **changes,
    ) -> UserProfile:
        profile = UserProfile.create_default(profile_id, "Tester", now=now - timedelta(days=30))
        if stats is not None:
            merged = dict(profile.stats)
            merged.update(stats)
            changes["stats"] = merged
        return profile.replace(**changes) if changes else profile

    return _make


@pytest.fixture
def make_record(now) -> Callable[..., ActivityRecord]:
    """
    Factory for activity records.

    Usage:
        record = make_record(kind=ActivityKind.MEDITATION, duration_minutes=30)
    """
    counter = {"value": 0}

    def _make(
        *,
        record_id: Optional[str] = None,
        kind: ActivityKind = ActivityKind.STUDY_SERIOUS,
        duration_minutes: int = 60,
        timestamp: Optional[datetime] = None,
        exp_gained: Optional[float] = None,
        stat_gains: Optional[Dict[StatKind, float]] = None,
        notes: Optional[str] = None,
    ) -> ActivityRecord:
        counter["value"] += 1
        return ActivityRecord(
            id=record_id or f"activity-{counter['value']}",
            kind=kind,
            duration_minutes=duration_minutes,
            timestamp=timestamp or now - timedelta(hours=1),
            exp_gained=float(duration_minutes) if exp_gained is None else exp_gained,
            stat_gains=stat_gains if stat_gains is not None else {},
            notes=notes,
        )

    return _make


# ============================================================================
# STORE / SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest_asyncio.fixture
async def stored_profile(store, make_profile) -> UserProfile:
    """A default profile persisted in the in-memory store."""
    profile = make_profile()
    await store.put_profile(profile)
    await store.put_settings(profile.id, ProgressionSettings.default())
    return profile


def _service_args(store, mock_event_bus, test_logger):
    return (store, Config, mock_event_bus, test_logger)


@pytest.fixture
def progression_service(store, mock_event_bus, test_logger, balance, clock):
    return ProgressionService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def profile_service(store, mock_event_bus, test_logger, balance, clock):
    return ProfileService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def decay_service(store, mock_event_bus, test_logger, balance, clock):
    return DecayService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def lifecycle_service(decay_service, mock_event_bus, test_logger, clock):
    return LifecycleService(decay_service, Config, mock_event_bus, test_logger, clock=clock)


@pytest.fixture
def history_service(store, mock_event_bus, test_logger, balance, clock):
    return ActivityHistoryService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def backup_service(store, mock_event_bus, test_logger, balance, clock):
    return BackupService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def migration_service(store, mock_event_bus, test_logger, balance, clock):
    return ActivityMigrationService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def integrity_service(store, mock_event_bus, test_logger, balance, clock):
    return DataIntegrityService(
        *_service_args(store, mock_event_bus, test_logger), balance=balance, clock=clock
    )


@pytest.fixture
def reset_service(store, mock_event_bus, test_logger, clock):
    return DataResetService(*_service_args(store, mock_event_bus, test_logger), clock=clock)


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Uses: Integration tests that need real database
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_container) -> AsyncGenerator[type, None]:
    """
    DatabaseService bound to the testcontainer with a fresh schema.

    Scope: function (schema is dropped after each test for a clean slate)
    """
    # Registers the ORM tables on Base.metadata
    import src.database.models  # noqa: F401
    from src.core.database.service import DatabaseService

    await DatabaseService.initialize(postgres_container.get_connection_url())
    await DatabaseService.create_schema()

    yield DatabaseService

    await DatabaseService.drop_schema()
    await DatabaseService.shutdown()
