"""
Integration tests for SqlRecordStore and the services running over it.

Uses a real PostgreSQL started with testcontainers; the `database`
fixture creates and drops the schema around each test.
"""

from datetime import timedelta

import pytest

from src.core.config.config import Config
from src.domain.models.enums import ActivityKind, StatKind
from src.domain.models.settings import ProgressionSettings
from src.modules.progression.service import ProgressionService
from src.modules.progression.sql_store import SqlRecordStore
from src.modules.shared.exceptions import PersistenceError
from src.modules.shared.record_store import ActivityFilter
from tests.conftest import PROFILE_ID


@pytest.fixture
def sql_store(database):
    return SqlRecordStore(database)


@pytest.mark.integration
@pytest.mark.database
class TestSqlProfiles:
    async def test_profile_round_trip(self, sql_store, make_profile, now):
        # Arrange
        profile = make_profile(
            level=4,
            current_exp=12.25,
            stats={StatKind.FOCUS: 2.5},
            last_activity={ActivityKind.MEDITATION: now - timedelta(days=1)},
            last_decay_at=now,
            has_completed_onboarding=True,
        )

        # Act
        await sql_store.put_profile(profile)
        loaded = await sql_store.get_profile(PROFILE_ID)

        # Assert
        assert loaded == profile

    async def test_put_profile_updates_existing(self, sql_store, make_profile):
        await sql_store.put_profile(make_profile())

        await sql_store.put_profile(make_profile(level=7))

        assert (await sql_store.get_profile(PROFILE_ID)).level == 7

    async def test_missing_profile(self, sql_store):
        assert await sql_store.get_profile("nobody") is None

    async def test_settings_round_trip(self, sql_store, make_profile, now):
        await sql_store.put_profile(make_profile())
        settings = ProgressionSettings(relaxed_weekend_mode=True, last_backup_at=now).replace(
            enabled_activities=[ActivityKind.MEDITATION]
        )

        await sql_store.put_settings(PROFILE_ID, settings)

        assert await sql_store.get_settings(PROFILE_ID) == settings


@pytest.mark.integration
@pytest.mark.database
class TestSqlActivities:
    async def test_activity_round_trip(self, sql_store, make_profile, make_record):
        await sql_store.put_profile(make_profile())
        record = make_record(stat_gains={StatKind.INTELLIGENCE: 0.06}, notes="lecture")

        await sql_store.put_activity(PROFILE_ID, record)

        assert await sql_store.get_activity(PROFILE_ID, record.id) == record

    async def test_activity_of_other_profile_hidden(self, sql_store, make_profile, make_record):
        await sql_store.put_profile(make_profile())
        record = make_record()
        await sql_store.put_activity(PROFILE_ID, record)

        assert await sql_store.get_activity("someone-else", record.id) is None

    async def test_list_filters_and_orders(self, sql_store, make_profile, make_record, now):
        # Arrange
        await sql_store.put_profile(make_profile())
        old = make_record(kind=ActivityKind.MEDITATION, timestamp=now - timedelta(days=3))
        new = make_record(kind=ActivityKind.MEDITATION, timestamp=now - timedelta(hours=2))
        other = make_record(kind=ActivityKind.SOCIALIZING, timestamp=now - timedelta(hours=1))
        for record in (old, new, other):
            await sql_store.put_activity(PROFILE_ID, record)

        # Act
        meditation = await sql_store.list_activities(
            PROFILE_ID, ActivityFilter.for_kinds([ActivityKind.MEDITATION])
        )
        recent = await sql_store.list_activities(
            PROFILE_ID, ActivityFilter(since=now - timedelta(days=1), newest_first=False)
        )

        # Assert
        assert [r.id for r in meditation] == [new.id, old.id]
        assert [r.id for r in recent] == [new.id, other.id]

    async def test_delete_activity(self, sql_store, make_profile, make_record):
        await sql_store.put_profile(make_profile())
        record = make_record()
        await sql_store.put_activity(PROFILE_ID, record)

        assert await sql_store.delete_activity(PROFILE_ID, record.id) is True
        assert await sql_store.delete_activity(PROFILE_ID, record.id) is False

    async def test_delete_all_activities(self, sql_store, make_profile, make_record):
        await sql_store.put_profile(make_profile())
        for _ in range(3):
            await sql_store.put_activity(PROFILE_ID, make_record())

        assert await sql_store.delete_all_activities(PROFILE_ID) == 3
        assert await sql_store.list_activities(PROFILE_ID) == []

    async def test_activity_without_profile_is_persistence_error(self, sql_store, make_record):
        with pytest.raises(PersistenceError) as exc_info:
            await sql_store.put_activity(PROFILE_ID, make_record())

        assert exc_info.value.is_retryable is True


@pytest.mark.integration
@pytest.mark.database
class TestProgressionOverSql:
    """The full log/delete transaction against PostgreSQL."""

    async def test_log_then_delete(
        self, sql_store, make_profile, mock_event_bus, test_logger, balance, clock
    ):
        # Arrange
        profile = make_profile()
        await sql_store.put_profile(profile)
        service = ProgressionService(
            sql_store, Config, mock_event_bus, test_logger, balance=balance, clock=clock
        )

        # Act
        logged = await service.log_activity(PROFILE_ID, ActivityKind.STUDY_SERIOUS, 90)
        stored = await sql_store.get_activity(PROFILE_ID, logged.record.id)
        deleted = await service.delete_activity(PROFILE_ID, logged.record.id)

        # Assert
        assert stored == logged.record
        assert deleted.profile.level == profile.level
        assert deleted.profile.current_exp == pytest.approx(0.0)
        assert await sql_store.get_profile(PROFILE_ID) == deleted.profile
        assert await sql_store.list_activities(PROFILE_ID) == []
