"""
Unit tests for the maintenance services: legacy migration, integrity
check/repair and full reset.
"""

import math
from datetime import timedelta

import pytest

from src.domain.models.enums import ActivityKind, StatKind
from src.domain.models.settings import ProgressionSettings
from src.modules.maintenance.integrity_service import IssueKind, IssueSeverity
from src.modules.shared.exceptions import (
    CriticalInconsistencyError,
    NotFoundError,
    PersistenceError,
)
from tests.conftest import PROFILE_ID, published_events


@pytest.mark.asyncio
class TestActivityMigration:
    """Test backfilling stat gains on legacy records."""

    async def test_status_counts_legacy_records(self, migration_service, store, make_record):
        await store.put_activity(PROFILE_ID, make_record())
        await store.put_activity(PROFILE_ID, make_record(stat_gains={StatKind.FOCUS: 0.1}))

        status = await migration_service.get_migration_status(PROFILE_ID)

        assert status.total_activities == 2
        assert status.legacy_activities == 1
        assert status.migrated_activities == 1
        assert status.needs_migration is True
        assert await migration_service.needs_migration(PROFILE_ID) is True

    async def test_migrate_rewrites_only_legacy(
        self, migration_service, store, make_record, mock_event_bus
    ):
        # Arrange
        legacy = make_record(kind=ActivityKind.WORKOUT_WEIGHTS, duration_minutes=60)
        captured = make_record(stat_gains={StatKind.INTELLIGENCE: 0.5})
        await store.put_activity(PROFILE_ID, legacy)
        await store.put_activity(PROFILE_ID, captured)

        # Act
        migrated = await migration_service.migrate(PROFILE_ID)

        # Assert
        assert migrated == 1
        saved = await store.get_activity(PROFILE_ID, legacy.id)
        assert saved.stat_gains == pytest.approx(
            {StatKind.STRENGTH: 0.06, StatKind.ENDURANCE: 0.04}
        )
        assert await store.get_activity(PROFILE_ID, captured.id) == captured
        assert await migration_service.needs_migration(PROFILE_ID) is False
        assert published_events(mock_event_bus) == ["activity.migrated"]

    async def test_nothing_to_migrate(self, migration_service, mock_event_bus):
        assert await migration_service.migrate(PROFILE_ID) == 0
        mock_event_bus.publish.assert_not_awaited()


class TestMigrateRecord:
    def test_migrate_record_uses_gain_table(self, migration_service, make_record):
        record = make_record(kind=ActivityKind.MEDITATION, duration_minutes=120)

        migrated = migration_service.migrate_record(record)

        assert migrated.stat_gains == pytest.approx({StatKind.FOCUS: 0.10})
        assert migrated.id == record.id
        assert migrated.exp_gained == record.exp_gained

    def test_migrated_record_left_alone(self, migration_service, make_record):
        record = make_record(stat_gains={StatKind.FOCUS: 0.7})

        assert migration_service.migrate_record(record) is record


@pytest.mark.asyncio
class TestIntegrityCheck:
    """Test detection of corrupt stored data."""

    async def test_healthy_profile(self, integrity_service, stored_profile, store, make_record):
        await store.put_activity(PROFILE_ID, make_record(stat_gains={StatKind.FOCUS: 0.1}))

        report = await integrity_service.check(PROFILE_ID)

        assert report.is_healthy is True
        assert report.summary() == {}

    async def test_missing_profile_is_critical(self, integrity_service):
        report = await integrity_service.check(PROFILE_ID)

        assert report.has_critical_issues is True
        assert report.issues[0].kind is IssueKind.MISSING_DATA

    async def test_profile_issues(self, integrity_service, store, make_profile, now):
        # Arrange
        await store.put_profile(
            make_profile(
                level=0,
                current_exp=math.nan,
                stats={StatKind.FOCUS: 0.5, StatKind.CHARISMA: 5e6},
                last_activity={ActivityKind.MEDITATION: now + timedelta(days=1)},
            )
        )

        # Act
        report = await integrity_service.check(PROFILE_ID)

        # Assert
        affected = {issue.affected for issue in report.issues}
        assert affected == {
            "profile.level",
            "profile.current_exp",
            "profile.stats.focus",
            "profile.stats.charisma",
            "profile.last_activity.meditation",
        }
        assert report.summary()[IssueSeverity.HIGH] == 2

    async def test_activity_issues(
        self, integrity_service, stored_profile, store, make_record, now
    ):
        # Arrange
        await store.put_activity(
            PROFILE_ID,
            make_record(
                record_id="bad",
                duration_minutes=0,
                exp_gained=-3.0,
                timestamp=now + timedelta(days=2),
                stat_gains={StatKind.FOCUS: math.inf},
            ),
        )

        # Act
        report = await integrity_service.check(PROFILE_ID)

        # Assert
        assert len(report.issues) == 4
        assert all(issue.affected == "activity.bad" for issue in report.issues)

    async def test_duplicate_ids(
        self, integrity_service, stored_profile, store, make_record, mocker
    ):
        record = make_record(record_id="twice", stat_gains={StatKind.FOCUS: 0.1})
        mocker.patch.object(store, "list_activities", return_value=[record, record])

        report = await integrity_service.check(PROFILE_ID)

        assert [issue.kind for issue in report.issues] == [IssueKind.DUPLICATE_DATA]
        assert "twice" in report.issues[0].description


@pytest.mark.asyncio
class TestIntegrityRepair:
    async def test_repairs_profile(self, integrity_service, store, make_profile):
        # Arrange
        await store.put_profile(
            make_profile(level=-2, current_exp=-10.0, stats={StatKind.AGILITY: math.nan})
        )

        # Act
        fixes = await integrity_service.repair(PROFILE_ID)

        # Assert
        assert fixes == [
            "Reset user level to minimum value (1)",
            "Reset user EXP to 0",
            "Reset invalid stats to minimum value (1.0)",
        ]
        repaired = await store.get_profile(PROFILE_ID)
        assert repaired.level == 1
        assert repaired.current_exp == 0.0
        assert repaired.stats[StatKind.AGILITY] == 1.0
        assert (await integrity_service.check(PROFILE_ID)).is_healthy

    async def test_healthy_profile_untouched(self, integrity_service, stored_profile, store):
        assert await integrity_service.repair(PROFILE_ID) == []
        assert await store.get_profile(PROFILE_ID) == stored_profile

    async def test_missing_profile(self, integrity_service):
        with pytest.raises(NotFoundError):
            await integrity_service.repair(PROFILE_ID)


@pytest.mark.asyncio
class TestDataReset:
    """Test full reset with rollback."""

    @pytest.fixture
    def progressed(self, make_profile, make_record):
        profile = make_profile(
            level=5,
            current_exp=321.0,
            stats={StatKind.STRENGTH: 3.5},
            has_completed_onboarding=True,
        )
        return profile, [make_record(), make_record(kind=ActivityKind.MEDITATION)]

    async def _store_progressed(self, store, progressed):
        profile, records = progressed
        await store.put_profile(profile)
        for record in records:
            await store.put_activity(PROFILE_ID, record)
        await store.put_settings(PROFILE_ID, ProgressionSettings(relaxed_weekend_mode=True))

    async def test_reset_all(self, reset_service, store, progressed, now, mock_event_bus):
        # Arrange
        await self._store_progressed(store, progressed)

        # Act
        result = await reset_service.reset_all(PROFILE_ID)

        # Assert
        assert result.cleared_activities == 2
        assert result.profile.level == 1
        assert result.profile.current_exp == 0.0
        assert result.profile.stats == {stat: 1.0 for stat in StatKind}
        assert result.profile.name == progressed[0].name
        assert result.profile.created_at == now
        assert await store.list_activities(PROFILE_ID) == []
        assert await store.get_settings(PROFILE_ID) == ProgressionSettings.default()
        assert published_events(mock_event_bus) == ["profile.reset"]

    async def test_failed_reset_restores_previous_data(
        self, reset_service, store, progressed, mocker, mock_event_bus
    ):
        # Arrange
        await self._store_progressed(store, progressed)
        mocker.patch.object(
            store,
            "put_settings",
            side_effect=[PersistenceError("put_settings", "disk full"), None],
        )

        # Act
        with pytest.raises(PersistenceError):
            await reset_service.reset_all(PROFILE_ID)

        # Assert
        profile, records = progressed
        assert await store.get_profile(PROFILE_ID) == profile
        assert {r.id for r in await store.list_activities(PROFILE_ID)} == {
            r.id for r in records
        }
        mock_event_bus.publish.assert_not_awaited()

    async def test_store_timeout_restores_previous_data(
        self, reset_service, store, progressed, mocker
    ):
        await self._store_progressed(store, progressed)
        mocker.patch.object(
            store, "put_settings", side_effect=[TimeoutError("store timed out"), None]
        )

        with pytest.raises(PersistenceError) as exc_info:
            await reset_service.reset_all(PROFILE_ID)

        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert await store.get_profile(PROFILE_ID) == progressed[0]
        assert len(await store.list_activities(PROFILE_ID)) == 2

    async def test_failed_restore_is_critical(self, reset_service, store, progressed, mocker):
        await self._store_progressed(store, progressed)
        mocker.patch.object(
            store, "put_settings", side_effect=PersistenceError("put_settings", "disk full")
        )

        with pytest.raises(CriticalInconsistencyError):
            await reset_service.reset_all(PROFILE_ID)

    async def test_missing_profile(self, reset_service):
        with pytest.raises(NotFoundError):
            await reset_service.reset_all(PROFILE_ID)
