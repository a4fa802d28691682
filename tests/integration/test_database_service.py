"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Test the engine lifecycle, schema creation and transaction handling
against a real PostgreSQL started with testcontainers.

Test Coverage
-------------
- Connection and health check
- Schema creation for the progression tables
- Transaction commit and rollback
- Errors before initialization

Testing Strategy
----------------
- Integration tests (uses testcontainers for real PostgreSQL)
- Each test gets a fresh schema through the `database` fixture
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select, text

from src.core.database.service import DatabaseNotInitializedError, DatabaseService
from src.database.models import ProgressionProfile


def _profile_row(profile_id: str) -> ProgressionProfile:
    return ProgressionProfile(
        id=profile_id,
        name="Tester",
        level=1,
        current_exp=0.0,
        stats={},
        last_activity={},
        last_active=datetime(2026, 10, 12, tzinfo=timezone.utc),
    )


# ============================================================================
# CONNECTION & SCHEMA
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseConnection:
    """Test database connection and schema."""

    async def test_health_check(self, database):
        assert await database.health_check() is True

    async def test_session_executes_queries(self, database):
        async with database.get_session() as session:
            result = await session.execute(text("SELECT 1 AS value"))
            row = result.fetchone()

        assert row is not None
        assert row.value == 1

    async def test_schema_created(self, database):
        # Arrange
        async with database.get_session() as session:
            # Act
            result = await session.execute(
                text(
                    """
                    SELECT table_name
                    FROM information_schema.tables
                    WHERE table_schema = 'public'
                    """
                )
            )
            tables = {row.table_name for row in result.fetchall()}

        # Assert
        assert {"progression_profiles", "activity_records", "progression_settings"} <= tables


# ============================================================================
# TRANSACTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseTransactions:
    """Test commit and rollback of get_transaction()."""

    async def test_transaction_commits(self, database):
        # Act
        async with database.get_transaction() as session:
            session.add(_profile_row("committed"))

        # Assert
        async with database.get_session() as session:
            found = await session.get(ProgressionProfile, "committed")
        assert found is not None
        assert found.created_at is not None

    async def test_transaction_rolls_back_on_error(self, database):
        # Act
        with pytest.raises(ValueError):
            async with database.get_transaction() as session:
                session.add(_profile_row("rolled-back"))
                await session.flush()
                raise ValueError("abort")

        # Assert
        async with database.get_session() as session:
            result = await session.execute(
                select(ProgressionProfile).where(ProgressionProfile.id == "rolled-back")
            )
        assert result.scalar_one_or_none() is None

    async def test_duplicate_primary_key_rejected(self, database):
        async with database.get_transaction() as session:
            session.add(_profile_row("dup"))

        with pytest.raises(Exception):  # IntegrityError
            async with database.get_transaction() as session:
                session.add(_profile_row("dup"))


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseLifecycle:
    async def test_use_before_initialize_fails(self):
        assert DatabaseService.is_initialized() is False

        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_transaction():
                pass

    async def test_initialize_is_idempotent(self, database, postgres_container):
        await database.initialize(postgres_container.get_connection_url())

        assert database.is_initialized() is True
        assert await database.health_check() is True
