"""
FastAPI dependency injection for the ORbit analytics backend.

Key Dependencies Provided:
- get_db_session: Async generator yielding a pooled asyncpg connection
- get_settings_dependency: Returns the cached Settings singleton
- SettingsDep: Type alias for injecting Settings into endpoints
- DBSessionDep: Type alias for injecting database connections into endpoints

Usage Examples:
    @router.get("/{facility_id}/summary")
    async def get_summary(facility_id: str, db: DBSessionDep) -> DataQualitySummary:
        return await calculate_data_quality_summary(db, facility_id)

In tests, override either dependency:

    app.dependency_overrides[get_db_session] = lambda: fake_connection
"""

from typing import Annotated, AsyncGenerator

from asyncpg import Connection
from fastapi import Depends

from orbit_analytics.core.config import Settings, get_settings
from orbit_analytics.core.database import get_db_pool


# =============================================================================
# Database Session Dependency
# =============================================================================

async def get_db_session() -> AsyncGenerator[Connection, None]:
    """
    Yield an async database connection from the pool.

    The connection is released back to the pool when the endpoint completes,
    whether or not it raised.

    Yields:
        asyncpg.Connection: An active database connection.

    Raises:
        asyncpg.PostgresError: If connection acquisition fails.
    """
    pool = await get_db_pool()
    async with pool.acquire() as connection:
        yield connection


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    A thin wrapper around get_settings() so tests can use
    app.dependency_overrides[get_settings_dependency].
    """
    return get_settings()


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

DBSessionDep = Annotated[Connection, Depends(get_db_session)]
