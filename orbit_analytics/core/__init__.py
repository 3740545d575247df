"""
Core infrastructure package for the ORbit analytics backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities

Re-exports key components for convenient importing:

    from orbit_analytics.core import get_settings, get_db_pool, DBSessionDep
"""

# =============================================================================
# Re-exports from orbit_analytics.core.config
# =============================================================================
from orbit_analytics.core.config import Settings, get_settings

# =============================================================================
# Re-exports from orbit_analytics.core.database
# =============================================================================
from orbit_analytics.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from orbit_analytics.core.dependencies
# =============================================================================
from orbit_analytics.core.dependencies import (
    get_db_session,
    get_settings_dependency,
    SettingsDep,
    DBSessionDep,
)

__all__ = [
    'Settings',
    'get_settings',
    'init_db',
    'close_db',
    'get_db_pool',
    'get_db_session',
    'get_settings_dependency',
    'SettingsDep',
    'DBSessionDep',
]
