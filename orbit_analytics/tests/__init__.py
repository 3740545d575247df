'''
ORbit Analytics Test Suite

Test Modules:
-------------
- test_financial_impact.py: Config resolution, rounding, compact dollar strings
- test_insights_engine.py: Each insight generator, ranking and truncation
- test_data_quality.py: Issue lifecycle, summary score, milestone rules
- test_stale_case_detection.py: Stale rules and idempotent issue creation
- test_detection_job.py: Nightly job totals, facility isolation, Slack digest
- test_api.py: HTTP endpoints with dependency overrides
- test_database.py: asyncpg pool lifecycle

Running Tests:
--------------
    pip install -e ".[test]"
    pytest orbit_analytics/tests -v

No database is needed: conftest.py provides FakeConnection, an in-memory
stand-in for the asyncpg connection.
'''

__all__ = []
