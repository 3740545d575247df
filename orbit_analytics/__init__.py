"""
ORbit Analytics Backend Package.

FastAPI service layer for surgical facility analytics: turns pre-aggregated
OR metrics into ranked, dollar-quantified insights, and detects and tracks
data-quality issues on case records.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Insight engine, financial impact, data-quality detection
    - jobs: Nightly data-quality detection job
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
