"""Data access layer repositories.

Each repository module provides async functions for database operations.
All code uses SQLAlchemy ORM models from `app.database.orm` with the
`get_session()` context manager.

ORM-based repositories:
- holdings_orm: latest holdings upload (read-only)
- reference_orm: reference metrics, benchmarks, index and score weightings
- snapshots_orm: daily NAV snapshots with atomic upsert
"""
