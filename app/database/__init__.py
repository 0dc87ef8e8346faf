"""Database module: SQLAlchemy async engine, sessions and ORM models."""

from .connection import (
    close_sqlalchemy_engine,
    get_async_database_url,
    get_engine,
    get_session,
    init_sqlalchemy_engine,
    ping_database,
)
from .orm import (
    Base,
    BenchmarkAssignment,
    BenchmarkMembership,
    Holding,
    IndexWeighting,
    PortfolioSnapshot,
    ReferenceMetrics,
    ScoreWeighting,
)


__all__ = [
    "init_sqlalchemy_engine",
    "close_sqlalchemy_engine",
    "get_session",
    "get_engine",
    "get_async_database_url",
    "ping_database",
    "Base",
    "Holding",
    "PortfolioSnapshot",
    "ReferenceMetrics",
    "BenchmarkAssignment",
    "BenchmarkMembership",
    "IndexWeighting",
    "ScoreWeighting",
]
