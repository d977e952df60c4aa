"""
Database Package

SQLAlchemy models and connection management.
"""

from database.connection import (
    create_engine_for,
    create_session_factory,
    get_db_context,
    init_db,
    close_db,
    get_engine,
    get_session_factory,
)

from database.models import (
    Base,
    UsageRecordRow,
    ComplianceReportRow,
)

__all__ = [
    # Connection
    "create_engine_for",
    "create_session_factory",
    "get_db_context",
    "init_db",
    "close_db",
    "get_engine",
    "get_session_factory",
    # Models
    "Base",
    "UsageRecordRow",
    "ComplianceReportRow",
]
