"""
Database Models

SQLAlchemy models for usage records and stored compliance reports.
"""

from datetime import datetime

from sqlalchemy import (
    JSON, BigInteger, Boolean, DateTime, Index, Integer, String
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development and tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class UsageRecordRow(Base):
    """
    Per-user usage counters.

    ``version`` is bumped on every write; a write that does not find the
    version it read is a conflict and the transaction is retried.
    """
    __tablename__ = "usage_records"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    initiator_checks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bidder_checks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    subscribed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )


class ComplianceReportRow(Base):
    """A saved compliance report, owned by one tenant."""
    __tablename__ = "compliance_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    rfq_name: Mapped[str] = mapped_column(String(512), nullable=False)
    bid_name: Mapped[str] = mapped_column(String(512), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="BIDDER", nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    report: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    __table_args__ = (
        Index("idx_reports_owner", "owner_id"),
        Index("idx_reports_rfq", "rfq_name"),
    )
