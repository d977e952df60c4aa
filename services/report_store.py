"""
Report Store

Persistence of compliance reports with tenant-scoped and administrative read
paths, and push-style observation of the visible report set.

Subscribers receive full snapshots, never deltas. Ordering of returned
reports is unspecified; ranking does all ordering.
"""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from database.connection import get_db_context
from database.models import ComplianceReportRow
from schemas.report import AuditRole, Report, StoredReport
from schemas.usage import Actor, Administrator, Tenant
from services.errors import NotFound, StoreError

logger = logging.getLogger("bid_audit.services.report_store")

METADATA_FIELDS = {"id", "owner_id", "rfq_name", "bid_name", "timestamp", "role"}


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def report_document(report: Report) -> dict:
    """Wire-format body of a report without persistence metadata."""
    return report.model_dump(mode="json", by_alias=True, exclude=METADATA_FIELDS)


class ReportStore(ABC):
    """Contract for report persistence and change observation."""

    def __init__(self):
        self._subscribers: list[tuple[Actor, asyncio.Queue]] = []

    @abstractmethod
    async def _insert(self, report: StoredReport) -> None:
        ...

    @abstractmethod
    async def _remove(self, owner_id: str, report_id: str) -> bool:
        """Delete one report; False when it does not exist for that owner."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[StoredReport]:
        """Reports owned by one tenant."""

    @abstractmethod
    async def list_all(self) -> list[StoredReport]:
        """Reports of every tenant (administrative read)."""

    async def save(
        self,
        user_id: str,
        report: Report,
        *,
        rfq_name: str,
        bid_name: str,
        role: AuditRole = AuditRole.BIDDER,
        timestamp: Optional[int] = None
    ) -> str:
        """
        Persist a report for ``user_id`` with its metadata attached.

        Returns:
            The new report id
        """
        stored = StoredReport.model_validate({
            **report_document(report),
            "id": str(uuid.uuid4()),
            "ownerId": user_id,
            "rfqName": rfq_name,
            "bidName": bid_name,
            "timestamp": timestamp if timestamp is not None else now_ms(),
            "role": AuditRole(role).value,
        })
        await self._insert(stored)
        logger.info(f"Saved report {stored.id} for {user_id} ({rfq_name} / {bid_name})")
        self._notify(user_id)
        return stored.id

    async def delete(self, user_id: str, report_id: str) -> None:
        """
        Delete a report owned by ``user_id``.

        Raises:
            NotFound: If no such report exists for that owner
        """
        if not await self._remove(user_id, report_id):
            raise NotFound(f"Report {report_id} not found")
        logger.info(f"Deleted report {report_id} of {user_id}")
        self._notify(user_id)

    async def list_reports(self, actor: Actor) -> list[StoredReport]:
        """Reports visible to ``actor``."""
        if isinstance(actor, Administrator):
            return await self.list_all()
        if isinstance(actor, Tenant):
            return await self.list_for_user(actor.user_id)
        raise TypeError(f"Unknown actor: {actor!r}")

    async def subscribe(self, actor: Actor) -> AsyncIterator[list[StoredReport]]:
        """
        Yield the reports visible to ``actor`` now and after every change.

        Notifications that pile up while the consumer is busy collapse into
        one snapshot. Closing the generator unregisters the subscriber.
        """
        queue: asyncio.Queue = asyncio.Queue()
        entry = (actor, queue)
        self._subscribers.append(entry)
        try:
            yield await self.list_reports(actor)
            while True:
                await queue.get()
                while not queue.empty():
                    queue.get_nowait()
                yield await self.list_reports(actor)
        finally:
            self._subscribers.remove(entry)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, owner_id: str) -> None:
        for actor, queue in self._subscribers:
            if isinstance(actor, Administrator) or actor.user_id == owner_id:
                queue.put_nowait(owner_id)


class InMemoryReportStore(ReportStore):
    """Process-local report store."""

    def __init__(self):
        super().__init__()
        self._reports: dict[str, dict[str, StoredReport]] = {}

    async def _insert(self, report: StoredReport) -> None:
        self._reports.setdefault(report.owner_id, {})[report.id] = report

    async def _remove(self, owner_id: str, report_id: str) -> bool:
        return self._reports.get(owner_id, {}).pop(report_id, None) is not None

    async def list_for_user(self, user_id: str) -> list[StoredReport]:
        return list(self._reports.get(user_id, {}).values())

    async def list_all(self) -> list[StoredReport]:
        return [report for owned in self._reports.values() for report in owned.values()]


class SqlReportStore(ReportStore):
    """
    Reports in the database.

    Change notifications are delivered to subscribers of this process after
    the write commits.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        super().__init__()
        self._session_factory = session_factory

    @staticmethod
    def _to_report(row: ComplianceReportRow) -> StoredReport:
        return StoredReport.model_validate({
            **row.report,
            "id": row.id,
            "ownerId": row.owner_id,
            "rfqName": row.rfq_name,
            "bidName": row.bid_name,
            "timestamp": row.timestamp,
            "role": row.role,
        })

    async def _insert(self, report: StoredReport) -> None:
        try:
            async with get_db_context(self._session_factory) as db:
                db.add(ComplianceReportRow(
                    id=report.id,
                    owner_id=report.owner_id,
                    rfq_name=report.rfq_name,
                    bid_name=report.bid_name,
                    role=report.role.value,
                    timestamp=report.timestamp,
                    report=report_document(report)
                ))
        except SQLAlchemyError as e:
            raise StoreError(f"Could not save report: {e}") from e

    async def _remove(self, owner_id: str, report_id: str) -> bool:
        try:
            async with get_db_context(self._session_factory) as db:
                result = await db.execute(
                    delete(ComplianceReportRow).where(
                        ComplianceReportRow.id == report_id,
                        ComplianceReportRow.owner_id == owner_id
                    )
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StoreError(f"Could not delete report {report_id}: {e}") from e

    async def _select(self, owner_id: Optional[str] = None) -> list[StoredReport]:
        query = select(ComplianceReportRow)
        if owner_id is not None:
            query = query.where(ComplianceReportRow.owner_id == owner_id)
        try:
            async with get_db_context(self._session_factory) as db:
                result = await db.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list reports: {e}") from e
        return [self._to_report(row) for row in rows]

    async def list_for_user(self, user_id: str) -> list[StoredReport]:
        return await self._select(user_id)

    async def list_all(self) -> list[StoredReport]:
        return await self._select()
