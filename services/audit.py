"""
Compliance Audit Service

Runs one audit end to end: extraction, analysis, scoring, usage tracking,
and optional persistence of the resulting report.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from agents.compliance_agent import create_audit_request
from schemas.report import AuditRole, RankedEntry, Report
from schemas.usage import Actor, Administrator, UsageRecord
from services.document_processor import extract_text
from services.errors import ExtractionError, NotFound
from services.invoker import RetryingInvoker
from services.ranking import rank
from services.report_store import ReportStore
from services.scoring import summarize
from services.usage import AuditGate, UsageCounter, UsageStore

logger = logging.getLogger("bid_audit.services.audit")

ExtractFn = Callable[[str, bytes], str]


@dataclass
class AuditOutcome:
    """Result of a completed audit."""
    report: Report
    role: AuditRole
    percentage: float
    summary: dict
    usage_count: Optional[int]


class ComplianceAuditService:
    """
    Orchestrates audits for one deployment.

    Reports are only written after the analysis service returns a valid one.
    Free-audit users hold a reserved usage slot while their audit runs; a
    failed or cancelled audit gives the slot back, so usage counts end up
    where they started.
    """

    def __init__(
        self,
        invoker: RetryingInvoker,
        usage_store: UsageStore,
        report_store: ReportStore,
        counter: Optional[UsageCounter] = None,
        gate: Optional[AuditGate] = None,
        extract: ExtractFn = extract_text
    ):
        self.invoker = invoker
        self.usage_store = usage_store
        self.report_store = report_store
        self.counter = counter or UsageCounter(usage_store)
        self.gate = gate or AuditGate()
        self._extract = extract

    async def get_usage(self, actor: Actor) -> UsageRecord:
        """Usage record of the actor, zero-valued if none exists yet."""
        return await self.usage_store.get(actor.user_id) or UsageRecord()

    async def run_audit(
        self,
        actor: Actor,
        rfq_text: str,
        bid_text: str,
        role: AuditRole = AuditRole.BIDDER
    ) -> AuditOutcome:
        """
        Audit a bid against an RFQ.

        Raises:
            ExtractionError: If either document is empty
            UsageLimitExceeded: If the free allowance is used up
            ConfigurationError, UpstreamUnavailable, MalformedResponse: From the analysis call
        """
        if not rfq_text or not rfq_text.strip():
            raise ExtractionError("RFQ document contains no text")
        if not bid_text or not bid_text.strip():
            raise ExtractionError("Bid document contains no text")

        role = AuditRole(role)
        record = await self.usage_store.get(actor.user_id)
        self.gate.check(actor, record)

        # Gated actors claim their slot before the slow call
        reserved = None
        if self.gate.remaining(actor, record) is not None:
            reserved = await self.counter.reserve(actor, role, self.gate)

        logger.info(f"Running {role.value} audit for {actor.user_id}")
        try:
            report = await self.invoker.invoke(create_audit_request(rfq_text, bid_text))
        except (Exception, asyncio.CancelledError):
            if reserved is not None:
                await self.counter.release(actor.user_id, role)
            raise

        summary = summarize(report)
        if reserved is None:
            usage_count = await self.counter.increment_usage(actor.user_id, role)
        else:
            usage_count = reserved
            await self.counter.settle(actor.user_id)

        logger.info(
            f"Audit for {actor.user_id} complete: {len(report.findings)} findings, "
            f"{summary['percentage']}% compliant"
        )
        return AuditOutcome(
            report=report,
            role=role,
            percentage=summary["percentage"],
            summary=summary,
            usage_count=usage_count
        )

    async def audit_documents(
        self,
        actor: Actor,
        rfq_filename: str,
        rfq_bytes: bytes,
        bid_filename: str,
        bid_bytes: bytes,
        role: AuditRole = AuditRole.BIDDER
    ) -> AuditOutcome:
        """Extract text from both uploads, then run the audit."""
        rfq_text = await asyncio.to_thread(self._extract, rfq_filename, rfq_bytes)
        bid_text = await asyncio.to_thread(self._extract, bid_filename, bid_bytes)
        return await self.run_audit(actor, rfq_text, bid_text, role)

    async def save_report(
        self,
        actor: Actor,
        report: Report,
        rfq_name: str,
        bid_name: str,
        role: AuditRole = AuditRole.BIDDER
    ) -> str:
        """Persist a report under the actor's own tenant."""
        return await self.report_store.save(
            actor.user_id,
            report,
            rfq_name=rfq_name,
            bid_name=bid_name,
            role=role
        )

    async def delete_report(self, actor: Actor, report_id: str, owner_id: Optional[str] = None) -> None:
        """
        Delete a report.

        Tenants may only delete their own reports; administrators name the owner.

        Raises:
            NotFound: If the report does not exist or is not visible to the actor
        """
        if isinstance(actor, Administrator):
            if not owner_id:
                raise NotFound(f"Report {report_id} not found: owner not given")
            await self.report_store.delete(owner_id, report_id)
            return

        if owner_id and owner_id != actor.user_id:
            raise NotFound(f"Report {report_id} not found")
        await self.report_store.delete(actor.user_id, report_id)

    async def rankings(self, actor: Actor) -> dict[str, list[RankedEntry]]:
        """Current rankings over the reports visible to the actor."""
        return rank(await self.report_store.list_reports(actor))
