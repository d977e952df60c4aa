"""
Audit Routes

Run compliance audits on uploaded documents or raw text.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel, Field

from api.auth.dependencies import get_current_actor
from api.middleware.rate_limit import limiter, LIMIT_AUDIT
from api.state import get_audit_service
from schemas.report import AuditRole
from schemas.usage import Actor
from services.audit import AuditOutcome, ComplianceAuditService

logger = logging.getLogger("bid_audit.api.audits")

router = APIRouter(prefix="/audits", tags=["Audits"])


class AuditTextRequest(BaseModel):
    """Audit request carrying already-extracted text."""
    rfq_text: str = Field(..., min_length=1)
    bid_text: str = Field(..., min_length=1)
    role: AuditRole = AuditRole.BIDDER


class AuditResponse(BaseModel):
    """Completed audit."""
    role: AuditRole
    percentage: float
    summary: dict
    usage_count: Optional[int]
    report: dict


def _to_response(outcome: AuditOutcome) -> AuditResponse:
    return AuditResponse(
        role=outcome.role,
        percentage=outcome.percentage,
        summary=outcome.summary,
        usage_count=outcome.usage_count,
        report=outcome.report.model_dump(mode="json", by_alias=True)
    )


@router.post("/text", response_model=AuditResponse)
@limiter.limit(LIMIT_AUDIT)
async def audit_text(
    request: Request,
    body: AuditTextRequest,
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Audit a bid against an RFQ given as text."""
    outcome = await service.run_audit(actor, body.rfq_text, body.bid_text, body.role)
    return _to_response(outcome)


@router.post("", response_model=AuditResponse)
@limiter.limit(LIMIT_AUDIT)
async def audit_documents(
    request: Request,
    rfq_file: UploadFile = File(..., description="RFQ document (.txt, .pdf, .docx)"),
    bid_file: UploadFile = File(..., description="Bid document (.txt, .pdf, .docx)"),
    role: AuditRole = Form(AuditRole.BIDDER),
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Audit uploaded RFQ and Bid documents."""
    rfq_bytes = await rfq_file.read()
    bid_bytes = await bid_file.read()
    logger.info(
        f"Audit upload from {actor.user_id}: {rfq_file.filename} ({len(rfq_bytes)} bytes), "
        f"{bid_file.filename} ({len(bid_bytes)} bytes)"
    )

    outcome = await service.audit_documents(
        actor,
        rfq_file.filename or "",
        rfq_bytes,
        bid_file.filename or "",
        bid_bytes,
        role
    )
    return _to_response(outcome)
