"""
Report Routes

Save, list and delete compliance reports.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from api.auth.dependencies import get_current_actor
from api.state import get_audit_service
from schemas.report import AuditRole, Report
from schemas.usage import Actor
from services.audit import ComplianceAuditService
from services.scoring import compute_compliance_percentage


router = APIRouter(prefix="/reports", tags=["Reports"])


class SaveReportRequest(BaseModel):
    """A report to persist with its naming metadata."""
    report: Report
    rfq_name: str = Field(..., min_length=1)
    bid_name: str = Field(..., min_length=1)
    role: AuditRole = AuditRole.BIDDER


class SaveReportResponse(BaseModel):
    id: str


@router.post("", response_model=SaveReportResponse, status_code=status.HTTP_201_CREATED)
async def save_report(
    body: SaveReportRequest,
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Save a report under the caller's account."""
    report_id = await service.save_report(actor, body.report, body.rfq_name, body.bid_name, body.role)
    return SaveReportResponse(id=report_id)


@router.get("")
async def list_reports(
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Reports visible to the caller, newest first."""
    reports = await service.report_store.list_reports(actor)
    reports.sort(key=lambda report: (-report.timestamp, report.id))
    return {
        "items": [
            {
                **report.model_dump(mode="json", by_alias=True),
                "percentage": compute_compliance_percentage(report),
            }
            for report in reports
        ],
        "total": len(reports),
    }


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: str,
    owner_id: Optional[str] = Query(default=None, description="Owner of the report (administrators)"),
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Delete a report."""
    await service.delete_report(actor, report_id, owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
