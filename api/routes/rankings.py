"""
Ranking Routes

Per-RFQ standings of saved reports, as a snapshot, a live stream or CSV.
"""

import json

from fastapi import APIRouter, Depends, Response
from fastapi.responses import StreamingResponse

from api.auth.dependencies import get_current_actor
from api.state import get_audit_service
from schemas.report import RankedEntry
from schemas.usage import Actor
from services.audit import ComplianceAuditService
from services.ranking import rankings_to_csv, watch_rankings


router = APIRouter(prefix="/rankings", tags=["Rankings"])


def serialize_rankings(rankings: dict[str, list[RankedEntry]]) -> list[dict]:
    """Rankings as a list of groups, preserving group order."""
    return [
        {
            "rfq_name": rfq_name,
            "count": len(entries),
            "entries": [
                {
                    "rank": entry.rank,
                    "percentage": entry.percentage,
                    "report": entry.report.model_dump(mode="json", by_alias=True),
                }
                for entry in entries
            ],
        }
        for rfq_name, entries in rankings.items()
    ]


@router.get("")
async def get_rankings(
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Current rankings over the reports visible to the caller."""
    return {"groups": serialize_rankings(await service.rankings(actor))}


@router.get("/stream")
async def stream_rankings(
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Newline-delimited JSON: one full ranking per change of the report set."""

    async def lines():
        async for rankings in watch_rankings(service.report_store, actor):
            yield json.dumps({"groups": serialize_rankings(rankings)}) + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")


@router.get("/export")
async def export_rankings(
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Rankings as a CSV download."""
    content = rankings_to_csv(await service.rankings(actor))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="rankings.csv"'}
    )
