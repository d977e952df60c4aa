"""
Usage Routes

Audit counters and remaining free audits, and the administrative
subscription switch used by the payment integration.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.auth.dependencies import get_current_actor, require_admin
from api.state import get_audit_service
from schemas.usage import Actor, Administrator, Tenant, UsageRecord
from services.audit import ComplianceAuditService

logger = logging.getLogger("bid_audit.api.usage")

router = APIRouter(prefix="/usage", tags=["Usage"])


class UsageResponse(BaseModel):
    """Usage summary response."""
    initiator_checks: int
    bidder_checks: int
    subscribed: bool
    free_audit_limit: int
    remaining_free_audits: Optional[int]


class SubscriptionUpdate(BaseModel):
    """New subscription state for a user."""
    subscribed: bool


def _to_response(service: ComplianceAuditService, actor: Actor, record: UsageRecord) -> UsageResponse:
    return UsageResponse(
        initiator_checks=record.initiator_checks,
        bidder_checks=record.bidder_checks,
        subscribed=record.subscribed,
        free_audit_limit=service.gate.max_free_audits,
        remaining_free_audits=service.gate.remaining(actor, record)
    )


@router.get("", response_model=UsageResponse)
async def get_usage(
    actor: Actor = Depends(get_current_actor),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Get the caller's usage summary."""
    return _to_response(service, actor, await service.get_usage(actor))


@router.put("/{user_id}/subscription", response_model=UsageResponse)
async def set_subscription(
    user_id: str,
    body: SubscriptionUpdate,
    admin: Administrator = Depends(require_admin),
    service: ComplianceAuditService = Depends(get_audit_service)
):
    """Set a user's subscription flag (administrators only)."""
    record = await service.usage_store.set_subscribed(user_id, body.subscribed)
    logger.info(f"{admin.user_id} set subscribed={body.subscribed} for {user_id}")
    return _to_response(service, Tenant(user_id), record)
