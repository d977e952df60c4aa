"""
Application State

Builds the audit service used by the routes and exposes it as a dependency.
"""

from fastapi import Request

from services.audit import ComplianceAuditService
from services.invoker import RetryingInvoker
from services.report_store import SqlReportStore
from services.usage import SqlUsageStore


def build_default_service() -> ComplianceAuditService:
    """Audit service backed by the configured database and analysis endpoint."""
    return ComplianceAuditService(
        invoker=RetryingInvoker(),
        usage_store=SqlUsageStore(),
        report_store=SqlReportStore(),
    )


def get_audit_service(request: Request) -> ComplianceAuditService:
    """FastAPI dependency returning the application's audit service."""
    service = getattr(request.app.state, "audit_service", None)
    if service is None:
        service = build_default_service()
        request.app.state.audit_service = service
    return service
